from fastapi import APIRouter, Request, Depends, Form, HTTPException, status
from fastapi.responses import Response
from sqlalchemy.ext.asyncio import AsyncSession
from shajara.database import get_db
from shajara.services.chatbot_service import ChatbotService
from shajara.config import get_settings
from twilio.request_validator import RequestValidator
import logging

router = APIRouter()
settings = get_settings()
logger = logging.getLogger(__name__)

async def validate_twilio_request(request: Request):
    validator = RequestValidator(settings.TWILIO_AUTH_TOKEN)
    form = await request.form()
    params = dict(form)
    url = str(request.url)

    # Proxies terminate TLS; Twilio signs the https URL
    if settings.ENVIRONMENT == "production":
         url = url.replace("http://", "https://")

    signature = request.headers.get("X-Twilio-Signature", "")

    if not validator.validate(url, params, signature):
        logger.warning(f"Invalid Twilio signature: {signature}")
        if settings.ENVIRONMENT == "production":
             raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Invalid signature")

@router.post("/webhook", dependencies=[Depends(validate_twilio_request)])
async def whatsapp_webhook(
    From: str = Form(...),
    Body: str = Form(...),
    db: AsyncSession = Depends(get_db)
):
    chatbot = ChatbotService(db)
    response_str = await chatbot.handle_message(From, Body)
    return Response(content=response_str, media_type="application/xml")
