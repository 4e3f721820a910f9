from pydantic_settings import BaseSettings
from functools import lru_cache

class Settings(BaseSettings):
    DATABASE_URL: str
    TWILIO_ACCOUNT_SID: str
    TWILIO_AUTH_TOKEN: str
    TWILIO_PHONE_NUMBER: str
    LOG_LEVEL: str = "INFO"
    ENVIRONMENT: str = "development"

    # Invites
    BOT_URL: str = "https://wa.me/shajara"
    INVITE_TTL_DAYS: int = 7

    # PDF export
    EXPORT_DIR: str = "temp"

    class Config:
        env_file = ".env"

@lru_cache()
def get_settings():
    return Settings()
