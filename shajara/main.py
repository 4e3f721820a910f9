from contextlib import asynccontextmanager
from fastapi import FastAPI
from shajara.database import Base, engine
from shajara.routers import trees, webhook
from shajara.utils.logging import setup_logging
import shajara.models  # noqa: F401

logger = setup_logging()

@asynccontextmanager
async def lifespan(app: FastAPI):
    # Bootstrap the schema; no migrations yet
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables ready")
    yield
    await engine.dispose()

app = FastAPI(title="Shajara Family Tree Bot", lifespan=lifespan)

app.include_router(webhook.router)
app.include_router(trees.router)

@app.get("/")
async def root():
    return {"message": "Family Tree Bot API is running"}
