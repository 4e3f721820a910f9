import logging
from contextlib import asynccontextmanager
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker, declarative_base
from shajara.config import get_settings
from shajara.errors import DatabaseError
from urllib.parse import urlparse, urlencode, parse_qs, urlunparse

settings = get_settings()
logger = logging.getLogger(__name__)

def build_engine_url(raw_url: str):
    """
    Transforms the DATABASE_URL for asyncpg compatibility:
    - Replaces postgres:// with postgresql+asyncpg://
    - Strips ?sslmode=require from query params and passes it as connect_args instead
    Other URLs (sqlite+aiosqlite in dev and tests) are returned untouched.
    """
    # Fix scheme for asyncpg
    if raw_url.startswith("postgres://"):
        raw_url = raw_url.replace("postgres://", "postgresql+asyncpg://", 1)
    if not raw_url.startswith("postgresql"):
        return raw_url, {}

    parsed = urlparse(raw_url)
    query_params = parse_qs(parsed.query)

    sslmode = query_params.pop("sslmode", [None])[0]

    new_query = urlencode({k: v[0] for k, v in query_params.items()})
    clean_url = urlunparse(parsed._replace(query=new_query))

    connect_args = {}
    if sslmode == "require":
        connect_args["ssl"] = "require"

    return clean_url, connect_args

database_url, connect_args = build_engine_url(settings.DATABASE_URL)

engine = create_async_engine(database_url, echo=False, connect_args=connect_args)

AsyncSessionLocal = sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False
)

Base = declarative_base()

async def get_db():
    async with AsyncSessionLocal() as session:
        try:
            yield session
        finally:
            await session.close()

@asynccontextmanager
async def unit_of_work(session: AsyncSession):
    """
    All-or-nothing scope over the session's current transaction.
    Commits when the block exits cleanly, rolls back on any exception.
    Store failures surface as DatabaseError; everything else is re-raised as is.
    """
    try:
        yield session
        await session.commit()
    except SQLAlchemyError as e:
        await session.rollback()
        logger.error(f"Transaction rolled back: {e}")
        raise DatabaseError("Database operation failed", {"detail": str(e)}) from e
    except Exception:
        await session.rollback()
        raise
