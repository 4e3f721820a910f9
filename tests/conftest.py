import os

# Set dummy env vars for testing
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///./test.db"
os.environ["TWILIO_ACCOUNT_SID"] = "AC_TEST"
os.environ["TWILIO_AUTH_TOKEN"] = "AUTH_TEST"
os.environ["TWILIO_PHONE_NUMBER"] = "whatsapp:+14155238886"

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import NullPool
from shajara.database import Base, get_db
from shajara.main import app
# Import models to ensure they are registered with Base.metadata
import shajara.models  # noqa: F401
from shajara.services.member_service import MemberService
from shajara.services.state_store import InMemoryStateStore
from shajara.services.tree_service import TreeService
from shajara.services.user_service import UserService

# Use SQLite for testing
SQLALCHEMY_DATABASE_URL = "sqlite+aiosqlite:///./test.db"

engine = create_async_engine(
    SQLALCHEMY_DATABASE_URL, connect_args={"check_same_thread": False}, poolclass=NullPool
)
TestingSessionLocal = sessionmaker(
    class_=AsyncSession, autocommit=False, autoflush=False, expire_on_commit=False, bind=engine
)

async def override_get_db():
    async with TestingSessionLocal() as session:
        yield session

app.dependency_overrides[get_db] = override_get_db

@pytest_asyncio.fixture
async def prepare_database():
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

@pytest_asyncio.fixture
async def db_session(prepare_database):
    async with TestingSessionLocal() as session:
        yield session

@pytest_asyncio.fixture
async def client(prepare_database):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

@pytest.fixture
def states():
    return InMemoryStateStore()

@pytest_asyncio.fixture
async def user(db_session):
    return await UserService(db_session).create_user("+998900000001", "Aziz")

@pytest_asyncio.fixture
async def make_tree(db_session, user):
    """Creates a tree owned by `user` holding one root member per (name, birth_year, relation) tuple."""
    tree_service = TreeService(db_session)
    member_service = MemberService(db_session)

    async def _make_tree(name, *people):
        tree = await tree_service.create_tree(user, name)
        members = []
        for full_name, birth_year, relation_type in people:
            members.append(
                await member_service.create_member(
                    user_id=user.id,
                    tree_id=tree.id,
                    full_name=full_name,
                    relation_type=relation_type,
                    birth_year=birth_year,
                )
            )
        return tree, members

    return _make_tree
