import os

os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["DEV_MODE"] = "true"
os.environ["RATE_LIMIT_MAX_REQUESTS"] = "1000"

import uuid

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel
from sqlmodel.ext.asyncio.session import AsyncSession

from mdmc_crm import models  # noqa: F401
from mdmc_crm.core.permissions import Role
from mdmc_crm.core.security import create_access_token, get_password_hash
from mdmc_crm.database import get_session
from mdmc_crm.main import app
from mdmc_crm.repositories.user_repo import UserRepository
from mdmc_crm.services.email_service import MockEmailService, set_email_service

PASSWORD = "password123"


@pytest.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool
    )
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture(autouse=True)
def mail():
    service = MockEmailService()
    set_email_service(service)
    yield service
    set_email_service(None)


@pytest.fixture
async def client(session_factory):
    async def override_get_session():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_session] = override_get_session
    app.state.rate_limiter.reset()
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest.fixture
def make_user(session_factory):
    async def factory(role: Role = Role.AGENT, email: str = None, password: str = PASSWORD, **extra):
        async with session_factory() as session:
            return await UserRepository(session).create_user(
                first_name="Test",
                last_name=role.value.title(),
                email=email or f"{role.value}-{uuid.uuid4().hex[:8]}@example.com",
                password_hash=get_password_hash(password),
                role=role.value,
                is_verified=True,
                **extra
            )
    return factory


@pytest.fixture
def auth_headers():
    def headers(user) -> dict:
        return {"Authorization": f"Bearer {create_access_token(user.id)}"}
    return headers


@pytest.fixture
async def admin(make_user):
    return await make_user(Role.ADMIN)


@pytest.fixture
async def manager(make_user):
    return await make_user(Role.MANAGER)


@pytest.fixture
async def agent(make_user):
    return await make_user(Role.AGENT)


@pytest.fixture
async def viewer(make_user):
    return await make_user(Role.VIEWER)


@pytest.fixture
def lead_payload():
    def payload(**overrides) -> dict:
        data = {
            "first_name": "Maya",
            "last_name": "Reyes",
            "email": f"maya-{uuid.uuid4().hex[:8]}@artist.io",
            "artist_name": "MAYA R",
            "genre": "Pop",
            "source": "website",
            "services_interested": ["youtube_promotion"],
            "tags": ["New-Single"],
        }
        data.update(overrides)
        return data
    return payload


@pytest.fixture
def campaign_payload():
    def payload(**overrides) -> dict:
        data = {
            "name": "Summer Single Push",
            "type": "youtube_promotion",
            "start_date": "2030-06-01T00:00:00",
            "end_date": "2030-06-30T00:00:00",
            "budget": {"total": 5000, "currency": "USD"},
        }
        data.update(overrides)
        return data
    return payload
