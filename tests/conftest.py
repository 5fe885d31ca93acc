import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret")

from decimal import Decimal

import httpx
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from campus_canteen.auth import Identity, create_access_token
from campus_canteen.db.base import Base
from campus_canteen.db.session import get_async_session
from campus_canteen.main import app
from campus_canteen.models import MenuItem, RoleEnum


@pytest_asyncio.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def menu(session_factory):
    """PizzaSlice 199, Fries 49 and an unavailable Soup."""
    async with session_factory() as session:
        items = {
            "pizza": MenuItem(name="PizzaSlice", price=Decimal("199"), category="Pizza"),
            "fries": MenuItem(name="Fries", price=Decimal("49"), category="Sides"),
            "soup": MenuItem(name="Soup", price=Decimal("80"), category="Soups", is_available=False),
        }
        session.add_all(items.values())
        await session.commit()
        return {key: item.id for key, item in items.items()}


@pytest_asyncio.fixture
async def client(session_factory):
    async def override_session():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_async_session] = override_session
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as http:
        yield http
    app.dependency_overrides.clear()


def auth(user_id: str, role: str, name: str = "") -> dict:
    token = create_access_token(user_id, role, name or user_id)
    return {"Authorization": f"Bearer {token}"}


STUDENT = Identity(user_id="stu-1", role=RoleEnum.student, name="Asha")
OTHER_STUDENT = Identity(user_id="stu-2", role=RoleEnum.student, name="Ben")
STAFF = Identity(user_id="staff-1", role=RoleEnum.staff, name="Kitchen")
ADMIN = Identity(user_id="admin-1", role=RoleEnum.admin, name="Admin")


def headers_for(identity: Identity) -> dict:
    return auth(identity.user_id, identity.role.value, identity.name)
