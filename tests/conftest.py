from __future__ import annotations

import asyncio
import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ["SYNC_SCHEDULER_ENABLED"] = "false"

from typing import TYPE_CHECKING  # noqa: E402

import httpx  # noqa: E402
import pytest  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker  # noqa: E402

import schemehub.models  # noqa: E402,F401
from schemehub.api.deps import get_source  # noqa: E402
from schemehub.core.security import create_access_token, get_password_hash  # noqa: E402
from schemehub.database import Base, build_engine, get_db  # noqa: E402
from schemehub.main import app  # noqa: E402
from schemehub.models import Distributor, User, UserRole  # noqa: E402
from schemehub.services.data_sync_service import sync_supervisor  # noqa: E402
from schemehub.services.external_source import StaticSource  # noqa: E402

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Awaitable, Callable


TEST_PASSWORD = "password123"
_PASSWORD_HASH = get_password_hash(TEST_PASSWORD)

PRODUCT_ROWS = [
    {"ITEMID": "P001", "ITEMNAME": "Product A", "BRANDNAME": "Brand X", "FLAVOURTYPE": "Original",
     "PACKTYPEGROUPNAME": "Small", "Style": "Standard", "PACKTYPE": "Box", "Configuration": "120", "NOB": 12},
    {"ITEMID": "P002", "ITEMNAME": "Product B", "BRANDNAME": "Brand Y", "FLAVOURTYPE": "Mint",
     "PACKTYPEGROUPNAME": "Medium", "Style": "Premium", "PACKTYPE": "Bottle", "Configuration": "180", "NOB": 6},
]

DISTRIBUTOR_ROWS = [
    {"CUSTOMERACCOUNT": "ABC001", "ORGANIZATIONNAME": "ABC Distributors", "ADDRESSCITY": "Mumbai",
     "SMCODE": "WEST-01", "CUSTOMERGROUPID": "PREMIUM"},
    {"CUSTOMERACCOUNT": "XYZ002", "ORGANIZATIONNAME": "XYZ Enterprises", "ADDRESSCITY": "Delhi",
     "SMCODE": "NORTH-01", "CUSTOMERGROUPID": "STANDARD"},
]


def make_source(products=None, distributors=None) -> StaticSource:
    return StaticSource({
        "Ratan_Item": PRODUCT_ROWS if products is None else products,
        "Ratan_Customer": DISTRIBUTOR_ROWS if distributors is None else distributors,
    })


def auth_headers(user: User) -> dict[str, str]:
    token = create_access_token(subject=user.id, additional_claims={"role": user.role})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture(autouse=True)
def reset_sync_supervisor() -> None:
    sync_supervisor._lock = asyncio.Lock()  # noqa: SLF001
    sync_supervisor.last_run_at = None
    sync_supervisor.last_results = {}


@pytest.fixture
async def sqlite_engine():
    engine = build_engine("sqlite+aiosqlite://")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    try:
        yield engine
    finally:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)
        await engine.dispose()


@pytest.fixture
def session_factory(sqlite_engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(sqlite_engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


@pytest.fixture
async def db(session_factory) -> AsyncIterator[AsyncSession]:
    async with session_factory() as session:
        yield session


@pytest.fixture
def make_user(db: AsyncSession) -> Callable[..., Awaitable[User]]:
    async def factory(role: UserRole, email: str | None = None, name: str | None = None) -> User:
        user = User(
            name=name or f"{role.value.title()} User",
            email=email or f"{role.value}@example.com",
            username=role.value,
            role=role.value,
            password_hash=_PASSWORD_HASH,
            is_active=True,
        )
        db.add(user)
        await db.commit()
        return user

    return factory


@pytest.fixture
async def admin(make_user) -> User:
    return await make_user(UserRole.ADMIN)


@pytest.fixture
async def creator(make_user) -> User:
    return await make_user(UserRole.CREATOR)


@pytest.fixture
async def verifier(make_user) -> User:
    return await make_user(UserRole.VERIFIER)


@pytest.fixture
async def viewer(make_user) -> User:
    return await make_user(UserRole.VIEWER)


@pytest.fixture
async def distributors(db: AsyncSession) -> list[Distributor]:
    rows = [
        Distributor(customer_account="ABC001", organization_name="ABC Distributors",
                    address_city="Mumbai", sm_code="WEST-01", customer_group_id="PREMIUM"),
        Distributor(customer_account="XYZ002", organization_name="XYZ Enterprises",
                    address_city="Delhi", sm_code="NORTH-01", customer_group_id="STANDARD"),
    ]
    db.add_all(rows)
    await db.commit()
    return rows


@pytest.fixture
def source_factory() -> Callable[..., StaticSource]:
    return make_source


@pytest.fixture
def static_source() -> StaticSource:
    return make_source()


@pytest.fixture
def headers_for() -> Callable[[User], dict[str, str]]:
    return auth_headers


@pytest.fixture
async def client(session_factory, static_source) -> AsyncIterator[httpx.AsyncClient]:
    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_source] = lambda: static_source
    transport = httpx.ASGITransport(app=app)
    try:
        async with httpx.AsyncClient(transport=transport, base_url="http://test") as http_client:
            yield http_client
    finally:
        app.dependency_overrides.clear()
