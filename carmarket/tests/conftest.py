"""
Pytest configuration and shared fixtures for the CarMarket test suite.

This module provides:
- Database fixtures (in-memory SQLite for fast tests)
- A fakeredis-backed cache
- FastAPI async client fixtures with dependency overrides
- Factories for users, dealers and cars
"""

import os

# Must be set before carmarket modules read their configuration
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("JWT_SECRET", "test-secret-not-for-production-use-0123456789")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("EMAIL_NOTIFICATIONS_ENABLED", "false")

import uuid
from decimal import Decimal
from typing import AsyncGenerator

import pytest
from fakeredis import FakeServer
from fakeredis.aioredis import FakeRedis
from httpx import ASGITransport, AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

import carmarket.auth.passwords_handler as passwords_handler
from carmarket.auth.auth_handler import sign_access_token, sign_refresh_token
from carmarket.core import config
from carmarket.core.cache import CacheService, get_cache
from carmarket.core.db import Base, get_db
from carmarket.main import app
from carmarket.middleware.rate_limit import limiter
from carmarket.models import (
    Car,
    Condition,
    Dealer,
    FuelType,
    Transmission,
    User,
    UserRole,
    VehicleType,
)


# Test Database Configuration
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

DEFAULT_PASSWORD = "secret123"


@pytest.fixture(autouse=True)
def fast_password_hashing(monkeypatch):
    """bcrypt's minimum cost keeps the suite fast."""
    monkeypatch.setattr(passwords_handler, "BCRYPT_ROUNDS", 4)


@pytest.fixture(autouse=True)
def disable_rate_limits():
    limiter.enabled = False
    yield
    limiter.enabled = False


@pytest.fixture(autouse=True)
def image_storage(tmp_path, monkeypatch):
    storage = tmp_path / "images"
    monkeypatch.setattr(config, "IMAGE_STORAGE_DIR", str(storage))
    monkeypatch.setattr(config, "IMAGE_BASE_URL", "http://test/api/images/serve")
    return storage


@pytest.fixture
async def async_engine():
    """Create async engine for testing with in-memory SQLite."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        echo=False
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
async def db_session(async_engine) -> AsyncGenerator[AsyncSession, None]:
    """Create async database session for testing."""
    session_factory = async_sessionmaker(async_engine, expire_on_commit=False)

    async with session_factory() as session:
        yield session


@pytest.fixture
async def redis_client():
    client = FakeRedis(server=FakeServer())
    yield client
    await client.flushall()
    await client.aclose()


@pytest.fixture
def cache(redis_client) -> CacheService:
    return CacheService(redis_client, prefix="test")


@pytest.fixture
async def client(db_session, cache) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client against the app with database and cache overridden."""

    async def override_get_db():
        yield db_session

    async def override_get_cache():
        return cache

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_cache] = override_get_cache

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


# ---------------------------------------------------------------- factories


@pytest.fixture
def make_user(db_session):
    async def _make_user(email: str = None, role: UserRole = UserRole.BUYER,
                         password: str = DEFAULT_PASSWORD, is_active: bool = True) -> User:
        user = User(
            id=uuid.uuid4(),
            email=email or f"user-{uuid.uuid4().hex[:8]}@example.com",
            password_hash=await passwords_handler.hash_password_async(password),
            role=role,
            is_active=is_active,
        )
        db_session.add(user)
        await db_session.commit()
        return user

    return _make_user


@pytest.fixture
def make_dealer(db_session, make_user):
    async def _make_dealer(name: str = "Test Motors", user: User = None) -> Dealer:
        user = user or await make_user(role=UserRole.DEALER)
        dealer = Dealer(id=uuid.uuid4(), user_id=user.id, name=name, address="1 Main St", phone="555-0100")
        db_session.add(dealer)
        await db_session.commit()

        stmt = select(Dealer).where(Dealer.id == dealer.id).execution_options(populate_existing=True)
        return (await db_session.execute(stmt)).scalar_one()

    return _make_dealer


@pytest.fixture
def make_car(db_session):
    async def _make_car(dealer: Dealer, **overrides) -> Car:
        fields = dict(
            make="Toyota",
            model="Corolla",
            year=2018,
            price=Decimal("10000.00"),
            mileage=50000,
            fuel_type=FuelType.GAS,
            transmission=Transmission.AUTOMATIC,
            vehicle_type=VehicleType.PASSENGER,
            condition=Condition.DAMAGED,
            description="Front bumper damage",
            is_featured=False,
            is_active=True,
        )
        fields.update(overrides)

        car = Car(id=uuid.uuid4(), dealer_id=dealer.id, **fields)
        db_session.add(car)
        await db_session.commit()

        stmt = select(Car).where(Car.id == car.id).execution_options(populate_existing=True)
        return (await db_session.execute(stmt)).scalar_one()

    return _make_car


@pytest.fixture
def auth_headers():
    def _auth_headers(user: User, refresh: bool = False) -> dict:
        sign = sign_refresh_token if refresh else sign_access_token
        token = sign(str(user.id), user.email, user.role.value)
        return {"Authorization": f"Bearer {token}"}

    return _auth_headers


@pytest.fixture
async def buyer(make_user) -> User:
    return await make_user(email="buyer@example.com")


@pytest.fixture
async def admin(make_user) -> User:
    return await make_user(email="admin@example.com", role=UserRole.ADMIN)


@pytest.fixture
async def dealer(make_dealer) -> Dealer:
    return await make_dealer()
