# tests/conftest.py
import os

# database.py builds its engine at import time
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("SECRET_KEY", "test-secret")

from decimal import Decimal

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from marketplace import models  # noqa: F401
from marketplace.core.config import Settings, clear_settings_cache
from marketplace.core.enums import Region, Role, VerificationStatus
from marketplace.core.security import issue_token
from marketplace.database import Base
from marketplace.dependencies import get_db, get_session_factory
from marketplace.main import create_app
from marketplace.models import Category, Customer, Product, Seller, SuperAdmin

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

CUSTOMER_PIN = "500001"


@pytest.fixture(scope="session", autouse=True)
def _fresh_settings():
    clear_settings_cache()
    yield
    clear_settings_cache()


@pytest.fixture
def settings():
    """Provide test settings"""
    return Settings(
        DATABASE_URL=TEST_DATABASE_URL,
        SECRET_KEY="test-secret",
        STOCK_RESERVATION_RETRIES=3,
        STATUS_UPDATE_RETRIES=3,
        NOTIFY_ON_ORDER=True,
    )


@pytest.fixture(scope="function")
async def test_engine():
    """Create and configure the test database engine (function-scoped)."""
    # StaticPool keeps every session on the one in-memory database
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    return async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db_session(session_factory):
    """Provide a database session for tests"""
    async with session_factory() as session:
        yield session
        await session.rollback()


def make_customer(**overrides):
    values = dict(
        name="Asha Rao",
        e_mail="asha@example.com",
        phone_no="9876543210",
        address_first_line="12 MG Road",
        city="Hyderabad",
        state="Telangana",
        pin_code=CUSTOMER_PIN,
        region=Region.SOUTH,
    )
    values.update(overrides)
    return Customer(**values)


def make_seller(approved=True, **overrides):
    values = dict(
        name="Kiran Medicals",
        e_mail="kiran@example.com",
        address_first_line="4 Station Road",
        city="Hyderabad",
        state="Telangana",
        pin_code=CUSTOMER_PIN,
        region=Region.SOUTH,
    )
    if approved:
        values.update(verification_status=VerificationStatus.APPROVED, is_verified=True)
    values.update(overrides)
    return Seller(**values)


@pytest.fixture
def customer_factory():
    return make_customer


@pytest.fixture
def seller_factory():
    return make_seller


@pytest.fixture
async def customer(db_session):
    account = make_customer()
    db_session.add(account)
    await db_session.commit()
    return account


@pytest.fixture
async def seller(db_session):
    account = make_seller()
    db_session.add(account)
    await db_session.commit()
    return account


@pytest.fixture
async def admin(db_session):
    account = SuperAdmin(
        name="Root Admin",
        e_mail="admin@example.com",
        pin_code="110001",
        region=Region.NORTH,
    )
    db_session.add(account)
    await db_session.commit()
    return account


@pytest.fixture
async def category(db_session):
    cat = Category(name="Medicines", description="Over the counter")
    db_session.add(cat)
    await db_session.commit()
    return cat


@pytest.fixture
async def products(db_session, seller, category):
    """Two products owned by the approved seller: A (100.00 x 5) and B (20.00 x 1)."""
    items = [
        Product(name="Product A", price=Decimal("100.00"), quantity=5, seller_id=seller.id, category_id=category.id),
        Product(name="Product B", price=Decimal("20.00"), quantity=1, seller_id=seller.id, category_id=category.id),
    ]
    db_session.add_all(items)
    await db_session.commit()
    return items


@pytest.fixture
def token_for():
    """Build an Authorization header for an account."""
    def _headers(account_id, role):
        return {"Authorization": f"Bearer {issue_token(account_id, Role(role))}"}
    return _headers


@pytest.fixture
async def client(session_factory):
    """HTTP client against the app, with sessions bound to the test database."""
    app = create_app()

    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()
