"""Test configuration and fixtures"""

import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("PAYSTACK_SECRET_KEY", "sk_test_secret")

from datetime import datetime, timedelta
from decimal import Decimal
from uuid import uuid4

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import StaticPool

from app.main import app
from app.database import Base, get_db
from app.jobs.celery_app import celery_app
from app.models.tenant import Tenant, RestaurantSettings, OperatingState, StaffContact
from app.models.order import Order
from app.models.promo import Referrer, PromoCode
from app.models.courier import Courier
from app.models.user import User, UserRole
from app.api.auth import get_password_hash


# Test database URL (use in-memory SQLite for tests)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

OPEN_ALL_DAY = {"open": "00:00", "close": "23:59"}


@pytest.fixture
async def test_db():
    """Create test database"""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async with session_factory() as session:
        yield session

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture(autouse=True)
def sent_tasks(monkeypatch):
    """Capture Celery dispatches instead of talking to a broker"""
    calls = []

    def fake_send_task(name, args=None, **kwargs):
        calls.append((name, list(args or [])))

    monkeypatch.setattr(celery_app, "send_task", fake_send_task)
    return calls


@pytest.fixture
async def test_tenant(test_db):
    """Create a test tenant that is open around the clock"""
    tenant = Tenant(
        id=uuid4(),
        name="Test Restaurant",
        timezone="Africa/Lagos",
    )
    test_db.add(tenant)
    await test_db.flush()

    settings = RestaurantSettings(
        tenant_id=tenant.id,
        address="1 Test Close, Awka",
        hours_json={
            day: OPEN_ALL_DAY
            for day in ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")
        },
    )
    test_db.add(settings)

    state = OperatingState(
        tenant_id=tenant.id,
        is_open=True,
        auto_close_enabled=True,
        max_active_orders=10,
        version=0,
    )
    test_db.add(state)

    test_db.add(
        StaffContact(
            tenant_id=tenant.id,
            name="Manager",
            phone="+2348030000000",
        )
    )
    await test_db.commit()

    return tenant


@pytest.fixture
async def test_user(test_db, test_tenant):
    """Create a test user"""
    user = User(
        id=uuid4(),
        tenant_id=test_tenant.id,
        email="test@example.com",
        hashed_password=get_password_hash("testpass123"),
        full_name="Test User",
        role=UserRole.RESTAURANT_ADMIN,
        is_active=True,
    )
    test_db.add(user)
    await test_db.commit()

    return user


@pytest.fixture
async def test_referrer(test_db, test_tenant):
    """Referrer earning 10% commission"""
    referrer = Referrer(
        tenant_id=test_tenant.id,
        name="Ada Food Reviews",
        commission_type="percentage",
        commission_value=Decimal("10"),
        is_active=True,
    )
    test_db.add(referrer)
    await test_db.commit()
    return referrer


@pytest.fixture
async def welcome_promo(test_db, test_tenant, test_referrer):
    """WELCOME10 promo owned by the test referrer"""
    promo = PromoCode(
        tenant_id=test_tenant.id,
        code="WELCOME10",
        discount_type="percentage",
        discount_value=Decimal("10"),
        referrer_id=test_referrer.id,
        is_active=True,
    )
    test_db.add(promo)
    await test_db.commit()
    return promo


@pytest.fixture
def make_order(test_db, test_tenant):
    """Factory for orders stored directly in the database"""
    async def _make_order(
        total: Decimal = Decimal("4000.00"),
        status: str = "pending",
        phone: str = "+2348031234567",
        promo_code=None,
        payment_method: str = "online",
        **fields,
    ) -> Order:
        order = Order(
            tenant_id=test_tenant.id,
            order_number=f"ORD-TEST-{uuid4().hex[:6]}",
            customer_name="Test Customer",
            customer_phone=phone,
            order_type="delivery",
            delivery_address="5 Arthur Eze Avenue",
            items_json=[{"item_name": "Jollof Rice", "quantity": 2, "subtotal": str(total)}],
            subtotal=total,
            total=total,
            promo_code=promo_code,
            status=status,
            payment_method=payment_method,
            **fields,
        )
        test_db.add(order)
        await test_db.commit()
        return order

    return _make_order


@pytest.fixture
def make_courier(test_db, test_tenant):
    """Factory for couriers; creation order decides ties"""
    created = []

    async def _make_courier(
        name: str,
        latitude=None,
        longitude=None,
        cod_balance: Decimal = Decimal("0"),
        status: str = "available",
        vehicle_id: str = "BIKE-1",
        is_active: bool = True,
        **fields,
    ) -> Courier:
        courier = Courier(
            tenant_id=test_tenant.id,
            name=name,
            phone=f"+23480600000{len(created):02d}",
            status=status,
            is_active=is_active,
            vehicle_id=vehicle_id,
            current_latitude=latitude,
            current_longitude=longitude,
            cod_balance=cod_balance,
            created_at=datetime(2024, 1, 1) + timedelta(minutes=len(created)),
            **fields,
        )
        test_db.add(courier)
        await test_db.commit()
        created.append(courier)
        return courier

    return _make_courier


@pytest.fixture
async def client(test_db):
    """Create test client with overridden database"""
    async def override_get_db():
        yield test_db

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


@pytest.fixture
async def authenticated_client(client, test_user):
    """Create authenticated test client"""
    from app.api.auth import create_access_token

    token = create_access_token(test_user)
    client.headers["Authorization"] = f"Bearer {token}"

    return client
