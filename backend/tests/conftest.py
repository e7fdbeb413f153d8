"""
Pytest configuration and shared fixtures for the storefront order tests.

Provides an in-memory SQLite DB (aiosqlite + StaticPool), an httpx client
bound to the FastAPI app, and catalogue/profile/order fixtures.
"""
import os, sys
sys.path.insert(0, os.path.dirname(os.path.dirname(__file__)))

import pytest
from typing import AsyncGenerator

from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool

from main import app
from config import settings
from database import Base, enable_sqlite_savepoints, get_db
from middleware.auth import issue_access_token
from middleware.rate_limit import reset_rate_limits

# ── Test Configuration ───────────────────────────────────────────────
# Set test-only values for settings that would normally come from .env
TEST_CALLBACK_SECRET = "test-payment-callback-secret"

settings.jwt_secret = "test-jwt-secret-for-pytest-only"
settings.payment_callback_secret = TEST_CALLBACK_SECRET
settings.resend_api_key = ""
settings.outbox_enabled = False


@pytest.fixture(autouse=True)
def _fresh_settings_and_limits(monkeypatch):
    """Each test starts with known secrets, no email key and empty rate-limit windows."""
    monkeypatch.setattr(settings, "jwt_secret", "test-jwt-secret-for-pytest-only")
    monkeypatch.setattr(settings, "payment_callback_secret", TEST_CALLBACK_SECRET)
    monkeypatch.setattr(settings, "resend_api_key", "")
    reset_rate_limits()
    yield
    reset_rate_limits()


# ── Database Fixtures ────────────────────────────────────────────────


@pytest.fixture(scope="function")
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Create an in-memory SQLite database session for each test.

    Uses StaticPool to allow in-memory SQLite with async SQLAlchemy.
    """
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    enable_sqlite_savepoints(engine)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async_session_maker = async_sessionmaker(
        engine, class_=AsyncSession, expire_on_commit=False
    )

    async with async_session_maker() as session:
        yield session

    await engine.dispose()


@pytest.fixture(scope="function")
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """
    httpx client against the app with the in-memory database.

    Overrides get_db dependency to use test DB session.
    """
    async def override_get_db():
        try:
            yield db_session
        except Exception:
            await db_session.rollback()
            raise

    app.dependency_overrides[get_db] = override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c

    app.dependency_overrides.clear()


# ── Profile Fixtures ──────────────────────────────────────────────────


@pytest.fixture
async def admin_profile(db_session: AsyncSession):
    from db_models import Profile

    profile = Profile(email="admin@shop.test", full_name="Shop Admin", role="admin")
    db_session.add(profile)
    await db_session.commit()
    return profile


@pytest.fixture
async def customer_profile(db_session: AsyncSession):
    from db_models import Profile

    profile = Profile(
        email="lan@example.com",
        full_name="Nguyen Lan",
        phone="0901234567",
        address="12 Ly Thuong Kiet, Ha Noi",
        role="customer",
    )
    db_session.add(profile)
    await db_session.commit()
    return profile


@pytest.fixture
async def other_customer_profile(db_session: AsyncSession):
    from db_models import Profile

    profile = Profile(email="minh@example.com", full_name="Tran Minh", role="customer")
    db_session.add(profile)
    await db_session.commit()
    return profile


def auth_headers_for(profile) -> dict:
    token = issue_access_token(user_id=profile.id, role=profile.role)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def admin_headers(admin_profile) -> dict:
    return auth_headers_for(admin_profile)


@pytest.fixture
def customer_headers(customer_profile) -> dict:
    return auth_headers_for(customer_profile)


@pytest.fixture
def other_customer_headers(other_customer_profile) -> dict:
    return auth_headers_for(other_customer_profile)


# ── Catalogue Fixtures ────────────────────────────────────────────────


@pytest.fixture
async def product(db_session: AsyncSession):
    from db_models import Product

    p = Product(name="Linen Shirt", slug="linen-shirt", base_price=100.0)
    db_session.add(p)
    await db_session.commit()
    return p


@pytest.fixture
async def variant_a(db_session: AsyncSession, product):
    from db_models import ProductVariant

    v = ProductVariant(product_id=product.id, size="M", color="White", price=100.0, stock=10)
    db_session.add(v)
    await db_session.commit()
    return v


@pytest.fixture
async def variant_b(db_session: AsyncSession, product):
    from db_models import ProductVariant

    v = ProductVariant(product_id=product.id, size="L", color="Navy", price=50.0, stock=5)
    db_session.add(v)
    await db_session.commit()
    return v


# ── Order Fixtures ────────────────────────────────────────────────────


@pytest.fixture
def make_order(db_session: AsyncSession):
    """
    Factory that writes an order with items, shipping and payment rows
    directly (no stock movement).

    Usage: order = await make_order(customer, [(variant_a, 2)], status="processing")
    """
    from db_models import Order, OrderItem, Payment, ShippingOrder

    async def _make(
        profile,
        lines,
        *,
        status: str = "pending_payment",
        payment_status: str = "unpaid",
        payment_method: str = "online",
        gateway: str = "momo",
        payment_record_status: str = "pending",
        shipping_status: str = "created",
        with_shipping: bool = True,
    ):
        order = Order(
            user_id=profile.id,
            total_price=sum(v.price * q for v, q in lines),
            payment_method=payment_method,
            payment_status=payment_status,
            order_status=status,
        )
        db_session.add(order)
        await db_session.flush()
        for v, q in lines:
            db_session.add(OrderItem(order_id=order.id, variant_id=v.id, price=v.price, quantity=q))
        if with_shipping:
            db_session.add(
                ShippingOrder(
                    order_id=order.id,
                    receiver_name=profile.full_name or "Receiver",
                    receiver_phone="0901234567",
                    receiver_address="12 Ly Thuong Kiet, Ha Noi",
                    status=shipping_status,
                )
            )
        db_session.add(Payment(order_id=order.id, method=gateway, status=payment_record_status))
        await db_session.commit()
        return order

    return _make
