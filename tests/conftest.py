"""
Pytest configuration and shared test fixtures.

This module sets the test environment, provides an in-memory SQLite
database with the full schema, seed reference data for one company, actor
and token helpers, and an async HTTP client bound to the FastAPI app with
the database dependency pointed at the test engine.

Seed fixtures return plain identifiers rather than ORM objects, so tests
stay valid after a service rolls back its session.
"""

import os

os.environ.setdefault("PRINTSHOP_ENVIRONMENT", "test")
os.environ.setdefault("PRINTSHOP_DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault(
    "PRINTSHOP_SECRET_KEY", "test-secret-key-with-at-least-32-characters"
)
os.environ.setdefault("PRINTSHOP_EXCHANGE_RATE_CACHE_ENABLED", "false")

import uuid
from dataclasses import dataclass
from datetime import timedelta
from decimal import Decimal
from typing import AsyncGenerator, Callable

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine
from sqlalchemy.pool import StaticPool

from printshop.core.security import ActorContext, create_access_token
from printshop.database.base import Base, utcnow
from printshop.database.connection import build_session_factory, get_db
from printshop.database.models import (
    Client,
    Company,
    Currency,
    ExchangeRate,
    PricingTier,
    Product,
)
from printshop.main import app
from printshop.services.notifications.service import NotificationService
from printshop.services.orders.enums import AppRole
from printshop.services.orders.service import OrderService
from printshop.services.pricing.lines import ItemInput


@dataclass(frozen=True)
class SeedData:
    """Identifiers of the reference data created for each test."""

    company_id: uuid.UUID
    other_company_id: uuid.UUID
    aed_id: uuid.UUID
    usd_id: uuid.UUID
    default_tier_id: uuid.UUID
    vip_tier_id: uuid.UUID
    product_id: uuid.UUID
    client_id: uuid.UUID


class RecordingSink:
    """Notification sink that keeps every notification it receives."""

    def __init__(self):
        self.sent = []

    async def send(self, notification) -> None:
        self.sent.append(notification)


# ============================================================================
# Database Fixtures
# ============================================================================


@pytest.fixture
async def engine() -> AsyncGenerator[AsyncEngine, None]:
    """
    Create a fresh in-memory database with every table.

    StaticPool keeps the single in-memory connection alive across sessions.
    """
    test_engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield test_engine

    await test_engine.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine):
    return build_session_factory(engine)


@pytest.fixture
async def session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Provide a database session for service level tests."""
    async with session_factory() as db_session:
        yield db_session


@pytest.fixture
async def seed(session_factory) -> SeedData:
    """
    Create reference data for one company.

    The company's base currency is AED. USD is worth 3.75 AED, products are
    priced in AED, there is a default tier without markup and a VIP tier
    with a 20% markup.
    """
    async with session_factory() as db:
        aed = Currency(code="AED", name="UAE Dirham", symbol="AED")
        usd = Currency(code="USD", name="US Dollar", symbol="$")
        db.add_all([aed, usd])
        await db.flush()

        company = Company(name="Brain Socket Print", currency_id=aed.id)
        other_company = Company(name="Other Print House", currency_id=aed.id)
        db.add_all([company, other_company])
        await db.flush()

        default_tier = PricingTier(
            company_id=company.id,
            name="standard",
            label="Standard",
            markup_percent=Decimal("0"),
            is_default=True,
        )
        vip_tier = PricingTier(
            company_id=company.id,
            name="vip",
            label="VIP",
            markup_percent=Decimal("20"),
            is_default=False,
        )
        product = Product(
            company_id=company.id,
            name="Business Cards",
            sku="BC-500",
            category="Cards",
            unit_price=Decimal("100"),
            is_active=True,
        )
        db.add_all([default_tier, vip_tier, product])
        await db.flush()

        client = Client(
            company_id=company.id,
            name="Acme Trading",
            email="orders@acme.example",
            phone="+971500000000",
            pricing_tier_id=vip_tier.id,
        )
        rate = ExchangeRate(
            company_id=company.id,
            currency_id=usd.id,
            rate_to_company_currency=Decimal("3.75"),
            valid_from=utcnow() - timedelta(days=1),
            is_active=True,
        )
        db.add_all([client, rate])
        await db.commit()

        return SeedData(
            company_id=company.id,
            other_company_id=other_company.id,
            aed_id=aed.id,
            usd_id=usd.id,
            default_tier_id=default_tier.id,
            vip_tier_id=vip_tier.id,
            product_id=product.id,
            client_id=client.id,
        )


# ============================================================================
# Actor Fixtures
# ============================================================================


@pytest.fixture
def make_actor(seed: SeedData) -> Callable[..., ActorContext]:
    """Factory for actors of the seeded company."""

    def _make(role: AppRole, company_id: uuid.UUID | None = None) -> ActorContext:
        return ActorContext(
            user_id=uuid.uuid4(),
            role=role,
            company_id=company_id or seed.company_id,
        )

    return _make


@pytest.fixture
def actors(make_actor) -> dict[AppRole, ActorContext]:
    """One actor per role, all in the seeded company."""
    return {role: make_actor(role) for role in AppRole}


@pytest.fixture
def recording_sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def notifications(recording_sink: RecordingSink) -> NotificationService:
    return NotificationService(sink=recording_sink, enabled=True)


# ============================================================================
# HTTP Fixtures
# ============================================================================


@pytest.fixture
def auth_headers() -> Callable[[ActorContext], dict[str, str]]:
    """Build an Authorization header for an actor."""

    def _headers(actor: ActorContext) -> dict[str, str]:
        token = create_access_token(actor.user_id, actor.role, actor.company_id)
        return {"Authorization": f"Bearer {token}"}

    return _headers


@pytest.fixture
async def async_client(session_factory) -> AsyncGenerator[AsyncClient, None]:
    """
    Create an asynchronous test client for the FastAPI application.

    The database dependency is overridden to use the test engine.
    """

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as db:
            try:
                yield db
                await db.commit()
            except Exception:
                await db.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()


# ============================================================================
# Service Fixtures
# ============================================================================


@pytest.fixture
def order_service(session: AsyncSession, notifications: NotificationService) -> OrderService:
    return OrderService(session, notification_service=notifications)


@pytest.fixture
def create_order(order_service: OrderService, actors, seed: SeedData):
    """
    Factory creating an order of three business cards as sales.

    Returns the new order's id.
    """

    async def _create(**overrides) -> uuid.UUID:
        fields = {
            "client_name": "Acme Trading",
            "items": [ItemInput(quantity=3, product_id=seed.product_id)],
        }
        fields.update(overrides)
        order = await order_service.create_order(actors[AppRole.SALES], **fields)
        return order.id

    return _create
