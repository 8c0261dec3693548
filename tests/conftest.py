"""
Shared test fixtures.

Uses a file-backed SQLite database per test (via aiosqlite) so tests run
without Docker / PostgreSQL / Redis.  The production models are created
as-is: SQLite honours the partial unique index on active bookings.
Stripe is replaced with an ``AsyncMock`` gateway and locks with
``LocalLockManager``.
"""

import itertools
from datetime import datetime, timezone
from typing import AsyncGenerator
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from navigator.domain.enums import ServiceType, VehicleClass
from navigator.domain.pricing import PricingEngine
from navigator.infrastructure.database import Base
from navigator.infrastructure.locks import LocalLockManager
from navigator.infrastructure.models import UserModel
from navigator.services.bookings import BookingRequest, BookingService
from navigator.services.payments import CheckoutSession, PaymentGateway

PICKUP_TIME = datetime(2026, 11, 1, 10, 0, tzinfo=timezone.utc)


# ── Database ──────────────────────────────────────────────────────────


@pytest_asyncio.fixture
async def engine(tmp_path) -> AsyncGenerator[AsyncEngine, None]:
    """Create tables in a fresh SQLite file, then dispose."""
    test_engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield test_engine
    await test_engine.dispose()


@pytest.fixture
def session_factory(engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def users(session_factory) -> list[int]:
    """Three customers; returns their ids."""
    async with session_factory() as session:
        models = [
            UserModel(name="Olivia", email="olivia@example.com"),
            UserModel(name="Liam", email="liam@example.com"),
            UserModel(name="Emma", email="emma@example.com"),
        ]
        session.add_all(models)
        await session.commit()
        return [m.id for m in models]


# ── Collaborators ─────────────────────────────────────────────────────


@pytest.fixture
def gateway() -> MagicMock:
    """Payment gateway double that hands out sequential checkout sessions."""
    counter = itertools.count(1)

    def _checkout(**kwargs):
        n = next(counter)
        return CheckoutSession(id=f"cs_test_{n}", url=f"https://checkout.test/{n}")

    mock = MagicMock(spec=PaymentGateway)
    mock.create_checkout = AsyncMock(side_effect=_checkout)
    mock.expire_checkout = AsyncMock(return_value=None)
    return mock


@pytest.fixture
def pricing_engine() -> PricingEngine:
    """Route-table pricing only (no distance resolver)."""
    return PricingEngine()


@pytest.fixture
def booking_service(session_factory, pricing_engine, gateway) -> BookingService:
    return BookingService(
        session_factory, pricing_engine, gateway, LocalLockManager()
    )


@pytest.fixture
def transfer_request():
    """Factory for an airport transfer YYC -> Canmore."""

    def _make(user_id: int, **overrides) -> BookingRequest:
        fields = dict(
            user_id=user_id,
            service_type=ServiceType.AIRPORT_TRANSFER,
            vehicle=VehicleClass.LUXURY_SUV,
            pickup="YYC Airport",
            drop="Canmore",
            scheduled_at=PICKUP_TIME,
        )
        fields.update(overrides)
        return BookingRequest(**fields)

    return _make
