"""FastAPI dependency injection helpers.

The pricing engine, payment gateway and booking service are wired once in
the application lifespan and kept on ``app.state``; route handlers reach
them through the ``get_*`` providers below so tests can override them.
"""

import logging

from fastapi import FastAPI, Request
from sqlalchemy.ext.asyncio import AsyncSession

from navigator.config import Settings, settings
from navigator.domain.pricing import DepositPolicy, PricingEngine, TieredDistancePricing
from navigator.infrastructure.cache import InMemoryDistanceCache, RedisDistanceCache
from navigator.infrastructure.database import async_session_factory
from navigator.infrastructure.locks import LocalLockManager, RedisLockManager
from navigator.infrastructure.redis_client import get_redis
from navigator.services.bookings import BookingService
from navigator.services.distance import DistanceResolver, RoutingClient
from navigator.services.payments import PaymentGateway

logger = logging.getLogger(__name__)


async def get_db() -> AsyncSession:  # type: ignore[misc]
    """Yield an async DB session; commit on success, rollback on error."""
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


def build_payment_gateway(config: Settings = settings) -> PaymentGateway:
    base = config.public_base_url.rstrip("/")
    return PaymentGateway(
        secret_key=config.stripe_secret_key,
        webhook_secret=config.stripe_webhook_secret,
        currency=config.currency,
        success_url=f"{base}/booking-success?session_id={{CHECKOUT_SESSION_ID}}",
        cancel_url=f"{base}/booking-cancelled",
        timeout_seconds=config.payment_timeout_seconds,
    )


async def build_pricing_engine(config: Settings = settings) -> PricingEngine:
    if config.distance_cache_backend == "redis":
        cache = RedisDistanceCache(await get_redis())
    else:
        cache = InMemoryDistanceCache()

    resolver = DistanceResolver(
        RoutingClient(
            config.google_distance_matrix_api_key,
            timeout_seconds=config.routing_timeout_seconds,
        ),
        cache,
        ttl_seconds=config.distance_cache_ttl_seconds,
        max_distance_km=config.max_distance_km,
    )
    return PricingEngine(
        distance_resolver=resolver,
        deposit_policy=DepositPolicy.from_settings(config),
        tiered=TieredDistancePricing(max_distance_km=config.max_distance_km),
    )


async def build_lock_manager(config: Settings = settings):
    if config.lock_backend == "local":
        return LocalLockManager()
    return RedisLockManager(
        await get_redis(),
        ttl_seconds=config.lock_ttl_seconds,
        wait_seconds=config.lock_wait_seconds,
    )


async def init_services(app: FastAPI, config: Settings = settings) -> None:
    pricing = await build_pricing_engine(config)
    payments = build_payment_gateway(config)
    app.state.pricing_engine = pricing
    app.state.payment_gateway = payments
    app.state.booking_service = BookingService(
        async_session_factory,
        pricing,
        payments,
        await build_lock_manager(config),
        vehicle_buffer_hours=config.vehicle_buffer_hours,
    )
    logger.info(
        "Services ready (distance cache=%s, locks=%s)",
        config.distance_cache_backend,
        config.lock_backend,
    )


def get_pricing_engine(request: Request) -> PricingEngine:
    return request.app.state.pricing_engine


def get_payment_gateway(request: Request) -> PaymentGateway:
    return request.app.state.payment_gateway


def get_booking_service(request: Request) -> BookingService:
    return request.app.state.booking_service
