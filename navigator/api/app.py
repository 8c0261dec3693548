"""
FastAPI application factory.

* Registers routes for pricing, bookings, payment webhooks and admin.
* Wires the pricing engine, payment gateway and booking service on
  startup and closes the Redis pool on shutdown (lifespan events).
* Renders ``BookingError`` subclasses as ``{"detail": ...}`` with their
  HTTP status; provider failures only ever show a generic message.
* Applies rate-limiting middleware.
* Swagger / OpenAPI UI available at ``/docs``.
"""

from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from navigator.api.dependencies import init_services
from navigator.api.middleware import limiter
from navigator.api.routes import admin, bookings, payments, pricing
from navigator.domain.errors import BookingError
from navigator.infrastructure.redis_client import close_redis

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Wire services on startup; release Redis connections on shutdown."""
    await init_services(app)
    yield
    await close_redis()


async def booking_error_handler(request: Request, exc: BookingError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s on %s: %s", type(exc).__name__, request.url.path, exc)
    else:
        logger.info("%s on %s: %s", type(exc).__name__, request.url.path, exc)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


def create_app() -> FastAPI:
    app = FastAPI(
        title="Nature Navigator Booking API",
        description=(
            "Chauffeur and shuttle bookings around Calgary, Canmore and Banff: "
            "price quotes, deposit and final payments through Stripe "
            "checkout, and a guarded booking lifecycle."
        ),
        version="1.0.0",
        lifespan=lifespan,
    )

    # Rate limiter
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    app.add_exception_handler(BookingError, booking_error_handler)

    # Routers
    app.include_router(pricing.router, prefix="/api/v1")
    app.include_router(bookings.router, prefix="/api/v1")
    app.include_router(payments.router, prefix="/api/v1")
    app.include_router(admin.router, prefix="/api/v1")

    return app
