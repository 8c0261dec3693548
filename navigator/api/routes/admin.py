"""
Admin / observability endpoints
===============================

GET  /api/v1/admin/bookings                          -- list every booking
POST /api/v1/admin/bookings/{booking_id}/final-payment -- request the remaining balance
GET  /api/v1/admin/health                            -- health check (pings the database)
"""

from fastapi import APIRouter, Depends, Request
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from navigator.api.dependencies import get_booking_service, get_db
from navigator.api.middleware import limiter
from navigator.api.schemas import (
    BookingResponse,
    ErrorResponse,
    FinalPaymentRequest,
    FinalPaymentResponse,
    HealthResponse,
)
from navigator.config import settings
from navigator.services.bookings import BookingService

router = APIRouter(prefix="/admin", tags=["admin"])


@router.get(
    "/bookings",
    response_model=list[BookingResponse],
    summary="List all bookings, newest first",
)
@limiter.limit(settings.rate_limit)
async def list_bookings(
    request: Request,
    service: BookingService = Depends(get_booking_service),
):
    return await service.list_all()


@router.post(
    "/bookings/{booking_id}/final-payment",
    response_model=FinalPaymentResponse,
    summary="Request the final payment for an approved booking",
    responses={
        400: {"model": ErrorResponse, "description": "Nothing left to pay"},
        409: {"model": ErrorResponse, "description": "Booking is not Approved"},
    },
)
@limiter.limit(settings.rate_limit)
async def request_final_payment(
    request: Request,
    booking_id: str,
    body: FinalPaymentRequest | None = None,
    service: BookingService = Depends(get_booking_service),
):
    booking, checkout = await service.request_final_payment(
        booking_id, customer_email=body.customer_email if body else None
    )
    return FinalPaymentResponse(
        booking=BookingResponse.model_validate(booking),
        session_id=checkout.id,
        payment_url=checkout.url,
    )


@router.get("/health", response_model=HealthResponse, summary="Health check")
async def health(db: AsyncSession = Depends(get_db)):
    await db.execute(text("SELECT 1"))
    return HealthResponse()
