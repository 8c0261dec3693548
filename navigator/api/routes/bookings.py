"""
Booking endpoints
=================

POST  /api/v1/bookings                          -- create a booking (201) and open the deposit checkout
GET   /api/v1/bookings/active?user_id=          -- customer's current non-terminal booking
GET   /api/v1/bookings/history?user_id=         -- completed / cancelled bookings, newest first
GET   /api/v1/bookings/{booking_id}             -- booking details
PATCH /api/v1/bookings/{booking_id}/cancel      -- cancel a pending booking
POST  /api/v1/bookings/{booking_id}/continue-payment -- fresh deposit checkout
"""

from typing import Optional

from fastapi import APIRouter, Depends, Request

from navigator.api.dependencies import get_booking_service
from navigator.api.middleware import limiter
from navigator.api.schemas import (
    BookingCreateRequest,
    BookingCreatedResponse,
    BookingResponse,
    CheckoutResponse,
    CustomerActionRequest,
    ErrorResponse,
)
from navigator.config import settings
from navigator.services.bookings import BookingService

router = APIRouter(prefix="/bookings", tags=["bookings"])


@router.post(
    "",
    status_code=201,
    response_model=BookingCreatedResponse,
    summary="Create a booking",
    responses={
        409: {"model": ErrorResponse, "description": "Active booking or vehicle conflict"},
        400: {"model": ErrorResponse, "description": "Trip cannot be priced"},
        502: {"model": ErrorResponse, "description": "Payment provider failure"},
    },
)
@limiter.limit(settings.rate_limit)
async def create_booking(
    request: Request,
    body: BookingCreateRequest,
    service: BookingService = Depends(get_booking_service),
):
    booking, checkout = await service.create_booking(body.to_domain())
    return BookingCreatedResponse(
        booking=BookingResponse.model_validate(booking),
        session_id=checkout.id,
        checkout_url=checkout.url,
    )


@router.get(
    "/active",
    response_model=Optional[BookingResponse],
    summary="Get the customer's active booking",
)
@limiter.limit(settings.rate_limit)
async def get_active_booking(
    request: Request,
    user_id: int,
    service: BookingService = Depends(get_booking_service),
):
    return await service.get_active_booking(user_id)


@router.get(
    "/history",
    response_model=list[BookingResponse],
    summary="List completed and cancelled bookings",
)
@limiter.limit(settings.rate_limit)
async def get_history(
    request: Request,
    user_id: int,
    service: BookingService = Depends(get_booking_service),
):
    return await service.list_history(user_id)


@router.get(
    "/{booking_id}",
    response_model=BookingResponse,
    summary="Get booking status and price",
)
@limiter.limit(settings.rate_limit)
async def get_booking(
    request: Request,
    booking_id: str,
    user_id: Optional[int] = None,
    service: BookingService = Depends(get_booking_service),
):
    return await service.get_booking(booking_id, user_id=user_id)


@router.patch(
    "/{booking_id}/cancel",
    response_model=BookingResponse,
    summary="Cancel a booking",
    description="Only Pending bookings can be cancelled by the customer.",
)
@limiter.limit(settings.rate_limit)
async def cancel_booking(
    request: Request,
    booking_id: str,
    body: CustomerActionRequest,
    service: BookingService = Depends(get_booking_service),
):
    return await service.cancel_booking(booking_id, body.user_id)


@router.post(
    "/{booking_id}/continue-payment",
    response_model=CheckoutResponse,
    summary="Open a new deposit checkout for an unpaid booking",
)
@limiter.limit(settings.rate_limit)
async def continue_payment(
    request: Request,
    booking_id: str,
    body: CustomerActionRequest,
    service: BookingService = Depends(get_booking_service),
):
    checkout = await service.continue_payment(
        booking_id, body.user_id, customer_email=body.customer_email
    )
    return CheckoutResponse(session_id=checkout.id, checkout_url=checkout.url)
