"""
Payment webhooks
================

POST /api/v1/payments/webhook -- Stripe ``checkout.session.completed`` events.

The signature is verified before anything else; an unverifiable request
answers 400 and changes nothing.  Unknown bookings are acknowledged so the
provider stops retrying, while database failures answer 500 so it retries.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from navigator.api.dependencies import get_booking_service, get_payment_gateway
from navigator.api.schemas import ErrorResponse, WebhookAck
from navigator.services.bookings import BookingService
from navigator.services.payments import PaymentGateway

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/payments", tags=["payments"])


@router.post(
    "/webhook",
    response_model=WebhookAck,
    summary="Receive Stripe webhook events",
    responses={
        400: {"model": ErrorResponse, "description": "Signature verification failed"},
        500: {"model": ErrorResponse, "description": "Database update failed"},
    },
)
async def stripe_webhook(
    request: Request,
    gateway: PaymentGateway = Depends(get_payment_gateway),
    service: BookingService = Depends(get_booking_service),
):
    payload = await request.body()
    event = gateway.parse_event(payload, request.headers.get("stripe-signature"))

    try:
        await service.handle_payment_event(event)
    except SQLAlchemyError:
        logger.exception("Database update failed for booking %s", event.booking_id)
        return JSONResponse(status_code=500, content={"detail": "Database Update Failed"})

    return WebhookAck()
