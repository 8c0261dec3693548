"""
Stripe hosted-checkout integration.

Responsibilities:
  - create_checkout: open a checkout session for an amount and return its
    id and redirect URL.  The metadata carries ``booking_id`` and
    ``payment_type`` (deposit | final) so webhooks can be routed.
  - expire_checkout: close a session whose booking was never committed.
  - parse_event: verify the ``Stripe-Signature`` header against the webhook
    secret and reduce the event to a ``PaymentEvent``.

The Stripe SDK is blocking; calls run in a worker thread and are bounded
by ``timeout_seconds``.  Any provider error or timeout surfaces as
``ExternalServiceFailure``.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Optional

import stripe

from navigator.domain.enums import PaymentPurpose
from navigator.domain.errors import ExternalServiceFailure, SignatureInvalid

logger = logging.getLogger(__name__)

CHECKOUT_COMPLETED = "checkout.session.completed"


@dataclass(frozen=True)
class CheckoutSession:
    id: str
    url: Optional[str]


@dataclass(frozen=True)
class PaymentEvent:
    type: str
    session_id: Optional[str] = None
    booking_id: Optional[str] = None
    purpose: PaymentPurpose = PaymentPurpose.DEPOSIT
    payment_reference: Optional[str] = None


def to_cents(amount: float) -> int:
    return int(round(amount * 100))


def _field(obj: Any, key: str) -> Any:
    """Subscript lookup that tolerates missing keys on Stripe objects."""
    if obj is None:
        return None
    try:
        return obj[key]
    except (KeyError, TypeError):
        return None


class PaymentGateway:
    def __init__(
        self,
        secret_key: str,
        webhook_secret: str,
        currency: str = "cad",
        success_url: str = "",
        cancel_url: str = "",
        timeout_seconds: float = 15.0,
    ):
        self.secret_key = secret_key
        self.webhook_secret = webhook_secret
        self.currency = currency
        self.success_url = success_url
        self.cancel_url = cancel_url
        self.timeout = timeout_seconds

    async def _call(self, fn, *args, **kwargs) -> Any:
        try:
            return await asyncio.wait_for(
                asyncio.to_thread(fn, *args, **kwargs), timeout=self.timeout
            )
        except asyncio.TimeoutError as exc:
            raise ExternalServiceFailure("Stripe request timed out") from exc
        except stripe.StripeError as exc:
            raise ExternalServiceFailure(f"Stripe error: {exc}") from exc

    async def create_checkout(
        self,
        amount: float,
        description: str,
        metadata: dict[str, str],
        product_name: str = "Booking payment",
        customer_email: Optional[str] = None,
    ) -> CheckoutSession:
        if not self.secret_key:
            raise ExternalServiceFailure("STRIPE_SECRET_KEY is not configured")
        if to_cents(amount) <= 0:
            raise ExternalServiceFailure(f"Refusing to open checkout for {amount}")

        params: dict[str, Any] = {
            "api_key": self.secret_key,
            "mode": "payment",
            "payment_method_types": ["card"],
            "line_items": [
                {
                    "price_data": {
                        "currency": self.currency,
                        "product_data": {
                            "name": product_name,
                            "description": description,
                        },
                        "unit_amount": to_cents(amount),
                    },
                    "quantity": 1,
                }
            ],
            "success_url": self.success_url,
            "cancel_url": self.cancel_url,
            "metadata": metadata,
        }
        if customer_email:
            params["customer_email"] = customer_email

        session = await self._call(stripe.checkout.Session.create, **params)
        logger.info(
            "Opened checkout %s for booking %s (%s)",
            session["id"],
            metadata.get("booking_id"),
            metadata.get("payment_type"),
        )
        return CheckoutSession(id=session["id"], url=_field(session, "url"))

    async def expire_checkout(self, session_id: str) -> None:
        await self._call(
            stripe.checkout.Session.expire, session_id, api_key=self.secret_key
        )

    def parse_event(self, payload: bytes, signature: Optional[str]) -> PaymentEvent:
        if not signature or not self.webhook_secret:
            raise SignatureInvalid("Missing Stripe signature or webhook secret")
        try:
            event = stripe.Webhook.construct_event(
                payload, signature, self.webhook_secret
            )
        except stripe.SignatureVerificationError as exc:
            raise SignatureInvalid(f"Webhook signature verification failed: {exc}") from exc
        except ValueError as exc:
            raise SignatureInvalid(f"Malformed webhook payload: {exc}") from exc

        if event["type"] != CHECKOUT_COMPLETED:
            return PaymentEvent(type=event["type"])

        session = event["data"]["object"]
        metadata = _field(session, "metadata")
        payment_type = _field(metadata, "payment_type")
        try:
            purpose = PaymentPurpose(payment_type or PaymentPurpose.DEPOSIT)
        except ValueError:
            logger.warning("Unknown payment_type %r; treating as deposit", payment_type)
            purpose = PaymentPurpose.DEPOSIT
        return PaymentEvent(
            type=event["type"],
            session_id=_field(session, "id"),
            booking_id=_field(metadata, "booking_id"),
            purpose=purpose,
            payment_reference=_field(session, "payment_intent"),
        )
