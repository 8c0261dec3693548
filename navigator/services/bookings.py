"""
Booking Lifecycle Manager
=========================

Owns the booking state machine::

    Pending --deposit paid--> Approved --final requested--> AwaitingFinalPayment
       |                                                          |
       +--cancel--> Cancelled                     final paid --> Completed

Concurrency safety
------------------
* **Create** holds a per-customer and a per-vehicle lock (Redis or local)
  while it checks the active-booking and availability rules, prices the
  trip, inserts the row and opens the deposit checkout.  The partial
  unique index on active bookings per user backs the customer rule at
  the database level.
* **Transitions** are conditional updates on ``(id, version, status)``.
  A webhook that loses the race re-reads the row and re-evaluates, so a
  duplicate delivery turns into a no-op rather than a second transition.

Atomicity
---------
The booking row and its checkout session commit together: if opening the
checkout fails the transaction rolls back, and if the commit fails after
the checkout was opened the session is expired on the provider.
"""

from __future__ import annotations

import logging
from contextlib import AsyncExitStack
from dataclasses import dataclass, field
from datetime import datetime, time, timedelta, timezone
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from navigator.domain.distance import Coordinates
from navigator.domain.enums import (
    AddOnType,
    BookingStatus,
    PaymentPurpose,
    ServiceType,
    TERMINAL_STATUSES,
    VehicleClass,
)
from navigator.domain.errors import (
    BookingNotFound,
    ConcurrentModification,
    ConflictActiveBooking,
    ConflictVehicleUnavailable,
    ExternalServiceFailure,
    InvalidInput,
    InvalidStateTransition,
    NoRemainingBalance,
)
from navigator.domain.pricing import (
    PriceBreakdown,
    PriceRequest,
    PricingEngine,
    event_hours,
    money,
)
from navigator.infrastructure.locks import LockNotAcquired
from navigator.infrastructure.models import AddOnModel, BookingModel
from navigator.infrastructure.repositories import (
    BookingRepository,
    UserRepository,
    to_entity,
)
from navigator.services.payments import (
    CHECKOUT_COMPLETED,
    CheckoutSession,
    PaymentEvent,
    PaymentGateway,
    to_cents,
)

logger = logging.getLogger(__name__)


def as_utc(value: datetime) -> datetime:
    """Naive datetimes are taken to be UTC already."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


@dataclass
class AddOnRequest:
    add_on: AddOnType
    duration_hours: Optional[float] = None
    location: Optional[str] = None
    notes: Optional[str] = None


@dataclass
class BookingRequest:
    user_id: int
    service_type: ServiceType
    vehicle: VehicleClass
    pickup: str
    drop: str
    scheduled_at: datetime
    pickup_coords: Optional[Coordinates] = None
    drop_coords: Optional[Coordinates] = None
    pickup_place_id: Optional[str] = None
    drop_place_id: Optional[str] = None
    event_start: Optional[time] = None
    event_end: Optional[time] = None
    hours: float = 0.0
    additional_hours: float = 0.0
    add_ons: list[AddOnRequest] = field(default_factory=list)
    customer_email: Optional[str] = None

    def booked_hours(self) -> float:
        if self.hours:
            return self.hours
        if self.event_start is not None and self.event_end is not None:
            return event_hours(self.event_start, self.event_end)
        return 0.0

    def price_request(self) -> PriceRequest:
        return PriceRequest(
            service_type=self.service_type,
            vehicle=self.vehicle,
            pickup=self.pickup,
            drop=self.drop,
            pickup_coords=self.pickup_coords,
            drop_coords=self.drop_coords,
            hours=self.booked_hours(),
            additional_hours=self.additional_hours,
            add_ons=[a.add_on for a in self.add_ons],
        )


class BookingService:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        pricing: PricingEngine,
        payments: PaymentGateway,
        locks,
        vehicle_buffer_hours: float = 2.0,
        max_transition_attempts: int = 3,
    ):
        self.session_factory = session_factory
        self.pricing = pricing
        self.payments = payments
        self.locks = locks
        self.vehicle_buffer = timedelta(hours=vehicle_buffer_hours)
        self.max_transition_attempts = max_transition_attempts

    # ── Quotes ────────────────────────────────────────────────────

    async def quote(self, request: PriceRequest) -> PriceBreakdown:
        return await self.pricing.quote(request)

    # ── Create ────────────────────────────────────────────────────

    async def create_booking(
        self, request: BookingRequest
    ) -> tuple[BookingModel, CheckoutSession]:
        if not request.pickup.strip() or not request.drop.strip():
            raise InvalidInput("Pickup and drop-off locations are required")
        scheduled_at = as_utc(request.scheduled_at)

        keys = sorted(
            [f"booking:user:{request.user_id}", f"booking:vehicle:{request.vehicle.name}"]
        )
        async with AsyncExitStack() as stack:
            for key in keys:
                try:
                    await stack.enter_async_context(self.locks.lock(key))
                except LockNotAcquired as exc:
                    raise ConcurrentModification(str(exc)) from exc
            return await self._create_locked(request, scheduled_at)

    async def _create_locked(
        self, request: BookingRequest, scheduled_at: datetime
    ) -> tuple[BookingModel, CheckoutSession]:
        checkout: Optional[CheckoutSession] = None
        async with self.session_factory() as session:
            repo = BookingRepository(session)
            try:
                if await UserRepository(session).get_by_id(request.user_id) is None:
                    raise InvalidInput(f"Unknown customer {request.user_id}")

                if await repo.find_active_for_user(request.user_id) is not None:
                    raise ConflictActiveBooking(
                        f"User {request.user_id} already has an active booking"
                    )

                conflict = await repo.find_vehicle_conflict(
                    request.vehicle,
                    scheduled_at - self.vehicle_buffer,
                    scheduled_at + self.vehicle_buffer,
                )
                if conflict is not None:
                    raise ConflictVehicleUnavailable(request.vehicle.value)

                quote = await self.pricing.quote(request.price_request())
                booking = await repo.create(
                    self._build_booking(request, scheduled_at, quote),
                    self._build_add_ons(request, quote),
                )

                checkout = await self.payments.create_checkout(
                    amount=quote.deposit_amount,
                    description=(
                        f"Total Trip Price: ${quote.total_price:.2f} - "
                        f"{request.pickup} to {request.drop}"
                    ),
                    product_name=self._deposit_product_name(
                        request.service_type, request.vehicle, quote.deposit_rate
                    ),
                    metadata={
                        "booking_id": booking.id,
                        "user_id": str(request.user_id),
                        "payment_type": PaymentPurpose.DEPOSIT.value,
                    },
                    customer_email=request.customer_email,
                )
                await repo.attach_checkout(booking, checkout.id, checkout.url)
                await session.commit()
            except IntegrityError as exc:
                await session.rollback()
                await self._discard_checkout(checkout)
                raise ConflictActiveBooking(
                    f"User {request.user_id} already has an active booking"
                ) from exc
            except Exception:
                await session.rollback()
                await self._discard_checkout(checkout)
                raise

            booking = await repo.get_by_id(booking.id, fresh=True)

        logger.info(
            "Booking %s created for user %s (%s, total=%.2f, deposit=%.2f)",
            booking.id,
            request.user_id,
            quote.method.value,
            quote.total_price,
            quote.deposit_amount,
        )
        return booking, checkout

    @staticmethod
    def _build_booking(
        request: BookingRequest, scheduled_at: datetime, quote: PriceBreakdown
    ) -> BookingModel:
        pickup, drop = request.pickup_coords, request.drop_coords
        return BookingModel(
            user_id=request.user_id,
            vehicle=request.vehicle,
            service_type=request.service_type,
            pickup=request.pickup,
            pickup_lat=pickup.lat if pickup else None,
            pickup_lng=pickup.lng if pickup else None,
            pickup_place_id=request.pickup_place_id,
            drop=request.drop,
            drop_lat=drop.lat if drop else None,
            drop_lng=drop.lng if drop else None,
            drop_place_id=request.drop_place_id,
            scheduled_at=scheduled_at,
            event_start=request.event_start,
            event_end=request.event_end,
            additional_hours=request.additional_hours,
            status=BookingStatus.PENDING,
            pricing_method=quote.method,
            distance_km=quote.distance_km,
            total_price=quote.total_price,
            deposit_amount=quote.deposit_amount,
            deposit_paid=False,
            final_paid=False,
            version=1,
        )

    @staticmethod
    def _build_add_ons(
        request: BookingRequest, quote: PriceBreakdown
    ) -> list[AddOnModel]:
        details = {a.add_on: a for a in request.add_ons}
        rows = []
        for line in quote.add_ons:
            extra = details.get(line.add_on)
            rows.append(
                AddOnModel(
                    add_on=line.add_on,
                    price=line.price,
                    duration_hours=extra.duration_hours if extra else None,
                    location=extra.location if extra else None,
                    notes=extra.notes if extra else None,
                )
            )
        return rows

    @staticmethod
    def _deposit_product_name(
        service_type: ServiceType, vehicle: VehicleClass, deposit_rate: float
    ) -> str:
        share = f"{deposit_rate:.0%} Deposit"
        if service_type == ServiceType.WEDDING_SHUTTLE:
            return f"Wedding Shuttle Service - {share}"
        return f"{vehicle.value} - {share}"

    async def _discard_checkout(self, checkout: Optional[CheckoutSession]) -> None:
        if checkout is None:
            return
        try:
            await self.payments.expire_checkout(checkout.id)
        except ExternalServiceFailure:
            logger.exception("Could not expire orphaned checkout %s", checkout.id)

    # ── Customer actions ──────────────────────────────────────────

    async def cancel_booking(self, booking_id: str, user_id: int) -> BookingModel:
        async with self.session_factory() as session:
            repo = BookingRepository(session)
            model = await repo.get_by_id(booking_id)
            if model is None or model.user_id != user_id:
                raise BookingNotFound(booking_id)

            booking = to_entity(model)
            if booking.status != BookingStatus.PENDING:
                raise InvalidStateTransition(
                    "Cannot cancel a booking that is not pending"
                )
            booking.transition_to(BookingStatus.CANCELLED)

            applied = await repo.transition(
                booking_id,
                expected_version=model.version,
                expected_status=BookingStatus.PENDING,
                status=BookingStatus.CANCELLED,
            )
            if not applied:
                await session.rollback()
                raise InvalidStateTransition(
                    "Booking changed while cancelling; it is no longer pending"
                )
            await session.commit()
            logger.info("Booking %s cancelled by user %s", booking_id, user_id)
            return await repo.get_by_id(booking_id, fresh=True)

    async def continue_payment(
        self, booking_id: str, user_id: int, customer_email: Optional[str] = None
    ) -> CheckoutSession:
        """Open a fresh deposit checkout for a pending, unpaid booking."""
        async with self.session_factory() as session:
            repo = BookingRepository(session)
            model = await repo.get_by_id(booking_id)
            if model is None or model.user_id != user_id:
                raise BookingNotFound(booking_id)
            if model.deposit_paid:
                raise InvalidStateTransition("This booking is already paid")
            if model.status != BookingStatus.PENDING:
                raise InvalidStateTransition(
                    f"Cannot process payment for {model.status.value} booking"
                )
            if to_cents(model.deposit_amount) <= 0:
                raise InvalidInput("Invalid booking amount")

            checkout = await self.payments.create_checkout(
                amount=model.deposit_amount,
                description=(
                    f"Total Trip Price: ${model.total_price:.2f} - "
                    f"{model.pickup} to {model.drop}"
                ),
                product_name=self._deposit_product_name(
                    model.service_type,
                    model.vehicle,
                    self.pricing.deposit_policy.rate_for(model.service_type),
                ),
                metadata={
                    "booking_id": model.id,
                    "user_id": str(model.user_id),
                    "payment_type": PaymentPurpose.DEPOSIT.value,
                },
                customer_email=customer_email,
            )
            try:
                applied = await repo.transition(
                    booking_id,
                    expected_version=model.version,
                    expected_status=BookingStatus.PENDING,
                    stripe_session_id=checkout.id,
                    checkout_url=checkout.url,
                )
                if not applied:
                    raise InvalidStateTransition(
                        "Booking changed while opening checkout; please refresh"
                    )
                await session.commit()
            except Exception:
                await session.rollback()
                await self._discard_checkout(checkout)
                raise
            return checkout

    # ── Admin actions ─────────────────────────────────────────────

    async def request_final_payment(
        self, booking_id: str, customer_email: Optional[str] = None
    ) -> tuple[BookingModel, CheckoutSession]:
        async with self.session_factory() as session:
            repo = BookingRepository(session)
            model = await repo.get_by_id(booking_id)
            if model is None:
                raise BookingNotFound(booking_id)

            booking = to_entity(model)
            if booking.status != BookingStatus.APPROVED:
                raise InvalidStateTransition(
                    f"Final payment can only be requested for Approved bookings, "
                    f"not {booking.status.value}"
                )
            remaining = money(booking.total_price - booking.deposit_amount)
            if to_cents(remaining) <= 0:
                raise NoRemainingBalance(f"Booking {booking_id} has nothing left to pay")
            booking.transition_to(BookingStatus.AWAITING_FINAL_PAYMENT)

            checkout = await self.payments.create_checkout(
                amount=remaining,
                description=f"Remaining Balance - {model.pickup} to {model.drop}",
                product_name=f"Final Payment for {model.vehicle.value}",
                metadata={
                    "booking_id": model.id,
                    "user_id": str(model.user_id),
                    "payment_type": PaymentPurpose.FINAL.value,
                },
                customer_email=customer_email,
            )
            try:
                applied = await repo.transition(
                    booking_id,
                    expected_version=model.version,
                    expected_status=BookingStatus.APPROVED,
                    status=BookingStatus.AWAITING_FINAL_PAYMENT,
                    final_session_id=checkout.id,
                    final_payment_url=checkout.url,
                )
                if not applied:
                    raise InvalidStateTransition(
                        "Booking changed while requesting final payment"
                    )
                await session.commit()
            except Exception:
                await session.rollback()
                await self._discard_checkout(checkout)
                raise

            logger.info(
                "Final payment of %.2f requested for booking %s", remaining, booking_id
            )
            return await repo.get_by_id(booking_id, fresh=True), checkout

    # ── Webhooks ──────────────────────────────────────────────────

    async def handle_payment_event(self, event: PaymentEvent) -> Optional[BookingModel]:
        """Apply a verified provider event.  Unknown bookings are acknowledged."""
        if event.type != CHECKOUT_COMPLETED:
            logger.debug("Ignoring payment event %s", event.type)
            return None
        if not event.booking_id:
            logger.error("No booking_id found in session metadata (%s)", event.session_id)
            return None

        match event.purpose:
            case PaymentPurpose.DEPOSIT:
                return await self.apply_deposit_paid(event)
            case PaymentPurpose.FINAL:
                return await self.apply_final_paid(event)

    async def apply_deposit_paid(self, event: PaymentEvent) -> Optional[BookingModel]:
        return await self._apply_payment(
            event,
            target=BookingStatus.APPROVED,
            already_applied=lambda b: b.deposit_already_applied(),
            values={"deposit_paid": True},
        )

    async def apply_final_paid(self, event: PaymentEvent) -> Optional[BookingModel]:
        return await self._apply_payment(
            event,
            target=BookingStatus.COMPLETED,
            already_applied=lambda b: b.final_already_applied(),
            values={"final_paid": True, "completed_at": datetime.now(timezone.utc)},
        )

    async def _apply_payment(
        self, event: PaymentEvent, *, target: BookingStatus, already_applied, values: dict
    ) -> Optional[BookingModel]:
        booking_id = event.booking_id
        async with self.session_factory() as session:
            repo = BookingRepository(session)
            for _ in range(self.max_transition_attempts):
                model = await repo.get_by_id(booking_id, fresh=True)
                if model is None:
                    logger.error("Booking not found: %s", booking_id)
                    return None

                booking = to_entity(model)
                if already_applied(booking):
                    logger.info(
                        "Booking %s already %s, skipping update", booking_id, target.value
                    )
                    return model
                if not booking.can_transition_to(target):
                    logger.warning(
                        "Ignoring %s payment for booking %s in status %s",
                        event.purpose.value,
                        booking_id,
                        booking.status.value,
                    )
                    return model

                applied = await repo.transition(
                    booking_id,
                    expected_version=booking.version,
                    expected_status=booking.status,
                    status=target,
                    payment_reference=event.payment_reference,
                    **values,
                )
                if applied:
                    await session.commit()
                    logger.info("Booking %s -> %s", booking_id, target.value)
                    return await repo.get_by_id(booking_id, fresh=True)

                await session.rollback()
                logger.info("Lost update race on booking %s; re-reading", booking_id)

        raise ConcurrentModification(
            f"Could not apply {event.purpose.value} payment to booking {booking_id}"
        )

    # ── Queries ───────────────────────────────────────────────────

    async def get_booking(
        self, booking_id: str, user_id: Optional[int] = None
    ) -> BookingModel:
        async with self.session_factory() as session:
            model = await BookingRepository(session).get_by_id(booking_id)
        if model is None or (user_id is not None and model.user_id != user_id):
            raise BookingNotFound(booking_id)
        return model

    async def get_active_booking(self, user_id: int) -> Optional[BookingModel]:
        async with self.session_factory() as session:
            return await BookingRepository(session).find_active_for_user(user_id)

    async def list_history(self, user_id: int) -> list[BookingModel]:
        async with self.session_factory() as session:
            return await BookingRepository(session).list_for_user(
                user_id, TERMINAL_STATUSES
            )

    async def list_all(self) -> list[BookingModel]:
        async with self.session_factory() as session:
            return await BookingRepository(session).list_all()
