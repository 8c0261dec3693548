"""
Domain error taxonomy.

Every error carries the HTTP status the API layer answers with and a
message that is safe to show to the customer.  Infrastructure failures
(``DistanceUnavailable``, ``ExternalServiceFailure``) keep their internal
detail in ``str(exc)`` for logs but expose only a generic ``public_message``.
"""

from __future__ import annotations


class BookingError(Exception):
    status_code: int = 400
    public_message: str | None = None

    @property
    def message(self) -> str:
        return self.public_message or str(self)


class InvalidInput(BookingError):
    status_code = 422


class BookingNotFound(BookingError):
    status_code = 404

    def __init__(self, booking_id: str):
        super().__init__(f"Booking {booking_id} not found")
        self.booking_id = booking_id


class ConflictActiveBooking(BookingError):
    status_code = 409
    public_message = "You already have an active booking."


class ConflictVehicleUnavailable(BookingError):
    status_code = 409

    def __init__(self, vehicle: str):
        super().__init__(
            f"The {vehicle} is not available at this time. "
            "Please choose another slot."
        )
        self.vehicle = vehicle


# ── Pricing ───────────────────────────────────────────────────────────


class Unpriceable(BookingError):
    status_code = 400


class UnpriceableRoute(Unpriceable):
    public_message = (
        "Unable to calculate price. "
        "Please select a location from the suggestions list."
    )


class InvalidDistance(Unpriceable):
    public_message = "The requested trip is outside our service area."


class UnsupportedServiceType(Unpriceable):
    public_message = "This service is temporarily unavailable."


# ── Lifecycle ─────────────────────────────────────────────────────────


class InvalidStateTransition(BookingError):
    """Raised when a booking status change violates the state machine."""

    status_code = 409


class NoRemainingBalance(BookingError):
    public_message = "No remaining balance to pay."


class ConcurrentModification(BookingError):
    """A conditional update kept losing to concurrent writers."""

    status_code = 409
    public_message = "The booking was updated concurrently. Please try again."


# ── External services ─────────────────────────────────────────────────


class DistanceUnavailable(BookingError):
    status_code = 502
    public_message = "Distance service is unavailable. Please try again."


class ExternalServiceFailure(BookingError):
    status_code = 502
    public_message = "Something went wrong. Please try again."


class SignatureInvalid(BookingError):
    public_message = "Webhook Error"
