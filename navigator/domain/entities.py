"""
Domain entities with business logic.

Patterns used
-------------
- **State Pattern** on ``Booking``: enforces valid lifecycle transitions
  (Pending -> Approved -> AwaitingFinalPayment -> Completed | Cancelled).
- ``Booking.version`` is the optimistic-concurrency token: every persisted
  transition is a conditional update on (id, version, status).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from .enums import (
    ACTIVE_STATUSES,
    AddOnType,
    BOOKING_TRANSITIONS,
    BookingStatus,
    ServiceType,
    VehicleClass,
)
from .errors import InvalidStateTransition


@dataclass
class AddOn:
    add_on: AddOnType
    price: float
    duration_hours: Optional[float] = None
    location: Optional[str] = None
    notes: Optional[str] = None


@dataclass
class Booking:
    id: Optional[str] = None
    user_id: int = 0
    vehicle: VehicleClass = VehicleClass.LUXURY_SUV
    service_type: ServiceType = ServiceType.AIRPORT_TRANSFER
    pickup: str = ""
    drop: str = ""
    scheduled_at: Optional[datetime] = None
    status: BookingStatus = BookingStatus.PENDING
    total_price: float = 0.0
    deposit_amount: float = 0.0
    deposit_paid: bool = False
    final_paid: bool = False
    payment_reference: Optional[str] = None
    completed_at: Optional[datetime] = None
    version: int = 1
    add_ons: list[AddOn] = field(default_factory=list)

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_STATUSES

    @property
    def remaining_amount(self) -> float:
        return round(self.total_price - self.deposit_amount, 2)

    def can_transition_to(self, new_status: BookingStatus) -> bool:
        return new_status in BOOKING_TRANSITIONS.get(self.status, set())

    def transition_to(self, new_status: BookingStatus) -> None:
        """Move to *new_status* if the transition is legal, else raise."""
        if not self.can_transition_to(new_status):
            raise InvalidStateTransition(
                f"Cannot transition from {self.status.value} to {new_status.value}"
            )
        self.status = new_status

    # ── Payment events ────────────────────────────────────────────

    def deposit_already_applied(self) -> bool:
        return self.deposit_paid

    def final_already_applied(self) -> bool:
        return self.final_paid
