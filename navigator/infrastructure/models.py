"""
SQLAlchemy ORM models.

Tables
------
* ``users``            -- registered customers
* ``bookings``         -- one row per booking request
* ``booking_add_ons``  -- optional line items of event bookings

Indexes
-------
* **Partial unique** on ``bookings.user_id`` restricted to non-terminal
  statuses: at most one active booking per customer, enforced by the DB.
* **B-Tree** on ``status``, ``user_id`` and ``(vehicle, scheduled_at)``
  for the active-booking and vehicle-availability look-ups.
* **B-Tree** on ``stripe_session_id`` for webhook reconciliation.
"""

import uuid

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    Time,
    func,
    text,
)
from sqlalchemy.orm import relationship

from .database import Base
from navigator.domain.enums import (
    AddOnType,
    BookingStatus,
    PricingMethod,
    ServiceType,
    VehicleClass,
)

ACTIVE_STATUS_SQL = "status IN ('PENDING', 'APPROVED', 'AWAITING_FINAL_PAYMENT')"


def _new_id() -> str:
    return str(uuid.uuid4())


class UserModel(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(120), nullable=False)
    email = Column(String(255), unique=True, nullable=False)
    is_admin = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class BookingModel(Base):
    __tablename__ = "bookings"

    id = Column(String(36), primary_key=True, default=_new_id)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)

    vehicle = Column(Enum(VehicleClass), nullable=False)
    service_type = Column(
        Enum(ServiceType), default=ServiceType.AIRPORT_TRANSFER, nullable=False
    )

    pickup = Column(String(512), nullable=False)
    pickup_lat = Column(Float, nullable=True)
    pickup_lng = Column(Float, nullable=True)
    pickup_place_id = Column(String(255), nullable=True)
    drop = Column(String(512), nullable=False)
    drop_lat = Column(Float, nullable=True)
    drop_lng = Column(Float, nullable=True)
    drop_place_id = Column(String(255), nullable=True)

    scheduled_at = Column(DateTime(timezone=True), nullable=False)
    event_start = Column(Time, nullable=True)
    event_end = Column(Time, nullable=True)
    additional_hours = Column(Float, default=0.0, nullable=False)

    status = Column(Enum(BookingStatus), default=BookingStatus.PENDING, nullable=False)
    pricing_method = Column(Enum(PricingMethod), nullable=True)
    distance_km = Column(Float, nullable=True)
    total_price = Column(Float, nullable=False)
    deposit_amount = Column(Float, nullable=False)

    deposit_paid = Column(Boolean, default=False, nullable=False)
    final_paid = Column(Boolean, default=False, nullable=False)
    stripe_session_id = Column(String(255), nullable=True)
    checkout_url = Column(String(1024), nullable=True)
    final_session_id = Column(String(255), nullable=True)
    final_payment_url = Column(String(1024), nullable=True)
    payment_reference = Column(String(255), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)

    # Optimistic-concurrency token, bumped by every status transition
    version = Column(Integer, default=1, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    add_ons = relationship(
        "AddOnModel",
        back_populates="booking",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    __table_args__ = (
        Index("idx_bookings_status", "status"),
        Index("idx_bookings_user", "user_id"),
        Index("idx_bookings_vehicle_time", "vehicle", "scheduled_at"),
        Index("idx_bookings_session", "stripe_session_id"),
        Index(
            "uq_bookings_active_user",
            "user_id",
            unique=True,
            postgresql_where=text(ACTIVE_STATUS_SQL),
            sqlite_where=text(ACTIVE_STATUS_SQL),
        ),
    )


class AddOnModel(Base):
    __tablename__ = "booking_add_ons"

    id = Column(Integer, primary_key=True, autoincrement=True)
    booking_id = Column(
        String(36), ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False
    )
    add_on = Column(Enum(AddOnType), nullable=False)
    price = Column(Float, nullable=False)
    duration_hours = Column(Float, nullable=True)
    location = Column(String(512), nullable=True)
    notes = Column(Text, nullable=True)

    booking = relationship("BookingModel", back_populates="add_ons")

    __table_args__ = (Index("idx_add_ons_booking", "booking_id"),)
