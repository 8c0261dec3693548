"""Pydantic request / response schemas for the REST API."""

from __future__ import annotations

from datetime import datetime, time
from typing import Optional

from pydantic import BaseModel, Field, computed_field

from navigator.domain.distance import Coordinates
from navigator.domain.enums import (
    AddOnType,
    BookingStatus,
    PricingMethod,
    Route,
    ServiceType,
    VehicleClass,
)
from navigator.domain.pricing import PriceBreakdown, format_pricing_breakdown, money
from navigator.services.bookings import AddOnRequest, BookingRequest


# ── Requests ──────────────────────────────────────────────────────────


class CoordinatesIn(BaseModel):
    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)

    def to_domain(self) -> Coordinates:
        return Coordinates(lat=self.lat, lng=self.lng)


class AddOnIn(BaseModel):
    add_on: AddOnType
    duration_hours: Optional[float] = Field(None, ge=0)
    location: Optional[str] = Field(None, max_length=512)
    notes: Optional[str] = None


class BookingCreateRequest(BaseModel):
    user_id: int
    service_type: ServiceType = ServiceType.AIRPORT_TRANSFER
    vehicle: VehicleClass
    pickup: str = Field(..., min_length=1, max_length=512)
    drop: str = Field(..., min_length=1, max_length=512)
    scheduled_at: datetime
    pickup_coords: Optional[CoordinatesIn] = None
    drop_coords: Optional[CoordinatesIn] = None
    pickup_place_id: Optional[str] = None
    drop_place_id: Optional[str] = None
    event_start: Optional[time] = None
    event_end: Optional[time] = None
    hours: float = Field(0.0, ge=0, le=24)
    additional_hours: float = Field(0.0, ge=0, le=24)
    add_ons: list[AddOnIn] = []
    customer_email: Optional[str] = Field(None, max_length=255)

    def to_domain(self) -> BookingRequest:
        return BookingRequest(
            user_id=self.user_id,
            service_type=self.service_type,
            vehicle=self.vehicle,
            pickup=self.pickup,
            drop=self.drop,
            scheduled_at=self.scheduled_at,
            pickup_coords=self.pickup_coords.to_domain() if self.pickup_coords else None,
            drop_coords=self.drop_coords.to_domain() if self.drop_coords else None,
            pickup_place_id=self.pickup_place_id,
            drop_place_id=self.drop_place_id,
            event_start=self.event_start,
            event_end=self.event_end,
            hours=self.hours,
            additional_hours=self.additional_hours,
            add_ons=[
                AddOnRequest(
                    add_on=a.add_on,
                    duration_hours=a.duration_hours,
                    location=a.location,
                    notes=a.notes,
                )
                for a in self.add_ons
            ],
            customer_email=self.customer_email,
        )


class CustomerActionRequest(BaseModel):
    user_id: int
    customer_email: Optional[str] = Field(None, max_length=255)


class FinalPaymentRequest(BaseModel):
    customer_email: Optional[str] = Field(None, max_length=255)


# ── Responses ─────────────────────────────────────────────────────────


class TierCostResponse(BaseModel):
    from_km: float
    to_km: float
    rate_per_km: float
    distance_km: float
    cost: float

    model_config = {"from_attributes": True}


class AddOnLineResponse(BaseModel):
    add_on: AddOnType
    price: float
    description: str = ""

    model_config = {"from_attributes": True}


class PriceEstimateResponse(BaseModel):
    total_price: float
    deposit_amount: float
    deposit_rate: float
    remaining_amount: float
    pricing_method: PricingMethod
    service_type: ServiceType
    vehicle: VehicleClass
    distance_km: Optional[float] = None
    route: Optional[Route] = None
    tiers: list[TierCostResponse] = []
    subtotal: Optional[float] = None
    tax: Optional[float] = None
    add_ons: list[AddOnLineResponse] = []
    breakdown: str = ""

    @classmethod
    def from_breakdown(cls, quote: PriceBreakdown) -> "PriceEstimateResponse":
        return cls(
            total_price=quote.total_price,
            deposit_amount=quote.deposit_amount,
            deposit_rate=quote.deposit_rate,
            remaining_amount=quote.remaining_amount,
            pricing_method=quote.method,
            service_type=quote.service_type,
            vehicle=quote.vehicle,
            distance_km=quote.distance_km,
            route=quote.route,
            tiers=[TierCostResponse.model_validate(t) for t in quote.tiers],
            subtotal=quote.subtotal,
            tax=quote.tax,
            add_ons=[AddOnLineResponse.model_validate(a) for a in quote.add_ons],
            breakdown=format_pricing_breakdown(quote),
        )


class AddOnResponse(BaseModel):
    add_on: AddOnType
    price: float
    duration_hours: Optional[float] = None
    location: Optional[str] = None
    notes: Optional[str] = None

    model_config = {"from_attributes": True}


class BookingResponse(BaseModel):
    id: str
    user_id: int
    vehicle: VehicleClass
    service_type: ServiceType
    pickup: str
    drop: str
    scheduled_at: datetime
    event_start: Optional[time] = None
    event_end: Optional[time] = None
    status: BookingStatus
    pricing_method: Optional[PricingMethod] = None
    distance_km: Optional[float] = None
    total_price: float
    deposit_amount: float
    deposit_paid: bool
    final_paid: bool
    checkout_url: Optional[str] = None
    final_payment_url: Optional[str] = None
    completed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    add_ons: list[AddOnResponse] = []

    model_config = {"from_attributes": True}

    @computed_field
    @property
    def remaining_amount(self) -> float:
        return money(self.total_price - self.deposit_amount)


class BookingCreatedResponse(BaseModel):
    booking: BookingResponse
    session_id: str
    checkout_url: Optional[str] = None


class CheckoutResponse(BaseModel):
    session_id: str
    checkout_url: Optional[str] = None


class FinalPaymentResponse(BaseModel):
    booking: BookingResponse
    session_id: str
    payment_url: Optional[str] = None


class WebhookAck(BaseModel):
    received: bool = True


class HealthResponse(BaseModel):
    status: str = "ok"


class ErrorResponse(BaseModel):
    detail: str
