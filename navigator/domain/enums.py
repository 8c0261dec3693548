"""Domain enumerations and state-transition rules."""

import enum


class BookingStatus(str, enum.Enum):
    PENDING = "Pending"
    APPROVED = "Approved"
    AWAITING_FINAL_PAYMENT = "AwaitingFinalPayment"
    COMPLETED = "Completed"
    CANCELLED = "Cancelled"


# State machine: maps current status -> set of valid next statuses
BOOKING_TRANSITIONS: dict[BookingStatus, set[BookingStatus]] = {
    BookingStatus.PENDING: {BookingStatus.APPROVED, BookingStatus.CANCELLED},
    BookingStatus.APPROVED: {BookingStatus.AWAITING_FINAL_PAYMENT},
    BookingStatus.AWAITING_FINAL_PAYMENT: {BookingStatus.COMPLETED},
    BookingStatus.COMPLETED: set(),
    BookingStatus.CANCELLED: set(),
}

ACTIVE_STATUSES: frozenset[BookingStatus] = frozenset(
    {
        BookingStatus.PENDING,
        BookingStatus.APPROVED,
        BookingStatus.AWAITING_FINAL_PAYMENT,
    }
)

TERMINAL_STATUSES: frozenset[BookingStatus] = frozenset(
    {BookingStatus.COMPLETED, BookingStatus.CANCELLED}
)


class ServiceType(str, enum.Enum):
    AIRPORT_TRANSFER = "AIRPORT_TRANSFER"
    WEDDING_SHUTTLE = "WEDDING_SHUTTLE"
    ENGAGEMENT = "ENGAGEMENT"
    CEREMONY = "CEREMONY"


class VehicleClass(str, enum.Enum):
    LUXURY_SUV = "Luxury SUV (5 Passengers)"
    TRANSIT_VAN = "Transit Van (14 Passengers)"


class Route(str, enum.Enum):
    YYC_TO_CANMORE = "YYC-Canmore"
    YYC_TO_BANFF = "YYC-Banff"
    CANMORE_TO_YYC = "Canmore-YYC"
    BANFF_TO_YYC = "Banff-YYC"


class DistanceMethod(str, enum.Enum):
    ESTIMATED = "ESTIMATED"
    MEASURED = "MEASURED"


class PricingMethod(str, enum.Enum):
    ROUTE_BASED = "ROUTE_BASED"
    DISTANCE_BASED = "DISTANCE_BASED"
    HOURLY = "HOURLY"


class PaymentPurpose(str, enum.Enum):
    DEPOSIT = "deposit"
    FINAL = "final"


class AddOnType(str, enum.Enum):
    CEREMONY_PICKUP_DROPOFF = "CEREMONY_PICKUP_DROPOFF"
