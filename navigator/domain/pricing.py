"""
Pricing Engine  (Strategy Pattern)
==================================

One strategy per pricing model:

* **FlatRoutePricing**      -- airport corridor x vehicle table lookup.
* **TieredDistancePricing** -- cumulative per-km brackets (like tax brackets)
  times a vehicle multiplier::

      108 km SUV = 50 x 6.50 + 50 x 4.80 + 8 x 4.50 = 601.00
      108 km Van = 601.00 x 1.32                    = 793.32

* **WeddingShuttlePricing** -- base package + hourly overage + add-ons + GST.
* **MinimumHourlyPricing**  -- hourly x max(hours, min_hours), floored at a
  minimum price, + GST.  Used for engagement and ceremony services.

``PricingEngine.quote`` selects the strategy from the service type and is
the only entry point used by both the price-estimate endpoint and booking
creation, so a quoted price is always the charged price.

Complexity: O(tiers) per quote.
"""

from __future__ import annotations

import logging
import math
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import time
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

from .distance import Coordinates, is_valid_coordinates, is_valid_distance
from .enums import (
    AddOnType,
    PricingMethod,
    Route,
    ServiceType,
    VehicleClass,
)
from .errors import (
    DistanceUnavailable,
    InvalidDistance,
    UnpriceableRoute,
    UnsupportedServiceType,
)
from .routes import KeywordRouteResolver, RouteResolver

logger = logging.getLogger(__name__)

GST_RATE = 0.05


def money(value: float) -> float:
    """Round half-up to cents."""
    return float(Decimal(str(value)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


# ── Tables ────────────────────────────────────────────────────────────

AIRPORT_ROUTES: dict[Route, dict[VehicleClass, float]] = {
    Route.YYC_TO_CANMORE: {
        VehicleClass.LUXURY_SUV: 518.44,
        VehicleClass.TRANSIT_VAN: 685.13,
    },
    Route.YYC_TO_BANFF: {
        VehicleClass.LUXURY_SUV: 681.45,
        VehicleClass.TRANSIT_VAN: 897.00,
    },
    Route.CANMORE_TO_YYC: {
        VehicleClass.LUXURY_SUV: 518.44,
        VehicleClass.TRANSIT_VAN: 685.13,
    },
    Route.BANFF_TO_YYC: {
        VehicleClass.LUXURY_SUV: 681.45,
        VehicleClass.TRANSIT_VAN: 897.00,
    },
}

# (max_km, rate_per_km), walked in order
DISTANCE_TIERS: tuple[tuple[float, float], ...] = (
    (50.0, 6.50),
    (100.0, 4.80),
    (150.0, 4.50),
    (math.inf, 4.20),
)

VEHICLE_MULTIPLIERS: dict[VehicleClass, float] = {
    VehicleClass.LUXURY_SUV: 1.0,
    VehicleClass.TRANSIT_VAN: 1.32,
}

HOURLY_RATES: dict[VehicleClass, float] = {
    VehicleClass.LUXURY_SUV: 163.0,
    VehicleClass.TRANSIT_VAN: 213.0,
}

ADD_ON_PRICES: dict[AddOnType, float] = {
    AddOnType.CEREMONY_PICKUP_DROPOFF: 750.0,
}

ADD_ON_DESCRIPTIONS: dict[AddOnType, str] = {
    AddOnType.CEREMONY_PICKUP_DROPOFF: (
        "Ceremony guest pickup & drop-off (1-3 hours before ceremony)"
    ),
}


# ── Results ───────────────────────────────────────────────────────────


@dataclass(frozen=True)
class TierCost:
    from_km: float
    to_km: float
    rate_per_km: float
    distance_km: float
    cost: float


@dataclass(frozen=True)
class DistancePricingBreakdown:
    distance_km: float
    base_price: float
    vehicle_multiplier: float
    final_price: float
    tiers: tuple[TierCost, ...]


@dataclass(frozen=True)
class AddOnLine:
    add_on: AddOnType
    price: float
    description: str = ""


@dataclass(frozen=True)
class EventPricingBreakdown:
    hourly_rate: float
    hours_booked: float
    base_price: float
    additional_hours_cost: float
    add_ons: tuple[AddOnLine, ...]
    subtotal: float
    tax: float
    total: float


@dataclass(frozen=True)
class PriceBreakdown:
    total_price: float
    deposit_amount: float
    deposit_rate: float
    method: PricingMethod
    service_type: ServiceType
    vehicle: VehicleClass
    distance_km: Optional[float] = None
    route: Optional[Route] = None
    tiers: tuple[TierCost, ...] = ()
    subtotal: Optional[float] = None
    tax: Optional[float] = None
    add_ons: tuple[AddOnLine, ...] = ()

    @property
    def remaining_amount(self) -> float:
        return money(self.total_price - self.deposit_amount)


@dataclass
class PriceRequest:
    service_type: ServiceType
    vehicle: VehicleClass
    pickup: str = ""
    drop: str = ""
    pickup_coords: Optional[Coordinates] = None
    drop_coords: Optional[Coordinates] = None
    hours: float = 0.0
    additional_hours: float = 0.0
    add_ons: list[AddOnType] = field(default_factory=list)


# ── Deposit ───────────────────────────────────────────────────────────


@dataclass(frozen=True)
class DepositPolicy:
    rates: dict[ServiceType, float]

    def __post_init__(self):
        for service_type in ServiceType:
            rate = self.rates.get(service_type)
            if rate is None or not 0 < rate < 1:
                raise ValueError(
                    f"Deposit rate for {service_type.value} must be in (0, 1), got {rate}"
                )

    @classmethod
    def from_settings(cls, settings) -> "DepositPolicy":
        return cls(
            rates={
                ServiceType.AIRPORT_TRANSFER: settings.deposit_rate_airport_transfer,
                ServiceType.WEDDING_SHUTTLE: settings.deposit_rate_wedding_shuttle,
                ServiceType.ENGAGEMENT: settings.deposit_rate_engagement,
                ServiceType.CEREMONY: settings.deposit_rate_ceremony,
            }
        )

    def rate_for(self, service_type: ServiceType) -> float:
        return self.rates[service_type]

    def deposit_for(self, total_price: float, service_type: ServiceType) -> float:
        return money(total_price * self.rate_for(service_type))


DEFAULT_DEPOSIT_POLICY = DepositPolicy(
    rates={
        ServiceType.AIRPORT_TRANSFER: 0.35,
        ServiceType.WEDDING_SHUTTLE: 0.50,
        ServiceType.ENGAGEMENT: 0.50,
        ServiceType.CEREMONY: 0.50,
    }
)


def calculate_deposit(
    total_price: float,
    service_type: ServiceType,
    policy: DepositPolicy = DEFAULT_DEPOSIT_POLICY,
) -> float:
    return policy.deposit_for(total_price, service_type)


# ── Strategy hierarchy ────────────────────────────────────────────────


class EventPricingStrategy(ABC):
    @abstractmethod
    def calculate(
        self,
        vehicle: VehicleClass,
        hours: float = 0.0,
        additional_hours: float = 0.0,
        add_ons: list[AddOnType] | None = None,
    ) -> EventPricingBreakdown: ...


class FlatRoutePricing:
    def __init__(self, table: dict[Route, dict[VehicleClass, float]] = AIRPORT_ROUTES):
        self.table = table

    def price(self, route: Optional[Route], vehicle: VehicleClass) -> float:
        """Table price, or 0.0 when the combination is unknown."""
        if route is None:
            return 0.0
        return self.table.get(route, {}).get(vehicle, 0.0)

    def quote(self, route: Optional[Route], vehicle: VehicleClass) -> float:
        price = self.price(route, vehicle)
        if price <= 0:
            raise UnpriceableRoute(f"No flat price for route={route} vehicle={vehicle}")
        return price


class TieredDistancePricing:
    def __init__(
        self,
        tiers: tuple[tuple[float, float], ...] = DISTANCE_TIERS,
        multipliers: dict[VehicleClass, float] = VEHICLE_MULTIPLIERS,
        max_distance_km: float = 500.0,
    ):
        self.tiers = tiers
        self.multipliers = multipliers
        self.max_distance_km = max_distance_km

    def calculate(self, distance_km: float, vehicle: VehicleClass) -> DistancePricingBreakdown:
        if not is_valid_distance(distance_km, self.max_distance_km):
            if not distance_km > 0:
                raise InvalidDistance("Distance must be greater than 0")
            raise InvalidDistance(
                f"Distance {distance_km:.0f} km exceeds maximum allowed "
                f"{self.max_distance_km:.0f} km"
            )

        tiers: list[TierCost] = []
        remaining = distance_km
        base_price = 0.0
        previous_max = 0.0
        for max_km, rate in self.tiers:
            if remaining <= 0:
                break
            in_tier = min(remaining, max_km - previous_max)
            cost = in_tier * rate
            tiers.append(
                TierCost(
                    from_km=previous_max,
                    to_km=previous_max + in_tier,
                    rate_per_km=rate,
                    distance_km=in_tier,
                    cost=cost,
                )
            )
            base_price += cost
            remaining -= in_tier
            previous_max = max_km

        multiplier = self.multipliers.get(vehicle, 1.0)
        return DistancePricingBreakdown(
            distance_km=distance_km,
            base_price=money(base_price),
            vehicle_multiplier=multiplier,
            final_price=money(base_price * multiplier),
            tiers=tuple(tiers),
        )


class WeddingShuttlePricing(EventPricingStrategy):
    """Base package covering ``base_hours`` plus hourly overage and add-ons."""

    def __init__(
        self,
        base_price: float = 850.0,
        base_hours: float = 4.0,
        hourly_rates: dict[VehicleClass, float] = HOURLY_RATES,
        add_on_prices: dict[AddOnType, float] = ADD_ON_PRICES,
        tax_rate: float = GST_RATE,
    ):
        self.base_price = base_price
        self.base_hours = base_hours
        self.hourly_rates = hourly_rates
        self.add_on_prices = add_on_prices
        self.tax_rate = tax_rate

    def calculate(self, vehicle, hours=0.0, additional_hours=0.0, add_ons=None):
        hourly_rate = self.hourly_rates.get(vehicle, 0.0)
        additional_hours = max(0.0, additional_hours or 0.0)
        additional_cost = hourly_rate * additional_hours

        lines = tuple(
            AddOnLine(
                add_on=a,
                price=self.add_on_prices[a],
                description=ADD_ON_DESCRIPTIONS.get(a, ""),
            )
            for a in dict.fromkeys(add_ons or [])
        )
        subtotal = self.base_price + additional_cost + sum(line.price for line in lines)
        tax = subtotal * self.tax_rate
        return EventPricingBreakdown(
            hourly_rate=hourly_rate,
            hours_booked=self.base_hours + additional_hours,
            base_price=self.base_price,
            additional_hours_cost=money(additional_cost),
            add_ons=lines,
            subtotal=money(subtotal),
            tax=money(tax),
            total=money(subtotal + tax),
        )


class MinimumHourlyPricing(EventPricingStrategy):
    def __init__(
        self,
        min_price: float,
        min_hours: float,
        hourly_rates: dict[VehicleClass, float] = HOURLY_RATES,
        tax_rate: float = GST_RATE,
    ):
        self.min_price = min_price
        self.min_hours = min_hours
        self.hourly_rates = hourly_rates
        self.tax_rate = tax_rate

    def calculate(self, vehicle, hours=0.0, additional_hours=0.0, add_ons=None):
        hourly_rate = self.hourly_rates.get(vehicle, 0.0)
        hours_booked = max(hours or 0.0, self.min_hours)
        subtotal = max(hourly_rate * hours_booked, self.min_price)
        tax = subtotal * self.tax_rate
        return EventPricingBreakdown(
            hourly_rate=hourly_rate,
            hours_booked=hours_booked,
            base_price=self.min_price,
            additional_hours_cost=0.0,
            add_ons=(),
            subtotal=money(subtotal),
            tax=money(tax),
            total=money(subtotal + tax),
        )


ENGAGEMENT_PRICING = MinimumHourlyPricing(min_price=650.0, min_hours=3.0)
CEREMONY_PRICING = MinimumHourlyPricing(min_price=450.0, min_hours=2.0)


def event_hours(start: time, end: time) -> float:
    """Length of an event window in hours; an end at or before the start
    means the event runs past midnight."""
    start_min = start.hour * 60 + start.minute
    end_min = end.hour * 60 + end.minute
    if end_min <= start_min:
        end_min += 24 * 60
    return (end_min - start_min) / 60


def format_pricing_breakdown(breakdown: PriceBreakdown) -> str:
    lines: list[str] = []
    if breakdown.distance_km is not None:
        lines.append(f"Distance: {breakdown.distance_km:.1f} km")
    if breakdown.route is not None:
        lines.append(f"Route: {breakdown.route.value}")
    if breakdown.tiers:
        lines.append("Tier Breakdown:")
        for t in breakdown.tiers:
            lines.append(
                f"  {t.from_km:.0f}-{t.to_km:.0f} km: {t.distance_km:.1f} km x "
                f"${t.rate_per_km:.2f}/km = ${t.cost:.2f}"
            )
    for line in breakdown.add_ons:
        lines.append(f"Add-on {line.add_on.value}: ${line.price:.2f}")
    if breakdown.subtotal is not None:
        lines.append(f"Subtotal: ${breakdown.subtotal:.2f}")
    if breakdown.tax is not None:
        lines.append(f"GST: ${breakdown.tax:.2f}")
    lines.append(f"Total: ${breakdown.total_price:.2f}")
    lines.append(
        f"Deposit ({breakdown.deposit_rate:.0%}): ${breakdown.deposit_amount:.2f}"
    )
    return "\n".join(lines)


# ── Engine facade ─────────────────────────────────────────────────────


class PricingEngine:
    """High-level API used by the booking service and the estimate endpoint.

    ``distance_resolver`` is anything with an async
    ``resolve(origin, destination) -> DistanceResult``; when it is None,
    airport transfers are priced from the route table only.
    """

    def __init__(
        self,
        distance_resolver=None,
        route_resolver: RouteResolver | None = None,
        deposit_policy: DepositPolicy = DEFAULT_DEPOSIT_POLICY,
        flat: FlatRoutePricing | None = None,
        tiered: TieredDistancePricing | None = None,
        wedding: EventPricingStrategy | None = None,
        engagement: EventPricingStrategy | None = None,
        ceremony: EventPricingStrategy | None = None,
    ):
        self.distance_resolver = distance_resolver
        self.route_resolver = route_resolver or KeywordRouteResolver()
        self.deposit_policy = deposit_policy
        self.flat = flat or FlatRoutePricing()
        self.tiered = tiered or TieredDistancePricing()
        self.wedding = wedding or WeddingShuttlePricing()
        self.engagement = engagement or ENGAGEMENT_PRICING
        self.ceremony = ceremony or CEREMONY_PRICING

    async def quote(self, request: PriceRequest) -> PriceBreakdown:
        match request.service_type:
            case ServiceType.AIRPORT_TRANSFER:
                return await self._quote_transfer(request)
            case ServiceType.WEDDING_SHUTTLE:
                return self._quote_event(request, self.wedding)
            case ServiceType.ENGAGEMENT:
                return self._quote_event(request, self.engagement)
            case ServiceType.CEREMONY:
                return self._quote_event(request, self.ceremony)
            case _:
                raise UnsupportedServiceType(
                    f"Unsupported service type: {request.service_type!r}"
                )

    def _finish(self, request: PriceRequest, total: float, **extra) -> PriceBreakdown:
        total = money(total)
        return PriceBreakdown(
            total_price=total,
            deposit_amount=self.deposit_policy.deposit_for(total, request.service_type),
            deposit_rate=self.deposit_policy.rate_for(request.service_type),
            service_type=request.service_type,
            vehicle=request.vehicle,
            **extra,
        )

    async def _quote_transfer(self, request: PriceRequest) -> PriceBreakdown:
        if (
            self.distance_resolver is not None
            and request.pickup_coords is not None
            and request.drop_coords is not None
            and is_valid_coordinates(request.pickup_coords)
            and is_valid_coordinates(request.drop_coords)
        ):
            try:
                distance = await self.distance_resolver.resolve(
                    request.pickup_coords, request.drop_coords
                )
                tiered = self.tiered.calculate(distance.distance_km, request.vehicle)
            except (DistanceUnavailable, InvalidDistance) as exc:
                logger.warning(
                    "Distance pricing failed (%s); falling back to route table", exc
                )
            else:
                return self._finish(
                    request,
                    tiered.final_price,
                    method=PricingMethod.DISTANCE_BASED,
                    distance_km=distance.distance_km,
                    tiers=tiered.tiers,
                )

        route = self.route_resolver.determine(request.pickup, request.drop)
        price = self.flat.quote(route, request.vehicle)
        return self._finish(
            request, price, method=PricingMethod.ROUTE_BASED, route=route
        )

    def _quote_event(
        self, request: PriceRequest, strategy: EventPricingStrategy
    ) -> PriceBreakdown:
        event = strategy.calculate(
            request.vehicle,
            hours=request.hours,
            additional_hours=request.additional_hours,
            add_ons=request.add_ons,
        )
        if event.total <= 0:
            raise UnsupportedServiceType(
                f"No hourly rate for vehicle {request.vehicle!r}"
            )
        return self._finish(
            request,
            event.total,
            method=PricingMethod.HOURLY,
            subtotal=event.subtotal,
            tax=event.tax,
            add_ons=event.add_ons,
        )
