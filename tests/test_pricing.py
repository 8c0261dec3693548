"""Unit tests for the pricing strategies and the pricing engine."""

from datetime import time
from unittest.mock import AsyncMock

import pytest

from navigator.domain.distance import Coordinates, DistanceResult
from navigator.domain.enums import (
    AddOnType,
    DistanceMethod,
    PricingMethod,
    Route,
    ServiceType,
    VehicleClass,
)
from navigator.domain.errors import (
    DistanceUnavailable,
    InvalidDistance,
    UnpriceableRoute,
    UnsupportedServiceType,
)
from navigator.domain.pricing import (
    CEREMONY_PRICING,
    ENGAGEMENT_PRICING,
    DepositPolicy,
    FlatRoutePricing,
    PriceRequest,
    PricingEngine,
    VEHICLE_MULTIPLIERS,
    TieredDistancePricing,
    WeddingShuttlePricing,
    calculate_deposit,
    event_hours,
    format_pricing_breakdown,
    money,
)

SUV = VehicleClass.LUXURY_SUV
VAN = VehicleClass.TRANSIT_VAN

YYC = Coordinates(lat=51.1215, lng=-114.0076)
CANMORE = Coordinates(lat=51.0884, lng=-115.3479)


class TestTieredDistancePricing:
    def setup_method(self):
        self.pricing = TieredDistancePricing()

    def test_108_km_suv(self):
        result = self.pricing.calculate(108, SUV)
        assert result.final_price == 601.00  # 50x6.50 + 50x4.80 + 8x4.50

    def test_108_km_van_applies_multiplier(self):
        result = self.pricing.calculate(108, VAN)
        assert result.vehicle_multiplier == 1.32
        assert result.final_price == 793.32

    def test_tier_breakdown(self):
        tiers = self.pricing.calculate(108, SUV).tiers
        assert [(t.from_km, t.to_km, t.rate_per_km) for t in tiers] == [
            (0, 50, 6.50),
            (50, 100, 4.80),
            (100, 108, 4.50),
        ]
        assert sum(t.cost for t in tiers) == pytest.approx(601.0)

    def test_short_trip_stays_in_first_tier(self):
        result = self.pricing.calculate(10, SUV)
        assert len(result.tiers) == 1
        assert result.final_price == 65.00

    def test_500_km_is_accepted(self):
        # 325 + 240 + 225 + 350 x 4.20
        assert self.pricing.calculate(500, SUV).final_price == 2260.00

    def test_501_km_is_rejected(self):
        with pytest.raises(InvalidDistance):
            self.pricing.calculate(501, SUV)

    @pytest.mark.parametrize("distance", [0, -5])
    def test_non_positive_distance_is_rejected(self, distance):
        with pytest.raises(InvalidDistance):
            self.pricing.calculate(distance, SUV)

    @pytest.mark.parametrize("vehicle", [SUV, VAN])
    def test_price_strictly_increases_with_distance(self, vehicle):
        prices = [self.pricing.calculate(km, vehicle).final_price for km in range(1, 501)]
        assert all(a < b for a, b in zip(prices, prices[1:]))

    @pytest.mark.parametrize("vehicle", [SUV, VAN])
    @pytest.mark.parametrize("boundary", [50, 100, 150])
    def test_continuous_at_tier_boundaries(self, boundary, vehicle):
        eps = 0.01
        below, at, above = (
            self.pricing.calculate(km, vehicle).final_price
            for km in (boundary - eps, boundary, boundary + eps)
        )
        assert below < at < above

        # a step of eps km costs at most eps x the steepest rate, plus a cent of rounding
        max_step = eps * 6.50 * VEHICLE_MULTIPLIERS[vehicle] + 0.01
        assert at - below <= max_step
        assert above - at <= max_step

    def test_configurable_ceiling(self):
        pricing = TieredDistancePricing(max_distance_km=100)
        with pytest.raises(InvalidDistance):
            pricing.calculate(101, SUV)


class TestFlatRoutePricing:
    def setup_method(self):
        self.pricing = FlatRoutePricing()

    @pytest.mark.parametrize(
        "route, vehicle, expected",
        [
            (Route.YYC_TO_CANMORE, SUV, 518.44),
            (Route.YYC_TO_CANMORE, VAN, 685.13),
            (Route.BANFF_TO_YYC, SUV, 681.45),
            (Route.YYC_TO_BANFF, VAN, 897.00),
        ],
    )
    def test_table_prices(self, route, vehicle, expected):
        assert self.pricing.price(route, vehicle) == expected

    def test_unknown_route_prices_zero(self):
        assert self.pricing.price(None, SUV) == 0.0

    def test_quote_raises_for_unknown_route(self):
        with pytest.raises(UnpriceableRoute):
            self.pricing.quote(None, SUV)


class TestEventPricing:
    def test_wedding_base_package(self):
        result = WeddingShuttlePricing().calculate(SUV)
        assert result.subtotal == 850.00
        assert result.tax == 42.50
        assert result.total == 892.50
        assert result.hours_booked == 4

    def test_wedding_additional_hours_use_vehicle_rate(self):
        result = WeddingShuttlePricing().calculate(VAN, additional_hours=2)
        assert result.additional_hours_cost == 426.00
        assert result.total == 1339.80

    def test_wedding_ceremony_add_on(self):
        result = WeddingShuttlePricing().calculate(
            SUV, add_ons=[AddOnType.CEREMONY_PICKUP_DROPOFF]
        )
        assert [line.price for line in result.add_ons] == [750.0]
        assert result.total == 1680.00

    def test_engagement_minimum_price(self):
        # 3 h x 163 = 489 < 650
        assert ENGAGEMENT_PRICING.calculate(SUV, hours=1).total == 682.50

    def test_engagement_above_minimum(self):
        result = ENGAGEMENT_PRICING.calculate(SUV, hours=5)
        assert result.subtotal == 815.00
        assert result.total == 855.75

    def test_ceremony_minimum_hours(self):
        result = CEREMONY_PRICING.calculate(VAN, hours=1)
        assert result.hours_booked == 2
        assert result.subtotal == 450.00  # 2 x 213 = 426 < 450

    def test_event_hours_same_day(self):
        assert event_hours(time(14, 0), time(18, 30)) == 4.5

    def test_event_hours_past_midnight(self):
        assert event_hours(time(22, 0), time(2, 0)) == 4


class TestDeposit:
    def test_transfer_deposit_is_35_percent(self):
        assert calculate_deposit(518.44, ServiceType.AIRPORT_TRANSFER) == 181.45

    def test_event_deposit_is_50_percent(self):
        assert calculate_deposit(892.50, ServiceType.WEDDING_SHUTTLE) == 446.25

    @pytest.mark.parametrize("total", [65.0, 518.44, 601.0, 2260.0])
    def test_deposit_strictly_between_zero_and_total(self, total):
        for service_type in ServiceType:
            deposit = calculate_deposit(total, service_type)
            assert 0 < deposit < total

    def test_policy_rejects_out_of_range_rates(self):
        rates = {s: 0.5 for s in ServiceType}
        rates[ServiceType.CEREMONY] = 1.0
        with pytest.raises(ValueError):
            DepositPolicy(rates=rates)

    def test_money_rounds_half_up(self):
        assert money(2.675) == 2.68
        assert money(0.125) == 0.13


class TestPricingEngine:
    @pytest.mark.asyncio
    async def test_route_table_without_resolver(self):
        quote = await PricingEngine().quote(
            PriceRequest(ServiceType.AIRPORT_TRANSFER, SUV, "YYC Airport", "Canmore")
        )
        assert quote.method == PricingMethod.ROUTE_BASED
        assert quote.route == Route.YYC_TO_CANMORE
        assert quote.total_price == 518.44
        assert quote.deposit_amount == 181.45
        assert quote.remaining_amount == 336.99

    @pytest.mark.asyncio
    async def test_distance_pricing_when_coordinates_given(self):
        resolver = AsyncMock()
        resolver.resolve.return_value = DistanceResult(108.0, 5400, DistanceMethod.MEASURED)
        engine = PricingEngine(distance_resolver=resolver)

        quote = await engine.quote(
            PriceRequest(
                ServiceType.AIRPORT_TRANSFER,
                VAN,
                "somewhere",
                "elsewhere",
                pickup_coords=YYC,
                drop_coords=CANMORE,
            )
        )
        assert quote.method == PricingMethod.DISTANCE_BASED
        assert quote.distance_km == 108.0
        assert quote.total_price == 793.32
        resolver.resolve.assert_awaited_once_with(YYC, CANMORE)

    @pytest.mark.asyncio
    async def test_falls_back_to_route_table_when_routing_fails(self):
        resolver = AsyncMock()
        resolver.resolve.side_effect = DistanceUnavailable("timeout")
        engine = PricingEngine(distance_resolver=resolver)

        quote = await engine.quote(
            PriceRequest(
                ServiceType.AIRPORT_TRANSFER,
                SUV,
                "Banff",
                "Calgary Airport",
                pickup_coords=YYC,
                drop_coords=CANMORE,
            )
        )
        assert quote.method == PricingMethod.ROUTE_BASED
        assert quote.total_price == 681.45

    @pytest.mark.asyncio
    async def test_falls_back_when_distance_out_of_range(self):
        resolver = AsyncMock()
        resolver.resolve.return_value = DistanceResult(650.0, 0, DistanceMethod.MEASURED)
        engine = PricingEngine(distance_resolver=resolver)

        quote = await engine.quote(
            PriceRequest(
                ServiceType.AIRPORT_TRANSFER,
                SUV,
                "YYC",
                "Solara",
                pickup_coords=YYC,
                drop_coords=CANMORE,
            )
        )
        assert quote.route == Route.YYC_TO_CANMORE

    @pytest.mark.asyncio
    async def test_invalid_coordinates_skip_resolver(self):
        resolver = AsyncMock()
        engine = PricingEngine(distance_resolver=resolver)

        await engine.quote(
            PriceRequest(
                ServiceType.AIRPORT_TRANSFER,
                SUV,
                "YYC",
                "Canmore",
                pickup_coords=Coordinates(lat=95.0, lng=0.0),
                drop_coords=CANMORE,
            )
        )
        resolver.resolve.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_unpriceable_when_no_route_and_no_distance(self):
        with pytest.raises(UnpriceableRoute):
            await PricingEngine().quote(
                PriceRequest(ServiceType.AIRPORT_TRANSFER, SUV, "Edmonton", "Jasper")
            )

    @pytest.mark.asyncio
    async def test_wedding_quote_is_hourly_with_half_deposit(self):
        quote = await PricingEngine().quote(
            PriceRequest(ServiceType.WEDDING_SHUTTLE, SUV)
        )
        assert quote.method == PricingMethod.HOURLY
        assert quote.total_price == 892.50
        assert quote.tax == 42.50
        assert quote.deposit_amount == 446.25

    @pytest.mark.asyncio
    async def test_unknown_service_type_is_rejected(self):
        with pytest.raises(UnsupportedServiceType):
            await PricingEngine().quote(PriceRequest("LIMOUSINE", SUV))

    @pytest.mark.asyncio
    async def test_breakdown_text(self):
        resolver = AsyncMock()
        resolver.resolve.return_value = DistanceResult(108.0, 5400, DistanceMethod.MEASURED)
        quote = await PricingEngine(distance_resolver=resolver).quote(
            PriceRequest(
                ServiceType.AIRPORT_TRANSFER, SUV, pickup_coords=YYC, drop_coords=CANMORE
            )
        )
        text = format_pricing_breakdown(quote)
        assert "Distance: 108.0 km" in text
        assert "Total: $601.00" in text
        assert "Deposit (35%): $210.35" in text
