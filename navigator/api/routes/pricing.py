"""
Price estimate
==============

GET /api/v1/price-estimate -- quote a trip without persisting anything.
Uses the same ``PricingEngine`` as booking creation.
"""

from datetime import time
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request

from navigator.api.dependencies import get_pricing_engine
from navigator.api.middleware import limiter
from navigator.api.schemas import ErrorResponse, PriceEstimateResponse
from navigator.config import settings
from navigator.domain.distance import Coordinates
from navigator.domain.enums import AddOnType, ServiceType, VehicleClass
from navigator.domain.pricing import PriceRequest, PricingEngine, event_hours

router = APIRouter(tags=["pricing"])


def _coords(lat: Optional[float], lng: Optional[float]) -> Optional[Coordinates]:
    if lat is None or lng is None:
        return None
    return Coordinates(lat=lat, lng=lng)


@router.get(
    "/price-estimate",
    response_model=PriceEstimateResponse,
    summary="Quote a trip",
    responses={400: {"model": ErrorResponse, "description": "Trip cannot be priced"}},
)
@limiter.limit(settings.rate_limit)
async def price_estimate(
    request: Request,
    vehicle: VehicleClass,
    service_type: ServiceType = ServiceType.AIRPORT_TRANSFER,
    pickup: str = "",
    drop: str = "",
    pickup_lat: Optional[float] = None,
    pickup_lng: Optional[float] = None,
    drop_lat: Optional[float] = None,
    drop_lng: Optional[float] = None,
    hours: float = Query(0.0, ge=0, le=24),
    additional_hours: float = Query(0.0, ge=0, le=24),
    event_start: Optional[time] = None,
    event_end: Optional[time] = None,
    add_ons: list[AddOnType] = Query([]),
    engine: PricingEngine = Depends(get_pricing_engine),
):
    if not hours and event_start is not None and event_end is not None:
        hours = event_hours(event_start, event_end)

    quote = await engine.quote(
        PriceRequest(
            service_type=service_type,
            vehicle=vehicle,
            pickup=pickup,
            drop=drop,
            pickup_coords=_coords(pickup_lat, pickup_lng),
            drop_coords=_coords(drop_lat, drop_lng),
            hours=hours,
            additional_hours=additional_hours,
            add_ons=add_ons,
        )
    )
    return PriceEstimateResponse.from_breakdown(quote)
