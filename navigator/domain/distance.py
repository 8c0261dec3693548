"""
Coordinate validation and straight-line distance estimation.

Two ways of getting a trip length exist in the system:

* **Estimated** -- Haversine great-circle distance multiplied by a fixed
  road-correction factor.  Instant and free, used for client-side hints
  only and never for a chargeable price.
* **Measured** -- actual driving distance from the routing service
  (see ``navigator.services.distance``).

Complexity: O(1) per call.
"""

from __future__ import annotations

import math
from dataclasses import dataclass

from .enums import DistanceMethod

EARTH_RADIUS_KM = 6_371.0
ROAD_MULTIPLIER = 1.25  # haversine x 1.25 ~ actual road distance
ESTIMATE_SPEED_KMH = 80.0


# ── Value Objects ─────────────────────────────────────────────────────


@dataclass(frozen=True)
class Coordinates:
    lat: float
    lng: float


@dataclass(frozen=True)
class DistanceResult:
    distance_km: float
    duration_seconds: int
    method: DistanceMethod


# ── Validation ────────────────────────────────────────────────────────


def _is_number(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def is_valid_coordinates(coords) -> bool:
    """True iff *coords* has numeric, finite, in-range lat/lng.  Never raises."""
    lat = getattr(coords, "lat", None)
    lng = getattr(coords, "lng", None)
    if not _is_number(lat) or not _is_number(lng):
        return False
    if math.isnan(lat) or math.isnan(lng):
        return False
    return -90 <= lat <= 90 and -180 <= lng <= 180


# ── Haversine ─────────────────────────────────────────────────────────


def haversine_km(origin: Coordinates, destination: Coordinates) -> float:
    """Return the great-circle distance in **km** between two points."""
    lat1_r, lat2_r = math.radians(origin.lat), math.radians(destination.lat)
    dlat = math.radians(destination.lat - origin.lat)
    dlng = math.radians(destination.lng - origin.lng)

    a = (
        math.sin(dlat / 2) ** 2
        + math.cos(lat1_r) * math.cos(lat2_r) * math.sin(dlng / 2) ** 2
    )
    return 2 * EARTH_RADIUS_KM * math.asin(math.sqrt(a))


def estimate_road_distance(
    origin: Coordinates, destination: Coordinates
) -> DistanceResult:
    """Straight-line distance corrected for road winding.  Display only."""
    distance_km = haversine_km(origin, destination) * ROAD_MULTIPLIER
    duration = int(round(distance_km / ESTIMATE_SPEED_KMH * 3600))
    return DistanceResult(
        distance_km=distance_km,
        duration_seconds=duration,
        method=DistanceMethod.ESTIMATED,
    )


def is_valid_distance(distance_km: float, max_km: float = 500.0) -> bool:
    return 0 < distance_km <= max_km
