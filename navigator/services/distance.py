"""
Driving-distance resolution via the Google Distance Matrix API.

``DistanceResolver.resolve`` validates, consults the injected cache, then
calls the routing service.  It never substitutes an estimate when the
routing call fails: ``DistanceUnavailable`` propagates and the pricing
engine falls back to the flat route table.
"""

from __future__ import annotations

import logging
from typing import Optional

import httpx

from navigator.domain.distance import (
    Coordinates,
    DistanceResult,
    is_valid_coordinates,
)
from navigator.domain.enums import DistanceMethod
from navigator.domain.errors import DistanceUnavailable, InvalidInput
from navigator.infrastructure.cache import DistanceCache, cache_key

logger = logging.getLogger(__name__)


class RoutingClient:
    BASE_URL = "https://maps.googleapis.com/maps/api/distancematrix/json"

    def __init__(
        self,
        api_key: str,
        timeout_seconds: float = 10.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.api_key = api_key
        self.timeout = timeout_seconds
        self._client = client

    async def _get(self, params: dict) -> httpx.Response:
        if self._client is not None:
            return await self._client.get(self.BASE_URL, params=params, timeout=self.timeout)
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            return await client.get(self.BASE_URL, params=params)

    async def driving_distance(
        self, origin: Coordinates, destination: Coordinates
    ) -> tuple[int, int]:
        """Return ``(meters, seconds)`` of the driving route."""
        if not self.api_key:
            raise DistanceUnavailable("GOOGLE_DISTANCE_MATRIX_API_KEY not configured")

        params = {
            "origins": f"{origin.lat},{origin.lng}",
            "destinations": f"{destination.lat},{destination.lng}",
            "units": "metric",
            "key": self.api_key,
        }
        try:
            response = await self._get(params)
            response.raise_for_status()
            data = response.json()
        except httpx.TimeoutException as exc:
            raise DistanceUnavailable(f"Distance Matrix request timed out: {exc}") from exc
        except httpx.HTTPError as exc:
            raise DistanceUnavailable(f"Distance Matrix request failed: {exc}") from exc
        except ValueError as exc:
            raise DistanceUnavailable("Distance Matrix returned non-JSON body") from exc

        if data.get("status") != "OK":
            raise DistanceUnavailable(f"Distance Matrix API status: {data.get('status')}")

        try:
            element = data["rows"][0]["elements"][0]
        except (KeyError, IndexError, TypeError) as exc:
            raise DistanceUnavailable("Unexpected Distance Matrix response format") from exc

        if element.get("status") != "OK":
            raise DistanceUnavailable(
                f"No route found between locations. Status: {element.get('status')}"
            )

        try:
            return int(element["distance"]["value"]), int(element["duration"]["value"])
        except (KeyError, TypeError, ValueError) as exc:
            raise DistanceUnavailable("Distance Matrix element missing values") from exc


class DistanceResolver:
    def __init__(
        self,
        routing: RoutingClient,
        cache: DistanceCache,
        ttl_seconds: int = 24 * 3600,
        max_distance_km: float = 500.0,
    ):
        self.routing = routing
        self.cache = cache
        self.ttl = ttl_seconds
        self.max_distance_km = max_distance_km

    async def resolve(
        self, origin: Coordinates, destination: Coordinates
    ) -> DistanceResult:
        if not is_valid_coordinates(origin) or not is_valid_coordinates(destination):
            raise InvalidInput("Invalid coordinates provided")

        key = cache_key(origin, destination)
        cached = await self.cache.get(key)
        if cached is not None:
            logger.debug("Distance cache hit for %s", key)
            return cached

        logger.info("Fetching distance from Distance Matrix for %s", key)
        meters, seconds = await self.routing.driving_distance(origin, destination)
        distance_km = meters / 1000.0

        if distance_km <= 0:
            raise DistanceUnavailable("Routing service returned a zero-length route")
        if distance_km > self.max_distance_km:
            raise DistanceUnavailable(
                f"Distance {distance_km:.0f} km exceeds maximum allowed "
                f"{self.max_distance_km:.0f} km"
            )

        result = DistanceResult(
            distance_km=distance_km,
            duration_seconds=max(0, seconds),
            method=DistanceMethod.MEASURED,
        )
        await self.cache.set(key, result, self.ttl)
        logger.info(
            "Distance Matrix: %.1f km, %d min", distance_km, seconds // 60
        )
        return result
