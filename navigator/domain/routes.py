"""
Airport corridor classification from free-text locations.

``KeywordRouteResolver`` is a heuristic stand-in for real geocoding: it
lower-cases both strings, folds dash variants to "-", then looks for
airport keywords, town names and a fixed table of venue names.
Ambiguous text (a venue containing both a town and an airport keyword)
is resolved by first-match order only -- Canmore is tested before Banff.
A geocoding-backed resolver can replace it by implementing ``RouteResolver``.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional

from .enums import Route

AIRPORT_KEYWORDS: tuple[str, ...] = (
    "yyc",
    "calgary airport",
    "calgary international",
    "international",
    "airport",
)

TOWNS: tuple[str, ...] = ("canmore", "banff")

# Hyphen, non-breaking hyphen, figure dash, en dash -> "-"
_DASHES = str.maketrans({"\u2010": "-", "\u2011": "-", "\u2012": "-", "\u2013": "-"})


def normalise_place(text: str | None) -> str:
    return (text or "").lower().strip().translate(_DASHES)


# Venue name -> town it lies in
HOTEL_CITY_MAP: dict[str, str] = {
    # Canmore
    "solara": "canmore",
    "super 8": "canmore",
    "world mark": "canmore",
    "worldmark canmore": "canmore",
    "silvertip resort": "canmore",
    "malcom hotel": "canmore",
    "lodges of canmore": "canmore",
    "wind tower": "canmore",
    "northwinds": "canmore",
    "blackstone mountain lodge": "canmore",
    "rocky mountain ski lodge": "canmore",
    "pocaterra inn & waterslide": "canmore",
    "coast canmore hotel & conference centre": "canmore",
    "chateau canmore": "canmore",
    "falcon crest lodge": "canmore",
    "grande rockies resort \u2011 bellstar hotels & resorts": "canmore",
    "stoneridge mountain resort": "canmore",
    "silver creek lodge": "canmore",
    "mystic springs chalets": "canmore",
    "copperstone resort hotel": "canmore",
    # Banff
    "banff boundary lodge": "banff",
    "rundle chalet": "banff",
    "skyridge 401": "banff",
    "banff woods lodge": "banff",
}

_CORRIDORS: dict[tuple[str, str], Route] = {
    ("airport", "canmore"): Route.YYC_TO_CANMORE,
    ("airport", "banff"): Route.YYC_TO_BANFF,
    ("canmore", "airport"): Route.CANMORE_TO_YYC,
    ("banff", "airport"): Route.BANFF_TO_YYC,
}


# ── Strategy interface ────────────────────────────────────────────────


class RouteResolver(ABC):
    @abstractmethod
    def determine(self, pickup: str, drop: str) -> Optional[Route]: ...


class KeywordRouteResolver(RouteResolver):
    def __init__(
        self,
        hotel_city_map: dict[str, str] | None = None,
        airport_keywords: tuple[str, ...] = AIRPORT_KEYWORDS,
    ):
        venues = HOTEL_CITY_MAP if hotel_city_map is None else hotel_city_map
        self.hotel_city_map = {
            normalise_place(venue): town for venue, town in venues.items()
        }
        self.airport_keywords = airport_keywords

    def is_airport(self, text: str) -> bool:
        return any(keyword in text for keyword in self.airport_keywords)

    def town_of(self, text: str) -> Optional[str]:
        for town in TOWNS:
            if town in text:
                return town
        town = self.hotel_city_map.get(text)
        if town:
            return town
        for venue, venue_town in self.hotel_city_map.items():
            if venue in text:
                return venue_town
        return None

    def _classify(self, text: str) -> Optional[str]:
        if self.is_airport(text):
            return "airport"
        return self.town_of(text)

    def determine(self, pickup: str, drop: str) -> Optional[Route]:
        """Return the corridor iff exactly one side is the airport."""
        pickup_side = self._classify(normalise_place(pickup))
        drop_side = self._classify(normalise_place(drop))
        if pickup_side is None or drop_side is None:
            return None
        return _CORRIDORS.get((pickup_side, drop_side))


_default_resolver = KeywordRouteResolver()


def determine_route(pickup: str, drop: str) -> Optional[Route]:
    return _default_resolver.determine(pickup, drop)
