from __future__ import annotations

import math
import re
from typing import Callable, Iterable

from parkfinder.geo import haversine_km
from parkfinder.models import Coordinates, ParkingSpot, SortKey

ALL = "all"

_STATIC_DISTANCE_RE = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*(km|m)?\s*$", re.IGNORECASE)


def static_distance_km(value: str | float | None) -> float | None:
    """Interpret a source-supplied distance ("1.2 km", "800 m", 3) as kilometres."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    m = _STATIC_DISTANCE_RE.match(value)
    if not m:
        return None
    amount = float(m.group(1))
    if (m.group(2) or "km").lower() == "m":
        return amount / 1000.0
    return amount


def resolve_distance_km(spot: ParkingSpot, reference: Coordinates | None) -> float | None:
    """Distance used for ranking.

    Source-supplied distances are measured from an unknown origin, so they
    only rank when there is no user location at all.
    """
    if reference is None:
        return static_distance_km(spot.distance)
    if spot.coordinates is not None:
        return haversine_km(reference, spot.coordinates)
    return None


def _distance_key(reference: Coordinates | None) -> Callable[[ParkingSpot], float]:
    def key(spot: ParkingSpot) -> float:
        d = resolve_distance_km(spot, reference)
        return math.inf if d is None else d

    return key


def _price_key(spot: ParkingSpot) -> float:
    return math.inf if spot.price is None else spot.price


def _name_key(spot: ParkingSpot) -> str:
    return spot.name.casefold()


class FilterSortEngine:
    """Stateless filter + stable sort over parking spot records.

    An unknown category yields an empty list rather than falling back to
    "all": a stale dropdown value must not silently show everything.
    """

    def filter(self, records: Iterable[ParkingSpot], category: str = ALL) -> list[ParkingSpot]:
        if category == ALL:
            return list(records)
        return [r for r in records if r.type == category]

    def sort(
        self,
        records: Iterable[ParkingSpot],
        sort_key: SortKey | str | None = None,
        reference: Coordinates | None = None,
    ) -> list[ParkingSpot]:
        key = SortKey(sort_key) if sort_key is not None else SortKey.NAME
        if key is SortKey.DEFAULT:
            return list(records)
        if key is SortKey.DISTANCE:
            return sorted(records, key=_distance_key(reference))
        if key is SortKey.PRICE:
            return sorted(records, key=_price_key)
        return sorted(records, key=_name_key)

    def apply(
        self,
        records: Iterable[ParkingSpot],
        category: str = ALL,
        sort_key: SortKey | str | None = None,
        reference: Coordinates | None = None,
    ) -> list[ParkingSpot]:
        return self.sort(self.filter(records, category), sort_key, reference)

    @staticmethod
    def categories(records: Iterable[ParkingSpot]) -> list[str]:
        return sorted({r.type for r in records if r.type})
