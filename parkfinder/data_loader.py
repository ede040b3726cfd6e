from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from typing import Any, Iterable, Protocol

import requests
from pydantic import ValidationError

from parkfinder.config import Settings
from parkfinder.errors import DataFormatError, DataSourceError
from parkfinder.models import ParkingSpot

logger = logging.getLogger(__name__)

SPOTS_KEY = "parkingSpots"


@dataclass(frozen=True)
class LoadResult:
    spots: list[ParkingSpot]
    source: str


def _try_parse_float(v: object) -> float | None:
    if v is None or isinstance(v, bool):
        return None
    if isinstance(v, (int, float)):
        return float(v)
    s = str(v).strip()
    if s == "":
        return None
    try:
        return float(s)
    except ValueError:
        return None


def _try_parse_int(v: object) -> int | None:
    f = _try_parse_float(v)
    return int(f) if f is not None else None


def _row_get(row: dict, keys: Iterable[str]) -> object | None:
    for k in keys:
        if k in row and row[k] not in (None, ""):
            return row[k]
    return None


def _as_flag(v: object) -> bool:
    if isinstance(v, str):
        return v.strip().lower() in ("1", "true", "yes", "y")
    return bool(v)


def _coordinates(row: dict) -> dict | None:
    # "coordinates" is canonical, older fixtures nest them under "location"
    nested = _row_get(row, ["coordinates", "location"])
    source = nested if isinstance(nested, dict) else row

    lat = _try_parse_float(_row_get(source, ["lat", "latitude"]))
    lng = _try_parse_float(_row_get(source, ["lng", "lon", "longitude"]))
    if lat is None or lng is None:
        return None
    return {"lat": lat, "lng": lng}


_AMENITY_KEYS = {
    "security": ["security"],
    "covered": ["covered"],
    "ev_charging": ["ev_charging", "evCharging", "ev"],
    "accessible": ["accessible", "disabledAccess", "disabled_access", "wheelchairAccessible"],
}


def _amenities(row: dict) -> dict:
    raw = row.get("amenities")
    flags = {name: False for name in _AMENITY_KEYS}

    if isinstance(raw, (list, tuple, set)):
        tags = {str(t).strip() for t in raw}
        for name, keys in _AMENITY_KEYS.items():
            flags[name] = any(k in tags for k in keys)
        return flags

    source = raw if isinstance(raw, dict) else {}
    for name, keys in _AMENITY_KEYS.items():
        v = _row_get(source, keys)
        if v is None:
            # flags may also sit on the record itself
            v = _row_get(row, keys)
        flags[name] = _as_flag(v) if v is not None else False
    return flags


def _payment_methods(v: object) -> list[str]:
    if v is None:
        return []
    if isinstance(v, str):
        return [p.strip() for p in v.split(",") if p.strip()]
    if isinstance(v, (list, tuple)):
        return [str(p) for p in v]
    return []


def _normalize_spot(row: object, idx: int) -> dict:
    if not isinstance(row, dict):
        raise DataFormatError(f"Record #{idx} is not an object: {row!r}")

    name = _row_get(row, ["name", "title", "label"])
    if name is None:
        raise DataFormatError(f"Record #{idx} has no name")

    raw_id = _row_get(row, ["id", "ID", "spot_id"])
    spot_id = _try_parse_int(raw_id)
    if raw_id is not None and spot_id is None:
        raise DataFormatError(f"Record #{idx} has a non-numeric id: {raw_id!r}")

    spot_type = _row_get(row, ["type", "category"])
    distance = _row_get(row, ["distance"])

    return {
        "id": spot_id,
        "name": str(name),
        "destination": _opt_str(_row_get(row, ["destination"])),
        "address": _opt_str(_row_get(row, ["address", "street"])),
        "type": str(spot_type) if spot_type is not None else None,
        "price": _try_parse_float(_row_get(row, ["price", "rate"])),
        "capacity": _try_parse_int(_row_get(row, ["capacity", "spaces", "totalSpaces"])),
        "available": _try_parse_int(_row_get(row, ["available", "availableSpaces"])),
        "coordinates": _coordinates(row),
        "distance": distance if isinstance(distance, (int, float)) and not isinstance(distance, bool) else _opt_str(distance),
        "amenities": _amenities(row),
        "operating_hours": _opt_str(_row_get(row, ["operatingHours", "operating_hours", "hours"])),
        "payment_methods": _payment_methods(_row_get(row, ["paymentMethods", "payment_methods"])),
        "image": _opt_str(_row_get(row, ["image", "imageUrl"])),
    }


def _opt_str(v: object) -> str | None:
    return str(v) if v is not None else None


def parse_document(obj: Any, source: str = "<memory>") -> LoadResult:
    """Turn a ``{"parkingSpots": [...]}`` document into validated spots.

    Records without an id get ``max id + 1`` in document order. Duplicate ids,
    a missing ``parkingSpots`` key or a non-list value raise DataFormatError.
    """
    if not isinstance(obj, dict) or SPOTS_KEY not in obj:
        raise DataFormatError(f"{source}: expected an object with a '{SPOTS_KEY}' key")
    rows = obj[SPOTS_KEY]
    if not isinstance(rows, list):
        raise DataFormatError(f"{source}: '{SPOTS_KEY}' must be a list, got {type(rows).__name__}")

    normalized = [_normalize_spot(row, idx) for idx, row in enumerate(rows)]

    seen: set[int] = set()
    for fields in normalized:
        if fields["id"] is None:
            continue
        if fields["id"] in seen:
            raise DataFormatError(f"{source}: duplicate spot id {fields['id']}")
        seen.add(fields["id"])

    next_id = max(seen, default=0) + 1
    spots: list[ParkingSpot] = []
    for idx, fields in enumerate(normalized):
        if fields["id"] is None:
            fields["id"] = next_id
            next_id += 1
        try:
            spots.append(ParkingSpot.model_validate(fields))
        except ValidationError as e:
            raise DataFormatError(f"{source}: record #{idx} is invalid: {e}") from e

    return LoadResult(spots=spots, source=source)


class SpotSource(Protocol):
    name: str

    def fetch(self) -> Any:
        """Return the raw source document."""


class FileSpotSource:
    def __init__(self, path: str):
        self.path = path
        self.name = path

    def fetch(self) -> Any:
        if not os.path.exists(self.path):
            raise DataSourceError(
                f"Parking data file not found: {self.path}. "
                f"Put a JSON file there or set a source URL."
            )
        with open(self.path, "r", encoding="utf-8") as f:
            try:
                return json.load(f)
            except json.JSONDecodeError as e:
                raise DataFormatError(f"{self.path} is not valid JSON: {e}") from e


class HttpSpotSource:
    def __init__(self, url: str, timeout: float = 10.0):
        self.url = url
        self.timeout = timeout
        self.name = url

    def fetch(self) -> Any:
        try:
            r = requests.get(self.url, headers={"Accept": "application/json"}, timeout=self.timeout)
            r.raise_for_status()
        except requests.RequestException as e:
            raise DataSourceError(f"Fetching {self.url} failed: {e}") from e
        try:
            return r.json()
        except ValueError as e:
            raise DataFormatError(f"{self.url} did not return JSON") from e


def source_from_settings(settings: Settings) -> SpotSource:
    if settings.data_source_url:
        logger.info("Using HTTP parking data source %s", settings.data_source_url)
        return HttpSpotSource(settings.data_source_url, timeout=settings.http_timeout_s)
    return FileSpotSource(settings.data_cache_path)
