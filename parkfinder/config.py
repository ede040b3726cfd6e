from __future__ import annotations

import os

from pydantic import BaseModel, Field

from parkfinder.models import Coordinates


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


class Settings(BaseModel):
    # If the spots are served over HTTP (e.g. the backend/ data source), put its URL here.
    # Otherwise we load the local fixture file.
    data_source_url: str | None = Field(
        default_factory=lambda: os.getenv("PARKFINDER_DATA_SOURCE_URL", "").strip() or None
    )

    # Local fixture path, a JSON document shaped {"parkingSpots": [...]}
    data_cache_path: str = Field(
        default_factory=lambda: os.getenv("PARKFINDER_DATA_PATH", "data/parking_spots.json")
    )
    http_timeout_s: float = Field(default_factory=lambda: _env_float("PARKFINDER_HTTP_TIMEOUT_S", 10.0))

    # Used whenever the device location is denied or times out (Nairobi CBD)
    default_location: Coordinates = Coordinates(lat=-1.286389, lng=36.817223)
    default_zoom: int = 13
    geolocation_timeout_s: float = Field(
        default_factory=lambda: _env_float("PARKFINDER_GEOLOCATION_TIMEOUT_S", 10.0)
    )

    featured_count: int = Field(default=3, ge=1)
    currency_label: str = "KSH"
    fallback_image: str = "images/parking-placeholder.jpg"


settings = Settings()
