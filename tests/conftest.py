import json
from pathlib import Path

import pytest

from parkfinder.config import Settings
from parkfinder.context import AppContext


class StaticSource:
    """In-memory data source returning a fixed document."""

    def __init__(self, document, name="static"):
        self.document = document
        self.name = name
        self.calls = 0

    def fetch(self):
        self.calls += 1
        return self.document


@pytest.fixture
def scenario_document() -> dict:
    return {
        "parkingSpots": [
            {"id": 1, "name": "A", "price": 100, "coordinates": {"lat": 0, "lng": 0}},
            {"id": 2, "name": "B", "price": 50, "coordinates": {"lat": 0, "lng": 1}},
        ]
    }


@pytest.fixture
def nairobi_document() -> dict:
    fixture = Path(__file__).resolve().parent.parent / "data" / "parking_spots.json"
    return json.loads(fixture.read_text(encoding="utf-8"))


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(
        data_source_url=None,
        data_cache_path=str(tmp_path / "missing.json"),
        geolocation_timeout_s=0.05,
    )


@pytest.fixture
def make_context(settings: Settings):
    def _make(document=None, **kwargs) -> AppContext:
        source = StaticSource(document) if document is not None else None
        return AppContext(settings, source=source, **kwargs)

    return _make
