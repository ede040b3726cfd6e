from __future__ import annotations

import logging
from typing import Any

from pydantic import ValidationError

from parkfinder.data_loader import parse_document
from parkfinder.errors import NotFoundError
from parkfinder.models import Coordinates, ParkingSpot, SpotCandidate

logger = logging.getLogger(__name__)

# Nested models merged key-by-key on update instead of being replaced
_NESTED_FIELDS = ("amenities", "coordinates")


class SpotStore:
    """Canonical in-memory collection of parking spots plus the user's location.

    Records are kept in insertion order. Distances are never stored on the
    records; ``location_revision`` changes every time the location does, so
    anything derived from an older location can be recognised as stale.
    """

    def __init__(self, spots: list[ParkingSpot] | None = None):
        self._spots: dict[int, ParkingSpot] = {}
        self._user_location: Coordinates | None = None
        self.location_revision = 0
        if spots:
            self._replace(spots)

    def _replace(self, spots: list[ParkingSpot]) -> None:
        by_id: dict[int, ParkingSpot] = {}
        for spot in spots:
            if spot.id in by_id:
                raise ValueError(f"Duplicate spot id {spot.id}")
            by_id[spot.id] = spot
        self._spots = by_id

    def load_all(self, document: Any, source: str = "<memory>") -> list[ParkingSpot]:
        """Replace the whole collection from a source document.

        Raises DataFormatError and leaves the current collection untouched
        when the document is malformed.
        """
        result = parse_document(document, source=source)
        self._replace(result.spots)
        logger.info("Loaded %d parking spots from %s", len(result.spots), result.source)
        return self.all()

    def all(self) -> list[ParkingSpot]:
        return list(self._spots.values())

    def get(self, spot_id: int) -> ParkingSpot:
        try:
            return self._spots[spot_id]
        except KeyError:
            raise NotFoundError(spot_id) from None

    def __len__(self) -> int:
        return len(self._spots)

    def next_id(self) -> int:
        return max(self._spots, default=0) + 1

    def create(self, candidate: SpotCandidate | dict) -> ParkingSpot:
        fields = candidate.to_fields() if isinstance(candidate, SpotCandidate) else dict(candidate)
        fields["id"] = self.next_id()
        spot = ParkingSpot.model_validate(fields)
        self._spots[spot.id] = spot
        logger.info("Created parking spot %d (%s)", spot.id, spot.name)
        return spot

    def update(self, spot_id: int, fields: dict) -> ParkingSpot:
        current = self.get(spot_id)
        merged = current.model_dump()
        for key, value in fields.items():
            if key == "id":
                continue
            if key in _NESTED_FIELDS and isinstance(value, dict) and isinstance(merged.get(key), dict):
                merged[key] = {**merged[key], **{k: v for k, v in value.items() if v is not None}}
            else:
                merged[key] = value
        try:
            spot = ParkingSpot.model_validate(merged)
        except ValidationError:
            logger.warning("Rejected update of parking spot %d", spot_id)
            raise
        self._spots[spot_id] = spot
        return spot

    def delete(self, spot_id: int) -> bool:
        removed = self._spots.pop(spot_id, None)
        if removed is None:
            return False
        logger.info("Deleted parking spot %d", spot_id)
        return True

    @property
    def user_location(self) -> Coordinates | None:
        return self._user_location

    def set_user_location(self, location: Coordinates | None) -> None:
        self._user_location = location
        self.location_revision += 1
