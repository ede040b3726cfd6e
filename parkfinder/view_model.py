from __future__ import annotations

from typing import Iterable

from parkfinder.geo import haversine_km
from parkfinder.models import (
    Coordinates,
    MapViewport,
    MarkerDescriptor,
    ParkingSpot,
    SpotDetail,
    SpotView,
)

UNKNOWN_DISTANCE = "unknown"

# Display order is fixed so cards and details always list tags the same way
AMENITY_TAGS: tuple[tuple[str, str], ...] = (
    ("security", "Security"),
    ("covered", "Covered"),
    ("ev_charging", "EV Charging"),
    ("accessible", "Accessible"),
)


def amenity_tags(spot: ParkingSpot) -> tuple[str, ...]:
    return tuple(label for field, label in AMENITY_TAGS if getattr(spot.amenities, field, False))


def _format_number(v: float) -> str:
    return f"{v:g}"


class ViewModelBuilder:
    def __init__(self, currency_label: str = "KSH", fallback_image: str = "images/parking-placeholder.jpg"):
        self.currency_label = currency_label
        self.fallback_image = fallback_image

    def _distance(self, spot: ParkingSpot, reference: Coordinates | None) -> tuple[float | None, bool, str]:
        if reference is not None and spot.coordinates is not None:
            d = haversine_km(reference, spot.coordinates)
            return d, True, f"{d:.1f} km from you"

        static = spot.distance
        if isinstance(static, str) and static.strip():
            return None, False, static
        if isinstance(static, (int, float)):
            return float(static), False, f"{_format_number(static)} km"
        return None, False, UNKNOWN_DISTANCE

    def _price_label(self, spot: ParkingSpot) -> str:
        if spot.price is None:
            return "N/A"
        return f"{self.currency_label} {_format_number(spot.price)}/HR"

    @staticmethod
    def _availability_label(spot: ParkingSpot) -> str:
        if spot.available is not None and spot.capacity is not None:
            return f"{spot.available}/{spot.capacity} SPACES"
        if spot.capacity is not None:
            return f"{spot.capacity} SPACES"
        if spot.available is not None:
            return f"{spot.available} AVAILABLE"
        return "N/A"

    def view(self, spot: ParkingSpot, reference: Coordinates | None) -> SpotView:
        resolved, computed, label = self._distance(spot, reference)
        return SpotView(
            id=spot.id,
            name=spot.name,
            destination=spot.destination,
            address=spot.address,
            type=spot.type,
            type_label=(spot.type or "unspecified").upper(),
            price=spot.price,
            price_label=self._price_label(spot),
            capacity=spot.capacity,
            available=spot.available,
            availability_label=self._availability_label(spot),
            coordinates=spot.coordinates,
            resolved_distance=resolved,
            distance_computed=computed,
            distance_label=label,
            amenity_tags=amenity_tags(spot),
            image=(spot.image or "").strip() or self.fallback_image,
        )

    def build(self, ordered: Iterable[ParkingSpot], reference: Coordinates | None) -> list[SpotView]:
        """Views in the given order, each with a distance label for ``reference``."""
        return [self.view(spot, reference) for spot in ordered]

    @staticmethod
    def markers(views: Iterable[SpotView]) -> list[MarkerDescriptor]:
        # Spots without coordinates are listed but never mapped
        return [
            MarkerDescriptor(
                id=v.id,
                lat=v.coordinates.lat,
                lng=v.coordinates.lng,
                icon_label=str(v.available) if v.available is not None else "P",
            )
            for v in views
            if v.coordinates is not None
        ]

    @staticmethod
    def map_viewport(markers: Iterable[MarkerDescriptor], pad: float = 0.2) -> MapViewport | None:
        markers = list(markers)
        if not markers:
            return None
        south = min(m.lat for m in markers)
        north = max(m.lat for m in markers)
        west = min(m.lng for m in markers)
        east = max(m.lng for m in markers)
        lat_buffer = (north - south) * pad
        lng_buffer = (east - west) * pad
        return MapViewport(
            south=south - lat_buffer,
            west=west - lng_buffer,
            north=north + lat_buffer,
            east=east + lng_buffer,
        )

    def detail(self, spot: ParkingSpot, reference: Coordinates | None) -> SpotDetail:
        v = self.view(spot, reference)
        return SpotDetail(
            id=v.id,
            name=v.name,
            type_label=v.type_label,
            price_label=v.price_label,
            availability_label=v.availability_label,
            address=v.address,
            destination=v.destination,
            distance_label=v.distance_label,
            amenity_tags=v.amenity_tags,
            operating_hours=spot.operating_hours,
            payment_methods=tuple(spot.payment_methods),
            image=v.image,
        )
