from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class Coordinates(BaseModel):
    lat: float
    lng: float


class Amenities(BaseModel):
    security: bool = False
    covered: bool = False
    ev_charging: bool = False
    accessible: bool = False


class ParkingSpot(BaseModel):
    id: int
    name: str
    destination: str | None = None
    address: str | None = None
    type: str | None = None
    price: float | None = Field(default=None, ge=0)
    capacity: int | None = Field(default=None, ge=0)
    available: int | None = Field(default=None, ge=0)
    coordinates: Coordinates | None = None
    # Static distance supplied by the data source, e.g. "1.2 km"
    distance: str | float | None = None
    amenities: Amenities = Field(default_factory=Amenities)
    operating_hours: str | None = None
    payment_methods: list[str] = Field(default_factory=list)
    image: str | None = None

    @model_validator(mode="after")
    def _available_within_capacity(self) -> "ParkingSpot":
        if self.available is not None and self.capacity is not None and self.available > self.capacity:
            raise ValueError(f"available ({self.available}) exceeds capacity ({self.capacity})")
        return self


class SpotCandidate(BaseModel):
    """A record submitted by the edit form, before it reaches the store."""

    name: str
    destination: str
    address: str
    type: str | None = None
    price: float = Field(ge=0)
    capacity: int = Field(ge=0)
    available: int | None = Field(default=None, ge=0)
    lat: float
    lng: float
    security: bool = False
    covered: bool = False
    ev_charging: bool = False
    accessible: bool = False
    distance: str | None = None
    operating_hours: str | None = None
    payment_methods: list[str] = Field(default_factory=list)
    image: str | None = None

    @field_validator("name", "destination", "address")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("must not be blank")
        return value

    @model_validator(mode="after")
    def _available_within_capacity(self) -> "SpotCandidate":
        if self.available is not None and self.available > self.capacity:
            raise ValueError(f"available ({self.available}) exceeds capacity ({self.capacity})")
        return self

    def to_fields(self) -> dict:
        return {
            "name": self.name,
            "destination": self.destination,
            "address": self.address,
            "type": self.type,
            "price": self.price,
            "capacity": self.capacity,
            "available": self.capacity if self.available is None else self.available,
            "coordinates": {"lat": self.lat, "lng": self.lng},
            "distance": self.distance,
            "amenities": {
                "security": self.security,
                "covered": self.covered,
                "ev_charging": self.ev_charging,
                "accessible": self.accessible,
            },
            "operating_hours": self.operating_hours,
            "payment_methods": list(self.payment_methods),
            "image": self.image,
        }


class AmenitiesUpdate(BaseModel):
    security: bool | None = None
    covered: bool | None = None
    ev_charging: bool | None = None
    accessible: bool | None = None


class SpotUpdate(BaseModel):
    name: str | None = None
    destination: str | None = None
    address: str | None = None
    type: str | None = None
    price: float | None = Field(default=None, ge=0)
    capacity: int | None = Field(default=None, ge=0)
    available: int | None = Field(default=None, ge=0)
    coordinates: Coordinates | None = None
    distance: str | float | None = None
    amenities: AmenitiesUpdate | None = None
    operating_hours: str | None = None
    payment_methods: list[str] | None = None
    image: str | None = None

    def to_fields(self) -> dict:
        return self.model_dump(exclude_unset=True)


class SortKey(str, Enum):
    DISTANCE = "distance"
    PRICE = "price"
    NAME = "name"
    # Insertion order, as the records came from the source
    DEFAULT = "default"


class ViewState(BaseModel):
    filter: str = "all"
    sort: SortKey = SortKey.DEFAULT
    slide_index: int = 0


class SpotView(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    name: str
    destination: str | None = None
    address: str | None = None
    type: str | None = None
    type_label: str
    price: float | None = None
    price_label: str
    capacity: int | None = None
    available: int | None = None
    availability_label: str
    coordinates: Coordinates | None = None
    resolved_distance: float | None = None
    distance_computed: bool = False
    distance_label: str
    amenity_tags: tuple[str, ...] = ()
    image: str


class MarkerDescriptor(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    lat: float
    lng: float
    icon_label: str


class MapViewport(BaseModel):
    model_config = ConfigDict(frozen=True)

    south: float
    west: float
    north: float
    east: float


class SpotDetail(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    name: str
    type_label: str
    price_label: str
    availability_label: str
    address: str | None = None
    destination: str | None = None
    distance_label: str
    amenity_tags: tuple[str, ...] = ()
    operating_hours: str | None = None
    payment_methods: tuple[str, ...] = ()
    image: str


class PresentationSnapshot(BaseModel):
    """Everything the map, the card list and the slideshow render from."""

    model_config = ConfigDict(frozen=True)

    revision: int = 0
    filter: str = "all"
    sort: SortKey = SortKey.DEFAULT
    views: tuple[SpotView, ...] = ()
    markers: tuple[MarkerDescriptor, ...] = ()
    viewport: MapViewport | None = None
    featured: tuple[SpotView, ...] = ()
    slideshow_visible: bool = False
    slide_index: int = 0
    empty: bool = False
    message: str | None = None
    error: str | None = None

    @property
    def current_slide(self) -> SpotView | None:
        if not self.slideshow_visible:
            return None
        return self.featured[self.slide_index]


class LocationUpdate(Coordinates):
    pass


class ViewUpdate(BaseModel):
    filter: str | None = None
    sort: SortKey | None = None


class Notification(BaseModel):
    level: str
    message: str
