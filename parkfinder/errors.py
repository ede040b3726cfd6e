from __future__ import annotations


class ParkFinderError(Exception):
    """Base class for parking finder errors."""


class DataFormatError(ParkFinderError, ValueError):
    """The source payload is not a collection of spot-shaped records."""


class NotFoundError(ParkFinderError, LookupError):
    def __init__(self, spot_id: int):
        super().__init__(f"Parking spot {spot_id} not found")
        self.spot_id = spot_id


class LocationUnavailableError(ParkFinderError, RuntimeError):
    """Geolocation was denied, failed or timed out."""


class DataSourceError(ParkFinderError, OSError):
    """The data source could not be reached or read."""
