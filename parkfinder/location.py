from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Protocol

from parkfinder.errors import LocationUnavailableError
from parkfinder.models import Coordinates

logger = logging.getLogger(__name__)


class LocationProvider(Protocol):
    async def current_position(self) -> Coordinates:
        """Return the device position or raise LocationUnavailableError."""


class FixedLocationProvider:
    def __init__(self, location: Coordinates):
        self.location = location

    async def current_position(self) -> Coordinates:
        return self.location


class UnavailableLocationProvider:
    """A device that never reports a position (permission denied)."""

    def __init__(self, reason: str = "User denied geolocation"):
        self.reason = reason

    async def current_position(self) -> Coordinates:
        raise LocationUnavailableError(self.reason)


@dataclass(frozen=True)
class LocationFix:
    location: Coordinates
    is_default: bool
    reason: str | None = None


async def resolve_location(
    provider: LocationProvider,
    default: Coordinates,
    timeout_s: float = 10.0,
) -> LocationFix:
    """Ask ``provider`` for a position, falling back to ``default``.

    Never raises for denial, timeout or provider failure: startup must not block on geolocation.
    """
    try:
        location = await asyncio.wait_for(provider.current_position(), timeout=timeout_s)
    except asyncio.TimeoutError:
        logger.warning("Geolocation timed out after %.1fs, using default location", timeout_s)
        return LocationFix(location=default, is_default=True, reason="Location request timed out")
    except LocationUnavailableError as e:
        logger.warning("Geolocation unavailable (%s), using default location", e)
        return LocationFix(location=default, is_default=True, reason=str(e))
    except Exception as e:
        logger.warning("Geolocation provider failed (%r), using default location", e)
        return LocationFix(location=default, is_default=True, reason="Location unavailable")
    return LocationFix(location=location, is_default=False)
