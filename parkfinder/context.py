from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable

from pydantic import ValidationError

from parkfinder.config import Settings
from parkfinder.data_loader import SpotSource, source_from_settings
from parkfinder.errors import DataFormatError, DataSourceError, NotFoundError
from parkfinder.location import LocationFix, LocationProvider, UnavailableLocationProvider, resolve_location
from parkfinder.models import (
    Coordinates,
    Notification,
    ParkingSpot,
    PresentationSnapshot,
    SortKey,
    SpotCandidate,
    SpotDetail,
)
from parkfinder.presentation import (
    LOAD_ERROR_MESSAGE,
    CardListTarget,
    MapTarget,
    PresentationSync,
    SlideshowTarget,
)
from parkfinder.store import SpotStore
from parkfinder.theme import KeyValueStore, MemoryKeyValueStore, ThemePreference
from parkfinder.view_model import ViewModelBuilder

logger = logging.getLogger(__name__)


class NotificationCenter:
    """Collects transient toasts until the UI drains them."""

    def __init__(self) -> None:
        self._pending: list[Notification] = []

    def notify(self, message: str, level: str = "info") -> None:
        logger.debug("Notification [%s]: %s", level, message)
        self._pending.append(Notification(level=level, message=message))

    def drain(self) -> list[Notification]:
        pending, self._pending = self._pending, []
        return pending


class AppContext:
    """Explicitly constructed application state: store, views, theme, toasts.

    Async loads and location requests each take a token when issued; a result
    is committed only if no newer request of the same kind was issued since,
    so a late response can never overwrite newer state.
    """

    def __init__(
        self,
        settings: Settings,
        source: SpotSource | None = None,
        location_provider: LocationProvider | None = None,
        preferences: KeyValueStore | None = None,
        system_prefers_dark: bool | None = None,
    ):
        self.settings = settings
        self.source = source or source_from_settings(settings)
        self.location_provider = location_provider
        self.store = SpotStore()
        self.map = MapTarget()
        self.cards = CardListTarget()
        self.slideshow = SlideshowTarget()
        self.sync = PresentationSync(
            self.store,
            targets=[self.map, self.cards, self.slideshow],
            builder=ViewModelBuilder(settings.currency_label, settings.fallback_image),
            featured_count=settings.featured_count,
        )
        self.notifications = NotificationCenter()
        self.theme = ThemePreference(preferences or MemoryKeyValueStore(), system_prefers_dark)
        self.load_error: str | None = None
        self._load_token = 0
        self._location_token = 0
        self._actions: dict[str, Callable[[int], Any]] = {
            "select": self.spot_detail,
            "details": self.spot_detail,
            "edit": self.store.get,
            "delete": self.delete_spot,
        }

    @property
    def snapshot(self) -> PresentationSnapshot:
        return self.sync.snapshot

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    async def _fetch(self) -> Any:
        return await asyncio.to_thread(self.source.fetch)

    async def load(self) -> list[ParkingSpot]:
        """Replace the collection from the data source and refresh every view.

        Raises DataFormatError/DataSourceError after publishing the error
        panel. A load superseded by a newer one is discarded.
        """
        self._load_token += 1
        token = self._load_token
        try:
            document = await self._fetch()
            if token != self._load_token:
                logger.info("Discarding stale load from %s", self.source.name)
                return self.store.all()
            spots = self.store.load_all(document, source=self.source.name)
        except (DataFormatError, DataSourceError) as e:
            if token != self._load_token:
                logger.info("Ignoring failure of superseded load: %s", e)
                return self.store.all()
            logger.error("Error loading parking data: %s", e)
            self.load_error = str(e)
            self.sync.publish_error(LOAD_ERROR_MESSAGE)
            self.notifications.notify(LOAD_ERROR_MESSAGE, "error")
            raise

        self.load_error = None
        self.sync.resume()
        self.sync.refresh()
        return spots

    # ------------------------------------------------------------------
    # Location
    # ------------------------------------------------------------------

    def set_user_location(self, location: Coordinates) -> PresentationSnapshot:
        # A location set directly supersedes any request still in flight
        self._location_token += 1
        return self._commit_location(location)

    def _commit_location(self, location: Coordinates) -> PresentationSnapshot:
        self.store.set_user_location(location)
        return self.sync.refresh()

    async def locate(self, provider: LocationProvider | None = None) -> LocationFix:
        provider = provider or self.location_provider or UnavailableLocationProvider(
            "No location provider configured"
        )
        self._location_token += 1
        token = self._location_token

        fix = await resolve_location(
            provider,
            default=self.settings.default_location,
            timeout_s=self.settings.geolocation_timeout_s,
        )
        if token != self._location_token:
            logger.info("Discarding stale location fix %s", fix.location)
            return fix

        if fix.is_default:
            self.notifications.notify(f"{fix.reason}. Showing distances from the city centre.", "warning")
        self._commit_location(fix.location)
        return fix

    # ------------------------------------------------------------------
    # View state
    # ------------------------------------------------------------------

    def set_filter(self, category: str) -> PresentationSnapshot:
        return self.sync.set_filter(category)

    def set_sort(self, sort_key: SortKey | str) -> PresentationSnapshot:
        return self.sync.set_sort(sort_key)

    def show_next(self) -> PresentationSnapshot:
        return self.sync.show_next()

    def show_previous(self) -> PresentationSnapshot:
        return self.sync.show_previous()

    def categories(self) -> list[str]:
        return self.sync.engine.categories(self.store.all())

    # ------------------------------------------------------------------
    # CRUD
    # ------------------------------------------------------------------

    def create_spot(self, candidate: SpotCandidate | dict) -> ParkingSpot:
        try:
            spot = self.store.create(candidate)
        except ValidationError:
            self.notifications.notify("Could not add parking spot", "error")
            raise
        self.sync.refresh()
        self.notifications.notify(f"Added {spot.name}", "success")
        return spot

    def update_spot(self, spot_id: int, fields: dict) -> ParkingSpot:
        try:
            spot = self.store.update(spot_id, fields)
        except NotFoundError as e:
            self.notifications.notify(str(e), "error")
            raise
        except ValidationError:
            self.notifications.notify(f"Could not update parking spot {spot_id}", "error")
            raise
        self.sync.refresh()
        self.notifications.notify(f"Updated {spot.name}", "success")
        return spot

    def delete_spot(self, spot_id: int) -> bool:
        removed = self.store.delete(spot_id)
        if removed:
            self.sync.refresh()
            self.notifications.notify(f"Deleted parking spot {spot_id}", "success")
        else:
            self.notifications.notify(f"Parking spot {spot_id} was already removed", "info")
        return removed

    def spot_detail(self, spot_id: int) -> SpotDetail:
        return self.sync.builder.detail(self.store.get(spot_id), self.store.user_location)

    # ------------------------------------------------------------------
    # Intents from the map and the cards
    # ------------------------------------------------------------------

    def dispatch(self, action: str, spot_id: int) -> Any:
        try:
            handler = self._actions[action]
        except KeyError:
            raise ValueError(f"Unknown action: {action}") from None
        return handler(spot_id)
