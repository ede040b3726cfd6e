from __future__ import annotations

import logging
from enum import Enum
from typing import Protocol

from parkfinder.filtering import FilterSortEngine
from parkfinder.models import PresentationSnapshot, SortKey, SpotView, ViewState
from parkfinder.store import SpotStore
from parkfinder.view_model import ViewModelBuilder

logger = logging.getLogger(__name__)

NO_RESULTS_MESSAGE = "No parking spots found matching your criteria."
LOAD_ERROR_MESSAGE = "Unable to load parking data. Please try again later."


class SyncState(str, Enum):
    IDLE = "idle"
    REFRESHING = "refreshing"


class PresentationTarget(Protocol):
    def render(self, snapshot: PresentationSnapshot) -> None: ...


class MapTarget:
    """Keeps the marker list and viewport the map widget was last given."""

    def __init__(self) -> None:
        self.markers = ()
        self.viewport = None
        self.revision = -1

    def render(self, snapshot: PresentationSnapshot) -> None:
        self.markers = snapshot.markers
        self.viewport = snapshot.viewport
        self.revision = snapshot.revision


class CardListTarget:
    def __init__(self) -> None:
        self.cards: tuple[SpotView, ...] = ()
        self.message: str | None = None
        self.revision = -1

    def render(self, snapshot: PresentationSnapshot) -> None:
        self.cards = snapshot.views
        self.message = snapshot.error or snapshot.message
        self.revision = snapshot.revision


class SlideshowTarget:
    def __init__(self) -> None:
        self.slides: tuple[SpotView, ...] = ()
        self.index = 0
        self.visible = False
        self.revision = -1

    def render(self, snapshot: PresentationSnapshot) -> None:
        self.slides = snapshot.featured
        self.index = snapshot.slide_index
        self.visible = snapshot.slideshow_visible
        self.revision = snapshot.revision


class PresentationSync:
    """Re-derives the view list and pushes it to every presentation target.

    Every target receives the same frozen snapshot, built completely before
    the first target is touched. A refresh requested while one is running is
    folded into one extra pass once the current pass has published. After
    publish_error the error panel stays up until resume() is called.
    """

    def __init__(
        self,
        store: SpotStore,
        targets: list[PresentationTarget] | None = None,
        engine: FilterSortEngine | None = None,
        builder: ViewModelBuilder | None = None,
        featured_count: int = 3,
    ):
        self.store = store
        self.targets: list[PresentationTarget] = list(targets or [])
        self.engine = engine or FilterSortEngine()
        self.builder = builder or ViewModelBuilder()
        self.featured_count = featured_count
        self.view_state = ViewState()
        self.state = SyncState.IDLE
        self._pending = False
        self._halted = False
        self._revision = 0
        self.snapshot = PresentationSnapshot()

    def add_target(self, target: PresentationTarget) -> None:
        self.targets.append(target)
        target.render(self.snapshot)

    def _build(self) -> PresentationSnapshot:
        reference = self.store.user_location
        ordered = self.engine.apply(
            self.store.all(),
            category=self.view_state.filter,
            sort_key=self.view_state.sort,
            reference=reference,
        )
        views = tuple(self.builder.build(ordered, reference))
        markers = tuple(self.builder.markers(views))

        featured: tuple[SpotView, ...] = ()
        if len(views) >= self.featured_count:
            featured = views[: self.featured_count]
        index = self.view_state.slide_index % len(featured) if featured else 0
        self.view_state.slide_index = index

        self._revision += 1
        return PresentationSnapshot(
            revision=self._revision,
            filter=self.view_state.filter,
            sort=self.view_state.sort,
            views=views,
            markers=markers,
            viewport=self.builder.map_viewport(markers),
            featured=featured,
            slideshow_visible=bool(featured),
            slide_index=index,
            empty=not views,
            message=NO_RESULTS_MESSAGE if not views else None,
        )

    def _publish(self, snapshot: PresentationSnapshot) -> None:
        self.snapshot = snapshot
        for target in self.targets:
            target.render(snapshot)

    def refresh(self) -> PresentationSnapshot:
        if self._halted:
            return self.snapshot
        if self.state is SyncState.REFRESHING:
            self._pending = True
            return self.snapshot

        self.state = SyncState.REFRESHING
        try:
            self._pending = True
            while self._pending:
                self._pending = False
                self._publish(self._build())
        finally:
            self.state = SyncState.IDLE
        logger.debug(
            "Published revision %d with %d spots", self.snapshot.revision, len(self.snapshot.views)
        )
        return self.snapshot

    def publish_error(self, message: str = LOAD_ERROR_MESSAGE) -> PresentationSnapshot:
        self._halted = True
        self._revision += 1
        self.view_state.slide_index = 0
        snapshot = PresentationSnapshot(
            revision=self._revision,
            filter=self.view_state.filter,
            sort=self.view_state.sort,
            error=message,
        )
        self._publish(snapshot)
        return snapshot

    def resume(self) -> None:
        self._halted = False

    def set_filter(self, category: str) -> PresentationSnapshot:
        self.view_state.filter = category
        return self.refresh()

    def set_sort(self, sort_key: SortKey | str) -> PresentationSnapshot:
        self.view_state.sort = SortKey(sort_key)
        return self.refresh()

    def _rotate(self, step: int) -> PresentationSnapshot:
        count = len(self.snapshot.featured)
        if count <= 1:
            return self.snapshot
        index = (self.snapshot.slide_index + step) % count
        self.view_state.slide_index = index
        self._revision += 1
        self._publish(self.snapshot.model_copy(update={"slide_index": index, "revision": self._revision}))
        return self.snapshot

    def show_next(self) -> PresentationSnapshot:
        return self._rotate(1)

    def show_previous(self) -> PresentationSnapshot:
        return self._rotate(-1)
