import asyncio

import pytest
from pydantic import ValidationError

from parkfinder.errors import DataFormatError, LocationUnavailableError, NotFoundError
from parkfinder.location import FixedLocationProvider
from parkfinder.models import Coordinates, SortKey, SpotCandidate
from parkfinder.presentation import LOAD_ERROR_MESSAGE


class SlowLocationProvider:
    def __init__(self, location: Coordinates, gate: asyncio.Event | None = None, delay: float = 0.0):
        self.location = location
        self.gate = gate
        self.delay = delay

    async def current_position(self) -> Coordinates:
        if self.gate is not None:
            await self.gate.wait()
        if self.delay:
            await asyncio.sleep(self.delay)
        return self.location


class DeniedLocationProvider:
    async def current_position(self) -> Coordinates:
        raise LocationUnavailableError("User denied geolocation")


class BrokenLocationProvider:
    async def current_position(self) -> Coordinates:
        raise OSError("GPS device unplugged")


def test_scenario_sort_by_price_with_location(make_context, scenario_document):
    ctx = make_context(scenario_document)
    asyncio.run(ctx.load())

    ctx.set_user_location(Coordinates(lat=0, lng=0))
    snapshot = ctx.set_sort(SortKey.PRICE)

    assert [v.name for v in snapshot.views] == ["B", "A"]
    assert snapshot.views[0].distance_label == "111.2 km from you"
    assert snapshot.views[1].distance_label == "0.0 km from you"
    assert [m.id for m in ctx.map.markers] == [2, 1]
    assert [c.name for c in ctx.cards.cards] == ["B", "A"]


def test_missing_parking_spots_key_shows_error_panel(make_context, scenario_document):
    ctx = make_context(scenario_document)
    asyncio.run(ctx.load())
    assert len(ctx.map.markers) == 2

    ctx.source.document = {"spots": []}
    with pytest.raises(DataFormatError):
        asyncio.run(ctx.load())

    assert ctx.snapshot.error == LOAD_ERROR_MESSAGE
    assert ctx.map.markers == ()
    assert ctx.cards.cards == ()
    assert ctx.cards.message == LOAD_ERROR_MESSAGE
    assert ctx.slideshow.visible is False
    assert ctx.load_error is not None
    assert [n.level for n in ctx.notifications.drain()] == ["error"]


def test_missing_source_file_is_reported(make_context):
    ctx = make_context()
    with pytest.raises(OSError):
        asyncio.run(ctx.load())
    assert ctx.snapshot.error == LOAD_ERROR_MESSAGE


def test_stale_load_does_not_overwrite_newer_data(make_context, scenario_document):
    ctx = make_context(scenario_document)
    old = {"parkingSpots": [{"id": 1, "name": "Old"}]}
    new = {"parkingSpots": [{"id": 1, "name": "New"}]}

    async def scenario():
        gate = asyncio.Event()
        responses = iter([(gate, old), (None, new)])

        async def fetch():
            wait_for, document = next(responses)
            if wait_for is not None:
                await wait_for.wait()
            return document

        ctx._fetch = fetch
        slow = asyncio.create_task(ctx.load())
        await asyncio.sleep(0)
        await ctx.load()
        gate.set()
        await slow

    asyncio.run(scenario())

    assert [s.name for s in ctx.store.all()] == ["New"]
    assert ctx.cards.cards[0].name == "New"


def test_locate_uses_the_device_position(make_context, scenario_document):
    ctx = make_context(scenario_document)
    asyncio.run(ctx.load())

    fix = asyncio.run(ctx.locate(FixedLocationProvider(Coordinates(lat=0, lng=1))))

    assert fix.is_default is False
    assert ctx.store.user_location == Coordinates(lat=0, lng=1)
    assert ctx.cards.cards[1].distance_label == "0.0 km from you"
    assert ctx.notifications.drain() == []


@pytest.mark.parametrize(
    "provider",
    [DeniedLocationProvider(), BrokenLocationProvider(), SlowLocationProvider(Coordinates(lat=5, lng=5), delay=1.0), None],
)
def test_locate_falls_back_to_the_default_location(make_context, settings, scenario_document, provider):
    ctx = make_context(scenario_document)
    asyncio.run(ctx.load())

    fix = asyncio.run(ctx.locate(provider))

    assert fix.is_default is True
    assert ctx.store.user_location == settings.default_location
    notes = ctx.notifications.drain()
    assert [n.level for n in notes] == ["warning"]


def test_stale_location_fix_is_discarded(make_context, scenario_document):
    ctx = make_context(scenario_document)
    asyncio.run(ctx.load())
    manual = Coordinates(lat=0, lng=1)

    async def scenario():
        gate = asyncio.Event()
        pending = asyncio.create_task(ctx.locate(SlowLocationProvider(Coordinates(lat=9, lng=9), gate=gate)))
        await asyncio.sleep(0)
        ctx.set_user_location(manual)
        gate.set()
        return await pending

    fix = asyncio.run(scenario())

    assert fix.location == Coordinates(lat=9, lng=9)
    assert ctx.store.user_location == manual
    assert ctx.cards.cards[1].distance_label == "0.0 km from you"


def test_crud_refreshes_views_and_notifies(make_context, scenario_document):
    ctx = make_context(scenario_document)
    asyncio.run(ctx.load())

    created = ctx.create_spot(
        SpotCandidate(name="C", destination="Mall", address="Road 1", price=10, capacity=5, lat=0, lng=2)
    )
    assert created.id == 3
    assert [c.id for c in ctx.cards.cards] == [1, 2, 3]
    assert ctx.slideshow.visible is True

    ctx.update_spot(3, {"name": "C2"})
    assert ctx.cards.cards[2].name == "C2"

    assert ctx.delete_spot(3) is True
    assert ctx.delete_spot(3) is False
    assert [c.id for c in ctx.cards.cards] == [1, 2]
    assert ctx.slideshow.visible is False

    levels = [n.level for n in ctx.notifications.drain()]
    assert levels == ["success", "success", "success", "info"]


def test_failed_update_is_reported_without_disturbing_views(make_context, scenario_document):
    ctx = make_context(scenario_document)
    asyncio.run(ctx.load())
    revision = ctx.snapshot.revision

    with pytest.raises(NotFoundError):
        ctx.update_spot(99, {"name": "X"})
    with pytest.raises(ValidationError):
        ctx.update_spot(1, {"price": -1})

    assert ctx.snapshot.revision == revision
    assert [n.level for n in ctx.notifications.drain()] == ["error", "error"]


def test_dispatch_routes_intents_by_action(make_context, scenario_document):
    ctx = make_context(scenario_document)
    asyncio.run(ctx.load())

    assert ctx.dispatch("select", 1).name == "A"
    assert ctx.dispatch("edit", 2).price == 50
    assert ctx.dispatch("delete", 2) is True
    assert len(ctx.store) == 1

    with pytest.raises(ValueError):
        ctx.dispatch("launch", 1)
    with pytest.raises(NotFoundError):
        ctx.dispatch("select", 2)


def test_categories(make_context, nairobi_document):
    ctx = make_context(nairobi_document)
    asyncio.run(ctx.load())
    assert ctx.categories() == ["garage", "lot", "street"]


def test_create_rejecting_a_bad_record_notifies_and_keeps_views(make_context, scenario_document):
    ctx = make_context(scenario_document)
    asyncio.run(ctx.load())
    revision = ctx.snapshot.revision

    with pytest.raises(ValidationError):
        ctx.create_spot({"name": "X", "capacity": 5, "available": 10})

    assert len(ctx.store) == 2
    assert ctx.snapshot.revision == revision
    assert [n.level for n in ctx.notifications.drain()] == ["error"]


def test_candidate_rejects_more_available_than_capacity():
    with pytest.raises(ValidationError):
        SpotCandidate(name="X", destination="Mall", address="Road 1", price=10, capacity=5, available=10, lat=0, lng=0)
