import asyncio
import datetime
import os
import sys

import pytest

sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from default_range import years_before
from errors import Forbidden, NotFound, TransportFailure, Unauthenticated
from fakes import ScriptedClient, make_workout
from models import Workout, WorkoutSet
from queries import DateRange, Paginated, SingleDate
from settings_schema import ClientSettings
from workouts_view import WorkoutsView

TODAY = datetime.date.today()


def at(day: datetime.date, hour: int = 12) -> datetime.datetime:
    return datetime.datetime.combine(day, datetime.time(hour, 0))


def recent_week():
    return [
        make_workout(1, at(TODAY - datetime.timedelta(days=6)), notes="pull"),
        make_workout(2, at(TODAY - datetime.timedelta(days=3)), sets=[(1, "Bench Press", 90, 5)]),
        make_workout(3, at(TODAY - datetime.timedelta(days=1)), notes="legs", sets=[(2, "Squat", 120, 5)]),
    ]


def make_view(workouts=None, **settings):
    client = ScriptedClient(workouts if workouts is not None else recent_week())
    view = WorkoutsView(client, ClientSettings(**settings))
    return client, view


@pytest.mark.asyncio
async def test_initial_refresh_shows_first_page():
    client, view = make_view()
    await view.refresh()
    assert view.descriptor == Paginated(0, 10)
    assert view.shown == Paginated(0, 10)
    assert [w.id for w in view.records] == [3, 2, 1]
    assert view.total_elements == 3
    assert view.page_count == 1
    assert view.is_loading is False
    assert view.error is None
    assert client.calls == [("list_page", 0, 10)]


@pytest.mark.asyncio
async def test_default_range_then_back_to_cached_first_page():
    client, view = make_view()
    await view.refresh()
    latest = TODAY - datetime.timedelta(days=1)
    start = years_before(latest, 1)
    assert view.range_defaults == (start, latest)
    # setting the defaults is not a filter change
    assert view.descriptor == Paginated(0, 10)
    assert client.count("list_page") == 1
    assert client.count("list_between") == 0

    await view.select_range()
    assert view.descriptor == DateRange(start, latest)
    assert client.calls[-1] == ("list_between", start, latest)
    assert len(view.records) == 3

    await view.clear_filters()
    assert view.descriptor == Paginated(0, 10)
    assert client.count("list_page") == 1
    assert [w.id for w in view.records] == [3, 2, 1]


@pytest.mark.asyncio
async def test_default_range_fires_once():
    client, view = make_view(page_size=2)
    await view.refresh()
    first = view.range_defaults
    client.workouts.append(make_workout(9, at(TODAY)))
    await view.show_page(1)
    assert view.range_defaults == first
    assert view.range_initializer.fired


@pytest.mark.asyncio
async def test_empty_listing_leaves_range_unset():
    _client, view = make_view([])
    await view.refresh()
    assert view.range_defaults is None
    assert view.records == []
    await view.select_range()
    assert view.error is not None
    assert view.error.kind == "validation"


@pytest.mark.asyncio
async def test_late_response_cached_but_not_shown():
    day_a = TODAY - datetime.timedelta(days=6)
    client, view = make_view()
    gate = client.gate("list_on", day_a)
    task_a = asyncio.create_task(view.select_day(day_a))
    await asyncio.sleep(0)
    assert view.is_loading

    start = TODAY - datetime.timedelta(days=3)
    await view.select_range(start, TODAY)
    assert [w.id for w in view.records] == [3, 2]

    gate.set()
    await task_a
    assert view.descriptor == DateRange(start, TODAY)
    assert [w.id for w in view.records] == [3, 2]
    assert [w.id for w in view.cache.entry(SingleDate(day_a)).data] == [1]

    calls = len(client.calls)
    await view.select_day(day_a)
    assert len(client.calls) == calls
    assert [w.id for w in view.records] == [1]


@pytest.mark.asyncio
async def test_same_descriptor_requests_are_deduplicated():
    client, view = make_view()
    gate = client.gate("list_page", 0, 10)
    first = asyncio.create_task(view.refresh())
    second = asyncio.create_task(view.refresh())
    await asyncio.sleep(0)
    gate.set()
    await asyncio.gather(first, second)
    assert client.count("list_page") == 1
    assert len(view.records) == 3


@pytest.mark.asyncio
async def test_delete_removes_record_from_active_day():
    workouts = recent_week() + [
        make_workout(42, at(TODAY, 7), notes="morning"),
        make_workout(43, at(TODAY, 19), notes="evening"),
    ]
    client, view = make_view(workouts)
    await view.select_day(TODAY)
    assert sorted(w.id for w in view.records) == [42, 43]

    assert await view.delete(42, confirmed=True) is True
    assert view.descriptor == SingleDate(TODAY)
    assert [w.id for w in view.records] == [43]
    assert client.count("list_on") == 2


@pytest.mark.asyncio
async def test_update_is_visible_after_refresh():
    client, view = make_view()
    await view.refresh()
    target = view.records[0].model_copy(update={"notes": "deload week"})
    updated = await view.update(target.id, target)
    assert updated.notes == "deload week"
    assert view.records[0].notes == "deload week"
    assert client.count("list_page") == 2


@pytest.mark.asyncio
async def test_create_is_visible_and_resets_page():
    client, view = make_view(page_size=2)
    await view.refresh()
    await view.show_page(1)
    assert view.filters.page == 1
    assert view.page_count == 2

    created = await view.create(make_workout(None, at(TODAY), notes="new"))
    assert created is not None
    assert view.filters.page == 0
    assert view.records[0].notes == "new"


@pytest.mark.asyncio
async def test_page_kept_after_mutation_when_configured():
    _client, view = make_view(page_size=2, reset_page_after_mutation=False)
    await view.refresh()
    await view.show_page(1)
    await view.delete(1, confirmed=True)
    assert view.filters.page == 1
    assert view.records == []
    assert view.total_elements == 2


@pytest.mark.asyncio
async def test_page_change_inert_while_day_selected():
    client, view = make_view()
    await view.select_day(TODAY)
    calls = len(client.calls)
    await view.show_page(3)
    assert view.descriptor == SingleDate(TODAY)
    assert view.filters.page == 0
    assert len(client.calls) == calls


@pytest.mark.asyncio
async def test_search_is_debounced_and_follows_source():
    client, view = make_view(search_debounce_ms=20)
    await view.refresh()
    view.set_search_term("be")
    view.set_search_term("bench")
    assert len(view.records) == 3
    await asyncio.sleep(0.08)
    assert view.applied_term == "bench"
    assert [w.id for w in view.records] == [2]

    client.workouts.append(make_workout(5, at(TODAY), notes="bench the decision"))
    view.cache.invalidate()
    await view.refresh()
    assert [w.id for w in view.records] == [5, 2]
    assert len(view.source_records) == 4
    view.close()


@pytest.mark.asyncio
async def test_catalog_loaded_once_and_used_for_search():
    client, view = make_view([make_workout(1, at(TODAY), sets=[(2, None, 100, 5)])])
    await view.load_catalog()
    await view.load_catalog()
    assert client.count("list_exercises") == 1
    await view.refresh()
    view.set_search_term("squat")
    view.flush_search()
    assert [w.id for w in view.records] == [1]


@pytest.mark.asyncio
async def test_catalog_ids_validate_mutations():
    client, view = make_view()
    await view.load_catalog()
    await view.refresh()
    bad = Workout(date=at(TODAY), sets=[WorkoutSet(exercise_id=77, set_number=1, reps=5, weight=10)])
    assert await view.create(bad) is None
    assert view.error.kind == "validation"
    assert client.count("create") == 0
    assert len(view.records) == 3


@pytest.mark.asyncio
async def test_transport_failure_keeps_previous_records():
    client, view = make_view()
    await view.refresh()
    client.failures["list_on"] = TransportFailure("connection refused")
    await view.select_day(TODAY)
    assert view.error.kind == "transport"
    assert [w.id for w in view.records] == [3, 2, 1]
    assert view.is_loading is False

    del client.failures["list_on"]
    await view.select_day(TODAY)
    assert view.error is None
    assert view.records == []


@pytest.mark.asyncio
async def test_not_found_is_an_empty_state():
    client, view = make_view()
    client.failures["list_page"] = NotFound(404, "gone")
    await view.refresh()
    assert view.error is None
    assert view.not_found is True
    assert view.records == []


@pytest.mark.asyncio
async def test_unauthenticated_clears_credentials():
    signed_out = []
    client = ScriptedClient(recent_week())
    view = WorkoutsView(client, ClientSettings(), on_unauthenticated=lambda: signed_out.append(True))
    client.failures["list_page"] = Unauthenticated(401, "expired")
    await view.refresh()
    assert client.token is None
    assert view.requires_sign_in is True
    assert view.error.kind == "unauthenticated"
    assert signed_out == [True]


@pytest.mark.asyncio
async def test_forbidden_keeps_credentials():
    client, view = make_view()
    client.failures["delete"] = Forbidden(403, "not yours")
    assert await view.delete(1, confirmed=True) is False
    assert client.token == "secret"
    assert view.requires_sign_in is False
    assert view.error.kind == "forbidden"
    assert view.error.status_code == 403


@pytest.mark.asyncio
async def test_delete_declined_sends_nothing():
    client = ScriptedClient(recent_week())
    view = WorkoutsView(client, ClientSettings(), confirm=lambda workout_id: False)
    await view.refresh()
    assert await view.delete(1) is False
    assert client.count("delete") == 0
    assert len(view.records) == 3


@pytest.mark.asyncio
async def test_copy_and_save_creates_new_record():
    client, view = make_view()
    await view.refresh()
    draft = await view.copy(2)
    assert client.count("get") == 0
    assert draft.id is None and draft.is_draft
    assert draft.sets[0].id is None
    assert draft.sets[0].weight == 90

    saved = await view.save(draft)
    assert client.count("create") == 1
    assert client.count("update") == 0
    assert saved.id not in (1, 2, 3)
    assert len(view.records) == 4


@pytest.mark.asyncio
async def test_copy_of_unknown_record():
    client, view = make_view()
    assert await view.copy(99) is None
    assert client.count("get") == 1
    assert view.not_found is True
    assert view.error is None


@pytest.mark.asyncio
@pytest.mark.parametrize("failure", [None, TransportFailure("connection reset")])
async def test_switch_to_cached_page_clears_loading(failure):
    day = TODAY - datetime.timedelta(days=3)
    client, view = make_view()
    await view.refresh()
    if failure is not None:
        client.failures["list_on"] = failure
    gate = client.gate("list_on", day)
    pending = asyncio.create_task(view.select_day(day))
    await asyncio.sleep(0)
    assert view.is_loading is True

    await view.clear_filters()
    assert view.is_loading is False
    assert view.descriptor == Paginated(0, 10)
    assert client.count("list_page") == 1

    gate.set()
    await pending
    assert view.is_loading is False
    assert view.error is None
    assert [w.id for w in view.records] == [3, 2, 1]
