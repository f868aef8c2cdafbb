import datetime
import os
import sys

import pytest

sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from drafts import to_draft
from errors import RemoteRejection, TransportFailure, ValidationFailure
from fakes import ScriptedClient, make_workout
from fetch_cache import FetchCache
from models import Workout, WorkoutSet
from mutations import MutationCoordinator, validate_workout
from queries import Paginated, SingleDate

DAY = datetime.datetime(2024, 4, 2, 9, 0)


def build(confirm=None):
    client = ScriptedClient([make_workout(1, DAY, sets=[(1, "Bench Press", 80, 8)])])

    async def fetcher(descriptor):
        if isinstance(descriptor, Paginated):
            return await client.list_page(descriptor.page, descriptor.size)
        return await client.list_on(descriptor.day)

    cache = FetchCache(fetcher)
    return client, cache, MutationCoordinator(client, cache, confirm)


def test_validation_lists_every_problem():
    workout = Workout(
        date=DAY,
        duration=-5,
        sets=[
            WorkoutSet(exercise_id=0, set_number=1, reps=5, weight=50),
            WorkoutSet(exercise_id=9, set_number=3, reps=-1, weight=-2),
        ],
    )
    with pytest.raises(ValidationFailure) as info:
        validate_workout(workout, exercise_ids={1, 2})
    problems = info.value.problems
    assert "duration must be non-negative" in problems
    assert "set 1 has no exercise" in problems
    assert "set 2 refers to unknown exercise 9" in problems
    assert "set 2 reps must be non-negative" in problems
    assert "set 2 weight must be non-negative" in problems
    assert "set 2 is numbered 3" in problems
    assert isinstance(info.value, ValueError)


@pytest.mark.asyncio
async def test_invalid_workout_never_reaches_network():
    client, cache, coordinator = build()
    await cache.fetch(Paginated(0))
    bad = Workout(date=DAY, sets=[WorkoutSet(exercise_id=0, set_number=1)])
    with pytest.raises(ValidationFailure):
        await coordinator.create(bad)
    assert client.count("create") == 0
    assert cache.entry(Paginated(0)).fresh


@pytest.mark.asyncio
async def test_create_invalidates_every_family():
    client, cache, coordinator = build()
    await cache.fetch(Paginated(0))
    await cache.fetch(SingleDate(DAY.date()))
    created = await coordinator.create(make_workout(None, DAY, sets=[(2, "Squat", 100, 5)]))
    assert created.id is not None
    assert cache.entry(Paginated(0)).stale
    assert cache.entry(SingleDate(DAY.date())).stale
    page = await cache.fetch(Paginated(0))
    assert created.id in [w.id for w in page.content]


@pytest.mark.asyncio
async def test_failed_mutation_leaves_cache_fresh():
    client, cache, coordinator = build()
    await cache.fetch(Paginated(0))
    client.failures["update"] = RemoteRejection(500, "boom")
    with pytest.raises(RemoteRejection):
        await coordinator.update(1, make_workout(1, DAY, notes="changed"))
    assert cache.entry(Paginated(0)).fresh

    client.failures["create"] = TransportFailure("offline")
    with pytest.raises(TransportFailure):
        await coordinator.create(make_workout(None, DAY))
    assert cache.entry(Paginated(0)).fresh


@pytest.mark.asyncio
async def test_update_requires_id():
    _client, _cache, coordinator = build()
    with pytest.raises(ValidationFailure):
        await coordinator.update(None, make_workout(None, DAY))


@pytest.mark.asyncio
async def test_remove_needs_confirmation():
    answers = []

    def confirm(workout_id):
        answers.append(workout_id)
        return False

    client, cache, coordinator = build(confirm)
    await cache.fetch(Paginated(0))
    assert await coordinator.remove(1) is False
    assert answers == [1]
    assert client.count("delete") == 0
    assert cache.entry(Paginated(0)).fresh

    assert await coordinator.remove(1, confirmed=True) is True
    assert client.count("delete") == 1
    assert cache.entry(Paginated(0)).stale


@pytest.mark.asyncio
async def test_remove_without_callback_is_refused():
    client, _cache, coordinator = build()
    assert await coordinator.remove(1) is False
    assert client.count("delete") == 0


@pytest.mark.asyncio
async def test_save_routes_drafts_to_create():
    client, _cache, coordinator = build()
    existing = client.workouts[0]
    draft = to_draft(existing)
    saved = await coordinator.save(draft)
    assert client.count("create") == 1
    assert client.count("update") == 0
    assert saved.id != existing.id

    await coordinator.save(existing.model_copy(update={"notes": "edited"}))
    assert client.count("update") == 1


@pytest.mark.asyncio
async def test_update_refuses_drafts():
    client, cache, coordinator = build()
    await cache.fetch(Paginated(0))
    draft = to_draft(client.workouts[0])
    with pytest.raises(ValidationFailure) as info:
        await coordinator.update(1, draft)
    assert info.value.problems == ["a draft must be saved as a new workout"]
    assert client.count("update") == 0
    assert cache.entry(Paginated(0)).fresh
    assert client.workouts[0].id == 1
