"""Draft workouts and set-list editing.

All functions here are pure: they return new models and never touch the
input. Set numbers always come out as ``1..n`` with no gaps.
"""
import datetime
from typing import Callable, List, Optional, Sequence

from models import Exercise, Workout, WorkoutSet


def to_draft(
    workout: Workout,
    now: Optional[Callable[[], datetime.datetime]] = None,
) -> Workout:
    """Return an unsaved copy of ``workout`` stamped with the current time.

    Identity, owner and creation time are dropped from the workout and from
    every set; exercise reference, weight, reps and set number are kept.
    """
    clock = now or datetime.datetime.now
    sets = [
        s.model_copy(update={"id": None, "workout_id": None, "created_at": None}, deep=True)
        for s in workout.sets
    ]
    return workout.model_copy(
        update={
            "id": None,
            "user_id": None,
            "created_at": None,
            "date": clock(),
            "sets": sets,
            "is_draft": True,
        },
        deep=True,
    )


def renumber_sets(sets: Sequence[WorkoutSet]) -> List[WorkoutSet]:
    return [
        s if s.set_number == i else s.model_copy(update={"set_number": i})
        for i, s in enumerate(sets, start=1)
    ]


def add_set(
    workout: Workout,
    exercise_id: Optional[int] = None,
    catalog: Sequence[Exercise] = (),
) -> Workout:
    """Append a set, defaulting to the exercise of the last set."""
    if exercise_id is None:
        if workout.sets:
            exercise_id = workout.sets[-1].exercise_id
        elif catalog:
            exercise_id = catalog[0].id
        else:
            exercise_id = 0
    new_set = WorkoutSet(exercise_id=exercise_id, set_number=len(workout.sets) + 1)
    return workout.model_copy(update={"sets": renumber_sets([*workout.sets, new_set])})


def duplicate_set(workout: Workout, index: int) -> Workout:
    """Insert a copy of set ``index`` right after it."""
    if not 0 <= index < len(workout.sets):
        raise IndexError("set index out of range")
    source = workout.sets[index]
    copy = WorkoutSet(
        exercise_id=source.exercise_id,
        exercise=source.exercise,
        weight=source.weight,
        reps=source.reps,
        set_number=source.set_number + 1,
    )
    sets = [*workout.sets[: index + 1], copy, *workout.sets[index + 1 :]]
    return workout.model_copy(update={"sets": renumber_sets(sets)})


def remove_set(workout: Workout, index: int) -> Workout:
    if not 0 <= index < len(workout.sets):
        raise IndexError("set index out of range")
    sets = [s for i, s in enumerate(workout.sets) if i != index]
    return workout.model_copy(update={"sets": renumber_sets(sets)})
