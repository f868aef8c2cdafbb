import asyncio
import datetime
import logging
from typing import Callable, Iterable, List, Mapping, Optional

from models import Workout

logger = logging.getLogger(__name__)

DEFAULT_DEBOUNCE_SECONDS = 0.3


def format_workout_date(value: datetime.datetime) -> str:
    """Return the long display form of a workout date, e.g. ``Monday, January 1, 2024``."""
    return f"{value:%A}, {value:%B} {value.day}, {value.year}"


def _search_fields(workout: Workout, names: Mapping[int, str]) -> Iterable[str]:
    if workout.notes:
        yield workout.notes
    for s in workout.sets:
        name = s.exercise_name or names.get(s.exercise_id)
        if name:
            yield name
    yield format_workout_date(workout.date)


def apply_filter(
    workouts: List[Workout],
    term: Optional[str],
    names: Optional[Mapping[int, str]] = None,
) -> List[Workout]:
    """Return the workouts matching ``term`` as a case-insensitive substring.

    Notes, exercise names of every set and the formatted date are searched.
    ``names`` maps exercise ids to names for sets without an embedded entry.
    A blank term returns the input unchanged.
    """
    if term is None or not term.strip():
        return workouts
    needle = term.lower()
    lookup = names or {}
    return [
        w
        for w in workouts
        if any(needle in field.lower() for field in _search_fields(w, lookup))
    ]


class Debouncer:
    """Run a callback once input has been quiet for ``delay`` seconds.

    Each ``trigger`` restarts the timer; only the last call's arguments are
    delivered.
    """

    def __init__(self, callback: Callable[..., None], delay: float = DEFAULT_DEBOUNCE_SECONDS) -> None:
        if delay < 0:
            raise ValueError("delay must be non-negative")
        self.callback = callback
        self.delay = delay
        self._handle: Optional[asyncio.TimerHandle] = None
        self._args: tuple = ()

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def trigger(self, *args) -> None:
        self.cancel()
        self._args = args
        loop = asyncio.get_running_loop()
        self._handle = loop.call_later(self.delay, self._fire)

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def flush(self) -> None:
        """Deliver a pending call immediately."""
        if self._handle is None:
            return
        self.cancel()
        self._fire()

    def _fire(self) -> None:
        self._handle = None
        args, self._args = self._args, ()
        logger.debug("debounced call after %.3fs", self.delay)
        self.callback(*args)
