import logging
from typing import Callable, Collection, List, Optional

from client import RecordClient
from errors import ValidationFailure
from fetch_cache import FetchCache
from models import Workout
from queries import KeyFamily

logger = logging.getLogger(__name__)

ConfirmCallback = Callable[[int], bool]


def validate_workout(
    workout: Workout,
    exercise_ids: Optional[Collection[int]] = None,
) -> None:
    """Raise ``ValidationFailure`` listing every problem with ``workout``."""
    problems: List[str] = []
    if getattr(workout, "date", None) is None:
        problems.append("date is required")
    if workout.duration is not None and workout.duration < 0:
        problems.append("duration must be non-negative")
    for pos, s in enumerate(workout.sets, start=1):
        if s.exercise_id <= 0:
            problems.append(f"set {pos} has no exercise")
        elif exercise_ids is not None and s.exercise_id not in exercise_ids:
            problems.append(f"set {pos} refers to unknown exercise {s.exercise_id}")
        if s.reps < 0:
            problems.append(f"set {pos} reps must be non-negative")
        if s.weight < 0:
            problems.append(f"set {pos} weight must be non-negative")
        if s.set_number != pos:
            problems.append(f"set {pos} is numbered {s.set_number}")
    if problems:
        raise ValidationFailure(problems)


class MutationCoordinator:
    """Create, update and delete workouts, invalidating the cache on success.

    Nothing is changed locally: after a successful call every key family is
    marked stale so the next resolve reads the server's state. Failed calls
    leave the cache untouched.
    """

    def __init__(
        self,
        client: RecordClient,
        cache: FetchCache,
        confirm: Optional[ConfirmCallback] = None,
    ) -> None:
        self.client = client
        self.cache = cache
        self.confirm = confirm
        self.exercise_ids: Optional[Collection[int]] = None

    def _invalidate(self, action: str) -> None:
        count = self.cache.invalidate(KeyFamily.ALL)
        logger.info("%s succeeded, %d cached queries now stale", action, count)

    async def create(self, workout: Workout) -> Workout:
        validate_workout(workout, self.exercise_ids)
        created = await self.client.create(workout)
        self._invalidate("create")
        return created

    async def update(self, workout_id: int, workout: Workout) -> Workout:
        if workout_id is None:
            raise ValidationFailure(["workout id is required for an update"])
        if workout.is_draft:
            raise ValidationFailure(["a draft must be saved as a new workout"])
        validate_workout(workout, self.exercise_ids)
        updated = await self.client.update(workout_id, workout)
        self._invalidate(f"update of workout {workout_id}")
        return updated

    async def remove(self, workout_id: int, confirmed: bool = False) -> bool:
        """Delete ``workout_id`` once confirmed; return False when declined."""
        if not confirmed and self.confirm is not None:
            confirmed = bool(self.confirm(workout_id))
        if not confirmed:
            logger.info("delete of workout %s not confirmed", workout_id)
            return False
        await self.client.delete(workout_id)
        self._invalidate(f"delete of workout {workout_id}")
        return True

    async def save(self, workout: Workout) -> Workout:
        """Create drafts and unsaved workouts, update everything else."""
        if workout.is_new:
            return await self.create(workout)
        return await self.update(workout.id, workout)
