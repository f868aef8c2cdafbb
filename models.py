from __future__ import annotations

import datetime
from typing import Any, List, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_serializer,
    field_validator,
    model_validator,
)

DATETIME_FORMAT = "%Y-%m-%dT%H:%M:%S"


def parse_timestamp(value: Any) -> Any:
    """Accept ISO strings or ``[year, month, day, hour, minute(, second)]`` arrays."""
    if isinstance(value, (list, tuple)):
        if len(value) < 3:
            raise ValueError("date array needs at least year, month and day")
        parts = [int(v) for v in value[:6]]
        return datetime.datetime(*parts)
    if isinstance(value, datetime.date) and not isinstance(value, datetime.datetime):
        return datetime.datetime.combine(value, datetime.time())
    return value


class _Model(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class Exercise(_Model):
    """Catalog entry a set refers to."""

    id: int
    name: str
    muscle_group: Optional[str] = Field(None, alias="muscleGroup")


class ExerciseRef(_Model):
    """Denormalized catalog entry embedded in a set."""

    id: int
    name: Optional[str] = None
    muscle_group: Optional[str] = Field(None, alias="muscleGroup")


class WorkoutSet(_Model):
    """A single set inside a workout."""

    id: Optional[int] = None
    workout_id: Optional[int] = Field(None, alias="workoutId")
    exercise_id: int = Field(0, alias="exerciseId")
    exercise: Optional[ExerciseRef] = None
    set_number: int = Field(1, alias="setNumber")
    weight: float = 0.0
    reps: int = 0
    created_at: Optional[datetime.datetime] = Field(None, alias="createdAt")

    @model_validator(mode="before")
    @classmethod
    def _exercise_id_from_ref(cls, data: Any) -> Any:
        if isinstance(data, dict):
            ref = data.get("exercise")
            if not data.get("exerciseId") and not data.get("exercise_id"):
                if isinstance(ref, dict) and ref.get("id"):
                    data = {**data, "exerciseId": ref["id"]}
                elif isinstance(ref, ExerciseRef):
                    data = {**data, "exerciseId": ref.id}
        return data

    @field_validator("created_at", mode="before")
    @classmethod
    def _parse_created(cls, value: Any) -> Any:
        return parse_timestamp(value)

    @property
    def exercise_name(self) -> Optional[str]:
        return self.exercise.name if self.exercise else None

    def to_request(self) -> dict:
        return {
            "exerciseId": self.exercise_id,
            "setNumber": self.set_number,
            "reps": self.reps,
            "weight": self.weight,
        }


class Workout(_Model):
    """A logged workout with its ordered sets."""

    id: Optional[int] = None
    user_id: Optional[int] = Field(None, alias="userId")
    date: datetime.datetime
    duration: Optional[int] = None
    notes: Optional[str] = None
    created_at: Optional[datetime.datetime] = Field(None, alias="createdAt")
    sets: List[WorkoutSet] = Field(default_factory=list)
    is_draft: bool = Field(False, exclude=True)

    @field_validator("date", "created_at", mode="before")
    @classmethod
    def _parse_dates(cls, value: Any) -> Any:
        return parse_timestamp(value)

    @field_validator("sets", mode="before")
    @classmethod
    def _none_sets(cls, value: Any) -> Any:
        return [] if value is None else value

    @field_serializer("date", "created_at")
    def _format_dates(self, value: Optional[datetime.datetime]) -> Optional[str]:
        return value.strftime(DATETIME_FORMAT) if value is not None else None

    @property
    def is_new(self) -> bool:
        """Return True when saving this workout must create a new record."""
        return self.is_draft or self.id is None

    def to_request(self) -> dict:
        """Return the create/update body without identity fields."""
        return {
            "date": self.date.strftime(DATETIME_FORMAT),
            "duration": self.duration,
            "notes": self.notes,
            "sets": [s.to_request() for s in self.sets],
        }


class WorkoutPage(_Model):
    """One page of the paginated listing."""

    content: List[Workout] = Field(default_factory=list)
    total_elements: int = Field(0, alias="totalElements")
