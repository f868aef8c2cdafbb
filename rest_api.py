import datetime
from typing import Dict, List, Optional

from fastapi import Depends, FastAPI, Header, HTTPException, Response

from models import DATETIME_FORMAT, Exercise, ExerciseRef, Workout, WorkoutSet

DEFAULT_EXERCISES = [
    ("Bench Press", "Chest"),
    ("Squat", "Legs"),
    ("Deadlift", "Back"),
    ("Overhead Press", "Shoulders"),
    ("Barbell Row", "Back"),
    ("Pull Up", "Back"),
]


class WorkoutStore:
    """In-memory workout storage used by the development server."""

    def __init__(self, exercises: Optional[List[Exercise]] = None) -> None:
        if exercises is None:
            exercises = [
                Exercise(id=i, name=name, muscle_group=group)
                for i, (name, group) in enumerate(DEFAULT_EXERCISES, start=1)
            ]
        self.exercises: Dict[int, Exercise] = {e.id: e for e in exercises}
        self.workouts: Dict[int, Workout] = {}
        self._next_workout_id = 1
        self._next_set_id = 1

    def _ordered(self, workouts) -> List[Workout]:
        return sorted(workouts, key=lambda w: (w.date, w.id), reverse=True)

    def _build_sets(self, workout_id: int, sets: List[WorkoutSet]) -> List[WorkoutSet]:
        built = []
        for s in sets:
            exercise = self.exercises.get(s.exercise_id)
            if exercise is None:
                raise ValueError(f"exercise {s.exercise_id} not found")
            built.append(
                WorkoutSet(
                    id=self._next_set_id,
                    workout_id=workout_id,
                    exercise_id=exercise.id,
                    exercise=ExerciseRef(
                        id=exercise.id,
                        name=exercise.name,
                        muscle_group=exercise.muscle_group,
                    ),
                    set_number=s.set_number,
                    weight=s.weight,
                    reps=s.reps,
                    created_at=datetime.datetime.now().replace(microsecond=0),
                )
            )
            self._next_set_id += 1
        return built

    def create(self, data: Workout, user_id: int = 1) -> Workout:
        workout_id = self._next_workout_id
        sets = self._build_sets(workout_id, data.sets)
        workout = Workout(
            id=workout_id,
            user_id=user_id,
            date=data.date,
            duration=data.duration,
            notes=data.notes,
            created_at=datetime.datetime.now().replace(microsecond=0),
            sets=sets,
        )
        self.workouts[workout_id] = workout
        self._next_workout_id += 1
        return workout

    def fetch(self, workout_id: int) -> Workout:
        if workout_id not in self.workouts:
            raise KeyError("workout not found")
        return self.workouts[workout_id]

    def update(self, workout_id: int, data: Workout) -> Workout:
        current = self.fetch(workout_id)
        updated = current.model_copy(
            update={
                "date": data.date,
                "duration": data.duration,
                "notes": data.notes,
                "sets": self._build_sets(workout_id, data.sets),
            }
        )
        self.workouts[workout_id] = updated
        return updated

    def delete(self, workout_id: int) -> None:
        self.fetch(workout_id)
        del self.workouts[workout_id]

    def page(self, page: int, size: int) -> tuple[List[Workout], int]:
        ordered = self._ordered(self.workouts.values())
        start = page * size
        return ordered[start : start + size], len(ordered)

    def between(self, start: datetime.datetime, end: datetime.datetime) -> List[Workout]:
        return self._ordered(w for w in self.workouts.values() if start <= w.date <= end)


def _parse_param(name: str, value: str) -> datetime.datetime:
    try:
        return datetime.datetime.strptime(value, DATETIME_FORMAT)
    except ValueError:
        raise HTTPException(
            status_code=400,
            detail=f"{name} must be in YYYY-MM-DDTHH:MM:SS format",
        )


def _dump(workout: Workout) -> dict:
    return workout.model_dump(mode="json", by_alias=True)


class RecordAPI:
    """Development server for the workout record API."""

    def __init__(
        self,
        store: Optional[WorkoutStore] = None,
        *,
        token: Optional[str] = None,
        records_path: str = "/records",
        exercises_path: str = "/exercises",
    ) -> None:
        self.store = store or WorkoutStore()
        self.token = token
        self.records_path = "/" + records_path.strip("/")
        self.exercises_path = "/" + exercises_path.strip("/")
        self.app = FastAPI(
            title="Workout Record API",
            description="Development server for paginated, ranged and daily workout listings",
        )
        self._setup_routes()

    def _authorize(self, authorization: Optional[str] = Header(None)) -> None:
        if self.token is None:
            return
        if not authorization:
            raise HTTPException(status_code=401, detail="missing credentials")
        if authorization != f"Bearer {self.token}":
            raise HTTPException(status_code=403, detail="access denied")

    def _setup_routes(self) -> None:
        records = self.records_path
        auth = [Depends(self._authorize)]

        @self.app.get("/health")
        def health():
            return {"status": "ok"}

        @self.app.get(self.exercises_path, dependencies=auth)
        def list_exercises():
            return [
                e.model_dump(mode="json", by_alias=True)
                for e in self.store.exercises.values()
            ]

        @self.app.get(
            records,
            dependencies=auth,
            summary="List workouts",
            description="Paginated workouts, most recent first.",
        )
        def list_workouts(page: int = 0, size: int = 10):
            if page < 0 or size < 1:
                raise HTTPException(status_code=400, detail="invalid page or size")
            content, total = self.store.page(page, size)
            return {"content": [_dump(w) for w in content], "totalElements": total}

        @self.app.get(f"{records}/between", dependencies=auth)
        def list_between(start: str, end: str):
            start_dt = _parse_param("start", start)
            end_dt = _parse_param("end", end)
            return [_dump(w) for w in self.store.between(start_dt, end_dt)]

        @self.app.get(f"{records}/date", dependencies=auth)
        def list_on_date(date: str):
            start_dt = _parse_param("date", date)
            end_dt = start_dt + datetime.timedelta(days=1)
            return [
                _dump(w)
                for w in self.store.between(start_dt, end_dt)
                if w.date < end_dt
            ]

        @self.app.get(f"{records}/{{workout_id}}", dependencies=auth)
        def get_workout(workout_id: int):
            try:
                return _dump(self.store.fetch(workout_id))
            except KeyError:
                raise HTTPException(status_code=404, detail="workout not found")

        @self.app.post(records, dependencies=auth)
        def create_workout(workout: Workout):
            try:
                return _dump(self.store.create(workout))
            except ValueError as e:
                raise HTTPException(status_code=400, detail=str(e))

        @self.app.put(f"{records}/{{workout_id}}", dependencies=auth)
        def update_workout(workout_id: int, workout: Workout):
            try:
                return _dump(self.store.update(workout_id, workout))
            except KeyError:
                raise HTTPException(status_code=404, detail="workout not found")
            except ValueError as e:
                raise HTTPException(status_code=400, detail=str(e))

        @self.app.delete(f"{records}/{{workout_id}}", status_code=204, dependencies=auth)
        def delete_workout(workout_id: int):
            try:
                self.store.delete(workout_id)
            except KeyError:
                raise HTTPException(status_code=404, detail="workout not found")
            return Response(status_code=204)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(RecordAPI().app)
