import datetime
import logging
from typing import Any, List, Optional

import httpx
from pydantic import ValidationError

from errors import TransportFailure, rejection_for_status
from models import DATETIME_FORMAT, Exercise, Workout, WorkoutPage

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10.0


def start_of_day(day: datetime.date) -> str:
    return datetime.datetime.combine(day, datetime.time(0, 0, 0)).strftime(DATETIME_FORMAT)


def end_of_day(day: datetime.date) -> str:
    return datetime.datetime.combine(day, datetime.time(23, 59, 59)).strftime(DATETIME_FORMAT)


class RecordClient:
    """Async REST client for the workout record API."""

    def __init__(
        self,
        base_url: str = "http://localhost:8080",
        *,
        token: Optional[str] = None,
        records_path: str = "/records",
        exercises_path: str = "/exercises",
        timeout: float = DEFAULT_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.records_path = "/" + records_path.strip("/")
        self.exercises_path = "/" + exercises_path.strip("/")
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            headers={"Content-Type": "application/json", "Accept": "application/json"},
            timeout=timeout,
            transport=transport,
        )
        self.token: Optional[str] = None
        if token:
            self.set_token(token)

    @classmethod
    def from_settings(cls, settings, transport: Optional[httpx.AsyncBaseTransport] = None) -> "RecordClient":
        return cls(
            settings.base_url,
            token=settings.api_token,
            records_path=settings.records_path,
            exercises_path=settings.exercises_path,
            timeout=settings.request_timeout,
            transport=transport,
        )

    async def __aenter__(self) -> "RecordClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    def set_token(self, token: str) -> None:
        self.token = token
        self._client.headers["Authorization"] = f"Bearer {token}"

    def clear_token(self) -> None:
        self.token = None
        self._client.headers.pop("Authorization", None)

    @property
    def has_token(self) -> bool:
        return self.token is not None

    async def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        try:
            resp = await self._client.request(method, path, **kwargs)
            resp.raise_for_status()
        except httpx.HTTPStatusError as e:
            detail = _error_detail(e.response)
            logger.warning("%s %s rejected: %s %s", method, path, e.response.status_code, detail)
            raise rejection_for_status(e.response.status_code, detail) from e
        except httpx.HTTPError as e:
            logger.warning("%s %s failed: %s", method, path, e)
            raise TransportFailure(f"{method} {path} failed: {e}") from e
        return resp

    async def _json(self, method: str, path: str, **kwargs) -> Any:
        resp = await self._request(method, path, **kwargs)
        try:
            return resp.json()
        except ValueError as e:
            raise TransportFailure(f"{method} {path} returned invalid JSON") from e

    async def list_page(self, page: int = 0, size: int = 10) -> WorkoutPage:
        data = await self._json(
            "GET", self.records_path, params={"page": page, "size": size}
        )
        return _parse(WorkoutPage, data)

    async def list_between(self, start: datetime.date, end: datetime.date) -> List[Workout]:
        data = await self._json(
            "GET",
            f"{self.records_path}/between",
            params={"start": start_of_day(start), "end": end_of_day(end)},
        )
        return [_parse(Workout, item) for item in data]

    async def list_on(self, day: datetime.date) -> List[Workout]:
        data = await self._json(
            "GET", f"{self.records_path}/date", params={"date": start_of_day(day)}
        )
        return [_parse(Workout, item) for item in data]

    async def get(self, workout_id: int) -> Workout:
        data = await self._json("GET", f"{self.records_path}/{workout_id}")
        return _parse(Workout, data)

    async def create(self, workout: Workout) -> Workout:
        data = await self._json("POST", self.records_path, json=workout.to_request())
        return _parse(Workout, data)

    async def update(self, workout_id: int, workout: Workout) -> Workout:
        data = await self._json(
            "PUT", f"{self.records_path}/{workout_id}", json=workout.to_request()
        )
        return _parse(Workout, data)

    async def delete(self, workout_id: int) -> None:
        await self._request("DELETE", f"{self.records_path}/{workout_id}")

    async def list_exercises(self) -> List[Exercise]:
        data = await self._json("GET", self.exercises_path)
        return [_parse(Exercise, item) for item in data]


def _parse(model, data: Any):
    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise TransportFailure(f"unexpected payload for {model.__name__}: {e}") from e


def _error_detail(resp: httpx.Response) -> Optional[str]:
    try:
        body = resp.json()
    except ValueError:
        return resp.text or None
    if isinstance(body, dict):
        detail = body.get("detail") or body.get("message") or body.get("error")
        return str(detail) if detail is not None else None
    return str(body)
