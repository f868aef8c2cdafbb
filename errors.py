from typing import List, Optional


class RecordAPIError(Exception):
    """Base class for failures while reading or changing workouts."""


class ValidationFailure(RecordAPIError, ValueError):
    """Input rejected on the client before any request was made."""

    def __init__(self, problems: List[str]) -> None:
        self.problems = list(problems)
        super().__init__("; ".join(self.problems) or "invalid input")


class RemoteRejection(RecordAPIError):
    """The server answered with a non-success status."""

    def __init__(self, status_code: int, detail: Optional[str] = None) -> None:
        self.status_code = status_code
        self.detail = detail
        message = f"server rejected request ({status_code})"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class Unauthenticated(RemoteRejection):
    """Credential missing or expired (HTTP 401)."""


class Forbidden(RemoteRejection):
    """Credential valid but not allowed (HTTP 403)."""


class NotFound(RemoteRejection):
    """Requested workout does not exist (HTTP 404)."""


class TransportFailure(RecordAPIError):
    """The request never produced a usable response."""


def rejection_for_status(status_code: int, detail: Optional[str] = None) -> RemoteRejection:
    """Return the rejection class matching ``status_code``."""
    if status_code == 401:
        return Unauthenticated(status_code, detail)
    if status_code == 403:
        return Forbidden(status_code, detail)
    if status_code == 404:
        return NotFound(status_code, detail)
    return RemoteRejection(status_code, detail)
