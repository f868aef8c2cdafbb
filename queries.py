"""Filter inputs and the query descriptor they select.

Exactly one descriptor is active at a time. ``select_descriptor`` is the
only place that decides which one, with the precedence single day, then
date range, then paginated listing.
"""
from __future__ import annotations

import datetime
from dataclasses import dataclass, replace
from typing import Optional, Tuple, Union


class KeyFamily:
    """Cache key families used for invalidation."""

    PAGINATED = "paginated"
    RANGE = "range"
    SINGLE = "single"
    ALL = "all"

    @classmethod
    def members(cls) -> Tuple[str, ...]:
        return (cls.PAGINATED, cls.RANGE, cls.SINGLE)


@dataclass(frozen=True)
class Paginated:
    page: int = 0
    size: int = 10

    @property
    def family(self) -> str:
        return KeyFamily.PAGINATED

    @property
    def key(self) -> tuple:
        return (self.family, self.page, self.size)


@dataclass(frozen=True)
class DateRange:
    start: datetime.date
    end: datetime.date

    @property
    def family(self) -> str:
        return KeyFamily.RANGE

    @property
    def key(self) -> tuple:
        return (self.family, self.start.isoformat(), self.end.isoformat())


@dataclass(frozen=True)
class SingleDate:
    day: datetime.date

    @property
    def family(self) -> str:
        return KeyFamily.SINGLE

    @property
    def key(self) -> tuple:
        return (self.family, self.day.isoformat())


QueryDescriptor = Union[Paginated, DateRange, SingleDate]


@dataclass(frozen=True)
class FilterState:
    """Immutable snapshot of the user's filter inputs."""

    page: int = 0
    day: Optional[datetime.date] = None
    range_start: Optional[datetime.date] = None
    range_end: Optional[datetime.date] = None

    @property
    def has_range(self) -> bool:
        return self.range_start is not None and self.range_end is not None

    @property
    def is_filtered(self) -> bool:
        return (
            self.day is not None
            or self.range_start is not None
            or self.range_end is not None
        )

    def with_page(self, page: int) -> "FilterState":
        """Return a state on ``page``; ignored while a date filter is set."""
        if page < 0:
            raise ValueError("page must be non-negative")
        if self.is_filtered:
            return self
        return replace(self, page=page)

    def with_day(self, day: Optional[datetime.date]) -> "FilterState":
        """Select a single day and clear both range endpoints."""
        return replace(self, day=day, range_start=None, range_end=None)

    def with_range(
        self,
        start: Optional[datetime.date],
        end: Optional[datetime.date],
    ) -> "FilterState":
        """Select a date range and clear the single day."""
        if start is not None and end is not None and start > end:
            raise ValueError("range start must not be after range end")
        return replace(self, day=None, range_start=start, range_end=end)

    def cleared(self) -> "FilterState":
        return replace(self, day=None, range_start=None, range_end=None)


def select_descriptor(filters: FilterState, page_size: int = 10) -> QueryDescriptor:
    """Return the single descriptor the filter inputs make active."""
    if filters.day is not None:
        return SingleDate(filters.day)
    if filters.has_range:
        return DateRange(filters.range_start, filters.range_end)
    return Paginated(filters.page, page_size)


def matches_family(descriptor_key: tuple, family: str) -> bool:
    if family == KeyFamily.ALL:
        return True
    if family not in KeyFamily.members():
        raise ValueError(f"unknown key family: {family}")
    return descriptor_key[0] == family
