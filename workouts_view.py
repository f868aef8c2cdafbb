"""Workouts list coordinator.

Filter changes pick one query descriptor, the fetch cache resolves it, the
search overlay narrows the result and the outcome is exposed as plain
attributes for whatever renders the list. Mutations go through
``MutationCoordinator`` and are followed by a re-resolve of the active
descriptor. All public coroutines convert ``RecordAPIError`` into
``error`` instead of raising.
"""
import datetime
import logging
import math
from dataclasses import dataclass, replace
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

from client import RecordClient
from default_range import DefaultRangeInitializer
from drafts import to_draft
from errors import (
    Forbidden,
    NotFound,
    RecordAPIError,
    RemoteRejection,
    TransportFailure,
    Unauthenticated,
    ValidationFailure,
)
from fetch_cache import FetchCache
from models import Exercise, Workout, WorkoutPage
from mutations import ConfirmCallback, MutationCoordinator
from queries import (
    DateRange,
    FilterState,
    Paginated,
    QueryDescriptor,
    SingleDate,
    select_descriptor,
)
from search import Debouncer, apply_filter
from settings_schema import ClientSettings

logger = logging.getLogger(__name__)


@dataclass
class ViewError:
    kind: str
    message: str
    status_code: Optional[int] = None


def view_error(exc: RecordAPIError) -> ViewError:
    if isinstance(exc, ValidationFailure):
        return ViewError("validation", str(exc))
    if isinstance(exc, TransportFailure):
        return ViewError("transport", str(exc))
    if isinstance(exc, Unauthenticated):
        return ViewError("unauthenticated", "Please sign in again", exc.status_code)
    if isinstance(exc, Forbidden):
        return ViewError("forbidden", str(exc), exc.status_code)
    if isinstance(exc, RemoteRejection):
        return ViewError("remote", str(exc), exc.status_code)
    return ViewError("remote", str(exc))


class WorkoutsView:
    """State behind the workouts list: filters, data, search and errors."""

    def __init__(
        self,
        client: RecordClient,
        settings: Optional[ClientSettings] = None,
        cache: Optional[FetchCache] = None,
        confirm: Optional[ConfirmCallback] = None,
        on_unauthenticated: Optional[Callable[[], None]] = None,
    ) -> None:
        self.client = client
        self.settings = settings or ClientSettings()
        self.cache = cache or FetchCache(self._fetch)
        self.mutations = MutationCoordinator(client, self.cache, confirm)
        self.range_initializer = DefaultRangeInitializer(self.settings.default_range_years)
        self.debouncer = Debouncer(self._apply_term, self.settings.search_debounce)
        self.on_unauthenticated = on_unauthenticated

        self.filters = FilterState()
        self.source_records: List[Workout] = []
        self.records: List[Workout] = []
        self.total_elements = 0
        self.is_loading = False
        self.error: Optional[ViewError] = None
        self.not_found = False
        self.requires_sign_in = False
        self.search_term = ""
        self.applied_term = ""
        self.range_defaults: Optional[Tuple[datetime.date, datetime.date]] = None
        self.exercises: Optional[List[Exercise]] = None
        self.shown: Optional[QueryDescriptor] = None
        self._render_seq = 0

    @property
    def descriptor(self) -> QueryDescriptor:
        return select_descriptor(self.filters, self.settings.page_size)

    @property
    def page_count(self) -> int:
        if not isinstance(self.descriptor, Paginated):
            return 1
        return max(1, math.ceil(self.total_elements / self.settings.page_size))

    async def _fetch(self, descriptor: QueryDescriptor) -> Any:
        if isinstance(descriptor, Paginated):
            page = await self.client.list_page(descriptor.page, descriptor.size)
            defaults = self.range_initializer.observe(page.content)
            if defaults is not None:
                self.range_defaults = defaults
            return page
        if isinstance(descriptor, DateRange):
            return await self.client.list_between(descriptor.start, descriptor.end)
        if isinstance(descriptor, SingleDate):
            return await self.client.list_on(descriptor.day)
        raise TypeError(f"unsupported descriptor: {descriptor!r}")

    # Resolution

    async def refresh(self) -> None:
        """Resolve the active descriptor and show its data when it arrives."""
        descriptor = self.descriptor
        self._render_seq += 1
        seq = self._render_seq
        resolution = self.cache.resolve(descriptor)
        if not resolution.is_loading:
            # a hit supersedes any fetch still pending for an older descriptor
            self.is_loading = False
            self._show(descriptor, resolution.data)
            return
        self.is_loading = True
        try:
            data = await resolution.wait()
        except RecordAPIError as e:
            if seq == self._render_seq:
                self.is_loading = False
                self._fail(e)
            return
        if seq != self._render_seq:
            logger.debug("response for %s cached but not shown", descriptor.key)
            return
        self.is_loading = False
        self._show(descriptor, data)

    def _show(self, descriptor: QueryDescriptor, data: Any) -> None:
        if isinstance(data, WorkoutPage):
            self.source_records = list(data.content)
            self.total_elements = data.total_elements
        else:
            self.source_records = list(data or [])
            self.total_elements = len(self.source_records)
        self.shown = descriptor
        self.error = None
        self.not_found = False
        self._refilter()

    def _fail(self, exc: RecordAPIError, fetching: bool = True) -> None:
        if isinstance(exc, NotFound):
            self.not_found = True
            self.error = None
            if fetching:
                self.source_records = []
                self.total_elements = 0
                self._refilter()
            return
        if isinstance(exc, Unauthenticated):
            self.client.clear_token()
            self.requires_sign_in = True
            if self.on_unauthenticated is not None:
                self.on_unauthenticated()
        self.error = view_error(exc)
        logger.warning("workouts view error (%s): %s", self.error.kind, self.error.message)

    async def _guard(self, operation: Awaitable[Any]) -> Any:
        try:
            return await operation
        except RecordAPIError as e:
            self._fail(e, fetching=False)
            return None

    # Filters

    async def show_page(self, page: int) -> None:
        filters = self.filters.with_page(page)
        if filters is self.filters:
            return
        self.filters = filters
        await self.refresh()

    async def select_day(self, day: Optional[datetime.date]) -> None:
        self.filters = self.filters.with_day(day)
        await self.refresh()

    async def select_range(
        self,
        start: Optional[datetime.date] = None,
        end: Optional[datetime.date] = None,
    ) -> None:
        """Filter by ``[start, end]``, falling back to the default range."""
        if start is None and end is None and self.range_defaults is not None:
            start, end = self.range_defaults
        if start is None or end is None:
            self._fail(ValidationFailure(["a range needs both a start and an end"]), fetching=False)
            return
        try:
            filters = self.filters.with_range(start, end)
        except ValueError as e:
            self._fail(ValidationFailure([str(e)]), fetching=False)
            return
        self.filters = filters
        await self.refresh()

    async def clear_filters(self) -> None:
        self.filters = self.filters.cleared()
        await self.refresh()

    # Search

    def set_search_term(self, term: str) -> None:
        """Remember ``term`` and apply it once typing pauses."""
        self.search_term = term
        self.debouncer.trigger(term)

    def flush_search(self) -> None:
        self.debouncer.flush()

    def _apply_term(self, term: str) -> None:
        self.applied_term = term
        self._refilter()

    def _exercise_names(self) -> Dict[int, str]:
        return {e.id: e.name for e in self.exercises or []}

    def _refilter(self) -> None:
        self.records = apply_filter(
            self.source_records, self.applied_term, self._exercise_names()
        )

    # Catalog

    async def load_catalog(self) -> List[Exercise]:
        """Fetch catalog entries once; later calls return the same list."""
        if self.exercises is not None:
            return self.exercises
        exercises = await self._guard(self.client.list_exercises())
        if exercises is None:
            return []
        self.exercises = exercises
        self.mutations.exercise_ids = {e.id for e in exercises}
        self._refilter()
        return self.exercises

    # Mutations

    async def _after_mutation(self) -> None:
        self.error = None
        if self.settings.reset_page_after_mutation:
            self.filters = replace(self.filters, page=0)
        await self.refresh()

    async def create(self, workout: Workout) -> Optional[Workout]:
        created = await self._guard(self.mutations.create(workout))
        if created is not None:
            await self._after_mutation()
        return created

    async def update(self, workout_id: int, workout: Workout) -> Optional[Workout]:
        updated = await self._guard(self.mutations.update(workout_id, workout))
        if updated is not None:
            await self._after_mutation()
        return updated

    async def save(self, workout: Workout) -> Optional[Workout]:
        """Create drafts and new workouts, update existing ones."""
        saved = await self._guard(self.mutations.save(workout))
        if saved is not None:
            await self._after_mutation()
        return saved

    async def delete(self, workout_id: int, confirmed: bool = False) -> bool:
        deleted = await self._guard(self.mutations.remove(workout_id, confirmed))
        if deleted:
            await self._after_mutation()
        return bool(deleted)

    async def copy(self, workout_id: int) -> Optional[Workout]:
        """Return an unsaved draft of ``workout_id``; nothing is sent."""
        source = next((w for w in self.source_records if w.id == workout_id), None)
        if source is None:
            source = await self._guard(self.client.get(workout_id))
            if source is None:
                return None
        return to_draft(source)

    def close(self) -> None:
        self.debouncer.cancel()
