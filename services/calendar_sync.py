"""
Live calendar state for one mounted view.

The engine owns the per-source contributions and the custom rows, and
re-aggregates whenever one of them changes. Refreshes are guarded with
per-source generation counters: a slow read that finishes after a newer read
of the same source has started is discarded instead of overwriting newer state.
"""
import asyncio
from typing import Callable, Dict, Iterable, List, Mapping, Optional, Tuple

from services.calendar_aggregator import AggregatedCalendar, aggregate
from services.calendar_errors import SourceReadFailure
from services.calendar_models import CalendarEvent, CustomEventRow, SourceType, TenantContext
from services.custom_event_service import CustomEventStore
from services.entity_readers import EntityReader
from utils.logger import log_debug, log_error, log_info, log_warning

OnCalendarChange = Callable[[AggregatedCalendar], None]
OnReadFailures = Callable[[List[SourceReadFailure]], None]


class CalendarSyncEngine:
    def __init__(self, ctx: TenantContext, readers: Mapping[SourceType, EntityReader],
                 custom_store: CustomEventStore,
                 on_change: Optional[OnCalendarChange] = None,
                 on_error: Optional[OnReadFailures] = None):
        self.ctx = ctx
        self._readers = dict(readers)
        self._custom_store = custom_store
        self._on_change = [on_change] if on_change else []
        self._on_error = on_error

        self._contributions: Dict[SourceType, Tuple[CalendarEvent, ...]] = {}
        self._custom_rows: Dict[str, CustomEventRow] = {}
        self._generations: Dict[SourceType, int] = {source: 0 for source in self._readers}
        self._generations[SourceType.CUSTOM] = 0
        # Bumped by every in-place custom patch
        self._custom_patches = 0
        self._calendar = AggregatedCalendar()
        self.last_failures: List[SourceReadFailure] = []

    @property
    def calendar(self) -> AggregatedCalendar:
        return self._calendar

    @property
    def custom_rows(self) -> List[CustomEventRow]:
        return list(self._custom_rows.values())

    @property
    def custom_store(self) -> CustomEventStore:
        return self._custom_store

    @property
    def sources(self) -> List[SourceType]:
        return list(self._readers)

    def add_listener(self, callback: OnCalendarChange):
        self._on_change.append(callback)

    def contribution(self, source_type: SourceType) -> Tuple[CalendarEvent, ...]:
        return self._contributions.get(source_type, ())

    # --- Refresh ---------------------------------------------------------------

    def _next_generation(self, source_type: SourceType) -> int:
        self._generations[source_type] += 1
        return self._generations[source_type]

    async def _read(self, source_type: SourceType):
        if source_type == SourceType.CUSTOM:
            return await self._custom_store.list_custom(self.ctx)
        return await self._readers[source_type].list_events(self.ctx)

    async def refresh(self) -> List[SourceReadFailure]:
        """Re-read every source concurrently, then re-aggregate once all reads have settled."""
        return await self._refresh_sources(list(self._readers) + [SourceType.CUSTOM])

    async def refresh_source(self, source_type: SourceType) -> List[SourceReadFailure]:
        """Replace a single source's contribution wholesale."""
        if source_type != SourceType.CUSTOM and source_type not in self._readers:
            raise KeyError(f"no reader for {source_type}")
        return await self._refresh_sources([source_type])

    async def _refresh_sources(self, sources: List[SourceType]) -> List[SourceReadFailure]:
        started = {source: self._next_generation(source) for source in sources}
        patches_at_start = self._custom_patches

        results = await asyncio.gather(*(self._read(source) for source in sources), return_exceptions=True)

        failures = []
        changed = False
        for source, result in zip(sources, results):
            if isinstance(result, asyncio.CancelledError):
                raise result

            if self._generations[source] != started[source]:
                log_debug(f"CALENDAR_SYNC: discarding superseded {source.value} read")
                continue

            if isinstance(result, BaseException):
                failure = result if isinstance(result, SourceReadFailure) else SourceReadFailure(source, str(result))
                log_warning(f"CALENDAR_SYNC: keeping previous {source.value} events ({failure})")
                failures.append(failure)
                continue

            if source == SourceType.CUSTOM:
                if self._custom_patches != patches_at_start:
                    # A live patch landed while this read was in flight; it is newer.
                    log_debug("CALENDAR_SYNC: discarding custom read older than live patches")
                    continue
                self._custom_rows = {row.id: row for row in result}
            else:
                self._contributions[source] = tuple(result)
            changed = True

        if changed:
            self._recompute()

        self.last_failures = failures
        if failures:
            self._report(failures)
        log_info(f"CALENDAR_SYNC: refreshed {len(sources)} source(s), {len(failures)} failed, {len(self._calendar)} events")
        return failures

    # --- Custom patches ---------------------------------------------------------

    def apply_custom_upsert(self, row: CustomEventRow):
        """Insert or replace a custom row by id."""
        self._custom_patches += 1
        self._custom_rows[row.id] = row
        self._recompute()

    def apply_custom_delete(self, event_id: str) -> bool:
        self._custom_patches += 1
        removed = self._custom_rows.pop(str(event_id), None) is not None
        if removed:
            self._recompute()
        return removed

    # --- Internals ----------------------------------------------------------------

    def _recompute(self):
        self._calendar = aggregate(self._contributions.values(), self._custom_rows.values())
        for callback in list(self._on_change):
            try:
                callback(self._calendar)
            except Exception as e:
                log_error(f"CALENDAR_SYNC: change callback failed: {e}")

    def _report(self, failures: Iterable[SourceReadFailure]):
        if not self._on_error:
            return
        try:
            self._on_error(list(failures))
        except Exception as e:
            log_error(f"CALENDAR_SYNC: error callback failed: {e}")
