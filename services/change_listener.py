import asyncio
from typing import Dict, List, Set

from services.calendar_models import SourceType
from services.calendar_sync import CalendarSyncEngine
from services.change_feed import ChangeEvent, ChangeFeed, ChangeKind, Unsubscribe
from services.synthesis import TABLE_TO_SOURCE, parse_custom_row
from repositories.calendar_repository import CUSTOM_EVENTS_TABLE
from utils.logger import log_debug, log_error, log_info


class ChangeNotificationListener:
    """
    Keeps a CalendarSyncEngine live without polling.

    calendar_events changes are patched into the engine in place; a change to
    any source table re-reads that whole source. At most one re-read per source
    is in flight; notifications arriving meanwhile queue exactly one more.
    """

    def __init__(self, feed: ChangeFeed, engine: CalendarSyncEngine):
        self.feed = feed
        self.engine = engine
        self._unsubscribers: List[Unsubscribe] = []
        self._inflight: Dict[SourceType, asyncio.Task] = {}
        self._dirty: Set[SourceType] = set()
        self._active = False
        self._closed = False

    @property
    def tables(self) -> List[str]:
        return [CUSTOM_EVENTS_TABLE] + [table for table, source in TABLE_TO_SOURCE.items()
                                        if source in self.engine.sources]

    @property
    def active(self) -> bool:
        return self._active

    @property
    def closed(self) -> bool:
        return self._closed

    async def start(self):
        if self._closed:
            # Torn down before the first load finished
            log_debug("CALENDAR_SYNC: listener already stopped, not subscribing")
            return
        self._active = True
        for table in self.tables:
            try:
                unsubscribe = await self.feed.subscribe(table, self.handle)
            except Exception as e:
                # One table without live updates still leaves the others live
                log_error(f"CALENDAR_SYNC: subscribe to {table} failed: {e}")
                continue
            if self._closed:
                # stop() ran while this channel was joining
                await unsubscribe()
                self._active = False
                return
            self._unsubscribers.append(unsubscribe)
        log_info(f"CALENDAR_SYNC: listening on {len(self._unsubscribers)}/{len(self.tables)} tables")

    async def stop(self):
        self._closed = True
        self._active = False
        unsubscribers, self._unsubscribers = self._unsubscribers, []
        for unsubscribe in unsubscribers:
            try:
                await unsubscribe()
            except Exception as e:
                log_error(f"CALENDAR_SYNC: unsubscribe failed: {e}")

        tasks = list(self._inflight.values())
        self._inflight.clear()
        self._dirty.clear()
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        log_info("CALENDAR_SYNC: listener stopped.")

    def handle(self, event: ChangeEvent):
        """Feed callback. Failures stay inside this callback."""
        if not self._active:
            return
        try:
            if event.table == CUSTOM_EVENTS_TABLE:
                self._patch_custom(event)
            elif event.table in TABLE_TO_SOURCE:
                self._schedule_refresh(TABLE_TO_SOURCE[event.table])
            else:
                log_debug(f"CALENDAR_SYNC: ignoring change on {event.table}")
        except Exception as e:
            log_error(f"CALENDAR_SYNC: handling {event.kind.value} on {event.table} failed: {e}")

    def _patch_custom(self, event: ChangeEvent):
        if event.kind == ChangeKind.DELETE:
            event_id = event.old.get("id")
            if event_id is not None:
                self.engine.apply_custom_delete(str(event_id))
            return

        row = parse_custom_row(event.new)
        if row is None:
            return
        if row.company_id and row.company_id != self.engine.ctx.company_id:
            log_debug(f"CALENDAR_SYNC: ignoring calendar entry {row.id} of another company")
            return
        self.engine.apply_custom_upsert(row)

    def _schedule_refresh(self, source_type: SourceType):
        if source_type not in self.engine.sources:
            return
        if source_type in self._inflight:
            self._dirty.add(source_type)
            return

        task = asyncio.get_running_loop().create_task(self.engine.refresh_source(source_type))
        self._inflight[source_type] = task
        task.add_done_callback(lambda t, source=source_type: self._on_refresh_done(source, t))

    def _on_refresh_done(self, source_type: SourceType, task: asyncio.Task):
        if self._inflight.get(source_type) is task:
            del self._inflight[source_type]
        if task.cancelled():
            return
        if task.exception() is not None:
            log_error(f"CALENDAR_SYNC: {source_type.value} refresh crashed: {task.exception()}")
        if self._active and source_type in self._dirty:
            self._dirty.discard(source_type)
            self._schedule_refresh(source_type)

    async def wait_idle(self):
        """Wait until no re-read is in flight (used by the view before teardown and by tests)."""
        while self._inflight:
            await asyncio.gather(*list(self._inflight.values()), return_exceptions=True)
