import asyncio
from typing import Dict, List, Optional

from config import Config
from repositories.calendar_repository import CalendarRepository
from services.calendar_errors import SourceReadFailure
from services.calendar_models import CalendarEvent, SourceType, TenantContext
from services.synthesis import SYNTHESIS_RULES, SynthesisRule, derive_event
from utils.logger import log_debug, log_error


class EntityReader:
    """Read adapter for one source entity type. Read-only and idempotent."""

    def __init__(self, rule: SynthesisRule, repository: CalendarRepository,
                 timeout: float = Config.READER_TIMEOUT):
        self.rule = rule
        self.repository = repository
        self.timeout = timeout

    @property
    def source_type(self) -> SourceType:
        return self.rule.source_type

    async def list_events(self, ctx: TenantContext) -> List[CalendarEvent]:
        """
        Fetch the company's rows for this source and derive one event per
        qualifying row. A failed or timed-out query raises SourceReadFailure;
        a single malformed row is dropped.
        """
        rule = self.rule
        try:
            rows = await asyncio.wait_for(
                asyncio.to_thread(
                    self.repository.list_rows,
                    rule.table,
                    ctx.company_id,
                    rule.columns,
                    not_null=rule.date_field if rule.require_date else None,
                    order_by=rule.date_field,
                ),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError as e:
            log_error(f"CALENDAR_READER: {rule.table} read timed out after {self.timeout}s")
            raise SourceReadFailure(rule.source_type, timed_out=True) from e
        except Exception as e:
            log_error(f"CALENDAR_READER: {rule.table} read failed: {e}")
            raise SourceReadFailure(rule.source_type, str(e)) from e

        events = []
        for raw in rows:
            event = derive_event(rule, raw)
            if event is not None:
                events.append(event)

        log_debug(f"CALENDAR_READER: {rule.table} -> {len(events)}/{len(rows)} events")
        return events


def build_readers(repository: Optional[CalendarRepository] = None,
                  timeout: float = Config.READER_TIMEOUT) -> Dict[SourceType, EntityReader]:
    """One reader per derived source type, sharing a repository."""
    repository = repository or CalendarRepository()
    return {
        source_type: EntityReader(rule, repository, timeout=timeout)
        for source_type, rule in SYNTHESIS_RULES.items()
    }
