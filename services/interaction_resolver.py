import asyncio
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, Optional, Union

from config import Config
from repositories.calendar_repository import CalendarRepository
from services.calendar_errors import StaleReferenceFailure
from services.calendar_models import (
    CalendarEvent,
    CreationMenu,
    CreationOption,
    CreationTarget,
    FailedAction,
    InfoAction,
    OpenedAction,
    SourceType,
    TenantContext,
)
from services.synthesis import SYNTHESIS_RULES
from utils.logger import log_error, log_info, log_warning

# Sources with a dedicated detail dialog. Drones and equipment only get a toast.
DIALOG_SOURCES = (SourceType.MISSION, SourceType.DOCUMENT, SourceType.INCIDENT)

CREATION_OPTIONS = [
    CreationOption(target=CreationTarget.MISSION, label="Oppdrag"),
    CreationOption(target=CreationTarget.INCIDENT, label="Hendelse"),
    CreationOption(target=CreationTarget.DOCUMENT, label="Dokument"),
    CreationOption(target=CreationTarget.CUSTOM, label="Kalenderoppføring"),
]

NOT_FOUND = "not found"
UNAVAILABLE = "unavailable"


class ResolverState(str, Enum):
    IDLE = "idle"
    RESOLVING = "resolving"
    OPENED = "opened"
    INFO = "info"
    FAILED = "failed"


def _format_day(value: Any) -> Optional[str]:
    if not value:
        return None
    return str(value)[:10]


def _resource_summary(source_type: SourceType, record: Dict[str, Any]) -> str:
    if source_type == SourceType.DRONE:
        parts = [record.get("registrering"), f"neste inspeksjon {_format_day(record.get('neste_inspeksjon'))}"]
    else:
        parts = [record.get("serienummer"), f"neste vedlikehold {_format_day(record.get('neste_vedlikehold'))}"]
    status = record.get("status")
    if status:
        parts.append(f"status: {status}")
    return ", ".join(part for part in parts if part)


class InteractionResolver:
    """
    Turns a clicked calendar event back into its authoritative record and the
    action the view should take. Never raises; failures become FailedAction.
    """

    def __init__(self, ctx: TenantContext, repository: Optional[CalendarRepository] = None,
                 timeout: float = Config.READER_TIMEOUT):
        self.ctx = ctx
        self.repository = repository or CalendarRepository()
        self.timeout = timeout
        self.state = ResolverState.IDLE
        self.last_action: Optional[Union[OpenedAction, InfoAction, FailedAction]] = None

    async def on_event_click(self, event: CalendarEvent) -> Union[OpenedAction, InfoAction, FailedAction]:
        self.state = ResolverState.RESOLVING
        action = await self._resolve(event)
        self.state = ResolverState(action.kind)
        self.last_action = action
        return action

    async def _resolve(self, event: CalendarEvent):
        # Custom rows are already the full record; drafts have nothing to fetch.
        if event.source_type == SourceType.CUSTOM or event.source_id is None:
            return InfoAction(message=event.title, description=event.description, entity_type=event.source_type)

        rule = SYNTHESIS_RULES[event.source_type]
        try:
            record = await asyncio.wait_for(
                asyncio.to_thread(self.repository.get_row, rule.table, event.source_id, self.ctx.company_id),
                timeout=self.timeout,
            )
        except Exception as e:
            log_error(f"CALENDAR_RESOLVE: loading {rule.table} {event.source_id} failed: {e!r}")
            return FailedAction(reason=UNAVAILABLE, message="Kunne ikke laste detaljer")

        if record is None:
            # Deleted after the calendar was loaded; the event stays until the next refresh.
            stale = StaleReferenceFailure(event.source_type, event.source_id)
            log_warning(f"CALENDAR_RESOLVE: {stale}")
            return FailedAction(reason=NOT_FOUND, message=stale.user_message)

        if event.source_type in DIALOG_SOURCES:
            log_info(f"CALENDAR_RESOLVE: opening {event.source_type.value} {event.source_id}")
            return OpenedAction(entity_type=event.source_type, record=record)

        return InfoAction(
            message=event.title,
            description=_resource_summary(event.source_type, record),
            entity_type=event.source_type,
        )

    def on_date_click(self, day: Union[date, datetime]) -> CreationMenu:
        if isinstance(day, datetime):
            day = day.date()
        return CreationMenu(day=day, options=list(CREATION_OPTIONS))

    def reset(self):
        self.state = ResolverState.IDLE
        self.last_action = None
