import asyncio
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Union

from pydantic import ValidationError

from config import Config
from repositories.calendar_repository import CUSTOM_EVENTS_TABLE, CalendarRepository
from services.calendar_errors import (
    SourceReadFailure,
    StaleReferenceFailure,
    Unauthenticated,
    ValidationFailure,
)
from services.calendar_models import (
    CustomEventDraft,
    CustomEventPatch,
    CustomEventRow,
    SourceType,
    TenantContext,
)
from services.synthesis import parse_custom_row
from utils.logger import log_error, log_info


def _require_context(ctx: Optional[TenantContext]) -> TenantContext:
    if ctx is None or not ctx.user_id or not ctx.company_id:
        raise Unauthenticated()
    return ctx


def _validation_messages(error: ValidationError) -> List[str]:
    messages = []
    for err in error.errors():
        field = ".".join(str(part) for part in err.get("loc", ())) or "entry"
        messages.append(f"{field}: {err.get('msg')}")
    return messages


def _to_columns(values: Dict[str, Any]) -> Dict[str, Any]:
    data = dict(values)
    if data.get("event_date") is not None:
        data["event_date"] = data["event_date"].isoformat()
    return data


class CustomEventStore:
    """
    Custom calendar entries (calendar_events) for one company.
    Writes are validated and auth-checked before anything reaches the backend.
    """

    def __init__(self, repository: Optional[CalendarRepository] = None,
                 timeout: float = Config.DB_TIMEOUT):
        self.repository = repository or CalendarRepository()
        self.timeout = timeout

    async def _call(self, func, *args, **kwargs):
        return await asyncio.wait_for(asyncio.to_thread(func, *args, **kwargs), timeout=self.timeout)

    async def list_custom(self, ctx: TenantContext) -> List[CustomEventRow]:
        try:
            rows = await self._call(
                self.repository.list_rows, CUSTOM_EVENTS_TABLE, ctx.company_id, "*", order_by="event_date"
            )
        except asyncio.TimeoutError as e:
            log_error("CALENDAR_CUSTOM: list timed out")
            raise SourceReadFailure(SourceType.CUSTOM, timed_out=True) from e
        except Exception as e:
            log_error(f"CALENDAR_CUSTOM: list failed: {e}")
            raise SourceReadFailure(SourceType.CUSTOM, str(e)) from e

        parsed = (parse_custom_row(raw) for raw in rows)
        return [row for row in parsed if row is not None]

    async def create(self, ctx: Optional[TenantContext], draft: Union[CustomEventDraft, Dict[str, Any]]) -> CustomEventRow:
        ctx = _require_context(ctx)
        try:
            draft = CustomEventDraft.model_validate(
                draft.model_dump() if isinstance(draft, CustomEventDraft) else draft
            )
        except ValidationError as e:
            raise ValidationFailure(_validation_messages(e)) from e

        data = _to_columns(draft.model_dump())
        data.update({"user_id": ctx.user_id, "company_id": ctx.company_id})

        row = await self._call(self.repository.insert_custom_event, data)
        log_info(f"Calendar entry created: {row.get('id')} by user {ctx.user_id}")
        return CustomEventRow.model_validate(row)

    async def update(self, ctx: Optional[TenantContext], event_id: str,
                     patch: Union[CustomEventPatch, Dict[str, Any]]) -> CustomEventRow:
        ctx = _require_context(ctx)
        try:
            if isinstance(patch, CustomEventPatch):
                patch = patch.model_dump(exclude_unset=True)
            changes = CustomEventPatch.model_validate(patch).model_dump(exclude_unset=True)
        except ValidationError as e:
            raise ValidationFailure(_validation_messages(e)) from e
        if not changes:
            raise ValidationFailure(["entry: nothing to update"])

        data = _to_columns(changes)
        data["updated_at"] = datetime.now(timezone.utc).isoformat()

        row = await self._call(self.repository.update_custom_event, event_id, ctx.company_id, data)
        if row is None:
            raise StaleReferenceFailure(SourceType.CUSTOM, event_id)
        log_info(f"Calendar entry updated: {event_id} by user {ctx.user_id}")
        return CustomEventRow.model_validate(row)

    async def delete(self, ctx: Optional[TenantContext], event_id: str) -> None:
        ctx = _require_context(ctx)
        deleted = await self._call(self.repository.delete_custom_event, event_id, ctx.company_id)
        if not deleted:
            raise StaleReferenceFailure(SourceType.CUSTOM, event_id)
        log_info(f"Calendar entry deleted: {event_id} by user {ctx.user_id}")
