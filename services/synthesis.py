"""
Synthesis rules: one entry per source type describing where its events come
from (table, columns, date-of-interest field) and how a row becomes a
CalendarEvent (title, category, description).

The date field of each rule is the same field the rest of the dashboard lists
and sorts that entity by.
"""
from typing import Any, Callable, Dict, NamedTuple, Optional, Type

from pydantic import ValidationError

from config import Config
from services.calendar_models import (
    CalendarEvent,
    CustomEventRow,
    DocumentRow,
    DroneRow,
    EquipmentRow,
    IncidentRow,
    MissionRow,
    SourceRow,
    SourceType,
)
from utils.logger import log_warning


class SynthesisRule(NamedTuple):
    source_type: SourceType
    table: str
    columns: str
    date_field: str
    schema: Type[SourceRow]
    category: str
    title: Callable[[Any], str]
    description: Callable[[Any], Optional[str]]
    # Only rows with a non-null date of interest produce an event
    require_date: bool = True


SYNTHESIS_RULES: Dict[SourceType, SynthesisRule] = {
    SourceType.MISSION: SynthesisRule(
        source_type=SourceType.MISSION,
        table="missions",
        columns="id, company_id, tittel, beskrivelse, tidspunkt, slutt_tidspunkt, status",
        date_field="tidspunkt",
        schema=MissionRow,
        category=Config.Categories.MISSION,
        title=lambda row: row.tittel,
        description=lambda row: row.beskrivelse,
        require_date=False,
    ),
    SourceType.DOCUMENT: SynthesisRule(
        source_type=SourceType.DOCUMENT,
        table="documents",
        columns="id, company_id, tittel, kategori, gyldig_til",
        date_field="gyldig_til",
        schema=DocumentRow,
        category=Config.Categories.DOCUMENT,
        title=lambda row: f"{row.tittel} utgår",
        description=lambda row: row.kategori,
    ),
    SourceType.DRONE: SynthesisRule(
        source_type=SourceType.DRONE,
        table="drones",
        columns="id, company_id, modell, registrering, neste_inspeksjon",
        date_field="neste_inspeksjon",
        schema=DroneRow,
        category=Config.Categories.MAINTENANCE,
        title=lambda row: f"{row.modell} - inspeksjon",
        description=lambda row: row.registrering,
    ),
    SourceType.EQUIPMENT: SynthesisRule(
        source_type=SourceType.EQUIPMENT,
        table="equipment",
        columns="id, company_id, navn, serienummer, neste_vedlikehold",
        date_field="neste_vedlikehold",
        schema=EquipmentRow,
        category=Config.Categories.MAINTENANCE,
        title=lambda row: f"{row.navn} - vedlikehold",
        description=lambda row: row.serienummer,
    ),
    SourceType.INCIDENT: SynthesisRule(
        source_type=SourceType.INCIDENT,
        table="incidents",
        columns="id, company_id, tittel, beskrivelse, hendelsestidspunkt, alvorlighetsgrad, status",
        date_field="hendelsestidspunkt",
        schema=IncidentRow,
        category=Config.Categories.INCIDENT,
        title=lambda row: row.tittel,
        description=lambda row: row.beskrivelse,
        require_date=False,
    ),
}

DERIVED_SOURCES = tuple(SYNTHESIS_RULES)
TABLE_TO_SOURCE = {rule.table: source_type for source_type, rule in SYNTHESIS_RULES.items()}


def derive_event(rule: SynthesisRule, raw: Any) -> Optional[CalendarEvent]:
    """Map one raw row to its event. Malformed rows are logged and dropped (None)."""
    try:
        row = rule.schema.model_validate(raw)
    except ValidationError as e:
        row_id = raw.get("id") if isinstance(raw, dict) else None
        log_warning(f"CALENDAR_READER: Dropping malformed {rule.table} row {row_id}: {e.error_count()} error(s)")
        return None

    return CalendarEvent(
        source_type=rule.source_type,
        source_id=row.id,
        title=rule.title(row),
        occurs_at=getattr(row, rule.date_field),
        category=rule.category,
        description=rule.description(row),
    )


def custom_row_to_event(row: CustomEventRow) -> CalendarEvent:
    return CalendarEvent(
        source_type=SourceType.CUSTOM,
        source_id=row.id,
        title=row.title,
        occurs_at=row.occurs_at,
        category=row.type,
        description=row.description or None,
    )


def parse_custom_row(raw: Any) -> Optional[CustomEventRow]:
    """Custom rows get the same boundary treatment as source rows."""
    try:
        return CustomEventRow.model_validate(raw)
    except ValidationError as e:
        row_id = raw.get("id") if isinstance(raw, dict) else None
        log_warning(f"CALENDAR_READER: Dropping malformed calendar_events row {row_id}: {e.error_count()} error(s)")
        return None
