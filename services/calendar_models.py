"""
Typed shapes for the calendar: tenant context, per-source row schemas,
the unified CalendarEvent projection and the resolver's actions.

Rows coming back from PostgREST are loosely typed dicts. They are parsed into
the schemas below at the reader boundary so a malformed row fails in one place.
"""
import re
from datetime import date, datetime, time
from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, field_validator

TIME_PATTERN = re.compile(r"^(\d{1,2}):(\d{2})(?::(\d{2})(?:\.\d+)?)?$")


class SourceType(str, Enum):
    MISSION = "mission"
    DOCUMENT = "document"
    DRONE = "drone"
    EQUIPMENT = "equipment"
    INCIDENT = "incident"
    CUSTOM = "custom"


def parse_local_datetime(value: Any) -> datetime:
    """Timestamp -> naive local wall-clock datetime. Date-only values land on local midnight."""
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            return value.astimezone().replace(tzinfo=None)
        return value
    if isinstance(value, date):
        return datetime.combine(value, time.min)
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"expected a timestamp, got {value!r}")

    text = value.strip()
    if len(text) == 10:
        return datetime.combine(date.fromisoformat(text), time.min)
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    return parse_local_datetime(datetime.fromisoformat(text))


def parse_local_midnight(value: Any) -> datetime:
    """Date-of-interest fields: keep the stored calendar date, drop any time part."""
    if isinstance(value, datetime):
        return datetime.combine(value.date(), time.min)
    if isinstance(value, date):
        return datetime.combine(value, time.min)
    if not isinstance(value, str) or len(value.strip()) < 10:
        raise ValueError(f"expected a date, got {value!r}")
    return datetime.combine(date.fromisoformat(value.strip()[:10]), time.min)


def parse_calendar_date(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, str) and len(value.strip()) > 10:
        return value.strip()[:10]
    return value


def normalize_time(value: Any) -> Optional[str]:
    """'HH:MM' or 'HH:MM:SS' -> 'HH:MM'. Empty means no time of day."""
    if value is None:
        return None
    if isinstance(value, time):
        return value.strftime("%H:%M")
    text = str(value).strip()
    if not text:
        return None
    match = TIME_PATTERN.match(text)
    if not match:
        raise ValueError(f"invalid time {value!r}, expected HH:MM")
    hours, minutes = int(match.group(1)), int(match.group(2))
    if hours > 23 or minutes > 59:
        raise ValueError(f"invalid time {value!r}")
    return f"{hours:02d}:{minutes:02d}"


LocalDateTime = Annotated[datetime, BeforeValidator(parse_local_datetime)]
LocalMidnight = Annotated[datetime, BeforeValidator(parse_local_midnight)]
CalendarDate = Annotated[date, BeforeValidator(parse_calendar_date)]
TimeOfDay = Annotated[Optional[str], BeforeValidator(normalize_time)]


class TenantContext(BaseModel):
    """Who is asking, and for which company. Passed explicitly into every read and write."""
    model_config = ConfigDict(frozen=True, coerce_numbers_to_str=True)

    user_id: str
    company_id: str


# --- Source row schemas -------------------------------------------------------

class SourceRow(BaseModel):
    model_config = ConfigDict(extra="ignore", coerce_numbers_to_str=True)

    id: str
    company_id: Optional[str] = None


class MissionRow(SourceRow):
    tittel: str
    tidspunkt: LocalDateTime
    beskrivelse: Optional[str] = None
    status: Optional[str] = None


class DocumentRow(SourceRow):
    tittel: str
    gyldig_til: LocalMidnight
    kategori: Optional[str] = None


class DroneRow(SourceRow):
    modell: str
    neste_inspeksjon: LocalMidnight
    registrering: Optional[str] = None


class EquipmentRow(SourceRow):
    navn: str
    neste_vedlikehold: LocalMidnight
    serienummer: Optional[str] = None


class IncidentRow(SourceRow):
    tittel: str
    hendelsestidspunkt: LocalDateTime
    beskrivelse: Optional[str] = None
    alvorlighetsgrad: Optional[str] = None


# --- Custom calendar entries --------------------------------------------------

class CustomEventRow(BaseModel):
    model_config = ConfigDict(extra="ignore", coerce_numbers_to_str=True)

    id: str
    title: str
    type: str
    event_date: CalendarDate
    event_time: TimeOfDay = None
    description: Optional[str] = None
    user_id: Optional[str] = None
    company_id: Optional[str] = None

    @property
    def occurs_at(self) -> datetime:
        if self.event_time:
            hours, minutes = self.event_time.split(":")
            return datetime.combine(self.event_date, time(int(hours), int(minutes)))
        return datetime.combine(self.event_date, time.min)


class CustomEventDraft(BaseModel):
    model_config = ConfigDict(extra="forbid")

    title: str
    type: str = "Annet"
    event_date: CalendarDate
    event_time: TimeOfDay = None
    description: Optional[str] = None

    @field_validator("title", "type")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("must not be empty")
        return value


class CustomEventPatch(BaseModel):
    model_config = ConfigDict(extra="forbid")

    title: Optional[str] = None
    type: Optional[str] = None
    event_date: Optional[CalendarDate] = None
    event_time: TimeOfDay = None
    description: Optional[str] = None

    @field_validator("title", "type", "event_date")
    @classmethod
    def _not_null(cls, value):
        # Passing None explicitly would blank a required column
        if value is None:
            raise ValueError("must not be empty")
        if isinstance(value, str):
            value = value.strip()
            if not value:
                raise ValueError("must not be empty")
        return value


# --- Unified projection -------------------------------------------------------

class CalendarEvent(BaseModel):
    model_config = ConfigDict(frozen=True)

    source_type: SourceType
    source_id: Optional[str] = None
    title: str
    occurs_at: datetime
    category: str
    description: Optional[str] = None

    @property
    def is_derived(self) -> bool:
        return self.source_type != SourceType.CUSTOM

    @property
    def identity(self):
        return (self.source_type.value, self.source_id)

    def sort_key(self):
        return (self.occurs_at, self.source_type.value, self.source_id or "", self.title)


# --- Interaction results ------------------------------------------------------

class OpenedAction(BaseModel):
    kind: Literal["opened"] = "opened"
    entity_type: SourceType
    record: Dict[str, Any]


class InfoAction(BaseModel):
    kind: Literal["info"] = "info"
    message: str
    description: Optional[str] = None
    entity_type: Optional[SourceType] = None


class FailedAction(BaseModel):
    kind: Literal["failed"] = "failed"
    reason: str
    message: str = ""


ResolvedAction = Annotated[Union[OpenedAction, InfoAction, FailedAction], Field(discriminator="kind")]


class CreationTarget(str, Enum):
    MISSION = "mission"
    INCIDENT = "incident"
    DOCUMENT = "document"
    CUSTOM = "custom"


class CreationRequest(BaseModel):
    target: CreationTarget
    default_date: date


class CreationOption(BaseModel):
    target: CreationTarget
    label: str


class CreationMenu(BaseModel):
    day: date
    options: List[CreationOption]

    def select(self, target: Union[CreationTarget, str]) -> CreationRequest:
        target = CreationTarget(target)
        if not any(option.target == target for option in self.options):
            raise ValueError(f"{target.value} is not offered for {self.day}")
        return CreationRequest(target=target, default_date=self.day)
