"""
Merges derived events and custom entries into one chronological calendar.

aggregate() is a pure function of its inputs: the same batches and rows always
produce the same ordering, whatever order the batches arrive in.
"""
from collections import defaultdict
from collections.abc import Sequence
from datetime import date, datetime, time, timedelta
from typing import Iterable, List, NamedTuple, Optional, Union

from config import Config
from services.calendar_models import CalendarEvent, CustomEventRow
from services.synthesis import custom_row_to_event
from utils.logger import log_warning

DayLike = Union[date, datetime]


def _as_day(value: DayLike) -> date:
    # datetime is a date subclass, check it first
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            return value.astimezone().date()
        return value.date()
    return value


def _as_instant(value: DayLike) -> datetime:
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            return value.astimezone().replace(tzinfo=None)
        return value
    return datetime.combine(value, time.min)


class UpcomingItem(NamedTuple):
    event: CalendarEvent
    urgent: bool


class AggregatedCalendar(Sequence):
    """Read-only, totally ordered view over one aggregation pass."""

    def __init__(self, events: Iterable[CalendarEvent] = ()):
        ordered = []
        seen = set()
        for event in sorted(events, key=CalendarEvent.sort_key):
            if event.source_id is not None:
                if event.identity in seen:
                    log_warning(f"CALENDAR_AGGREGATE: duplicate event {event.identity} ignored")
                    continue
                seen.add(event.identity)
            ordered.append(event)

        self._events = tuple(ordered)
        self._by_day = defaultdict(list)
        for event in self._events:
            self._by_day[event.occurs_at.date()].append(event)

    def __getitem__(self, index):
        return self._events[index]

    def __len__(self):
        return len(self._events)

    def __eq__(self, other):
        if isinstance(other, AggregatedCalendar):
            return self._events == other._events
        return NotImplemented

    def __hash__(self):
        return hash(self._events)

    def __repr__(self):
        return f"AggregatedCalendar({len(self._events)} events)"

    @property
    def events(self):
        return self._events

    def events_on_date(self, day: DayLike) -> List[CalendarEvent]:
        """Events on the same local calendar day, in calendar order."""
        return list(self._by_day.get(_as_day(day), ()))

    def has_events_on_date(self, day: DayLike) -> bool:
        return bool(self._by_day.get(_as_day(day)))

    def events_in_range(self, start: DayLike, end: DayLike) -> List[CalendarEvent]:
        """Events with start <= occurs_at < end. Plain dates mean local midnight."""
        lower, upper = _as_instant(start), _as_instant(end)
        return [event for event in self._events if lower <= event.occurs_at < upper]

    def events_in_month(self, year: int, month: int) -> List[CalendarEvent]:
        start = date(year, month, 1)
        end = date(year + 1, 1, 1) if month == 12 else date(year, month + 1, 1)
        return self.events_in_range(start, end)

    def upcoming(self, now: Optional[datetime] = None, limit: int = Config.UPCOMING_LIMIT,
                 urgent_days: int = Config.URGENT_DAYS) -> List[UpcomingItem]:
        """The next few events from now on, flagged urgent inside the warning window."""
        now = now or datetime.now()
        threshold = now + timedelta(days=urgent_days)
        items = []
        for event in self._events:
            if event.occurs_at < now:
                continue
            items.append(UpcomingItem(event, event.occurs_at < threshold))
            if len(items) >= limit:
                break
        return items


def aggregate(derived_batches: Iterable[Iterable[CalendarEvent]],
              custom_rows: Iterable[CustomEventRow] = ()) -> AggregatedCalendar:
    """Concatenate every derived batch with the mapped custom rows and order the result."""
    merged = []
    for batch in derived_batches:
        merged.extend(batch)
    merged.extend(custom_row_to_event(row) for row in custom_rows)
    return AggregatedCalendar(merged)
