import os
import sys
import time
from collections import defaultdict

import pytest

# Add project root to path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from services.calendar_models import TenantContext
from services.change_feed import ChangeEvent, ChangeFeed, ChangeKind

COMPANY_ID = "company-1"
OTHER_COMPANY_ID = "company-2"
USER_ID = "00000000-0000-0000-0000-000000000001"


class FakeRepository:
    """
    In-memory stand-in for CalendarRepository.
    Rows live in plain lists per table; failures and delays can be injected per table.
    """

    def __init__(self):
        self.tables = defaultdict(list)
        self.failures = {}
        self.delays = {}
        self.list_calls = []
        self.get_calls = []
        self._next_id = 1

    def add(self, table, **row):
        row.setdefault("company_id", COMPANY_ID)
        self.tables[table].append(row)
        return row

    def remove(self, table, row_id):
        self.tables[table] = [r for r in self.tables[table] if r.get("id") != row_id]

    def _maybe_fail(self, table):
        if table in self.delays:
            time.sleep(self.delays[table])
        if table in self.failures:
            raise self.failures[table]

    def list_rows(self, table, company_id, columns="*", not_null=None, order_by=None, limit=1000):
        self.list_calls.append(table)
        self._maybe_fail(table)
        rows = [dict(r) for r in self.tables[table] if r.get("company_id") == company_id]
        if not_null:
            rows = [r for r in rows if r.get(not_null) is not None]
        return rows[:limit]

    def get_row(self, table, row_id, company_id):
        self.get_calls.append((table, row_id))
        self._maybe_fail(table)
        for row in self.tables[table]:
            if row.get("id") == row_id and row.get("company_id") == company_id:
                return dict(row)
        return None

    def insert_custom_event(self, data):
        self._maybe_fail("calendar_events")
        row = dict(data, id=f"ce-{self._next_id}")
        self._next_id += 1
        self.tables["calendar_events"].append(row)
        return dict(row)

    def update_custom_event(self, event_id, company_id, data):
        self._maybe_fail("calendar_events")
        for row in self.tables["calendar_events"]:
            if row.get("id") == event_id and row.get("company_id") == company_id:
                row.update(data)
                return dict(row)
        return None

    def delete_custom_event(self, event_id, company_id):
        self._maybe_fail("calendar_events")
        before = len(self.tables["calendar_events"])
        self.tables["calendar_events"] = [
            r for r in self.tables["calendar_events"]
            if not (r.get("id") == event_id and r.get("company_id") == company_id)
        ]
        return len(self.tables["calendar_events"]) < before


class FakeChangeFeed(ChangeFeed):
    """Records subscriptions; emit() delivers a change as the realtime socket would."""

    def __init__(self):
        self.handlers = {}
        self.unsubscribed = []
        self.fail_tables = set()
        self.closed = False

    async def subscribe(self, table, on_event):
        if table in self.fail_tables:
            raise ConnectionError(f"cannot join {table}")
        self.handlers[table] = on_event

        async def unsubscribe():
            self.handlers.pop(table, None)
            self.unsubscribed.append(table)
        return unsubscribe

    async def close(self):
        self.closed = True

    def emit(self, table, kind, new=None, old=None):
        handler = self.handlers.get(table)
        if handler:
            handler(ChangeEvent(table=table, kind=ChangeKind(kind), new=new or {}, old=old or {}))


@pytest.fixture
def ctx():
    return TenantContext(user_id=USER_ID, company_id=COMPANY_ID)


@pytest.fixture
def repo():
    return FakeRepository()


@pytest.fixture
def feed():
    return FakeChangeFeed()


@pytest.fixture
def seeded_repo(repo):
    """One row per source plus a custom entry, all in March 2026."""
    repo.add("missions", id="m-1", tittel="Inspeksjon bro", tidspunkt="2026-03-10T09:00:00", status="planlagt")
    repo.add("documents", id="d-1", tittel="Operasjonsmanual", gyldig_til="2026-03-10", kategori="Manualer")
    repo.add("drones", id="dr-1", modell="DJI M30", registrering="NO-123", neste_inspeksjon="2026-03-15")
    repo.add("equipment", id="eq-1", navn="Batteri 4", serienummer="SN-44", neste_vedlikehold="2026-03-20")
    repo.add("incidents", id="i-1", tittel="Nødlanding", hendelsestidspunkt="2026-03-02T13:15:00")
    repo.add("calendar_events", id="ce-100", title="Møte med kunde", type="Møte",
             event_date="2026-03-10", event_time="14:00:00", user_id=USER_ID)
    return repo
