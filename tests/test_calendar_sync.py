import asyncio
from datetime import date, datetime

import pytest

from services.calendar_errors import SourceReadFailure
from services.calendar_models import CalendarEvent, CustomEventRow, SourceType
from services.calendar_sync import CalendarSyncEngine
from services.custom_event_service import CustomEventStore
from services.entity_readers import build_readers


class ScriptedReader:
    """Reader whose successive results (and their release) are controlled by the test."""

    def __init__(self, source_type):
        self.source_type = source_type
        self.script = []

    def push(self, result, gate=None):
        self.script.append((result, gate))

    async def list_events(self, ctx):
        result, gate = self.script.pop(0)
        if gate is not None:
            await gate.wait()
        if isinstance(result, Exception):
            raise result
        return result


class ScriptedStore:
    def __init__(self):
        self.script = []

    def push(self, rows, gate=None):
        self.script.append((rows, gate))

    async def list_custom(self, ctx):
        rows, gate = self.script.pop(0)
        if gate is not None:
            await gate.wait()
        return rows


def mission(source_id, title="Oppdrag"):
    return CalendarEvent(source_type=SourceType.MISSION, source_id=source_id, title=title,
                         occurs_at=datetime(2026, 3, 10, 9, 0), category="Oppdrag")


def custom(row_id, title="Møte"):
    return CustomEventRow(id=row_id, title=title, type="Møte", event_date=date(2026, 3, 10))


@pytest.mark.asyncio
async def test_refresh_loads_every_source(ctx, seeded_repo):
    changes = []
    engine = CalendarSyncEngine(ctx, build_readers(seeded_repo), CustomEventStore(seeded_repo),
                                on_change=changes.append)

    failures = await engine.refresh()

    assert failures == []
    assert {e.source_type for e in engine.calendar} == set(SourceType)
    assert len(engine.calendar) == 6
    assert changes == [engine.calendar]


@pytest.mark.asyncio
async def test_failed_source_does_not_affect_the_others(ctx, seeded_repo):
    errors = []
    seeded_repo.failures["drones"] = RuntimeError("503 Service Unavailable")
    engine = CalendarSyncEngine(ctx, build_readers(seeded_repo), CustomEventStore(seeded_repo),
                                on_error=errors.append)

    failures = await engine.refresh()

    assert [f.source_type for f in failures] == [SourceType.DRONE]
    assert len(errors) == 1
    assert [f.source_type for f in errors[0]] == [SourceType.DRONE]
    assert SourceType.DRONE not in {e.source_type for e in engine.calendar}
    assert len(engine.calendar) == 5


@pytest.mark.asyncio
async def test_failed_refresh_keeps_previous_contribution(ctx, seeded_repo):
    engine = CalendarSyncEngine(ctx, build_readers(seeded_repo), CustomEventStore(seeded_repo))
    await engine.refresh()
    before = engine.contribution(SourceType.MISSION)

    seeded_repo.failures["missions"] = RuntimeError("connection reset")
    failures = await engine.refresh_source(SourceType.MISSION)

    assert len(failures) == 1
    assert engine.contribution(SourceType.MISSION) == before
    assert engine.last_failures == failures
    assert any(e.source_id == "m-1" for e in engine.calendar)


@pytest.mark.asyncio
async def test_timed_out_source_keeps_previous_contribution(ctx, seeded_repo):
    engine = CalendarSyncEngine(ctx, build_readers(seeded_repo, timeout=0.05), CustomEventStore(seeded_repo))
    await engine.refresh()

    seeded_repo.delays["documents"] = 0.3
    seeded_repo.add("documents", id="d-2", tittel="Ny sertifikat", gyldig_til="2026-05-01")
    failures = await engine.refresh()

    assert [f.timed_out for f in failures] == [True]
    assert [e.source_id for e in engine.contribution(SourceType.DOCUMENT)] == ["d-1"]


@pytest.mark.asyncio
async def test_superseded_refresh_is_discarded(ctx):
    reader = ScriptedReader(SourceType.MISSION)
    store = ScriptedStore()
    engine = CalendarSyncEngine(ctx, {SourceType.MISSION: reader}, store)

    gate = asyncio.Event()
    reader.push([mission("m-old", "Gammel")], gate=gate)
    reader.push([mission("m-new", "Ny")])

    slow = asyncio.create_task(engine.refresh_source(SourceType.MISSION))
    await asyncio.sleep(0)
    await engine.refresh_source(SourceType.MISSION)
    gate.set()
    await slow

    assert [e.source_id for e in engine.contribution(SourceType.MISSION)] == ["m-new"]


@pytest.mark.asyncio
async def test_superseded_failure_is_not_reported(ctx):
    errors = []
    reader = ScriptedReader(SourceType.MISSION)
    engine = CalendarSyncEngine(ctx, {SourceType.MISSION: reader}, ScriptedStore(), on_error=errors.append)

    gate = asyncio.Event()
    reader.push(SourceReadFailure(SourceType.MISSION, "timeout"), gate=gate)
    reader.push([mission("m-new", "Ny")])

    slow = asyncio.create_task(engine.refresh_source(SourceType.MISSION))
    await asyncio.sleep(0)
    await engine.refresh_source(SourceType.MISSION)
    gate.set()
    failures = await slow

    assert failures == []
    assert errors == []
    assert engine.last_failures == []
    assert [e.source_id for e in engine.contribution(SourceType.MISSION)] == ["m-new"]

@pytest.mark.asyncio
async def test_custom_read_older_than_live_patch_is_discarded(ctx):
    store = ScriptedStore()
    engine = CalendarSyncEngine(ctx, {}, store)

    gate = asyncio.Event()
    store.push([custom("ce-1", "Gammel tittel")], gate=gate)
    reading = asyncio.create_task(engine.refresh_source(SourceType.CUSTOM))
    await asyncio.sleep(0)

    engine.apply_custom_upsert(custom("ce-1", "Ny tittel"))
    gate.set()
    await reading

    assert [r.title for r in engine.custom_rows] == ["Ny tittel"]


@pytest.mark.asyncio
async def test_custom_patches_recompute(ctx):
    changes = []
    engine = CalendarSyncEngine(ctx, {}, ScriptedStore(), on_change=changes.append)

    engine.apply_custom_upsert(custom("ce-1"))
    engine.apply_custom_upsert(custom("ce-1", "Omdøpt"))
    assert [e.title for e in engine.calendar] == ["Omdøpt"]

    assert engine.apply_custom_delete("ce-1") is True
    assert len(engine.calendar) == 0
    assert engine.apply_custom_delete("ce-1") is False
    assert len(changes) == 3


@pytest.mark.asyncio
async def test_refresh_of_unknown_source_raises(ctx):
    engine = CalendarSyncEngine(ctx, {SourceType.MISSION: ScriptedReader(SourceType.MISSION)}, ScriptedStore())
    with pytest.raises(KeyError):
        await engine.refresh_source(SourceType.DRONE)


@pytest.mark.asyncio
async def test_failing_callbacks_are_contained(ctx):
    def broken(_):
        raise RuntimeError("view gone")

    reader = ScriptedReader(SourceType.MISSION)
    reader.push(SourceReadFailure(SourceType.MISSION, "boom"))
    store = ScriptedStore()
    store.push([custom("ce-1")])
    engine = CalendarSyncEngine(ctx, {SourceType.MISSION: reader}, store, on_change=broken, on_error=broken)

    failures = await engine.refresh()

    assert len(failures) == 1
    assert len(engine.calendar) == 1
