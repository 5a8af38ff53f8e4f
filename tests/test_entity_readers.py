from datetime import datetime

import pytest

from services.calendar_errors import SourceReadFailure
from services.calendar_models import SourceType
from services.entity_readers import EntityReader, build_readers
from services.synthesis import SYNTHESIS_RULES

from conftest import OTHER_COMPANY_ID


def test_build_readers_covers_every_derived_source(repo):
    readers = build_readers(repo)
    assert set(readers) == {SourceType.MISSION, SourceType.DOCUMENT, SourceType.DRONE,
                            SourceType.EQUIPMENT, SourceType.INCIDENT}
    assert all(reader.repository is repo for reader in readers.values())


@pytest.mark.asyncio
async def test_document_expiry_event(ctx, repo):
    repo.add("documents", id="d-1", tittel="Operasjonsmanual", gyldig_til="2026-03-10", kategori="Manualer")
    repo.add("documents", id="d-2", tittel="Uten utløp", gyldig_til=None)

    events = await EntityReader(SYNTHESIS_RULES[SourceType.DOCUMENT], repo).list_events(ctx)

    assert len(events) == 1
    event = events[0]
    assert event.title == "Operasjonsmanual utgår"
    assert event.occurs_at == datetime(2026, 3, 10)
    assert event.category == "Dokument"
    assert event.description == "Manualer"
    assert event.source_id == "d-1"


@pytest.mark.asyncio
async def test_drone_and_equipment_titles(ctx, seeded_repo):
    readers = build_readers(seeded_repo)

    drones = await readers[SourceType.DRONE].list_events(ctx)
    equipment = await readers[SourceType.EQUIPMENT].list_events(ctx)

    assert [e.title for e in drones] == ["DJI M30 - inspeksjon"]
    assert [e.title for e in equipment] == ["Batteri 4 - vedlikehold"]
    assert drones[0].category == equipment[0].category == "Vedlikehold"
    assert drones[0].occurs_at == datetime(2026, 3, 15)


@pytest.mark.asyncio
async def test_mission_without_timestamp_and_malformed_rows_are_dropped(ctx, repo):
    repo.add("missions", id="m-1", tittel="Kartlegging", tidspunkt="2026-03-10T09:00:00")
    repo.add("missions", id="m-2", tittel="Uten tid", tidspunkt=None)
    repo.add("missions", id="m-3", tidspunkt="2026-03-11T09:00:00")  # no title
    repo.add("missions", id="m-4", tittel="Ugyldig", tidspunkt="i morgen")

    events = await build_readers(repo)[SourceType.MISSION].list_events(ctx)

    assert [e.source_id for e in events] == ["m-1"]
    assert events[0].occurs_at == datetime(2026, 3, 10, 9, 0)


@pytest.mark.asyncio
async def test_reader_only_sees_own_company(ctx, repo):
    repo.add("incidents", id="i-1", tittel="Nødlanding", hendelsestidspunkt="2026-03-02T13:15:00")
    repo.add("incidents", id="i-2", tittel="Fremmed", hendelsestidspunkt="2026-03-02T13:15:00",
             company_id=OTHER_COMPANY_ID)

    events = await build_readers(repo)[SourceType.INCIDENT].list_events(ctx)

    assert [e.source_id for e in events] == ["i-1"]


@pytest.mark.asyncio
async def test_query_failure_raises_source_read_failure(ctx, repo):
    repo.failures["drones"] = RuntimeError("connection reset")

    with pytest.raises(SourceReadFailure) as exc_info:
        await build_readers(repo)[SourceType.DRONE].list_events(ctx)

    assert exc_info.value.source_type == SourceType.DRONE
    assert not exc_info.value.timed_out
    assert "connection reset" in exc_info.value.cause


@pytest.mark.asyncio
async def test_slow_query_times_out(ctx, repo):
    repo.delays["equipment"] = 0.3

    reader = build_readers(repo, timeout=0.05)[SourceType.EQUIPMENT]
    with pytest.raises(SourceReadFailure) as exc_info:
        await reader.list_events(ctx)

    assert exc_info.value.timed_out
