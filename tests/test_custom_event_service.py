from datetime import date, datetime

import pytest

from services.calendar_errors import SourceReadFailure, StaleReferenceFailure, Unauthenticated, ValidationFailure
from services.calendar_models import CustomEventDraft, CustomEventPatch, SourceType, TenantContext
from services.custom_event_service import CustomEventStore

from conftest import COMPANY_ID, USER_ID


@pytest.mark.asyncio
async def test_create_stamps_tenant_and_round_trips(ctx, repo):
    store = CustomEventStore(repo)

    row = await store.create(ctx, {"title": " Møte ", "type": "Møte", "event_date": "2026-03-10", "event_time": "14:00"})

    assert row.title == "Møte"
    assert row.event_date == date(2026, 3, 10)
    assert row.occurs_at == datetime(2026, 3, 10, 14, 0)
    stored = repo.tables["calendar_events"][0]
    assert stored["user_id"] == USER_ID
    assert stored["company_id"] == COMPANY_ID
    assert stored["event_date"] == "2026-03-10"

    listed = await store.list_custom(ctx)
    assert [r.id for r in listed] == [row.id]


@pytest.mark.asyncio
async def test_create_accepts_draft_model(ctx, repo):
    draft = CustomEventDraft(title="Kurs", event_date=date(2026, 4, 1))
    row = await CustomEventStore(repo).create(ctx, draft)
    assert row.type == "Annet"
    assert row.event_time is None


@pytest.mark.asyncio
@pytest.mark.parametrize("values", [
    {"title": "", "event_date": "2026-03-10"},
    {"title": "Møte", "event_date": "10.03.2026"},
    {"title": "Møte", "event_date": "2026-03-10", "event_time": "25:00"},
    {"title": "Møte"},
])
async def test_invalid_draft_is_rejected_before_insert(ctx, repo, values):
    with pytest.raises(ValidationFailure) as exc_info:
        await CustomEventStore(repo).create(ctx, values)

    assert exc_info.value.errors
    assert repo.tables["calendar_events"] == []


@pytest.mark.asyncio
async def test_writes_without_context_are_unauthenticated(repo):
    store = CustomEventStore(repo)
    with pytest.raises(Unauthenticated):
        await store.create(None, {"title": "Møte", "event_date": "2026-03-10"})
    with pytest.raises(Unauthenticated):
        await store.update(TenantContext(user_id="u", company_id=""), "ce-1", {"title": "x"})
    with pytest.raises(Unauthenticated):
        await store.delete(None, "ce-1")
    assert repo.tables["calendar_events"] == []


@pytest.mark.asyncio
async def test_update_changes_only_given_fields(ctx, repo):
    store = CustomEventStore(repo)
    row = await store.create(ctx, {"title": "Møte", "event_date": "2026-03-10", "event_time": "14:00",
                                   "description": "Rom 2"})

    updated = await store.update(ctx, row.id, CustomEventPatch(event_time=None, title="Flyttet møte"))

    assert updated.title == "Flyttet møte"
    assert updated.event_time is None
    assert updated.description == "Rom 2"
    assert "updated_at" in repo.tables["calendar_events"][0]


@pytest.mark.asyncio
async def test_update_rejects_empty_and_invalid_patches(ctx, repo):
    store = CustomEventStore(repo)
    row = await store.create(ctx, {"title": "Møte", "event_date": "2026-03-10"})

    with pytest.raises(ValidationFailure):
        await store.update(ctx, row.id, {})
    with pytest.raises(ValidationFailure):
        await store.update(ctx, row.id, {"title": None})
    with pytest.raises(ValidationFailure):
        await store.update(ctx, row.id, {"event_time": "14.00"})


@pytest.mark.asyncio
async def test_update_and_delete_of_missing_entry_are_stale(ctx, repo):
    store = CustomEventStore(repo)
    row = await store.create(ctx, {"title": "Møte", "event_date": "2026-03-10"})

    await store.delete(ctx, row.id)
    assert repo.tables["calendar_events"] == []

    with pytest.raises(StaleReferenceFailure) as exc_info:
        await store.delete(ctx, row.id)
    assert exc_info.value.source_type == SourceType.CUSTOM
    assert "not found" in str(exc_info.value)

    with pytest.raises(StaleReferenceFailure):
        await store.update(ctx, row.id, {"title": "Ny"})


@pytest.mark.asyncio
async def test_list_drops_malformed_rows_and_wraps_failures(ctx, repo):
    repo.add("calendar_events", id="ce-1", title="Møte", type="Møte", event_date="2026-03-10")
    repo.add("calendar_events", id="ce-2", title="Uten dato", type="Annet", event_date=None)
    store = CustomEventStore(repo)

    assert [r.id for r in await store.list_custom(ctx)] == ["ce-1"]

    repo.failures["calendar_events"] = RuntimeError("boom")
    with pytest.raises(SourceReadFailure) as exc_info:
        await store.list_custom(ctx)
    assert exc_info.value.source_type == SourceType.CUSTOM
