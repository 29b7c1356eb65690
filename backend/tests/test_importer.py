"""Tests for the CSV import orchestrator."""
import io

import pytest

from app.schemas.contact import ContactImportRow
from app.services.audit import AuditRecorder
from app.services.document_store import audit_collection_path, collection_path
from app.services.entities import EntityConfig, EntityRegistry, flatten_contact
from app.services.exceptions import CsvParseError, ImportInProgressError, UnsupportedEntityError
from app.services.importer import ImportOrchestrator, ImportState, parse_csv
from app.services.row_transform import transform_contact_row

from conftest import TENANT_ID, FlakyStore, csv_bytes

CONTACTS = collection_path(TENANT_ID, "contacts")
AUDIT = audit_collection_path(TENANT_ID)


# ─── Parsing ──────────────────────────────────────────────────────────────────

def test_parse_csv_skips_blank_lines_and_bom():
    rows = parse_csv(b"\xef\xbb\xbfname,email\nAnn,ann@example.com\n,\n\nBob,\n")
    assert rows == [
        {"name": "Ann", "email": "ann@example.com"},
        {"name": "Bob", "email": ""},
    ]


def test_parse_csv_rejects_malformed_quoting():
    with pytest.raises(CsvParseError):
        parse_csv(b'name,email\n"Ann"x,ann@example.com\n')


def test_parse_csv_rejects_non_utf8():
    with pytest.raises(CsvParseError):
        parse_csv(b"name\n\xff\xfe\xfa\n")


# ─── Runs ─────────────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_mixed_file_accounts_for_every_row(registry, store, recorder, actor):
    content = csv_bytes(
        "name,email,score,tags",
        "Ann,ann@example.com,80,vip|new",
        ",nobody@example.com,10,",
        "Bob,bob@example.com,oops,",
        "Cid,not-an-email,,",
    )

    result = await ImportOrchestrator(registry, store, recorder).run("contacts", content, actor)

    assert (result.created, result.updated, result.skipped, result.failed) == (2, 0, 0, 2)
    assert result.created + result.updated + result.skipped + result.failed == 4
    assert [e.row for e in result.errors] == [3, 5]
    assert result.errors[0].message == "name: Name is required"
    assert result.errors[1].message.startswith("email: ")


@pytest.mark.asyncio
async def test_non_numeric_score_is_dropped_not_rejected(registry, store, recorder, actor):
    result = await ImportOrchestrator(registry, store, recorder).run(
        "contacts", csv_bytes("name,score", "A,oops"), actor
    )

    assert (result.created, result.failed) == (1, 0)
    (doc,) = await store.fetch_all(CONTACTS)
    assert "score" not in doc


@pytest.mark.asyncio
async def test_all_rows_invalid_never_writes(registry, session_factory, recorder, actor):
    store = FlakyStore(session_factory, fail_on=set())
    content = csv_bytes("name,email", ",a@example.com", ",b@example.com", ",c@example.com")

    result = await ImportOrchestrator(registry, store, recorder).run("contacts", content, actor)

    assert (result.created, result.updated, result.failed) == (0, 0, 3)
    assert len(result.errors) == 3
    assert store.batches_opened == 0


@pytest.mark.asyncio
async def test_reimport_with_ids_only_updates(registry, store, recorder, actor):
    content = csv_bytes("id,name", "c-1,Ann", "c-2,Bob")
    orchestrator = ImportOrchestrator(registry, store, recorder)

    await orchestrator.run("contacts", content, actor)
    second = await orchestrator.run("contacts", content, actor)

    assert (second.created, second.updated) == (0, 2)
    assert len(await store.fetch_all(CONTACTS)) == 2


@pytest.mark.asyncio
async def test_failed_batch_keeps_counts_consistent(registry, session_factory, store, actor):
    flaky = FlakyStore(session_factory, fail_on={2})
    orchestrator = ImportOrchestrator(registry, flaky, AuditRecorder(store), batch_size=2)
    content = csv_bytes("name", "A", "B", "C", "D", "E")

    result = await orchestrator.run("contacts", content, actor)

    assert (result.created, result.failed) == (3, 2)
    assert len(result.errors) == 1
    assert result.errors[0].row == 4
    assert result.created + result.updated + result.skipped + result.failed == 5


@pytest.mark.asyncio
async def test_progress_is_monotonic_through_every_state(registry, store, recorder, actor):
    events: list[tuple[ImportState, int]] = []
    orchestrator = ImportOrchestrator(
        registry, store, recorder, batch_size=2, on_progress=lambda s, p: events.append((s, p))
    )

    await orchestrator.run("contacts", csv_bytes("name", "A", "B", "C"), actor)

    percents = [p for _, p in events]
    assert percents == sorted(percents)
    assert percents[0] == 0 and percents[-1] == 100
    states = [s for s, _ in events]
    assert states[0] == ImportState.PARSING
    assert states[-1] == ImportState.COMPLETE
    assert {ImportState.VALIDATING, ImportState.IMPORTING} <= set(states)
    assert orchestrator.state == ImportState.COMPLETE


@pytest.mark.asyncio
async def test_accepts_a_file_handle(registry, store, recorder, actor):
    result = await ImportOrchestrator(registry, store, recorder).run(
        "contacts", io.BytesIO(csv_bytes("name", "Ann")), actor
    )
    assert result.created == 1


@pytest.mark.asyncio
async def test_parse_failure_returns_to_idle_and_is_audited(registry, store, recorder, actor):
    orchestrator = ImportOrchestrator(registry, store, recorder)

    with pytest.raises(CsvParseError):
        await orchestrator.run("contacts", b'name\n"Ann"x\n', actor)

    assert orchestrator.state == ImportState.IDLE
    (entry,) = await store.fetch_all(AUDIT)
    assert entry["status"] == "failed"
    assert entry["details"] == {"entity": "contacts", "fileType": "csv"}
    assert await store.fetch_all(CONTACTS) == []


@pytest.mark.asyncio
async def test_exactly_one_audit_entry_per_run(registry, store, recorder, actor):
    content = csv_bytes("name,email", "Ann,ann@example.com", ",x@example.com")

    await ImportOrchestrator(registry, store, recorder).run("contacts", content, actor)

    (entry,) = await store.fetch_all(AUDIT)
    assert entry["action"] == "import"
    assert entry["status"] == "partial"
    assert entry["userEmail"] == "owner@example.com"
    assert entry["details"]["recordCount"] == 2
    assert entry["details"]["errors"] == [{"row": 3, "message": "name: Name is required"}]


@pytest.mark.asyncio
async def test_run_rejected_while_another_is_in_flight(registry, store, recorder, actor):
    orchestrator = ImportOrchestrator(registry, store, recorder)
    orchestrator._state = ImportState.IMPORTING

    with pytest.raises(ImportInProgressError):
        await orchestrator.run("contacts", csv_bytes("name", "Ann"), actor)


@pytest.mark.asyncio
async def test_unknown_entity_is_rejected_before_parsing(registry, store, recorder, actor):
    orchestrator = ImportOrchestrator(registry, store, recorder)

    with pytest.raises(UnsupportedEntityError):
        await orchestrator.run("invoices", csv_bytes("name", "Ann"), actor)

    assert orchestrator.state == ImportState.IDLE


@pytest.mark.asyncio
async def test_duplicate_policy_counts_skips(store, recorder, actor):
    registry = EntityRegistry([
        EntityConfig(
            name="contacts",
            schema=ContactImportRow,
            transform_row=transform_contact_row,
            flatten_record=flatten_contact,
            dedupe_key=lambda row: row.email,
        )
    ])
    content = csv_bytes("name,email", "Ann,ann@example.com", "Ann again,ann@example.com", "Bob,")

    result = await ImportOrchestrator(registry, store, recorder).run("contacts", content, actor)

    assert (result.created, result.skipped, result.failed) == (2, 1, 0)
