"""Tests for spreadsheet export of stored contacts."""
import csv
import io
from datetime import date

import pytest
from openpyxl import load_workbook

from app.services.document_store import collection_path
from app.services.entities import flatten_contact
from app.services.exceptions import NothingToExportError, UnsupportedEntityError
from app.services.exporter import ExportSerializer, collect_headers
from app.services.importer import ImportOrchestrator

from conftest import TENANT_ID, csv_bytes

CONTACTS = collection_path(TENANT_ID, "contacts")


def _sheet_rows(content: bytes) -> tuple[str, list[tuple]]:
    workbook = load_workbook(io.BytesIO(content))
    sheet = workbook.active
    return sheet.title, list(sheet.iter_rows(values_only=True))


# ─── Flattening ───────────────────────────────────────────────────────────────

def test_flatten_contact_strips_system_fields_and_formats_dates():
    row = flatten_contact({
        "id": "c-1",
        "companyId": TENANT_ID,
        "name": "Ann",
        "scoreJustification": "Opened every email",
        "tags": ["alpha", "beta"],
        "lastCommunicationDate": "2026-04-05T00:00:00Z",
        "createdAt": "2026-04-06T17:45:00+00:00",
    })

    assert row == {
        "name": "Ann",
        "createdAt": "2026-04-06",
        "tags": "alpha|beta",
        "lastCommunicationDate": "2026-04-05",
    }


def test_flatten_contact_renders_missing_dates_as_empty():
    row = flatten_contact({"name": "Ann"})
    assert row["lastCommunicationDate"] == ""
    assert row["tags"] == ""


def test_collect_headers_keeps_first_seen_order():
    assert collect_headers([{"a": 1, "b": 2}, {"c": 3, "a": 4}]) == ["a", "b", "c"]


# ─── Export ───────────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_empty_collection_raises_before_encoding(registry, store):
    with pytest.raises(NothingToExportError, match="No contacts to export."):
        await ExportSerializer(registry, store).export("contacts", TENANT_ID)


@pytest.mark.asyncio
async def test_unknown_entity(registry, store):
    with pytest.raises(UnsupportedEntityError):
        await ExportSerializer(registry, store).export("invoices", TENANT_ID)


@pytest.mark.asyncio
async def test_xlsx_export_has_one_sheet_named_after_entity(registry, store):
    await store.batch().set(CONTACTS, "c-1", {
        "name": "Ann", "companyId": TENANT_ID, "tags": ["vip"], "score": 80,
    }).set(CONTACTS, "c-2", {
        "name": "Bob", "companyId": TENANT_ID, "jobTitle": "CTO",
    }).commit()

    payload = await ExportSerializer(registry, store).export(
        "contacts", TENANT_ID, today=date(2026, 10, 19)
    )

    assert payload.record_count == 2
    assert payload.filename == "contacts-export-2026-10-19.xlsx"
    title, rows = _sheet_rows(payload.content)
    assert title == "contacts"
    header = list(rows[0])
    assert header[:4] == ["name", "score", "tags", "lastCommunicationDate"]
    assert "jobTitle" in header
    assert "companyId" not in header and "id" not in header
    assert len(rows) == 3


@pytest.mark.asyncio
async def test_xlsx_strips_control_characters_from_imported_text(registry, store, recorder, actor):
    result = await ImportOrchestrator(registry, store, recorder).run(
        "contacts", csv_bytes("name,communicationSummary", "Ann,line\x0bbreak"), actor
    )
    assert result.created == 1

    payload = await ExportSerializer(registry, store).export("contacts", TENANT_ID)

    _, rows = _sheet_rows(payload.content)
    header = list(rows[0])
    assert rows[1][header.index("communicationSummary")] == "linebreak"


@pytest.mark.asyncio
async def test_xlsx_writes_formula_like_text_as_strings(registry, store):
    formula = '=HYPERLINK("http://x","y")'
    await store.batch().set(CONTACTS, "c-1", {"name": formula, "companyId": TENANT_ID}).commit()

    payload = await ExportSerializer(registry, store).export("contacts", TENANT_ID)

    sheet = load_workbook(io.BytesIO(payload.content)).active
    cell = sheet["A2"]
    assert sheet["A1"].value == "name"
    assert cell.data_type == "s"
    assert cell.value == formula


@pytest.mark.asyncio
async def test_csv_export(registry, store):
    await store.batch().set(CONTACTS, "c-1", {"name": "Ann", "tags": ["a", "b"]}).commit()

    payload = await ExportSerializer(registry, store).export("contacts", TENANT_ID, file_type="csv")

    assert payload.media_type.startswith("text/csv")
    rows = list(csv.DictReader(io.StringIO(payload.content.decode("utf-8"))))
    assert rows == [{"name": "Ann", "tags": "a|b", "lastCommunicationDate": ""}]


@pytest.mark.asyncio
async def test_tags_survive_export_and_reimport(registry, store, recorder, actor):
    importer = ImportOrchestrator(registry, store, recorder)
    await importer.run("contacts", csv_bytes("name,tags", "Ann,alpha|beta"), actor)
    exported = await ExportSerializer(registry, store).export("contacts", TENANT_ID, file_type="csv")
    assert list(csv.DictReader(io.StringIO(exported.content.decode("utf-8"))))[0]["tags"] == "alpha|beta"

    result = await importer.run("contacts", exported.content, actor)

    assert (result.created, result.failed) == (1, 0)
    docs = await store.fetch_all(CONTACTS)
    assert len(docs) == 2
    assert all(doc["tags"] == ["alpha", "beta"] for doc in docs)
