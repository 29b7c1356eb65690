"""Export a tenant's entity records as a downloadable spreadsheet."""
import csv
import io
import logging
from dataclasses import dataclass
from datetime import date
from typing import Any, Literal

from openpyxl import Workbook
from openpyxl.cell.cell import ILLEGAL_CHARACTERS_RE

from app.services.document_store import DocumentStore
from app.services.entities import EntityRegistry
from app.services.exceptions import NothingToExportError

logger = logging.getLogger(__name__)

ExportFormat = Literal["xlsx", "csv"]

MEDIA_TYPES: dict[str, str] = {
    "xlsx": "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "csv": "text/csv; charset=utf-8",
}


@dataclass(frozen=True)
class ExportPayload:
    content: bytes
    record_count: int
    filename: str
    media_type: str
    file_type: str


def collect_headers(rows: list[dict[str, Any]]) -> list[str]:
    """Union of row keys in first-seen order."""
    headers: dict[str, None] = {}
    for row in rows:
        headers.update(dict.fromkeys(row))
    return list(headers)


def _cell(value: Any) -> Any:
    if value is None:
        return ""
    if isinstance(value, (str, int, float, bool)):
        return value
    return str(value)


def _xlsx_cell(value: Any) -> Any:
    value = _cell(value)
    if isinstance(value, str):
        # Control characters are not allowed in worksheet XML
        return ILLEGAL_CHARACTERS_RE.sub("", value)
    return value


def encode_xlsx(rows: list[dict[str, Any]], sheet_name: str) -> bytes:
    headers = collect_headers(rows)
    workbook = Workbook()
    sheet = workbook.active
    # Excel caps sheet titles at 31 characters
    sheet.title = sheet_name[:31]
    sheet.append(headers)
    for row in rows:
        sheet.append([_xlsx_cell(row.get(header)) for header in headers])
        # Stored text is data: a leading "=" must not turn it into a formula
        for cell in sheet[sheet.max_row]:
            if isinstance(cell.value, str):
                cell.data_type = "s"

    buffer = io.BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()


def encode_csv(rows: list[dict[str, Any]]) -> bytes:
    headers = collect_headers(rows)
    buffer = io.StringIO()
    writer = csv.DictWriter(buffer, fieldnames=headers, restval="")
    writer.writeheader()
    for row in rows:
        writer.writerow({key: _cell(value) for key, value in row.items()})
    return buffer.getvalue().encode("utf-8")


class ExportSerializer:
    def __init__(self, registry: EntityRegistry, store: DocumentStore):
        self.registry = registry
        self.store = store

    async def export(
        self,
        entity: str,
        tenant_id: str,
        file_type: ExportFormat = "xlsx",
        today: date | None = None,
    ) -> ExportPayload:
        """Fetch, flatten and encode every record of ``entity`` for a tenant.

        Raises:
            UnsupportedEntityError: the entity is not registered.
            NothingToExportError: the tenant has no records of that entity.
        """
        config = self.registry.get(entity)
        if file_type not in MEDIA_TYPES:
            raise ValueError(f"Unsupported export format: {file_type}")

        records = await self.store.fetch_all(config.collection_path(tenant_id))
        if not records:
            raise NothingToExportError(entity)

        rows = [config.flatten_record(record) for record in records]
        if file_type == "xlsx":
            content = encode_xlsx(rows, sheet_name=entity)
        else:
            content = encode_csv(rows)

        logger.info("Exported %d %s for tenant %s as %s", len(records), entity, tenant_id, file_type)
        stamp = (today or date.today()).isoformat()
        return ExportPayload(
            content=content,
            record_count=len(records),
            filename=f"{entity}-export-{stamp}.{file_type}",
            media_type=MEDIA_TYPES[file_type],
            file_type=file_type,
        )
