"""CSV import pipeline: parse → transform → validate → batch-write → audit."""
import csv
import enum
import io
import logging
from collections.abc import Callable
from typing import IO, Any

from app.schemas.audit import Actor
from app.schemas.imports import ImportResult, ImportRowError
from app.services.audit import AuditRecorder
from app.services.batch_writer import BatchWriter
from app.services.document_store import DocumentStore
from app.services.entities import EntityConfig, EntityRegistry
from app.services.exceptions import CsvParseError, ImportInProgressError
from app.services.row_validation import ValidatedRow, validate_row

logger = logging.getLogger(__name__)

# Line 1 is the header and data rows are reported 1-based.
FIRST_DATA_ROW = 2


class ImportState(str, enum.Enum):
    IDLE = "idle"
    PARSING = "parsing"
    VALIDATING = "validating"
    IMPORTING = "importing"
    COMPLETE = "complete"


ProgressCallback = Callable[[ImportState, int], None]


def parse_csv(content: bytes) -> list[dict[str | None, str]]:
    """Decode and parse a headed CSV file, skipping blank lines.

    Raises:
        CsvParseError: undecodable bytes or malformed CSV.
    """
    try:
        text = content.decode("utf-8-sig")
    except UnicodeDecodeError as exc:
        raise CsvParseError(f"File is not valid UTF-8: {exc}") from exc

    reader = csv.DictReader(io.StringIO(text, newline=""), strict=True)
    try:
        return [
            row for row in reader
            if any((value or "").strip() for key, value in row.items() if key is not None)
        ]
    except csv.Error as exc:
        raise CsvParseError(f"Malformed CSV at line {reader.line_num}: {exc}") from exc


class ImportOrchestrator:
    """Drives one import run at a time and reports it to the audit log.

    Progress is reported through ``on_progress`` as (state, percent): parsing
    covers 0-10, validating 10-50 and importing 50-100.
    """

    def __init__(
        self,
        registry: EntityRegistry,
        store: DocumentStore,
        recorder: AuditRecorder,
        batch_size: int | None = None,
        on_progress: ProgressCallback | None = None,
    ):
        self.registry = registry
        self.writer = BatchWriter(store, batch_size)
        self.recorder = recorder
        self.on_progress = on_progress
        self._state = ImportState.IDLE
        self._progress = 0

    @property
    def state(self) -> ImportState:
        return self._state

    @property
    def progress(self) -> int:
        return self._progress

    def _advance(self, state: ImportState, percent: float) -> None:
        self._state = state
        self._progress = max(self._progress, int(percent))
        if self.on_progress:
            self.on_progress(state, self._progress)

    async def run(self, entity: str, source: bytes | IO[bytes], actor: Actor) -> ImportResult:
        if self._state not in (ImportState.IDLE, ImportState.COMPLETE):
            raise ImportInProgressError(self._state.value)
        config = self.registry.get(entity)

        self._progress = 0
        self._advance(ImportState.PARSING, 0)
        try:
            content = source if isinstance(source, bytes) else source.read()
            raw_rows = parse_csv(content)
        except CsvParseError as exc:
            logger.warning("Import of %s for tenant %s aborted: %s", entity, actor.tenant_id, exc)
            self._state = ImportState.IDLE
            self._progress = 0
            await self.recorder.record_failure(actor, "import", entity, file_type="csv")
            raise
        logger.info("Parsed %d %s rows for tenant %s", len(raw_rows), entity, actor.tenant_id)
        self._advance(ImportState.PARSING, 10)

        try:
            result = await self._import_rows(config, raw_rows, actor)
        except Exception:
            self._state = ImportState.IDLE
            await self.recorder.record_failure(
                actor, "import", entity, file_type="csv", record_count=len(raw_rows)
            )
            raise

        self._advance(ImportState.COMPLETE, 100)
        logger.info(
            "Import of %s for tenant %s complete: %d created, %d updated, %d skipped, %d failed",
            entity, actor.tenant_id, result.created, result.updated, result.skipped, result.failed,
        )
        await self.recorder.record_import(actor, entity, result, record_count=len(raw_rows))
        return result

    async def _import_rows(
        self,
        config: EntityConfig,
        raw_rows: list[dict[str | None, str]],
        actor: Actor,
    ) -> ImportResult:
        result = ImportResult()
        valid_rows: list[ValidatedRow] = []
        seen_keys: set[Any] = set()
        total = len(raw_rows)

        self._advance(ImportState.VALIDATING, 10)
        for index, raw in enumerate(raw_rows):
            row_number = index + FIRST_DATA_ROW
            outcome = validate_row(config.schema, config.transform_row(raw), row_number)
            if isinstance(outcome, ImportRowError):
                logger.debug("Row %d rejected: %s", row_number, outcome.message)
                result.errors.append(outcome)
                result.failed += 1
            elif config.dedupe_key and self._is_duplicate(config.dedupe_key(outcome.data), seen_keys):
                result.skipped += 1
            else:
                valid_rows.append(outcome)
            self._advance(ImportState.VALIDATING, 10 + 40 * (index + 1) / total)

        self._advance(ImportState.IMPORTING, 50)
        if valid_rows:
            summary = await self.writer.write(
                valid_rows,
                config.collection_path(actor.tenant_id),
                actor.tenant_id,
                on_batch=lambda done, batches: self._advance(
                    ImportState.IMPORTING, 50 + 50 * done / batches
                ),
            )
            result.created += summary.created
            result.updated += summary.updated
            result.failed += summary.failed
            result.errors.extend(summary.errors)
        return result

    @staticmethod
    def _is_duplicate(key: Any, seen_keys: set[Any]) -> bool:
        if key is None:
            return False
        if key in seen_keys:
            return True
        seen_keys.add(key)
        return False
