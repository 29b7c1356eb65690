"""Atomic, sequential batch writes of validated import rows."""
import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field

from app.core.config import settings
from app.schemas.imports import ImportRowError
from app.services.document_store import SERVER_TIMESTAMP, DocumentStore
from app.services.exceptions import BatchCommitError
from app.services.row_validation import ValidatedRow

logger = logging.getLogger(__name__)

BatchProgress = Callable[[int, int], None]


@dataclass
class BatchOutcome:
    index: int
    first_row: int
    last_row: int
    size: int
    created: int = 0
    updated: int = 0
    error: ImportRowError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class BatchWriteSummary:
    created: int = 0
    updated: int = 0
    failed: int = 0
    errors: list[ImportRowError] = field(default_factory=list)
    batches: list[BatchOutcome] = field(default_factory=list)


class BatchWriter:
    """Writes validated rows into a tenant collection in fixed-size batches.

    Rows with an id are merged into the existing document and counted as
    updated; rows without one get a fresh id and are counted as created.
    Batches commit one after another in input order. A batch that fails to
    commit contributes nothing to ``created``/``updated``: its rows count as
    failed and it yields a single error keyed to its first row.
    """

    def __init__(self, store: DocumentStore, batch_size: int | None = None):
        batch_size = batch_size or settings.IMPORT_BATCH_SIZE
        if not 0 < batch_size <= store.max_batch_operations:
            raise ValueError(
                f"batch_size must be between 1 and {store.max_batch_operations}, got {batch_size}"
            )
        self.store = store
        self.batch_size = batch_size

    def partition(self, rows: Sequence[ValidatedRow]) -> list[Sequence[ValidatedRow]]:
        return [rows[i:i + self.batch_size] for i in range(0, len(rows), self.batch_size)]

    async def write(
        self,
        rows: Sequence[ValidatedRow],
        collection: str,
        tenant_id: str,
        on_batch: BatchProgress | None = None,
    ) -> BatchWriteSummary:
        summary = BatchWriteSummary()
        chunks = self.partition(rows)

        for index, chunk in enumerate(chunks, start=1):
            outcome = await self._write_batch(index, chunk, collection, tenant_id)
            summary.batches.append(outcome)
            if outcome.ok:
                summary.created += outcome.created
                summary.updated += outcome.updated
            else:
                summary.failed += outcome.size
                summary.errors.append(outcome.error)
            if on_batch:
                on_batch(index, len(chunks))

        return summary

    async def _write_batch(
        self,
        index: int,
        chunk: Sequence[ValidatedRow],
        collection: str,
        tenant_id: str,
    ) -> BatchOutcome:
        outcome = BatchOutcome(
            index=index,
            first_row=chunk[0].original_row,
            last_row=chunk[-1].original_row,
            size=len(chunk),
        )
        batch = self.store.batch()

        for row in chunk:
            document = row.to_document()
            document["companyId"] = tenant_id
            document["updatedAt"] = SERVER_TIMESTAMP
            if row.doc_id:
                batch.set(collection, row.doc_id, document, merge=True)
                outcome.updated += 1
            else:
                doc_id = self.store.new_id()
                document["id"] = doc_id
                document["createdAt"] = SERVER_TIMESTAMP
                batch.set(collection, doc_id, document)
                outcome.created += 1

        try:
            await batch.commit()
        except BatchCommitError as exc:
            logger.warning(
                "Batch %d (rows %d-%d) of %s failed: %s",
                index, outcome.first_row, outcome.last_row, collection, exc,
            )
            # Nothing in the batch landed; undo the optimistic counts.
            outcome.created = outcome.updated = 0
            outcome.error = ImportRowError(
                row=outcome.first_row,
                message=f"Batch {index} (rows {outcome.first_row}-{outcome.last_row}) failed: {exc}",
            )
            return outcome

        logger.info(
            "Committed batch %d to %s: %d created, %d updated",
            index, collection, outcome.created, outcome.updated,
        )
        return outcome
