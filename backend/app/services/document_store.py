"""Document-store facade over the ``documents`` table.

Gives the import/export pipeline document-database semantics (collections,
generated ids, merge writes, atomic write batches, server timestamps) on top
of the async SQLAlchemy engine. Each public call opens its own session, so a
batch commit is exactly one transaction.
"""
import logging
import uuid
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any

from sqlalchemy import and_, func, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.config import settings
from app.db.base import utcnow
from app.models.document import StoredDocument
from app.services.exceptions import BatchCommitError, BatchLimitExceededError

logger = logging.getLogger(__name__)


class _ServerTimestamp:
    """Sentinel replaced by the commit time when a write is applied."""

    def __repr__(self) -> str:
        return "SERVER_TIMESTAMP"


SERVER_TIMESTAMP = _ServerTimestamp()


# ─── Paths ───

def collection_path(tenant_id: str, entity: str) -> str:
    return f"tenants/{tenant_id}/{entity}"


def audit_collection_path(tenant_id: str) -> str:
    return collection_path(tenant_id, "auditLogs")


def _resolve(data: dict[str, Any], now: datetime) -> dict[str, Any]:
    resolved: dict[str, Any] = {}
    for key, value in data.items():
        if value is SERVER_TIMESTAMP:
            value = now.isoformat()
        elif isinstance(value, (datetime, date)):
            value = value.isoformat()
        resolved[key] = value
    return resolved


def _as_dict(doc: StoredDocument) -> dict[str, Any]:
    return {**doc.data, "id": doc.doc_id}


# ─── Write batch ───

@dataclass
class _PendingWrite:
    collection: str
    doc_id: str
    data: dict[str, Any]
    merge: bool


class WriteBatch:
    """Collects document writes and applies them all-or-nothing on commit."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession], max_operations: int):
        self._session_factory = session_factory
        self._max_operations = max_operations
        self._writes: list[_PendingWrite] = []

    def __len__(self) -> int:
        return len(self._writes)

    def set(
        self,
        collection: str,
        doc_id: str,
        data: dict[str, Any],
        *,
        merge: bool = False,
    ) -> "WriteBatch":
        if len(self._writes) >= self._max_operations:
            raise BatchLimitExceededError(self._max_operations)
        self._writes.append(_PendingWrite(collection, doc_id, dict(data), merge))
        return self

    async def commit(self) -> datetime:
        """Apply every pending write in one transaction.

        Returns the commit time used for ``SERVER_TIMESTAMP`` fields.

        Raises:
            BatchCommitError: the transaction was rolled back; no write landed.
        """
        now = utcnow()
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    touched: dict[tuple[str, str], StoredDocument] = {}
                    for write in self._writes:
                        await self._apply(session, write, now, touched)
        except SQLAlchemyError as exc:
            raise BatchCommitError(str(exc)) from exc
        logger.debug("Committed %d writes at %s", len(self._writes), now.isoformat())
        return now

    @staticmethod
    async def _apply(
        session: AsyncSession,
        write: _PendingWrite,
        now: datetime,
        touched: dict[tuple[str, str], StoredDocument],
    ) -> None:
        key = (write.collection, write.doc_id)
        data = _resolve(write.data, now)
        doc = touched.get(key)
        if doc is None:
            doc = await session.get(StoredDocument, key)

        if doc is None:
            doc = StoredDocument(
                collection=write.collection,
                doc_id=write.doc_id,
                data=data,
                created_at=now,
                updated_at=now,
            )
            session.add(doc)
        elif write.merge:
            doc.data = {**doc.data, **data}
            doc.updated_at = now
        else:
            doc.data = data
            doc.updated_at = now
        touched[key] = doc


# ─── Store ───

class DocumentStore:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        max_batch_operations: int | None = None,
    ):
        self._session_factory = session_factory
        self.max_batch_operations = max_batch_operations or settings.MAX_BATCH_OPERATIONS

    def new_id(self) -> str:
        return uuid.uuid4().hex

    def batch(self) -> WriteBatch:
        return WriteBatch(self._session_factory, self.max_batch_operations)

    async def add(self, collection: str, data: dict[str, Any]) -> str:
        """Create one document under a generated id and return the id."""
        doc_id = self.new_id()
        await self.batch().set(collection, doc_id, data).commit()
        return doc_id

    async def get(self, collection: str, doc_id: str) -> dict[str, Any] | None:
        async with self._session_factory() as session:
            doc = await session.get(StoredDocument, (collection, doc_id))
            return _as_dict(doc) if doc else None

    async def fetch_all(self, collection: str) -> list[dict[str, Any]]:
        """Every document in a collection, oldest first."""
        async with self._session_factory() as session:
            result = await session.execute(
                select(StoredDocument)
                .where(StoredDocument.collection == collection)
                .order_by(StoredDocument.created_at.asc(), StoredDocument.doc_id.asc())
            )
            return [_as_dict(doc) for doc in result.scalars().all()]

    async def count(self, collection: str) -> int:
        async with self._session_factory() as session:
            result = await session.execute(
                select(func.count())
                .select_from(StoredDocument)
                .where(StoredDocument.collection == collection)
            )
            return result.scalar_one()

    async def page(
        self,
        collection: str,
        limit: int,
        start_after: str | None = None,
    ) -> list[dict[str, Any]]:
        """Newest-first page of documents, continuing after ``start_after``.

        An unknown cursor id yields an empty page.
        """
        async with self._session_factory() as session:
            query = select(StoredDocument).where(StoredDocument.collection == collection)
            if start_after is not None:
                cursor = await session.get(StoredDocument, (collection, start_after))
                if cursor is None:
                    return []
                query = query.where(
                    or_(
                        StoredDocument.created_at < cursor.created_at,
                        and_(
                            StoredDocument.created_at == cursor.created_at,
                            StoredDocument.doc_id < cursor.doc_id,
                        ),
                    )
                )
            query = query.order_by(
                StoredDocument.created_at.desc(), StoredDocument.doc_id.desc()
            ).limit(limit)
            result = await session.execute(query)
            return [_as_dict(doc) for doc in result.scalars().all()]
