"""Shared fixtures: an in-memory document store and pipeline collaborators."""
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app.db.base import Base
from app.models.document import StoredDocument  # noqa: F401
from app.schemas.audit import Actor
from app.services.audit import AuditRecorder
from app.services.document_store import DocumentStore, WriteBatch
from app.services.entities import build_default_registry
from app.services.exceptions import BatchCommitError

TENANT_ID = "tenant-1"


# ─── Store doubles ────────────────────────────────────────────────────────────

class FailingBatch(WriteBatch):
    """Write batch whose commit always fails, like a rejected transaction."""

    async def commit(self):
        raise BatchCommitError("deadline exceeded")


class FlakyStore(DocumentStore):
    """Document store whose Nth opened batches (1-based) fail to commit."""

    def __init__(self, session_factory, fail_on: set[int]):
        super().__init__(session_factory)
        self.fail_on = fail_on
        self.batches_opened = 0

    def batch(self) -> WriteBatch:
        self.batches_opened += 1
        if self.batches_opened in self.fail_on:
            return FailingBatch(self._session_factory, self.max_batch_operations)
        return super().batch()


class BrokenAuditStore(DocumentStore):
    """Document store that refuses every write."""

    async def add(self, collection, data):
        raise RuntimeError("audit backend unavailable")


# ─── Fixtures ─────────────────────────────────────────────────────────────────

@pytest_asyncio.fixture
async def session_factory():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(engine, expire_on_commit=False, autoflush=False)
    await engine.dispose()


@pytest.fixture
def store(session_factory) -> DocumentStore:
    return DocumentStore(session_factory)


@pytest.fixture
def recorder(store) -> AuditRecorder:
    return AuditRecorder(store)


@pytest.fixture
def registry():
    return build_default_registry()


@pytest.fixture
def actor() -> Actor:
    return Actor(user_id="user-1", user_email="owner@example.com", tenant_id=TENANT_ID)


def csv_bytes(header: str, *lines: str) -> bytes:
    return ("\n".join([header, *lines]) + "\n").encode("utf-8")
