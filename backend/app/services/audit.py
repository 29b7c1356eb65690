"""Audit log helper — append-only import/export entries per tenant.

Writes are best-effort. ``AuditRecorder.record`` never raises: a failed write
is logged and dropped, so it cannot change the outcome of the import or
export that produced it.
"""
import logging

from app.schemas.audit import (
    Actor,
    AuditLogCreate,
    AuditLogDetails,
    AuditLogEntry,
    AuditLogPage,
    AuditStatus,
)
from app.schemas.imports import ImportResult
from app.services.document_store import SERVER_TIMESTAMP, DocumentStore, audit_collection_path

logger = logging.getLogger(__name__)


def derive_import_status(result: ImportResult) -> AuditStatus:
    if result.failed > 0 and result.succeeded == 0:
        return "failed"
    if result.failed > 0:
        return "partial"
    return "success"


class AuditRecorder:
    def __init__(self, store: DocumentStore):
        self.store = store

    async def record(self, entry: AuditLogCreate) -> None:
        """Append one entry to the tenant's audit log."""
        data = entry.model_dump(mode="json", by_alias=True, exclude_none=True)
        data["createdAt"] = SERVER_TIMESTAMP
        try:
            doc_id = await self.store.add(audit_collection_path(entry.company_id), data)
        except Exception:
            logger.exception(
                "Failed to write audit log: %s %s for tenant %s",
                entry.action, entry.status, entry.company_id,
            )
            return
        logger.debug("Audit: %s %s/%s -> %s", entry.action, entry.details.entity, entry.status, doc_id)

    async def record_import(
        self,
        actor: Actor,
        entity: str,
        result: ImportResult,
        record_count: int,
        file_type: str = "csv",
    ) -> None:
        await self.record(
            AuditLogCreate(
                user_id=actor.user_id,
                user_email=actor.user_email,
                company_id=actor.tenant_id,
                action="import",
                status=derive_import_status(result),
                details=AuditLogDetails(
                    entity=entity,
                    file_type=file_type,
                    record_count=record_count,
                    errors=result.errors,
                ),
            )
        )

    async def record_failure(
        self,
        actor: Actor,
        action: str,
        entity: str,
        file_type: str,
        record_count: int | None = None,
    ) -> None:
        await self.record(
            AuditLogCreate(
                user_id=actor.user_id,
                user_email=actor.user_email,
                company_id=actor.tenant_id,
                action=action,
                status="failed",
                details=AuditLogDetails(entity=entity, file_type=file_type, record_count=record_count),
            )
        )

    async def record_export(self, actor: Actor, entity: str, file_type: str, record_count: int) -> None:
        await self.record(
            AuditLogCreate(
                user_id=actor.user_id,
                user_email=actor.user_email,
                company_id=actor.tenant_id,
                action="export",
                status="success",
                details=AuditLogDetails(entity=entity, file_type=file_type, record_count=record_count),
            )
        )

    async def list_entries(
        self,
        tenant_id: str,
        limit: int,
        start_after: str | None = None,
    ) -> AuditLogPage:
        """Most-recent-first page of a tenant's audit entries."""
        docs = await self.store.page(audit_collection_path(tenant_id), limit + 1, start_after)
        items = [AuditLogEntry.model_validate(doc) for doc in docs[:limit]]
        next_cursor = items[-1].id if len(docs) > limit else None
        return AuditLogPage(items=items, next_cursor=next_cursor)
