"""Bulk CSV import and spreadsheet export endpoints."""
import logging
from typing import Annotated

from fastapi import APIRouter, Depends, File, HTTPException, Query, Request, UploadFile, status
from fastapi.responses import Response

from app.core.config import settings
from app.core.deps import get_audit_recorder, get_current_user, get_document_store, get_entity_registry
from app.core.limiter import limiter
from app.schemas.audit import Actor
from app.schemas.imports import ImportResult
from app.services.audit import AuditRecorder
from app.services.document_store import DocumentStore
from app.services.entities import EntityRegistry
from app.services.exceptions import (
    CsvParseError,
    NothingToExportError,
    UnsupportedEntityError,
)
from app.services.exporter import ExportFormat, ExportSerializer
from app.services.importer import ImportOrchestrator

logger = logging.getLogger(__name__)

router = APIRouter()

# Users with an import currently running in this process.
_active_imports: set[str] = set()


# ─── POST /data/import/{entity} ───

@router.post("/import/{entity}", response_model=ImportResult, summary="Bulk import records from CSV")
@limiter.limit(settings.IMPORT_RATE_LIMIT)
async def import_entity(
    request: Request,
    entity: str,
    current_user: Annotated[Actor, Depends(get_current_user)],
    registry: Annotated[EntityRegistry, Depends(get_entity_registry)],
    store: Annotated[DocumentStore, Depends(get_document_store)],
    recorder: Annotated[AuditRecorder, Depends(get_audit_recorder)],
    file: UploadFile = File(...),
):
    if entity not in registry:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Unsupported entity type: {entity}")

    content = await file.read()
    if len(content) > settings.IMPORT_MAX_FILE_BYTES:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail=f"File exceeds {settings.IMPORT_MAX_FILE_BYTES} bytes",
        )

    if current_user.user_id in _active_imports:
        logger.info("Rejected concurrent %s import for user %s", entity, current_user.user_id)
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="An import is already running")
    _active_imports.add(current_user.user_id)
    try:
        orchestrator = ImportOrchestrator(registry, store, recorder)
        return await orchestrator.run(entity, content, current_user)
    except CsvParseError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc))
    finally:
        _active_imports.discard(current_user.user_id)


# ─── GET /data/export/{entity} ───

@router.get("/export/{entity}", summary="Download every record of an entity as a spreadsheet")
async def export_entity(
    entity: str,
    current_user: Annotated[Actor, Depends(get_current_user)],
    registry: Annotated[EntityRegistry, Depends(get_entity_registry)],
    store: Annotated[DocumentStore, Depends(get_document_store)],
    recorder: Annotated[AuditRecorder, Depends(get_audit_recorder)],
    file_format: Annotated[ExportFormat, Query(alias="format")] = "xlsx",
):
    serializer = ExportSerializer(registry, store)
    try:
        payload = await serializer.export(entity, current_user.tenant_id, file_format)
    except UnsupportedEntityError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    except NothingToExportError as exc:
        await recorder.record_failure(current_user, "export", entity, file_type=file_format)
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    except Exception:
        logger.exception("Export of %s failed for tenant %s", entity, current_user.tenant_id)
        await recorder.record_failure(current_user, "export", entity, file_type=file_format)
        raise

    await recorder.record_export(current_user, entity, payload.file_type, payload.record_count)
    return Response(
        content=payload.content,
        media_type=payload.media_type,
        headers={
            "Content-Disposition": f'attachment; filename="{payload.filename}"',
            "X-Record-Count": str(payload.record_count),
        },
    )
