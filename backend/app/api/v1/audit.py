"""Audit log API endpoints."""
from typing import Annotated

from fastapi import APIRouter, Depends, Query

from app.core.config import settings
from app.core.deps import get_audit_recorder, get_current_user
from app.schemas.audit import Actor, AuditLogPage
from app.services.audit import AuditRecorder

router = APIRouter()


@router.get(
    "",
    response_model=AuditLogPage,
    response_model_by_alias=True,
    summary="List import/export audit logs",
    description="Most recent first. Pass next_cursor back as start_after to fetch the following page.",
)
async def list_audit_logs(
    current_user: Annotated[Actor, Depends(get_current_user)],
    recorder: Annotated[AuditRecorder, Depends(get_audit_recorder)],
    start_after: Annotated[str | None, Query(description="Id of the last entry of the previous page")] = None,
):
    return await recorder.list_entries(
        current_user.tenant_id,
        limit=settings.AUDIT_LOGS_PAGE_SIZE,
        start_after=start_after,
    )
