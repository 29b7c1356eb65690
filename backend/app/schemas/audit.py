"""Pydantic schemas for import/export audit log entries."""
from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from app.schemas.imports import ImportRowError

AuditAction = Literal["import", "export"]
AuditStatus = Literal["success", "partial", "failed"]


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Actor(BaseModel):
    """Authenticated caller of an import or export run."""

    user_id: str
    user_email: str
    tenant_id: str


class AuditLogDetails(_CamelModel):
    entity: str
    file_type: str | None = None
    record_count: int | None = None
    errors: list[ImportRowError] | None = None


class AuditLogCreate(_CamelModel):
    user_id: str
    user_email: str
    company_id: str
    action: AuditAction
    status: AuditStatus
    details: AuditLogDetails


class AuditLogEntry(AuditLogCreate):
    id: str
    created_at: datetime


class AuditLogPage(_CamelModel):
    items: list[AuditLogEntry]
    next_cursor: str | None = None
