"""Pydantic schemas for CSV bulk import results."""
from pydantic import BaseModel, Field


class ImportRowError(BaseModel):
    row: int
    message: str


class ImportResult(BaseModel):
    created: int = 0
    updated: int = 0
    skipped: int = 0
    failed: int = 0
    errors: list[ImportRowError] = Field(default_factory=list)

    @property
    def succeeded(self) -> int:
        return self.created + self.updated
