"""Contact row schema used when importing contacts from CSV.

Wire names are camelCase so CSV headers, stored documents and exported
spreadsheets share one vocabulary. ``companyId`` and the system timestamps
are not part of the import row: the batch writer stamps them on every write.
"""
from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator
from pydantic.alias_generators import to_camel
from pydantic_core import PydanticCustomError

ContactType = Literal["Prospect", "Lead", "MQL", "Customer", "Partner"]


class ContactImportRow(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
        extra="ignore",
    )

    # Bounded by documents.doc_id
    id: str | None = Field(default=None, max_length=64)
    # A blank name cell arrives as absent; default to "" so the check below reports it
    name: str = Field(default="", validate_default=True)
    type: ContactType = "Prospect"
    job_title: str | None = None
    tags: list[str] = Field(default_factory=list)
    phone: str | None = None
    email: EmailStr | None = None
    score: int | None = Field(default=None, ge=0, le=100)
    score_justification: str | None = None
    timezone: str | None = None
    last_communication_date: datetime | None = None
    last_communication_method: str | None = None
    communication_summary: str | None = None
    communicated_by: str | None = None

    @field_validator("name")
    @classmethod
    def name_not_empty(cls, value: str) -> str:
        if not value:
            raise PydanticCustomError("name_required", "Name is required")
        return value
