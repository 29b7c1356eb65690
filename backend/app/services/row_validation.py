"""Schema validation of transformed import rows."""
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel, ValidationError

from app.schemas.imports import ImportRowError


@dataclass(frozen=True)
class ValidatedRow:
    """A row that passed validation, tagged with its line in the source file."""

    original_row: int
    data: BaseModel

    @property
    def doc_id(self) -> str | None:
        return getattr(self.data, "id", None)

    def to_document(self) -> dict[str, Any]:
        """JSON-safe document body, camelCase keys, without the id."""
        return self.data.model_dump(
            mode="json", by_alias=True, exclude_none=True, exclude={"id"}
        )


def format_validation_error(exc: ValidationError) -> str:
    """Every violation as ``field.path: message``, comma-joined."""
    return ", ".join(
        f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}"
        for error in exc.errors()
    )


def validate_row(
    schema: type[BaseModel],
    row: dict[str, Any],
    row_number: int,
) -> ValidatedRow | ImportRowError:
    try:
        data = schema.model_validate(row)
    except ValidationError as exc:
        return ImportRowError(row=row_number, message=format_validation_error(exc))
    return ValidatedRow(original_row=row_number, data=data)
