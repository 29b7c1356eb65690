"""Registry of entities that support bulk import and export.

Each entity bundles its import schema, the tenant-scoped collection it lives
in, the cell coercion applied before validation and the flattening applied on
export. The registry is built once at startup and handed to the pipeline.
"""
from collections.abc import Callable, Hashable, Iterator
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel

from app.schemas.contact import ContactImportRow
from app.services.document_store import collection_path
from app.services.exceptions import UnsupportedEntityError
from app.services.row_transform import format_calendar_date, join_multi_value, transform_contact_row

RowTransform = Callable[[dict[str | None, Any]], dict[str, Any]]
RecordFlattener = Callable[[dict[str, Any]], dict[str, Any]]
DedupeKey = Callable[[BaseModel], Hashable | None]


@dataclass(frozen=True)
class EntityConfig:
    name: str
    schema: type[BaseModel]
    transform_row: RowTransform
    flatten_record: RecordFlattener
    # Rows sharing a key with an earlier row of the same file are skipped.
    dedupe_key: DedupeKey | None = None

    def collection_path(self, tenant_id: str) -> str:
        return collection_path(tenant_id, self.name)


class EntityRegistry:
    def __init__(self, configs: list[EntityConfig] | None = None):
        self._configs: dict[str, EntityConfig] = {}
        for config in configs or []:
            self.register(config)

    def register(self, config: EntityConfig) -> None:
        if config.name in self._configs:
            raise ValueError(f"Entity '{config.name}' is already registered")
        self._configs[config.name] = config

    def get(self, name: str) -> EntityConfig:
        try:
            return self._configs[name]
        except KeyError:
            raise UnsupportedEntityError(name) from None

    def names(self) -> list[str]:
        return sorted(self._configs)

    def __contains__(self, name: object) -> bool:
        return name in self._configs

    def __iter__(self) -> Iterator[EntityConfig]:
        return iter(self._configs.values())


# ─── Contacts ───

_CONTACT_STRIPPED = ("id", "companyId", "scoreJustification", "tags", "lastCommunicationDate")
_CONTACT_TIMESTAMPS = ("lastScoredAt", "createdAt", "updatedAt")


def flatten_contact(record: dict[str, Any]) -> dict[str, Any]:
    row = {k: v for k, v in record.items() if k not in _CONTACT_STRIPPED}
    row["tags"] = join_multi_value(record.get("tags"))
    row["lastCommunicationDate"] = format_calendar_date(record.get("lastCommunicationDate"))
    for key in _CONTACT_TIMESTAMPS:
        if key in row:
            row[key] = format_calendar_date(row[key])
    return row


CONTACTS = EntityConfig(
    name="contacts",
    schema=ContactImportRow,
    transform_row=transform_contact_row,
    flatten_record=flatten_contact,
)


def build_default_registry() -> EntityRegistry:
    return EntityRegistry([CONTACTS])
