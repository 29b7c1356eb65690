from typing import Any

from sqlalchemy import JSON, Index, String
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base, TimestampMixin


class StoredDocument(Base, TimestampMixin):
    """One schemaless document addressed by (collection path, document id).

    Collection paths are tenant-scoped, e.g. ``tenants/<tenant>/contacts``.
    ``created_at`` is the server-assigned write time and drives audit paging.
    """

    __tablename__ = "documents"

    collection: Mapped[str] = mapped_column(String(255), primary_key=True)
    doc_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    data: Mapped[dict[str, Any]] = mapped_column(
        JSON().with_variant(JSONB(), "postgresql"), nullable=False, default=dict
    )

    __table_args__ = (
        Index("ix_documents_collection_created_at", "collection", "created_at"),
    )
