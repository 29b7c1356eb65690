"""create_documents_table

Revision ID: 4d2a9c71e0b3
Revises:
Create Date: 2026-10-19 09:12:31.402118

Single table backing every tenant collection (contacts, auditLogs, ...).
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = '4d2a9c71e0b3'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'documents',
        sa.Column('collection', sa.String(255), nullable=False),
        sa.Column('doc_id', sa.String(64), nullable=False),
        sa.Column('data', sa.JSON().with_variant(postgresql.JSONB(), 'postgresql'), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.PrimaryKeyConstraint('collection', 'doc_id'),
    )
    op.create_index(
        'ix_documents_collection_created_at', 'documents', ['collection', 'created_at'], unique=False
    )


def downgrade() -> None:
    op.drop_index('ix_documents_collection_created_at', table_name='documents')
    op.drop_table('documents')
