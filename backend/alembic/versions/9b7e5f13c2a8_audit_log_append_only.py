"""audit_log_append_only

Revision ID: 9b7e5f13c2a8
Revises: 4d2a9c71e0b3
Create Date: 2026-10-19 09:40:02.118734

Reject UPDATE and DELETE on audit log documents at the DB level. Audit logs
live in collections named ``tenants/<tenant>/auditLogs``.
"""
from typing import Sequence, Union

from alembic import op


# revision identifiers, used by Alembic.
revision: str = '9b7e5f13c2a8'
down_revision: Union[str, None] = '4d2a9c71e0b3'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute(
        """
        CREATE OR REPLACE FUNCTION documents_audit_log_immutable() RETURNS trigger AS $$
        BEGIN
            IF OLD.collection LIKE 'tenants/%/auditLogs' THEN
                RAISE EXCEPTION 'audit log documents are append-only';
            END IF;
            IF TG_OP = 'DELETE' THEN
                RETURN OLD;
            END IF;
            RETURN NEW;
        END;
        $$ LANGUAGE plpgsql;
        """
    )
    op.execute(
        """
        CREATE TRIGGER documents_audit_log_immutable
        BEFORE UPDATE OR DELETE ON documents
        FOR EACH ROW EXECUTE FUNCTION documents_audit_log_immutable();
        """
    )


def downgrade() -> None:
    # Only for disaster recovery; normally never run
    op.execute("DROP TRIGGER IF EXISTS documents_audit_log_immutable ON documents;")
    op.execute("DROP FUNCTION IF EXISTS documents_audit_log_immutable();")
