"""Initial schema: scan_record, activity_event

Revision ID: 0001
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""
from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # --- scan_record ---
    op.create_table(
        "scan_record",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("file_id", sa.String(255), nullable=False),
        sa.Column("checked_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_scan_record_file_id", "scan_record", ["file_id"], unique=True)

    # --- activity_event ---
    op.create_table(
        "activity_event",
        sa.Column(
            "id",
            postgresql.UUID(as_uuid=True),
            primary_key=True,
            server_default=sa.text("gen_random_uuid()"),
        ),
        sa.Column("app", sa.Text(), nullable=False),
        sa.Column("type", sa.Text(), nullable=False),
        sa.Column("subject", sa.Text(), nullable=False),
        sa.Column(
            "subject_params",
            postgresql.JSONB(),
            nullable=False,
            server_default="[]",
        ),
        sa.Column("message", sa.Text(), nullable=False, server_default=""),
        sa.Column("object_path", sa.Text(), nullable=False),
        sa.Column("affected_user", sa.Text(), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
        sa.Column("hmac_signature", sa.Text(), nullable=False),
    )
    op.create_index("ix_activity_event_affected_user", "activity_event", ["affected_user"])
    op.create_index("ix_activity_event_created_at", "activity_event", ["created_at"])

    # Append-only enforcement at the DB level
    op.execute(
        """
        CREATE OR REPLACE FUNCTION fn_activity_event_append_only()
        RETURNS TRIGGER LANGUAGE plpgsql AS $$
        BEGIN
            IF TG_OP = 'UPDATE' THEN
                RAISE EXCEPTION 'activity_event is append-only: UPDATE is not permitted';
            ELSIF TG_OP = 'DELETE' THEN
                RAISE EXCEPTION 'activity_event is append-only: DELETE is not permitted';
            END IF;
            RETURN NULL;
        END;
        $$
        """
    )
    op.execute(
        """
        CREATE TRIGGER tg_activity_event_append_only
        BEFORE UPDATE OR DELETE ON activity_event
        FOR EACH ROW EXECUTE FUNCTION fn_activity_event_append_only()
        """
    )


def downgrade() -> None:
    op.execute("DROP TRIGGER IF EXISTS tg_activity_event_append_only ON activity_event")
    op.execute("DROP FUNCTION IF EXISTS fn_activity_event_append_only()")

    op.drop_index("ix_activity_event_created_at", table_name="activity_event")
    op.drop_index("ix_activity_event_affected_user", table_name="activity_event")
    op.drop_table("activity_event")

    op.drop_index("ix_scan_record_file_id", table_name="scan_record")
    op.drop_table("scan_record")
