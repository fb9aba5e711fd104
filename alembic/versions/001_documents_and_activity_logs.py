"""Create documents and activity_logs tables.

Revision ID: 001
Revises:
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    conn = op.get_bind()
    insp = sa.inspect(conn)
    tables = insp.get_table_names()

    if "documents" not in tables:
        op.create_table(
            "documents",
            sa.Column("id", sa.String(36), nullable=False),
            sa.Column("collection", sa.String(64), nullable=False),
            sa.Column("key", sa.String(255), nullable=False),
            sa.Column("data", sa.JSON(), nullable=False),
            sa.Column("updated_at", sa.DateTime(), nullable=True),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("collection", "key", name="uq_documents_collection_key"),
        )
        op.create_index("ix_documents_collection", "documents", ["collection"], unique=False)

    if "activity_logs" not in tables:
        op.create_table(
            "activity_logs",
            sa.Column("id", sa.String(36), nullable=False),
            sa.Column("action", sa.String(100), nullable=False),
            sa.Column("resource", sa.String(100), nullable=False),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("status", sa.String(20), nullable=True, server_default="success"),
            sa.Column("created_at", sa.DateTime(), nullable=True, server_default=sa.text("CURRENT_TIMESTAMP")),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_activity_logs_created_at", "activity_logs", ["created_at"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_activity_logs_created_at", table_name="activity_logs")
    op.drop_table("activity_logs")
    op.drop_index("ix_documents_collection", table_name="documents")
    op.drop_table("documents")
