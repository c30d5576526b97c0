"""Add series_id column linking generated recurring instances

Revision ID: 002
Revises: 001
Create Date: 2025-06-16

"""
from typing import Sequence, Union

from alembic import op
from sqlalchemy import text

revision: str = '002'
down_revision: Union[str, None] = '001'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    conn = op.get_bind()

    # Check existing columns
    columns = {row[1] for row in conn.execute(text("PRAGMA table_info(tasks)")).fetchall()}

    if "series_id" not in columns:
        conn.execute(text("ALTER TABLE tasks ADD COLUMN series_id TEXT"))

    conn.execute(text("CREATE INDEX IF NOT EXISTS idx_tasks_series ON tasks(series_id, due_date)"))


def downgrade() -> None:
    # SQLite doesn't support DROP COLUMN easily; the column stays but is unused
    op.get_bind().execute(text("DROP INDEX IF EXISTS idx_tasks_series"))
