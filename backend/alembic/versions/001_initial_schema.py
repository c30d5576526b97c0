"""Initial schema - categories, tasks, completions, settings

Revision ID: 001
Revises: None
Create Date: 2025-06-02

"""
from typing import Sequence, Union

from alembic import op
from sqlalchemy import text

revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    conn = op.get_bind()

    conn.execute(text("""
        CREATE TABLE IF NOT EXISTS categories (
            id TEXT PRIMARY KEY,
            name TEXT NOT NULL,
            color TEXT NOT NULL,
            icon TEXT
        )
    """))

    conn.execute(text("""
        CREATE TABLE IF NOT EXISTS tasks (
            id TEXT PRIMARY KEY,
            title TEXT NOT NULL,
            description TEXT,
            type TEXT NOT NULL,
            due_date TEXT NOT NULL,
            due_time TEXT,
            is_recurring INTEGER NOT NULL DEFAULT 0,
            recurrence_pattern TEXT,
            recurrence_interval INTEGER,
            priority TEXT NOT NULL DEFAULT 'medium',
            category_id TEXT,
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL,
            FOREIGN KEY (category_id) REFERENCES categories(id)
        )
    """))

    conn.execute(text("""
        CREATE TABLE IF NOT EXISTS task_completions (
            id TEXT PRIMARY KEY,
            task_id TEXT NOT NULL,
            completed_at TEXT NOT NULL,
            notes TEXT,
            FOREIGN KEY (task_id) REFERENCES tasks(id)
        )
    """))

    conn.execute(text("""
        CREATE TABLE IF NOT EXISTS settings (
            key TEXT PRIMARY KEY,
            value TEXT NOT NULL
        )
    """))

    conn.execute(text("CREATE INDEX IF NOT EXISTS idx_tasks_due ON tasks(due_date, due_time)"))
    conn.execute(text("CREATE INDEX IF NOT EXISTS idx_completions_task ON task_completions(task_id, completed_at)"))


def downgrade() -> None:
    conn = op.get_bind()
    conn.execute(text("DROP TABLE IF EXISTS settings"))
    conn.execute(text("DROP TABLE IF EXISTS task_completions"))
    conn.execute(text("DROP TABLE IF EXISTS tasks"))
    conn.execute(text("DROP TABLE IF EXISTS categories"))
