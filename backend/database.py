import functools
import logging
import os
import subprocess
import sys
import uuid
from contextlib import asynccontextmanager
from datetime import datetime
from enum import Enum
from typing import Any, Optional

import aiosqlite

import config
from errors import StorageError
from models import Category, Task, TaskCompletion, TaskCreate, TaskWithCompletions

logger = logging.getLogger(__name__)

DATABASE_PATH = config.DATABASE_PATH

_ready = False

# Columns a partial update may touch
UPDATABLE_FIELDS = {
    "title",
    "description",
    "type",
    "due_date",
    "due_time",
    "is_recurring",
    "recurrence_pattern",
    "recurrence_interval",
    "priority",
    "category_id",
    "series_id",
}


@asynccontextmanager
async def get_db():
    """Async context manager for database connections."""
    conn = await aiosqlite.connect(DATABASE_PATH)
    conn.row_factory = aiosqlite.Row
    try:
        yield conn
    finally:
        await conn.close()


def init_db():
    """Initialize database by running Alembic migrations, then accept requests."""
    global _ready

    # Run alembic upgrade from the backend directory, pointed at our database file
    backend_dir = os.path.dirname(os.path.abspath(__file__))
    env = dict(os.environ)
    env["JACKIESLIST_DATABASE_URL"] = f"sqlite:///{os.path.abspath(DATABASE_PATH)}"
    subprocess.run(
        [sys.executable, "-m", "alembic", "upgrade", "head"],
        cwd=backend_dir,
        env=env,
        check=True
    )
    _ready = True
    logger.info("Database ready path=%s", DATABASE_PATH)


def is_ready() -> bool:
    return _ready


def storage_operation(description: str):
    """Re-raise SQLite failures as StorageError("Failed to <description>: ...")."""
    def decorator(func):
        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            try:
                return await func(*args, **kwargs)
            except aiosqlite.Error as exc:
                logger.error("Storage failure during %s: %s", description, exc)
                raise StorageError(f"Failed to {description}: {exc}") from exc
        return wrapper
    return decorator


def _now() -> str:
    return datetime.now().isoformat()


def _to_db(value: Any) -> Any:
    """Convert Python values to what SQLite stores."""
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, bool):
        return int(value)
    return value


def _row_to_task(row) -> Task:
    """Convert a database row to a Task model."""
    keys = row.keys()
    return Task(
        id=row["id"],
        title=row["title"],
        description=row["description"],
        type=row["type"],
        due_date=row["due_date"],
        due_time=row["due_time"] or None,
        is_recurring=bool(row["is_recurring"]),
        recurrence_pattern=row["recurrence_pattern"] or None,
        recurrence_interval=row["recurrence_interval"],
        priority=row["priority"],
        category_id=row["category_id"],
        series_id=row["series_id"] if "series_id" in keys else None,
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def _row_to_completion(row) -> TaskCompletion:
    return TaskCompletion(
        id=row["id"],
        task_id=row["task_id"],
        completed_at=row["completed_at"],
        notes=row["notes"],
    )


# Task operations

@storage_operation("create task")
async def create_task(task: TaskCreate) -> Task:
    """Insert a task with a fresh uuid and created/updated timestamps."""
    task_id = str(uuid.uuid4())
    now = _now()

    async with get_db() as conn:
        await conn.execute(
            """INSERT INTO tasks
               (id, title, description, type, due_date, due_time, is_recurring, recurrence_pattern,
                recurrence_interval, priority, category_id, series_id, created_at, updated_at)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
            (
                task_id,
                task.title,
                task.description,
                _to_db(task.type),
                task.due_date,
                task.due_time,
                int(task.is_recurring),
                _to_db(task.recurrence_pattern),
                task.recurrence_interval,
                _to_db(task.priority),
                task.category_id,
                task.series_id,
                now,
                now,
            )
        )
        await conn.commit()

    logger.debug("Task created id=%s due=%s recurring=%s", task_id, task.due_date, task.is_recurring)
    return Task(id=task_id, created_at=now, updated_at=now, **task.model_dump())


@storage_operation("get tasks")
async def get_tasks(date: Optional[str] = None) -> list[Task]:
    """All tasks, or only those due on `date` (YYYY-MM-DD), ordered by due date and time."""
    query = "SELECT * FROM tasks"
    params: list[Any] = []
    if date:
        query += " WHERE date(due_date) = date(?)"
        params.append(date)
    query += " ORDER BY due_date, due_time"

    async with get_db() as conn:
        async with conn.execute(query, params) as cursor:
            rows = await cursor.fetchall()
    return [_row_to_task(row) for row in rows]


@storage_operation("get task")
async def get_task(task_id: str) -> Optional[Task]:
    async with get_db() as conn:
        async with conn.execute("SELECT * FROM tasks WHERE id = ?", (task_id,)) as cursor:
            row = await cursor.fetchone()
    return _row_to_task(row) if row else None


@storage_operation("update task")
async def update_task(task_id: str, **updates) -> Optional[Task]:
    """
    Update a task with any fields provided.
    Only updates fields that differ from current values; updated_at moves only when something changed.

    Args:
        task_id: Task ID to update
        **updates: Field names and values to update. Unknown fields, id and created_at are ignored.
    """
    async with get_db() as conn:
        async with conn.execute("SELECT * FROM tasks WHERE id = ?", (task_id,)) as cursor:
            row = await cursor.fetchone()
        if not row:
            return None

        # Filter updates: only include fields that differ from current values
        changes = {}
        for field, new_value in updates.items():
            if field not in UPDATABLE_FIELDS:
                continue
            new_value = _to_db(new_value)
            if new_value != row[field]:
                changes[field] = new_value

        if changes:
            changes["updated_at"] = _now()
            set_clause = ", ".join(f"{field} = ?" for field in changes.keys())
            values = list(changes.values()) + [task_id]
            await conn.execute(f"UPDATE tasks SET {set_clause} WHERE id = ?", values)
            await conn.commit()

        # Return updated task (re-fetch to get current state)
        async with conn.execute("SELECT * FROM tasks WHERE id = ?", (task_id,)) as cursor:
            updated_row = await cursor.fetchone()
        return _row_to_task(updated_row)


@storage_operation("delete task")
async def delete_task(task_id: str) -> bool:
    """Delete a task and its completions."""
    async with get_db() as conn:
        await conn.execute("DELETE FROM task_completions WHERE task_id = ?", (task_id,))
        cursor = await conn.execute("DELETE FROM tasks WHERE id = ?", (task_id,))
        await conn.commit()
        return cursor.rowcount > 0


@storage_operation("get recurring tasks")
async def get_recurring_tasks() -> list[Task]:
    async with get_db() as conn:
        async with conn.execute(
            "SELECT * FROM tasks WHERE is_recurring = 1 ORDER BY due_date, due_time"
        ) as cursor:
            rows = await cursor.fetchall()
    return [_row_to_task(row) for row in rows]


@storage_operation("find task instance")
async def find_instance(
    *, title: str, task_type: str, due_date: str, series_id: Optional[str] = None
) -> Optional[Task]:
    """
    Find a non-recurring instance due on `due_date`.
    Matches on series_id when given, otherwise on title and type.
    """
    if series_id:
        query = "SELECT * FROM tasks WHERE series_id = ? AND due_date = ? AND is_recurring = 0 LIMIT 1"
        params: tuple = (series_id, due_date)
    else:
        query = "SELECT * FROM tasks WHERE title = ? AND type = ? AND due_date = ? AND is_recurring = 0 LIMIT 1"
        params = (title, _to_db(task_type), due_date)

    async with get_db() as conn:
        async with conn.execute(query, params) as cursor:
            row = await cursor.fetchone()
    return _row_to_task(row) if row else None


# Completion operations

@storage_operation("complete task")
async def complete_task(
    task_id: str, notes: Optional[str] = None, completed_at: Optional[datetime] = None
) -> TaskCompletion:
    """Record a completion. `completed_at` defaults to now."""
    completion = TaskCompletion(
        id=str(uuid.uuid4()),
        task_id=task_id,
        completed_at=(completed_at or datetime.now()).isoformat(),
        notes=notes,
    )
    async with get_db() as conn:
        await conn.execute(
            "INSERT INTO task_completions (id, task_id, completed_at, notes) VALUES (?, ?, ?, ?)",
            (completion.id, completion.task_id, completion.completed_at, completion.notes)
        )
        await conn.commit()
    return completion


@storage_operation("get completions")
async def get_completions(task_id: Optional[str] = None, date: Optional[str] = None) -> list[TaskCompletion]:
    query = "SELECT * FROM task_completions"
    conditions: list[str] = []
    params: list[Any] = []

    if task_id:
        conditions.append("task_id = ?")
        params.append(task_id)
    if date:
        conditions.append("date(completed_at) = date(?)")
        params.append(date)

    if conditions:
        query += " WHERE " + " AND ".join(conditions)
    query += " ORDER BY completed_at"

    async with get_db() as conn:
        async with conn.execute(query, params) as cursor:
            rows = await cursor.fetchall()
    return [_row_to_completion(row) for row in rows]


@storage_operation("check today's completion")
async def is_task_completed_today(task_id: str, today: Optional[str] = None) -> bool:
    today = today or datetime.now().strftime("%Y-%m-%d")
    async with get_db() as conn:
        async with conn.execute(
            "SELECT COUNT(*) FROM task_completions WHERE task_id = ? AND date(completed_at) = date(?)",
            (task_id, today)
        ) as cursor:
            (count,) = await cursor.fetchone()
    return count > 0


@storage_operation("get overdue tasks")
async def get_overdue_tasks(now: Optional[datetime] = None) -> list[Task]:
    """
    Tasks whose due instant has passed and that have no completion on or after their due date.
    Tasks without a due time are due at end of day, so they only count from the next day.
    """
    now = now or datetime.now()
    today = now.strftime("%Y-%m-%d")
    current_time = now.strftime("%H:%M")

    async with get_db() as conn:
        async with conn.execute(
            """
            SELECT t.* FROM tasks t
            WHERE (t.due_date < ?
                   OR (t.due_date = ? AND t.due_time IS NOT NULL AND t.due_time < ?))
              AND NOT EXISTS (
                  SELECT 1 FROM task_completions tc
                  WHERE tc.task_id = t.id AND date(tc.completed_at) >= date(t.due_date)
              )
            ORDER BY t.due_date, t.due_time
            """,
            (today, today, current_time)
        ) as cursor:
            rows = await cursor.fetchall()
    return [_row_to_task(row) for row in rows]


async def get_task_with_completions(task_id: str) -> Optional[TaskWithCompletions]:
    task = await get_task(task_id)
    if task is None:
        return None
    return TaskWithCompletions(task=task, completions=await get_completions(task_id))


@storage_operation("get completions in range")
async def get_completions_in_range(start_date: str, end_date: str) -> tuple[list[Task], list[TaskCompletion]]:
    """
    Completions whose completion date falls in [start_date, end_date], newest first,
    together with the tasks they reference.
    """
    async with get_db() as conn:
        async with conn.execute(
            """
            SELECT * FROM task_completions
            WHERE date(completed_at) BETWEEN date(?) AND date(?)
            ORDER BY completed_at DESC
            """,
            (start_date, end_date)
        ) as cursor:
            completions = [_row_to_completion(row) for row in await cursor.fetchall()]

        task_ids = list(dict.fromkeys(c.task_id for c in completions))
        tasks: list[Task] = []
        for task_id in task_ids:
            async with conn.execute("SELECT * FROM tasks WHERE id = ?", (task_id,)) as cursor:
                row = await cursor.fetchone()
            if row:
                tasks.append(_row_to_task(row))

    return tasks, completions


# Category operations

@storage_operation("create category")
async def create_category(name: str, color: str, icon: Optional[str] = None) -> Category:
    category = Category(id=str(uuid.uuid4()), name=name, color=color, icon=icon)
    async with get_db() as conn:
        await conn.execute(
            "INSERT INTO categories (id, name, color, icon) VALUES (?, ?, ?, ?)",
            (category.id, category.name, category.color, category.icon)
        )
        await conn.commit()
    return category


@storage_operation("get categories")
async def get_categories() -> list[Category]:
    async with get_db() as conn:
        async with conn.execute("SELECT * FROM categories ORDER BY name") as cursor:
            rows = await cursor.fetchall()
    return [Category(id=r["id"], name=r["name"], color=r["color"], icon=r["icon"]) for r in rows]


# Settings key/value storage

@storage_operation("read setting")
async def get_setting_value(key: str) -> Optional[str]:
    async with get_db() as conn:
        async with conn.execute("SELECT value FROM settings WHERE key = ?", (key,)) as cursor:
            row = await cursor.fetchone()
    return row["value"] if row else None


@storage_operation("save setting")
async def set_setting_value(key: str, value: str) -> None:
    async with get_db() as conn:
        await conn.execute(
            "INSERT INTO settings (key, value) VALUES (?, ?) "
            "ON CONFLICT(key) DO UPDATE SET value = excluded.value",
            (key, value)
        )
        await conn.commit()


@storage_operation("reset database")
async def reset_database() -> None:
    """Delete all rows, children first."""
    async with get_db() as conn:
        await conn.execute("DELETE FROM task_completions")
        await conn.execute("DELETE FROM tasks")
        await conn.execute("DELETE FROM categories")
        await conn.commit()
    logger.info("Database reset")
