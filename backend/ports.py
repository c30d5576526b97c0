"""
Collaborator contracts used by the services.

The generation and orchestration services depend on these Protocols rather than
on SQLite directly, so tests can hand them in-memory fakes.
"""
from typing import Any, Optional, Protocol

from models import Task, TaskCompletion, TaskCreate, TaskWithCompletions, UserSettings


class TaskRepository(Protocol):
    def is_ready(self) -> bool: ...

    async def create_task(self, task: TaskCreate) -> Task: ...
    async def get_tasks(self, date: Optional[str] = None) -> list[Task]: ...
    async def get_task(self, task_id: str) -> Optional[Task]: ...
    async def update_task(self, task_id: str, **updates: Any) -> Optional[Task]: ...
    async def delete_task(self, task_id: str) -> bool: ...

    async def complete_task(self, task_id: str, notes: Optional[str] = None) -> TaskCompletion: ...
    async def get_completions(
        self, task_id: Optional[str] = None, date: Optional[str] = None
    ) -> list[TaskCompletion]: ...
    async def is_task_completed_today(self, task_id: str) -> bool: ...

    async def get_overdue_tasks(self) -> list[Task]: ...
    async def get_task_with_completions(self, task_id: str) -> Optional[TaskWithCompletions]: ...
    async def get_completions_in_range(
        self, start_date: str, end_date: str
    ) -> tuple[list[Task], list[TaskCompletion]]: ...

    async def get_recurring_tasks(self) -> list[Task]: ...
    async def find_instance(
        self, *, title: str, task_type: str, due_date: str, series_id: Optional[str] = None
    ) -> Optional[Task]: ...


class SettingsProvider(Protocol):
    async def get_settings(self) -> UserSettings: ...
