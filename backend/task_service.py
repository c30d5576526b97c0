"""
Task orchestration: CRUD, completions, dashboard metrics and completion analytics.

This is the layer the HTTP routes talk to. It waits for storage to be ready,
turns missing rows into TaskNotFoundError, and hands recurring definitions
to RecurringTaskService.
"""
import asyncio
import logging
from datetime import date, timedelta
from typing import Optional

from analytics import analyze_completion, analyze_stats, describe_lateness, is_significantly_late, round_half_up
from dates import get_date_string
from errors import (
    DatabaseNotReadyError,
    StorageError,
    TaskAlreadyCompletedError,
    TaskNotFoundError,
)
from models import (
    CompletionReport,
    CompletionStats,
    DashboardMetrics,
    Task,
    TaskCompletion,
    TaskCreate,
    TaskUpdate,
    TaskWithCompletions,
)
from ports import SettingsProvider, TaskRepository
from recurring_service import RecurringTaskService

logger = logging.getLogger(__name__)

READY_ATTEMPTS = 10
READY_POLL_SECONDS = 0.1
STREAK_LOOKBACK_DAYS = 365


class TaskService:
    def __init__(
        self,
        repository: TaskRepository,
        settings: SettingsProvider,
        recurring: Optional[RecurringTaskService] = None,
    ):
        self.repository = repository
        self.recurring = recurring or RecurringTaskService(repository, settings)

    async def ensure_ready(self) -> None:
        """Poll storage readiness a few times before giving up."""
        if self.repository.is_ready():
            return
        logger.info("Database not ready, waiting for initialization...")
        for _ in range(READY_ATTEMPTS):
            await asyncio.sleep(READY_POLL_SECONDS)
            if self.repository.is_ready():
                return
        raise DatabaseNotReadyError("Database is not ready after waiting. Please restart the app.")

    # Tasks

    async def create_task(self, task: TaskCreate) -> Task:
        """Create a one-off task, or expand a recurring definition and return its first instance."""
        await self.ensure_ready()
        if task.is_recurring and task.recurrence_pattern:
            return await self.recurring.create_recurring_task_with_instances(task)
        return await self.repository.create_task(task)

    async def get_tasks(self, date: Optional[str] = None) -> list[Task]:
        await self.ensure_ready()
        return await self.repository.get_tasks(date)

    async def get_today_tasks(self, today: Optional[date] = None) -> list[Task]:
        return await self.get_tasks(get_date_string(today or date.today()))

    async def get_upcoming_tasks(self, days: int = 7, today: Optional[date] = None) -> list[Task]:
        """Tasks due from today through the next `days - 1` days, day by day."""
        await self.ensure_ready()
        start = today or date.today()
        tasks: list[Task] = []
        for offset in range(days):
            tasks.extend(await self.repository.get_tasks(get_date_string(start + timedelta(days=offset))))
        return tasks

    async def get_task_by_id(self, task_id: str) -> Task:
        await self.ensure_ready()
        task = await self.repository.get_task(task_id)
        if task is None:
            raise TaskNotFoundError(task_id)
        return task

    async def get_task_with_completions(self, task_id: str) -> TaskWithCompletions:
        await self.ensure_ready()
        result = await self.repository.get_task_with_completions(task_id)
        if result is None:
            raise TaskNotFoundError(task_id)
        return result

    async def update_task(self, task_id: str, update: TaskUpdate) -> Task:
        await self.ensure_ready()
        task = await self.repository.update_task(task_id, **update.model_dump(exclude_unset=True))
        if task is None:
            raise TaskNotFoundError(task_id)
        return task

    async def delete_task(self, task_id: str) -> None:
        await self.ensure_ready()
        if not await self.repository.delete_task(task_id):
            raise TaskNotFoundError(task_id)

    async def get_overdue_tasks(self) -> list[Task]:
        await self.ensure_ready()
        return await self.repository.get_overdue_tasks()

    # Completions

    async def complete_task(self, task_id: str, notes: Optional[str] = None) -> TaskCompletion:
        """
        Record a completion for today.
        Raises TaskAlreadyCompletedError if the task already has one today.
        """
        await self.get_task_by_id(task_id)

        if await self.repository.is_task_completed_today(task_id):
            raise TaskAlreadyCompletedError(task_id)

        completion = await self.repository.complete_task(task_id, notes)
        logger.info("Task %s completed at %s", task_id, completion.completed_at)
        return completion

    async def is_task_completed_today(self, task_id: str) -> bool:
        await self.ensure_ready()
        return await self.repository.is_task_completed_today(task_id)

    async def get_task_completions(self, task_id: str) -> list[TaskCompletion]:
        await self.ensure_ready()
        return await self.repository.get_completions(task_id)

    # Metrics

    async def get_dashboard_metrics(self, today: Optional[date] = None) -> DashboardMetrics:
        await self.ensure_ready()
        today = today or date.today()
        today_str = get_date_string(today)
        logger.debug("Getting dashboard metrics for date: %s", today_str)

        try:
            today_tasks = await self.repository.get_tasks(today_str)
            today_completions = await self.repository.get_completions(None, today_str)
            overdue_tasks = await self.repository.get_overdue_tasks()
            streak = await self.calculate_streak(today)
        except StorageError as exc:
            raise StorageError(f"Failed to get dashboard metrics: {exc}") from exc

        total = len(today_tasks)
        completed = len(today_completions)
        return DashboardMetrics(
            today_tasks=total,
            completed_today=completed,
            overdue_tasks=len(overdue_tasks),
            completion_rate=round_half_up(completed / total * 100) if total else 0,
            current_streak=streak,
        )

    async def calculate_streak(self, today: Optional[date] = None) -> int:
        """
        Count consecutive fully-completed days walking back from today.

        Days with no tasks are skipped. A day with tasks extends the streak only when
        its completion count equals its task count; otherwise the walk stops.
        """
        today = today or date.today()
        streak = 0

        for offset in range(STREAK_LOOKBACK_DAYS):
            day = get_date_string(today - timedelta(days=offset))
            tasks = await self.repository.get_tasks(day)
            if not tasks:
                continue

            completions = await self.repository.get_completions(None, day)
            if len(completions) != len(tasks):
                break
            streak += 1

        return streak

    async def get_completion_stats(self, start_date: str, end_date: str) -> CompletionStats:
        await self.ensure_ready()
        try:
            tasks, completions = await self.repository.get_completions_in_range(start_date, end_date)
        except StorageError as exc:
            raise StorageError(f"Failed to get completion stats: {exc}") from exc
        return analyze_stats(tasks, completions)

    async def get_recent_completion_stats(self, days: int = 30, today: Optional[date] = None) -> CompletionStats:
        end = today or date.today()
        return await self.get_completion_stats(get_date_string(end - timedelta(days=days)), get_date_string(end))

    async def get_task_analytics(self, task_id: str) -> list[CompletionReport]:
        """Lateness of each completion of one task."""
        detail = await self.get_task_with_completions(task_id)
        reports = []
        for completion in detail.completions:
            analytics = analyze_completion(detail.task, completion)
            reports.append(CompletionReport(
                completion=completion,
                analytics=analytics,
                description=describe_lateness(analytics),
                significantly_late=is_significantly_late(detail.task, analytics),
            ))
        return reports
