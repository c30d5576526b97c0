"""
Recurring task materialization.

A recurring definition is never stored in recurring form. Instead it is expanded
into ordinary one-off tasks covering the generation horizon (today + N days), all
sharing one series_id. Each instance can then be completed, edited or deleted on
its own.

Writes are one per instance with no transaction around the run: an instance that
fails to save is logged and skipped, and the run only fails when nothing was saved.
"""
import logging
import uuid
from datetime import date, timedelta
from typing import Optional

from dates import get_date_string, parse_date
from errors import RecurringGenerationError, StorageError, TaskServiceError
from models import Task, TaskCreate
from ports import SettingsProvider, TaskRepository
from recurrence import next_occurrence

logger = logging.getLogger(__name__)

# Hard ceiling on loop iterations per run, whatever the horizon
MAX_INSTANCES_PER_RUN = 365


def build_instance(definition: Task | TaskCreate, due_date: date, series_id: Optional[str]) -> TaskCreate:
    """A concrete, non-recurring copy of `definition` due on `due_date`."""
    return TaskCreate(
        title=definition.title,
        description=definition.description,
        type=definition.type,
        due_date=get_date_string(due_date),
        due_time=definition.due_time,
        is_recurring=False,
        recurrence_pattern=None,
        recurrence_interval=None,
        priority=definition.priority,
        category_id=definition.category_id,
        series_id=series_id,
    )


class RecurringTaskService:
    def __init__(self, repository: TaskRepository, settings: SettingsProvider):
        self.repository = repository
        self.settings = settings

    async def _horizon_days(self, generation_days: Optional[int]) -> int:
        if generation_days is not None:
            return generation_days
        return (await self.settings.get_settings()).recurring_task_generation_days

    async def _generate_run(
        self,
        definition: Task | TaskCreate,
        start: date,
        end_date: date,
        series_id: Optional[str],
        skip_existing: bool = False,
    ) -> list[Task]:
        """
        Create instances from `start` through `end_date` inclusive.

        Args:
            definition: Source of title, type, time, priority, category and recurrence rule
            start: First due date to create
            end_date: Last due date that may be created
            series_id: Written to every instance
            skip_existing: Leave dates alone that already have a matching instance
        """
        created: list[Task] = []
        cursor = start
        iterations = 0

        while cursor <= end_date and iterations < MAX_INSTANCES_PER_RUN:
            iterations += 1
            due = get_date_string(cursor)

            existing = None
            if skip_existing:
                existing = await self.repository.find_instance(
                    title=definition.title,
                    task_type=definition.type,
                    due_date=due,
                    series_id=series_id,
                )

            if existing is None:
                try:
                    created.append(await self.repository.create_task(build_instance(definition, cursor, series_id)))
                except StorageError:
                    logger.exception("Skipping recurring instance title=%r due=%s", definition.title, due)

            following = next_occurrence(cursor, definition.recurrence_pattern, definition.recurrence_interval)
            if following <= cursor:
                # Pattern does not advance (custom without interval): one instance only
                logger.warning(
                    "Recurrence %s/%s does not advance from %s; stopping",
                    definition.recurrence_pattern, definition.recurrence_interval, due,
                )
                break
            cursor = following

        return created

    async def create_recurring_task_with_instances(
        self,
        definition: TaskCreate,
        generation_days: Optional[int] = None,
        today: Optional[date] = None,
    ) -> Task:
        """
        Expand a recurring definition into dated instances and return the first one created.

        `generation_days` overrides the horizon from user settings.
        Raises RecurringGenerationError when no instance could be saved.
        """
        today = today or date.today()
        horizon = await self._horizon_days(generation_days)
        series_id = definition.series_id or str(uuid.uuid4())
        end_date = today + timedelta(days=horizon)

        created = await self._generate_run(definition, parse_date(definition.due_date), end_date, series_id)

        logger.info(
            "Generated %d instances for %r (%s) series=%s through %s",
            len(created), definition.title, definition.recurrence_pattern, series_id, end_date,
        )
        if not created:
            raise RecurringGenerationError(f"Failed to create any instances for recurring task {definition.title!r}")
        return created[0]

    async def generate_missing_recurring_instances(self, today: Optional[date] = None) -> int:
        """
        Startup sweep over tasks still flagged as recurring.

        When a task has no instance for tomorrow, regenerate its forward window starting
        at the first occurrence strictly after today. Errors are logged, never raised.
        Returns the number of instances created.
        """
        today = today or date.today()
        tomorrow = get_date_string(today + timedelta(days=1))

        try:
            recurring = await self.repository.get_recurring_tasks()
            horizon = await self._horizon_days(None)
        except TaskServiceError:
            logger.exception("Recurring instance sweep could not start")
            return 0

        end_date = today + timedelta(days=horizon)
        total = 0

        for task in recurring:
            if not task.recurrence_pattern:
                continue
            try:
                existing = await self.repository.find_instance(
                    title=task.title,
                    task_type=task.type,
                    due_date=tomorrow,
                    series_id=task.series_id,
                )
                if existing is not None:
                    continue

                start = self._first_occurrence_after(task, today)
                if start is None:
                    continue

                series_id = task.series_id
                if not series_id:
                    # Link this and future sweeps to the instances created from now on
                    series_id = str(uuid.uuid4())
                    await self.repository.update_task(task.id, series_id=series_id)

                created = await self._generate_run(task, start, end_date, series_id, skip_existing=True)
                total += len(created)
                logger.info("Sweep generated %d instances for %r from %s", len(created), task.title, start)
            except TaskServiceError:
                logger.exception("Recurring instance sweep failed for task id=%s", task.id)

        return total

    @staticmethod
    def _first_occurrence_after(task: Task, today: date) -> Optional[date]:
        """First occurrence after both the task's own due date and today."""
        cursor = parse_date(task.due_date)
        while True:
            following = next_occurrence(cursor, task.recurrence_pattern, task.recurrence_interval)
            if following <= cursor:
                return None
            cursor = following
            if cursor > today:
                return cursor
