"""
Tests for task_service.py - readiness polling, completion guards,
dashboard metrics, streaks and per-task analytics.
"""
import pytest
import sys
import os
from datetime import date, datetime, timedelta

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import task_service
from errors import DatabaseNotReadyError, StorageError, TaskAlreadyCompletedError, TaskNotFoundError
from fakes import InMemoryRepository
from models import TaskCreate, TaskUpdate
from task_service import READY_ATTEMPTS, TaskService

TODAY = date(2024, 3, 15)


def day(offset: int) -> str:
    return (TODAY + timedelta(days=offset)).isoformat()


@pytest.fixture
def service(repo, settings):
    return TaskService(repo, settings)


@pytest.fixture(autouse=True)
def no_poll_delay(monkeypatch):
    monkeypatch.setattr(task_service, "READY_POLL_SECONDS", 0)


class TestReadiness:

    @pytest.mark.asyncio
    async def test_waits_until_ready(self, settings):
        repo = InMemoryRepository(ready_after=3)
        service = TaskService(repo, settings)

        assert await service.get_tasks() == []
        assert repo.ready_checks == 4

    @pytest.mark.asyncio
    async def test_gives_up_when_never_ready(self, settings):
        repo = InMemoryRepository(ready_after=1000)
        service = TaskService(repo, settings)

        with pytest.raises(DatabaseNotReadyError):
            await service.get_tasks()
        assert repo.ready_checks == READY_ATTEMPTS + 1


class TestTaskOperations:

    @pytest.mark.asyncio
    async def test_create_one_off_task(self, service, repo):
        task = await service.create_task(TaskCreate(title="Dentist", type="appointment", due_date=day(0)))

        assert task.title == "Dentist"
        assert list(repo.tasks) == [task.id]

    @pytest.mark.asyncio
    async def test_create_recurring_routes_to_generation(self, service, repo):
        today = date.today()
        task = await service.create_task(TaskCreate(
            title="Water plants",
            due_date=today.isoformat(),
            is_recurring=True,
            recurrence_pattern="daily",
        ))

        assert task.is_recurring is False
        assert task.due_date == today.isoformat()
        # settings fixture horizon is 3 days
        assert len(repo.instances()) == 4
        assert not any(t.is_recurring for t in repo.tasks.values())

    @pytest.mark.asyncio
    async def test_recurring_flag_without_pattern_is_plain_create(self, service, repo):
        await service.create_task(TaskCreate(title="Odd", due_date=day(0), is_recurring=True))

        assert len(repo.tasks) == 1

    @pytest.mark.asyncio
    async def test_get_task_missing(self, service):
        with pytest.raises(TaskNotFoundError):
            await service.get_task_by_id("nope")

    @pytest.mark.asyncio
    async def test_update_task(self, service, repo):
        task = repo.add(title="Old", due_date=day(0))

        updated = await service.update_task(task.id, TaskUpdate(title="New", priority="high"))

        assert updated.title == "New"
        assert updated.priority == "high"
        assert updated.due_date == day(0)

    @pytest.mark.asyncio
    async def test_update_missing(self, service):
        with pytest.raises(TaskNotFoundError):
            await service.update_task("nope", TaskUpdate(title="New"))

    @pytest.mark.asyncio
    async def test_delete_missing(self, service):
        with pytest.raises(TaskNotFoundError):
            await service.delete_task("nope")

    @pytest.mark.asyncio
    async def test_upcoming_tasks_in_day_order(self, service, repo):
        repo.add(title="Later", due_date=day(2))
        repo.add(title="Now", due_date=day(0))
        repo.add(title="Too far", due_date=day(3))
        repo.add(title="Past", due_date=day(-1))

        tasks = await service.get_upcoming_tasks(days=3, today=TODAY)

        assert [t.title for t in tasks] == ["Now", "Later"]

    @pytest.mark.asyncio
    async def test_today_tasks(self, service, repo):
        repo.add(title="Today", due_date=day(0))
        repo.add(title="Tomorrow", due_date=day(1))

        tasks = await service.get_today_tasks(today=TODAY)

        assert [t.title for t in tasks] == ["Today"]


class TestCompleteTask:

    @pytest.mark.asyncio
    async def test_complete_records_completion(self, service, repo):
        task = repo.add(title="Trash", due_date=date.today().isoformat())

        completion = await service.complete_task(task.id, "done early")

        assert completion.task_id == task.id
        assert completion.notes == "done early"
        assert await service.is_task_completed_today(task.id) is True

    @pytest.mark.asyncio
    async def test_second_completion_same_day_rejected(self, service, repo):
        task = repo.add(title="Trash", due_date=date.today().isoformat())
        await service.complete_task(task.id)

        with pytest.raises(TaskAlreadyCompletedError, match="already completed today"):
            await service.complete_task(task.id)
        assert len(repo.completions) == 1

    @pytest.mark.asyncio
    async def test_completion_yesterday_does_not_block(self, service, repo):
        task = repo.add(title="Trash", due_date=date.today().isoformat())
        yesterday = datetime.now() - timedelta(days=1)
        repo.add_completion(task.id, yesterday.isoformat())

        await service.complete_task(task.id)

        assert len(await service.get_task_completions(task.id)) == 2

    @pytest.mark.asyncio
    async def test_complete_missing_task(self, service, repo):
        with pytest.raises(TaskNotFoundError):
            await service.complete_task("nope")
        assert repo.completions == []

    @pytest.mark.asyncio
    async def test_completion_does_not_create_tasks(self, service, repo):
        task = repo.add(title="Trash", due_date=date.today().isoformat())

        await service.complete_task(task.id)

        assert list(repo.tasks) == [task.id]


class TestStreak:

    @pytest.mark.asyncio
    async def test_incomplete_yesterday_breaks_streak(self, service, repo):
        a = repo.add(title="A", due_date=day(-2))
        b = repo.add(title="B", due_date=day(-2))
        repo.add(title="C", due_date=day(-1))
        repo.add_completion(a.id, f"{day(-2)}T10:00:00")
        repo.add_completion(b.id, f"{day(-2)}T11:00:00")

        assert await service.calculate_streak(TODAY) == 0

    @pytest.mark.asyncio
    async def test_counts_full_days_and_skips_empty_ones(self, service, repo):
        for offset in (0, -1, -4):
            task = repo.add(title=f"Day {offset}", due_date=day(offset))
            repo.add_completion(task.id, f"{day(offset)}T09:00:00")
        repo.add(title="Missed", due_date=day(-5))

        assert await service.calculate_streak(TODAY) == 3

    @pytest.mark.asyncio
    async def test_no_tasks_at_all(self, service):
        assert await service.calculate_streak(TODAY) == 0


class TestDashboard:

    @pytest.mark.asyncio
    async def test_metrics(self, service, repo):
        tasks = [repo.add(title=f"T{i}", due_date=day(0)) for i in range(3)]
        repo.add_completion(tasks[0].id, f"{day(0)}T08:00:00")
        repo.add_completion(tasks[1].id, f"{day(0)}T09:00:00")

        metrics = await service.get_dashboard_metrics(TODAY)

        assert metrics.today_tasks == 3
        assert metrics.completed_today == 2
        assert metrics.completion_rate == 67
        assert metrics.overdue_tasks == 0
        assert metrics.current_streak == 0

    @pytest.mark.asyncio
    async def test_empty_day(self, service):
        metrics = await service.get_dashboard_metrics(TODAY)

        assert metrics.today_tasks == 0
        assert metrics.completion_rate == 0

    @pytest.mark.asyncio
    async def test_storage_failure_wrapped(self, settings):
        class BrokenRepository(InMemoryRepository):
            async def get_overdue_tasks(self):
                raise StorageError("Failed to get overdue tasks: no such table: tasks")

        service = TaskService(BrokenRepository(), settings)

        with pytest.raises(StorageError, match="Failed to get dashboard metrics"):
            await service.get_dashboard_metrics(TODAY)


class TestAnalytics:

    @pytest.mark.asyncio
    async def test_completion_stats(self, service, repo):
        task = repo.add(title="Bills", due_date="2024-03-01", due_time="09:00")
        repo.add_completion(task.id, "2024-03-01T08:00:00")
        repo.add_completion(task.id, "2024-03-02T09:00:00")
        repo.add_completion(task.id, "2024-04-02T09:00:00")

        stats = await service.get_completion_stats("2024-03-01", "2024-03-31")

        assert stats.total_completions == 2
        assert stats.on_time_completions == 1
        assert stats.late_completions == 1

    @pytest.mark.asyncio
    async def test_recent_stats_window(self, service, repo):
        task = repo.add(title="Bills", due_date=day(-40))
        repo.add_completion(task.id, f"{day(-40)}T12:00:00")
        repo.add_completion(task.id, f"{day(-5)}T12:00:00")

        stats = await service.get_recent_completion_stats(30, today=TODAY)

        assert stats.total_completions == 1

    @pytest.mark.asyncio
    async def test_task_analytics_reports(self, service, repo):
        task = repo.add(title="Standup", due_date="2024-01-01", due_time="09:00")
        repo.add_completion(task.id, "2024-01-01T08:55:00")
        repo.add_completion(task.id, "2024-01-01T11:30:00")

        reports = await service.get_task_analytics(task.id)

        assert [r.description for r in reports] == ["Completed on time", "3 hours late"]
        assert [r.significantly_late for r in reports] == [False, True]
        assert reports[1].analytics.was_completed_late is True

    @pytest.mark.asyncio
    async def test_task_analytics_missing_task(self, service):
        with pytest.raises(TaskNotFoundError):
            await service.get_task_analytics("nope")
