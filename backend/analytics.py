"""
Completion lateness analytics.

Everything here is a pure function of its inputs: nothing is cached or stored,
callers recompute on demand.
"""
import math
from collections import Counter
from datetime import datetime
from typing import Iterable, Optional

from dates import due_datetime
from models import CompletionStats, Task, TaskCompletion, TaskCompletionAnalytics

SIGNIFICANT_HOURS_TIMED = 2
SIGNIFICANT_HOURS_ALL_DAY = 24
TOP_LATE_HOURS = 3


def round_half_up(value: float) -> int:
    """Round .5 away from zero for positive values (2.5 -> 3), unlike built-in round()."""
    return math.floor(value + 0.5)


def parse_timestamp(value: str) -> datetime:
    """Parse an ISO-8601 timestamp into naive local time."""
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone().replace(tzinfo=None)
    return parsed


def analyze_completion(task: Task, completion: TaskCompletion) -> TaskCompletionAnalytics:
    """Work out whether a completion came after the task's due instant, and by how much."""
    completed_at = parse_timestamp(completion.completed_at)
    due_at = due_datetime(task.due_date, task.due_time)

    was_late = completed_at > due_at
    hours_late: Optional[float] = None
    days_late: Optional[int] = None

    if was_late:
        hours_late = (completed_at - due_at).total_seconds() / 3600
        days_late = math.floor(hours_late / 24)

    return TaskCompletionAnalytics(
        was_completed_late=was_late,
        hours_late=hours_late,
        days_late=days_late,
        completion_datetime=completed_at,
        due_datetime=due_at,
    )


def analyze_stats(tasks: Iterable[Task], completions: Iterable[TaskCompletion]) -> CompletionStats:
    """
    Aggregate lateness over many completions.
    Completions whose task is not in `tasks` are left out of every figure.
    """
    tasks_by_id = {task.id: task for task in tasks}
    analyses = [
        analyze_completion(tasks_by_id[completion.task_id], completion)
        for completion in completions
        if completion.task_id in tasks_by_id
    ]

    total = len(analyses)
    late_hours = [a.hours_late for a in analyses if a.was_completed_late and a.hours_late]
    late = sum(1 for a in analyses if a.was_completed_late)
    on_time = total - late

    # Counter keeps first-seen order among equal counts
    buckets = Counter(round_half_up(hours) for hours in late_hours)

    return CompletionStats(
        total_completions=total,
        on_time_completions=on_time,
        late_completions=late,
        average_hours_late=sum(late_hours) / len(late_hours) if late_hours else 0.0,
        on_time_percentage=on_time / total * 100 if total else 0.0,
        most_common_late_hours=[hour for hour, _ in buckets.most_common(TOP_LATE_HOURS)],
    )


def describe_lateness(analytics: TaskCompletionAnalytics) -> str:
    if not analytics.was_completed_late:
        return "Completed on time"

    hours_late = analytics.hours_late
    if not hours_late:
        return "Completed late"

    days_late = analytics.days_late or 0
    if days_late >= 1:
        if days_late == 1:
            remaining = round_half_up(hours_late - 24)
            if remaining >= 24:
                return "2 days late"
            return f"1 day and {remaining} hours late" if remaining > 0 else "1 day late"
        return f"{days_late} days late"

    if hours_late >= 1:
        return f"{round_half_up(hours_late)} hours late"

    return f"{round_half_up(hours_late * 60)} minutes late"


def is_significantly_late(task: Task, analytics: TaskCompletionAnalytics) -> bool:
    """Timed tasks count from two hours late; all-day tasks from a full day."""
    if not analytics.was_completed_late or not analytics.hours_late:
        return False
    threshold = SIGNIFICANT_HOURS_TIMED if task.due_time else SIGNIFICANT_HOURS_ALL_DAY
    return analytics.hours_late >= threshold
