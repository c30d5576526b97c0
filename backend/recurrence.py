from datetime import date, timedelta
from typing import Optional, Union

from dateutil.relativedelta import relativedelta

from models import RecurrencePattern

# Fixed-length steps. Calendar steps (months/years) go through relativedelta,
# which clamps to the last day of a shorter month: Jan 31 + 1 month = Feb 28.
DAY_STEPS = {
    RecurrencePattern.DAILY: timedelta(days=1),
    RecurrencePattern.WEEKLY: timedelta(days=7),
    RecurrencePattern.BIWEEKLY: timedelta(days=14),
}

CALENDAR_STEPS = {
    RecurrencePattern.MONTHLY: relativedelta(months=1),
    RecurrencePattern.QUARTERLY: relativedelta(months=3),
    RecurrencePattern.ANNUALLY: relativedelta(years=1),
}


def _coerce_pattern(pattern: Union[RecurrencePattern, str, None]) -> Optional[RecurrencePattern]:
    if pattern is None:
        return None
    try:
        return RecurrencePattern(str(getattr(pattern, "value", pattern)).lower().strip())
    except ValueError:
        return None


def next_occurrence(
    current: date,
    pattern: Union[RecurrencePattern, str, None],
    interval: Optional[int] = None,
) -> date:
    """
    Calculate the next occurrence after `current` for a recurrence pattern.
    "custom" advances by `interval` days.
    Returns `current` unchanged for an unknown pattern, or for "custom" without an interval.
    """
    rule = _coerce_pattern(pattern)

    if rule in DAY_STEPS:
        return current + DAY_STEPS[rule]

    if rule in CALENDAR_STEPS:
        return current + CALENDAR_STEPS[rule]

    if rule == RecurrencePattern.CUSTOM and interval:
        return current + timedelta(days=int(interval))

    return current


def format_recurrence_text(pattern: Union[RecurrencePattern, str, None], interval: Optional[int] = None) -> str:
    rule = _coerce_pattern(pattern)
    if rule == RecurrencePattern.CUSTOM:
        return f"Every {interval} days" if interval else "Custom"
    return {
        RecurrencePattern.DAILY: "Daily",
        RecurrencePattern.WEEKLY: "Weekly",
        RecurrencePattern.BIWEEKLY: "Every 2 weeks",
        RecurrencePattern.MONTHLY: "Monthly",
        RecurrencePattern.QUARTERLY: "Every 3 months",
        RecurrencePattern.ANNUALLY: "Yearly",
    }.get(rule, "")
