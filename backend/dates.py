"""
Calendar helpers shared by the services.

Due dates travel as YYYY-MM-DD strings and due times as 24-hour HH:MM strings.
All comparisons use naive local time. Predicates take an optional `now` so
callers (and tests) can evaluate them against a fixed instant.
"""
from datetime import date, datetime, time, timedelta
from typing import Optional, Union

DATE_FORMAT = "%Y-%m-%d"
TIME_FORMAT = "%H:%M"

# A task without a due time is due at the very end of its day
END_OF_DAY = time(23, 59, 59, 999000)

DateLike = Union[date, datetime, str]


def parse_date(value: DateLike) -> date:
    """Accept a date, a datetime, or a YYYY-MM-DD string (a longer ISO string is cut to its date)."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return datetime.strptime(value[:10], DATE_FORMAT).date()


def parse_time(value: str) -> time:
    hours, minutes = value.split(":")[:2]
    return time(int(hours), int(minutes))


def due_datetime(due_date: DateLike, due_time: Optional[str] = None) -> datetime:
    """The instant a task becomes late."""
    day = parse_date(due_date)
    if due_time:
        return datetime.combine(day, parse_time(due_time))
    return datetime.combine(day, END_OF_DAY)


def get_date_string(value: Union[date, datetime]) -> str:
    return value.strftime(DATE_FORMAT)


def get_time_string(value: datetime) -> str:
    return value.strftime(TIME_FORMAT)


def today_string(now: Optional[datetime] = None) -> str:
    return get_date_string(now or datetime.now())


def format_date(value: DateLike) -> str:
    """Short display form, e.g. "Mon, Jan 1"."""
    day = parse_date(value)
    return f"{day:%a}, {day:%b} {day.day}"


def format_time(value: str) -> str:
    """Convert "14:05" to "2:05 PM"."""
    hours, minutes = value.split(":")[:2]
    hour = int(hours)
    period = "PM" if hour >= 12 else "AM"
    display_hour = hour % 12 or 12
    return f"{display_hour}:{minutes.zfill(2)} {period}"


def is_past_due(due_date: DateLike, due_time: Optional[str] = None, now: Optional[datetime] = None) -> bool:
    return due_datetime(due_date, due_time) < (now or datetime.now())


def is_today(value: DateLike, now: Optional[datetime] = None) -> bool:
    return parse_date(value) == (now or datetime.now()).date()


def is_tomorrow(value: DateLike, now: Optional[datetime] = None) -> bool:
    return parse_date(value) == (now or datetime.now()).date() + timedelta(days=1)


def get_days_until(value: DateLike, today: Optional[date] = None) -> int:
    """Whole calendar days from today; negative for past dates."""
    return (parse_date(value) - (today or date.today())).days
