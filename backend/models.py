from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator


class TaskType(str, Enum):
    APPOINTMENT = "appointment"
    CHORE = "chore"
    TASK = "task"


class RecurrencePattern(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    BIWEEKLY = "biweekly"
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    ANNUALLY = "annually"
    CUSTOM = "custom"


class Priority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class Theme(str, Enum):
    LIGHT = "light"
    DARK = "dark"
    SYSTEM = "system"


class Task(BaseModel):
    id: str
    title: str
    description: Optional[str] = None
    type: TaskType = TaskType.TASK
    due_date: str  # YYYY-MM-DD
    due_time: Optional[str] = None  # HH:MM, 24-hour
    is_recurring: bool = False
    recurrence_pattern: Optional[RecurrencePattern] = None
    recurrence_interval: Optional[int] = None  # only meaningful for "custom"
    priority: Priority = Priority.MEDIUM
    category_id: Optional[str] = None
    series_id: Optional[str] = None  # shared by instances generated from one definition
    created_at: str  # ISO format datetime string
    updated_at: str


def _check_date(value: Optional[str]) -> Optional[str]:
    if value is not None:
        datetime.strptime(value, "%Y-%m-%d")
    return value


def _check_time(value: Optional[str]) -> Optional[str]:
    if value:
        datetime.strptime(value, "%H:%M")
    return value or None


class TaskCreate(BaseModel):
    title: str = Field(min_length=1)
    description: Optional[str] = None
    type: TaskType = TaskType.TASK
    due_date: str  # YYYY-MM-DD
    due_time: Optional[str] = None
    is_recurring: bool = False
    recurrence_pattern: Optional[RecurrencePattern] = None
    recurrence_interval: Optional[int] = Field(default=None, ge=1)
    priority: Priority = Priority.MEDIUM
    category_id: Optional[str] = None
    series_id: Optional[str] = None

    @field_validator("title")
    @classmethod
    def title_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("title must not be blank")
        return value

    @field_validator("due_date")
    @classmethod
    def due_date_format(cls, value: str) -> str:
        return _check_date(value)

    @field_validator("due_time")
    @classmethod
    def due_time_format(cls, value: Optional[str]) -> Optional[str]:
        return _check_time(value)


class TaskUpdate(BaseModel):
    """Partial update. Omitted fields stay as they are; validators only see fields that were sent."""
    title: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None
    type: Optional[TaskType] = None
    due_date: Optional[str] = None
    due_time: Optional[str] = None
    is_recurring: Optional[bool] = None
    recurrence_pattern: Optional[RecurrencePattern] = None
    recurrence_interval: Optional[int] = Field(default=None, ge=1)
    priority: Optional[Priority] = None
    category_id: Optional[str] = None

    @field_validator("title", "type", "due_date", "priority", "is_recurring")
    @classmethod
    def not_null(cls, value):
        # These columns are NOT NULL; an explicit null cannot mean "clear"
        if value is None:
            raise ValueError("field may be omitted but not null")
        return value

    @field_validator("title")
    @classmethod
    def title_not_blank(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and not value.strip():
            raise ValueError("title must not be blank")
        return value

    @field_validator("due_date")
    @classmethod
    def due_date_format(cls, value: Optional[str]) -> Optional[str]:
        return _check_date(value)

    @field_validator("due_time")
    @classmethod
    def due_time_format(cls, value: Optional[str]) -> Optional[str]:
        return _check_time(value)


class TaskCompletion(BaseModel):
    id: str
    task_id: str
    completed_at: str  # ISO format datetime string
    notes: Optional[str] = None


class CompleteRequest(BaseModel):
    notes: Optional[str] = None


class TaskWithCompletions(BaseModel):
    task: Task
    completions: list[TaskCompletion]


class TaskCompletionAnalytics(BaseModel):
    was_completed_late: bool
    hours_late: Optional[float] = None
    days_late: Optional[int] = None
    completion_datetime: datetime
    due_datetime: datetime


class CompletionStats(BaseModel):
    total_completions: int = 0
    on_time_completions: int = 0
    late_completions: int = 0
    average_hours_late: float = 0.0
    on_time_percentage: float = 0.0
    most_common_late_hours: list[int] = []


class CompletionReport(BaseModel):
    """One completion with its lateness analysis, as shown on a task's detail view."""
    completion: TaskCompletion
    analytics: TaskCompletionAnalytics
    description: str
    significantly_late: bool


class DashboardMetrics(BaseModel):
    today_tasks: int
    completed_today: int
    overdue_tasks: int
    completion_rate: int
    current_streak: int


class Category(BaseModel):
    id: str
    name: str
    color: str
    icon: Optional[str] = None


class CategoryCreate(BaseModel):
    name: str = Field(min_length=1)
    color: str
    icon: Optional[str] = None


class UserSettings(BaseModel):
    recurring_task_generation_days: int = Field(default=30, ge=1, le=365)
    theme: Theme = Theme.SYSTEM


class SettingsUpdate(BaseModel):
    recurring_task_generation_days: Optional[int] = Field(default=None, ge=1, le=365)
    theme: Optional[Theme] = None
