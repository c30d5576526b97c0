"""Exceptions raised by the task services. main.py maps them to HTTP status codes."""


class TaskServiceError(Exception):
    """Base class for task service failures."""


class DatabaseNotReadyError(TaskServiceError):
    """The persistence layer did not finish initializing in time."""


class TaskNotFoundError(TaskServiceError):
    def __init__(self, task_id: str):
        super().__init__(f"Task not found: {task_id}")
        self.task_id = task_id


class TaskAlreadyCompletedError(TaskServiceError):
    def __init__(self, task_id: str):
        super().__init__("Task is already completed today")
        self.task_id = task_id


class RecurringGenerationError(TaskServiceError):
    """No instance could be created for a recurring definition."""


class StorageError(TaskServiceError):
    """A storage read or write failed. The message carries the operation."""
