import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

import config
import database
import settings_service
from errors import (
    DatabaseNotReadyError,
    RecurringGenerationError,
    StorageError,
    TaskAlreadyCompletedError,
    TaskNotFoundError,
)
from logging_setup import setup_logging
from models import (
    Category,
    CategoryCreate,
    CompleteRequest,
    CompletionReport,
    CompletionStats,
    DashboardMetrics,
    SettingsUpdate,
    Task,
    TaskCompletion,
    TaskCreate,
    TaskUpdate,
    TaskWithCompletions,
    UserSettings,
)
from task_service import TaskService

logger = logging.getLogger(__name__)

# The database and settings modules implement the repository/settings ports directly
service = TaskService(database, settings_service)


@asynccontextmanager
async def lifespan(_app: FastAPI):
    # Startup
    setup_logging(config.LOG_LEVEL, config.LOG_DIR)
    database.init_db()
    try:
        created = await service.recurring.generate_missing_recurring_instances()
        logger.info("Recurring task instances checked, %d created", created)
    except Exception:
        # The sweep must never keep the app from starting
        logger.exception("Recurring instance sweep failed")
    yield
    # Shutdown (nothing to do)

app = FastAPI(lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _error(status_code: int, exc: Exception) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"detail": str(exc)})


@app.exception_handler(TaskNotFoundError)
async def not_found_handler(_request: Request, exc: TaskNotFoundError) -> JSONResponse:
    return _error(404, exc)


@app.exception_handler(TaskAlreadyCompletedError)
async def already_completed_handler(_request: Request, exc: TaskAlreadyCompletedError) -> JSONResponse:
    return _error(409, exc)


@app.exception_handler(DatabaseNotReadyError)
async def not_ready_handler(_request: Request, exc: DatabaseNotReadyError) -> JSONResponse:
    return _error(503, exc)


@app.exception_handler(RecurringGenerationError)
@app.exception_handler(StorageError)
async def storage_error_handler(_request: Request, exc: Exception) -> JSONResponse:
    logger.error("Request failed: %s", exc)
    return _error(500, exc)


# Tasks

@app.get("/tasks")
async def get_tasks(date: Optional[str] = None) -> list[Task]:
    return await service.get_tasks(date)


@app.post("/tasks", status_code=201)
async def create_task(task_data: TaskCreate) -> Task:
    """Create a task. Recurring definitions return the first generated instance."""
    return await service.create_task(task_data)


@app.get("/tasks/today")
async def get_today_tasks() -> list[Task]:
    return await service.get_today_tasks()


@app.get("/tasks/upcoming")
async def get_upcoming_tasks(days: int = Query(default=7, ge=1, le=365)) -> list[Task]:
    return await service.get_upcoming_tasks(days)


@app.get("/tasks/overdue")
async def get_overdue_tasks() -> list[Task]:
    return await service.get_overdue_tasks()


@app.get("/tasks/{task_id}")
async def get_task(task_id: str) -> TaskWithCompletions:
    return await service.get_task_with_completions(task_id)


@app.patch("/tasks/{task_id}")
async def update_task(task_id: str, task_data: TaskUpdate) -> Task:
    return await service.update_task(task_id, task_data)


@app.delete("/tasks/{task_id}")
async def delete_task(task_id: str) -> dict:
    await service.delete_task(task_id)
    return {"status": "deleted"}


@app.post("/tasks/{task_id}/complete", status_code=201)
async def complete_task(task_id: str, request: Optional[CompleteRequest] = None) -> TaskCompletion:
    return await service.complete_task(task_id, request.notes if request else None)


@app.get("/tasks/{task_id}/completions")
async def get_task_completions(task_id: str) -> list[TaskCompletion]:
    await service.get_task_by_id(task_id)
    return await service.get_task_completions(task_id)


@app.get("/tasks/{task_id}/analytics")
async def get_task_analytics(task_id: str) -> list[CompletionReport]:
    return await service.get_task_analytics(task_id)


# Metrics and analytics

@app.get("/dashboard")
async def get_dashboard() -> DashboardMetrics:
    return await service.get_dashboard_metrics()


@app.get("/analytics/completions")
async def get_completion_stats(start: str, end: str) -> CompletionStats:
    return await service.get_completion_stats(start, end)


@app.get("/analytics/recent")
async def get_recent_completion_stats(days: int = Query(default=30, ge=1, le=365)) -> CompletionStats:
    return await service.get_recent_completion_stats(days)


# Categories

@app.get("/categories")
async def get_categories() -> list[Category]:
    await service.ensure_ready()
    return await database.get_categories()


@app.post("/categories", status_code=201)
async def create_category(category: CategoryCreate) -> Category:
    await service.ensure_ready()
    return await database.create_category(category.name, category.color, category.icon)


# Settings

@app.get("/settings")
async def get_settings() -> UserSettings:
    return await settings_service.get_settings()


@app.patch("/settings")
async def update_settings(update: SettingsUpdate) -> UserSettings:
    return await settings_service.update_settings(update)


@app.post("/settings/reset")
async def reset_settings() -> UserSettings:
    return await settings_service.reset_settings()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
