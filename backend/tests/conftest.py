"""
Shared pytest fixtures for backend tests.
Uses a temp-file SQLite database per test for isolation.
"""
import pytest
import sqlite3
import sys
import os

# Add backend to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import database

from fakes import FakeSettings, InMemoryRepository


@pytest.fixture
def test_db(monkeypatch, tmp_path):
    """
    Create an isolated test database for each test.
    Uses a temp file (not :memory:) because database.py opens new connections per operation.
    """
    db_path = str(tmp_path / "test.db")
    monkeypatch.setattr(database, "DATABASE_PATH", db_path)
    monkeypatch.setattr(database, "init_db", lambda: None)
    monkeypatch.setattr(database, "_ready", True)

    # Create tables directly (skip alembic for tests)
    conn = sqlite3.connect(db_path)
    conn.executescript("""
        CREATE TABLE categories (
            id TEXT PRIMARY KEY,
            name TEXT NOT NULL,
            color TEXT NOT NULL,
            icon TEXT
        );

        CREATE TABLE tasks (
            id TEXT PRIMARY KEY,
            title TEXT NOT NULL,
            description TEXT,
            type TEXT NOT NULL,
            due_date TEXT NOT NULL,
            due_time TEXT,
            is_recurring INTEGER NOT NULL DEFAULT 0,
            recurrence_pattern TEXT,
            recurrence_interval INTEGER,
            priority TEXT NOT NULL DEFAULT 'medium',
            category_id TEXT,
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL,
            series_id TEXT
        );

        CREATE TABLE task_completions (
            id TEXT PRIMARY KEY,
            task_id TEXT NOT NULL,
            completed_at TEXT NOT NULL,
            notes TEXT
        );

        CREATE TABLE settings (
            key TEXT PRIMARY KEY,
            value TEXT NOT NULL
        );
    """)
    conn.commit()
    conn.close()

    yield db_path


@pytest.fixture
def app_client(test_db, monkeypatch):
    """
    Create a test client for the FastAPI app.
    init_db is already stubbed by test_db; logging setup is skipped so pytest keeps its handlers.
    """
    from fastapi.testclient import TestClient
    import main

    monkeypatch.setattr(main, "setup_logging", lambda *args, **kwargs: None)

    with TestClient(main.app) as client:
        yield client


@pytest.fixture
def repo():
    return InMemoryRepository()


@pytest.fixture
def settings():
    return FakeSettings(days=3)
