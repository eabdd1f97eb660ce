"""
Shared test fixtures for crewplan.

Provides an in-memory database with all schemas, a patched get_db, a CLI
runner, and seed helpers for jobs and workers.
"""

import sqlite3
from contextlib import contextmanager
from unittest.mock import patch

import pytest

from crewplan.core.db import apply_schemas


@pytest.fixture(autouse=True)
def fresh_job_cache():
    """Each test starts with an empty job read-model cache."""
    from crewplan.projects.jobs import invalidate_job_cache

    invalidate_job_cache()
    yield
    invalidate_job_cache()


@pytest.fixture
def memory_db():
    """Provide an in-memory SQLite database with ALL schemas applied in FK order."""
    conn = sqlite3.connect(":memory:")
    conn.execute("PRAGMA foreign_keys = ON")
    conn.row_factory = sqlite3.Row
    apply_schemas(conn)
    conn.commit()

    yield conn
    conn.close()


@pytest.fixture
def mock_db(memory_db):
    """Patch get_db everywhere to return the in-memory database."""

    @contextmanager
    def _get_db(readonly=False):
        yield memory_db

    with patch("crewplan.core.db.get_db", _get_db), \
         patch("crewplan.core.get_db", _get_db), \
         patch("crewplan.api.schedule.get_db", _get_db), \
         patch("crewplan.api.dispatch.get_db", _get_db):
        yield memory_db


@pytest.fixture
def cli_runner():
    """Typer CLI test runner."""
    from typer.testing import CliRunner

    return CliRunner()


@pytest.fixture
def seed_job(memory_db):
    """Insert one qualifying job with a labor and a management line. Returns job key."""
    from crewplan.projects.jobs import add_cost_line, create_project

    job_key = create_project(memory_db, "Acme", "1001", "North Lot")
    add_cost_line(memory_db, job_key, "Flatwork", cost_type="Labor", sales=5000, cost=3000, hours=100)
    add_cost_line(memory_db, job_key, "Supervision", cost_type="Project Management", sales=800, cost=500, hours=20)
    return job_key


@pytest.fixture
def seed_crew(memory_db):
    """Two foremen (A, B) and three field workers (W1-W3)."""
    from crewplan.workforce.employees import create_worker

    create_worker(memory_db, "Ann", "Alder", role="Foreman", worker_id="A")
    create_worker(memory_db, "Ben", "Birch", role="Foreman", worker_id="B")
    for n, last in enumerate(("Cole", "Dunn", "Eads"), start=1):
        create_worker(memory_db, f"Worker{n}", last, role="Field Worker", worker_id=f"W{n}")
    return memory_db
