"""
Database access for crewplan.

Provides connection management, query execution, and schema migration.
Single source of truth for all database operations.
"""

import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Generator

from crewplan.core.config import CREWPLAN_PATHS, get_scheduling_settings


def get_db_path() -> Path:
    """Get database path from config."""
    return CREWPLAN_PATHS.database


def get_fetch_timeout() -> float:
    """Seconds a connection waits on a locked database before failing."""
    return float(get_scheduling_settings()["fetch_timeout_seconds"])


@contextmanager
def get_db(readonly: bool = False) -> Generator[sqlite3.Connection, None, None]:
    """
    Context manager for database connections.

    Enables foreign keys and Row factory automatically. Lock waits are
    bounded by ``scheduling.fetch_timeout_seconds``.

    Args:
        readonly: Open in read-only mode (useful for queries)

    Yields:
        sqlite3.Connection with Row factory enabled
    """
    db_path = get_db_path()
    timeout = get_fetch_timeout()

    if readonly:
        uri = f"file:{db_path}?mode=ro"
        conn = sqlite3.connect(uri, uri=True, timeout=timeout)
    else:
        db_path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(str(db_path), timeout=timeout)

    try:
        conn.execute("PRAGMA foreign_keys = ON")
        if not readonly:
            conn.execute("PRAGMA journal_mode = WAL")
        conn.row_factory = sqlite3.Row
        yield conn
    finally:
        conn.close()


@contextmanager
def write_lock(conn: sqlite3.Connection) -> Generator[sqlite3.Connection, None, None]:
    """
    Run a read-then-write sequence as one serialized unit.

    ``BEGIN IMMEDIATE`` takes the database write lock before the first read,
    so a second writer blocks (up to the fetch timeout) instead of reading
    stale state. Commits on success, rolls back on any exception.
    """
    if conn.in_transaction:
        conn.commit()
    conn.execute("BEGIN IMMEDIATE")
    try:
        yield conn
    except BaseException:
        conn.rollback()
        raise
    else:
        conn.commit()


# Schema dependency order. Foreign keys flow downhill through this list.
SCHEMA_ORDER = [
    "projects",
    "workforce",
    "schedule",
]


def apply_schemas(conn: sqlite3.Connection) -> None:
    """Apply every module schema.sql to *conn* in dependency order."""
    from crewplan.core.logging import get_logger

    logger = get_logger("crewplan.migrate")
    package_dir = Path(__file__).parent.parent

    for module_name in SCHEMA_ORDER:
        schema_file = package_dir / module_name / "schema.sql"
        if schema_file.exists():
            logger.info(f"Applying schema: {module_name}/schema.sql")
            conn.executescript(schema_file.read_text(encoding="utf-8"))
        else:
            logger.debug(f"No schema for module: {module_name}")


def migrate_all():
    """
    Run all module schemas in dependency order.

    Each module's schema.sql uses CREATE TABLE IF NOT EXISTS,
    making this safe to run repeatedly (idempotent).
    """
    from crewplan.core.logging import get_logger

    logger = get_logger("crewplan.migrate")

    with get_db() as conn:
        apply_schemas(conn)
        conn.commit()
        logger.info("All schemas applied successfully")
