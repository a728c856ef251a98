"""SQLite database connection and schema management.

Provides connection management and schema initialization for the
exercise catalog, student progress and revision schedules.
"""

from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from contextvars import ContextVar
from pathlib import Path
from typing import Generator

import structlog

logger = structlog.get_logger(__name__)

# Default database location
DEFAULT_DB_PATH = Path("db/fastrevkids.db")

# Current database path (module-level, set by init_db)
_db_path: Path | None = None

# Connection of the transaction in progress, if any
_active_conn: ContextVar[sqlite3.Connection | None] = ContextVar("fastrevkids_active_conn", default=None)


def init_db(db_path: Path | None = None) -> None:
    """Initialize database with schema.

    Creates the database file and all required tables if they don't exist.

    Args:
        db_path: Path to database file. Defaults to db/fastrevkids.db
    """
    global _db_path
    _db_path = Path(db_path) if db_path else DEFAULT_DB_PATH

    _db_path.parent.mkdir(parents=True, exist_ok=True)

    with get_db() as conn:
        _create_schema(conn)

    logger.info("database.initialized", path=str(_db_path))


def get_db_path() -> Path:
    return _db_path or DEFAULT_DB_PATH


@contextmanager
def get_db() -> Generator[sqlite3.Connection, None, None]:
    """Get database connection as context manager.

    Commits on normal exit, rolls back on any exception. A call nested
    inside another `with get_db()` reuses the outer connection; only the
    outermost call commits, rolls back and closes, so a group of
    repository calls can run as one transaction.

    Yields:
        SQLite connection with row factory set to sqlite3.Row

    Example:
        with get_db() as conn:
            rows = conn.execute("SELECT * FROM exercises").fetchall()
    """
    active = _active_conn.get()
    if active is not None:
        yield active
        return

    db_path = get_db_path()
    db_path.parent.mkdir(parents=True, exist_ok=True)

    conn = sqlite3.connect(db_path)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    token = _active_conn.set(conn)

    try:
        yield conn
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        _active_conn.reset(token)
        conn.close()


def _create_schema(conn: sqlite3.Connection) -> None:
    """Create database schema. Uses IF NOT EXISTS for idempotency."""
    conn.executescript(
        """
        -- Catalogue d'exercices
        CREATE TABLE IF NOT EXISTS exercises (
            exercise_id TEXT PRIMARY KEY,
            title TEXT NOT NULL,
            difficulty TEXT NOT NULL DEFAULT 'MOYEN',
            exercise_type TEXT NOT NULL CHECK(exercise_type IN ('QCM', 'CALCUL', 'TEXTE_LIBRE', 'DRAG_DROP', 'PROBLEME')),
            estimated_duration INTEGER NOT NULL DEFAULT 60,
            subject TEXT NOT NULL DEFAULT 'mathematiques',
            level TEXT NOT NULL DEFAULT 'CP',
            sort_order INTEGER NOT NULL DEFAULT 0,
            config TEXT
        );

        -- Relation exercice <-> notion (un exercice peut couvrir plusieurs notions)
        CREATE TABLE IF NOT EXISTS exercise_concepts (
            exercise_id TEXT NOT NULL REFERENCES exercises(exercise_id) ON DELETE CASCADE,
            concept_id TEXT NOT NULL,
            PRIMARY KEY (exercise_id, concept_id)
        );

        -- Progression d'un élève sur un exercice
        CREATE TABLE IF NOT EXISTS student_progress (
            student_id TEXT NOT NULL,
            exercise_id TEXT NOT NULL,
            attempt_count INTEGER NOT NULL DEFAULT 0,
            success_count INTEGER NOT NULL DEFAULT 0,
            status TEXT NOT NULL DEFAULT 'not_started',
            updated_at TEXT NOT NULL DEFAULT (datetime('now')),
            PRIMARY KEY (student_id, exercise_id)
        );

        -- Historique des tentatives (jamais modifié)
        CREATE TABLE IF NOT EXISTS attempts (
            attempt_id INTEGER PRIMARY KEY AUTOINCREMENT,
            student_id TEXT NOT NULL,
            exercise_id TEXT NOT NULL,
            timestamp TEXT NOT NULL,
            success INTEGER NOT NULL,
            response_time REAL NOT NULL DEFAULT 0,
            error_type TEXT,
            hints_used INTEGER NOT NULL DEFAULT 0,
            completed INTEGER NOT NULL DEFAULT 1,
            exercise_type TEXT
        );

        -- Plannings de révision espacée
        CREATE TABLE IF NOT EXISTS revision_schedules (
            student_id TEXT NOT NULL,
            exercise_id TEXT NOT NULL,
            next_review TEXT NOT NULL,
            interval_days INTEGER NOT NULL DEFAULT 1,
            repetitions INTEGER NOT NULL DEFAULT 0,
            easiness REAL NOT NULL DEFAULT 2.5,
            state TEXT NOT NULL DEFAULT 'due' CHECK(state IN ('due', 'reviewed_success', 'reviewed_failure')),
            last_quality REAL,
            last_review TEXT,
            version INTEGER NOT NULL DEFAULT 1,
            UNIQUE(student_id, exercise_id)
        );

        -- Index
        CREATE INDEX IF NOT EXISTS idx_exercise_concepts_concept ON exercise_concepts(concept_id);
        CREATE INDEX IF NOT EXISTS idx_attempts_student ON attempts(student_id, exercise_id);
        CREATE INDEX IF NOT EXISTS idx_schedules_due ON revision_schedules(student_id, next_review);
        """
    )
