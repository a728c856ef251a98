"""Repository functions for student progress and attempt history.

`student_progress` keeps one aggregate row per (student, exercise);
`attempts` is append-only.
"""

from __future__ import annotations

from datetime import datetime

import structlog

from fastrevkids.core.models import (
    AttemptRecord,
    ExerciseType,
    ProgressStatus,
    StudentConceptProgress,
)
from fastrevkids.db.database import get_db
from fastrevkids.db.exercises_repository import get_exercise_by_id

logger = structlog.get_logger(__name__)

MASTERY_MIN_ATTEMPTS = 3
MASTERY_SUCCESS_RATE = 0.8


def next_status(attempt_count: int, success_rate: float, attempt: AttemptRecord) -> ProgressStatus:
    """Status after recording an attempt.

    Mastered once at least 3 attempts average 80% success; otherwise the
    latest attempt decides (unfinished -> in progress).
    """
    if attempt_count >= MASTERY_MIN_ATTEMPTS and success_rate >= MASTERY_SUCCESS_RATE:
        return ProgressStatus.MASTERED
    if not attempt.completed:
        return ProgressStatus.IN_PROGRESS
    return ProgressStatus.COMPLETED if attempt.success else ProgressStatus.FAILED


def record_attempt(student_id: str, attempt: AttemptRecord) -> StudentConceptProgress:
    """Append an attempt and update the aggregate progress row.

    Returns:
        The updated progress for the (student, exercise) pair
    """
    with get_db() as conn:
        conn.execute(
            """
            INSERT INTO attempts (
                student_id, exercise_id, timestamp, success, response_time,
                error_type, hints_used, completed, exercise_type
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                student_id,
                attempt.exercise_id,
                attempt.timestamp.isoformat(),
                int(attempt.success),
                attempt.response_time,
                attempt.error_type,
                attempt.hints_used,
                int(attempt.completed),
                attempt.exercise_type.value if attempt.exercise_type else None,
            ),
        )

        row = conn.execute(
            "SELECT attempt_count, success_count FROM student_progress WHERE student_id = ? AND exercise_id = ?",
            (student_id, attempt.exercise_id),
        ).fetchone()
        attempt_count = (row["attempt_count"] if row else 0) + 1
        success_count = (row["success_count"] if row else 0) + int(attempt.success)
        status = next_status(attempt_count, success_count / attempt_count, attempt)

        conn.execute(
            """
            INSERT INTO student_progress (student_id, exercise_id, attempt_count, success_count, status, updated_at)
            VALUES (?, ?, ?, ?, ?, datetime('now'))
            ON CONFLICT(student_id, exercise_id) DO UPDATE SET
                attempt_count = excluded.attempt_count,
                success_count = excluded.success_count,
                status = excluded.status,
                updated_at = excluded.updated_at
            """,
            (student_id, attempt.exercise_id, attempt_count, success_count, status.value),
        )

    logger.info(
        "progress.attempt_recorded",
        student_id=student_id,
        exercise_id=attempt.exercise_id,
        success=attempt.success,
        attempt_count=attempt_count,
        status=status.value,
    )

    return get_progress_for_exercise(student_id, attempt.exercise_id)


def get_progress_for_exercise(student_id: str, exercise_id: str) -> StudentConceptProgress:
    """Progress on one exercise; a not-started record when there is none."""
    with get_db() as conn:
        row = conn.execute(
            "SELECT * FROM student_progress WHERE student_id = ? AND exercise_id = ?",
            (student_id, exercise_id),
        ).fetchone()
        history = _history(conn, student_id, exercise_id)

    exercise = get_exercise_by_id(exercise_id)
    if row is None:
        return StudentConceptProgress(student_id=student_id, exercise_id=exercise_id, exercise=exercise)
    return _row_to_progress(row, history.get(exercise_id, []), exercise)


def get_progress(student_id: str) -> list[StudentConceptProgress]:
    """All progress rows of a student, joined with their catalog entries."""
    with get_db() as conn:
        rows = conn.execute(
            "SELECT * FROM student_progress WHERE student_id = ? ORDER BY exercise_id",
            (student_id,),
        ).fetchall()
        history = _history(conn, student_id)

    return [
        _row_to_progress(row, history.get(row["exercise_id"], []), get_exercise_by_id(row["exercise_id"]))
        for row in rows
    ]


def _history(conn, student_id: str, exercise_id: str | None = None) -> dict[str, list[AttemptRecord]]:
    query = "SELECT * FROM attempts WHERE student_id = ?"
    params: list[str] = [student_id]
    if exercise_id is not None:
        query += " AND exercise_id = ?"
        params.append(exercise_id)
    rows = conn.execute(query + " ORDER BY timestamp, attempt_id", params).fetchall()

    result: dict[str, list[AttemptRecord]] = {}
    for row in rows:
        result.setdefault(row["exercise_id"], []).append(_row_to_attempt(row))
    return result


def _row_to_attempt(row) -> AttemptRecord:
    """Convert database row to AttemptRecord."""
    return AttemptRecord(
        exercise_id=row["exercise_id"],
        timestamp=datetime.fromisoformat(row["timestamp"]),
        success=bool(row["success"]),
        response_time=row["response_time"],
        error_type=row["error_type"],
        hints_used=row["hints_used"],
        completed=bool(row["completed"]),
        exercise_type=ExerciseType(row["exercise_type"]) if row["exercise_type"] else None,
    )


def _row_to_progress(row, history: list[AttemptRecord], exercise) -> StudentConceptProgress:
    """Convert database row to StudentConceptProgress."""
    attempt_count = row["attempt_count"]
    return StudentConceptProgress(
        student_id=row["student_id"],
        exercise_id=row["exercise_id"],
        attempt_count=attempt_count,
        success_rate=row["success_count"] / attempt_count if attempt_count else 0.0,
        status=ProgressStatus.parse(row["status"]),
        history=history,
        exercise=exercise,
    )


class SqliteProgressStore:
    """Progress store backed by the SQLite repository functions."""

    def get_progress(self, student_id: str) -> list[StudentConceptProgress]:
        return get_progress(student_id)

    def record_attempt(self, student_id: str, attempt: AttemptRecord) -> StudentConceptProgress:
        return record_attempt(student_id, attempt)
