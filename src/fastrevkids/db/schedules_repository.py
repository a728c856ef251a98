"""Repository for revision schedules.

Writes are compare-and-set on the `version` column: a schedule read at
version N can only be written back while the row is still at N.
"""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime

import structlog

from fastrevkids.core.models import RevisionSchedule, ScheduleConflictError, ScheduleState
from fastrevkids.db.database import get_db

logger = structlog.get_logger(__name__)


def get_schedule(student_id: str, exercise_id: str) -> RevisionSchedule | None:
    """Get the schedule of a (student, exercise) pair.

    Returns:
        RevisionSchedule if found, None otherwise
    """
    with get_db() as conn:
        row = conn.execute(
            "SELECT * FROM revision_schedules WHERE student_id = ? AND exercise_id = ?",
            (student_id, exercise_id),
        ).fetchone()

    if row is None:
        return None
    return _row_to_schedule(row)


def upsert_schedule(schedule: RevisionSchedule) -> RevisionSchedule:
    """Insert (version 0) or update (version N) a schedule.

    Returns:
        The stored schedule with its new version

    Raises:
        ScheduleConflictError: If the stored version differs from schedule.version
    """
    params = (
        schedule.next_review.isoformat(),
        schedule.interval_days,
        schedule.repetitions,
        schedule.easiness,
        schedule.state.value,
        schedule.last_quality,
        schedule.last_review.isoformat() if schedule.last_review else None,
    )

    with get_db() as conn:
        if schedule.version == 0:
            cursor = conn.execute(
                """
                INSERT OR IGNORE INTO revision_schedules (
                    next_review, interval_days, repetitions, easiness, state,
                    last_quality, last_review, student_id, exercise_id, version
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, 1)
                """,
                (*params, schedule.student_id, schedule.exercise_id),
            )
        else:
            cursor = conn.execute(
                """
                UPDATE revision_schedules SET
                    next_review = ?,
                    interval_days = ?,
                    repetitions = ?,
                    easiness = ?,
                    state = ?,
                    last_quality = ?,
                    last_review = ?,
                    version = version + 1
                WHERE student_id = ? AND exercise_id = ? AND version = ?
                """,
                (*params, schedule.student_id, schedule.exercise_id, schedule.version),
            )

        if cursor.rowcount == 0:
            row = conn.execute(
                "SELECT version FROM revision_schedules WHERE student_id = ? AND exercise_id = ?",
                (schedule.student_id, schedule.exercise_id),
            ).fetchone()
            raise ScheduleConflictError(
                schedule.student_id,
                schedule.exercise_id,
                expected=schedule.version,
                actual=row["version"] if row else None,
            )

    logger.debug(
        "schedules.upserted",
        student_id=schedule.student_id,
        exercise_id=schedule.exercise_id,
        version=schedule.version + 1,
    )
    return replace(schedule, version=schedule.version + 1)


def list_due_schedules(student_id: str, now: datetime) -> list[RevisionSchedule]:
    """Schedules with next_review <= now, most overdue first."""
    return [s for s in list_student_schedules(student_id) if s.next_review <= now]


def list_student_schedules(student_id: str) -> list[RevisionSchedule]:
    """All schedules of a student, by review date."""
    with get_db() as conn:
        rows = conn.execute(
            "SELECT * FROM revision_schedules WHERE student_id = ?",
            (student_id,),
        ).fetchall()

    return sorted((_row_to_schedule(row) for row in rows), key=lambda s: s.next_review)


def _row_to_schedule(row) -> RevisionSchedule:
    """Convert database row to RevisionSchedule."""
    return RevisionSchedule(
        student_id=row["student_id"],
        exercise_id=row["exercise_id"],
        next_review=datetime.fromisoformat(row["next_review"]),
        interval_days=row["interval_days"],
        repetitions=row["repetitions"],
        easiness=row["easiness"],
        state=ScheduleState(row["state"]),
        last_quality=row["last_quality"],
        last_review=datetime.fromisoformat(row["last_review"]) if row["last_review"] else None,
        version=row["version"],
    )


class SqliteScheduleStore:
    """Schedule store backed by the SQLite repository functions."""

    def get(self, student_id: str, exercise_id: str) -> RevisionSchedule | None:
        return get_schedule(student_id, exercise_id)

    def upsert(self, schedule: RevisionSchedule) -> RevisionSchedule:
        return upsert_schedule(schedule)

    def list_due(self, student_id: str, now: datetime) -> list[RevisionSchedule]:
        return list_due_schedules(student_id, now)

    def list_for_student(self, student_id: str) -> list[RevisionSchedule]:
        return list_student_schedules(student_id)
