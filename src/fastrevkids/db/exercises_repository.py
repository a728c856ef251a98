"""Repository functions for the exercise catalog.

Exercises live in `exercises`; concept tags in `exercise_concepts`.
"""

from __future__ import annotations

import json

import structlog

from fastrevkids.core.models import (
    DifficultyTier,
    Exercise,
    ExerciseType,
    config_to_dict,
    parse_exercise_config,
)
from fastrevkids.db.database import get_db

logger = structlog.get_logger(__name__)


def insert_exercise(exercise: Exercise, replace_existing: bool = False) -> None:
    """Insert an exercise and its concept tags.

    Args:
        exercise: Exercise to store
        replace_existing: Overwrite a row with the same id (tags included)

    Raises:
        sqlite3.IntegrityError: If the id already exists and replace_existing is False
    """
    config = config_to_dict(exercise.config)
    difficulty = exercise.difficulty.value if isinstance(exercise.difficulty, DifficultyTier) else exercise.difficulty
    verb = "INSERT OR REPLACE" if replace_existing else "INSERT"

    with get_db() as conn:
        if replace_existing:
            conn.execute("DELETE FROM exercise_concepts WHERE exercise_id = ?", (exercise.exercise_id,))
        conn.execute(
            f"""
            {verb} INTO exercises (
                exercise_id, title, difficulty, exercise_type,
                estimated_duration, subject, level, sort_order, config
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                exercise.exercise_id,
                exercise.title,
                difficulty,
                exercise.exercise_type.value,
                exercise.estimated_duration,
                exercise.subject,
                exercise.level,
                exercise.order,
                json.dumps(config) if config is not None else None,
            ),
        )
        conn.executemany(
            "INSERT INTO exercise_concepts (exercise_id, concept_id) VALUES (?, ?)",
            [(exercise.exercise_id, concept_id) for concept_id in exercise.concept_ids],
        )

    logger.debug("exercises.inserted", exercise_id=exercise.exercise_id, concepts=list(exercise.concept_ids))


def get_exercise_by_id(exercise_id: str) -> Exercise | None:
    """Get exercise by ID.

    Returns:
        Exercise if found, None otherwise
    """
    with get_db() as conn:
        row = conn.execute("SELECT * FROM exercises WHERE exercise_id = ?", (exercise_id,)).fetchone()
        if row is None:
            return None
        concepts = _concepts_of(conn, [exercise_id])

    return _row_to_exercise(row, concepts.get(exercise_id, ()))


def get_exercises_by_concept(concept_id: str) -> list[Exercise]:
    """Exercises tagged with a concept, in catalog order."""
    with get_db() as conn:
        rows = conn.execute(
            """
            SELECT e.* FROM exercises e
            JOIN exercise_concepts c ON c.exercise_id = e.exercise_id
            WHERE c.concept_id = ?
            ORDER BY e.sort_order, e.exercise_id
            """,
            (concept_id,),
        ).fetchall()
        concepts = _concepts_of(conn, [r["exercise_id"] for r in rows])

    return [_row_to_exercise(row, concepts.get(row["exercise_id"], ())) for row in rows]


def get_all_exercises() -> list[Exercise]:
    """All exercises, in catalog order."""
    with get_db() as conn:
        rows = conn.execute("SELECT * FROM exercises ORDER BY sort_order, exercise_id").fetchall()
        concepts = _concepts_of(conn, [r["exercise_id"] for r in rows])

    return [_row_to_exercise(row, concepts.get(row["exercise_id"], ())) for row in rows]


def delete_exercise(exercise_id: str) -> bool:
    """Delete exercise by ID.

    Returns:
        True if deleted, False if not found
    """
    with get_db() as conn:
        cursor = conn.execute("DELETE FROM exercises WHERE exercise_id = ?", (exercise_id,))

    deleted = cursor.rowcount > 0
    if deleted:
        logger.debug("exercises.deleted", exercise_id=exercise_id)
    return deleted


def _concepts_of(conn, exercise_ids: list[str]) -> dict[str, tuple[str, ...]]:
    if not exercise_ids:
        return {}
    placeholders = ",".join("?" for _ in exercise_ids)
    rows = conn.execute(
        f"SELECT exercise_id, concept_id FROM exercise_concepts WHERE exercise_id IN ({placeholders}) "
        "ORDER BY rowid",
        exercise_ids,
    ).fetchall()

    result: dict[str, list[str]] = {}
    for row in rows:
        result.setdefault(row["exercise_id"], []).append(row["concept_id"])
    return {k: tuple(v) for k, v in result.items()}


def _parse_difficulty(raw: str) -> DifficultyTier | str:
    try:
        return DifficultyTier(raw.upper())
    except ValueError:
        return raw


def _row_to_exercise(row, concept_ids: tuple[str, ...]) -> Exercise:
    """Convert database row to Exercise."""
    exercise_type = ExerciseType(row["exercise_type"])
    config = json.loads(row["config"]) if row["config"] else None
    return Exercise(
        exercise_id=row["exercise_id"],
        title=row["title"],
        concept_ids=concept_ids,
        difficulty=_parse_difficulty(row["difficulty"]),
        exercise_type=exercise_type,
        estimated_duration=row["estimated_duration"],
        subject=row["subject"],
        level=row["level"],
        order=row["sort_order"],
        config=parse_exercise_config(exercise_type, config),
    )


class SqliteExerciseCatalog:
    """Exercise catalog backed by the SQLite repository functions."""

    def get_exercises_by_concept(self, concept_id: str) -> list[Exercise]:
        return get_exercises_by_concept(concept_id)

    def get_exercise_by_id(self, exercise_id: str) -> Exercise | None:
        return get_exercise_by_id(exercise_id)

    def list_exercises(self) -> list[Exercise]:
        return get_all_exercises()
