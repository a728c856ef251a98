"""Import of the exercise catalog from a YAML seed file.

Seed format (data/seed/exercises_v1.yaml):

    exercises:
      - id: add-simple-01
        title: "5 + 3"
        concepts: [addition_simple]
        difficulty: FACILE
        type: CALCUL
        duration: 30
        subject: mathematiques
        level: CP
        config: {operation: "+", operands: [5, 3], expected: 8}
"""

from __future__ import annotations

import sqlite3
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import structlog
import yaml

from fastrevkids.core.models import DifficultyTier, Exercise, ExerciseType, parse_exercise_config
from fastrevkids.db.exercises_repository import insert_exercise

logger = structlog.get_logger(__name__)

DEFAULT_SEED_FILE = Path("data/seed/exercises_v1.yaml")


@dataclass
class SeedResult:
    """Result of a seed import."""

    success: bool
    imported: int
    skipped: int
    message: str
    warnings: list[str] = field(default_factory=list)


class SeedError(Exception):
    """Error reading a seed file."""

    pass


def exercise_from_dict(data: dict[str, Any], order: int = 0) -> Exercise:
    """Build an Exercise from one seed entry.

    Raises:
        ValueError: If a required field is missing or a value is invalid
    """
    missing = [k for k in ("id", "title", "concepts", "type") if k not in data]
    if missing:
        raise ValueError(f"Champs manquants: {', '.join(missing)}")

    exercise_type = ExerciseType(str(data["type"]).upper())
    difficulty_raw = str(data.get("difficulty", "MOYEN")).upper()
    try:
        difficulty: DifficultyTier | str = DifficultyTier(difficulty_raw)
    except ValueError:
        difficulty = difficulty_raw

    return Exercise(
        exercise_id=str(data["id"]),
        title=str(data["title"]),
        concept_ids=tuple(data["concepts"]),
        difficulty=difficulty,
        exercise_type=exercise_type,
        estimated_duration=int(data.get("duration", 60)),
        subject=str(data.get("subject", "mathematiques")),
        level=str(data.get("level", "CP")),
        order=int(data.get("order", order)),
        config=parse_exercise_config(exercise_type, data.get("config")),
    )


def load_seed_file(path: Path) -> list[dict[str, Any]]:
    """Read the raw exercise entries of a seed file.

    Raises:
        SeedError: If the file is missing or malformed
    """
    if not path.exists():
        raise SeedError(f"Fichier introuvable : {path}")

    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise SeedError(f"YAML invalide dans {path}: {e}") from e

    entries = data.get("exercises") if isinstance(data, dict) else None
    if not isinstance(entries, list):
        raise SeedError(f"Clé 'exercises' absente ou invalide dans {path}")
    return entries


def seed_exercises(path: Path | None = None, force: bool = False) -> SeedResult:
    """Import every exercise of a seed file into the catalog.

    Invalid entries are skipped with a warning. Existing ids are skipped
    unless `force` is set.

    Args:
        path: Seed file (defaults to data/seed/exercises_v1.yaml)
        force: Overwrite exercises that already exist

    Returns:
        SeedResult with counts and warnings
    """
    path = path or DEFAULT_SEED_FILE

    try:
        entries = load_seed_file(path)
    except SeedError as e:
        return SeedResult(success=False, imported=0, skipped=0, message=str(e))

    imported = 0
    warnings: list[str] = []
    for index, entry in enumerate(entries):
        try:
            exercise = exercise_from_dict(entry, order=index)
            insert_exercise(exercise, replace_existing=force)
            imported += 1
        except (ValueError, TypeError) as e:
            warnings.append(f"Entrée {index}: {e}")
        except sqlite3.IntegrityError:
            warnings.append(f"Entrée {index}: exercice déjà présent ({entry.get('id')})")

    skipped = len(entries) - imported
    logger.info("seed.imported", path=str(path), imported=imported, skipped=skipped)

    return SeedResult(
        success=True,
        imported=imported,
        skipped=skipped,
        message=f"{imported} exercice(s) importé(s), {skipped} ignoré(s)",
        warnings=warnings,
    )
