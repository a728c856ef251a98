"""Fixtures for F5 tests - Sequencing and the adaptive service."""

from __future__ import annotations

import pytest

from fastrevkids.config.curriculum import Concept, Curriculum
from fastrevkids.core.models import (
    AttemptRecord,
    DifficultyTier,
    Exercise,
    ProgressStatus,
    StudentConceptProgress,
)


class FakeCatalog:
    """Catalog over a fixed list of exercises."""

    def __init__(self, exercises: list[Exercise]):
        self.exercises = list(exercises)

    def get_exercises_by_concept(self, concept_id: str) -> list[Exercise]:
        return [e for e in self.exercises if e.is_tagged(concept_id)]

    def get_exercise_by_id(self, exercise_id: str) -> Exercise | None:
        return next((e for e in self.exercises if e.exercise_id == exercise_id), None)

    def list_exercises(self) -> list[Exercise]:
        return list(self.exercises)


class FakeProgressStore:
    """Progress store keeping records in a dict; counts calls to get_progress."""

    def __init__(self, catalog: FakeCatalog):
        self.catalog = catalog
        self.records: dict[str, dict[str, StudentConceptProgress]] = {}
        self.reads = 0

    def set(self, progress: StudentConceptProgress) -> None:
        self.records.setdefault(progress.student_id, {})[progress.exercise_id] = progress

    def get_progress(self, student_id: str) -> list[StudentConceptProgress]:
        self.reads += 1
        return list(self.records.get(student_id, {}).values())

    def record_attempt(self, student_id: str, attempt: AttemptRecord) -> StudentConceptProgress:
        current = self.records.get(student_id, {}).get(attempt.exercise_id)
        history = (current.history if current else []) + [attempt]
        successes = sum(1 for a in history if a.success)
        progress = StudentConceptProgress(
            student_id=student_id,
            exercise_id=attempt.exercise_id,
            attempt_count=len(history),
            success_rate=successes / len(history),
            status=ProgressStatus.COMPLETED if attempt.success else ProgressStatus.FAILED,
            history=history,
            exercise=self.catalog.get_exercise_by_id(attempt.exercise_id),
        )
        self.set(progress)
        return progress


@pytest.fixture
def curriculum():
    return Curriculum(
        concepts={
            "addition_simple": Concept("addition_simple", "Addition simple"),
            "addition_retenue": Concept("addition_retenue", "Addition avec retenue", ("addition_simple",)),
            "soustraction_simple": Concept("soustraction_simple", "Soustraction simple", ("addition_simple",)),
        }
    )


@pytest.fixture
def exercises(make_exercise):
    """Small catalog: three simple additions, four carry additions, one subtraction."""
    return [
        make_exercise("add-1", ("addition_simple",), DifficultyTier.FACILE, order=1),
        make_exercise("add-2", ("addition_simple",), DifficultyTier.FACILE, order=2),
        make_exercise("add-3", ("addition_simple",), DifficultyTier.MOYEN, order=3),
        make_exercise("ret-1", ("addition_retenue",), DifficultyTier.MOYEN, level="CE1", order=4),
        make_exercise("ret-2", ("addition_retenue",), DifficultyTier.MOYEN, level="CE1", order=5),
        make_exercise("ret-3", ("addition_retenue",), DifficultyTier.DIFFICILE, level="CE1", order=6),
        make_exercise("ret-4", ("addition_retenue",), DifficultyTier.FACILE, level="CE1", order=7),
        make_exercise("sous-1", ("soustraction_simple",), DifficultyTier.FACILE, order=8),
    ]


@pytest.fixture
def catalog(exercises):
    return FakeCatalog(exercises)


@pytest.fixture
def progress_store(catalog):
    return FakeProgressStore(catalog)


@pytest.fixture
def mastered_additions(exercises, make_progress):
    """Progress showing addition_simple mastered."""
    return [
        make_progress(e, status=ProgressStatus.COMPLETED, success_rate=1.0, attempt_count=3)
        for e in exercises
        if e.is_tagged("addition_simple")
    ]
