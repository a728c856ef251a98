"""Adaptive service: the engine's public API.

Wires the pure components (difficulty engine, prerequisite checker,
recommendation scorer, sequence generator) and the scheduler to the
external collaborators: exercise catalog, progress store, schedule store.

`submit_attempt` stores an attempt and updates its schedule in one
transaction; `record_outcome` updates the schedule alone for callers that
keep attempts elsewhere.
"""

from __future__ import annotations

import threading
from collections import OrderedDict
from contextlib import AbstractContextManager, nullcontext
from dataclasses import replace
from typing import Callable, Protocol, Sequence

import structlog

from fastrevkids.config.app_config import EngineConfig, load_engine_config
from fastrevkids.config.curriculum import Curriculum, load_curriculum
from fastrevkids.core.difficulty_engine import calculate_adaptive_metrics
from fastrevkids.core.models import (
    AdaptiveMetrics,
    AttemptRecord,
    ConceptNotFoundError,
    Exercise,
    ExerciseNotFoundError,
    PrerequisiteStatus,
    RevisionSchedule,
    ScoredExercise,
    StudentConceptProgress,
    utc_now,
)
from fastrevkids.core.prerequisite_checker import check_prerequisites
from fastrevkids.core.recommendation_scorer import RecommendationOptions, rank_exercises, recommend
from fastrevkids.core.sequence_generator import AdaptiveSequence, generate_adaptive_sequence
from fastrevkids.core.spaced_repetition import (
    RevisionAdvice,
    RevisionStats,
    ScheduleStore,
    SpacedRepetitionScheduler,
    StudyPlan,
    calculate_quality,
)

logger = structlog.get_logger(__name__)

# Quality used when an outcome is reported without one
DEFAULT_SUCCESS_QUALITY = 4.0
DEFAULT_FAILURE_QUALITY = 0.0


# =============================================================================
# COLLABORATORS
# =============================================================================


class ExerciseCatalog(Protocol):
    """Read access to the exercise catalog."""

    def get_exercises_by_concept(self, concept_id: str) -> list[Exercise]: ...

    def get_exercise_by_id(self, exercise_id: str) -> Exercise | None: ...

    def list_exercises(self) -> list[Exercise]: ...


class ProgressStore(Protocol):
    """Student progress, joined with catalog entries."""

    def get_progress(self, student_id: str) -> list[StudentConceptProgress]: ...

    def record_attempt(self, student_id: str, attempt: AttemptRecord) -> StudentConceptProgress: ...


class RecommendationCache:
    """Bounded LRU cache of recommendation lists, keyed by student + options.

    Owned by whoever builds the service; pass None to disable caching.
    """

    def __init__(self, max_size: int = 256):
        self.max_size = max_size
        self._entries: OrderedDict[str, list[ScoredExercise]] = OrderedDict()
        self._lock = threading.Lock()

    @staticmethod
    def make_key(student_id: str, options: RecommendationOptions) -> str:
        return f"recommendations:{student_id}:{options.cache_key}"

    def get(self, key: str) -> list[ScoredExercise] | None:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            self._entries.move_to_end(key)
            return list(entry)

    def put(self, key: str, value: list[ScoredExercise]) -> None:
        with self._lock:
            self._entries[key] = list(value)
            self._entries.move_to_end(key)
            while len(self._entries) > self.max_size:
                self._entries.popitem(last=False)

    def invalidate_student(self, student_id: str) -> int:
        """Drop every entry of a student. Returns the number removed."""
        prefix = f"recommendations:{student_id}:"
        with self._lock:
            keys = [k for k in self._entries if k.startswith(prefix)]
            for key in keys:
                del self._entries[key]
        return len(keys)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def stats(self) -> dict[str, object]:
        with self._lock:
            return {"size": len(self._entries), "max_size": self.max_size, "keys": list(self._entries)}


# =============================================================================
# SERVICE
# =============================================================================


class AdaptiveService:
    """Public API of the adaptive learning engine."""

    def __init__(
        self,
        catalog: ExerciseCatalog,
        progress_store: ProgressStore,
        schedule_store: ScheduleStore,
        curriculum: Curriculum | None = None,
        config: EngineConfig | None = None,
        cache: RecommendationCache | None = None,
        clock: Callable = utc_now,
        transaction: Callable[[], AbstractContextManager] = nullcontext,
    ):
        self.catalog = catalog
        self.progress_store = progress_store
        self.curriculum = curriculum or load_curriculum()
        self.config = config or load_engine_config()
        self.cache = cache
        self._transaction = transaction
        self.scheduler = SpacedRepetitionScheduler(schedule_store, self.config.scheduler, clock=clock)

    def _require_exercise(self, exercise_id: str) -> Exercise:
        exercise = self.catalog.get_exercise_by_id(exercise_id)
        if exercise is None:
            raise ExerciseNotFoundError(exercise_id)
        return exercise

    def _require_concept(self, concept_id: str) -> None:
        if concept_id not in self.curriculum:
            raise ConceptNotFoundError(concept_id)

    def _candidates_for(self, target_concept: str) -> list[Exercise]:
        """Exercises tagged with the target or one of its prerequisites."""
        concepts = [*self.curriculum.prerequisites_of(target_concept), target_concept]
        pool: list[Exercise] = []
        seen: set[str] = set()
        for concept_id in concepts:
            for exercise in self.catalog.get_exercises_by_concept(concept_id):
                if exercise.exercise_id not in seen:
                    pool.append(exercise)
                    seen.add(exercise.exercise_id)
        return sorted(pool, key=lambda e: e.order)

    # ---- sequencing ---------------------------------------------------------

    def build_sequence(
        self,
        student_id: str,
        target_concept: str | None = None,
        count: int | None = None,
    ) -> AdaptiveSequence:
        """Sequence with its prerequisite statuses and metrics.

        Raises:
            ConceptNotFoundError: If the target concept is not in the curriculum
        """
        if target_concept is not None:
            self._require_concept(target_concept)
            candidates = self._candidates_for(target_concept)
        else:
            candidates = self.catalog.list_exercises()

        progress = self.progress_store.get_progress(student_id)
        result = generate_adaptive_sequence(
            progress,
            candidates,
            target_concept=target_concept,
            count=count,
            curriculum=self.curriculum,
            config=self.config,
        )
        logger.info(
            "adaptive.sequence_served",
            student_id=student_id,
            target=target_concept,
            length=len(result.exercises),
        )
        return result

    def get_adaptive_sequence(
        self,
        student_id: str,
        target_concept: str | None = None,
        count: int | None = None,
    ) -> list[Exercise]:
        return self.build_sequence(student_id, target_concept, count).exercises

    # ---- recommendations ----------------------------------------------------

    def score_recommendations(
        self,
        student_id: str,
        candidate_pool: Sequence[Exercise],
    ) -> list[ScoredExercise]:
        """Score and rank an explicit candidate pool (not cached)."""
        progress = self.progress_store.get_progress(student_id)
        return rank_exercises(candidate_pool, progress)

    def get_recommendations(
        self,
        student_id: str,
        options: RecommendationOptions | None = None,
    ) -> list[ScoredExercise]:
        """Best exercises from the whole catalog, cached when a cache is set."""
        options = options or RecommendationOptions(limit=self.config.recommendation.default_limit)

        key = RecommendationCache.make_key(student_id, options)
        if self.cache is not None:
            cached = self.cache.get(key)
            if cached is not None:
                logger.debug("recommendations.cache_hit", student_id=student_id)
                return cached

        progress = self.progress_store.get_progress(student_id)
        result = recommend(self.catalog.list_exercises(), progress, options)

        if self.cache is not None:
            self.cache.put(key, result)
        return result

    # ---- diagnostics --------------------------------------------------------

    def get_adaptive_metrics(self, student_id: str, exercise_id: str) -> AdaptiveMetrics:
        """Adaptive profile of a student against a reference exercise.

        Raises:
            ExerciseNotFoundError: If the exercise is not in the catalog
        """
        exercise = self._require_exercise(exercise_id)
        progress = self.progress_store.get_progress(student_id)
        return calculate_adaptive_metrics(progress, exercise.difficulty, self.config.adaptive)

    def check_prerequisites(self, student_id: str, concept_id: str) -> list[PrerequisiteStatus]:
        """Prerequisite statuses for a concept.

        Raises:
            ConceptNotFoundError: If the concept is not in the curriculum
        """
        self._require_concept(concept_id)
        progress = self.progress_store.get_progress(student_id)
        return check_prerequisites(concept_id, progress, self.curriculum)

    # ---- revisions ----------------------------------------------------------

    def get_due_revisions(self, student_id: str) -> list[RevisionSchedule]:
        return self.scheduler.get_due(student_id)

    def get_revision_stats(self, student_id: str) -> RevisionStats:
        return self.scheduler.get_stats(student_id)

    def get_study_plan(self, student_id: str, days: int | None = None) -> StudyPlan:
        return self.scheduler.get_study_plan(student_id, days=days)

    def get_revision_advice(self, student_id: str) -> list[RevisionAdvice]:
        return self.scheduler.get_advice(student_id)

    def _estimate_quality(
        self,
        exercise: Exercise,
        success: bool,
        attempt: AttemptRecord | None,
    ) -> float:
        if attempt is not None:
            return calculate_quality(
                success=attempt.success,
                response_time=attempt.response_time,
                hints_used=attempt.hints_used,
                difficulty=exercise.numeric_difficulty,
            )
        return DEFAULT_SUCCESS_QUALITY if success else DEFAULT_FAILURE_QUALITY

    def record_outcome(
        self,
        student_id: str,
        exercise_id: str,
        quality: float | None = None,
        success: bool = True,
        attempt: AttemptRecord | None = None,
    ) -> RevisionSchedule | None:
        """Update the revision schedule after an attempt.

        Quality, when not given, is estimated from the attempt (or a default
        per outcome). Cached recommendations of the student are dropped,
        whether or not the schedule write goes through.

        Raises:
            ExerciseNotFoundError: If the exercise is not in the catalog
            ScheduleConflictError: If the schedule changed concurrently
        """
        exercise = self._require_exercise(exercise_id)
        if quality is None:
            quality = self._estimate_quality(exercise, success, attempt)

        try:
            return self.scheduler.record_outcome(student_id, exercise_id, success=success, quality=quality)
        finally:
            if self.cache is not None:
                self.cache.invalidate_student(student_id)

    def submit_attempt(
        self,
        student_id: str,
        attempt: AttemptRecord,
        quality: float | None = None,
    ) -> tuple[StudentConceptProgress, RevisionSchedule | None]:
        """Store an attempt and apply its outcome to the revision schedule.

        Both writes run in one transaction. The schedule is written first:
        if it fails (a concurrent update, for instance) the attempt is not
        stored either and the error is raised.

        Raises:
            ExerciseNotFoundError: If the exercise is not in the catalog
            ScheduleConflictError: If the schedule changed concurrently
        """
        exercise = self._require_exercise(attempt.exercise_id)
        if attempt.exercise_type is None:
            attempt = replace(attempt, exercise_type=exercise.exercise_type)

        try:
            with self._transaction():
                schedule = self.record_outcome(
                    student_id,
                    exercise.exercise_id,
                    quality=quality,
                    success=attempt.success,
                    attempt=attempt,
                )
                progress = self.progress_store.record_attempt(student_id, attempt)
        finally:
            if self.cache is not None:
                self.cache.invalidate_student(student_id)

        logger.info(
            "adaptive.attempt_submitted",
            student_id=student_id,
            exercise_id=exercise.exercise_id,
            success=attempt.success,
            scheduled=schedule is not None,
        )
        return progress, schedule
