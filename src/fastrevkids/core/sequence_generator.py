"""Adaptive sequence generator.

Builds the ordered exercise list for a session: remediation exercises for
unmastered prerequisites first, then target-concept exercises close to
the student's optimal difficulty.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Sequence

import structlog

from fastrevkids.config.app_config import EngineConfig, load_engine_config
from fastrevkids.config.curriculum import Curriculum, load_curriculum
from fastrevkids.core.difficulty_engine import calculate_adaptive_metrics
from fastrevkids.core.models import (
    AdaptiveMetrics,
    Exercise,
    PrerequisiteStatus,
    StudentConceptProgress,
)
from fastrevkids.core.prerequisite_checker import check_prerequisites, unmastered
from fastrevkids.core.recommendation_scorer import rank_exercises

logger = structlog.get_logger(__name__)

PREREQUISITE_EXERCISES_PER_CONCEPT = 2
TARGET_EXERCISES = 5
DIFFICULTY_TOLERANCE = 1.0


@dataclass
class AdaptiveSequence:
    """Result of sequence generation, with the reasoning behind it."""

    exercises: list[Exercise]
    target_concept: str | None = None
    prerequisites: list[PrerequisiteStatus] = field(default_factory=list)
    metrics: AdaptiveMetrics | None = None
    prerequisite_count: int = 0

    @property
    def exercise_ids(self) -> list[str]:
        return [e.exercise_id for e in self.exercises]


def filter_by_optimal_difficulty(
    exercises: Sequence[Exercise],
    optimal_difficulty: float,
    tolerance: float = DIFFICULTY_TOLERANCE,
) -> list[Exercise]:
    """Keep exercises whose numeric difficulty is within `tolerance` of the target."""
    return [e for e in exercises if abs(e.numeric_difficulty - optimal_difficulty) <= tolerance]


def select_optimal_exercises(
    exercises: Sequence[Exercise],
    progress: Sequence[StudentConceptProgress],
    count: int,
) -> list[Exercise]:
    """Unattempted exercises first, then by recommendation score."""
    attempted = {p.exercise_id for p in progress if p.attempt_count > 0 or p.history}
    ranked = rank_exercises(exercises, progress)
    # Stable sort keeps score order within each group
    ranked.sort(key=lambda s: s.exercise.exercise_id in attempted)
    return [s.exercise for s in ranked[:count]]


def generate_adaptive_sequence(
    progress: Sequence[StudentConceptProgress],
    candidates: Sequence[Exercise],
    target_concept: str | None = None,
    count: int | None = None,
    curriculum: Curriculum | None = None,
    config: EngineConfig | None = None,
) -> AdaptiveSequence:
    """Generate the ordered exercise list for a session.

    Args:
        progress: All progress records of the student
        candidates: Candidate pool in catalog order (must include the
            exercises tagged with the target and its prerequisites)
        target_concept: Concept to work on; None asks for plain recommendations
        count: Maximum sequence length (defaults to the recommendation limit)
        curriculum: Concept graph
        config: Engine configuration

    Returns:
        AdaptiveSequence; prerequisite exercises always precede target ones
    """
    config = config or load_engine_config()
    limit = count if count is not None else config.recommendation.default_limit

    if target_concept is None:
        ranked = rank_exercises(candidates, progress)[: max(0, limit)]
        logger.debug("adaptive.sequence_generated", target=None, length=len(ranked))
        return AdaptiveSequence(exercises=[s.exercise for s in ranked])

    curriculum = curriculum or load_curriculum()

    # 1. Remediation for unmastered prerequisites, in graph order
    statuses = check_prerequisites(target_concept, progress, curriculum)
    sequence: list[Exercise] = []
    seen: set[str] = set()
    for status in unmastered(statuses):
        pool = [e for e in candidates if e.is_tagged(status.concept_id) and e.exercise_id not in seen]
        for exercise in select_optimal_exercises(pool, progress, PREREQUISITE_EXERCISES_PER_CONCEPT):
            sequence.append(exercise)
            seen.add(exercise.exercise_id)
    prerequisite_count = len(sequence)

    # 2. Difficulty target from the first target-concept exercise
    # (even one already used for remediation)
    tagged = [e for e in candidates if e.is_tagged(target_concept)]
    reference = tagged[0].difficulty if tagged else None
    metrics = calculate_adaptive_metrics(progress, reference, config.adaptive)

    # 3-4. Difficulty-matched target exercises, never repeating one
    targets = [e for e in tagged if e.exercise_id not in seen]
    matched = filter_by_optimal_difficulty(targets, metrics.optimal_difficulty)
    sequence.extend(select_optimal_exercises(matched, progress, TARGET_EXERCISES))

    sequence = sequence[: max(0, limit)]

    logger.debug(
        "adaptive.sequence_generated",
        target=target_concept,
        prerequisites=prerequisite_count,
        length=len(sequence),
        optimal_difficulty=metrics.optimal_difficulty,
    )

    return AdaptiveSequence(
        exercises=sequence,
        target_concept=target_concept,
        prerequisites=statuses,
        metrics=metrics,
        prerequisite_count=min(prerequisite_count, len(sequence)),
    )
