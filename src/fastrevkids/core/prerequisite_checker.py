"""Prerequisite checker.

For a target concept, reports the mastery of each direct prerequisite
from the student's progress on exercises tagged with that prerequisite.
"""

from __future__ import annotations

from typing import Sequence

import structlog

from fastrevkids.config.curriculum import Curriculum, load_curriculum
from fastrevkids.core.models import PrerequisiteStatus, StudentConceptProgress

logger = structlog.get_logger(__name__)

MASTERY_SUCCESS_RATE = 0.8
MASTERY_MIN_COMPLETED = 3


def related_progress(
    concept_id: str,
    progress: Sequence[StudentConceptProgress],
) -> list[StudentConceptProgress]:
    """Progress records whose exercise is tagged with the concept."""
    return [p for p in progress if p.is_related_to(concept_id)]


def is_concept_mastered(progress: Sequence[StudentConceptProgress]) -> bool:
    """Average success >= 80% and at least 3 completed exercises."""
    if not progress:
        return False

    avg_success = sum(p.success_rate for p in progress) / len(progress)
    completed = sum(1 for p in progress if p.status.is_completed)
    return avg_success >= MASTERY_SUCCESS_RATE and completed >= MASTERY_MIN_COMPLETED


def calculate_mastery_level(progress: Sequence[StudentConceptProgress]) -> float:
    """Mastery on a 0-100 scale: 70% success rate, 30% completion rate."""
    if not progress:
        return 0.0

    avg_success = sum(p.success_rate for p in progress) / len(progress)
    completion = sum(1 for p in progress if p.status.is_completed) / len(progress)
    return round((avg_success * 0.7 + completion * 0.3) * 100, 2)


def check_prerequisites(
    concept_id: str,
    progress: Sequence[StudentConceptProgress],
    curriculum: Curriculum | None = None,
) -> list[PrerequisiteStatus]:
    """Status of every direct prerequisite of a concept.

    Args:
        concept_id: Target concept
        progress: All progress records of the student
        curriculum: Concept graph; defaults to the loaded curriculum

    Returns:
        One status per prerequisite edge, in graph order. Concepts without
        prerequisites (or unknown to the graph) give an empty list.
    """
    curriculum = curriculum or load_curriculum()

    statuses = []
    for prereq_id in curriculum.prerequisites_of(concept_id):
        related = related_progress(prereq_id, progress)
        statuses.append(
            PrerequisiteStatus(
                concept_id=prereq_id,
                concept_name=curriculum.name_of(prereq_id),
                mastered=is_concept_mastered(related),
                mastery_level=calculate_mastery_level(related),
                related_exercises=tuple(p.exercise_id for p in related),
            )
        )

    logger.debug(
        "prerequisites.checked",
        concept_id=concept_id,
        total=len(statuses),
        unmastered=sum(1 for s in statuses if not s.mastered),
    )
    return statuses


def unmastered(statuses: Sequence[PrerequisiteStatus]) -> list[PrerequisiteStatus]:
    return [s for s in statuses if not s.mastered]
