"""Recommendation scorer.

Scores a candidate exercise for a student from independent additive
signals (novelty, past failure, difficulty, weak subject, weak level)
and ranks candidate pools by that score.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

import structlog

from fastrevkids.core.models import (
    DifficultyTier,
    Exercise,
    ProgressStatus,
    ScoredExercise,
    StudentConceptProgress,
)

logger = structlog.get_logger(__name__)

BASE_SCORE = 50
MIN_SCORE = 0
MAX_SCORE = 100

DIFFICULTY_WEIGHTS: dict[str, int] = {
    "FACILE": 10,
    "MOYEN": 20,
    "DIFFICILE": 30,
}
DEFAULT_DIFFICULTY_WEIGHT = 15

# Reason tags shown to teachers and parents
REASON_NEW_EXERCISE = "Nouvel exercice à découvrir"
REASON_RETRY_AFTER_FAILURE = "Exercice à réviser après échec"
REASON_IMPROVE = "Exercice à améliorer"
REASON_NEW_SUBJECT = "Nouvelle matière"
REASON_WEAK_SUBJECT = "Matière à renforcer"
REASON_NEW_LEVEL = "Nouveau niveau"
REASON_WEAK_LEVEL = "Niveau à consolider"


@dataclass(frozen=True)
class RecommendationOptions:
    """Filters for a recommendation request."""

    limit: int = 10
    level: str | None = None
    subject: str | None = None

    @property
    def cache_key(self) -> str:
        return f"limit={self.limit}|level={self.level or '*'}|subject={self.subject or '*'}"


# =============================================================================
# HELPERS
# =============================================================================


def _attempted(progress: StudentConceptProgress) -> bool:
    return progress.attempt_count > 0 or bool(progress.history)


def _average_success(progress: Sequence[StudentConceptProgress]) -> float:
    return sum(p.success_rate for p in progress) / len(progress)


def _find_progress(
    exercise_id: str,
    progress: Sequence[StudentConceptProgress],
) -> StudentConceptProgress | None:
    for p in progress:
        if p.exercise_id == exercise_id and _attempted(p):
            return p
    return None


def _last_attempt_failed(progress: StudentConceptProgress) -> bool:
    latest = progress.latest_attempt()
    if latest is not None:
        return not latest.success
    return progress.status is ProgressStatus.FAILED


def difficulty_weight(difficulty: DifficultyTier | str) -> int:
    key = difficulty.value if isinstance(difficulty, DifficultyTier) else str(difficulty).upper()
    return DIFFICULTY_WEIGHTS.get(key, DEFAULT_DIFFICULTY_WEIGHT)


def subject_weight(
    subject: str,
    progress: Sequence[StudentConceptProgress],
) -> tuple[int, str | None]:
    """+15 for a new subject, +25 if weak (< 50%), else +5."""
    in_subject = [p for p in progress if _attempted(p) and p.subject == subject]
    if not in_subject:
        return 15, REASON_NEW_SUBJECT
    if _average_success(in_subject) < 0.5:
        return 25, REASON_WEAK_SUBJECT
    return 5, None


def level_weight(
    level: str,
    progress: Sequence[StudentConceptProgress],
) -> tuple[int, str | None]:
    """+10 for a new level, +20 if weak (< 60%), else 0."""
    in_level = [p for p in progress if _attempted(p) and p.level == level]
    if not in_level:
        return 10, REASON_NEW_LEVEL
    if _average_success(in_level) < 0.6:
        return 20, REASON_WEAK_LEVEL
    return 0, None


# =============================================================================
# MAIN FUNCTIONS
# =============================================================================


def score_exercise(
    exercise: Exercise,
    progress: Sequence[StudentConceptProgress],
) -> ScoredExercise:
    """Score one candidate exercise, clamped to [0, 100]."""
    score = BASE_SCORE
    reasons: list[str] = []

    previous = _find_progress(exercise.exercise_id, progress)
    if previous is None:
        score += 20
        reasons.append(REASON_NEW_EXERCISE)
    elif _last_attempt_failed(previous):
        score += 30
        reasons.append(REASON_RETRY_AFTER_FAILURE)
    elif previous.success_rate < 0.7:
        score += 25
        reasons.append(REASON_IMPROVE)

    score += difficulty_weight(exercise.difficulty)

    for weight, reason in (
        subject_weight(exercise.subject, progress),
        level_weight(exercise.level, progress),
    ):
        score += weight
        if reason:
            reasons.append(reason)

    return ScoredExercise(
        exercise=exercise,
        score=int(max(MIN_SCORE, min(MAX_SCORE, score))),
        reasons=tuple(reasons),
    )


def rank_exercises(
    candidates: Sequence[Exercise],
    progress: Sequence[StudentConceptProgress],
) -> list[ScoredExercise]:
    """Score every candidate and sort by descending score.

    The sort is stable, so equal scores keep catalog order.
    """
    scored = [score_exercise(e, progress) for e in candidates]
    return sorted(scored, key=lambda s: s.score, reverse=True)


def recommend(
    candidates: Sequence[Exercise],
    progress: Sequence[StudentConceptProgress],
    options: RecommendationOptions | None = None,
) -> list[ScoredExercise]:
    """Top recommendations after applying level/subject filters.

    Args:
        candidates: Candidate pool in catalog order
        progress: All progress records of the student
        options: Limit and optional filters

    Returns:
        At most `options.limit` scored exercises, best first
    """
    options = options or RecommendationOptions()

    pool = [
        e
        for e in candidates
        if (options.level is None or e.level == options.level)
        and (options.subject is None or e.subject == options.subject)
    ]
    ranked = rank_exercises(pool, progress)[: max(0, options.limit)]

    logger.debug(
        "recommendations.ranked",
        candidates=len(candidates),
        filtered=len(pool),
        returned=len(ranked),
    )
    return ranked
