"""Difficulty adaptation engine.

Turns a student's recent attempt window into an AdaptiveMetrics profile:
success rate, trend, learning velocity, frustration, engagement, and the
difficulty target inside the zone of proximal development.

Every function here is pure. The same history always yields the same
metrics; an empty history yields neutral defaults, never an error.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Iterable, Sequence

import structlog

from fastrevkids.config.app_config import AdaptiveConfig, load_engine_config
from fastrevkids.core.models import (
    AdaptiveMetrics,
    Adjustment,
    AttemptRecord,
    DifficultyTier,
    PerformanceTrend,
    StudentConceptProgress,
    numeric_difficulty,
)

logger = structlog.get_logger(__name__)

MIN_DIFFICULTY = 1.0
MAX_DIFFICULTY = 5.0
MIN_VELOCITY = 0.5
MAX_VELOCITY = 2.0

# =============================================================================
# DATA CLASSES
# =============================================================================


@dataclass(frozen=True)
class ErrorPattern:
    """Failure statistics over the attempt window."""

    total_errors: int
    distinct_error_types: int
    error_types: tuple[str, ...] = ()

    @property
    def variety(self) -> float:
        return self.distinct_error_types / max(1, self.total_errors)


@dataclass(frozen=True)
class PerformanceSnapshot:
    """Raw signals extracted from the attempt window."""

    window_size: int
    success_rate: float
    avg_response_time: float
    errors: ErrorPattern
    consecutive_failures: int


# =============================================================================
# HELPERS
# =============================================================================


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def _clamp01(value: float) -> float:
    return _clamp(value, 0.0, 1.0)


def round_half_step(value: float) -> float:
    """Round to the nearest 0.5, halves rounding up."""
    return math.floor(value * 2 + 0.5) / 2


def clamp_difficulty(value: float) -> float:
    """Bring a difficulty back onto the 1-5 scale."""
    return _clamp(value, MIN_DIFFICULTY, MAX_DIFFICULTY)


def get_recent_attempts(
    progress: Iterable[StudentConceptProgress],
    count: int,
) -> list[AttemptRecord]:
    """Flatten every history and keep the `count` most recent attempts.

    Args:
        progress: Progress records of one student
        count: Window size

    Returns:
        Attempts ordered newest first
    """
    attempts = [a for p in progress for a in p.history]
    attempts.sort(key=lambda a: a.timestamp, reverse=True)
    return attempts[:count]


def calculate_success_rate(attempts: Sequence[AttemptRecord]) -> float:
    if not attempts:
        return 0.0
    return sum(1 for a in attempts if a.success) / len(attempts)


def calculate_average_response_time(attempts: Sequence[AttemptRecord]) -> float:
    if not attempts:
        return 0.0
    return sum(a.response_time for a in attempts) / len(attempts)


def analyze_error_patterns(attempts: Sequence[AttemptRecord]) -> ErrorPattern:
    """Count failures and distinct error types (missing type is "unknown")."""
    errors = [a for a in attempts if not a.success]
    types = sorted({e.error_type or "unknown" for e in errors})
    return ErrorPattern(
        total_errors=len(errors),
        distinct_error_types=len(types),
        error_types=tuple(types),
    )


def count_consecutive_failures(attempts: Sequence[AttemptRecord]) -> int:
    """Unbroken failures counted from the most recent attempt backward."""
    consecutive = 0
    for attempt in attempts:
        if attempt.success:
            break
        consecutive += 1
    return consecutive


def snapshot(attempts: Sequence[AttemptRecord]) -> PerformanceSnapshot:
    """Extract the raw performance signals from a newest-first window."""
    return PerformanceSnapshot(
        window_size=len(attempts),
        success_rate=calculate_success_rate(attempts),
        avg_response_time=calculate_average_response_time(attempts),
        errors=analyze_error_patterns(attempts),
        consecutive_failures=count_consecutive_failures(attempts),
    )


# =============================================================================
# SIGNALS
# =============================================================================


def calculate_performance_trend(
    attempts: Sequence[AttemptRecord],
    config: AdaptiveConfig,
) -> PerformanceTrend:
    """Compare the recent half of the window against the older half."""
    if len(attempts) < config.trend_min_attempts:
        return "stable"

    mid = len(attempts) // 2
    recent = calculate_success_rate(attempts[:mid])
    older = calculate_success_rate(attempts[mid:])
    difference = recent - older

    if difference > config.trend_threshold:
        return "improving"
    if difference < -config.trend_threshold:
        return "declining"
    return "stable"


def calculate_learning_velocity(
    progress: Iterable[StudentConceptProgress],
    config: AdaptiveConfig,
) -> float:
    """How fast the student reaches mastery: 10 / average attempts-to-mastery."""
    mastered = [p for p in progress if p.status.is_mastery]
    if not mastered:
        return config.neutral_velocity

    avg_attempts = sum(p.attempt_count for p in mastered) / len(mastered)
    if avg_attempts <= 0:
        return MAX_VELOCITY
    return _clamp(10 / avg_attempts, MIN_VELOCITY, MAX_VELOCITY)


def response_time_increase_rate(attempts: Sequence[AttemptRecord]) -> float:
    """Relative slowdown of the 3 most recent attempts vs the 3 oldest."""
    if len(attempts) < 3:
        return 0.0

    times = [a.response_time for a in attempts]
    recent_avg = sum(times[:3]) / 3
    older_avg = sum(times[-3:]) / 3
    return (recent_avg - older_avg) / max(1.0, older_avg)


def calculate_frustration_index(
    attempts: Sequence[AttemptRecord],
    errors: ErrorPattern | None = None,
) -> float:
    """Frustration in [0, 1] from failure streaks, repeated errors and slowdown.

    The repeated-error term only applies when there are errors to compare.
    """
    if not attempts:
        return 0.0

    errors = errors or analyze_error_patterns(attempts)
    consecutive = count_consecutive_failures(attempts)
    repetition = (1 - errors.variety) if errors.total_errors else 0.0
    slowdown = max(0.0, response_time_increase_rate(attempts))

    return _clamp01(consecutive * 0.4 + repetition * 0.3 + slowdown * 0.3)


def response_time_consistency(attempts: Sequence[AttemptRecord]) -> float:
    """1 - coefficient of variation of response times."""
    if len(attempts) < 2:
        return 1.0

    times = [a.response_time for a in attempts]
    mean = sum(times) / len(times)
    if mean <= 0:
        return 1.0
    variance = sum((t - mean) ** 2 for t in times) / len(times)
    return _clamp01(1 - math.sqrt(variance) / mean)


def optimal_time_ratio(
    attempts: Sequence[AttemptRecord],
    avg_response_time: float,
    config: AdaptiveConfig,
) -> float:
    """Penalize answers much faster or slower than the expected duration."""
    types = [a.exercise_type for a in attempts if a.exercise_type is not None]
    if not types:
        return 0.5

    expected = sum(
        config.expected_durations.get(t.value, config.default_expected_duration) for t in types
    ) / len(types)
    ratio = avg_response_time / expected

    if ratio < 0.5:
        return ratio * 2
    if ratio > 2:
        return 2 / ratio
    return 1 - abs(1 - ratio)


def calculate_engagement_score(
    attempts: Sequence[AttemptRecord],
    avg_response_time: float,
    config: AdaptiveConfig,
) -> float:
    """Weighted mix of consistency, completion and pacing."""
    if not attempts:
        return config.neutral_engagement

    consistency = response_time_consistency(attempts)
    completion = sum(1 for a in attempts if a.completed) / len(attempts)
    pacing = optimal_time_ratio(attempts, avg_response_time, config)

    return _clamp01(consistency * 0.3 + completion * 0.4 + pacing * 0.3)


# =============================================================================
# DECISIONS
# =============================================================================


def calculate_optimal_difficulty(
    current: float,
    success_rate: float,
    frustration_index: float,
    learning_velocity: float,
    config: AdaptiveConfig,
    has_history: bool = True,
) -> float:
    """Target difficulty inside the zone of proximal development.

    Without any attempt there is no evidence to move on, so only the
    velocity nudge applies.
    """
    optimal = current

    if has_history:
        if success_rate > config.increase_success_rate and frustration_index < config.increase_max_frustration:
            optimal = min(MAX_DIFFICULTY, current + 0.5)
        elif success_rate < config.decrease_success_rate or frustration_index > config.decrease_min_frustration:
            optimal = max(MIN_DIFFICULTY, current - 0.5)

    if learning_velocity > config.velocity_fast:
        optimal = min(MAX_DIFFICULTY, optimal + 0.25)
    elif learning_velocity < config.velocity_slow:
        optimal = max(MIN_DIFFICULTY, optimal - 0.25)

    return clamp_difficulty(round_half_step(optimal))


def recommend_adjustment(
    current: float,
    optimal: float,
    frustration_index: float,
    config: AdaptiveConfig,
) -> Adjustment:
    # High frustration overrides everything
    if frustration_index > config.decrease_min_frustration:
        return "decrease"

    difference = optimal - current
    if difference > 0.5:
        return "increase"
    if difference < -0.5:
        return "decrease"
    return "maintain"


# =============================================================================
# MAIN FUNCTION
# =============================================================================


def calculate_adaptive_metrics(
    progress: Sequence[StudentConceptProgress],
    reference_difficulty: DifficultyTier | str | float | None = None,
    config: AdaptiveConfig | None = None,
) -> AdaptiveMetrics:
    """Compute the adaptive profile of a student.

    Args:
        progress: All progress records of the student
        reference_difficulty: Tier or numeric difficulty of the reference
            exercise (clamped to 1-5; None means the middle of the scale)
        config: Thresholds; defaults to the loaded engine config

    Returns:
        AdaptiveMetrics for the current attempt window
    """
    config = config or load_engine_config().adaptive

    if isinstance(reference_difficulty, (int, float)) and not isinstance(reference_difficulty, bool):
        current = clamp_difficulty(float(reference_difficulty))
    else:
        current = numeric_difficulty(reference_difficulty)

    window = get_recent_attempts(progress, config.window_size)
    signals = snapshot(window)

    trend = calculate_performance_trend(window, config)
    velocity = calculate_learning_velocity(progress, config)
    frustration = calculate_frustration_index(window, signals.errors)
    engagement = calculate_engagement_score(window, signals.avg_response_time, config)

    optimal = calculate_optimal_difficulty(
        current,
        signals.success_rate,
        frustration,
        velocity,
        config,
        has_history=bool(window),
    )
    adjustment = recommend_adjustment(current, optimal, frustration, config)

    logger.debug(
        "adaptive.metrics_computed",
        window=signals.window_size,
        success_rate=round(signals.success_rate, 3),
        current=current,
        optimal=optimal,
        adjustment=adjustment,
    )

    return AdaptiveMetrics(
        current_difficulty=current,
        optimal_difficulty=optimal,
        performance_trend=trend,
        learning_velocity=velocity,
        frustration_index=frustration,
        engagement_score=engagement,
        recommended_adjustment=adjustment,
    )
