"""Spaced-repetition scheduler (SM-2 family).

One RevisionSchedule per (student, exercise). States:

    not scheduled -> due -> reviewed_success
                     due -> reviewed_failure -> due

A failure always brings the schedule back to "due tomorrow" with the
interval reset. Schedules are never deleted.

The scheduler reads and writes through a ScheduleStore. Writes carry the
version read; a store that sees another version raises
ScheduleConflictError and the caller decides whether to retry.
"""

from __future__ import annotations

import math
import threading
from dataclasses import dataclass, field, replace
from datetime import date, datetime, timedelta
from typing import Any, Callable, Literal, Protocol, Sequence

import structlog

from fastrevkids.config.app_config import SchedulerConfig, load_engine_config
from fastrevkids.core.models import (
    RevisionSchedule,
    ScheduleConflictError,
    ScheduleNotFoundError,
    ScheduleState,
    utc_now,
)

logger = structlog.get_logger(__name__)

MIN_QUALITY = 0.0
MAX_QUALITY = 5.0

# Easiness at or above which a passed review counts towards the success rate
SUCCESS_EASINESS = 2.0

# Expected answer time in seconds, indexed by numeric difficulty 0-5
EXPECTED_TIME_BY_DIFFICULTY = (30, 45, 60, 90, 120, 180)


# =============================================================================
# STORE
# =============================================================================


class ScheduleStore(Protocol):
    """Persistence interface for revision schedules."""

    def get(self, student_id: str, exercise_id: str) -> RevisionSchedule | None: ...

    def upsert(self, schedule: RevisionSchedule) -> RevisionSchedule: ...

    def list_due(self, student_id: str, now: datetime) -> list[RevisionSchedule]: ...

    def list_for_student(self, student_id: str) -> list[RevisionSchedule]: ...


class InMemoryScheduleStore:
    """Thread-safe in-memory schedule store.

    `upsert` is a compare-and-set on `version`: the incoming schedule must
    carry the version currently stored (0 for a new row).
    """

    def __init__(self):
        self._rows: dict[tuple[str, str], RevisionSchedule] = {}
        self._lock = threading.Lock()

    def get(self, student_id: str, exercise_id: str) -> RevisionSchedule | None:
        with self._lock:
            row = self._rows.get((student_id, exercise_id))
            return replace(row) if row else None

    def upsert(self, schedule: RevisionSchedule) -> RevisionSchedule:
        key = (schedule.student_id, schedule.exercise_id)
        with self._lock:
            current = self._rows.get(key)
            current_version = current.version if current else 0
            if schedule.version != current_version:
                raise ScheduleConflictError(
                    schedule.student_id,
                    schedule.exercise_id,
                    expected=schedule.version,
                    actual=current_version,
                )
            stored = replace(schedule, version=current_version + 1)
            self._rows[key] = stored
            return replace(stored)

    def list_due(self, student_id: str, now: datetime) -> list[RevisionSchedule]:
        with self._lock:
            rows = [
                replace(r)
                for (sid, _), r in self._rows.items()
                if sid == student_id and r.next_review <= now
            ]
        return sorted(rows, key=lambda r: r.next_review)

    def list_for_student(self, student_id: str) -> list[RevisionSchedule]:
        with self._lock:
            rows = [replace(r) for (sid, _), r in self._rows.items() if sid == student_id]
        return sorted(rows, key=lambda r: r.next_review)


# =============================================================================
# PURE TRANSITIONS
# =============================================================================


def clamp_quality(quality: float) -> float:
    return max(MIN_QUALITY, min(MAX_QUALITY, float(quality)))


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def next_interval(current_interval: int, config: SchedulerConfig) -> int:
    """Interval after a successful review."""
    if current_interval <= 1:
        return config.second_interval
    return max(1, _round_half_up(current_interval * config.interval_growth))


def next_easiness(current: float, quality: float, config: SchedulerConfig) -> float:
    """SM-2 easiness update, bounded to [min_easiness, max_easiness]."""
    q = 5 - quality
    updated = current + (0.1 - q * (0.08 + q * 0.02))
    return round(max(config.min_easiness, min(config.max_easiness, updated)), 4)


def new_schedule(
    student_id: str,
    exercise_id: str,
    now: datetime,
    config: SchedulerConfig,
) -> RevisionSchedule:
    """Fresh schedule, due tomorrow."""
    return RevisionSchedule(
        student_id=student_id,
        exercise_id=exercise_id,
        next_review=now + timedelta(days=1),
        interval_days=1,
        repetitions=0,
        easiness=config.initial_easiness,
        state=ScheduleState.DUE,
        last_review=now,
    )


def apply_failure(
    schedule: RevisionSchedule,
    now: datetime,
    config: SchedulerConfig,
) -> RevisionSchedule:
    """Reset to a one-day interval.

    The easiness factor is reset to its floor, not merely decreased.
    """
    return replace(
        schedule,
        interval_days=1,
        next_review=now + timedelta(days=1),
        repetitions=0,
        easiness=config.min_easiness,
        state=ScheduleState.DUE,
        last_review=now,
    )


def apply_success(
    schedule: RevisionSchedule,
    quality: float,
    now: datetime,
    config: SchedulerConfig,
) -> RevisionSchedule:
    """Grow the interval after a recall of the given quality (0-5).

    Quality below the success threshold takes the failure path.
    """
    quality = clamp_quality(quality)
    if quality < config.success_quality:
        return replace(apply_failure(schedule, now, config), last_quality=quality)

    interval = next_interval(schedule.interval_days, config)
    return replace(
        schedule,
        interval_days=interval,
        next_review=now + timedelta(days=interval),
        repetitions=schedule.repetitions + 1,
        easiness=next_easiness(schedule.easiness, quality, config),
        state=ScheduleState.REVIEWED_SUCCESS,
        last_quality=quality,
        last_review=now,
    )


def calculate_quality(
    success: bool,
    response_time: float,
    hints_used: int = 0,
    difficulty: float = 3.0,
    confidence: float | None = None,
) -> float:
    """Estimate recall quality (0-5, 0.5 steps) from an attempt.

    Correctness gives up to 3 points, pacing against the expected time for
    the difficulty up to 1, hint usage up to 1, and an optional 0-5
    self-reported confidence adds at most 0.5.
    """
    quality = 3.0 if success else (1.0 if hints_used <= 1 else 0.5)

    index = int(max(0, min(5, math.floor(difficulty))))
    ratio = response_time / EXPECTED_TIME_BY_DIFFICULTY[index]
    if 0.5 <= ratio <= 2.0:
        quality += 1.0
    elif 2.0 < ratio <= 3.0:
        quality += 0.5

    if hints_used == 0:
        quality += 1.0
    elif hints_used <= 2:
        quality += 0.5

    if confidence is not None:
        quality += (max(0.0, min(5.0, confidence)) / 5) * 0.5

    return math.floor(clamp_quality(quality) * 2 + 0.5) / 2


# =============================================================================
# REPORTING
# =============================================================================


@dataclass
class RevisionStats:
    """Learning progress over a student's schedules.

    Every schedule is exactly one of mastered (high easiness after several
    successful reviews), difficult (easiness near the floor) or learning.
    `success_rate` is the share of schedules whose last review passed with
    a healthy easiness.
    """

    total: int
    due: int
    upcoming: int
    mastered: int
    learning: int
    difficult: int
    average_easiness: float
    average_interval: float
    success_rate: float

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "total": self.total,
            "due": self.due,
            "upcoming": self.upcoming,
            "mastered": self.mastered,
            "learning": self.learning,
            "difficult": self.difficult,
            "average_easiness": self.average_easiness,
            "average_interval": self.average_interval,
            "success_rate": self.success_rate,
        }


AdviceKind = Literal["difficult", "overload", "practice_more"]


@dataclass(frozen=True)
class RevisionAdvice:
    """One piece of study advice, with the exercises it is about."""

    kind: AdviceKind
    action: str
    reason: str
    exercise_ids: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "kind": self.kind,
            "action": self.action,
            "reason": self.reason,
            "exercise_ids": list(self.exercise_ids),
        }


@dataclass
class StudyPlan:
    """Reviews due now, reviews coming up, a day-by-day view and advice."""

    due: list[RevisionSchedule]
    upcoming: list[RevisionSchedule] = field(default_factory=list)
    days: dict[date, list[RevisionSchedule]] = field(default_factory=dict)
    advice: list[RevisionAdvice] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "due": [s.to_dict() for s in self.due],
            "upcoming": [s.to_dict() for s in self.upcoming],
            "days": [
                {"date": d.isoformat(), "reviews": [s.to_dict() for s in items]}
                for d, items in self.days.items()
            ],
            "advice": [a.to_dict() for a in self.advice],
        }


def summarize_schedules(
    schedules: Sequence[RevisionSchedule],
    now: datetime,
    config: SchedulerConfig,
) -> RevisionStats:
    """Progress counts and averages over a set of schedules."""
    if not schedules:
        return RevisionStats(
            total=0,
            due=0,
            upcoming=0,
            mastered=0,
            learning=0,
            difficult=0,
            average_easiness=config.initial_easiness,
            average_interval=0.0,
            success_rate=0.0,
        )

    horizon = now + timedelta(days=config.plan_days)
    total = len(schedules)
    mastered = sum(
        1
        for s in schedules
        if s.easiness >= config.mastered_easiness and s.repetitions >= config.mastered_repetitions
    )
    difficult = sum(1 for s in schedules if s.easiness <= config.difficult_easiness)
    passed = sum(
        1
        for s in schedules
        if s.easiness >= SUCCESS_EASINESS and s.last_quality is not None and s.last_quality >= config.success_quality
    )

    return RevisionStats(
        total=total,
        due=sum(1 for s in schedules if s.next_review <= now),
        upcoming=sum(1 for s in schedules if now < s.next_review <= horizon),
        mastered=mastered,
        learning=total - mastered - difficult,
        difficult=difficult,
        average_easiness=round(sum(s.easiness for s in schedules) / total, 2),
        average_interval=round(sum(s.interval_days for s in schedules) / total, 1),
        success_rate=round(passed / total, 2),
    )


def revision_advice(
    schedules: Sequence[RevisionSchedule],
    now: datetime,
    config: SchedulerConfig,
) -> list[RevisionAdvice]:
    """Advice from the state of a student's schedules.

    Flags difficult exercises, a backlog of due reviews, and too little
    practice over the recent period.
    """
    advice: list[RevisionAdvice] = []

    difficult = [s for s in schedules if s.easiness <= config.difficult_easiness]
    if difficult:
        advice.append(
            RevisionAdvice(
                kind="difficult",
                action="Retravailler les exercices difficiles",
                reason=f"{len(difficult)} exercice(s) demandent un entraînement supplémentaire",
                exercise_ids=tuple(s.exercise_id for s in difficult),
            )
        )

    due = sorted((s for s in schedules if s.next_review <= now), key=lambda s: s.next_review)
    if len(due) > config.overload_due_count:
        advice.append(
            RevisionAdvice(
                kind="overload",
                action="Rattraper les révisions en retard en priorité",
                reason=f"{len(due)} révisions sont en attente",
                exercise_ids=tuple(s.exercise_id for s in due[: config.max_reviews_per_day]),
            )
        )

    cutoff = now - timedelta(days=config.recent_practice_days)
    recent = [s for s in schedules if s.last_review is not None and s.last_review >= cutoff]
    if len(recent) < len(schedules) * config.min_recent_practice_share:
        advice.append(
            RevisionAdvice(
                kind="practice_more",
                action="S'entraîner plus souvent",
                reason="Une pratique régulière entretient les acquis",
            )
        )

    return advice


# =============================================================================
# SCHEDULER
# =============================================================================


class SpacedRepetitionScheduler:
    """Maintains revision schedules through a ScheduleStore."""

    def __init__(
        self,
        store: ScheduleStore,
        config: SchedulerConfig | None = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.store = store
        self.config = config or load_engine_config().scheduler
        self._clock = clock

    def _require(self, student_id: str, exercise_id: str) -> RevisionSchedule:
        schedule = self.store.get(student_id, exercise_id)
        if schedule is None:
            raise ScheduleNotFoundError(f"{student_id}:{exercise_id}")
        return schedule

    def create_schedule(self, student_id: str, exercise_id: str) -> RevisionSchedule:
        """Start spaced review of an exercise; an existing schedule is kept."""
        existing = self.store.get(student_id, exercise_id)
        if existing is not None:
            return existing

        schedule = self.store.upsert(new_schedule(student_id, exercise_id, self._clock(), self.config))
        logger.info(
            "scheduler.schedule_created",
            student_id=student_id,
            exercise_id=exercise_id,
            next_review=schedule.next_review.isoformat(),
        )
        return schedule

    def record_success(self, student_id: str, exercise_id: str, quality: float) -> RevisionSchedule:
        """Record a recall of quality 0-5 (values outside are clamped).

        Raises:
            ScheduleNotFoundError: If no schedule exists for the pair
            ScheduleConflictError: If the row changed since it was read
        """
        current = self._require(student_id, exercise_id)
        updated = self.store.upsert(apply_success(current, quality, self._clock(), self.config))
        logger.info(
            "scheduler.review_recorded",
            student_id=student_id,
            exercise_id=exercise_id,
            quality=updated.last_quality,
            state=updated.state.value,
            interval_days=updated.interval_days,
        )
        return updated

    def record_failure(self, student_id: str, exercise_id: str) -> RevisionSchedule:
        """Record a failed recall: due again tomorrow.

        Raises:
            ScheduleNotFoundError: If no schedule exists for the pair
            ScheduleConflictError: If the row changed since it was read
        """
        current = self._require(student_id, exercise_id)
        updated = self.store.upsert(apply_failure(current, self._clock(), self.config))
        logger.info(
            "scheduler.failure_recorded",
            student_id=student_id,
            exercise_id=exercise_id,
            next_review=updated.next_review.isoformat(),
        )
        return updated

    def record_outcome(
        self,
        student_id: str,
        exercise_id: str,
        success: bool,
        quality: float,
    ) -> RevisionSchedule | None:
        """Apply an attempt outcome to the pair's schedule.

        A failure or a weak success (quality below the success threshold) on
        an unscheduled exercise starts a schedule. A solid success on an
        unscheduled exercise needs no review and returns None.
        """
        existing = self.store.get(student_id, exercise_id)
        if existing is None:
            if success and clamp_quality(quality) >= self.config.success_quality:
                return None
            return self.create_schedule(student_id, exercise_id)

        if success:
            return self.record_success(student_id, exercise_id, quality)
        return self.record_failure(student_id, exercise_id)

    def get_due(self, student_id: str) -> list[RevisionSchedule]:
        """Schedules whose review date has passed, most overdue first."""
        now = self._clock()
        due = [s for s in self.store.list_due(student_id, now) if s.next_review <= now]
        return sorted(due, key=lambda s: s.next_review)

    def get_stats(self, student_id: str) -> RevisionStats:
        schedules = self.store.list_for_student(student_id)
        return summarize_schedules(schedules, self._clock(), self.config)

    def get_advice(self, student_id: str) -> list[RevisionAdvice]:
        schedules = self.store.list_for_student(student_id)
        return revision_advice(schedules, self._clock(), self.config)

    def get_study_plan(
        self,
        student_id: str,
        days: int | None = None,
        max_per_day: int | None = None,
    ) -> StudyPlan:
        """Due reviews plus the next `days` days, each capped at `max_per_day`."""
        days = days if days is not None else self.config.plan_days
        max_per_day = max_per_day if max_per_day is not None else self.config.max_reviews_per_day

        now = self._clock()
        today = now.date()
        horizon = now + timedelta(days=days)
        schedules = sorted(self.store.list_for_student(student_id), key=lambda s: s.next_review)

        buckets: dict[date, list[RevisionSchedule]] = {today + timedelta(days=i): [] for i in range(days)}
        for schedule in schedules:
            day = schedule.next_review.date()
            if day in buckets and len(buckets[day]) < max_per_day:
                buckets[day].append(schedule)

        return StudyPlan(
            due=[s for s in schedules if s.next_review <= now][:max_per_day],
            upcoming=[s for s in schedules if now < s.next_review <= horizon],
            days=buckets,
            advice=revision_advice(schedules, now, self.config),
        )
