"""Domain model for the adaptive learning engine.

Exercises, attempt history, per-exercise progress, derived adaptive metrics,
prerequisite statuses and revision schedules.

Everything here is a plain dataclass. Exercises and attempts are frozen;
the engine never mutates what the catalog or progress store hands it.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Literal, Union

# =============================================================================
# ERRORS
# =============================================================================


class AdaptiveEngineError(Exception):
    """Base error for the adaptive engine."""

    pass


class ExerciseNotFoundError(AdaptiveEngineError):
    """Raised when an exercise id is unknown to the catalog."""

    def __init__(self, exercise_id: str):
        self.exercise_id = exercise_id
        super().__init__(f"Exercice introuvable : {exercise_id}")


class ConceptNotFoundError(AdaptiveEngineError):
    """Raised when a concept id is not part of the curriculum."""

    def __init__(self, concept_id: str):
        self.concept_id = concept_id
        super().__init__(f"Notion introuvable : {concept_id}")


class ScheduleNotFoundError(AdaptiveEngineError):
    """Raised when a revision schedule does not exist."""

    def __init__(self, schedule_key: str):
        self.schedule_key = schedule_key
        super().__init__(f"Planning de révision introuvable : {schedule_key}")


class ScheduleConflictError(AdaptiveEngineError):
    """Raised when a schedule was updated concurrently; caller should retry."""

    def __init__(self, student_id: str, exercise_id: str, expected: int, actual: int | None):
        self.student_id = student_id
        self.exercise_id = exercise_id
        self.expected_version = expected
        self.actual_version = actual
        super().__init__(
            f"Conflit sur le planning {student_id}/{exercise_id}: "
            f"version attendue {expected}, trouvée {actual}"
        )


# =============================================================================
# ENUMS
# =============================================================================


class DifficultyTier(str, Enum):
    """Authoring difficulty tier of an exercise."""

    FACILE = "FACILE"
    MOYEN = "MOYEN"
    DIFFICILE = "DIFFICILE"

    @property
    def numeric(self) -> float:
        """Position on the 1-5 scale used by the difficulty engine."""
        return DIFFICULTY_SCALE[self.value]


# Tier -> numeric difficulty. Unknown tiers sit in the middle of the scale.
DIFFICULTY_SCALE: dict[str, float] = {
    "FACILE": 1.0,
    "MOYEN": 3.0,
    "DIFFICILE": 5.0,
}
DEFAULT_NUMERIC_DIFFICULTY = 3.0


def numeric_difficulty(tier: DifficultyTier | str | None) -> float:
    """Map a tier (enum or raw string) to the 1-5 scale."""
    if tier is None:
        return DEFAULT_NUMERIC_DIFFICULTY
    key = tier.value if isinstance(tier, DifficultyTier) else str(tier).upper()
    return DIFFICULTY_SCALE.get(key, DEFAULT_NUMERIC_DIFFICULTY)


class ExerciseType(str, Enum):
    """Exercise presentation type."""

    QCM = "QCM"
    CALCUL = "CALCUL"
    TEXTE_LIBRE = "TEXTE_LIBRE"
    DRAG_DROP = "DRAG_DROP"
    PROBLEME = "PROBLEME"


class ProgressStatus(str, Enum):
    """Status of a student on a single exercise.

    The legacy platform had two terminal mastery states ("ACQUIS" and
    "DIFFICILE"). Both load as MASTERED.
    """

    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"
    MASTERED = "mastered"

    @property
    def is_mastery(self) -> bool:
        return self is ProgressStatus.MASTERED

    @property
    def is_completed(self) -> bool:
        return self in (ProgressStatus.COMPLETED, ProgressStatus.MASTERED)

    @classmethod
    def parse(cls, raw: str) -> ProgressStatus:
        """Parse a status, accepting legacy French labels."""
        value = raw.strip()
        legacy = _LEGACY_STATUS.get(value.upper())
        if legacy is not None:
            return legacy
        return cls(value.lower())


_LEGACY_STATUS: dict[str, ProgressStatus] = {
    "NON_COMMENCE": ProgressStatus.NOT_STARTED,
    "EN_COURS": ProgressStatus.IN_PROGRESS,
    "TERMINE": ProgressStatus.COMPLETED,
    "ECHEC": ProgressStatus.FAILED,
    "ACQUIS": ProgressStatus.MASTERED,
    "MAITRISE": ProgressStatus.MASTERED,
    "DIFFICILE": ProgressStatus.MASTERED,
    "HARD": ProgressStatus.MASTERED,
}


PerformanceTrend = Literal["improving", "stable", "declining"]
Adjustment = Literal["increase", "maintain", "decrease"]


class ScheduleState(str, Enum):
    """Review state of a revision schedule."""

    DUE = "due"
    REVIEWED_SUCCESS = "reviewed_success"
    REVIEWED_FAILURE = "reviewed_failure"


# =============================================================================
# EXERCISE CONFIGURATION (one case per exercise type)
# =============================================================================


@dataclass(frozen=True)
class QcmConfig:
    """Multiple-choice question."""

    question: str
    options: tuple[str, ...]
    correct_index: int
    kind: Literal["QCM"] = "QCM"


@dataclass(frozen=True)
class CalculConfig:
    """Arithmetic computation."""

    operation: str
    operands: tuple[float, ...]
    expected: float
    kind: Literal["CALCUL"] = "CALCUL"


@dataclass(frozen=True)
class TexteLibreConfig:
    """Free-text answer."""

    prompt: str
    accepted_answers: tuple[str, ...]
    kind: Literal["TEXTE_LIBRE"] = "TEXTE_LIBRE"


@dataclass(frozen=True)
class DragDropConfig:
    """Drag items onto targets."""

    items: tuple[str, ...]
    targets: tuple[str, ...]
    kind: Literal["DRAG_DROP"] = "DRAG_DROP"


@dataclass(frozen=True)
class ProblemeConfig:
    """Word problem."""

    statement: str
    expected: float
    unit: str | None = None
    kind: Literal["PROBLEME"] = "PROBLEME"


ExerciseConfig = Union[QcmConfig, CalculConfig, TexteLibreConfig, DragDropConfig, ProblemeConfig]


def parse_exercise_config(exercise_type: ExerciseType, data: dict[str, Any] | None) -> ExerciseConfig | None:
    """Build the typed configuration for an exercise type.

    Args:
        exercise_type: Type tag of the exercise
        data: Raw configuration mapping (JSON column or YAML block)

    Returns:
        Typed config, or None when no configuration was supplied

    Raises:
        ValueError: If required keys are missing for the type
    """
    if not data:
        return None

    try:
        if exercise_type is ExerciseType.QCM:
            return QcmConfig(
                question=data["question"],
                options=tuple(data["options"]),
                correct_index=int(data["correct_index"]),
            )
        if exercise_type is ExerciseType.CALCUL:
            return CalculConfig(
                operation=data["operation"],
                operands=tuple(float(x) for x in data["operands"]),
                expected=float(data["expected"]),
            )
        if exercise_type is ExerciseType.TEXTE_LIBRE:
            return TexteLibreConfig(
                prompt=data["prompt"],
                accepted_answers=tuple(data.get("accepted_answers", [])),
            )
        if exercise_type is ExerciseType.DRAG_DROP:
            return DragDropConfig(
                items=tuple(data["items"]),
                targets=tuple(data["targets"]),
            )
        return ProblemeConfig(
            statement=data["statement"],
            expected=float(data["expected"]),
            unit=data.get("unit"),
        )
    except KeyError as e:
        raise ValueError(f"Configuration {exercise_type.value} incomplète: clé {e} manquante") from e


def config_to_dict(config: ExerciseConfig | None) -> dict[str, Any] | None:
    """Serialize a typed config back to a plain mapping."""
    if config is None:
        return None
    result: dict[str, Any] = {}
    for key, value in config.__dict__.items():
        if key == "kind":
            continue
        result[key] = list(value) if isinstance(value, tuple) else value
    return result


# =============================================================================
# CATALOG AND HISTORY
# =============================================================================


@dataclass(frozen=True)
class Exercise:
    """An exercise from the catalog."""

    exercise_id: str
    title: str
    concept_ids: tuple[str, ...]
    difficulty: DifficultyTier | str
    exercise_type: ExerciseType
    estimated_duration: int = 60  # seconds
    subject: str = "mathematiques"
    level: str = "CP"
    order: int = 0
    config: ExerciseConfig | None = None

    @property
    def numeric_difficulty(self) -> float:
        return numeric_difficulty(self.difficulty)

    def is_tagged(self, concept_id: str) -> bool:
        """Whether the exercise is tagged with the given concept."""
        return concept_id in self.concept_ids

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        difficulty = self.difficulty.value if isinstance(self.difficulty, DifficultyTier) else self.difficulty
        return {
            "exercise_id": self.exercise_id,
            "title": self.title,
            "concept_ids": list(self.concept_ids),
            "difficulty": difficulty,
            "exercise_type": self.exercise_type.value,
            "estimated_duration": self.estimated_duration,
            "subject": self.subject,
            "level": self.level,
            "order": self.order,
            "config": config_to_dict(self.config),
        }


@dataclass(frozen=True)
class AttemptRecord:
    """A single attempt on an exercise. Never mutated once created."""

    exercise_id: str
    timestamp: datetime
    success: bool
    response_time: float = 0.0  # seconds
    error_type: str | None = None
    hints_used: int = 0
    completed: bool = True
    exercise_type: ExerciseType | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "exercise_id": self.exercise_id,
            "timestamp": self.timestamp.isoformat(),
            "success": self.success,
            "response_time": self.response_time,
            "error_type": self.error_type,
            "hints_used": self.hints_used,
            "completed": self.completed,
            "exercise_type": self.exercise_type.value if self.exercise_type else None,
        }


@dataclass
class StudentConceptProgress:
    """Aggregate of a student's work on one exercise.

    `exercise` is the joined catalog entry (None when the exercise has been
    removed from the catalog); it carries the concept, subject and level tags
    used by the prerequisite checker and the recommendation scorer.
    """

    student_id: str
    exercise_id: str
    attempt_count: int = 0
    success_rate: float = 0.0  # 0.0 - 1.0
    status: ProgressStatus = ProgressStatus.NOT_STARTED
    history: list[AttemptRecord] = field(default_factory=list)
    exercise: Exercise | None = None

    @property
    def subject(self) -> str | None:
        return self.exercise.subject if self.exercise else None

    @property
    def level(self) -> str | None:
        return self.exercise.level if self.exercise else None

    def is_related_to(self, concept_id: str) -> bool:
        return self.exercise is not None and self.exercise.is_tagged(concept_id)

    def latest_attempt(self) -> AttemptRecord | None:
        """Most recent attempt by timestamp, or None."""
        if not self.history:
            return None
        return max(self.history, key=lambda a: a.timestamp)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "student_id": self.student_id,
            "exercise_id": self.exercise_id,
            "attempt_count": self.attempt_count,
            "success_rate": self.success_rate,
            "status": self.status.value,
            "history": [a.to_dict() for a in self.history],
        }


# =============================================================================
# DERIVED RESULTS
# =============================================================================


@dataclass(frozen=True)
class AdaptiveMetrics:
    """Performance profile and difficulty target. Derived, never persisted."""

    current_difficulty: float
    optimal_difficulty: float
    performance_trend: PerformanceTrend
    learning_velocity: float
    frustration_index: float
    engagement_score: float
    recommended_adjustment: Adjustment

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "current_difficulty": self.current_difficulty,
            "optimal_difficulty": self.optimal_difficulty,
            "performance_trend": self.performance_trend,
            "learning_velocity": self.learning_velocity,
            "frustration_index": self.frustration_index,
            "engagement_score": self.engagement_score,
            "recommended_adjustment": self.recommended_adjustment,
        }


@dataclass(frozen=True)
class PrerequisiteStatus:
    """Mastery of one prerequisite concept."""

    concept_id: str
    concept_name: str
    mastered: bool
    mastery_level: float  # 0 - 100
    related_exercises: tuple[str, ...] = ()
    required: bool = True

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "concept_id": self.concept_id,
            "concept_name": self.concept_name,
            "required": self.required,
            "mastered": self.mastered,
            "mastery_level": self.mastery_level,
            "related_exercises": list(self.related_exercises),
        }


@dataclass(frozen=True)
class ScoredExercise:
    """Recommendation score for a candidate exercise."""

    exercise: Exercise
    score: int
    reasons: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "exercise": self.exercise.to_dict(),
            "score": self.score,
            "reasons": list(self.reasons),
        }


# =============================================================================
# REVISION SCHEDULE
# =============================================================================


@dataclass
class RevisionSchedule:
    """Spaced-repetition state for one (student, exercise) pair.

    `version` is bumped by the store on every write and is used for
    optimistic concurrency control.
    """

    student_id: str
    exercise_id: str
    next_review: datetime
    interval_days: int = 1
    repetitions: int = 0
    easiness: float = 2.5
    state: ScheduleState = ScheduleState.DUE
    last_quality: float | None = None
    last_review: datetime | None = None
    version: int = 0

    @property
    def key(self) -> str:
        return f"{self.student_id}:{self.exercise_id}"

    def is_due(self, now: datetime | None = None) -> bool:
        """Whether the review date has been reached."""
        now = now or utc_now()
        return self.next_review <= now

    def to_dict(self, now: datetime | None = None) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "student_id": self.student_id,
            "exercise_id": self.exercise_id,
            "next_review": self.next_review.isoformat(),
            "interval_days": self.interval_days,
            "repetitions": self.repetitions,
            "easiness": self.easiness,
            "state": self.state.value,
            "last_quality": self.last_quality,
            "last_review": self.last_review.isoformat() if self.last_review else None,
            "is_due": self.is_due(now),
            "version": self.version,
        }


def utc_now() -> datetime:
    """Timezone-aware current time."""
    return datetime.now(timezone.utc)
