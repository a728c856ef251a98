"""Pydantic schemas for the Web API.

Serialization models for exercises, recommendations, adaptive metrics,
prerequisites, attempts and revision schedules.
"""

from __future__ import annotations

from pydantic import BaseModel, Field

from fastrevkids.core.models import (
    AdaptiveMetrics,
    Exercise,
    PrerequisiteStatus,
    RevisionSchedule,
    ScoredExercise,
    StudentConceptProgress,
)


# =============================================================================
# HEALTH
# =============================================================================


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    version: str
    timestamp: str


# =============================================================================
# CATALOG SCHEMAS
# =============================================================================


class ConceptResponse(BaseModel):
    """A curriculum concept."""

    id: str
    name: str
    prerequisites: list[str]


class ConceptListResponse(BaseModel):
    """Response for list of concepts."""

    concepts: list[ConceptResponse]
    count: int


class ExerciseResponse(BaseModel):
    """An exercise from the catalog."""

    exercise_id: str
    title: str
    concept_ids: list[str]
    difficulty: str
    exercise_type: str
    estimated_duration: int
    subject: str
    level: str

    @classmethod
    def from_exercise(cls, exercise: Exercise) -> ExerciseResponse:
        data = exercise.to_dict()
        return cls(
            exercise_id=data["exercise_id"],
            title=data["title"],
            concept_ids=data["concept_ids"],
            difficulty=data["difficulty"],
            exercise_type=data["exercise_type"],
            estimated_duration=data["estimated_duration"],
            subject=data["subject"],
            level=data["level"],
        )


# =============================================================================
# ADAPTIVE SCHEMAS
# =============================================================================


class MetricsResponse(BaseModel):
    """Adaptive metrics of a student."""

    current_difficulty: float
    optimal_difficulty: float
    performance_trend: str
    learning_velocity: float
    frustration_index: float
    engagement_score: float
    recommended_adjustment: str

    @classmethod
    def from_metrics(cls, metrics: AdaptiveMetrics) -> MetricsResponse:
        return cls(**metrics.to_dict())


class PrerequisiteStatusResponse(BaseModel):
    """Mastery of one prerequisite concept."""

    concept_id: str
    concept_name: str
    required: bool
    mastered: bool
    mastery_level: float
    related_exercises: list[str]

    @classmethod
    def from_status(cls, prereq: PrerequisiteStatus) -> PrerequisiteStatusResponse:
        return cls(**prereq.to_dict())


class PrerequisiteListResponse(BaseModel):
    """Prerequisites of a concept for a student."""

    concept_id: str
    prerequisites: list[PrerequisiteStatusResponse]
    all_mastered: bool


class SequenceResponse(BaseModel):
    """Adaptive exercise sequence."""

    student_id: str
    target_concept: str | None = None
    exercises: list[ExerciseResponse]
    prerequisite_count: int = 0
    prerequisites: list[PrerequisiteStatusResponse] = Field(default_factory=list)
    metrics: MetricsResponse | None = None


class RecommendationResponse(BaseModel):
    """A scored exercise recommendation."""

    exercise: ExerciseResponse
    score: int
    reasons: list[str]

    @classmethod
    def from_scored(cls, scored: ScoredExercise) -> RecommendationResponse:
        return cls(
            exercise=ExerciseResponse.from_exercise(scored.exercise),
            score=scored.score,
            reasons=list(scored.reasons),
        )


class RecommendationListResponse(BaseModel):
    """Response for list of recommendations."""

    recommendations: list[RecommendationResponse]
    count: int


# =============================================================================
# ATTEMPT AND REVISION SCHEMAS
# =============================================================================


class AttemptCreate(BaseModel):
    """Request body for recording an attempt."""

    exercise_id: str = Field(..., min_length=1)
    success: bool
    response_time: float = Field(default=0.0, ge=0)
    hints_used: int = Field(default=0, ge=0)
    error_type: str | None = None
    completed: bool = True
    quality: float | None = Field(default=None, ge=0, le=5)


class ProgressResponse(BaseModel):
    """Progress of a student on one exercise."""

    exercise_id: str
    attempt_count: int
    success_rate: float
    status: str

    @classmethod
    def from_progress(cls, progress: StudentConceptProgress) -> ProgressResponse:
        return cls(
            exercise_id=progress.exercise_id,
            attempt_count=progress.attempt_count,
            success_rate=progress.success_rate,
            status=progress.status.value,
        )


class ScheduleResponse(BaseModel):
    """A revision schedule."""

    exercise_id: str
    next_review: str
    interval_days: int
    repetitions: int
    easiness: float
    state: str
    last_quality: float | None = None
    last_review: str | None = None
    is_due: bool

    @classmethod
    def from_schedule(cls, schedule: RevisionSchedule) -> ScheduleResponse:
        data = schedule.to_dict()
        data.pop("student_id")
        data.pop("version")
        return cls(**data)


class AttemptResponse(BaseModel):
    """Result of recording an attempt."""

    progress: ProgressResponse
    schedule: ScheduleResponse | None = None


class DueRevisionsResponse(BaseModel):
    """Revisions due now."""

    revisions: list[ScheduleResponse]
    count: int


class RevisionStatsResponse(BaseModel):
    """Learning progress over a student's schedules."""

    total: int
    due: int
    upcoming: int
    mastered: int
    learning: int
    difficult: int
    average_easiness: float
    average_interval: float
    success_rate: float


class AdviceResponse(BaseModel):
    """One piece of study advice."""

    kind: str
    action: str
    reason: str
    exercise_ids: list[str] = []


class AdviceListResponse(BaseModel):
    """Study advice for a student."""

    advice: list[AdviceResponse]
    count: int


class StudyDayResponse(BaseModel):
    """Reviews planned for one day."""

    date: str
    reviews: list[ScheduleResponse]


class StudyPlanResponse(BaseModel):
    """Study plan for the coming days."""

    due: list[ScheduleResponse]
    upcoming: list[ScheduleResponse]
    days: list[StudyDayResponse]
    advice: list[AdviceResponse]
