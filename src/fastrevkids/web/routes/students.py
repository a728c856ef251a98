"""Student adaptive endpoints: sequence, recommendations, metrics, attempts."""

from datetime import datetime, timezone

import structlog
from fastapi import APIRouter, HTTPException, Query, status

from fastrevkids.core.models import (
    AttemptRecord,
    ConceptNotFoundError,
    ExerciseNotFoundError,
    ScheduleConflictError,
)
from fastrevkids.core.recommendation_scorer import RecommendationOptions
from fastrevkids.web.engine import get_adaptive_service
from fastrevkids.web.schemas import (
    AttemptCreate,
    AttemptResponse,
    ExerciseResponse,
    MetricsResponse,
    PrerequisiteListResponse,
    PrerequisiteStatusResponse,
    ProgressResponse,
    RecommendationListResponse,
    RecommendationResponse,
    ScheduleResponse,
    SequenceResponse,
)

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/students", tags=["students"])


@router.get("/{student_id}/sequence", response_model=SequenceResponse)
async def get_sequence(
    student_id: str,
    concept: str | None = None,
    count: int | None = Query(default=None, ge=1, le=50),
) -> SequenceResponse:
    """Adaptive exercise sequence, optionally targeting a concept."""
    service = get_adaptive_service()
    try:
        result = service.build_sequence(student_id, target_concept=concept, count=count)
    except ConceptNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e

    return SequenceResponse(
        student_id=student_id,
        target_concept=result.target_concept,
        exercises=[ExerciseResponse.from_exercise(e) for e in result.exercises],
        prerequisite_count=result.prerequisite_count,
        prerequisites=[PrerequisiteStatusResponse.from_status(s) for s in result.prerequisites],
        metrics=MetricsResponse.from_metrics(result.metrics) if result.metrics else None,
    )


@router.get("/{student_id}/recommendations", response_model=RecommendationListResponse)
async def get_recommendations(
    student_id: str,
    limit: int = Query(default=10, ge=1, le=100),
    level: str | None = None,
    subject: str | None = None,
) -> RecommendationListResponse:
    """Best exercises of the catalog for the student."""
    options = RecommendationOptions(limit=limit, level=level, subject=subject)
    scored = get_adaptive_service().get_recommendations(student_id, options)
    recommendations = [RecommendationResponse.from_scored(s) for s in scored]
    return RecommendationListResponse(recommendations=recommendations, count=len(recommendations))


@router.get("/{student_id}/metrics/{exercise_id}", response_model=MetricsResponse)
async def get_metrics(student_id: str, exercise_id: str) -> MetricsResponse:
    """Adaptive metrics against a reference exercise."""
    try:
        metrics = get_adaptive_service().get_adaptive_metrics(student_id, exercise_id)
    except ExerciseNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e
    return MetricsResponse.from_metrics(metrics)


@router.get("/{student_id}/prerequisites/{concept_id}", response_model=PrerequisiteListResponse)
async def get_prerequisites(student_id: str, concept_id: str) -> PrerequisiteListResponse:
    """Mastery of each prerequisite of a concept."""
    try:
        statuses = get_adaptive_service().check_prerequisites(student_id, concept_id)
    except ConceptNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e

    return PrerequisiteListResponse(
        concept_id=concept_id,
        prerequisites=[PrerequisiteStatusResponse.from_status(s) for s in statuses],
        all_mastered=all(s.mastered for s in statuses),
    )


@router.post(
    "/{student_id}/attempts",
    response_model=AttemptResponse,
    status_code=status.HTTP_201_CREATED,
)
async def record_attempt(student_id: str, attempt_data: AttemptCreate) -> AttemptResponse:
    """Record an attempt and update the revision schedule in one transaction."""
    attempt = AttemptRecord(
        exercise_id=attempt_data.exercise_id,
        timestamp=datetime.now(timezone.utc),
        success=attempt_data.success,
        response_time=attempt_data.response_time,
        error_type=attempt_data.error_type,
        hints_used=attempt_data.hints_used,
        completed=attempt_data.completed,
    )

    try:
        progress, schedule = get_adaptive_service().submit_attempt(student_id, attempt, quality=attempt_data.quality)
    except ExerciseNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e
    except ScheduleConflictError as e:
        logger.warning("attempts.schedule_conflict", student_id=student_id, exercise_id=attempt.exercise_id)
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e)) from e

    return AttemptResponse(
        progress=ProgressResponse.from_progress(progress),
        schedule=ScheduleResponse.from_schedule(schedule) if schedule else None,
    )
