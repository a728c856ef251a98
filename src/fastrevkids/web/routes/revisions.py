"""Spaced-repetition endpoints."""

from fastapi import APIRouter, Query

from fastrevkids.web.engine import get_adaptive_service
from fastrevkids.web.schemas import (
    AdviceListResponse,
    AdviceResponse,
    DueRevisionsResponse,
    RevisionStatsResponse,
    ScheduleResponse,
    StudyDayResponse,
    StudyPlanResponse,
)

router = APIRouter(prefix="/api/students/{student_id}/revisions", tags=["revisions"])


@router.get("/due", response_model=DueRevisionsResponse)
async def get_due_revisions(student_id: str) -> DueRevisionsResponse:
    """Revisions whose review date has passed, most overdue first."""
    schedules = get_adaptive_service().get_due_revisions(student_id)
    revisions = [ScheduleResponse.from_schedule(s) for s in schedules]
    return DueRevisionsResponse(revisions=revisions, count=len(revisions))


@router.get("/stats", response_model=RevisionStatsResponse)
async def get_revision_stats(student_id: str) -> RevisionStatsResponse:
    """Learning progress over the student's schedules."""
    stats = get_adaptive_service().get_revision_stats(student_id)
    return RevisionStatsResponse(**stats.to_dict())


@router.get("/plan", response_model=StudyPlanResponse)
async def get_study_plan(
    student_id: str,
    days: int | None = Query(default=None, ge=1, le=30),
) -> StudyPlanResponse:
    """Due and upcoming reviews, a day-by-day plan and study advice."""
    plan = get_adaptive_service().get_study_plan(student_id, days=days)
    return StudyPlanResponse(
        due=[ScheduleResponse.from_schedule(s) for s in plan.due],
        upcoming=[ScheduleResponse.from_schedule(s) for s in plan.upcoming],
        days=[
            StudyDayResponse(date=day.isoformat(), reviews=[ScheduleResponse.from_schedule(s) for s in items])
            for day, items in plan.days.items()
        ],
        advice=[AdviceResponse(**a.to_dict()) for a in plan.advice],
    )


@router.get("/advice", response_model=AdviceListResponse)
async def get_revision_advice(student_id: str) -> AdviceListResponse:
    """Study advice from the state of the student's schedules."""
    advice = [AdviceResponse(**a.to_dict()) for a in get_adaptive_service().get_revision_advice(student_id)]
    return AdviceListResponse(advice=advice, count=len(advice))
