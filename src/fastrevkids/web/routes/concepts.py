"""Curriculum endpoints."""

from fastapi import APIRouter

from fastrevkids.web.engine import get_adaptive_service
from fastrevkids.web.schemas import ConceptListResponse, ConceptResponse

router = APIRouter(prefix="/api/concepts", tags=["concepts"])


@router.get("", response_model=ConceptListResponse)
async def list_concepts() -> ConceptListResponse:
    """List all curriculum concepts with their prerequisites."""
    curriculum = get_adaptive_service().curriculum
    concepts = [
        ConceptResponse(id=c.id, name=c.name, prerequisites=list(c.prerequisites))
        for c in curriculum.concepts.values()
    ]
    return ConceptListResponse(concepts=concepts, count=len(concepts))
