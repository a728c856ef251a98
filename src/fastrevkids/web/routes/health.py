"""Health check endpoint."""

from datetime import datetime, timezone

from fastapi import APIRouter

from fastrevkids.web.schemas import HealthResponse

API_VERSION = "0.1.0"

router = APIRouter(tags=["health"])


@router.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """Check API health status."""
    return HealthResponse(
        status="ok",
        version=API_VERSION,
        timestamp=datetime.now(timezone.utc).isoformat(),
    )
