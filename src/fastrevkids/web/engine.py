"""Adaptive service instance for the Web API.

Builds the service over the SQLite stores on first use.
"""

from __future__ import annotations

import structlog

from fastrevkids.config.app_config import load_engine_config
from fastrevkids.config.curriculum import load_curriculum
from fastrevkids.core.adaptive_service import AdaptiveService, RecommendationCache
from fastrevkids.db.database import get_db, init_db
from fastrevkids.db.exercises_repository import SqliteExerciseCatalog
from fastrevkids.db.progress_repository import SqliteProgressStore
from fastrevkids.db.schedules_repository import SqliteScheduleStore

logger = structlog.get_logger(__name__)

_adaptive_service: AdaptiveService | None = None


def build_adaptive_service() -> AdaptiveService:
    """Create a service over the configured SQLite database."""
    config = load_engine_config()
    init_db(config.db_path)
    return AdaptiveService(
        catalog=SqliteExerciseCatalog(),
        progress_store=SqliteProgressStore(),
        schedule_store=SqliteScheduleStore(),
        curriculum=load_curriculum(),
        config=config,
        cache=RecommendationCache(max_size=config.recommendation.cache_size),
        transaction=get_db,
    )


def get_adaptive_service() -> AdaptiveService:
    """Get the global adaptive service instance."""
    global _adaptive_service
    if _adaptive_service is None:
        _adaptive_service = build_adaptive_service()
        logger.info("adaptive_service.created")
    return _adaptive_service


def reset_adaptive_service() -> None:
    """Reset the adaptive service (for testing)."""
    global _adaptive_service
    _adaptive_service = None
