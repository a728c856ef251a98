"""FastAPI application factory.

Main entry point for the adaptive learning Web API.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from fastrevkids.web.engine import get_adaptive_service
from fastrevkids.web.routes import (
    concepts_router,
    health_router,
    revisions_router,
    students_router,
)

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Lifespan context manager for startup/shutdown events."""
    service = get_adaptive_service()
    logger.info(
        "api_startup",
        exercises=len(service.catalog.list_exercises()),
        concepts=len(service.curriculum.concepts),
    )
    yield
    if service.cache is not None:
        service.cache.clear()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application.

    Returns:
        Configured FastAPI app instance
    """
    app = FastAPI(
        title="FastRevKids Adaptive API",
        description="Adaptive sequencing, recommendations and spaced repetition",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    # CORS middleware for web clients
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(health_router)
    app.include_router(concepts_router)
    app.include_router(students_router)
    app.include_router(revisions_router)

    return app


# Default app instance for uvicorn
app = create_app()
