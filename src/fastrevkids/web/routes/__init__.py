"""Route handlers for the Web API."""

from fastrevkids.web.routes.concepts import router as concepts_router
from fastrevkids.web.routes.health import router as health_router
from fastrevkids.web.routes.revisions import router as revisions_router
from fastrevkids.web.routes.students import router as students_router

__all__ = [
    "health_router",
    "concepts_router",
    "students_router",
    "revisions_router",
]
