"""Entity resolution API routes - main router that includes all route modules."""

from fastapi import APIRouter

from app.features.entities.routes.entities import router as entities_router
from app.features.entities.routes.merge import router as merge_router
from app.features.entities.routes.relationships import router as relationships_router

router = APIRouter(
    prefix="/graph",
    tags=["graph"],
)

# Include all route handlers
router.include_router(merge_router)
router.include_router(entities_router)
router.include_router(relationships_router)
