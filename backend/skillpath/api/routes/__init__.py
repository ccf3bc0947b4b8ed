from fastapi import APIRouter
from skillpath.api.routes.assessments import router as assessments_router
from skillpath.api.routes.milestones import router as milestones_router
from skillpath.api.routes.resources import router as resources_router
from skillpath.api.routes.roadmaps import router as roadmaps_router
from skillpath.api.routes.skill_history import router as skill_history_router

router = APIRouter()
router.include_router(assessments_router, tags=["assessments"])
router.include_router(resources_router, tags=["resources"])
router.include_router(roadmaps_router, tags=["roadmaps"])
router.include_router(milestones_router, tags=["milestones"])
router.include_router(skill_history_router, tags=["skill-history"])
