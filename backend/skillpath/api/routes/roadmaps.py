from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from skillpath.api.deps import get_advisor, get_async_session, get_current_user_id, to_http_exception
from skillpath.schemas.roadmap import RoadmapOut, RoadmapSummaryOut
from skillpath.services import roadmap_service
from skillpath.services.advisor_service import AdvisoryService

router = APIRouter()


@router.post("/assessments/{assessment_id}/roadmap", response_model=RoadmapOut)
async def generate_roadmap(
    assessment_id: UUID,
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_async_session),
    advisor: AdvisoryService = Depends(get_advisor),
) -> RoadmapOut:
    try:
        roadmap = await roadmap_service.generate_roadmap(session, advisor, assessment_id, user_id)
    except (LookupError, ValueError) as exc:
        raise to_http_exception(exc) from exc
    return roadmap_service.roadmap_to_out(roadmap)


@router.get("/roadmaps", response_model=list[RoadmapSummaryOut])
async def list_roadmaps(
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_async_session),
) -> list[RoadmapSummaryOut]:
    return await roadmap_service.list_roadmaps(session, user_id)


# Declared before /roadmaps/{roadmap_id} so "active" is not parsed as an id.
@router.get("/roadmaps/active", response_model=RoadmapOut)
async def get_active_roadmap(
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_async_session),
) -> RoadmapOut:
    roadmap = await roadmap_service.get_active_roadmap(session, user_id)
    if roadmap is None:
        raise HTTPException(status_code=404, detail="No active roadmap")
    return roadmap_service.roadmap_to_out(roadmap)


@router.get("/roadmaps/{roadmap_id}", response_model=RoadmapOut)
async def get_roadmap(
    roadmap_id: UUID,
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_async_session),
) -> RoadmapOut:
    try:
        roadmap = await roadmap_service.get_roadmap(session, roadmap_id, user_id)
    except LookupError as exc:
        raise to_http_exception(exc) from exc
    return roadmap_service.roadmap_to_out(roadmap)
