from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from skillpath.api.deps import get_advisor, get_async_session, get_current_user_id, to_http_exception
from skillpath.schemas.gap_analysis import GapResourcesOut, ResourceEntry
from skillpath.services import resource_cache
from skillpath.services.advisor_service import AdvisoryService

router = APIRouter()


@router.get("/gap-snapshots/{snapshot_id}/skills/{skill_id}/resources", response_model=GapResourcesOut)
async def load_gap_resources(
    snapshot_id: UUID,
    skill_id: UUID,
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_async_session),
    advisor: AdvisoryService = Depends(get_advisor),
) -> GapResourcesOut:
    try:
        return await resource_cache.load_gap_resources(session, advisor, snapshot_id, skill_id, user_id)
    except (LookupError, ValueError) as exc:
        raise to_http_exception(exc) from exc


@router.post("/gap-snapshots/{snapshot_id}/skills/{skill_id}/resources/regenerate", response_model=GapResourcesOut)
async def regenerate_resources(
    snapshot_id: UUID,
    skill_id: UUID,
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_async_session),
    advisor: AdvisoryService = Depends(get_advisor),
) -> GapResourcesOut:
    try:
        return await resource_cache.regenerate_resources(session, advisor, snapshot_id, skill_id, user_id)
    except (LookupError, ValueError) as exc:
        raise to_http_exception(exc) from exc


@router.post("/gap-snapshots/{snapshot_id}/resources/enrich", response_model=dict[str, list[ResourceEntry]])
async def enrich_snapshot_resources(
    snapshot_id: UUID,
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_async_session),
    advisor: AdvisoryService = Depends(get_advisor),
) -> dict[str, list[ResourceEntry]]:
    try:
        return await resource_cache.enrich_snapshot_resources(session, advisor, snapshot_id, user_id)
    except (LookupError, ValueError) as exc:
        raise to_http_exception(exc) from exc
