from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from skillpath.api.deps import get_async_session, get_current_user_id
from skillpath.schemas.skill_history import PrefillLevelOut, SkillHistoryOut
from skillpath.services import skill_history

router = APIRouter()


@router.get("/skill-history", response_model=list[SkillHistoryOut])
async def get_skill_history(
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_async_session),
) -> list[SkillHistoryOut]:
    return await skill_history.get_skill_history(session, user_id)


@router.get("/skill-history/prefill", response_model=list[PrefillLevelOut])
async def get_prefill_levels(
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_async_session),
) -> list[PrefillLevelOut]:
    return await skill_history.get_for_assessment(session, user_id)
