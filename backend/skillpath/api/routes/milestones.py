from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from skillpath.api.deps import get_advisor, get_async_session, get_current_user_id, to_http_exception
from skillpath.schemas.roadmap import (
    MilestoneCompletionOut,
    VerificationAnswerIn,
    VerificationQuestionOut,
    VerificationResultOut,
)
from skillpath.services import milestone_service
from skillpath.services.advisor_service import AdvisoryService

router = APIRouter()


@router.post("/milestones/{milestone_id}/complete", response_model=MilestoneCompletionOut)
async def complete_milestone(
    milestone_id: UUID,
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_async_session),
) -> MilestoneCompletionOut:
    try:
        return await milestone_service.complete_self_reported(session, milestone_id, user_id)
    except (LookupError, ValueError) as exc:
        raise to_http_exception(exc) from exc


@router.post("/milestones/{milestone_id}/verification", response_model=VerificationQuestionOut)
async def start_verification(
    milestone_id: UUID,
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_async_session),
    advisor: AdvisoryService = Depends(get_advisor),
) -> VerificationQuestionOut:
    try:
        return await milestone_service.start_verification(session, advisor, milestone_id, user_id)
    except (LookupError, ValueError) as exc:
        raise to_http_exception(exc) from exc


@router.post("/milestones/{milestone_id}/verification/answer", response_model=VerificationResultOut)
async def submit_verification_answer(
    milestone_id: UUID,
    payload: VerificationAnswerIn,
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_async_session),
    advisor: AdvisoryService = Depends(get_advisor),
) -> VerificationResultOut:
    try:
        return await milestone_service.submit_verification_answer(
            session, advisor, milestone_id, user_id, payload.question, payload.answer
        )
    except (LookupError, ValueError) as exc:
        raise to_http_exception(exc) from exc
