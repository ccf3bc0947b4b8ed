from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from skillpath.api.deps import get_advisor, get_async_session, get_current_user_id, to_http_exception
from skillpath.schemas.assessment import (
    AssessmentCreate,
    AssessmentOut,
    AssessmentResultOut,
    SelfEvaluationsIn,
    SelfEvaluationsOut,
    SkillAnswerIn,
)
from skillpath.schemas.gap_analysis import GapSnapshotOut
from skillpath.services import assessment_service, gap_snapshot_service
from skillpath.services.advisor_service import AdvisoryService
from skillpath.services.errors import NotFoundError

router = APIRouter()


@router.post("/assessments", response_model=AssessmentOut, status_code=status.HTTP_201_CREATED)
async def create_assessment(
    payload: AssessmentCreate,
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_async_session),
) -> AssessmentOut:
    assessment = await assessment_service.create_assessment(session, user_id, payload)
    return AssessmentOut.model_validate(assessment)


@router.post("/assessments/{assessment_id}/answers", response_model=AssessmentResultOut)
async def submit_answer(
    assessment_id: UUID,
    payload: SkillAnswerIn,
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_async_session),
    advisor: AdvisoryService = Depends(get_advisor),
) -> AssessmentResultOut:
    try:
        result = await assessment_service.record_skill_answer(
            session, advisor, assessment_id, user_id, payload.skill_id, payload.question, payload.answer
        )
    except (LookupError, ValueError) as exc:
        raise to_http_exception(exc) from exc
    return AssessmentResultOut.model_validate(result)


@router.put("/assessments/{assessment_id}/self-evaluations", response_model=SelfEvaluationsOut)
async def save_self_evaluations(
    assessment_id: UUID,
    payload: SelfEvaluationsIn,
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_async_session),
) -> SelfEvaluationsOut:
    try:
        saved = await assessment_service.save_self_evaluations(session, assessment_id, user_id, payload.evaluations)
    except (LookupError, ValueError) as exc:
        raise to_http_exception(exc) from exc
    return SelfEvaluationsOut(saved=saved)


@router.post("/assessments/{assessment_id}/gaps", response_model=GapSnapshotOut)
async def compute_gaps(
    assessment_id: UUID,
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_async_session),
    advisor: AdvisoryService = Depends(get_advisor),
) -> GapSnapshotOut:
    try:
        return await gap_snapshot_service.compute_gaps(session, assessment_id, user_id, advisor=advisor)
    except (LookupError, ValueError) as exc:
        raise to_http_exception(exc) from exc


@router.get("/assessments/{assessment_id}/gaps", response_model=GapSnapshotOut)
async def get_gaps(
    assessment_id: UUID,
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_async_session),
) -> GapSnapshotOut:
    try:
        result = await gap_snapshot_service.get_gaps(session, assessment_id, user_id)
    except NotFoundError as exc:
        raise to_http_exception(exc) from exc
    if result is None:
        raise HTTPException(status_code=404, detail="Gap analysis not found")
    return result
