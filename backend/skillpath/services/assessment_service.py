from __future__ import annotations

import logging
import uuid
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from skillpath.db.upsert import dialect_insert
from skillpath.models.assessment import Assessment, AssessmentResult, Skill
from skillpath.schemas.assessment import AssessmentCreate, SelfEvaluationItem
from skillpath.services.advisor_service import AdvisoryService
from skillpath.services.errors import InputValidationError, NotFoundError
from skillpath.services.gap_snapshot_service import get_owned_assessment

logger = logging.getLogger("skillpath.assessment_service")


def self_evaluation_confidence(level: int) -> float:
    if level <= 1:
        return 0.3
    if level <= 2:
        return 0.4
    if level <= 3:
        return 0.5
    if level <= 4:
        return 0.6
    return 0.7


async def create_assessment(session: AsyncSession, user_id: str, payload: AssessmentCreate) -> Assessment:
    assessment = Assessment(
        user_id=user_id,
        current_role=payload.current_role,
        target_role=payload.target_role,
        years_experience=payload.years_experience,
        career_intent=payload.career_intent.value if payload.career_intent else None,
        industry=payload.industry,
    )
    session.add(assessment)
    await session.commit()
    await session.refresh(assessment)
    logger.info("assessment_created", extra={"assessment_id": str(assessment.id)})
    return assessment


async def _upsert_result(session: AsyncSession, values: dict) -> None:
    stmt = dialect_insert(session, AssessmentResult).values(id=uuid.uuid4(), **values)
    update_cols = {k: getattr(stmt.excluded, k) for k in values if k not in {"assessment_id", "skill_id"}}
    update_cols["updated_at"] = func.now()
    stmt = stmt.on_conflict_do_update(index_elements=["assessment_id", "skill_id"], set_=update_cols)
    await session.execute(stmt)


async def _get_skill(session: AsyncSession, skill_id: UUID) -> Skill:
    skill = await session.get(Skill, skill_id)
    if skill is None:
        raise NotFoundError("skill", skill_id)
    return skill


async def record_skill_answer(
    session: AsyncSession,
    advisor: AdvisoryService,
    assessment_id: UUID,
    user_id: str,
    skill_id: UUID,
    question: str,
    answer: str,
) -> AssessmentResult:
    await get_owned_assessment(session, assessment_id, user_id)
    skill = await _get_skill(session, skill_id)
    if not question.strip() or not answer.strip():
        raise InputValidationError("question and answer must be non-empty")

    evaluation = await advisor.evaluate_skill(
        skill_name=skill.name,
        category=skill.category.value,
        question=question,
        answer=answer,
    )
    await _upsert_result(
        session,
        {
            "assessment_id": assessment_id,
            "skill_id": skill_id,
            "level": evaluation.level,
            "confidence": evaluation.confidence,
            "notes": evaluation.notes,
            "raw_ai_output": {"strengths": evaluation.strengths, "weaknesses": evaluation.weaknesses},
        },
    )
    await session.commit()
    logger.info(
        "assessment_answer_recorded",
        extra={"assessment_id": str(assessment_id), "skill_id": str(skill_id), "level": evaluation.level},
    )
    return (
        await session.execute(
            select(AssessmentResult)
            .where(AssessmentResult.assessment_id == assessment_id, AssessmentResult.skill_id == skill_id)
            .execution_options(populate_existing=True)
        )
    ).scalars().one()


async def save_self_evaluations(
    session: AsyncSession,
    assessment_id: UUID,
    user_id: str,
    evaluations: list[SelfEvaluationItem],
) -> int:
    await get_owned_assessment(session, assessment_id, user_id)
    for item in evaluations:
        if not 0 <= item.level <= 5:
            raise InputValidationError(f"level {item.level} outside 0-5")
    skill_ids = {item.skill_id for item in evaluations}
    known = set(
        (await session.execute(select(Skill.id).where(Skill.id.in_(list(skill_ids))))).scalars().all()
    )
    missing = skill_ids - known
    if missing:
        raise NotFoundError("skill", sorted(str(s) for s in missing)[0])

    for item in evaluations:
        values = {
            "assessment_id": assessment_id,
            "skill_id": item.skill_id,
            "level": item.level,
            "confidence": self_evaluation_confidence(item.level),
        }
        if item.should_test is not None:
            values["should_test"] = item.should_test
        await _upsert_result(session, values)
    await session.commit()
    logger.info(
        "self_evaluations_saved",
        extra={"assessment_id": str(assessment_id), "count": len(evaluations)},
    )
    return len(evaluations)
