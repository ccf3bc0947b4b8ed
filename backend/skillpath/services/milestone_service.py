"""Milestone lifecycle: PENDING -> COMPLETED through self-report or a scored answer.

A failed verification answer writes nothing, so callers may retry freely.
Every successful completion appends one progress row and one ledger row,
then rescans the roadmap to decide whether it is finished.
"""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from skillpath.core.config import settings
from skillpath.models.assessment import Skill
from skillpath.models.roadmap import (
    MilestoneProgress,
    MilestoneStatus,
    Roadmap,
    RoadmapMilestone,
    VerificationMethod,
)
from skillpath.schemas.roadmap import (
    MilestoneCompletionOut,
    VerificationQuestionOut,
    VerificationResultOut,
)
from skillpath.services import skill_history
from skillpath.services.advisor_service import AdvisoryService
from skillpath.services.errors import InputValidationError, NotFoundError, PreconditionFailedError
from skillpath.services.gap_snapshot_service import fetch

logger = logging.getLogger("skillpath.milestone_service")

SELF_REPORTED_LEVEL = 4
SELF_REPORTED_CONFIDENCE = 0.6
DEFAULT_CURRENT_LEVEL = 3
DEFAULT_TARGET_LEVEL = 4


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


async def _get_owned_milestone(session: AsyncSession, milestone_id: UUID, user_id: str) -> RoadmapMilestone:
    milestone = (
        await session.execute(
            select(RoadmapMilestone)
            .join(Roadmap, Roadmap.id == RoadmapMilestone.roadmap_id)
            .where(RoadmapMilestone.id == milestone_id, Roadmap.user_id == user_id)
            .options(selectinload(RoadmapMilestone.roadmap))
            .execution_options(populate_existing=True)
        )
    ).scalars().first()
    if milestone is None:
        raise NotFoundError("milestone", milestone_id)
    return milestone


async def _verification_context(session: AsyncSession, milestone: RoadmapMilestone) -> tuple[Skill, int, int]:
    skill = await session.get(Skill, milestone.skill_id)
    if skill is None:
        raise NotFoundError("skill", milestone.skill_id)
    current_level, target = DEFAULT_CURRENT_LEVEL, DEFAULT_TARGET_LEVEL
    snapshot = await fetch(session, milestone.roadmap.assessment_id)
    if snapshot is not None:
        for raw in snapshot.gaps or []:
            if str(raw.get("skill_id")) == str(milestone.skill_id):
                current_level = int(raw.get("current_level", current_level))
                target = int(raw.get("target_level", target))
                break
    return skill, current_level, target


async def _complete_milestone(
    session: AsyncSession,
    milestone: RoadmapMilestone,
    progress: MilestoneProgress,
    *,
    level: int,
    confidence: float,
    source: VerificationMethod,
) -> MilestoneCompletionOut:
    roadmap = milestone.roadmap
    milestone_id = milestone.id
    roadmap_id = roadmap.id

    # Compare-and-set so two racing completions cannot both append progress.
    result = await session.execute(
        update(RoadmapMilestone)
        .where(RoadmapMilestone.id == milestone_id, RoadmapMilestone.status != MilestoneStatus.COMPLETED)
        .values(status=MilestoneStatus.COMPLETED)
    )
    if result.rowcount != 1:
        await session.rollback()
        raise PreconditionFailedError("Milestone already completed")

    session.add(progress)
    skill_history.append(
        session,
        user_id=roadmap.user_id,
        skill_id=milestone.skill_id,
        level=level,
        confidence=confidence,
        source=source,
        assessment_id=roadmap.assessment_id,
    )
    await session.flush()

    remaining = await session.scalar(
        select(func.count())
        .select_from(RoadmapMilestone)
        .where(RoadmapMilestone.roadmap_id == roadmap_id, RoadmapMilestone.status != MilestoneStatus.COMPLETED)
    )
    if not remaining:
        # Only the first finisher stamps completed_at; it is never cleared.
        await session.execute(
            update(Roadmap)
            .where(Roadmap.id == roadmap_id, Roadmap.completed_at.is_(None))
            .values(completed_at=func.now())
            .execution_options(synchronize_session=False)
        )
    await session.commit()

    logger.info(
        "milestone_completed",
        extra={
            "milestone_id": str(milestone_id),
            "roadmap_id": str(roadmap_id),
            "method": source.value,
            "roadmap_completed": not remaining,
        },
    )
    return MilestoneCompletionOut(
        milestone_id=milestone_id,
        progress_id=progress.id,
        status=MilestoneStatus.COMPLETED,
        roadmap_completed=not remaining,
    )


async def complete_self_reported(session: AsyncSession, milestone_id: UUID, user_id: str) -> MilestoneCompletionOut:
    milestone = await _get_owned_milestone(session, milestone_id, user_id)
    if milestone.status == MilestoneStatus.COMPLETED:
        raise PreconditionFailedError("Milestone already completed")
    progress = MilestoneProgress(
        milestone_id=milestone.id,
        verification_method=VerificationMethod.SELF_REPORTED,
        self_reported_at=_utcnow(),
    )
    return await _complete_milestone(
        session,
        milestone,
        progress,
        level=SELF_REPORTED_LEVEL,
        confidence=SELF_REPORTED_CONFIDENCE,
        source=VerificationMethod.SELF_REPORTED,
    )


async def start_verification(
    session: AsyncSession,
    advisor: AdvisoryService,
    milestone_id: UUID,
    user_id: str,
) -> VerificationQuestionOut:
    milestone = await _get_owned_milestone(session, milestone_id, user_id)
    skill, _current, target = await _verification_context(session, milestone)
    question = await advisor.generate_verification_question(
        skill_name=skill.name,
        category=skill.category.value,
        target_level=target,
        milestone_title=milestone.title,
        milestone_description=milestone.description,
    )
    return VerificationQuestionOut(
        milestone_id=milestone.id,
        skill_name=skill.name,
        question=question.question,
        expected_topics=question.expected_topics,
        difficulty=question.difficulty,
    )


async def submit_verification_answer(
    session: AsyncSession,
    advisor: AdvisoryService,
    milestone_id: UUID,
    user_id: str,
    question: str,
    answer: str,
) -> VerificationResultOut:
    question = (question or "").strip()
    answer = (answer or "").strip()
    if not question or not answer:
        raise InputValidationError("question and answer must be non-empty")
    if len(answer) > settings.max_answer_chars:
        raise InputValidationError(f"answer exceeds {settings.max_answer_chars} characters")

    milestone = await _get_owned_milestone(session, milestone_id, user_id)
    if milestone.status == MilestoneStatus.COMPLETED:
        raise PreconditionFailedError("Milestone already completed")
    skill, current_level, target = await _verification_context(session, milestone)
    verdict = await advisor.score_verification_answer(
        skill_name=skill.name,
        category=skill.category.value,
        current_level=current_level,
        target_level=target,
        milestone_title=milestone.title,
        question=question,
        answer=answer,
    )
    if not verdict.passed:
        logger.info(
            "milestone_verification_failed",
            extra={"milestone_id": str(milestone.id), "score": verdict.score},
        )
        return VerificationResultOut(
            passed=False,
            score=verdict.score,
            new_level=verdict.new_level,
            feedback=verdict.feedback,
            follow_up_question=verdict.follow_up_question,
        )

    progress = MilestoneProgress(
        milestone_id=milestone.id,
        verification_method=VerificationMethod.AI_VERIFIED,
        ai_verified_at=_utcnow(),
        ai_verification_score=verdict.score,
        ai_verification_notes=verdict.feedback,
    )
    await _complete_milestone(
        session,
        milestone,
        progress,
        level=verdict.new_level,
        confidence=verdict.score,
        source=VerificationMethod.AI_VERIFIED,
    )
    return VerificationResultOut(
        passed=True,
        score=verdict.score,
        new_level=verdict.new_level,
        feedback=verdict.feedback,
        follow_up_question=verdict.follow_up_question,
    )
