from __future__ import annotations

import logging
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from skillpath.models.roadmap import MilestoneStatus, Roadmap, RoadmapMilestone
from skillpath.schemas.gap_analysis import GapItem
from skillpath.schemas.roadmap import (
    MilestoneOut,
    RoadmapOut,
    RoadmapProgressOut,
    RoadmapSummaryOut,
)
from skillpath.services.advisor_service import AdvisoryService
from skillpath.services.errors import NotFoundError, PreconditionFailedError
from skillpath.services.gap_snapshot_service import fetch, get_owned_assessment

logger = logging.getLogger("skillpath.roadmap_service")


def _roadmap_query():
    return select(Roadmap).options(
        selectinload(Roadmap.milestones).selectinload(RoadmapMilestone.progress),
        selectinload(Roadmap.assessment),
    )


async def _roadmap_for_assessment(session: AsyncSession, assessment_id: UUID) -> Roadmap | None:
    return (
        await session.execute(
            _roadmap_query().where(Roadmap.assessment_id == assessment_id).execution_options(populate_existing=True)
        )
    ).scalars().first()


def roadmap_to_out(roadmap: Roadmap) -> RoadmapOut:
    assessment = roadmap.assessment
    return RoadmapOut(
        id=roadmap.id,
        assessment_id=roadmap.assessment_id,
        title=roadmap.title,
        total_weeks=roadmap.total_weeks,
        completed_at=roadmap.completed_at,
        target_role=assessment.target_role if assessment else None,
        current_role=assessment.current_role if assessment else None,
        milestones=[MilestoneOut.model_validate(m) for m in roadmap.milestones],
    )


async def generate_roadmap(
    session: AsyncSession,
    advisor: AdvisoryService,
    assessment_id: UUID,
    user_id: str,
) -> Roadmap:
    """Create-if-absent: an existing roadmap is returned as is, never recomputed."""
    assessment = await get_owned_assessment(session, assessment_id, user_id)
    snapshot = await fetch(session, assessment_id)
    if snapshot is None:
        raise PreconditionFailedError("Assessment has no gap analysis")
    target_role = (assessment.target_role or "").strip()
    if not target_role:
        raise PreconditionFailedError("Assessment has no target role")

    existing = await _roadmap_for_assessment(session, assessment_id)
    if existing is not None:
        logger.info("roadmap_exists", extra={"assessment_id": str(assessment_id), "roadmap_id": str(existing.id)})
        return existing

    gaps = [g for g in (GapItem.model_validate(raw) for raw in snapshot.gaps or []) if g.gap_size > 0]
    if not gaps:
        raise PreconditionFailedError("No skill gaps found")

    profile = {
        "current_role": assessment.current_role,
        "years_experience": assessment.years_experience,
        "career_intent": assessment.career_intent,
        "industry": assessment.industry,
    }
    owner = assessment.user_id
    plan = await advisor.plan_roadmap(target_role=target_role, gaps=gaps, **profile)

    roadmap = Roadmap(
        assessment_id=assessment_id,
        user_id=owner,
        title=plan.title,
        total_weeks=plan.total_weeks,
    )
    roadmap.milestones = [
        RoadmapMilestone(
            skill_id=UUID(m.skill_id.strip()),
            week_number=m.week_number,
            title=m.title,
            description=m.description,
            resources=[r.model_dump(mode="json") for r in m.resources],
            status=MilestoneStatus.PENDING,
        )
        for m in plan.milestones
    ]
    session.add(roadmap)
    try:
        await session.commit()
    except IntegrityError:
        # Lost the race for this assessment's roadmap; return the winner.
        await session.rollback()
        winner = await _roadmap_for_assessment(session, assessment_id)
        if winner is None:
            raise
        logger.info("roadmap_create_race_lost", extra={"assessment_id": str(assessment_id)})
        return winner

    logger.info(
        "roadmap_created",
        extra={
            "assessment_id": str(assessment_id),
            "roadmap_id": str(roadmap.id),
            "milestones": len(plan.milestones),
            "total_weeks": plan.total_weeks,
        },
    )
    created = await _roadmap_for_assessment(session, assessment_id)
    if created is None:
        raise NotFoundError("roadmap", roadmap.id)
    return created


async def get_roadmap(session: AsyncSession, roadmap_id: UUID, user_id: str) -> Roadmap:
    roadmap = (
        await session.execute(
            _roadmap_query()
            .where(Roadmap.id == roadmap_id, Roadmap.user_id == user_id)
            .execution_options(populate_existing=True)
        )
    ).scalars().first()
    if roadmap is None:
        raise NotFoundError("roadmap", roadmap_id)
    return roadmap


async def get_active_roadmap(session: AsyncSession, user_id: str) -> Roadmap | None:
    return (
        await session.execute(
            _roadmap_query()
            .where(Roadmap.user_id == user_id, Roadmap.completed_at.is_(None))
            .order_by(Roadmap.created_at.desc())
            .limit(1)
            .execution_options(populate_existing=True)
        )
    ).scalars().first()


async def list_roadmaps(session: AsyncSession, user_id: str) -> list[RoadmapSummaryOut]:
    completed_count = func.count(RoadmapMilestone.id).filter(RoadmapMilestone.status == MilestoneStatus.COMPLETED)
    rows = (
        await session.execute(
            select(Roadmap, func.count(RoadmapMilestone.id), completed_count)
            .outerjoin(RoadmapMilestone, RoadmapMilestone.roadmap_id == Roadmap.id)
            .where(Roadmap.user_id == user_id)
            .group_by(Roadmap.id)
            .order_by(Roadmap.created_at.desc())
            .options(selectinload(Roadmap.assessment))
        )
    ).all()
    return [
        RoadmapSummaryOut(
            id=roadmap.id,
            title=roadmap.title,
            total_weeks=roadmap.total_weeks,
            target_role=roadmap.assessment.target_role if roadmap.assessment else None,
            completed_at=roadmap.completed_at,
            progress=RoadmapProgressOut(total=int(total or 0), completed=int(done or 0)),
        )
        for roadmap, total, done in rows
    ]
