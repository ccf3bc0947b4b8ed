from __future__ import annotations

import logging
import uuid
from uuid import UUID

from pydantic import ValidationError
from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from skillpath.core.config import settings
from skillpath.db.upsert import dialect_insert
from skillpath.models.assessment import Assessment, AssessmentResult, AssessmentStatus, Skill
from skillpath.models.gap import GapResourceCache, GapSnapshot
from skillpath.schemas.gap_analysis import (
    CareerProfile,
    GapAnalysisResult,
    GapItem,
    GapSnapshotOut,
    ResourceEntry,
    SkillObservation,
)
from skillpath.services.advisor_service import AdvisoryService
from skillpath.services.errors import InputValidationError, NotFoundError, PreconditionFailedError
from skillpath.services.gap_analyzer import analyze_gaps, overall_recommendation

logger = logging.getLogger("skillpath.gap_snapshot_service")


async def get_owned_assessment(session: AsyncSession, assessment_id: UUID, user_id: str) -> Assessment:
    assessment = (
        await session.execute(
            select(Assessment).where(Assessment.id == assessment_id, Assessment.user_id == user_id)
        )
    ).scalars().first()
    if assessment is None:
        raise NotFoundError("assessment", assessment_id)
    return assessment


def profile_for(assessment: Assessment) -> CareerProfile:
    return CareerProfile(
        current_role=assessment.current_role,
        target_role=assessment.target_role,
        years_experience=assessment.years_experience,
        career_intent=assessment.career_intent,
        industry=assessment.industry,
    )


async def narrate_gaps(advisor: AdvisoryService, analysis: GapAnalysisResult, profile: CareerProfile) -> None:
    """Swap in advisory wording for positive gaps; sizing fields are never touched."""
    context = ", ".join(
        part
        for part in (
            f"transitioning from {profile.current_role}" if profile.current_role else "",
            f"industry {profile.industry}" if profile.industry else "",
            f"{profile.years_experience} years experience" if profile.years_experience else "",
        )
        if part
    )
    for gap in analysis.gaps:
        if gap.gap_size <= 0:
            continue
        # One skill at a time to stay under provider rate limits.
        narrative = await advisor.explain_gap(
            gap, target_role=profile.target_role or "the target role", context=context or None
        )
        gap.explanation = narrative.explanation
        gap.recommended_actions = narrative.recommended_actions


async def _store_analysis(
    session: AsyncSession,
    assessment_id: UUID,
    analysis: GapAnalysisResult,
    target_role: str | None,
) -> GapSnapshot:
    gaps_payload = [g.model_dump(mode="json", exclude={"resources"}) for g in analysis.gaps]
    stmt = dialect_insert(session, GapSnapshot).values(
        id=uuid.uuid4(),
        assessment_id=assessment_id,
        readiness_score=analysis.readiness_score,
        gaps=gaps_payload,
        strengths=list(analysis.strengths),
        overall_recommendation=overall_recommendation(analysis.readiness_score, target_role),
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=["assessment_id"],
        set_={
            "readiness_score": stmt.excluded.readiness_score,
            "gaps": stmt.excluded.gaps,
            "strengths": stmt.excluded.strengths,
            "overall_recommendation": stmt.excluded.overall_recommendation,
            "updated_at": func.now(),
        },
    )
    await session.execute(stmt)

    # Same skill set load_observations feeds the analyzer; gaps already include zero-gap skills.
    evaluated = await session.scalar(
        select(func.count())
        .select_from(AssessmentResult)
        .join(Skill, Skill.id == AssessmentResult.skill_id)
        .where(AssessmentResult.assessment_id == assessment_id, Skill.assessable.is_(True))
    )
    accounted = {gap.skill_id for gap in analysis.gaps}
    if len(accounted) >= (evaluated or 0):
        await session.execute(
            update(Assessment)
            .where(Assessment.id == assessment_id)
            .values(
                status=AssessmentStatus.COMPLETED,
                completed_at=func.coalesce(Assessment.completed_at, func.now()),
            )
        )
    await session.commit()

    snapshot = await fetch(session, assessment_id)
    logger.info(
        "gap_snapshot_stored",
        extra={
            "assessment_id": str(assessment_id),
            "readiness_score": analysis.readiness_score,
            "gaps": len(analysis.gaps),
            "strengths": len(analysis.strengths),
        },
    )
    return snapshot


async def compute_and_store(
    session: AsyncSession,
    assessment_id: UUID,
    profile: CareerProfile,
    skills: list[SkillObservation],
    *,
    advisor: AdvisoryService | None = None,
) -> GapSnapshot:
    analysis = analyze_gaps(profile, skills)
    if advisor is not None:
        await narrate_gaps(advisor, analysis, profile)
    return await _store_analysis(session, assessment_id, analysis, profile.target_role)


async def fetch(session: AsyncSession, assessment_id: UUID) -> GapSnapshot | None:
    return (
        await session.execute(
            select(GapSnapshot)
            .where(GapSnapshot.assessment_id == assessment_id)
            .execution_options(populate_existing=True)
        )
    ).scalars().first()


async def load_observations(session: AsyncSession, assessment_id: UUID) -> list[SkillObservation]:
    rows = (
        await session.execute(
            select(AssessmentResult, Skill)
            .join(Skill, Skill.id == AssessmentResult.skill_id)
            .where(AssessmentResult.assessment_id == assessment_id, Skill.assessable.is_(True))
            .order_by(Skill.name)
        )
    ).all()
    observations: list[SkillObservation] = []
    for result, skill in rows:
        try:
            observations.append(
                SkillObservation(
                    skill_id=skill.id,
                    name=skill.name,
                    category=skill.category,
                    difficulty=skill.difficulty,
                    current_level=result.level,
                )
            )
        except ValidationError as exc:
            raise InputValidationError(f"invalid observation for skill {skill.name}: {exc.errors()[0]['msg']}") from exc
    return observations


async def compute_gaps(
    session: AsyncSession,
    assessment_id: UUID,
    user_id: str,
    *,
    advisor: AdvisoryService | None = None,
) -> GapSnapshotOut:
    assessment = await get_owned_assessment(session, assessment_id, user_id)
    if not (assessment.target_role or "").strip():
        raise PreconditionFailedError("Assessment has no target role")
    profile = profile_for(assessment)
    observations = await load_observations(session, assessment_id)
    narrator = advisor if settings.gap_narration_enabled else None
    snapshot = await compute_and_store(session, assessment_id, profile, observations, advisor=narrator)
    return snapshot_to_out(snapshot, assessment.target_role, await cached_resources(session, snapshot.id))


def snapshot_to_out(
    snapshot: GapSnapshot,
    target_role: str | None,
    cached: list[GapResourceCache],
) -> GapSnapshotOut:
    by_skill = {str(row.skill_id): row.resources for row in cached}
    gaps: list[GapItem] = []
    for raw in snapshot.gaps or []:
        item = GapItem.model_validate(raw)
        resources = by_skill.get(str(item.skill_id))
        if resources is not None:
            item.resources = [ResourceEntry.model_validate(r) for r in resources]
        gaps.append(item)
    return GapSnapshotOut(
        id=snapshot.id,
        assessment_id=snapshot.assessment_id,
        target_role=target_role,
        readiness_score=snapshot.readiness_score,
        gaps=gaps,
        strengths=list(snapshot.strengths or []),
        overall_recommendation=snapshot.overall_recommendation,
        updated_at=snapshot.updated_at,
    )


async def cached_resources(session: AsyncSession, snapshot_id: UUID) -> list[GapResourceCache]:
    return list(
        (
            await session.execute(
                select(GapResourceCache)
                .where(GapResourceCache.gap_snapshot_id == snapshot_id)
                .execution_options(populate_existing=True)
            )
        ).scalars().all()
    )


async def get_gaps(session: AsyncSession, assessment_id: UUID, user_id: str) -> GapSnapshotOut | None:
    assessment = await get_owned_assessment(session, assessment_id, user_id)
    snapshot = await fetch(session, assessment_id)
    if snapshot is None:
        return None
    return snapshot_to_out(snapshot, assessment.target_role, await cached_resources(session, snapshot.id))
