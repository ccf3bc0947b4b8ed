import uuid

import pytest
from sqlalchemy import func, select

from skillpath.core import config as config_module
from skillpath.models.assessment import Assessment, AssessmentStatus, SkillCategory
from skillpath.models.gap import GapSnapshot
from skillpath.services import gap_snapshot_service
from skillpath.services.advisor_service import AdvisoryService
from skillpath.services.errors import InputValidationError, NotFoundError, PreconditionFailedError
from .conftest import OTHER_USER_ID, USER_ID
from .factories import FakeProvider, seed_assessment

LEVELS = {
    "System Architecture": (SkillCategory.HARD, 5, 2),
    "Team Collaboration": (SkillCategory.SOFT, 2, 1),
    "Python": (SkillCategory.HARD, 3, 4),
}


@pytest.mark.asyncio
async def test_compute_gaps_stores_snapshot_and_completes_assessment(db_session):
    assessment, skills = await seed_assessment(db_session, LEVELS, career_intent="LEADERSHIP")

    out = await gap_snapshot_service.compute_gaps(db_session, assessment.id, USER_ID)

    assert out.assessment_id == assessment.id
    assert out.readiness_score == 52
    assert [g.skill_name for g in out.gaps] == ["System Architecture", "Team Collaboration", "Python"]
    assert out.strengths == ["Python"]
    assert out.overall_recommendation.startswith("You are 52% ready for Staff Engineer.")

    refreshed = (
        await db_session.execute(
            select(Assessment).where(Assessment.id == assessment.id).execution_options(populate_existing=True)
        )
    ).scalars().one()
    assert refreshed.status == AssessmentStatus.COMPLETED
    assert refreshed.completed_at is not None


@pytest.mark.asyncio
async def test_compute_gaps_twice_overwrites_single_snapshot(db_session):
    assessment, _skills = await seed_assessment(db_session, LEVELS)

    first = await gap_snapshot_service.compute_gaps(db_session, assessment.id, USER_ID)
    second = await gap_snapshot_service.compute_gaps(db_session, assessment.id, USER_ID)

    count = await db_session.scalar(
        select(func.count()).select_from(GapSnapshot).where(GapSnapshot.assessment_id == assessment.id)
    )
    assert count == 1
    assert first.id == second.id


@pytest.mark.asyncio
async def test_fetch_is_read_only(db_session):
    assessment, _skills = await seed_assessment(db_session, LEVELS)
    assert await gap_snapshot_service.fetch(db_session, assessment.id) is None
    assert await gap_snapshot_service.get_gaps(db_session, assessment.id, USER_ID) is None


@pytest.mark.asyncio
async def test_compute_gaps_requires_target_role(db_session):
    assessment, _skills = await seed_assessment(db_session, LEVELS, target_role="  ")
    with pytest.raises(PreconditionFailedError):
        await gap_snapshot_service.compute_gaps(db_session, assessment.id, USER_ID)
    assert await gap_snapshot_service.fetch(db_session, assessment.id) is None


@pytest.mark.asyncio
async def test_compute_gaps_hides_other_users_assessment(db_session):
    assessment, _skills = await seed_assessment(db_session, LEVELS)
    with pytest.raises(NotFoundError):
        await gap_snapshot_service.compute_gaps(db_session, assessment.id, OTHER_USER_ID)
    with pytest.raises(NotFoundError):
        await gap_snapshot_service.compute_gaps(db_session, uuid.uuid4(), USER_ID)


@pytest.mark.asyncio
async def test_difficulty_outside_scale_is_rejected(db_session):
    assessment, _skills = await seed_assessment(db_session, {"Legacy": (SkillCategory.HARD, 8, 1)})
    with pytest.raises(InputValidationError):
        await gap_snapshot_service.compute_gaps(db_session, assessment.id, USER_ID)


@pytest.mark.asyncio
async def test_non_assessable_skills_are_ignored(db_session):
    assessment, skills = await seed_assessment(db_session, LEVELS)
    skills["Python"].assessable = False
    await db_session.commit()

    out = await gap_snapshot_service.compute_gaps(db_session, assessment.id, USER_ID)
    assert "Python" not in [g.skill_name for g in out.gaps]


@pytest.mark.asyncio
async def test_narration_only_rewrites_text(db_session, monkeypatch):
    monkeypatch.setattr(config_module.settings, "gap_narration_enabled", True)
    assessment, _skills = await seed_assessment(db_session, LEVELS)
    provider = FakeProvider({"explanation": "Narrated", "recommendedActions": ["Read", "Build"]})

    out = await gap_snapshot_service.compute_gaps(
        db_session, assessment.id, USER_ID, advisor=AdvisoryService([provider])
    )

    positive = [g for g in out.gaps if g.gap_size > 0]
    assert len(provider.prompts) == len(positive)
    assert all(g.explanation == "Narrated" for g in positive)
    assert [g.priority for g in out.gaps] == sorted((g.priority for g in out.gaps), reverse=True)
    zero = [g for g in out.gaps if g.gap_size == 0]
    assert all(g.explanation != "Narrated" for g in zero)


@pytest.mark.asyncio
async def test_non_assessable_result_does_not_block_completion_without_strengths(db_session):
    assessment, skills = await seed_assessment(
        db_session,
        {
            "Kubernetes": (SkillCategory.HARD, 4, 1),
            "Terraform": (SkillCategory.HARD, 3, 1),
            "Legacy": (SkillCategory.HARD, 3, 1),
        },
    )
    skills["Legacy"].assessable = False
    await db_session.commit()

    out = await gap_snapshot_service.compute_gaps(db_session, assessment.id, USER_ID)

    assert len(out.gaps) == 2
    assert out.strengths == []
    refreshed = (
        await db_session.execute(
            select(Assessment).where(Assessment.id == assessment.id).execution_options(populate_existing=True)
        )
    ).scalars().one()
    assert refreshed.status == AssessmentStatus.COMPLETED


@pytest.mark.asyncio
async def test_unanalysed_result_keeps_assessment_in_progress(db_session):
    assessment, skills = await seed_assessment(db_session, LEVELS)
    observations = await gap_snapshot_service.load_observations(db_session, assessment.id)

    await gap_snapshot_service.compute_and_store(
        db_session, assessment.id, gap_snapshot_service.profile_for(assessment), observations[:1]
    )

    refreshed = (
        await db_session.execute(
            select(Assessment).where(Assessment.id == assessment.id).execution_options(populate_existing=True)
        )
    ).scalars().one()
    assert refreshed.status == AssessmentStatus.IN_PROGRESS
    assert refreshed.completed_at is None
