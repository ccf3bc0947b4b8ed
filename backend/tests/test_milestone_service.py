import pytest
from sqlalchemy import func, select

from skillpath.models.assessment import SkillCategory
from skillpath.models.roadmap import MilestoneProgress, MilestoneStatus, Roadmap, RoadmapMilestone, VerificationMethod
from skillpath.models.skill_history import UserSkillHistory
from skillpath.services import gap_snapshot_service, milestone_service, roadmap_service
from skillpath.services.advisor_service import AdvisoryService
from skillpath.services.errors import InputValidationError, NotFoundError, PreconditionFailedError
from .conftest import OTHER_USER_ID, USER_ID
from .factories import FakeProvider, seed_assessment

LEVELS = {
    "Kubernetes": (SkillCategory.HARD, 4, 1),
    "Terraform": (SkillCategory.HARD, 3, 2),
}

LONG_ANSWER = "I would design the rollout with readiness probes, staged canaries and automated rollback. " * 2


async def _roadmap(db_session, advisor):
    assessment, skills = await seed_assessment(db_session, LEVELS)
    await gap_snapshot_service.compute_gaps(db_session, assessment.id, USER_ID)
    roadmap = await roadmap_service.generate_roadmap(db_session, advisor, assessment.id, USER_ID)
    return roadmap, skills


async def _progress_rows(db_session, milestone_id) -> int:
    return await db_session.scalar(
        select(func.count()).select_from(MilestoneProgress).where(MilestoneProgress.milestone_id == milestone_id)
    )


async def _reload_roadmap(db_session, roadmap_id) -> Roadmap:
    return (
        await db_session.execute(
            select(Roadmap).where(Roadmap.id == roadmap_id).execution_options(populate_existing=True)
        )
    ).scalars().one()


async def _status(db_session, milestone_id) -> MilestoneStatus:
    return await db_session.scalar(select(RoadmapMilestone.status).where(RoadmapMilestone.id == milestone_id))


@pytest.mark.asyncio
async def test_self_report_completes_and_appends_ledger(db_session, advisor):
    roadmap, _skills = await _roadmap(db_session, advisor)
    milestone = roadmap.milestones[0]

    out = await milestone_service.complete_self_reported(db_session, milestone.id, USER_ID)

    assert out.status == MilestoneStatus.COMPLETED
    assert out.roadmap_completed is False
    assert await _status(db_session, milestone.id) == MilestoneStatus.COMPLETED
    assert await _progress_rows(db_session, milestone.id) == 1
    [record] = (await db_session.execute(select(UserSkillHistory))).scalars().all()
    assert record.skill_id == milestone.skill_id
    assert (record.level, record.confidence, record.source) == (4, 0.6, VerificationMethod.SELF_REPORTED)
    assert record.assessment_id == roadmap.assessment_id


@pytest.mark.asyncio
async def test_roadmap_completed_only_when_every_milestone_is_done(db_session, advisor):
    roadmap, _skills = await _roadmap(db_session, advisor)
    first, second = roadmap.milestones

    await milestone_service.complete_self_reported(db_session, first.id, USER_ID)
    assert (await _reload_roadmap(db_session, roadmap.id)).completed_at is None

    out = await milestone_service.complete_self_reported(db_session, second.id, USER_ID)
    assert out.roadmap_completed is True
    completed = await _reload_roadmap(db_session, roadmap.id)
    assert completed.completed_at is not None
    assert await roadmap_service.get_active_roadmap(db_session, USER_ID) is None


@pytest.mark.asyncio
async def test_completing_twice_is_rejected_without_writes(db_session, advisor):
    roadmap, _skills = await _roadmap(db_session, advisor)
    milestone = roadmap.milestones[0]
    await milestone_service.complete_self_reported(db_session, milestone.id, USER_ID)

    with pytest.raises(PreconditionFailedError):
        await milestone_service.complete_self_reported(db_session, milestone.id, USER_ID)
    with pytest.raises(PreconditionFailedError):
        await milestone_service.submit_verification_answer(
            db_session, advisor, milestone.id, USER_ID, "q", LONG_ANSWER
        )

    assert await _progress_rows(db_session, milestone.id) == 1
    assert await db_session.scalar(select(func.count()).select_from(UserSkillHistory)) == 1
    assert await _status(db_session, milestone.id) == MilestoneStatus.COMPLETED


@pytest.mark.asyncio
async def test_failed_answer_changes_nothing_and_can_be_retried(db_session, advisor):
    roadmap, _skills = await _roadmap(db_session, advisor)
    milestone = roadmap.milestones[0]

    for _ in range(3):
        result = await milestone_service.submit_verification_answer(
            db_session, advisor, milestone.id, USER_ID, "How would you roll out?", "Carefully."
        )
        assert result.passed is False
        assert result.follow_up_question

    assert await _status(db_session, milestone.id) == MilestoneStatus.PENDING
    assert await _progress_rows(db_session, milestone.id) == 0
    assert await db_session.scalar(select(func.count()).select_from(UserSkillHistory)) == 0

    passed = await milestone_service.submit_verification_answer(
        db_session, advisor, milestone.id, USER_ID, "How would you roll out?", LONG_ANSWER
    )
    assert passed.passed is True
    assert await _status(db_session, milestone.id) == MilestoneStatus.COMPLETED


@pytest.mark.asyncio
async def test_passed_answer_records_ai_verification(db_session, advisor):
    roadmap, skills = await _roadmap(db_session, advisor)
    milestone = next(m for m in roadmap.milestones if m.skill_id == skills["Kubernetes"].id)
    provider = FakeProvider(
        {"passed": True, "score": 0.85, "newLevel": 3, "feedback": "Strong answer", "followUpQuestion": None}
    )

    result = await milestone_service.submit_verification_answer(
        db_session, AdvisoryService([provider]), milestone.id, USER_ID, "q", "a"
    )

    assert result.passed is True
    assert result.new_level == 3
    assert "Kubernetes" in provider.prompts[0]
    progress = (
        await db_session.execute(select(MilestoneProgress).where(MilestoneProgress.milestone_id == milestone.id))
    ).scalars().one()
    assert progress.verification_method == VerificationMethod.AI_VERIFIED
    assert progress.ai_verification_score == 0.85
    assert progress.ai_verification_notes == "Strong answer"
    assert progress.ai_verified_at is not None
    record = (await db_session.execute(select(UserSkillHistory))).scalars().one()
    assert (record.level, record.confidence, record.source) == (3, 0.85, VerificationMethod.AI_VERIFIED)


@pytest.mark.asyncio
async def test_start_verification_is_read_only(db_session, advisor):
    roadmap, skills = await _roadmap(db_session, advisor)
    milestone = next(m for m in roadmap.milestones if m.skill_id == skills["Kubernetes"].id)

    question = await milestone_service.start_verification(db_session, advisor, milestone.id, USER_ID)

    assert question.skill_name == "Kubernetes"
    assert question.difficulty == "ADVANCED"
    assert milestone.title in question.question
    assert await _status(db_session, milestone.id) == MilestoneStatus.PENDING
    assert await _progress_rows(db_session, milestone.id) == 0


@pytest.mark.asyncio
async def test_milestone_access_checks(db_session, advisor):
    roadmap, _skills = await _roadmap(db_session, advisor)
    milestone = roadmap.milestones[0]

    with pytest.raises(NotFoundError):
        await milestone_service.complete_self_reported(db_session, milestone.id, OTHER_USER_ID)
    with pytest.raises(InputValidationError):
        await milestone_service.submit_verification_answer(db_session, advisor, milestone.id, USER_ID, "q", "   ")
