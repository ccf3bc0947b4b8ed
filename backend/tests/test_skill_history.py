import uuid
from datetime import datetime, timedelta, timezone

import pytest

from skillpath.models.assessment import SkillCategory
from skillpath.models.roadmap import VerificationMethod
from skillpath.models.skill_history import UserSkillHistory
from skillpath.services import skill_history
from .conftest import OTHER_USER_ID, USER_ID
from .factories import make_skill


async def _skills(db_session, *names):
    skills = [make_skill(name, SkillCategory.HARD, 3) for name in names]
    db_session.add_all(skills)
    await db_session.commit()
    return skills


@pytest.mark.asyncio
async def test_latest_record_per_skill_wins(db_session):
    go, sql = await _skills(db_session, "Go", "SQL")
    base = datetime(2026, 1, 1, tzinfo=timezone.utc)
    db_session.add_all(
        [
            UserSkillHistory(user_id=USER_ID, skill_id=go.id, level=2, confidence=0.6, source=VerificationMethod.SELF_REPORTED, created_at=base),
            UserSkillHistory(user_id=USER_ID, skill_id=go.id, level=4, confidence=0.9, source=VerificationMethod.AI_VERIFIED, created_at=base + timedelta(days=2)),
            UserSkillHistory(user_id=USER_ID, skill_id=go.id, level=3, confidence=0.6, source=VerificationMethod.SELF_REPORTED, created_at=base + timedelta(days=1)),
            UserSkillHistory(user_id=USER_ID, skill_id=sql.id, level=1, confidence=0.6, source=VerificationMethod.SELF_REPORTED, created_at=base),
            UserSkillHistory(user_id=OTHER_USER_ID, skill_id=sql.id, level=5, confidence=1.0, source=VerificationMethod.AI_VERIFIED, created_at=base + timedelta(days=5)),
        ]
    )
    await db_session.commit()

    latest = await skill_history.latest_per_skill(db_session, USER_ID)

    assert latest[go.id].level == 4
    assert latest[sql.id].level == 1
    assert len(latest) == 2


@pytest.mark.asyncio
async def test_same_timestamp_falls_back_to_insertion_order(db_session):
    [go] = await _skills(db_session, "Go")
    at = datetime(2026, 3, 1, tzinfo=timezone.utc)
    for level in (2, 5, 3):
        db_session.add(
            UserSkillHistory(user_id=USER_ID, skill_id=go.id, level=level, confidence=0.6, source=VerificationMethod.SELF_REPORTED, created_at=at)
        )
        await db_session.flush()
    await db_session.commit()

    latest = await skill_history.latest_per_skill(db_session, USER_ID)
    assert latest[go.id].level == 3


@pytest.mark.asyncio
async def test_append_is_staged_until_commit(db_session):
    [go] = await _skills(db_session, "Go")
    skill_history.append(db_session, user_id=USER_ID, skill_id=go.id, level=3, confidence=0.7, source=VerificationMethod.AI_VERIFIED)
    await db_session.commit()
    skill_history.append(db_session, user_id=USER_ID, skill_id=go.id, level=4, confidence=0.6, source=VerificationMethod.SELF_REPORTED)
    await db_session.commit()

    [current] = await skill_history.get_skill_history(db_session, USER_ID)
    assert current.skill_name == "Go"
    assert current.level == 4
    assert current.source == VerificationMethod.SELF_REPORTED

    # Prefill only trusts verified levels.
    [prefill] = await skill_history.get_for_assessment(db_session, USER_ID)
    assert prefill.level == 3
    assert prefill.confidence == 0.7


@pytest.mark.asyncio
async def test_history_sorted_by_skill_name_and_empty_for_new_user(db_session):
    zig, ada = await _skills(db_session, "Zig", "Ada")
    for skill in (zig, ada):
        skill_history.append(db_session, user_id=USER_ID, skill_id=skill.id, level=2, confidence=0.5, source=VerificationMethod.SELF_REPORTED)
    await db_session.commit()

    history = await skill_history.get_skill_history(db_session, USER_ID)
    assert [h.skill_name for h in history] == ["Ada", "Zig"]
    assert await skill_history.get_skill_history(db_session, str(uuid.uuid4())[:8]) == []
