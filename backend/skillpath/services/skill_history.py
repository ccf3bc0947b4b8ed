from __future__ import annotations

import logging
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from skillpath.models.assessment import Skill
from skillpath.models.roadmap import VerificationMethod
from skillpath.models.skill_history import UserSkillHistory
from skillpath.schemas.skill_history import PrefillLevelOut, SkillHistoryOut

logger = logging.getLogger("skillpath.skill_history")


def append(
    session: AsyncSession,
    *,
    user_id: str,
    skill_id: UUID,
    level: int,
    confidence: float,
    source: VerificationMethod,
    assessment_id: UUID | None = None,
) -> UserSkillHistory:
    """Stage one ledger row; the caller commits it with the rest of its unit of work."""
    record = UserSkillHistory(
        user_id=user_id,
        skill_id=skill_id,
        level=level,
        confidence=confidence,
        source=source,
        assessment_id=assessment_id,
    )
    session.add(record)
    logger.info(
        "skill_history_appended",
        extra={"user_id": user_id, "skill_id": str(skill_id), "level": level, "source": source.value},
    )
    return record


async def latest_per_skill(
    session: AsyncSession,
    user_id: str,
    *,
    source: VerificationMethod | None = None,
) -> dict[UUID, UserSkillHistory]:
    stmt = select(UserSkillHistory).where(UserSkillHistory.user_id == user_id)
    if source is not None:
        stmt = stmt.where(UserSkillHistory.source == source)
    stmt = stmt.order_by(UserSkillHistory.created_at.desc(), UserSkillHistory.id.desc())
    rows = (await session.execute(stmt)).scalars().all()
    latest: dict[UUID, UserSkillHistory] = {}
    for row in rows:
        # Newest first, so the first row seen per skill wins.
        latest.setdefault(row.skill_id, row)
    return latest


async def get_skill_history(session: AsyncSession, user_id: str) -> list[SkillHistoryOut]:
    latest = await latest_per_skill(session, user_id)
    if not latest:
        return []
    skills = (
        await session.execute(select(Skill).where(Skill.id.in_(list(latest.keys()))))
    ).scalars().all()
    by_id = {s.id: s for s in skills}
    out = []
    for skill_id, row in latest.items():
        skill = by_id.get(skill_id)
        out.append(
            SkillHistoryOut(
                skill_id=skill_id,
                skill_name=skill.name if skill else None,
                category=skill.category if skill else None,
                level=row.level,
                confidence=row.confidence,
                source=row.source,
                assessment_id=row.assessment_id,
                created_at=row.created_at,
            )
        )
    out.sort(key=lambda item: (item.skill_name or "").lower())
    return out


async def get_for_assessment(session: AsyncSession, user_id: str) -> list[PrefillLevelOut]:
    latest = await latest_per_skill(session, user_id, source=VerificationMethod.AI_VERIFIED)
    return [
        PrefillLevelOut(skill_id=skill_id, level=row.level, confidence=row.confidence)
        for skill_id, row in latest.items()
    ]
