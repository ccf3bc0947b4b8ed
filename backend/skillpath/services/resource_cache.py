from __future__ import annotations

import logging
import uuid
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from skillpath.db.upsert import dialect_insert
from skillpath.models.assessment import Assessment
from skillpath.models.gap import GapResourceCache, GapSnapshot
from skillpath.schemas.gap_analysis import GapItem, GapResourcesOut, ResourceEntry
from skillpath.services.advisor_ai import ResourceRecommendation
from skillpath.services.advisor_service import AdvisoryService
from skillpath.services.errors import NotFoundError
from skillpath.services.gap_analyzer import round_half_up
from skillpath.services.log_sanitize import sanitize_for_log

logger = logging.getLogger("skillpath.resource_cache")


def to_entries(skill_id: UUID, recommendations: list[ResourceRecommendation]) -> list[ResourceEntry]:
    return [
        ResourceEntry(
            id=rec.url or f"{skill_id}-{rec.title}",
            provider=rec.provider,
            url=rec.url,
            title=rec.title,
            cost=rec.cost,
            type=rec.type,
            estimated_time=round_half_up(rec.estimated_minutes / 60),
        )
        for rec in recommendations
    ]


async def get_owned_snapshot(session: AsyncSession, snapshot_id: UUID, user_id: str) -> GapSnapshot:
    snapshot = (
        await session.execute(
            select(GapSnapshot)
            .join(Assessment, Assessment.id == GapSnapshot.assessment_id)
            .where(GapSnapshot.id == snapshot_id, Assessment.user_id == user_id)
        )
    ).scalars().first()
    if snapshot is None:
        raise NotFoundError("gap snapshot", snapshot_id)
    return snapshot


def _gap_for_skill(snapshot: GapSnapshot, skill_id: UUID) -> GapItem:
    for raw in snapshot.gaps or []:
        if str(raw.get("skill_id")) == str(skill_id):
            return GapItem.model_validate(raw)
    raise NotFoundError("skill", skill_id)


async def read(session: AsyncSession, snapshot_id: UUID, skill_id: UUID) -> list[ResourceEntry]:
    """Cached entries for the pair; empty when nothing was generated yet. Never calls the advisor."""
    row = (
        await session.execute(
            select(GapResourceCache)
            .where(GapResourceCache.gap_snapshot_id == snapshot_id, GapResourceCache.skill_id == skill_id)
            .execution_options(populate_existing=True)
        )
    ).scalars().first()
    if row is None:
        return []
    return [ResourceEntry.model_validate(r) for r in row.resources or []]


async def regenerate(
    session: AsyncSession,
    advisor: AdvisoryService,
    snapshot: GapSnapshot,
    skill_id: UUID,
) -> list[ResourceEntry]:
    return await _regenerate_for_gap(session, advisor, snapshot.id, _gap_for_skill(snapshot, skill_id))


async def _regenerate_for_gap(
    session: AsyncSession,
    advisor: AdvisoryService,
    snapshot_id: UUID,
    gap: GapItem,
) -> list[ResourceEntry]:
    skill_id = gap.skill_id
    recommendations = await advisor.recommend_resources(
        skill_name=gap.skill_name,
        category=gap.category.value if gap.category else "HARD",
        current_level=gap.current_level,
        target_level=gap.target_level,
    )
    entries = to_entries(skill_id, recommendations)
    payload = [e.model_dump(mode="json") for e in entries]

    stmt = dialect_insert(session, GapResourceCache).values(
        id=uuid.uuid4(),
        gap_snapshot_id=snapshot_id,
        skill_id=skill_id,
        skill_name=gap.skill_name,
        resources=payload,
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=["gap_snapshot_id", "skill_id"],
        set_={
            "skill_name": stmt.excluded.skill_name,
            "resources": stmt.excluded.resources,
            "updated_at": func.now(),
        },
    )
    await session.execute(stmt)
    await session.commit()
    logger.info(
        "gap_resources_regenerated",
        extra={"gap_snapshot_id": str(snapshot_id), "skill_id": str(skill_id), "count": len(entries)},
    )
    return entries


async def regenerate_resources(
    session: AsyncSession,
    advisor: AdvisoryService,
    snapshot_id: UUID,
    skill_id: UUID,
    user_id: str,
) -> GapResourcesOut:
    snapshot = await get_owned_snapshot(session, snapshot_id, user_id)
    entries = await regenerate(session, advisor, snapshot, skill_id)
    return GapResourcesOut(gap_snapshot_id=snapshot_id, skill_id=skill_id, resources=entries, cached=False)


async def load_gap_resources(
    session: AsyncSession,
    advisor: AdvisoryService,
    snapshot_id: UUID,
    skill_id: UUID,
    user_id: str,
) -> GapResourcesOut:
    snapshot = await get_owned_snapshot(session, snapshot_id, user_id)
    cached = await read(session, snapshot_id, skill_id)
    if cached:
        return GapResourcesOut(gap_snapshot_id=snapshot_id, skill_id=skill_id, resources=cached, cached=True)
    entries = await regenerate(session, advisor, snapshot, skill_id)
    return GapResourcesOut(gap_snapshot_id=snapshot_id, skill_id=skill_id, resources=entries, cached=False)


async def enrich_snapshot_resources(
    session: AsyncSession,
    advisor: AdvisoryService,
    snapshot_id: UUID,
    user_id: str,
) -> dict[str, list[ResourceEntry]]:
    snapshot = await get_owned_snapshot(session, snapshot_id, user_id)
    # Copied out before the loop; a rollback below expires the ORM row.
    gaps = [g for g in (GapItem.model_validate(raw) for raw in snapshot.gaps or []) if g.gap_size > 0]
    enriched: dict[str, list[ResourceEntry]] = {}
    for gap in gaps:
        skill_id = gap.skill_id
        try:
            cached = await read(session, snapshot_id, skill_id)
            if not cached:
                cached = await _regenerate_for_gap(session, advisor, snapshot_id, gap)
        except SQLAlchemyError as exc:
            await session.rollback()
            logger.warning(
                "gap_resources_enrich_failed",
                extra={
                    "gap_snapshot_id": str(snapshot_id),
                    "skill_id": str(skill_id),
                    "error": sanitize_for_log(exc),
                },
            )
            continue
        enriched[str(skill_id)] = cached
    return enriched
