import uuid
from datetime import datetime, timezone
from sqlalchemy import BigInteger, Integer, String, DateTime, Enum, ForeignKey, Float, Index
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func
from skillpath.db.base import Base
from skillpath.models.roadmap import VerificationMethod


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class UserSkillHistory(Base):
    """Insert-only ledger; the newest row per (user, skill) is the current level."""

    __tablename__ = "user_skill_history"

    id: Mapped[int] = mapped_column(
        BigInteger().with_variant(Integer, "sqlite"), primary_key=True, autoincrement=True
    )
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    skill_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("skills.id", ondelete="CASCADE"), nullable=False
    )
    level: Mapped[int] = mapped_column(Integer, nullable=False)
    confidence: Mapped[float] = mapped_column(Float, nullable=False)
    source: Mapped[VerificationMethod] = mapped_column(
        Enum(VerificationMethod, name="verification_method"), nullable=False
    )
    assessment_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("assessments.id", ondelete="SET NULL"), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, server_default=func.now(), nullable=False
    )

    skill = relationship("Skill")

    __table_args__ = (
        Index("ix_user_skill_history_user_skill_created", "user_id", "skill_id", "created_at"),
    )
