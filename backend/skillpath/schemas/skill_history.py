from datetime import datetime
from uuid import UUID

from pydantic import BaseModel

from skillpath.models.assessment import SkillCategory
from skillpath.models.roadmap import VerificationMethod


class SkillHistoryOut(BaseModel):
    skill_id: UUID
    skill_name: str | None = None
    category: SkillCategory | None = None
    level: int
    confidence: float
    source: VerificationMethod
    assessment_id: UUID | None = None
    created_at: datetime | None = None


class PrefillLevelOut(BaseModel):
    skill_id: UUID
    level: int
    confidence: float
