import enum
from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from skillpath.models.assessment import SkillCategory


class GapImpact(str, enum.Enum):
    NONE = "NONE"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


class CareerProfile(BaseModel):
    current_role: str | None = None
    target_role: str | None = None
    years_experience: str | None = None
    career_intent: str | None = None
    industry: str | None = None

    @field_validator("career_intent", "years_experience", mode="before")
    @classmethod
    def _strip_or_none(cls, v: str | None) -> str | None:
        if v is None:
            return None
        if not isinstance(v, str):
            raise ValueError("must be a string")
        cleaned = v.strip()
        return cleaned or None


class SkillObservation(BaseModel):
    skill_id: UUID
    name: str = Field(min_length=1)
    category: SkillCategory
    difficulty: int | None = Field(default=None, ge=1, le=5)
    current_level: int = Field(ge=0, le=5)


class ResourceEntry(BaseModel):
    id: str
    provider: str
    url: str
    title: str | None = None
    cost: str | None = None
    type: str | None = None
    estimated_time: int | None = None


class GapItem(BaseModel):
    skill_id: UUID
    skill_name: str
    category: SkillCategory | None = None
    current_level: int = Field(ge=0, le=5)
    target_level: int = Field(ge=1, le=5)
    gap_size: int = Field(ge=0)
    impact: GapImpact
    explanation: str
    recommended_actions: list[str] = Field(default_factory=list)
    estimated_time_weeks: int = Field(ge=1)
    priority: int
    resources: list[ResourceEntry] | None = None


class GapAnalysisResult(BaseModel):
    readiness_score: int = Field(ge=0, le=100)
    gaps: list[GapItem]
    strengths: list[str]


class GapSnapshotOut(BaseModel):
    id: UUID
    assessment_id: UUID
    target_role: str | None = None
    readiness_score: int
    gaps: list[GapItem]
    strengths: list[str]
    overall_recommendation: str | None = None
    updated_at: datetime | None = None


class GapResourcesOut(BaseModel):
    gap_snapshot_id: UUID
    skill_id: UUID
    resources: list[ResourceEntry]
    cached: bool = False
