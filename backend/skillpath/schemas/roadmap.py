from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from skillpath.core.config import settings
from skillpath.models.roadmap import MilestoneStatus, VerificationMethod


class MilestoneProgressOut(BaseModel):
    id: UUID
    verification_method: VerificationMethod
    self_reported_at: datetime | None = None
    ai_verified_at: datetime | None = None
    ai_verification_score: float | None = None
    ai_verification_notes: str | None = None

    class Config:
        from_attributes = True


class MilestoneOut(BaseModel):
    id: UUID
    roadmap_id: UUID
    skill_id: UUID
    week_number: int
    title: str
    description: str | None = None
    resources: list[dict[str, Any]] = Field(default_factory=list)
    status: MilestoneStatus
    progress: list[MilestoneProgressOut] = Field(default_factory=list)

    class Config:
        from_attributes = True


class RoadmapOut(BaseModel):
    id: UUID
    assessment_id: UUID
    title: str
    total_weeks: int
    completed_at: datetime | None = None
    target_role: str | None = None
    current_role: str | None = None
    milestones: list[MilestoneOut] = Field(default_factory=list)


class RoadmapProgressOut(BaseModel):
    total: int
    completed: int


class RoadmapSummaryOut(BaseModel):
    id: UUID
    title: str
    total_weeks: int
    target_role: str | None = None
    completed_at: datetime | None = None
    progress: RoadmapProgressOut


class MilestoneCompletionOut(BaseModel):
    milestone_id: UUID
    progress_id: UUID
    status: MilestoneStatus
    roadmap_completed: bool


class VerificationQuestionOut(BaseModel):
    milestone_id: UUID
    skill_name: str
    question: str
    expected_topics: list[str]
    difficulty: str


class VerificationAnswerIn(BaseModel):
    question: str = Field(min_length=1, max_length=settings.max_answer_chars)
    answer: str = Field(min_length=1, max_length=settings.max_answer_chars)

    @field_validator("question", "answer", mode="before")
    @classmethod
    def _require_text(cls, v: str) -> str:
        if not isinstance(v, str):
            raise ValueError("must be a string")
        if not v.strip():
            raise ValueError("must be non-empty")
        return v.strip()


class VerificationResultOut(BaseModel):
    passed: bool
    score: float
    new_level: int
    feedback: str
    follow_up_question: str = ""
