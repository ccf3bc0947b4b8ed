from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from skillpath.core.config import settings
from skillpath.models.assessment import AssessmentStatus, CareerIntent


class SkillAnswerIn(BaseModel):
    skill_id: UUID
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


class SelfEvaluationItem(BaseModel):
    skill_id: UUID
    level: int = Field(ge=0, le=5)
    should_test: bool | None = None


class SelfEvaluationsIn(BaseModel):
    evaluations: list[SelfEvaluationItem] = Field(min_length=1)


class AssessmentResultOut(BaseModel):
    id: UUID
    assessment_id: UUID
    skill_id: UUID
    level: int
    confidence: float | None = None
    notes: str | None = None

    class Config:
        from_attributes = True


class SelfEvaluationsOut(BaseModel):
    saved: int


class AssessmentCreate(BaseModel):
    current_role: str | None = Field(default=None, max_length=255)
    target_role: str = Field(min_length=1, max_length=255)
    years_experience: Literal["0-2", "3-5", "6-10", "10+"] | None = None
    career_intent: CareerIntent | None = None
    industry: str | None = Field(default=None, max_length=255)

    @field_validator("target_role")
    @classmethod
    def _target_non_empty(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("must be non-empty")
        return v.strip()


class AssessmentOut(BaseModel):
    id: UUID
    user_id: str
    current_role: str | None = None
    target_role: str | None = None
    years_experience: str | None = None
    career_intent: str | None = None
    industry: str | None = None
    status: AssessmentStatus
    completed_at: datetime | None = None

    class Config:
        from_attributes = True
