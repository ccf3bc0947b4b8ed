from __future__ import annotations

import json
from typing import Any, Literal, Protocol

from pydantic import AliasChoices, BaseModel, Field, field_validator


class LlmProvider(Protocol):
    name: str
    model: str
    last_usage: dict[str, Any] | None

    async def generate(self, prompt: str, *, temperature: float | None = None) -> str:
        ...


class AdvisorCallError(RuntimeError):
    def __init__(self, message: str, *, duration_ms: int = 0, attempts: int = 1) -> None:
        super().__init__(message)
        self.duration_ms = duration_ms
        self.attempts = attempts


def _non_empty_text(v: str) -> str:
    if not isinstance(v, str) or not v.strip():
        raise ValueError("must be non-empty")
    return v.strip()


RESOURCE_TYPES = ("COURSE", "VIDEO", "ARTICLE", "BOOK", "TUTORIAL", "PRACTICE")

_RESOURCE_TYPE_ALIASES = {
    "GUIDE": "ARTICLE",
    "DOCUMENTATION": "ARTICLE",
    "DOCS": "ARTICLE",
    "BLOG": "ARTICLE",
    "POST": "ARTICLE",
    "VIDEOSERIES": "VIDEO",
    "VIDEOCOURSE": "VIDEO",
    "YOUTUBE": "VIDEO",
    "WORKSHOP": "COURSE",
    "BOOTCAMP": "COURSE",
    "ONLINECOURSE": "COURSE",
    "EXERCISE": "PRACTICE",
    "PROJECT": "PRACTICE",
    "CHALLENGE": "PRACTICE",
    "LAB": "PRACTICE",
    "EBOOK": "BOOK",
    "HANDBOOK": "BOOK",
    "MANUAL": "BOOK",
    "HOWTO": "TUTORIAL",
    "WALKTHROUGH": "TUTORIAL",
}


def normalize_resource_type(value: Any) -> str:
    upper = str(value or "").upper().replace("_", "").replace("-", "").replace(" ", "")
    if upper in RESOURCE_TYPES:
        return upper
    return _RESOURCE_TYPE_ALIASES.get(upper, "ARTICLE")


def normalize_cost(value: Any) -> str:
    upper = str(value or "").upper()
    if "FREEMIUM" in upper:
        return "FREEMIUM"
    if "FREE" in upper:
        return "FREE"
    return "PAID"


class SkillEvaluation(BaseModel):
    level: int = Field(ge=0, le=5)
    confidence: float = Field(ge=0, le=1)
    notes: str
    strengths: list[str] = Field(default_factory=list)
    weaknesses: list[str] = Field(default_factory=list)

    @field_validator("notes")
    @classmethod
    def _notes_non_empty(cls, v: str) -> str:
        return _non_empty_text(v)


class GapExplanation(BaseModel):
    explanation: str
    recommended_actions: list[str] = Field(
        min_length=1, validation_alias=AliasChoices("recommended_actions", "recommendedActions")
    )

    @field_validator("explanation")
    @classmethod
    def _explanation_non_empty(cls, v: str) -> str:
        return _non_empty_text(v)

    @field_validator("recommended_actions")
    @classmethod
    def _actions_non_empty(cls, v: list[str]) -> list[str]:
        cleaned = [a.strip() for a in v if isinstance(a, str) and a.strip()]
        if not cleaned:
            raise ValueError("recommended_actions must contain non-empty strings")
        return cleaned


class ResourceRecommendation(BaseModel):
    title: str
    provider: str
    url: str = ""
    type: str = "ARTICLE"
    cost: str = "PAID"
    estimated_minutes: int = Field(
        default=0, ge=0, validation_alias=AliasChoices("estimated_minutes", "estimatedTimeMinutes", "estimatedMinutes")
    )

    @field_validator("title", "provider")
    @classmethod
    def _text_non_empty(cls, v: str) -> str:
        return _non_empty_text(v)

    @field_validator("type", mode="before")
    @classmethod
    def _normalize_type(cls, v: Any) -> str:
        return normalize_resource_type(v)

    @field_validator("cost", mode="before")
    @classmethod
    def _normalize_cost(cls, v: Any) -> str:
        return normalize_cost(v)

    @field_validator("estimated_minutes", mode="before")
    @classmethod
    def _coerce_minutes(cls, v: Any) -> int:
        if v is None:
            return 0
        return int(round(float(v)))


class ResourceRecommendationList(BaseModel):
    recommendations: list[ResourceRecommendation] = Field(min_length=1)


class PlannedResource(BaseModel):
    type: str = "ARTICLE"
    title: str
    url: str = ""
    estimated_hours: float = Field(
        default=0, ge=0, validation_alias=AliasChoices("estimated_hours", "estimatedHours")
    )

    @field_validator("type", mode="before")
    @classmethod
    def _upper_type(cls, v: Any) -> str:
        return str(v or "ARTICLE").strip().upper()


class PlannedMilestone(BaseModel):
    skill_id: str = Field(validation_alias=AliasChoices("skill_id", "skillId"))
    week_number: int = Field(ge=1, validation_alias=AliasChoices("week_number", "weekNumber"))
    title: str
    description: str = ""
    resources: list[PlannedResource] = Field(default_factory=list)

    @field_validator("title")
    @classmethod
    def _title_non_empty(cls, v: str) -> str:
        return _non_empty_text(v)


class RoadmapPlan(BaseModel):
    title: str
    total_weeks: int = Field(ge=1, validation_alias=AliasChoices("total_weeks", "totalWeeks"))
    milestones: list[PlannedMilestone] = Field(default_factory=list)
    reasoning: str = ""

    @field_validator("title")
    @classmethod
    def _title_non_empty(cls, v: str) -> str:
        return _non_empty_text(v)


class VerificationQuestion(BaseModel):
    question: str
    expected_topics: list[str] = Field(
        default_factory=list, validation_alias=AliasChoices("expected_topics", "expectedTopics")
    )
    difficulty: Literal["BASIC", "INTERMEDIATE", "ADVANCED"] = "INTERMEDIATE"

    @field_validator("question")
    @classmethod
    def _question_non_empty(cls, v: str) -> str:
        return _non_empty_text(v)

    @field_validator("difficulty", mode="before")
    @classmethod
    def _upper_difficulty(cls, v: Any) -> str:
        return str(v or "INTERMEDIATE").strip().upper()


class VerificationScore(BaseModel):
    passed: bool
    score: float = Field(ge=0, le=1)
    new_level: int = Field(ge=1, le=5, validation_alias=AliasChoices("new_level", "newLevel"))
    feedback: str
    follow_up_question: str = Field(
        default="", validation_alias=AliasChoices("follow_up_question", "followUpQuestion")
    )

    @field_validator("score", mode="before")
    @classmethod
    def _percent_to_fraction(cls, v: Any) -> Any:
        # Some models answer on a 0-100 scale despite the prompt.
        if isinstance(v, (int, float)) and not isinstance(v, bool) and 1 < v <= 100:
            return v / 100
        return v

    @field_validator("feedback")
    @classmethod
    def _feedback_non_empty(cls, v: str) -> str:
        return _non_empty_text(v)

    @field_validator("follow_up_question", mode="before")
    @classmethod
    def _none_to_empty(cls, v: Any) -> str:
        return "" if v is None else str(v)


def _exception_messages(exc: BaseException) -> list[str]:
    """Distinct messages across an exception group, its members and its cause/context chain."""
    messages: list[str] = []
    visited: set[int] = set()
    pending: list[BaseException] = [exc]
    while pending:
        err = pending.pop()
        if id(err) in visited:
            continue
        visited.add(id(err))
        text = str(err).strip()
        if text and text not in messages:
            messages.append(text)
        # Popped in reverse push order: group members, then cause, then context.
        pending.extend(e for e in (err.__context__, err.__cause__) if e is not None)
        members = getattr(err, "exceptions", ())
        if isinstance(members, tuple):
            pending.extend(e for e in reversed(members) if isinstance(e, BaseException))
    return messages


def _exception_summary(exc: BaseException) -> str:
    return " | ".join(_exception_messages(exc)[:3]) or type(exc).__name__


def _format_exception(prefix: str, exc: BaseException) -> str:
    return f"{prefix}: {_exception_summary(exc)}"


_DECODER = json.JSONDecoder()


def _strip_code_fence(text: str) -> str:
    if not text.startswith("```"):
        return text
    body = text[3:]
    closing = body.rfind("```")
    if closing >= 0:
        body = body[:closing]
    if body[:4].lower() == "json":
        body = body[4:]
    return body.strip()


def _first_json_value(text: str) -> Any:
    try:
        return json.loads(text)
    except json.JSONDecodeError as exc:
        error = exc
    # Models often wrap the object in prose; decode from each "{" until one parses.
    start = text.find("{")
    while start >= 0:
        try:
            value, _end = _DECODER.raw_decode(text, start)
        except json.JSONDecodeError:
            start = text.find("{", start + 1)
            continue
        return value
    raise error


def _parse_json(raw: str) -> dict[str, Any]:
    if not isinstance(raw, str):
        raise ValueError("response must be a JSON string")
    text = _strip_code_fence(raw.strip())
    if not text:
        raise ValueError("empty response")
    data = _first_json_value(text)
    if isinstance(data, dict) and isinstance(data.get("raw"), str):
        return _parse_json(data["raw"])
    if not isinstance(data, dict):
        raise ValueError("response must be a JSON object")
    return data
