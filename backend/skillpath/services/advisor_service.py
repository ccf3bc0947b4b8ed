from __future__ import annotations

import asyncio
import logging
import math
import time
from typing import Any, TypeVar

import httpx
from pydantic import BaseModel

from skillpath.core.config import settings
from skillpath.schemas.gap_analysis import GapImpact, GapItem
from skillpath.services.advisor_ai import (
    AdvisorCallError,
    GapExplanation,
    LlmProvider,
    PlannedMilestone,
    PlannedResource,
    ResourceRecommendation,
    ResourceRecommendationList,
    RoadmapPlan,
    SkillEvaluation,
    VerificationQuestion,
    VerificationScore,
    _exception_summary,
    _format_exception,
    _parse_json,
)
from skillpath.services.log_sanitize import sanitize_for_log

logger = logging.getLogger("skillpath.advisor_service")

ModelT = TypeVar("ModelT", bound=BaseModel)

_SYSTEM_PROMPT = "You are a strict JSON generator. Output ONLY valid JSON."


class OpenAICompatibleProvider:
    name = "openai_compatible"

    def __init__(self, api_key: str, base_url: str, model: str, timeout_seconds: float | None = None):
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.timeout_seconds = timeout_seconds or settings.llm_timeout_seconds
        self.last_usage: dict | None = None

    async def generate(self, prompt: str, *, temperature: float | None = None) -> str:
        if not self.api_key:
            raise ValueError("LLM_API_KEY is required for llm provider")
        url = f"{self.base_url}/v1/chat/completions"
        headers = {"Authorization": f"Bearer {self.api_key}"}
        payload = {
            "model": self.model,
            "temperature": 0.3 if temperature is None else float(temperature),
            "response_format": {"type": "json_object"},
            "messages": [
                {"role": "system", "content": _SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ],
        }
        async with httpx.AsyncClient(timeout=httpx.Timeout(self.timeout_seconds)) as client:
            try:
                resp = await client.post(url, headers=headers, json=payload)
                resp.raise_for_status()
            except httpx.HTTPStatusError as exc:
                status = exc.response.status_code
                if status == 429:
                    raise ValueError("rate_limited") from exc
                raise ValueError(f"llm_http_{status}: {sanitize_for_log(exc.response.text, max_len=200)}") from exc
            except httpx.RequestError as exc:
                raise ValueError(_format_exception("llm_network_error", exc)) from exc
            data = resp.json()
        self.last_usage = data.get("usage") if isinstance(data, dict) else None
        choices = data.get("choices") if isinstance(data, dict) else None
        if not choices:
            raise ValueError("LLM response missing choices")
        message = choices[0].get("message") if isinstance(choices[0], dict) else None
        content = message.get("content") if isinstance(message, dict) else None
        if not content:
            raise ValueError("LLM response missing content")
        return content


class LocalLLMProvider:
    name = "local_llm"

    def __init__(self, base_url: str, model: str, timeout_seconds: float | None = None):
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.timeout_seconds = timeout_seconds or settings.local_llm_timeout_seconds
        self.last_usage: dict | None = None

    async def generate(self, prompt: str, *, temperature: float | None = None) -> str:
        url = f"{self.base_url}/api/chat"
        payload = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": _SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ],
            "options": {"temperature": 0.3 if temperature is None else float(temperature)},
            "stream": False,
            "format": "json",
        }
        async with httpx.AsyncClient(timeout=httpx.Timeout(self.timeout_seconds)) as client:
            try:
                resp = await client.post(url, json=payload)
                resp.raise_for_status()
            except httpx.HTTPStatusError as exc:
                status = exc.response.status_code
                raise ValueError(
                    f"local_llm_http_{status}: {sanitize_for_log(exc.response.text, max_len=200)}"
                ) from exc
            except httpx.RequestError as exc:
                raise ValueError(_format_exception("local_llm_network_error", exc)) from exc
            data = resp.json()
        message = data.get("message") if isinstance(data, dict) else None
        content = message.get("content") if isinstance(message, dict) else None
        if not content:
            raise ValueError("Local LLM response missing content")
        self.last_usage = {
            "input_chars": len(prompt),
            "output_chars": len(content),
            "total_tokens": max((len(prompt) + len(content)) // 4, 0),
        }
        return content


def get_providers() -> list[LlmProvider]:
    """Provider chain in call order; an empty chain means fallbacks only."""
    choice = settings.llm_provider.lower()
    local: list[LlmProvider] = []
    if settings.local_llm_base_url:
        local.append(LocalLLMProvider(base_url=settings.local_llm_base_url, model=settings.local_llm_model))
    if choice in {"openai", "compatible", "openai_compatible"}:
        primary = OpenAICompatibleProvider(
            api_key=settings.llm_api_key,
            base_url=settings.llm_base_url,
            model=settings.llm_model,
        )
        return [primary, *local]
    if choice in {"local", "local_llm", "ollama"}:
        return local
    return []


def _truncate_prompt(prompt: str) -> str:
    if len(prompt) > settings.max_prompt_chars:
        logger.warning("prompt_truncated", extra={"len": len(prompt), "max": settings.max_prompt_chars})
        return prompt[: settings.max_prompt_chars]
    return prompt


# Prompt builders


def build_evaluation_prompt(skill_name: str, category: str, question: str, answer: str) -> str:
    prompt = (
        "You are assessing a professional's proficiency in one skill from a written answer.\n\n"
        "Return ONLY valid JSON with this exact schema:\n"
        '{"level": 0, "confidence": 0.0, "notes": "string", "strengths": ["string"], "weaknesses": ["string"]}\n\n'
        "Rules:\n"
        "- level is an integer from 0 (no knowledge) to 5 (expert).\n"
        "- confidence is a number from 0 to 1.\n"
        "- notes explain the reasoning in 2-3 sentences.\n\n"
        f"SKILL: {skill_name}\nCATEGORY: {category}\n\n"
        f"QUESTION:\n{question}\n\nANSWER:\n{answer}\n"
    )
    return _truncate_prompt(prompt)


def build_gap_explanation_prompt(gap: GapItem, target_role: str, context: str | None = None) -> str:
    prompt = (
        "You are a career coach explaining one skill gap.\n\n"
        "Return ONLY valid JSON with this exact schema:\n"
        '{"explanation": "string", "recommended_actions": ["string"]}\n\n'
        "Rules:\n"
        "- The gap size below is fixed. Do not restate a different level.\n"
        "- explanation: why this gap matters for the target role, 1-2 sentences.\n"
        "- recommended_actions: 2-4 concrete actions.\n\n"
        f"TARGET_ROLE: {target_role}\n"
        f"SKILL: {gap.skill_name}\n"
        f"CURRENT_LEVEL: {gap.current_level}/5\n"
        f"TARGET_LEVEL: {gap.target_level}/5\n"
        f"IMPACT: {gap.impact.value}\n"
    )
    if context:
        prompt += f"CONTEXT:\n{context}\n"
    return _truncate_prompt(prompt)


def _progress_description(current_level: int, target: int) -> str:
    delta = target - current_level
    if delta <= 0:
        return "Skill already at target level"
    if delta == 1:
        return "Minor improvement needed"
    if delta == 2:
        return "Moderate learning required"
    return "Significant learning effort needed"


def build_resource_prompt(
    skill_name: str, category: str, current_level: int, target: int, limit: int, context: str | None = None
) -> str:
    prompt = (
        "You are a learning path advisor.\n\n"
        f"Recommend up to {limit} learning resources for the skill below.\n"
        "Return ONLY valid JSON with this exact schema:\n"
        '{"recommendations": [{"title": "string", "provider": "string", "url": "string", '
        '"type": "COURSE|VIDEO|ARTICLE|BOOK|TUTORIAL|PRACTICE", "cost": "FREE|FREEMIUM|PAID", '
        '"estimated_minutes": 0}]}\n\n'
        "Rules:\n"
        "- Prefer free or low-cost options and mix formats.\n"
        "- Use real, stable URLs.\n\n"
        f"SKILL: {skill_name}\nCATEGORY: {category}\n"
        f"CURRENT_LEVEL: {current_level}/5\nTARGET_LEVEL: {target}/5\n"
        f"PROGRESS_REQUIRED: {_progress_description(current_level, target)}\n"
    )
    if context:
        prompt += f"CONTEXT: {context}\n"
    return _truncate_prompt(prompt)


def build_roadmap_prompt(
    target_role: str,
    gaps: list[GapItem],
    suggested_weeks: int,
    *,
    current_role: str | None = None,
    years_experience: str | None = None,
    career_intent: str | None = None,
    industry: str | None = None,
) -> str:
    gap_lines = [
        f"{i + 1}. {g.skill_name} (skill_id: {g.skill_id}) current {g.current_level}/5, "
        f"target {g.target_level}/5, gap {g.gap_size}, impact {g.impact.value}"
        for i, g in enumerate(gaps)
    ]
    context = [
        f"Current role: {current_role}" if current_role else "",
        f"Experience: {years_experience} years" if years_experience else "",
        f"Industry: {industry}" if industry else "",
        f"Career intent: {career_intent}" if career_intent else "",
    ]
    prompt = (
        "You are a senior career coach creating a week-by-week learning roadmap.\n\n"
        "Return ONLY valid JSON with this exact schema:\n"
        '{"title": "string", "total_weeks": 0, "reasoning": "string", "milestones": '
        '[{"skill_id": "uuid", "week_number": 1, "title": "string", "description": "string", '
        '"resources": [{"type": "ARTICLE|VIDEO|COURSE|PROJECT|BOOK", "title": "string", "url": "string", '
        '"estimated_hours": 0}]}]}\n\n'
        "Rules:\n"
        f"- Plan {suggested_weeks} weeks with one milestone per skill gap.\n"
        "- skill_id MUST be copied exactly from the list below.\n"
        "- Schedule CRITICAL gaps in weeks 1-2 and HIGH gaps in weeks 2-4.\n"
        "- 2-4 resources per milestone, including one hands-on project.\n\n"
        f"TARGET_ROLE: {target_role}\n"
        + "\n".join(c for c in context if c)
        + "\n\nSKILL_GAPS (highest priority first):\n"
        + "\n".join(gap_lines)
    )
    return _truncate_prompt(prompt)


def build_question_prompt(
    skill_name: str, category: str, target: int, milestone_title: str, milestone_description: str | None
) -> str:
    if target >= 4:
        depth = "advanced (architectural decisions, trade-offs, edge cases)"
    elif target >= 3:
        depth = "intermediate (practical implementation, common patterns)"
    else:
        depth = "basic (fundamental concepts, simple applications)"
    prompt = (
        "You are an interviewer writing one skill verification question.\n\n"
        "Return ONLY valid JSON with this exact schema:\n"
        '{"question": "string", "expected_topics": ["string"], "difficulty": "BASIC|INTERMEDIATE|ADVANCED"}\n\n'
        f"Write ONE scenario-based question testing {depth} understanding, answerable in 2-4 sentences.\n"
        "List 3-5 expected topics.\n\n"
        f"SKILL: {skill_name}\nCATEGORY: {category}\nTARGET_LEVEL: {target}/5\n"
        f"MILESTONE: {milestone_title}\n"
    )
    if milestone_description:
        prompt += f"STUDIED:\n{milestone_description}\n"
    return _truncate_prompt(prompt)


def build_scoring_prompt(
    skill_name: str,
    category: str,
    current_level: int,
    target: int,
    milestone_title: str,
    question: str,
    answer: str,
) -> str:
    prompt = (
        "You are evaluating a learner's skill demonstration.\n\n"
        "Return ONLY valid JSON with this exact schema:\n"
        '{"passed": true, "score": 0.0, "new_level": 1, "feedback": "string", "follow_up_question": "string"}\n\n'
        "Rules:\n"
        "- score is 0.0 (no understanding) to 1.0 (mastery); pass when score >= 0.6.\n"
        "- new_level is the updated level from 1 to 5.\n"
        "- follow_up_question is empty unless the answer was too vague to evaluate.\n\n"
        f"SKILL: {skill_name}\nCATEGORY: {category}\n"
        f"CURRENT_LEVEL: {current_level}/5\nTARGET_LEVEL: {target}/5\n"
        f"MILESTONE: {milestone_title}\n\n"
        f"QUESTION:\n{question}\n\nANSWER:\n{answer}\n"
    )
    return _truncate_prompt(prompt)


# Deterministic fallbacks


def fallback_skill_evaluation() -> SkillEvaluation:
    return SkillEvaluation(
        level=2,
        confidence=0.3,
        notes="AI evaluation failed. Manual review required.",
        strengths=[],
        weaknesses=["Unable to perform automated evaluation"],
    )


def fallback_resources() -> list[ResourceRecommendation]:
    return [
        ResourceRecommendation(
            title="Official Documentation",
            provider="Official",
            url="",
            type="ARTICLE",
            cost="FREE",
            estimated_minutes=120,
        )
    ]


def calculate_total_weeks(gaps: list[GapItem]) -> int:
    total = 0.0
    for gap in gaps:
        contribution = 1.0
        if gap.impact == GapImpact.CRITICAL:
            contribution += 0.5
        elif gap.impact == GapImpact.HIGH:
            contribution += 0.25
        contribution *= max(1.0, gap.gap_size * 0.5)
        total += contribution
    return max(settings.roadmap_min_weeks, min(settings.roadmap_max_weeks, math.ceil(total)))


def fallback_roadmap_plan(target_role: str, gaps: list[GapItem]) -> RoadmapPlan:
    total_weeks = calculate_total_weeks(gaps)
    ordered = sorted(gaps, key=lambda g: g.priority, reverse=True)
    milestones = []
    for index, gap in enumerate(ordered):
        week = min(total_weeks, math.floor(index / len(ordered) * total_weeks) + 1)
        milestones.append(
            PlannedMilestone(
                skill_id=str(gap.skill_id),
                week_number=week,
                title=f"Improve {gap.skill_name}",
                description=(
                    f"Focus on closing the gap in {gap.skill_name} "
                    f"from level {gap.current_level} to {gap.target_level}."
                ),
                resources=[
                    PlannedResource(type="ARTICLE", title=f"{gap.skill_name} Best Practices", estimated_hours=2),
                    PlannedResource(type="PROJECT", title=f"Practice {gap.skill_name}", estimated_hours=4),
                ],
            )
        )
    return RoadmapPlan(
        title=f"Your {total_weeks}-Week Path to {target_role}",
        total_weeks=total_weeks,
        milestones=milestones,
        reasoning="Default schedule. Prioritize CRITICAL and HIGH impact skills first.",
    )


def fallback_verification_question(skill_name: str, milestone_title: str, target: int) -> VerificationQuestion:
    return VerificationQuestion(
        question=(
            f"Explain how you would apply {skill_name} in a real-world scenario related to {milestone_title}."
        ),
        expected_topics=[skill_name, "practical application", "best practices"],
        difficulty="ADVANCED" if target >= 4 else "INTERMEDIATE",
    )


def fallback_verification_score(skill_name: str, answer: str, current_level: int) -> VerificationScore:
    substantial = len(answer) > 100
    if substantial:
        return VerificationScore(
            passed=True,
            score=0.6,
            new_level=min(5, current_level + 1),
            feedback="Good effort! Your answer shows understanding of the core concepts.",
            follow_up_question="",
        )
    return VerificationScore(
        passed=False,
        score=0.3,
        new_level=max(1, current_level),
        feedback="Try to provide more detail in your answer to demonstrate your understanding.",
        follow_up_question=f"Can you give a specific example of how you've used {skill_name} in practice?",
    )


class AdvisoryService:
    """Qualitative judgments with a deterministic fallback for every capability."""

    def __init__(self, providers: list[LlmProvider] | None = None) -> None:
        self.providers: list[LlmProvider] = list(providers) if providers is not None else get_providers()

    async def _complete(self, capability: str, prompt: str, model_cls: type[ModelT]) -> ModelT:
        if not self.providers:
            raise AdvisorCallError("no_provider_configured", attempts=0)
        started = time.perf_counter()
        errors: list[str] = []
        for provider in self.providers:
            timeout = float(getattr(provider, "timeout_seconds", settings.llm_timeout_seconds))
            try:
                raw = await asyncio.wait_for(provider.generate(prompt), timeout=timeout)
                result = model_cls.model_validate(_parse_json(raw))
            except asyncio.TimeoutError:
                errors.append(f"{provider.name}: timeout after {timeout}s")
            except Exception as exc:  # noqa: BLE001
                errors.append(f"{provider.name}: {_exception_summary(exc)}")
            else:
                logger.info(
                    "advisor_call_succeeded",
                    extra={
                        "capability": capability,
                        "provider": provider.name,
                        "model": getattr(provider, "model", None),
                        "usage": getattr(provider, "last_usage", None),
                        "duration_ms": int((time.perf_counter() - started) * 1000),
                    },
                )
                return result
            logger.warning(
                "advisor_provider_failed",
                extra={"capability": capability, "provider": provider.name, "error": sanitize_for_log(errors[-1])},
            )
        raise AdvisorCallError(
            " | ".join(errors),
            duration_ms=int((time.perf_counter() - started) * 1000),
            attempts=len(errors),
        )

    def _log_fallback(self, capability: str, exc: AdvisorCallError, **extra: Any) -> None:
        logger.warning(
            "advisor_fallback",
            extra={
                "capability": capability,
                "attempts": exc.attempts,
                "duration_ms": exc.duration_ms,
                "error": sanitize_for_log(exc),
                **extra,
            },
        )

    async def evaluate_skill(self, *, skill_name: str, category: str, question: str, answer: str) -> SkillEvaluation:
        prompt = build_evaluation_prompt(skill_name, category, question, answer)
        try:
            return await self._complete("evaluate_skill", prompt, SkillEvaluation)
        except AdvisorCallError as exc:
            self._log_fallback("evaluate_skill", exc, skill=skill_name)
            return fallback_skill_evaluation()

    async def explain_gap(self, gap: GapItem, *, target_role: str, context: str | None = None) -> GapExplanation:
        prompt = build_gap_explanation_prompt(gap, target_role, context)
        try:
            return await self._complete("explain_gap", prompt, GapExplanation)
        except AdvisorCallError as exc:
            self._log_fallback("explain_gap", exc, skill=gap.skill_name)
            return GapExplanation(explanation=gap.explanation, recommended_actions=gap.recommended_actions)

    async def recommend_resources(
        self,
        *,
        skill_name: str,
        category: str,
        current_level: int,
        target_level: int,
        context: str | None = None,
    ) -> list[ResourceRecommendation]:
        limit = max(1, settings.resource_recommendation_limit)
        prompt = build_resource_prompt(skill_name, category, current_level, target_level, limit, context)
        try:
            result = await self._complete("recommend_resources", prompt, ResourceRecommendationList)
        except AdvisorCallError as exc:
            self._log_fallback("recommend_resources", exc, skill=skill_name)
            return fallback_resources()
        return result.recommendations[:limit]

    async def plan_roadmap(
        self,
        *,
        target_role: str,
        gaps: list[GapItem],
        current_role: str | None = None,
        years_experience: str | None = None,
        career_intent: str | None = None,
        industry: str | None = None,
    ) -> RoadmapPlan:
        suggested_weeks = calculate_total_weeks(gaps)
        ordered = sorted(gaps, key=lambda g: g.priority, reverse=True)
        prompt = build_roadmap_prompt(
            target_role,
            ordered,
            suggested_weeks,
            current_role=current_role,
            years_experience=years_experience,
            career_intent=career_intent,
            industry=industry,
        )
        try:
            plan = await self._complete("plan_roadmap", prompt, RoadmapPlan)
        except AdvisorCallError as exc:
            self._log_fallback("plan_roadmap", exc, gaps=len(gaps))
            return fallback_roadmap_plan(target_role, gaps)

        valid_ids = {str(g.skill_id).lower() for g in gaps}
        kept = [m for m in plan.milestones if m.skill_id.strip().lower() in valid_ids]
        if not kept:
            logger.warning(
                "advisor_plan_without_valid_milestones",
                extra={"proposed": len(plan.milestones), "gaps": len(gaps)},
            )
            return fallback_roadmap_plan(target_role, gaps)
        total_weeks = max(settings.roadmap_min_weeks, min(settings.roadmap_max_weeks, plan.total_weeks))
        for milestone in kept:
            milestone.week_number = min(milestone.week_number, total_weeks)
        return RoadmapPlan(title=plan.title, total_weeks=total_weeks, milestones=kept, reasoning=plan.reasoning)

    async def generate_verification_question(
        self,
        *,
        skill_name: str,
        category: str,
        target_level: int,
        milestone_title: str,
        milestone_description: str | None = None,
    ) -> VerificationQuestion:
        prompt = build_question_prompt(skill_name, category, target_level, milestone_title, milestone_description)
        try:
            return await self._complete("generate_verification_question", prompt, VerificationQuestion)
        except AdvisorCallError as exc:
            self._log_fallback("generate_verification_question", exc, skill=skill_name)
            return fallback_verification_question(skill_name, milestone_title, target_level)

    async def score_verification_answer(
        self,
        *,
        skill_name: str,
        category: str,
        current_level: int,
        target_level: int,
        milestone_title: str,
        question: str,
        answer: str,
    ) -> VerificationScore:
        prompt = build_scoring_prompt(
            skill_name, category, current_level, target_level, milestone_title, question, answer
        )
        try:
            return await self._complete("score_verification_answer", prompt, VerificationScore)
        except AdvisorCallError as exc:
            self._log_fallback("score_verification_answer", exc, skill=skill_name)
            return fallback_verification_score(skill_name, answer, current_level)
