"""Deterministic gap sizing and readiness scoring.

Everything here is pure: the same profile and observations always yield the
same targets, impacts, priorities and readiness score. Persistence and the
advisory service live elsewhere and may only decorate the text fields.
"""
from __future__ import annotations

import math
from typing import Iterable

from skillpath.models.assessment import CareerIntent, SkillCategory
from skillpath.schemas.gap_analysis import (
    CareerProfile,
    GapAnalysisResult,
    GapImpact,
    GapItem,
    SkillObservation,
)

DEFAULT_DIFFICULTY = 3
MIN_TARGET_LEVEL = 1
MAX_TARGET_LEVEL = 5

_PEOPLE_CATEGORIES = {SkillCategory.SOFT, SkillCategory.META}


def round_half_up(value: float) -> int:
    # Half-up; builtin round() rounds .5 to even.
    return int(math.floor(value + 0.5))


def _clamp(low: int, high: int, value: int) -> int:
    return max(low, min(high, value))


def experience_adjustment(years_experience: str | None) -> int:
    if years_experience == "0-2":
        return -1
    if years_experience == "10+":
        return 1
    return 0


def is_leadership_role(profile: CareerProfile) -> bool:
    if profile.career_intent == CareerIntent.LEADERSHIP.value:
        return True
    role = (profile.target_role or "").lower()
    return "lead" in role or "manager" in role


def category_weight(category: SkillCategory, profile: CareerProfile) -> float:
    if category in _PEOPLE_CATEGORIES:
        if profile.career_intent == CareerIntent.LEADERSHIP.value:
            return 1.4
        if is_leadership_role(profile):
            return 1.2
        return 1.0
    if profile.career_intent == CareerIntent.SWITCH.value:
        return 1.3
    return 1.0


def target_level(skill: SkillObservation, profile: CareerProfile) -> int:
    difficulty = skill.difficulty if skill.difficulty is not None else DEFAULT_DIFFICULTY
    bonus = 1 if is_leadership_role(profile) and skill.category in _PEOPLE_CATEGORIES else 0
    raw = difficulty + experience_adjustment(profile.years_experience) + bonus
    return _clamp(MIN_TARGET_LEVEL, MAX_TARGET_LEVEL, round_half_up(raw))


def classify_impact(gap_size: int, target: int) -> GapImpact:
    ratio = 0.0 if target == 0 else gap_size / target
    if ratio >= 0.6:
        return GapImpact.CRITICAL
    if ratio >= 0.35:
        return GapImpact.HIGH
    if ratio > 0:
        return GapImpact.MEDIUM
    return GapImpact.NONE


def _intent_context(career_intent: str | None) -> str:
    if career_intent == CareerIntent.LEADERSHIP.value:
        return "leadership transition"
    if career_intent == CareerIntent.SWITCH.value:
        return "role transition"
    return "career growth"


def build_explanation(skill_name: str, gap_size: int, profile: CareerProfile) -> str:
    verb = "essential for" if gap_size > 0 else "at target for"
    target_role = profile.target_role or "your target role"
    industry = f" in {profile.industry}" if profile.industry else ""
    current_role = profile.current_role or "your current role"
    return f"{skill_name} is {verb} {target_role}{industry} (transitioning from {current_role})"


def build_actions(skill_name: str, weight: float, profile: CareerProfile) -> list[str]:
    if weight > 1.2:
        second = f"High priority for your {_intent_context(profile.career_intent)} path"
    elif weight > 1:
        second = "Practice with role-play or stakeholder scenarios"
    else:
        second = "Complete a practical exercise or code review"
    return [f"Focus on improving {skill_name}", second]


def analyze_skill(skill: SkillObservation, profile: CareerProfile) -> GapItem:
    weight = category_weight(skill.category, profile)
    target = target_level(skill, profile)
    gap_size = max(0, target - skill.current_level)
    return GapItem(
        skill_id=skill.skill_id,
        skill_name=skill.name,
        category=skill.category,
        current_level=skill.current_level,
        target_level=target,
        gap_size=gap_size,
        impact=classify_impact(gap_size, target),
        explanation=build_explanation(skill.name, gap_size, profile),
        recommended_actions=build_actions(skill.name, weight, profile),
        estimated_time_weeks=max(1, math.ceil(gap_size * weight)),
        priority=round_half_up(gap_size * weight * 10),
    )


def readiness_score(skills: Iterable[SkillObservation], profile: CareerProfile) -> int:
    weighted_target = 0.0
    weighted_current = 0.0
    for skill in skills:
        weight = category_weight(skill.category, profile)
        target = target_level(skill, profile)
        weighted_target += target * weight
        # Capped so over-performance cannot lift the score past 100.
        weighted_current += min(target, skill.current_level) * weight
    if weighted_target == 0:
        return 0
    return round_half_up(100 * weighted_current / weighted_target)


def analyze_gaps(profile: CareerProfile, skills: list[SkillObservation]) -> GapAnalysisResult:
    items = [analyze_skill(skill, profile) for skill in skills]
    strengths = [item.skill_name for item in items if item.gap_size == 0]
    # sorted() is stable, so equal priorities keep input order.
    ranked = sorted(items, key=lambda item: item.priority, reverse=True)
    return GapAnalysisResult(
        readiness_score=readiness_score(skills, profile),
        gaps=ranked,
        strengths=strengths,
    )


def overall_recommendation(score: int, target_role: str | None) -> str:
    role = target_role or "your target role"
    return (
        f"You are {score}% ready for {role}. "
        "Focus on the top priorities to accelerate your transition."
    )
