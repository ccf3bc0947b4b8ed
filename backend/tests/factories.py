import json
import uuid

from skillpath.models.assessment import Assessment, AssessmentResult, Skill, SkillCategory
from skillpath.schemas.gap_analysis import CareerProfile, SkillObservation

from .conftest import USER_ID


def make_skill(name: str, category: SkillCategory = SkillCategory.HARD, difficulty: int | None = 3, **kwargs) -> Skill:
    return Skill(id=uuid.uuid4(), name=name, category=category, difficulty=difficulty, **kwargs)


def make_assessment(**kwargs) -> Assessment:
    defaults = dict(
        id=uuid.uuid4(),
        user_id=USER_ID,
        current_role="Software Engineer",
        target_role="Staff Engineer",
        years_experience="3-5",
        career_intent="GROWTH",
        industry="Fintech",
    )
    defaults.update(kwargs)
    return Assessment(**defaults)


def make_result(assessment: Assessment, skill: Skill, level: int) -> AssessmentResult:
    return AssessmentResult(assessment_id=assessment.id, skill_id=skill.id, level=level, confidence=0.5)


def observation(name: str, category: SkillCategory, difficulty: int | None, current_level: int) -> SkillObservation:
    return SkillObservation(
        skill_id=uuid.uuid4(),
        name=name,
        category=category,
        difficulty=difficulty,
        current_level=current_level,
    )


def profile(**kwargs) -> CareerProfile:
    defaults = dict(current_role="Software Engineer", target_role="Staff Engineer", years_experience="3-5")
    defaults.update(kwargs)
    return CareerProfile(**defaults)


async def seed_assessment(session, levels: dict[str, tuple[SkillCategory, int | None, int]], **kwargs):
    """Insert an assessment plus one skill and result per entry of name -> (category, difficulty, level)."""
    assessment = make_assessment(**kwargs)
    session.add(assessment)
    skills = {}
    for name, (category, difficulty, level) in levels.items():
        skill = make_skill(name, category, difficulty)
        session.add(skill)
        skills[name] = skill
    await session.flush()
    for name, (_category, _difficulty, level) in levels.items():
        session.add(make_result(assessment, skills[name], level))
    await session.commit()
    return assessment, skills


class FakeProvider:
    """Returns canned responses in order; strings are returned as-is, anything else is JSON-encoded."""

    def __init__(self, *responses, name: str = "fake"):
        self.name = name
        self.model = f"{name}-1"
        self.last_usage = None
        self.timeout_seconds = 5
        self._responses = list(responses)
        self.prompts: list[str] = []

    async def generate(self, prompt: str, *, temperature: float | None = None) -> str:
        self.prompts.append(prompt)
        response = self._responses.pop(0) if len(self._responses) > 1 else self._responses[0]
        if isinstance(response, Exception):
            raise response
        return response if isinstance(response, str) else json.dumps(response)
