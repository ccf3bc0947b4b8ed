from skillpath.models.assessment import Assessment, AssessmentResult, AssessmentStatus, CareerIntent, Skill, SkillCategory
from skillpath.models.gap import GapResourceCache, GapSnapshot
from skillpath.models.roadmap import MilestoneProgress, MilestoneStatus, Roadmap, RoadmapMilestone, VerificationMethod
from skillpath.models.skill_history import UserSkillHistory

__all__ = [
    "Assessment",
    "AssessmentResult",
    "AssessmentStatus",
    "CareerIntent",
    "GapResourceCache",
    "GapSnapshot",
    "MilestoneProgress",
    "MilestoneStatus",
    "Roadmap",
    "RoadmapMilestone",
    "Skill",
    "SkillCategory",
    "UserSkillHistory",
    "VerificationMethod",
]
