import uuid

import pytest

from skillpath.models.assessment import SkillCategory
from .conftest import OTHER_USER_ID
from .factories import make_skill

LONG_ANSWER = "Start with a design review, then instrument, load test, and iterate on the bottlenecks found. " * 2


async def _seed_skills(db_session):
    skills = {
        "Kubernetes": make_skill("Kubernetes", SkillCategory.HARD, 4),
        "Communication": make_skill("Communication", SkillCategory.SOFT, 3),
        "Python": make_skill("Python", SkillCategory.HARD, 3),
    }
    db_session.add_all(skills.values())
    await db_session.commit()
    return skills


async def _assessment_with_gaps(client, db_session):
    skills = await _seed_skills(db_session)
    res = await client.post(
        "/api/v1/assessments",
        json={"current_role": "Backend Engineer", "target_role": "Engineering Manager", "years_experience": "6-10"},
    )
    assert res.status_code == 201
    assessment_id = res.json()["id"]

    res = await client.put(
        f"/api/v1/assessments/{assessment_id}/self-evaluations",
        json={
            "evaluations": [
                {"skill_id": str(skills["Kubernetes"].id), "level": 2},
                {"skill_id": str(skills["Communication"].id), "level": 3},
                {"skill_id": str(skills["Python"].id), "level": 5},
            ]
        },
    )
    assert res.status_code == 200
    assert res.json() == {"saved": 3}

    res = await client.post(f"/api/v1/assessments/{assessment_id}/gaps")
    assert res.status_code == 200
    return assessment_id, skills, res.json()


@pytest.mark.asyncio
async def test_health(client):
    res = await client.get("/health")
    assert res.status_code == 200
    assert res.json()["status"] == "ok"
    assert res.headers.get("X-Request-ID")


@pytest.mark.asyncio
async def test_missing_user_header_is_unauthorized(client):
    res = await client.get("/api/v1/roadmaps", headers={"X-User-ID": ""})
    assert res.status_code == 401


@pytest.mark.asyncio
async def test_gap_flow(client, db_session):
    assessment_id, skills, body = await _assessment_with_gaps(client, db_session)

    assert 0 <= body["readiness_score"] <= 100
    assert body["strengths"] == ["Python"]
    names = [g["skill_name"] for g in body["gaps"]]
    assert names[0] == "Kubernetes"
    assert set(names) == {"Kubernetes", "Communication", "Python"}

    res = await client.get(f"/api/v1/assessments/{assessment_id}/gaps")
    assert res.status_code == 200
    assert res.json()["id"] == body["id"]

    res = await client.get(f"/api/v1/assessments/{assessment_id}/gaps", headers={"X-User-ID": OTHER_USER_ID})
    assert res.status_code == 404


@pytest.mark.asyncio
async def test_get_gaps_before_compute_is_not_found(client):
    res = await client.post("/api/v1/assessments", json={"current_role": "Analyst", "target_role": "Data Scientist"})
    res = await client.get(f"/api/v1/assessments/{res.json()['id']}/gaps")
    assert res.status_code == 404


@pytest.mark.asyncio
async def test_input_validation(client, db_session):
    skills = await _seed_skills(db_session)
    res = await client.post("/api/v1/assessments", json={"current_role": "A", "target_role": "B", "years_experience": "7"})
    assert res.status_code == 422

    res = await client.post("/api/v1/assessments", json={"current_role": "A", "target_role": "B"})
    assessment_id = res.json()["id"]
    res = await client.put(
        f"/api/v1/assessments/{assessment_id}/self-evaluations",
        json={"evaluations": [{"skill_id": str(skills["Python"].id), "level": 6}]},
    )
    assert res.status_code == 422

    res = await client.put(
        f"/api/v1/assessments/{assessment_id}/self-evaluations",
        json={"evaluations": [{"skill_id": str(uuid.uuid4()), "level": 3}]},
    )
    assert res.status_code == 404

    res = await client.get("/api/v1/roadmaps/not-a-uuid")
    assert res.status_code == 422


@pytest.mark.asyncio
async def test_answer_is_evaluated_with_fallback(client, db_session):
    skills = await _seed_skills(db_session)
    res = await client.post("/api/v1/assessments", json={"current_role": "A", "target_role": "B"})
    assessment_id = res.json()["id"]

    res = await client.post(
        f"/api/v1/assessments/{assessment_id}/answers",
        json={"skill_id": str(skills["Kubernetes"].id), "question": "Explain pods", "answer": "Smallest unit"},
    )
    assert res.status_code == 200
    body = res.json()
    assert body["level"] == 2
    assert body["confidence"] == 0.3


@pytest.mark.asyncio
async def test_resources_endpoints(client, db_session):
    _assessment_id, skills, body = await _assessment_with_gaps(client, db_session)
    snapshot_id = body["id"]
    skill_id = skills["Kubernetes"].id

    res = await client.get(f"/api/v1/gap-snapshots/{snapshot_id}/skills/{skill_id}/resources")
    assert res.status_code == 200
    assert res.json()["cached"] is False
    res = await client.get(f"/api/v1/gap-snapshots/{snapshot_id}/skills/{skill_id}/resources")
    assert res.json()["cached"] is True

    res = await client.post(f"/api/v1/gap-snapshots/{snapshot_id}/skills/{skill_id}/resources/regenerate")
    assert res.status_code == 200
    assert res.json()["resources"][0]["title"] == "Official Documentation"

    res = await client.post(f"/api/v1/gap-snapshots/{snapshot_id}/resources/enrich")
    assert res.status_code == 200
    assert set(res.json()) == {str(skills["Kubernetes"].id), str(skills["Communication"].id)}

    res = await client.post(f"/api/v1/gap-snapshots/{uuid.uuid4()}/resources/enrich")
    assert res.status_code == 404


@pytest.mark.asyncio
async def test_roadmap_and_milestone_flow(client, db_session):
    assessment_id, skills, _body = await _assessment_with_gaps(client, db_session)

    res = await client.post(f"/api/v1/assessments/{assessment_id}/roadmap")
    assert res.status_code == 200
    roadmap = res.json()
    assert roadmap["target_role"] == "Engineering Manager"
    assert len(roadmap["milestones"]) == 2

    again = await client.post(f"/api/v1/assessments/{assessment_id}/roadmap")
    assert again.json()["id"] == roadmap["id"]

    res = await client.get("/api/v1/roadmaps/active")
    assert res.status_code == 200
    assert res.json()["id"] == roadmap["id"]

    first, second = roadmap["milestones"]
    res = await client.post(f"/api/v1/milestones/{first['id']}/complete")
    assert res.status_code == 200
    assert res.json()["roadmap_completed"] is False
    res = await client.post(f"/api/v1/milestones/{first['id']}/complete")
    assert res.status_code == 409

    res = await client.post(f"/api/v1/milestones/{second['id']}/verification")
    assert res.status_code == 200
    question = res.json()["question"]

    res = await client.post(
        f"/api/v1/milestones/{second['id']}/verification/answer", json={"question": question, "answer": "No idea"}
    )
    assert res.status_code == 200
    assert res.json()["passed"] is False

    res = await client.post(
        f"/api/v1/milestones/{second['id']}/verification/answer", json={"question": question, "answer": LONG_ANSWER}
    )
    assert res.json()["passed"] is True

    res = await client.get(f"/api/v1/roadmaps/{roadmap['id']}")
    body = res.json()
    assert body["completed_at"] is not None
    assert [m["status"] for m in body["milestones"]] == ["COMPLETED", "COMPLETED"]
    methods = sorted(m["progress"][0]["verification_method"] for m in body["milestones"])
    assert methods == ["AI_VERIFIED", "SELF_REPORTED"]

    res = await client.get("/api/v1/roadmaps/active")
    assert res.status_code == 404

    [summary] = (await client.get("/api/v1/roadmaps")).json()
    assert summary["progress"] == {"total": 2, "completed": 2}

    history = (await client.get("/api/v1/skill-history")).json()
    assert {h["skill_name"] for h in history} == {"Kubernetes", "Communication"}
    prefill = (await client.get("/api/v1/skill-history/prefill")).json()
    assert len(prefill) == 1
    assert prefill[0]["skill_id"] == second["skill_id"]


@pytest.mark.asyncio
async def test_roadmap_without_gaps_is_conflict(client, db_session):
    skills = await _seed_skills(db_session)
    res = await client.post("/api/v1/assessments", json={"current_role": "A", "target_role": "B"})
    assessment_id = res.json()["id"]

    res = await client.post(f"/api/v1/assessments/{assessment_id}/roadmap")
    assert res.status_code == 409

    await client.put(
        f"/api/v1/assessments/{assessment_id}/self-evaluations",
        json={"evaluations": [{"skill_id": str(skills["Python"].id), "level": 5}]},
    )
    await client.post(f"/api/v1/assessments/{assessment_id}/gaps")
    res = await client.post(f"/api/v1/assessments/{assessment_id}/roadmap")
    assert res.status_code == 409
    assert res.json()["detail"] == "No skill gaps found"
