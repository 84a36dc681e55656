import pytest
from sqlalchemy import select

from app.core.database import AsyncSessionLocal
from app.core.security import create_access_token
from app.models.student import Student
from app.services import presence


@pytest.fixture
async def student_token(client, outbox):
    r = await client.post(
        "/api/auth/signup",
        json={
            "first_name": "Ana",
            "last_name": "Reyes",
            "email": "ana@example.com",
            "password": "Passw0rdX",
            "confirm_password": "Passw0rdX",
            "course": "BSIT",
            "year_level": "3rd Year",
            "accepted_terms": True,
        },
    )
    flow_id = r.json()["flow_id"]
    r = await client.post(f"/api/auth/signup/{flow_id}/verify", json={"code": outbox.last("otp")["code"]})
    return r.json()["access_token"]


@pytest.fixture
def auth(student_token):
    return {"Authorization": f"Bearer {student_token}"}


async def submit(client, auth, collection, key, score):
    r = await client.post(
        "/api/students/me/results",
        headers=auth,
        json={"collection": collection, "assessment_key": key, "score": score},
    )
    assert r.status_code == 201, r.text
    return r.json()


async def test_profile_requires_token(client):
    assert (await client.get("/api/students/me")).status_code == 401


async def test_admin_token_is_not_a_student_token(client):
    token = create_access_token(1, "admin", "admin@devpath.app")
    r = await client.get("/api/students/me", headers={"Authorization": f"Bearer {token}"})
    assert r.status_code == 403


async def test_update_profile(client, auth):
    r = await client.patch(
        "/api/students/me",
        headers=auth,
        json={"course": "Other", "other_course": "BS Marine Biology", "career_path": "Data Science"},
    )
    assert r.status_code == 200
    body = r.json()
    assert body["course"] == "Other"
    assert body["other_course"] == "BS Marine Biology"
    assert body["career_path"] == "Data Science"

    r = await client.patch("/api/students/me", headers=auth, json={"course": "BSCS"})
    assert r.json()["other_course"] is None


async def test_other_course_needs_a_name(client, auth):
    r = await client.patch("/api/students/me", headers=auth, json={"course": "Other"})
    assert r.status_code == 422


async def test_attempt_numbers_per_assessment(client, auth):
    first = await submit(client, auth, "assessments", "math", 60)
    second = await submit(client, auth, "assessments", "math", 80)
    other = await submit(client, auth, "technicalAssessments", "web_dev", 50)

    assert first["doc_id"] == "assessments_math_1"
    assert second["doc_id"] == "assessments_math_2"
    assert second["attempt_number"] == 2
    assert other["doc_id"] == "technicalAssessments_web_dev_1"

    r = await client.get("/api/students/me/results", headers=auth)
    assert [x["doc_id"] for x in r.json()] == [
        "assessments_math_1",
        "assessments_math_2",
        "technicalAssessments_web_dev_1",
    ]


async def test_progress_and_certificate(client, auth):
    await submit(client, auth, "assessments", "math", 60)
    await submit(client, auth, "assessments", "math", 65)

    r = await client.get("/api/students/me/progress", headers=auth)
    body = r.json()
    assert body["improvements"][0]["name"] == "Math"
    assert body["improvements"][0]["improvement"] == 5
    assert body["is_ready"] is False
    assert body["total_assessments"] == 17
    assert body["completed_assessments"] == 1
    assert body["completion_percent"] == 6

    r = await client.get("/api/students/me/readiness-certificate", headers=auth)
    assert r.status_code == 403

    await submit(client, auth, "assessments", "math", 90)
    await submit(client, auth, "technicalAssessments", "web", 70)
    await submit(client, auth, "technicalAssessments", "web", 80)

    r = await client.get("/api/students/me/progress", headers=auth)
    assert r.json()["overall_readiness"] == 85
    assert r.json()["is_ready"] is True

    r = await client.get("/api/students/me/readiness-certificate", headers=auth)
    assert r.status_code == 200
    assert r.headers["content-type"] == "application/pdf"
    assert r.content.startswith(b"%PDF")


async def test_presence_count(client, auth):
    r = await client.get("/api/presence/count", headers=auth)
    assert r.json() == {"online": 0}

    async with AsyncSessionLocal() as s:
        ana = (await s.execute(select(Student))).scalar_one()
        first = await presence.connect(s, ana)
        await presence.connect(s, ana)  # second tab
        await s.commit()

    r = await client.get("/api/presence/count", headers=auth)
    assert r.json() == {"online": 1}

    async with AsyncSessionLocal() as s:
        await presence.disconnect(s, first)
        await s.commit()
        assert await presence.online_count(s) == 1


async def test_invalid_body_is_422_with_field_errors(client, auth):
    r = await client.post(
        "/api/students/me/results",
        headers=auth,
        json={"collection": "assessments", "assessment_key": "algebra", "score": 140},
    )
    assert r.status_code == 422
    errors = r.json()["detail"]
    assert isinstance(errors, list)
    assert errors[0]["loc"][-1] == "score"
