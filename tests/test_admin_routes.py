import csv
import io

import pytest

from app.core.database import AsyncSessionLocal
from app.core.security import hash_password
from app.models.admin import Admin


@pytest.fixture
async def admin_auth(client):
    async with AsyncSessionLocal() as s:
        s.add(Admin(name="Root", email="admin@devpath.app", password_hash=hash_password("AdminPass1")))
        await s.commit()

    r = await client.post("/api/admin/auth/login", json={"email": "admin@devpath.app", "password": "AdminPass1"})
    assert r.status_code == 200, r.text
    return {"Authorization": f"Bearer {r.json()['access_token']}"}


async def make_student(client, outbox, first, email, scores):
    r = await client.post(
        "/api/auth/signup",
        json={
            "first_name": first,
            "last_name": "Test",
            "email": email,
            "password": "Passw0rdX",
            "confirm_password": "Passw0rdX",
            "course": "BSIT",
            "year_level": "1st Year",
            "accepted_terms": True,
        },
    )
    flow_id = r.json()["flow_id"]
    r = await client.post(f"/api/auth/signup/{flow_id}/verify", json={"code": outbox.last("otp")["code"]})
    auth = {"Authorization": f"Bearer {r.json()['access_token']}"}
    for collection, key, score in scores:
        await client.post(
            "/api/students/me/results",
            headers=auth,
            json={"collection": collection, "assessment_key": key, "score": score},
        )
    return auth


async def test_admin_login_and_me(client, admin_auth):
    r = await client.get("/api/admin/auth/me", headers=admin_auth)
    assert r.status_code == 200
    assert r.json()["email"] == "admin@devpath.app"
    assert r.json()["last_login_at"] is not None


async def test_admin_login_wrong_password(client, admin_auth):
    r = await client.post("/api/admin/auth/login", json={"email": "admin@devpath.app", "password": "nope"})
    assert r.status_code == 401
    assert r.json()["detail"] == "Invalid email or password"


async def test_student_token_cannot_reach_admin(client, outbox, admin_auth):
    auth = await make_student(client, outbox, "Ana", "ana@example.com", [])
    assert (await client.get("/api/admin/students", headers=auth)).status_code == 403


async def test_students_list_and_detail(client, outbox, admin_auth):
    await make_student(client, outbox, "Ana", "ana@example.com", [("assessments", "math", 80)])
    await make_student(client, outbox, "Ben", "ben@example.com", [])

    r = await client.get("/api/admin/students", headers=admin_auth)
    body = r.json()
    assert body["total"] == 2

    r = await client.get("/api/admin/students", headers=admin_auth, params={"q": "ana"})
    body = r.json()
    assert body["total"] == 1
    assert body["items"][0]["results_count"] == 1

    r = await client.get(f"/api/admin/students/{body['items'][0]['id']}", headers=admin_auth)
    assert r.json()["results"][0]["doc_id"] == "assessments_math_1"

    assert (await client.get("/api/admin/students/9999", headers=admin_auth)).status_code == 404


async def test_analytics_and_csv(client, outbox, admin_auth):
    await make_student(
        client,
        outbox,
        "Ana",
        "ana@example.com",
        [("assessments", "math", 90), ("technicalAssessments", "web", 80)],
    )
    await make_student(client, outbox, "Ben", "ben@example.com", [("assessments", "math", 30)])
    await make_student(client, outbox, "Cy", "cy@example.com", [])

    r = await client.get("/api/admin/analytics/students", headers=admin_auth)
    body = r.json()
    by_email = {s["email"]: s for s in body["students"]}
    assert by_email["ana@example.com"]["status"] == "excellent"
    assert by_email["ben@example.com"]["status"] == "struggling"
    assert by_email["ben@example.com"]["needs_support"] is True
    assert by_email["cy@example.com"]["status"] == "inactive"
    assert body["summary"]["needs_support"] == 1
    assert body["total_assessments"] == 17

    r = await client.get("/api/admin/analytics/students.csv", headers=admin_auth)
    assert r.headers["content-type"].startswith("text/csv")
    rows = list(csv.reader(io.StringIO(r.text)))
    assert rows[0][:3] == ["name", "email", "academic_avg"]
    assert len(rows) == 4


async def test_assessments_crud(client, admin_auth):
    payload = {"collection": "technicalAssessments", "assessment_key": "web_dev", "title": "Web Development"}
    r = await client.post("/api/admin/assessments", headers=admin_auth, json=payload)
    assert r.status_code == 201
    created = r.json()
    assert created["key"] == "technicalAssessments_web_dev"

    r = await client.post("/api/admin/assessments", headers=admin_auth, json=payload)
    assert r.status_code == 409

    r = await client.patch(f"/api/admin/assessments/{created['id']}", headers=admin_auth, json={"is_active": False})
    assert r.json()["is_active"] is False

    r = await client.get("/api/admin/assessments", headers=admin_auth, params={"include_inactive": False})
    assert r.json() == []


async def test_defined_assessments_drive_completion(client, outbox, admin_auth):
    for key in ("math", "science"):
        await client.post(
            "/api/admin/assessments",
            headers=admin_auth,
            json={"collection": "assessments", "assessment_key": key, "title": key.title()},
        )
    auth = await make_student(client, outbox, "Ana", "ana@example.com", [("assessments", "math", 70)])

    r = await client.get("/api/students/me/progress", headers=auth)
    assert r.json()["total_assessments"] == 2
    assert r.json()["completion_percent"] == 50

    r = await client.get("/api/assessments", headers=auth)
    assert [a["key"] for a in r.json()] == ["assessments_math", "assessments_science"]


async def test_admin_presence_count(client, admin_auth):
    r = await client.get("/api/admin/presence/count", headers=admin_auth)
    assert r.json() == {"online": 0}
