from urllib.parse import parse_qs, urlparse

from sqlalchemy import select

from app.core.database import AsyncSessionLocal
from app.models.password_reset_session import PasswordResetSession
from app.models.student import Student

SIGNUP = {
    "first_name": "Ana",
    "last_name": "Reyes",
    "email": "ana@example.com",
    "password": "Passw0rdX",
    "confirm_password": "Passw0rdX",
    "course": "BSIT",
    "is_enrolled": True,
    "year_level": "3rd Year",
    "accepted_terms": True,
}


def wrong_code(code: str) -> str:
    return "000000" if code != "000000" else "111111"


async def signup(client, outbox, **overrides) -> dict:
    r = await client.post("/api/auth/signup", json={**SIGNUP, **overrides})
    assert r.status_code == 201, r.text
    flow_id = r.json()["flow_id"]
    r = await client.post(f"/api/auth/signup/{flow_id}/verify", json={"code": outbox.last("otp")["code"]})
    assert r.status_code == 200, r.text
    return r.json()


async def find_student(email: str) -> Student | None:
    async with AsyncSessionLocal() as s:
        return (await s.execute(select(Student).where(Student.email == email))).scalar_one_or_none()


async def test_health(client):
    assert (await client.get("/health")).json() == {"status": "healthy"}


async def test_password_strength(client):
    r = await client.post("/api/auth/password-strength", json={"password": "Abcdefgh"})
    assert r.status_code == 200
    body = r.json()
    assert body["strength"] == 3
    assert body["label"] == "Good"
    assert body["has_number"] is False
    assert body["is_valid"] is False


async def test_signup_verify_then_login(client, outbox):
    body = await signup(client, outbox)
    assert body["student"]["email"] == "ana@example.com"
    assert body["student"]["email_verified"] is True
    assert body["student"]["provider"] == "password"

    me = await client.get("/api/auth/me", headers={"Authorization": f"Bearer {body['access_token']}"})
    assert me.status_code == 200
    assert me.json()["first_name"] == "Ana"

    r = await client.post("/api/auth/login", json={"email": "ANA@example.com", "password": "Passw0rdX"})
    assert r.status_code == 200
    assert r.json()["token_type"] == "bearer"


async def test_signup_validation_error(client, outbox):
    r = await client.post("/api/auth/signup", json={**SIGNUP, "confirm_password": "Different1"})
    assert r.status_code == 400
    assert r.json()["detail"] == {"detail": "Passwords do not match", "kind": "validation"}
    assert outbox.sent == []


async def test_no_account_until_code_verified(client, outbox):
    r = await client.post("/api/auth/signup", json=SIGNUP)
    flow_id = r.json()["flow_id"]
    assert r.json()["state"] == "otp_pending"
    assert await find_student("ana@example.com") is None

    r = await client.post(f"/api/auth/signup/{flow_id}/verify", json={"code": wrong_code(outbox.last("otp")["code"])})
    assert r.status_code == 400
    assert r.json()["detail"]["code"] == "invalid"
    assert await find_student("ana@example.com") is None

    status = await client.get(f"/api/auth/signup/{flow_id}")
    assert status.json()["dialog"]["error"] == "Invalid code. Please check your email and try again."


async def test_signup_email_failure(client, outbox):
    outbox.fail = True
    r = await client.post("/api/auth/signup", json=SIGNUP)
    assert r.status_code == 502
    assert r.json()["detail"]["kind"] == "network"


async def test_signup_existing_email_is_abandoned(client, outbox):
    await signup(client, outbox)

    r = await client.post("/api/auth/signup", json=SIGNUP)
    flow_id = r.json()["flow_id"]
    r = await client.post(f"/api/auth/signup/{flow_id}/verify", json={"code": outbox.last("otp")["code"]})
    assert r.status_code == 409
    assert r.json()["detail"]["detail"] == "This email is already registered. Please sign in instead."

    r = await client.post(f"/api/auth/signup/{flow_id}/verify", json={"code": "123456"})
    assert r.status_code == 404


async def test_signup_resend_cooldown_and_cancel(client, outbox):
    r = await client.post("/api/auth/signup", json=SIGNUP)
    flow_id = r.json()["flow_id"]

    r = await client.post(f"/api/auth/signup/{flow_id}/resend")
    assert r.status_code == 400
    assert r.json()["detail"]["detail"].startswith("Please wait")

    r = await client.delete(f"/api/auth/signup/{flow_id}")
    assert r.status_code == 200
    assert (await client.get(f"/api/auth/signup/{flow_id}")).status_code == 404


async def test_login_errors(client, outbox):
    await signup(client, outbox)
    r = await client.post("/api/auth/login", json={"email": "ana@example.com", "password": "WrongPass1"})
    assert r.status_code == 401
    assert r.json()["detail"]["detail"] == "Invalid email or password."

    r = await client.post("/api/auth/login", json={"email": "nobody@example.com", "password": "WrongPass1"})
    assert r.status_code == 401


async def test_me_requires_token(client):
    assert (await client.get("/api/auth/me")).status_code == 401
    r = await client.get("/api/auth/me", headers={"Authorization": "Bearer not-a-jwt"})
    assert r.status_code == 401


async def test_oauth_unknown_provider(client):
    r = await client.post("/api/auth/oauth/myspace", json={"access_token": "x"})
    assert r.status_code == 400
    assert r.json()["detail"]["code"] == "unsupported-provider"


async def test_password_reset_by_code(client, outbox):
    await signup(client, outbox)

    r = await client.post("/api/auth/password-reset/request", json={"email": "ana@example.com"})
    assert r.status_code == 200
    assert r.json()["state"] == "code_entry"
    code = outbox.last("reset_code")["code"]

    r = await client.post("/api/auth/password-reset/verify", json={"email": "ana@example.com", "code": wrong_code(code)})
    assert r.status_code == 400
    async with AsyncSessionLocal() as s:
        row = (await s.execute(select(PasswordResetSession))).scalar_one()
        assert row.attempts == 1

    r = await client.post("/api/auth/password-reset/verify", json={"email": "ana@example.com", "code": code})
    assert r.status_code == 200
    assert r.json()["state"] == "setting_password"

    r = await client.post(
        "/api/auth/password-reset/confirm",
        json={"email": "ana@example.com", "new_password": "BrandNew9", "confirm_password": "BrandNew9"},
    )
    assert r.status_code == 200, r.text
    assert r.json()["state"] == "reset_complete"

    async with AsyncSessionLocal() as s:
        assert (await s.execute(select(PasswordResetSession))).scalar_one_or_none() is None

    r = await client.post("/api/auth/login", json={"email": "ana@example.com", "password": "BrandNew9"})
    assert r.status_code == 200


async def test_password_reset_unknown_email(client, outbox):
    r = await client.post("/api/auth/password-reset/request", json={"email": "ghost@example.com"})
    assert r.status_code == 200
    assert r.json()["message"] == "If an account exists for this email, a reset code has been sent."
    assert outbox.sent == []

    r = await client.post("/api/auth/password-reset/verify", json={"email": "ghost@example.com", "code": "123456"})
    assert r.status_code == 400
    assert r.json()["detail"]["code"] == "missing"


async def test_reset_user_password_function(client, outbox):
    await signup(client, outbox)

    r = await client.post("/api/functions/reset-user-password", json={"email": "ana@example.com"})
    assert r.status_code == 400
    assert r.json()["detail"]["detail"] == "Missing required fields: email, verificationCode, or newPassword"

    await client.post("/api/auth/password-reset/request", json={"email": "ana@example.com"})
    code = outbox.last("reset_code")["code"]
    r = await client.post(
        "/api/functions/reset-user-password",
        json={"email": "ana@example.com", "verification_code": code, "new_password": "FromFunc7"},
    )
    assert r.status_code == 200
    assert r.json() == {"success": True, "message": "Password reset successfully"}

    r = await client.post("/api/auth/login", json={"email": "ana@example.com", "password": "FromFunc7"})
    assert r.status_code == 200


async def test_password_reset_link(client, outbox):
    await signup(client, outbox)

    r = await client.post("/api/auth/password-reset-link", json={"email": "ana@example.com"})
    assert r.status_code == 200
    url = outbox.last("reset_link")["url"]
    code = parse_qs(urlparse(url).query)["oobCode"][0]

    r = await client.get(f"/api/auth/password-reset-link/{code}")
    assert r.json() == {"email": "ana@example.com"}

    r = await client.post(
        "/api/auth/password-reset-link/confirm",
        json={"code": code, "new_password": "LinkReset5", "confirm_password": "LinkReset5"},
    )
    assert r.status_code == 200

    # the link dies once the password has changed
    r = await client.get(f"/api/auth/password-reset-link/{code}")
    assert r.status_code == 400
    assert r.json()["detail"]["code"] == "invalid-action-code"


async def test_password_reset_link_unknown_email(client):
    r = await client.post("/api/auth/password-reset-link", json={"email": "ghost@example.com"})
    assert r.status_code == 404
    assert r.json()["detail"]["code"] == "user-not-found"


async def test_signup_verify_needs_the_exact_code(client, outbox):
    r = await client.post("/api/auth/signup", json=SIGNUP)
    flow_id = r.json()["flow_id"]
    code = outbox.last("otp")["code"]

    for submitted in (code + "9", code + "abc", code[:5], f"{code[:3]} {code[3:]}"):
        r = await client.post(f"/api/auth/signup/{flow_id}/verify", json={"code": submitted})
        assert r.status_code == 400, submitted
        assert r.json()["detail"]["kind"] == "validation"
    assert await find_student("ana@example.com") is None

    r = await client.post(f"/api/auth/signup/{flow_id}/verify", json={"code": code})
    assert r.status_code == 200


async def test_repeat_signup_waits_for_the_cooldown(client, outbox):
    first = await client.post("/api/auth/signup", json=SIGNUP)
    assert first.status_code == 201

    for _ in range(3):
        r = await client.post("/api/auth/signup", json={**SIGNUP, "email": "ANA@example.com"})
        assert r.status_code == 400
        assert r.json()["detail"]["detail"].startswith("Please wait")
    assert len(outbox.sent) == 1

    # the first flow is untouched and still verifies
    flow_id = first.json()["flow_id"]
    r = await client.post(f"/api/auth/signup/{flow_id}/verify", json={"code": outbox.last("otp")["code"]})
    assert r.status_code == 200


async def test_signup_after_cancel_starts_fresh(client, outbox):
    r = await client.post("/api/auth/signup", json=SIGNUP)
    await client.delete(f"/api/auth/signup/{r.json()['flow_id']}")

    r = await client.post("/api/auth/signup", json=SIGNUP)
    assert r.status_code == 201
    assert len(outbox.sent) == 2
