from datetime import timedelta

import pytest

from app.core.errors import OtpError, OtpErrorKind, ValidationError
from app.core.otp import new_session
from app.services.functions import reset_user_password
from app.services.session_store import MemoryResetSessionStore


class FakeIdentity:
    def __init__(self):
        self.updated = []

    async def update_password(self, email, new_password):
        self.updated.append((email, new_password))


@pytest.fixture
def identity():
    return FakeIdentity()


@pytest.fixture
async def store(clock):
    s = MemoryResetSessionStore()
    await s.set(new_session("ana@example.com", timedelta(minutes=10), clock()))
    return s


@pytest.mark.parametrize(
    "password, message",
    [
        ("Ab1", "Password must be at least 8 characters long"),
        ("abcdefg1", "Password must contain at least one uppercase letter"),
        ("ABCDEFG1", "Password must contain at least one lowercase letter"),
        ("Abcdefgh", "Password must contain at least one number"),
    ],
)
async def test_password_rules_rechecked(identity, store, clock, password, message):
    code = (await store.get("ana@example.com")).code
    with pytest.raises(ValidationError) as exc:
        await reset_user_password(identity, store, "ana@example.com", code, password, now=clock())
    assert exc.value.message == message
    assert identity.updated == []


async def test_missing_fields(identity, store):
    with pytest.raises(ValidationError) as exc:
        await reset_user_password(identity, store, "ana@example.com", "", "NewPassw0rd")
    assert exc.value.message == "Missing required fields: email, verificationCode, or newPassword"


async def test_wrong_code_is_counted(identity, store, clock):
    code = (await store.get("ana@example.com")).code
    wrong = "000000" if code != "000000" else "111111"
    with pytest.raises(OtpError) as exc:
        await reset_user_password(identity, store, "ana@example.com", wrong, "NewPassw0rd", now=clock())
    assert exc.value.code == OtpErrorKind.INVALID
    assert (await store.get("ana@example.com")).attempts == 1
    assert identity.updated == []


async def test_success_updates_and_clears(identity, store, clock):
    code = (await store.get("ana@example.com")).code
    result = await reset_user_password(identity, store, "Ana@Example.com", code, "NewPassw0rd", now=clock())
    assert result == {"success": True, "message": "Password reset successfully"}
    assert identity.updated == [("ana@example.com", "NewPassw0rd")]
    assert await store.get("ana@example.com") is None


async def test_verified_session_gets_grace_past_expiry(identity, store, clock):
    session = await store.get("ana@example.com")
    await store.set(session.mark_verified())

    clock.advance(minutes=12)  # code expired two minutes ago
    result = await reset_user_password(
        identity, store, "ana@example.com", session.code, "NewPassw0rd",
        now=clock(), verified_grace=timedelta(minutes=5),
    )
    assert result["success"] is True
    assert identity.updated == [("ana@example.com", "NewPassw0rd")]


async def test_unverified_session_gets_no_grace(identity, store, clock):
    code = (await store.get("ana@example.com")).code

    clock.advance(minutes=12)
    with pytest.raises(OtpError) as exc:
        await reset_user_password(
            identity, store, "ana@example.com", code, "NewPassw0rd",
            now=clock(), verified_grace=timedelta(minutes=5),
        )
    assert exc.value.code == OtpErrorKind.EXPIRED
    assert identity.updated == []


async def test_grace_window_runs_out(identity, store, clock):
    session = await store.get("ana@example.com")
    await store.set(session.mark_verified())

    clock.advance(minutes=16)
    with pytest.raises(OtpError) as exc:
        await reset_user_password(
            identity, store, "ana@example.com", session.code, "NewPassw0rd",
            now=clock(), verified_grace=timedelta(minutes=5),
        )
    assert exc.value.code == OtpErrorKind.EXPIRED
