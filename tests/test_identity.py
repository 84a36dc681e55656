import pytest

from app.core.database import AsyncSessionLocal
from app.core.errors import ProviderError, ProviderErrorKind
from app.core.security import hash_password
from app.models.student import AuthProvider, Student
from app.services.identity import SqlIdentityProvider
from app.services.signup_flow import SignupFlow, SignupForm, SignupState


class NoProfiles:
    async def write_profile(self, account, profile):
        raise AssertionError("profile must not be written for a rejected account")


async def commit_student(email: str) -> None:
    async with AsyncSessionLocal() as s:
        s.add(Student(email=email, password_hash=hash_password("Passw0rdX"), provider=AuthProvider.PASSWORD))
        await s.commit()


async def test_create_account_rejects_known_email(db):
    await commit_student("ana@example.com")
    with pytest.raises(ProviderError) as exc:
        await SqlIdentityProvider(db).create_account("ANA@example.com", "Passw0rdX")
    assert exc.value.code == ProviderErrorKind.EMAIL_IN_USE


async def test_create_account_race_is_email_in_use(db, monkeypatch):
    provider = SqlIdentityProvider(db)

    async def not_there_yet(email):
        return None

    # the other signup commits between our lookup and our insert
    monkeypatch.setattr(provider, "get_by_email", not_there_yet)
    await commit_student("ana@example.com")

    with pytest.raises(ProviderError) as exc:
        await provider.create_account("ana@example.com", "Passw0rdX")
    assert exc.value.code == ProviderErrorKind.EMAIL_IN_USE
    assert exc.value.status_code == 409


async def test_signup_race_abandons_instead_of_hanging(db, outbox, monkeypatch):
    identity = SqlIdentityProvider(db)

    async def not_there_yet(email):
        return None

    monkeypatch.setattr(identity, "get_by_email", not_there_yet)
    flow = SignupFlow(identity, NoProfiles(), outbox)
    await flow.submit(
        SignupForm(
            first_name="Ana",
            last_name="Reyes",
            email="Ana@Example.com",
            password="Passw0rdX",
            confirm_password="Passw0rdX",
            course="BSIT",
            accepted_terms=True,
        )
    )
    await commit_student("ana@example.com")

    state = await flow.verify(outbox.last("otp")["code"])

    assert state == SignupState.ABANDONED
    assert flow.error.code == ProviderErrorKind.EMAIL_IN_USE
