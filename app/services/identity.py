"""
Identity provider backed by the ``students`` table.

All failures surface as ``ProviderError`` with a closed ``ProviderErrorKind``
and a message fit to show the user as-is.
"""
import logging
from datetime import datetime, timezone
from typing import Awaitable, Callable, Protocol

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.credentials import check_password, is_valid_email, normalize_email
from app.core.errors import ProviderError, ProviderErrorKind
from app.core.oauth import OAuthProfile, fetch_oauth_profile
from app.core.reset_tokens import create_reset_link_code, password_fingerprint, read_reset_link_code
from app.core.security import hash_password, verify_password
from app.models.student import AuthProvider, Student

logger = logging.getLogger(__name__)

OAuthFetcher = Callable[[str, str], Awaitable[OAuthProfile]]


class IdentityProvider(Protocol):
    async def create_account(self, email: str, password: str) -> Student: ...

    async def update_password(self, email: str, new_password: str) -> None: ...


def _email_in_use() -> ProviderError:
    return ProviderError(
        ProviderErrorKind.EMAIL_IN_USE,
        "This email is already registered. Please sign in instead.",
    )


def _weak_password_message(password: str) -> str | None:
    unmet = check_password(password).unmet()
    if not unmet:
        return None
    return "Password must contain: " + ", ".join(u.lower() for u in unmet) + "."


class SqlIdentityProvider:
    def __init__(self, db: AsyncSession, oauth_fetcher: OAuthFetcher = fetch_oauth_profile):
        self.db = db
        self.oauth_fetcher = oauth_fetcher

    async def get_by_email(self, email: str) -> Student | None:
        res = await self.db.execute(select(Student).where(Student.email == normalize_email(email)))
        return res.scalar_one_or_none()

    async def _require(self, email: str) -> Student:
        student = await self.get_by_email(email)
        if student is None:
            raise ProviderError(ProviderErrorKind.USER_NOT_FOUND, "No account found with this email.")
        return student

    # ── account creation ─────────────────────────────────────────────
    async def create_account(self, email: str, password: str) -> Student:
        if not is_valid_email(email):
            raise ProviderError(ProviderErrorKind.INVALID_EMAIL, "Invalid email address.")
        weak = _weak_password_message(password)
        if weak:
            raise ProviderError(ProviderErrorKind.WEAK_PASSWORD, weak)

        if await self.get_by_email(email) is not None:
            raise _email_in_use()

        student = Student(
            email=normalize_email(email),
            password_hash=hash_password(password),
            provider=AuthProvider.PASSWORD,
        )
        self.db.add(student)
        try:
            await self.db.flush()
        except IntegrityError as exc:
            # another signup for the same email committed after our lookup
            await self.db.rollback()
            raise _email_in_use() from exc
        logger.info("Created account %s", student.uid)
        return student

    # ── sign-in ──────────────────────────────────────────────────────
    async def sign_in(self, email: str, password: str) -> Student:
        student = await self.get_by_email(email) if is_valid_email(email) else None

        if student is not None and student.provider != AuthProvider.PASSWORD and not student.password_hash:
            raise ProviderError(
                ProviderErrorKind.INVALID_CREDENTIAL,
                f"This email is linked to a {student.provider.value.title()} account. "
                f"Use {student.provider.value.title()} sign-in.",
            )

        # always run the hash check so timing does not reveal which emails exist
        password_ok = verify_password(password, student.password_hash if student else None)
        if student is None or not password_ok:
            raise ProviderError(ProviderErrorKind.INVALID_CREDENTIAL, "Invalid email or password.")

        if not student.is_active:
            raise ProviderError(ProviderErrorKind.ACCOUNT_DISABLED, "Account is deactivated. Contact support.")

        student.last_login_at = datetime.now(timezone.utc)
        await self.db.flush()
        return student

    async def oauth_sign_in(self, provider: str, access_token: str) -> Student:
        profile = await self.oauth_fetcher(provider, access_token)

        student = await self.get_by_email(profile.email)
        if student is None:
            first, _, last = profile.name.partition(" ")
            student = Student(
                email=normalize_email(profile.email),
                password_hash=None,
                provider=AuthProvider(profile.provider),
                email_verified=True,
                first_name=first,
                last_name=last,
            )
            self.db.add(student)
            logger.info("Created %s account for %s", profile.provider, normalize_email(profile.email))
        elif not student.is_active:
            raise ProviderError(ProviderErrorKind.ACCOUNT_DISABLED, "Account is deactivated. Contact support.")

        student.last_login_at = datetime.now(timezone.utc)
        await self.db.flush()
        return student

    # ── password management ──────────────────────────────────────────
    async def update_password(self, email: str, new_password: str) -> None:
        weak = _weak_password_message(new_password)
        if weak:
            raise ProviderError(ProviderErrorKind.WEAK_PASSWORD, weak)
        student = await self._require(email)
        student.password_hash = hash_password(new_password)
        student.updated_at = datetime.now(timezone.utc)
        await self.db.flush()
        logger.info("Password updated for %s", student.uid)

    async def send_password_reset_email(self, email: str, sender) -> None:
        """
        Email a signed reset link. The link embeds a fingerprint of the
        current hash, so it stops working once the password changes.
        """
        if not email or not email.strip():
            raise ProviderError(ProviderErrorKind.INVALID_EMAIL, "Please enter an email address.")
        if not is_valid_email(email.strip()):
            raise ProviderError(ProviderErrorKind.INVALID_EMAIL, "Invalid email address.")

        student = await self._require(email.strip())
        code = create_reset_link_code(student.email, password_fingerprint(student.password_hash))
        reset_url = f"{settings.FRONTEND_URL}/reset-password?oobCode={code}"
        await sender.send_reset_link_email(student.email, student.display_name, reset_url)

    async def verify_password_reset_link(self, code: str) -> str:
        """Returns the email the link was issued for."""
        payload = read_reset_link_code(code, settings.RESET_LINK_MAX_AGE_MINUTES * 60)
        invalid = ProviderError(
            ProviderErrorKind.INVALID_ACTION_CODE,
            "This reset link is invalid or has expired. Please request a new one.",
        )
        if not payload:
            raise invalid
        student = await self.get_by_email(payload.get("email", ""))
        if student is None or payload.get("pw") != password_fingerprint(student.password_hash):
            raise invalid
        return student.email

    async def confirm_password_reset_link(self, code: str, new_password: str) -> str:
        email = await self.verify_password_reset_link(code)
        await self.update_password(email, new_password)
        return email
