"""
One-time passcode generation and verification.

A session is single-use: the caller clears it after ``verify_otp`` returns.
Expiry is always set here by the flow that creates the session; email
delivery never decides how long a code lives.
"""
import hmac
import math
import secrets
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta, timezone

from app.core.credentials import normalize_email
from app.core.errors import OtpError, OtpErrorKind

OTP_LENGTH = 6
_OTP_MIN = 100000
_OTP_SPAN = 900000  # 100000..999999 inclusive


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def generate_code() -> str:
    return str(_OTP_MIN + secrets.randbelow(_OTP_SPAN))


@dataclass(frozen=True)
class OtpSession:
    email: str
    code: str
    expires_at: datetime
    sent_at: datetime
    attempts: int = 0
    verified: bool = field(default=False)

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at

    def with_failed_attempt(self) -> "OtpSession":
        return replace(self, attempts=self.attempts + 1)

    def mark_verified(self) -> "OtpSession":
        return replace(self, verified=True)


def new_session(email: str, ttl: timedelta, now: datetime | None = None) -> OtpSession:
    now = now or utcnow()
    return OtpSession(
        email=normalize_email(email),
        code=generate_code(),
        expires_at=now + ttl,
        sent_at=now,
    )


def verify_otp(
    session: OtpSession | None,
    email: str,
    submitted: str,
    now: datetime | None = None,
    max_attempts: int | None = None,
    grace: timedelta = timedelta(0),
) -> OtpSession:
    """
    Check ``submitted`` against ``session``.

    Returns the session on success. On failure raises ``OtpError``; for a
    wrong code the error carries the session with its attempt counter bumped
    in ``error.session`` so the caller can persist it. ``grace`` pushes the
    expiry back, for sessions the user has already verified.
    """
    now = now or utcnow()
    if session is None:
        raise OtpError(OtpErrorKind.MISSING)
    if max_attempts is not None and session.attempts >= max_attempts:
        raise OtpError(OtpErrorKind.LOCKED)
    if session.is_expired(now - grace):
        raise OtpError(OtpErrorKind.EXPIRED)
    if normalize_email(email) != session.email:
        raise OtpError(OtpErrorKind.MISMATCH)

    submitted = (submitted or "").strip()
    if not hmac.compare_digest(submitted.encode("utf-8"), session.code.encode("utf-8")):
        err = OtpError(OtpErrorKind.INVALID)
        err.session = session.with_failed_attempt()
        raise err
    return session


def resend_available_in(session: OtpSession | None, cooldown: timedelta, now: datetime | None = None) -> int:
    """Seconds left before another code may be sent (0 when allowed)."""
    if session is None:
        return 0
    now = now or utcnow()
    remaining = (session.sent_at + cooldown - now).total_seconds()
    return max(0, math.ceil(remaining))
