"""
Persisted storage for password-reset sessions.

The reset flow only sees the ``ResetSessionStore`` protocol, so any
key-value store with get/set/clear semantics can back it.
"""
from datetime import datetime, timezone
from typing import Protocol

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.credentials import normalize_email
from app.core.otp import OtpSession
from app.models.password_reset_session import PasswordResetSession


class ResetSessionStore(Protocol):
    async def get(self, email: str) -> OtpSession | None: ...

    async def set(self, session: OtpSession) -> None: ...

    async def clear(self, email: str) -> None: ...


class MemoryResetSessionStore:
    def __init__(self):
        self._sessions: dict[str, OtpSession] = {}

    async def get(self, email: str) -> OtpSession | None:
        return self._sessions.get(normalize_email(email))

    async def set(self, session: OtpSession) -> None:
        self._sessions[session.email] = session

    async def clear(self, email: str) -> None:
        self._sessions.pop(normalize_email(email), None)


def _aware(dt: datetime | None) -> datetime | None:
    # SQLite hands back naive datetimes even for timezone=True columns
    if dt is not None and dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


class SqlResetSessionStore:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def _row(self, email: str) -> PasswordResetSession | None:
        res = await self.db.execute(
            select(PasswordResetSession).where(PasswordResetSession.email == normalize_email(email))
        )
        return res.scalar_one_or_none()

    async def get(self, email: str) -> OtpSession | None:
        row = await self._row(email)
        if row is None:
            return None
        return OtpSession(
            email=row.email,
            code=row.code,
            expires_at=_aware(row.expires_at),
            sent_at=_aware(row.sent_at),
            attempts=row.attempts,
            verified=row.verified_at is not None,
        )

    async def set(self, session: OtpSession) -> None:
        row = await self._row(session.email)
        if row is None:
            row = PasswordResetSession(email=session.email)
            self.db.add(row)
        row.code = session.code
        row.expires_at = session.expires_at
        row.sent_at = session.sent_at
        row.attempts = session.attempts
        if session.verified and row.verified_at is None:
            row.verified_at = datetime.now(timezone.utc)
        elif not session.verified:
            row.verified_at = None
        await self.db.flush()

    async def clear(self, email: str) -> None:
        await self.db.execute(
            delete(PasswordResetSession).where(PasswordResetSession.email == normalize_email(email))
        )
        await self.db.flush()
