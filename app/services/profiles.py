from datetime import datetime, timezone
from typing import Protocol

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import NetworkError
from app.models.student import Student

PROFILE_FIELDS = ("first_name", "last_name", "course", "other_course", "is_enrolled", "year_level", "career_path")


class ProfileStore(Protocol):
    async def write_profile(self, account: Student, profile: dict) -> Student: ...


class SqlProfileStore:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def write_profile(self, account: Student, profile: dict) -> Student:
        for key in PROFILE_FIELDS:
            if key in profile:
                setattr(account, key, profile[key])
        if "email_verified" in profile:
            account.email_verified = bool(profile["email_verified"])
        account.updated_at = datetime.now(timezone.utc)
        try:
            await self.db.flush()
        except SQLAlchemyError as exc:
            raise NetworkError("Failed to save your profile. Please try again.") from exc
        return account
