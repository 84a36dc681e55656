from __future__ import annotations

import uuid
from enum import Enum
from typing import List, Optional, TYPE_CHECKING
from datetime import datetime, timezone

from sqlalchemy import (
    String,
    Integer,
    DateTime,
    func,
    UniqueConstraint,
    Enum as SAEnum,
    Boolean,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.database import Base

if TYPE_CHECKING:
    from app.models.assessment_result import AssessmentResult


# --------------------------------------------------
# ENUM
# --------------------------------------------------

class AuthProvider(str, Enum):
    PASSWORD = "password"
    GOOGLE = "google"
    GITHUB = "github"


OTHER_COURSE = "Other"


# --------------------------------------------------
# MODEL
# --------------------------------------------------

class Student(Base):
    """
    Student account plus profile document.

    The identity part (email, password_hash, provider) is owned by the
    identity provider; the profile part is written once the signup flow has
    verified the email.
    """
    __tablename__ = "students"

    __table_args__ = (
        UniqueConstraint("email", name="uq_students_email"),
        UniqueConstraint("uid", name="uq_students_uid"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)

    # public handle handed to the frontend, never the numeric id
    uid: Mapped[str] = mapped_column(
        String(36),
        nullable=False,
        index=True,
        default=lambda: str(uuid.uuid4()),
    )

    # --------------------------------------------------
    # IDENTITY
    # --------------------------------------------------

    email: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    password_hash: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    provider: Mapped[AuthProvider] = mapped_column(
        SAEnum(
            AuthProvider,
            name="auth_provider_enum",
            values_callable=lambda e: [m.value for m in e],
        ),
        nullable=False,
        default=AuthProvider.PASSWORD,
        server_default=AuthProvider.PASSWORD.value,
    )

    email_verified: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default="false"
    )
    is_active: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True, server_default="true"
    )

    # --------------------------------------------------
    # PROFILE
    # --------------------------------------------------

    first_name: Mapped[str] = mapped_column(String(120), nullable=False, default="", server_default="")
    last_name: Mapped[str] = mapped_column(String(120), nullable=False, default="", server_default="")
    course: Mapped[str] = mapped_column(String(120), nullable=False, default="", server_default="")
    other_course: Mapped[Optional[str]] = mapped_column(String(120), nullable=True)
    is_enrolled: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True, server_default="true"
    )
    year_level: Mapped[str] = mapped_column(String(30), nullable=False, default="", server_default="")
    career_path: Mapped[Optional[str]] = mapped_column(String(120), nullable=True)

    # --------------------------------------------------
    # TIMESTAMPS
    # --------------------------------------------------

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        server_default=func.now(),
        nullable=False,
    )
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    last_login_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    # --------------------------------------------------
    # RELATIONSHIPS
    # --------------------------------------------------

    results: Mapped[List["AssessmentResult"]] = relationship(
        "AssessmentResult",
        back_populates="student",
        cascade="all, delete-orphan",
    )

    @property
    def display_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip() or self.email.split("@")[0]

    @property
    def course_label(self) -> str:
        if self.course == OTHER_COURSE and self.other_course:
            return self.other_course
        return self.course

    def __repr__(self) -> str:
        return f"<Student uid={self.uid} email={self.email!r}>"
