from datetime import datetime, timezone
from enum import Enum

from sqlalchemy import Boolean, DateTime, Integer, String, Text, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database import Base


class AssessmentCollection(str, Enum):
    """Top-level collections an assessment definition can live in."""
    ACADEMIC = "assessments"
    TECHNICAL = "technicalAssessments"
    PERSONAL = "personalAssessments"


class Assessment(Base):
    __tablename__ = "assessments"

    __table_args__ = (
        UniqueConstraint("collection", "assessment_key", name="uq_assessments_collection_key"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)

    collection: Mapped[str] = mapped_column(String(40), nullable=False, index=True)
    assessment_key: Mapped[str] = mapped_column(String(120), nullable=False)

    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    category: Mapped[str | None] = mapped_column(String(80), nullable=True)
    question_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default="true")

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        server_default=func.now(),
        nullable=False,
    )

    @property
    def key(self) -> str:
        """Grouping key shared by every attempt doc id of this assessment."""
        return f"{self.collection}_{self.assessment_key}"
