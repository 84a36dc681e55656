from __future__ import annotations

from datetime import datetime, timezone
from typing import TYPE_CHECKING

from sqlalchemy import DateTime, Float, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.database import Base

if TYPE_CHECKING:
    from app.models.student import Student


def result_doc_id(collection: str, assessment_key: str, attempt_number: int) -> str:
    return f"{collection}_{assessment_key}_{attempt_number}"


class AssessmentResult(Base):
    """
    One attempt of one assessment by one student.

    ``doc_id`` is ``<collectionName>_<assessmentId>_<attemptNumber>``; it is
    unique per student, not globally.
    """
    __tablename__ = "assessment_results"

    __table_args__ = (
        UniqueConstraint("student_id", "doc_id", name="uq_results_student_doc"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)

    student_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("students.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    doc_id: Mapped[str] = mapped_column(String(200), nullable=False)
    collection: Mapped[str] = mapped_column(String(40), nullable=False)
    assessment_key: Mapped[str] = mapped_column(String(120), nullable=False)
    attempt_number: Mapped[int] = mapped_column(Integer, nullable=False)

    score: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    correct_answers: Mapped[int | None] = mapped_column(Integer, nullable=True)
    total_questions: Mapped[int | None] = mapped_column(Integer, nullable=True)

    submitted_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    student: Mapped["Student"] = relationship("Student", back_populates="results")
