from datetime import datetime
from typing import Annotated, Literal

from pydantic import BaseModel, Field, StringConstraints

from app.models.student import AuthProvider


NameStr = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=120)]
CourseStr = Annotated[str, StringConstraints(strip_whitespace=True, max_length=120)]

CollectionStr = Literal["assessments", "technicalAssessments", "personalAssessments"]


# ── Profile ───────────────────────────────────────────────────────────
class StudentProfileOut(BaseModel):
    uid: str
    email: str
    first_name: str
    last_name: str
    course: str
    other_course: str | None
    is_enrolled: bool
    year_level: str
    career_path: str | None
    email_verified: bool
    provider: AuthProvider
    created_at: datetime

    model_config = {"from_attributes": True}


class StudentProfileUpdate(BaseModel):
    first_name: NameStr | None = None
    last_name: NameStr | None = None
    course: CourseStr | None = None
    other_course: CourseStr | None = None
    is_enrolled: bool | None = None
    year_level: CourseStr | None = None
    career_path: CourseStr | None = None


# ── Assessment results ────────────────────────────────────────────────
class ResultCreate(BaseModel):
    collection: CollectionStr
    assessment_key: Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=120)]
    score: float = Field(..., ge=0, le=100)
    correct_answers: int | None = Field(None, ge=0)
    total_questions: int | None = Field(None, ge=0)


class ResultOut(BaseModel):
    doc_id: str
    collection: str
    assessment_key: str
    attempt_number: int
    score: float
    correct_answers: int | None
    total_questions: int | None
    submitted_at: datetime

    model_config = {"from_attributes": True}


# ── Progress ──────────────────────────────────────────────────────────
class ImprovementOut(BaseModel):
    key: str
    name: str
    kind: str
    first_score: float
    last_score: float
    improvement: float
    percent_change: float
    attempts: int

    model_config = {"from_attributes": True}


class ProgressOut(BaseModel):
    improvements: list[ImprovementOut]
    academic_avg: int
    technical_avg: int
    overall_readiness: int
    skills_improved: int
    is_ready: bool
    completion_percent: int
    completed_assessments: int
    total_assessments: int
    threshold: int
