from datetime import datetime
from typing import Annotated, Literal

from pydantic import BaseModel, Field, StringConstraints

KeyStr = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=120, pattern=r"^[A-Za-z0-9_-]+$")]
TitleStr = Annotated[str, StringConstraints(strip_whitespace=True, min_length=2, max_length=255)]


class AssessmentCreate(BaseModel):
    collection: Literal["assessments", "technicalAssessments", "personalAssessments"]
    assessment_key: KeyStr
    title: TitleStr
    description: str | None = None
    category: str | None = None
    question_count: int = Field(0, ge=0)
    is_active: bool = True


class AssessmentUpdate(BaseModel):
    title: TitleStr | None = None
    description: str | None = None
    category: str | None = None
    question_count: int | None = Field(None, ge=0)
    is_active: bool | None = None


class AssessmentOut(BaseModel):
    id: int
    collection: str
    assessment_key: str
    key: str
    title: str
    description: str | None
    category: str | None
    question_count: int
    is_active: bool
    created_at: datetime

    model_config = {"from_attributes": True}
