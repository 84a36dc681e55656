from pydantic import BaseModel

from app.schemas.student import ResultOut, StudentProfileOut


class StudentStatsOut(BaseModel):
    student_id: int
    name: str
    email: str
    academic_avg: int
    technical_avg: int
    overall_avg: int
    completion_rate: int
    total_attempts: int
    status: str
    needs_support: bool

    model_config = {"from_attributes": True}


class CohortSummaryOut(BaseModel):
    total_students: int
    active_students: int
    academic_avg: int
    technical_avg: int
    overall_avg: int
    avg_completion_rate: int
    needs_support: int
    status_counts: dict[str, int]


class StudentAnalyticsOut(BaseModel):
    students: list[StudentStatsOut]
    summary: CohortSummaryOut
    total_assessments: int


class AdminStudentRow(BaseModel):
    id: int
    uid: str
    name: str
    email: str
    course: str
    year_level: str
    is_active: bool
    email_verified: bool
    results_count: int


class AdminStudentList(BaseModel):
    total: int
    items: list[AdminStudentRow]


class AdminStudentDetail(BaseModel):
    id: int
    profile: StudentProfileOut
    results: list[ResultOut]


class PresenceCount(BaseModel):
    online: int
