import csv
import io
import logging
from collections import defaultdict

from fastapi import HTTPException, status
from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.controllers.student_controller import list_results, to_attempt, total_assessments
from app.models.assessment import Assessment
from app.models.assessment_result import AssessmentResult
from app.models.student import Student
from app.schemas.analytics import (
    AdminStudentDetail,
    AdminStudentList,
    AdminStudentRow,
    StudentAnalyticsOut,
    StudentStatsOut,
)
from app.schemas.assessment import AssessmentCreate, AssessmentUpdate
from app.schemas.student import ResultOut, StudentProfileOut
from app.services.progress import Attempt, student_analytics

logger = logging.getLogger(__name__)

CSV_COLUMNS = [
    "name",
    "email",
    "academic_avg",
    "technical_avg",
    "overall_avg",
    "completion_rate",
    "total_attempts",
    "status",
    "needs_support",
]


# ─────────────────────────────────────────────────────────────
# STUDENTS
# ─────────────────────────────────────────────────────────────
async def list_students(db: AsyncSession, q: str | None, limit: int, offset: int) -> AdminStudentList:
    stmt = select(Student)
    if q and q.strip():
        like = f"%{q.strip().lower()}%"
        stmt = stmt.where(
            or_(
                func.lower(Student.email).like(like),
                func.lower(Student.first_name).like(like),
                func.lower(Student.last_name).like(like),
                func.lower(Student.course).like(like),
            )
        )

    total = (await db.execute(select(func.count()).select_from(stmt.subquery()))).scalar_one()

    students = (
        await db.execute(stmt.order_by(Student.created_at.desc(), Student.id.desc()).limit(limit).offset(offset))
    ).scalars().all()

    counts: dict[int, int] = {}
    if students:
        rows = await db.execute(
            select(AssessmentResult.student_id, func.count(AssessmentResult.id))
            .where(AssessmentResult.student_id.in_([s.id for s in students]))
            .group_by(AssessmentResult.student_id)
        )
        counts = {sid: n for sid, n in rows.all()}

    return AdminStudentList(
        total=total,
        items=[
            AdminStudentRow(
                id=s.id,
                uid=s.uid,
                name=s.display_name,
                email=s.email,
                course=s.course_label,
                year_level=s.year_level,
                is_active=s.is_active,
                email_verified=s.email_verified,
                results_count=counts.get(s.id, 0),
            )
            for s in students
        ],
    )


async def get_student_detail(db: AsyncSession, student_id: int) -> AdminStudentDetail:
    student = await db.get(Student, student_id)
    if student is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Student not found")

    results = await list_results(db, student)
    return AdminStudentDetail(
        id=student.id,
        profile=StudentProfileOut.model_validate(student),
        results=[ResultOut.model_validate(r) for r in results],
    )


# ─────────────────────────────────────────────────────────────
# ANALYTICS
# ─────────────────────────────────────────────────────────────
async def build_analytics(db: AsyncSession) -> StudentAnalyticsOut:
    students = (await db.execute(select(Student).order_by(Student.first_name, Student.last_name))).scalars().all()

    attempts: dict[int, list[Attempt]] = defaultdict(list)
    for row in (await db.execute(select(AssessmentResult))).scalars():
        attempts[row.student_id].append(to_attempt(row))

    total = await total_assessments(db)
    data = student_analytics(students, attempts, total)
    return StudentAnalyticsOut(
        students=[StudentStatsOut.model_validate(s) for s in data["students"]],
        summary=data["summary"],
        total_assessments=total,
    )


async def analytics_csv(db: AsyncSession) -> str:
    analytics = await build_analytics(db)

    buf = io.StringIO()
    w = csv.writer(buf)
    w.writerow(CSV_COLUMNS)
    for s in analytics.students:
        w.writerow(
            [
                s.name,
                s.email,
                s.academic_avg,
                s.technical_avg,
                s.overall_avg,
                s.completion_rate,
                s.total_attempts,
                s.status,
                "yes" if s.needs_support else "no",
            ]
        )
    return buf.getvalue()


# ─────────────────────────────────────────────────────────────
# ASSESSMENTS
# ─────────────────────────────────────────────────────────────
async def list_assessments(db: AsyncSession, include_inactive: bool = True) -> list[Assessment]:
    stmt = select(Assessment).order_by(Assessment.collection, Assessment.title)
    if not include_inactive:
        stmt = stmt.where(Assessment.is_active.is_(True))
    return list((await db.execute(stmt)).scalars().all())


async def create_assessment(db: AsyncSession, payload: AssessmentCreate) -> Assessment:
    existing = (
        await db.execute(
            select(Assessment).where(
                Assessment.collection == payload.collection,
                Assessment.assessment_key == payload.assessment_key,
            )
        )
    ).scalar_one_or_none()
    if existing:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Assessment already exists: {payload.collection}_{payload.assessment_key}",
        )

    assessment = Assessment(**payload.model_dump())
    db.add(assessment)
    await db.flush()
    logger.info("Assessment %s created", assessment.key)
    return assessment


async def update_assessment(db: AsyncSession, assessment_id: int, payload: AssessmentUpdate) -> Assessment:
    assessment = await db.get(Assessment, assessment_id)
    if assessment is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Assessment not found")

    for key, value in payload.model_dump(exclude_unset=True).items():
        if value is None and key in ("title", "question_count", "is_active"):
            continue
        setattr(assessment, key, value)
    await db.flush()
    return assessment
