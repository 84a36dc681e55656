import logging
from datetime import datetime, timezone

from fastapi import HTTPException, status
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.cert_pdf import build_readiness_certificate
from app.core.config import settings
from app.models.assessment import Assessment
from app.models.assessment_result import AssessmentResult, result_doc_id
from app.models.student import OTHER_COURSE, Student
from app.schemas.student import ImprovementOut, ProgressOut, ResultCreate, StudentProfileUpdate
from app.services import notifications
from app.services.progress import Attempt, completion_percent, improvement_summary

logger = logging.getLogger(__name__)


def to_attempt(row: AssessmentResult) -> Attempt:
    return Attempt(doc_id=row.doc_id, score=row.score, submitted_at=row.submitted_at)


async def total_assessments(db: AsyncSession) -> int:
    """Active assessment definitions; falls back to the configured count when none are defined."""
    res = await db.execute(select(func.count(Assessment.id)).where(Assessment.is_active.is_(True)))
    return int(res.scalar_one() or 0) or settings.TOTAL_ASSESSMENTS_FALLBACK


# ─────────────────────────────────────────────────────────────
# PROFILE
# ─────────────────────────────────────────────────────────────
async def update_profile(db: AsyncSession, student: Student, payload: StudentProfileUpdate) -> Student:
    data = payload.model_dump(exclude_unset=True)

    for key, value in data.items():
        if value is None and key not in ("other_course", "career_path"):
            continue
        setattr(student, key, value)

    if student.course == OTHER_COURSE and not (student.other_course or "").strip():
        raise HTTPException(status_code=422, detail="Please specify your course.")
    if student.course != OTHER_COURSE:
        student.other_course = None

    student.updated_at = datetime.now(timezone.utc)
    await db.flush()
    return student


# ─────────────────────────────────────────────────────────────
# RESULTS
# ─────────────────────────────────────────────────────────────
async def list_results(db: AsyncSession, student: Student) -> list[AssessmentResult]:
    res = await db.execute(
        select(AssessmentResult)
        .where(AssessmentResult.student_id == student.id)
        .order_by(AssessmentResult.submitted_at.asc(), AssessmentResult.id.asc())
    )
    return list(res.scalars().all())


async def record_result(db: AsyncSession, student: Student, payload: ResultCreate) -> AssessmentResult:
    """Store one attempt; attempt numbers run 1, 2, 3... per student and assessment."""
    res = await db.execute(
        select(func.max(AssessmentResult.attempt_number)).where(
            AssessmentResult.student_id == student.id,
            AssessmentResult.collection == payload.collection,
            AssessmentResult.assessment_key == payload.assessment_key,
        )
    )
    attempt = int(res.scalar_one() or 0) + 1

    row = AssessmentResult(
        student_id=student.id,
        doc_id=result_doc_id(payload.collection, payload.assessment_key, attempt),
        collection=payload.collection,
        assessment_key=payload.assessment_key,
        attempt_number=attempt,
        score=payload.score,
        correct_answers=payload.correct_answers,
        total_questions=payload.total_questions,
        submitted_at=datetime.now(timezone.utc),
    )
    db.add(row)
    try:
        await db.flush()
    except IntegrityError:
        # two submissions raced for the same attempt number
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Duplicate submission, please retry")

    logger.info("Result %s stored for student %s (score=%s)", row.doc_id, student.uid, row.score)
    await notifications.check_milestones(db, student)
    await notifications.check_career_match(db, student)
    return row


# ─────────────────────────────────────────────────────────────
# PROGRESS
# ─────────────────────────────────────────────────────────────
async def get_progress(db: AsyncSession, student: Student) -> ProgressOut:
    rows = await list_results(db, student)
    attempts = [to_attempt(r) for r in rows]
    summary = improvement_summary(attempts, settings.READINESS_THRESHOLD)

    total = await total_assessments(db)
    completed = len({a.assessment_key for a in attempts})

    return ProgressOut(
        improvements=[ImprovementOut.model_validate(i) for i in summary.improvements],
        academic_avg=summary.academic_avg,
        technical_avg=summary.technical_avg,
        overall_readiness=summary.overall_readiness,
        skills_improved=summary.skills_improved,
        is_ready=summary.is_ready,
        completion_percent=completion_percent(completed, total),
        completed_assessments=completed,
        total_assessments=total,
        threshold=settings.READINESS_THRESHOLD,
    )


async def readiness_certificate(db: AsyncSession, student: Student) -> bytes:
    progress = await get_progress(db, student)
    if not progress.is_ready:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"Certificate unlocks once every retaken assessment and your overall readiness reach {progress.threshold}%.",
        )

    now = datetime.now(timezone.utc)
    return build_readiness_certificate(
        student_name=student.display_name,
        course=student.course_label,
        issue_date=now.strftime("%B %d, %Y"),
        overall_readiness=progress.overall_readiness,
        academic_avg=progress.academic_avg,
        technical_avg=progress.technical_avg,
        skills_improved=progress.skills_improved,
        certificate_no=f"DP-{now:%Y%m%d}-{student.uid[:8].upper()}",
    )
