"""
In-app notifications, generated from a student's assessment results.

Milestones fire once each (tracked by ``dedupe_key``). Reminders repeat, but
never more often than their throttle window.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.models.assessment_result import AssessmentResult
from app.models.notification import Notification
from app.models.student import Student
from app.services.progress import Attempt, assessment_key, format_assessment_name, improvement_summary

logger = logging.getLogger(__name__)

MILESTONE = "milestone"
ASSESSMENT_REMINDER = "assessment_reminder"
CAREER_MATCH = "career_match"

REMINDER_EVERY = timedelta(days=7)
CAREER_MATCH_EVERY = timedelta(days=1)
CAREER_MATCH_MIN_RESULTS = 3
IMPROVEMENT_PERCENT = 20


@dataclass(frozen=True)
class Template:
    title: str
    message: str
    link: str
    priority: str = "medium"


# attempt count -> milestone
COUNT_MILESTONES = {
    1: (
        "first_assessment",
        Template(
            "First Assessment Complete!",
            "Congratulations on completing your first assessment! You're on your way to discovering your ideal career path.",
            "/student/progress",
            "high",
        ),
    ),
    5: (
        "five_assessments",
        Template(
            "5 Assessments Completed!",
            "Amazing progress! You've completed 5 assessments. Keep up the great work!",
            "/student/progress",
            "high",
        ),
    ),
    10: (
        "ten_assessments",
        Template(
            "10 Assessments Milestone!",
            "Incredible achievement! You've completed 10 assessments. You're becoming an expert!",
            "/student/progress",
            "high",
        ),
    ),
}

PERFECT_SCORE = Template(
    "Perfect Score!",
    "Outstanding! You achieved a perfect score on {name}.",
    "/student/progress",
    "high",
)

SCORE_IMPROVEMENT = Template(
    "Score Improved by {percent}%!",
    "Great job! Your {name} score went from {first:g} to {last:g}. Your hard work is paying off!",
    "/student/progress",
)

CAREER_READY = Template(
    "Your Readiness Certificate Is Unlocked!",
    "Every retaken assessment is at or above {threshold}%. Download your career readiness certificate.",
    "/student/progress",
    "high",
)

START_YOUR_JOURNEY = Template(
    "Start Your Journey",
    "Take your first assessment to discover your career path and unlock personalized recommendations.",
    "/assessments",
    "high",
)

CAREER_MATCHES_READY = Template(
    "Your Career Matches Are Ready!",
    "Discover careers that align with your strengths and skills. Check out your personalized career recommendations now.",
    "/career-matches",
    "high",
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _aware(dt: datetime) -> datetime:
    # SQLite hands back naive datetimes even for timezone=True columns
    return dt if dt.tzinfo else dt.replace(tzinfo=timezone.utc)


# ─────────────────────────────────────────────────────────────
# CRUD
# ─────────────────────────────────────────────────────────────
async def create(
    db: AsyncSession,
    student_id: int,
    type: str,
    template: Template,
    *,
    dedupe_key: str | None = None,
    now: datetime | None = None,
    **fields,
) -> Notification:
    row = Notification(
        student_id=student_id,
        type=type,
        dedupe_key=dedupe_key,
        title=template.title.format(**fields),
        message=template.message.format(**fields),
        link=template.link,
        priority=template.priority,
        read=False,
        created_at=now or _utcnow(),
    )
    db.add(row)
    await db.flush()
    logger.info("Notification %s (%s) for student %s", type, dedupe_key or "-", student_id)
    return row


async def list_for(db: AsyncSession, student_id: int, limit: int = 50) -> list[Notification]:
    res = await db.execute(
        select(Notification)
        .where(Notification.student_id == student_id)
        .order_by(Notification.created_at.desc(), Notification.id.desc())
        .limit(limit)
    )
    return list(res.scalars().all())


async def unread_count(db: AsyncSession, student_id: int) -> int:
    res = await db.execute(
        select(func.count(Notification.id)).where(
            Notification.student_id == student_id,
            Notification.read.is_(False),
        )
    )
    return int(res.scalar_one() or 0)


async def _owned(db: AsyncSession, student_id: int, notification_id: int) -> Notification | None:
    row = await db.get(Notification, notification_id)
    if row is None or row.student_id != student_id:
        return None
    return row


async def mark_read(
    db: AsyncSession, student_id: int, notification_id: int, now: datetime | None = None
) -> Notification | None:
    row = await _owned(db, student_id, notification_id)
    if row is None:
        return None
    if not row.read:
        row.read = True
        row.read_at = now or _utcnow()
        await db.flush()
    return row


async def mark_all_read(db: AsyncSession, student_id: int, now: datetime | None = None) -> int:
    res = await db.execute(
        update(Notification)
        .where(Notification.student_id == student_id, Notification.read.is_(False))
        .values(read=True, read_at=now or _utcnow())
        .execution_options(synchronize_session=False)
    )
    await db.flush()
    return res.rowcount or 0


async def remove(db: AsyncSession, student_id: int, notification_id: int) -> bool:
    res = await db.execute(
        delete(Notification).where(
            Notification.id == notification_id,
            Notification.student_id == student_id,
        )
    )
    await db.flush()
    return bool(res.rowcount)


# ─────────────────────────────────────────────────────────────
# GENERATION
# ─────────────────────────────────────────────────────────────
async def _existing_keys(db: AsyncSession, student_id: int) -> set[str]:
    res = await db.execute(
        select(Notification.dedupe_key).where(
            Notification.student_id == student_id,
            Notification.dedupe_key.is_not(None),
        )
    )
    return set(res.scalars().all())


async def _last_created(db: AsyncSession, student_id: int, type: str) -> datetime | None:
    res = await db.execute(
        select(func.max(Notification.created_at)).where(
            Notification.student_id == student_id,
            Notification.type == type,
        )
    )
    last = res.scalar_one_or_none()
    return _aware(last) if last is not None else None


async def _results(db: AsyncSession, student_id: int) -> list[AssessmentResult]:
    res = await db.execute(
        select(AssessmentResult)
        .where(AssessmentResult.student_id == student_id)
        .order_by(AssessmentResult.submitted_at.asc(), AssessmentResult.id.asc())
    )
    return list(res.scalars().all())


async def check_milestones(db: AsyncSession, student: Student, now: datetime | None = None) -> list[Notification]:
    """Create every milestone the student has reached but not yet been told about."""
    results = await _results(db, student.id)
    seen = await _existing_keys(db, student.id)
    created = []

    async def once(key: str, template: Template, **fields) -> None:
        if key in seen:
            return
        seen.add(key)
        created.append(await create(db, student.id, MILESTONE, template, dedupe_key=key, now=now, **fields))

    for threshold, (name, template) in COUNT_MILESTONES.items():
        if len(results) >= threshold:
            await once(f"milestone:{name}", template)

    for row in results:
        if row.score >= 100:
            name = format_assessment_name(assessment_key(row.doc_id))
            await once(f"perfect_score:{row.doc_id}", PERFECT_SCORE, name=name)

    summary = improvement_summary(
        [Attempt(doc_id=r.doc_id, score=r.score, submitted_at=r.submitted_at) for r in results],
        settings.READINESS_THRESHOLD,
    )
    for imp in summary.improvements:
        if imp.percent_change >= IMPROVEMENT_PERCENT:
            await once(
                f"score_improvement:{imp.key}",
                SCORE_IMPROVEMENT,
                percent=IMPROVEMENT_PERCENT,
                name=imp.name,
                first=imp.first_score,
                last=imp.last_score,
            )
    if summary.is_ready:
        await once("milestone:career_ready", CAREER_READY, threshold=settings.READINESS_THRESHOLD)

    return created


async def check_assessment_reminder(
    db: AsyncSession, student: Student, now: datetime | None = None
) -> Notification | None:
    """Nudge a student with no results yet, at most once every seven days."""
    now = now or _utcnow()
    res = await db.execute(
        select(func.count(AssessmentResult.id)).where(AssessmentResult.student_id == student.id)
    )
    if res.scalar_one():
        return None

    last = await _last_created(db, student.id, ASSESSMENT_REMINDER)
    if last is not None and now - last < REMINDER_EVERY:
        return None
    return await create(db, student.id, ASSESSMENT_REMINDER, START_YOUR_JOURNEY, now=now)


async def check_career_match(db: AsyncSession, student: Student, now: datetime | None = None) -> Notification | None:
    """Point a student with a chosen career path and enough results at their matches, at most daily."""
    now = now or _utcnow()
    if not student.career_path:
        return None
    res = await db.execute(
        select(func.count(AssessmentResult.id)).where(AssessmentResult.student_id == student.id)
    )
    if res.scalar_one() < CAREER_MATCH_MIN_RESULTS:
        return None

    last = await _last_created(db, student.id, CAREER_MATCH)
    if last is not None and now - last < CAREER_MATCH_EVERY:
        return None
    return await create(db, student.id, CAREER_MATCH, CAREER_MATCHES_READY, now=now)


async def refresh(db: AsyncSession, student: Student, now: datetime | None = None) -> list[Notification]:
    """Run every generator for ``student``; returns what was newly created."""
    created = await check_milestones(db, student, now)
    for check in (check_assessment_reminder, check_career_match):
        row = await check(db, student, now)
        if row is not None:
            created.append(row)
    return created
