"""
Score aggregation over assessment attempts.

Attempts are identified by ``<collection>_<assessmentId>_<attempt>``; dropping
the trailing attempt number gives the key all attempts of one assessment
share.
"""
import math
import re
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Iterable

ACADEMIC_PREFIX = "assessments_"
TECHNICAL_PREFIX = "technicalAssessments_"
PERSONAL_PREFIX = "personalAssessments_"

_ATTEMPT_SUFFIX = re.compile(r"_\d+$")
_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


@dataclass
class Attempt:
    doc_id: str
    score: float
    submitted_at: datetime | None = None

    @property
    def assessment_key(self) -> str:
        return assessment_key(self.doc_id)


@dataclass
class Improvement:
    key: str
    name: str
    kind: str
    first_score: float
    last_score: float
    improvement: float
    percent_change: float
    attempts: int


@dataclass
class ImprovementSummary:
    improvements: list[Improvement] = field(default_factory=list)
    academic_avg: int = 0
    technical_avg: int = 0
    overall_readiness: int = 0
    skills_improved: int = 0
    is_ready: bool = False


@dataclass
class StudentStats:
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


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def assessment_key(doc_id: str) -> str:
    return _ATTEMPT_SUFFIX.sub("", doc_id)


def assessment_kind(key: str) -> str:
    if key.startswith(ACADEMIC_PREFIX):
        return "academic"
    if key.startswith(TECHNICAL_PREFIX):
        return "technical"
    if key.startswith(PERSONAL_PREFIX):
        return "personal"
    return "other"


def format_assessment_name(key: str) -> str:
    for prefix in (TECHNICAL_PREFIX, PERSONAL_PREFIX, ACADEMIC_PREFIX):
        if key.startswith(prefix):
            key = key[len(prefix):]
            break
    words = [w for w in key.replace("_", " ").split(" ") if w]
    return " ".join(w[:1].upper() + w[1:] for w in words)


def _when(a: Attempt) -> datetime:
    ts = a.submitted_at or _EPOCH
    return ts if ts.tzinfo else ts.replace(tzinfo=timezone.utc)


def group_attempts(attempts: Iterable[Attempt]) -> dict[str, list[Attempt]]:
    """Attempts per assessment key, oldest first."""
    grouped: dict[str, list[Attempt]] = defaultdict(list)
    for a in attempts:
        grouped[a.assessment_key].append(a)
    return {k: sorted(v, key=_when) for k, v in grouped.items()}


def average(values: Iterable[float]) -> int:
    values = list(values)
    if not values:
        return 0
    return round_half_up(sum(values) / len(values))


def completion_percent(completed: int, total: int) -> int:
    if total <= 0:
        return 0
    return min(100, round_half_up(completed / total * 100))


def improvement_summary(attempts: Iterable[Attempt], threshold: int = 70) -> ImprovementSummary:
    """
    First-versus-latest score per assessment taken at least twice.

    Readiness needs every latest score and the overall average at or above
    ``threshold``; with nothing retaken yet the student is not ready.
    """
    improvements = []
    academic, technical = [], []
    improved = 0

    for key, history in group_attempts(attempts).items():
        if len(history) < 2:
            continue
        first, last = history[0].score, history[-1].score
        delta = last - first
        if delta > 0:
            improved += 1

        kind = assessment_kind(key)
        if kind == "academic":
            academic.append(last)
        elif kind == "technical":
            technical.append(last)

        improvements.append(
            Improvement(
                key=key,
                name=format_assessment_name(key),
                kind=kind,
                first_score=first,
                last_score=last,
                improvement=delta,
                percent_change=round(delta / first * 100, 1) if first > 0 else 0.0,
                attempts=len(history),
            )
        )

    improvements.sort(key=lambda i: abs(i.improvement), reverse=True)

    academic_avg = average(academic)
    technical_avg = average(technical)
    overall = round_half_up((academic_avg + technical_avg) / 2)

    return ImprovementSummary(
        improvements=improvements,
        academic_avg=academic_avg,
        technical_avg=technical_avg,
        overall_readiness=overall,
        skills_improved=improved,
        is_ready=bool(improvements)
        and all(i.last_score >= threshold for i in improvements)
        and overall >= threshold,
    )


def _status(overall: int, total_attempts: int) -> tuple[str, bool]:
    if total_attempts == 0:
        return "inactive", False
    if overall >= 80:
        return "excellent", False
    if overall < 50:
        return "struggling", True
    return "active", False


def student_stats(
    student_id: int,
    name: str,
    email: str,
    attempts: list[Attempt],
    total_assessments: int,
) -> StudentStats:
    academic = [a.score for a in attempts if a.doc_id.startswith(ACADEMIC_PREFIX)]
    technical = [a.score for a in attempts if a.doc_id.startswith(TECHNICAL_PREFIX)]
    completed = len({a.assessment_key for a in attempts})
    overall = average(academic + technical)
    status, needs_support = _status(overall, len(attempts))

    return StudentStats(
        student_id=student_id,
        name=name,
        email=email,
        academic_avg=average(academic),
        technical_avg=average(technical),
        overall_avg=overall,
        completion_rate=completion_percent(completed, total_assessments),
        total_attempts=len(attempts),
        status=status,
        needs_support=needs_support,
    )


def cohort_summary(stats: list[StudentStats]) -> dict:
    active = [s for s in stats if s.total_attempts > 0]
    return {
        "total_students": len(stats),
        "active_students": len(active),
        "academic_avg": average(s.academic_avg for s in active),
        "technical_avg": average(s.technical_avg for s in active),
        "overall_avg": average(s.overall_avg for s in active),
        "avg_completion_rate": average(s.completion_rate for s in stats),
        "needs_support": sum(1 for s in stats if s.needs_support),
        "status_counts": {
            status: sum(1 for s in stats if s.status == status)
            for status in ("excellent", "active", "struggling", "inactive")
        },
    }


def student_analytics(students, attempts_by_student: dict[int, list[Attempt]], total_assessments: int) -> dict:
    """Per-student stats plus cohort averages for the admin dashboard."""
    stats = [
        student_stats(
            s.id,
            s.display_name,
            s.email,
            attempts_by_student.get(s.id, []),
            total_assessments,
        )
        for s in students
    ]
    return {"students": stats, "summary": cohort_summary(stats)}
