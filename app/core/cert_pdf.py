# app/core/cert_pdf.py
import io

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4, landscape
from reportlab.lib.units import mm
from reportlab.pdfgen import canvas

BRAND = colors.HexColor("#667eea")
INK = colors.HexColor("#1f2937")
MUTED = colors.HexColor("#6b7280")


def _stat(c: canvas.Canvas, x: float, y: float, label: str, value: str) -> None:
    c.setFont("Helvetica-Bold", 22)
    c.setFillColor(BRAND)
    c.drawCentredString(x, y, value)
    c.setFont("Helvetica", 10)
    c.setFillColor(MUTED)
    c.drawCentredString(x, y - 7 * mm, label)


def build_readiness_certificate(
    *,
    student_name: str,
    course: str,
    issue_date: str,
    overall_readiness: int,
    academic_avg: int,
    technical_avg: int,
    skills_improved: int,
    certificate_no: str,
) -> bytes:
    """Landscape A4 career-readiness certificate. Returns PDF bytes."""
    buf = io.BytesIO()
    page = landscape(A4)
    c = canvas.Canvas(buf, pagesize=page)
    w, h = page

    # border
    c.setStrokeColor(BRAND)
    c.setLineWidth(3)
    c.rect(10 * mm, 10 * mm, w - 20 * mm, h - 20 * mm)
    c.setLineWidth(1)
    c.rect(14 * mm, 14 * mm, w - 28 * mm, h - 28 * mm)

    c.setFillColor(BRAND)
    c.setFont("Helvetica-Bold", 30)
    c.drawCentredString(w / 2, h - 45 * mm, "CAREER READINESS CERTIFICATE")

    c.setFillColor(MUTED)
    c.setFont("Helvetica", 10)
    c.drawString(22 * mm, h - 25 * mm, f"Certificate No: {certificate_no}")
    c.drawRightString(w - 22 * mm, h - 25 * mm, f"Date: {issue_date}")

    y = h - 70 * mm
    lines = [
        ("Helvetica", 14, "This is to certify that"),
        ("Helvetica-Bold", 26, student_name),
        ("Helvetica", 14, f"of {course}" if course else ""),
        ("Helvetica", 14, "has demonstrated career readiness through consistent improvement"),
        ("Helvetica", 14, "across academic and technical assessments."),
    ]
    c.setFillColor(INK)
    for i, (font, size, text) in enumerate(lines):
        if not text:
            continue
        c.setFont(font, size)
        c.drawCentredString(w / 2, y - i * 11 * mm, text)

    stats_y = 48 * mm
    step = (w - 60 * mm) / 4
    for i, (label, value) in enumerate(
        [
            ("Overall Readiness", f"{overall_readiness}%"),
            ("Academic Average", f"{academic_avg}%"),
            ("Technical Average", f"{technical_avg}%"),
            ("Skills Improved", str(skills_improved)),
        ]
    ):
        _stat(c, 30 * mm + step * (i + 0.5), stats_y, label, value)

    c.setFont("Helvetica-Oblique", 9)
    c.setFillColor(MUTED)
    c.drawCentredString(w / 2, 20 * mm, "DevPath Career Guidance")

    c.showPage()
    c.save()
    return buf.getvalue()
