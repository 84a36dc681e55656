from fastapi import APIRouter, Depends, Response
from sqlalchemy.ext.asyncio import AsyncSession

from app.controllers import student_controller as ctl
from app.core.database import get_db
from app.core.dependencies import get_current_student
from app.models.student import Student
from app.schemas.student import ProgressOut, ResultCreate, ResultOut, StudentProfileOut, StudentProfileUpdate

router = APIRouter(prefix="/students/me", tags=["Students"])


@router.get("", response_model=StudentProfileOut)
async def get_profile(student: Student = Depends(get_current_student)):
    return student


@router.patch("", response_model=StudentProfileOut)
async def update_profile(
    payload: StudentProfileUpdate,
    db: AsyncSession = Depends(get_db),
    student: Student = Depends(get_current_student),
):
    return await ctl.update_profile(db, student, payload)


@router.post("/results", response_model=ResultOut, status_code=201)
async def submit_result(
    payload: ResultCreate,
    db: AsyncSession = Depends(get_db),
    student: Student = Depends(get_current_student),
):
    return await ctl.record_result(db, student, payload)


@router.get("/results", response_model=list[ResultOut])
async def list_results(
    db: AsyncSession = Depends(get_db),
    student: Student = Depends(get_current_student),
):
    return await ctl.list_results(db, student)


@router.get("/progress", response_model=ProgressOut)
async def progress(
    db: AsyncSession = Depends(get_db),
    student: Student = Depends(get_current_student),
):
    return await ctl.get_progress(db, student)


@router.get("/readiness-certificate")
async def readiness_certificate(
    db: AsyncSession = Depends(get_db),
    student: Student = Depends(get_current_student),
):
    pdf = await ctl.readiness_certificate(db, student)
    return Response(
        content=pdf,
        media_type="application/pdf",
        headers={"Content-Disposition": "attachment; filename=career-readiness-certificate.pdf"},
    )
