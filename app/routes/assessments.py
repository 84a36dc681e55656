from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.controllers import admin_controller as ctl
from app.core.database import get_db
from app.core.dependencies import get_current_admin, get_current_student
from app.schemas.assessment import AssessmentCreate, AssessmentOut, AssessmentUpdate

router = APIRouter(prefix="/admin/assessments", tags=["Admin - Assessments"])
student_router = APIRouter(prefix="/assessments", tags=["Assessments"])


@router.get("", response_model=list[AssessmentOut])
async def list_assessments(
    include_inactive: bool = Query(True),
    db: AsyncSession = Depends(get_db),
    admin=Depends(get_current_admin),
):
    return await ctl.list_assessments(db, include_inactive)


@router.post("", response_model=AssessmentOut, status_code=201)
async def create_assessment(
    payload: AssessmentCreate,
    db: AsyncSession = Depends(get_db),
    admin=Depends(get_current_admin),
):
    return await ctl.create_assessment(db, payload)


@router.patch("/{assessment_id}", response_model=AssessmentOut)
async def update_assessment(
    assessment_id: int,
    payload: AssessmentUpdate,
    db: AsyncSession = Depends(get_db),
    admin=Depends(get_current_admin),
):
    return await ctl.update_assessment(db, assessment_id, payload)


@student_router.get("", response_model=list[AssessmentOut])
async def active_assessments(
    db: AsyncSession = Depends(get_db),
    student=Depends(get_current_student),
):
    return await ctl.list_assessments(db, include_inactive=False)
