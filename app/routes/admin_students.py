from fastapi import APIRouter, Depends, Query
from fastapi.responses import StreamingResponse
from sqlalchemy.ext.asyncio import AsyncSession

from app.controllers import admin_controller as ctl
from app.core.database import get_db
from app.core.dependencies import get_current_admin
from app.schemas.analytics import AdminStudentDetail, AdminStudentList, PresenceCount, StudentAnalyticsOut
from app.services import presence

router = APIRouter(prefix="/admin", tags=["Admin - Students"])


@router.get("/students", response_model=AdminStudentList)
async def list_students(
    q: str | None = Query(None, description="Matches name, email or course."),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
    admin=Depends(get_current_admin),
):
    return await ctl.list_students(db, q, limit, offset)


@router.get("/students/{student_id}", response_model=AdminStudentDetail)
async def get_student(
    student_id: int,
    db: AsyncSession = Depends(get_db),
    admin=Depends(get_current_admin),
):
    return await ctl.get_student_detail(db, student_id)


@router.get("/analytics/students", response_model=StudentAnalyticsOut)
async def students_analytics(
    db: AsyncSession = Depends(get_db),
    admin=Depends(get_current_admin),
):
    return await ctl.build_analytics(db)


@router.get("/analytics/students.csv")
async def export_students_analytics(
    db: AsyncSession = Depends(get_db),
    admin=Depends(get_current_admin),
):
    body = await ctl.analytics_csv(db)
    return StreamingResponse(
        iter([body]),
        media_type="text/csv",
        headers={"Content-Disposition": "attachment; filename=student-analytics.csv"},
    )


@router.get("/presence/count", response_model=PresenceCount)
async def presence_count(
    db: AsyncSession = Depends(get_db),
    admin=Depends(get_current_admin),
):
    return PresenceCount(online=await presence.online_count(db))


@router.get("/presence/online")
async def presence_online(
    db: AsyncSession = Depends(get_db),
    admin=Depends(get_current_admin),
):
    return await presence.online_students(db)
