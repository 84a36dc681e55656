from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.ext.asyncio import AsyncSession

from app.controllers import notification_controller as ctl
from app.core.database import get_db
from app.core.dependencies import get_current_student
from app.models.student import Student
from app.schemas.notification import MarkedRead, NotificationOut, UnreadCount

router = APIRouter(prefix="/students/me/notifications", tags=["Notifications"])


@router.get("", response_model=list[NotificationOut])
async def list_notifications(
    limit: int = Query(50, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    student: Student = Depends(get_current_student),
):
    return await ctl.list_notifications(db, student, limit)


@router.get("/unread-count", response_model=UnreadCount)
async def unread_count(
    db: AsyncSession = Depends(get_db),
    student: Student = Depends(get_current_student),
):
    return await ctl.unread_count(db, student)


@router.post("/check", response_model=list[NotificationOut])
async def check(
    db: AsyncSession = Depends(get_db),
    student: Student = Depends(get_current_student),
):
    return await ctl.check(db, student)


@router.post("/read-all", response_model=MarkedRead)
async def mark_all_read(
    db: AsyncSession = Depends(get_db),
    student: Student = Depends(get_current_student),
):
    return await ctl.mark_all_read(db, student)


@router.post("/{notification_id}/read", response_model=NotificationOut)
async def mark_read(
    notification_id: int,
    db: AsyncSession = Depends(get_db),
    student: Student = Depends(get_current_student),
):
    return await ctl.mark_read(db, student, notification_id)


@router.delete("/{notification_id}", status_code=204)
async def delete_notification(
    notification_id: int,
    db: AsyncSession = Depends(get_db),
    student: Student = Depends(get_current_student),
):
    await ctl.delete(db, student, notification_id)
    return Response(status_code=204)
