from fastapi import HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.notification import Notification
from app.models.student import Student
from app.schemas.notification import MarkedRead, UnreadCount
from app.services import notifications


def _not_found() -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Notification not found")


async def list_notifications(db: AsyncSession, student: Student, limit: int) -> list[Notification]:
    return await notifications.list_for(db, student.id, limit)


async def unread_count(db: AsyncSession, student: Student) -> UnreadCount:
    return UnreadCount(unread=await notifications.unread_count(db, student.id))


async def check(db: AsyncSession, student: Student) -> list[Notification]:
    """Run the reminder and milestone checks a client triggers when it loads."""
    return await notifications.refresh(db, student)


async def mark_read(db: AsyncSession, student: Student, notification_id: int) -> Notification:
    row = await notifications.mark_read(db, student.id, notification_id)
    if row is None:
        raise _not_found()
    return row


async def mark_all_read(db: AsyncSession, student: Student) -> MarkedRead:
    return MarkedRead(updated=await notifications.mark_all_read(db, student.id))


async def delete(db: AsyncSession, student: Student, notification_id: int) -> None:
    if not await notifications.remove(db, student.id, notification_id):
        raise _not_found()
