"""
Who is online right now.

Each open socket owns one ``presence_connections`` row. A student with two
tabs open has two rows but counts once. Clients heartbeat over the socket;
a row whose ``last_seen`` is older than the stale window no longer counts,
and is deleted by the next ``sweep``.
"""
import logging
import secrets
from datetime import datetime, timedelta, timezone

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.models.presence import PresenceConnection
from app.models.student import Student

logger = logging.getLogger(__name__)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _cutoff(now: datetime | None, stale_after: timedelta | None) -> datetime:
    if stale_after is None:
        stale_after = timedelta(seconds=settings.PRESENCE_STALE_SECONDS)
    return (now or _now()) - stale_after


async def connect(db: AsyncSession, student: Student, now: datetime | None = None) -> str:
    connection_id = secrets.token_hex(16)
    db.add(
        PresenceConnection(
            connection_id=connection_id,
            student_id=student.id,
            name=student.display_name,
            email=student.email,
            status="online",
            last_seen=now or _now(),
        )
    )
    await db.flush()
    logger.debug("Presence connect %s for student %s", connection_id, student.uid)
    return connection_id


async def heartbeat(db: AsyncSession, connection_id: str, now: datetime | None = None) -> bool:
    """Refresh ``last_seen``. False if the row is gone (swept or closed)."""
    row = await db.get(PresenceConnection, connection_id)
    if row is None:
        return False
    row.last_seen = now or _now()
    await db.flush()
    return True


async def disconnect(db: AsyncSession, connection_id: str) -> None:
    await db.execute(delete(PresenceConnection).where(PresenceConnection.connection_id == connection_id))
    await db.flush()
    logger.debug("Presence disconnect %s", connection_id)


async def sweep(db: AsyncSession, now: datetime | None = None, stale_after: timedelta | None = None) -> int:
    """Delete rows left behind by sockets that died without closing."""
    res = await db.execute(
        delete(PresenceConnection).where(PresenceConnection.last_seen < _cutoff(now, stale_after))
    )
    await db.flush()
    if res.rowcount:
        logger.info("Swept %d stale presence rows", res.rowcount)
    return res.rowcount or 0


async def online_count(db: AsyncSession, now: datetime | None = None, stale_after: timedelta | None = None) -> int:
    res = await db.execute(
        select(func.count(func.distinct(PresenceConnection.student_id))).where(
            PresenceConnection.last_seen >= _cutoff(now, stale_after)
        )
    )
    return int(res.scalar_one() or 0)


async def online_students(
    db: AsyncSession, now: datetime | None = None, stale_after: timedelta | None = None
) -> list[dict]:
    res = await db.execute(
        select(PresenceConnection.student_id, PresenceConnection.name, func.max(PresenceConnection.last_seen))
        .where(PresenceConnection.last_seen >= _cutoff(now, stale_after))
        .group_by(PresenceConnection.student_id, PresenceConnection.name)
        .order_by(PresenceConnection.name)
    )
    return [{"student_id": sid, "name": name, "last_seen": seen} for sid, name, seen in res.all()]
