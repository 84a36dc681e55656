import logging

import anyio
from fastapi import APIRouter, Depends, HTTPException, Query, WebSocket, WebSocketDisconnect, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import AsyncSessionLocal, get_db
from app.core.dependencies import get_current_student, student_from_token
from app.models.student import Student
from app.schemas.analytics import PresenceCount
from app.services import presence

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/presence", tags=["Presence"])


@router.get("/count", response_model=PresenceCount)
async def online_count(
    db: AsyncSession = Depends(get_db),
    student: Student = Depends(get_current_student),
):
    return PresenceCount(online=await presence.online_count(db))


@router.websocket("/ws")
async def presence_socket(websocket: WebSocket, token: str | None = Query(None)):
    """
    Holds one presence row open for as long as the socket lives. Any message
    from the client counts as a heartbeat and is answered with the current
    online count. A client that stays silent past the stale window stops
    being counted even if its socket never closes cleanly.
    """
    async with AsyncSessionLocal() as db:
        try:
            student = await student_from_token(token, db)
        except HTTPException:
            await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
            return
        await presence.sweep(db)
        connection_id = await presence.connect(db, student)
        await db.commit()

    try:
        await websocket.accept()
        async with AsyncSessionLocal() as db:
            online = await presence.online_count(db)
        await websocket.send_json({"type": "presence", "online": online})

        while True:
            await websocket.receive_text()
            async with AsyncSessionLocal() as db:
                if not await presence.heartbeat(db, connection_id):
                    # swept while the client was quiet
                    connection_id = await presence.connect(db, student)
                await db.commit()
                online = await presence.online_count(db)
            await websocket.send_json({"type": "presence", "online": online})
    except WebSocketDisconnect:
        pass
    finally:
        # a cancelled handler must still drop its row
        with anyio.CancelScope(shield=True):
            async with AsyncSessionLocal() as db:
                await presence.disconnect(db, connection_id)
                await db.commit()
