from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio
from starlette.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from app.core.database import AsyncSessionLocal
from app.core.security import create_access_token, hash_password
from app.main import app
from app.models.student import AuthProvider, Student
from app.services import presence

T0 = datetime(2025, 1, 1, 12, 0, tzinfo=timezone.utc)
STALE = timedelta(seconds=90)


@pytest_asyncio.fixture
async def ana(db_tables):
    async with AsyncSessionLocal() as s:
        student = Student(
            email="ana@example.com",
            password_hash=hash_password("Passw0rdX"),
            provider=AuthProvider.PASSWORD,
            first_name="Ana",
            last_name="Reyes",
        )
        s.add(student)
        await s.commit()
        return student


async def test_silent_connection_stops_counting(ana):
    async with AsyncSessionLocal() as s:
        await presence.connect(s, ana, now=T0)
        await s.commit()

        assert await presence.online_count(s, now=T0 + timedelta(seconds=60), stale_after=STALE) == 1
        assert await presence.online_count(s, now=T0 + timedelta(seconds=91), stale_after=STALE) == 0
        assert await presence.online_students(s, now=T0 + timedelta(seconds=91), stale_after=STALE) == []


async def test_heartbeat_keeps_connection_alive(ana):
    async with AsyncSessionLocal() as s:
        conn = await presence.connect(s, ana, now=T0)
        assert await presence.heartbeat(s, conn, now=T0 + timedelta(seconds=80))
        await s.commit()

        assert await presence.online_count(s, now=T0 + timedelta(seconds=150), stale_after=STALE) == 1


async def test_sweep_deletes_only_stale_rows(ana):
    async with AsyncSessionLocal() as s:
        dead = await presence.connect(s, ana, now=T0)
        live = await presence.connect(s, ana, now=T0 + timedelta(seconds=100))
        await s.commit()

        assert await presence.sweep(s, now=T0 + timedelta(seconds=120), stale_after=STALE) == 1
        await s.commit()

        assert not await presence.heartbeat(s, dead)
        assert await presence.heartbeat(s, live)


def test_socket_counts_while_open_and_cleans_up_on_close(ana):
    token = create_access_token(ana.uid, "student", ana.email)
    headers = {"Authorization": f"Bearer {token}"}
    client = TestClient(app)

    with client.websocket_connect(f"/api/presence/ws?token={token}") as ws:
        assert ws.receive_json() == {"type": "presence", "online": 1}
        assert client.get("/api/presence/count", headers=headers).json() == {"online": 1}

        ws.send_text("ping")
        assert ws.receive_json() == {"type": "presence", "online": 1}

    assert client.get("/api/presence/count", headers=headers).json() == {"online": 0}


def test_socket_with_bad_token_is_refused(ana):
    client = TestClient(app)
    with pytest.raises(WebSocketDisconnect) as exc:
        with client.websocket_connect("/api/presence/ws?token=not-a-jwt"):
            pass
    assert exc.value.code == 1008
