"""Tests for claude_manager.session.wire (Wire, WireEvent, EventType)."""

from __future__ import annotations

import asyncio

from claude_manager.session.models import Session
from claude_manager.session.wire import EventType, Wire, WireEvent


# ---------------------------------------------------------------------------
# EventType
# ---------------------------------------------------------------------------


class TestEventType:
    def test_all_variants_exist(self) -> None:
        expected = {
            "SESSION_CREATED",
            "SESSION_UPDATED",
            "SESSION_DELETED",
            "SESSION_OUTPUT",
            "SUMMARY_UPDATED",
        }
        actual = {e.name for e in EventType}
        assert actual == expected

    def test_values_are_lowercase(self) -> None:
        for e in EventType:
            assert e.value == e.name.lower()


# ---------------------------------------------------------------------------
# Wire — basic send/subscribe
# ---------------------------------------------------------------------------


class TestWire:
    async def test_send_to_subscriber(self) -> None:
        wire = Wire()
        q = wire.subscribe()
        wire.send(WireEvent(type=EventType.SESSION_OUTPUT, data={"data": "hi"}))
        event = q.get_nowait()
        assert event is not None
        assert event.type == EventType.SESSION_OUTPUT
        assert event.data["data"] == "hi"

    async def test_send_to_multiple_subscribers(self) -> None:
        wire = Wire()
        q1 = wire.subscribe()
        q2 = wire.subscribe()
        wire.send_session_deleted("abc")
        e1 = q1.get_nowait()
        e2 = q2.get_nowait()
        assert e1 is not None and e2 is not None
        assert e1.type == e2.type == EventType.SESSION_DELETED

    async def test_unsubscribe(self) -> None:
        wire = Wire()
        q = wire.subscribe()
        wire.unsubscribe(q)
        wire.send(WireEvent(type=EventType.SESSION_OUTPUT))
        assert q.empty()

    async def test_unsubscribe_nonexistent_is_safe(self) -> None:
        wire = Wire()
        q: asyncio.Queue[WireEvent | None] = asyncio.Queue()
        wire.unsubscribe(q)  # Should not raise


# ---------------------------------------------------------------------------
# Wire — closed-state guard
# ---------------------------------------------------------------------------


class TestWireClosedGuard:
    async def test_send_after_close_is_dropped(self) -> None:
        wire = Wire()
        q = wire.subscribe()
        wire.close()
        assert q.get_nowait() is None
        wire.send_session_output("s", "too late")
        assert q.empty()
        assert wire.closed

    async def test_close_sends_sentinel_to_all_subscribers(self) -> None:
        wire = Wire()
        queues = [wire.subscribe() for _ in range(3)]
        wire.close()
        for q in queues:
            assert q.get_nowait() is None

    async def test_subscribe_after_close_gets_sentinel(self) -> None:
        wire = Wire()
        wire.close()
        q = wire.subscribe()
        assert q.get_nowait() is None
        wire.send_session_deleted("s1")
        assert q.empty()

    async def test_close_idempotent(self) -> None:
        wire = Wire()
        q = wire.subscribe()
        wire.close()
        wire.close()
        assert q.get_nowait() is None
        assert q.empty()


# ---------------------------------------------------------------------------
# Wire — convenience methods
# ---------------------------------------------------------------------------


class TestWireConvenience:
    async def test_send_session_created(self) -> None:
        wire = Wire()
        q = wire.subscribe()
        session = Session(working_directory="/work/project", launch_command="claude")
        wire.send_session_created(session)
        event = q.get_nowait()
        assert event is not None
        assert event.type == EventType.SESSION_CREATED
        assert event.data["session"]["id"] == session.id
        assert event.data["session"]["display_name"] == "project"

    async def test_send_session_updated(self) -> None:
        wire = Wire()
        q = wire.subscribe()
        session = Session(working_directory="/w", launch_command="claude")
        wire.send_session_updated(session)
        event = q.get_nowait()
        assert event is not None
        assert event.type == EventType.SESSION_UPDATED
        assert event.data["session"]["status"] == "idle"

    async def test_send_session_deleted_defaults(self) -> None:
        wire = Wire()
        q = wire.subscribe()
        wire.send_session_deleted("s1")
        event = q.get_nowait()
        assert event is not None
        assert event.data == {"session_id": "s1", "reason": "deleted", "exit_code": None}

    async def test_send_session_deleted_exit(self) -> None:
        wire = Wire()
        q = wire.subscribe()
        wire.send_session_deleted("s1", reason="exited", exit_code=3)
        event = q.get_nowait()
        assert event is not None
        assert event.data["reason"] == "exited"
        assert event.data["exit_code"] == 3

    async def test_send_session_output(self) -> None:
        wire = Wire()
        q = wire.subscribe()
        wire.send_session_output("s1", "\x1b[31mred")
        event = q.get_nowait()
        assert event is not None
        assert event.type == EventType.SESSION_OUTPUT
        assert event.data["session_id"] == "s1"
        assert event.data["data"] == "\x1b[31mred"
        assert "timestamp" in event.data

    async def test_send_summary_updated(self) -> None:
        wire = Wire()
        q = wire.subscribe()
        wire.send_summary_updated("s1", "fixing tests", "Test fixes")
        event = q.get_nowait()
        assert event is not None
        assert event.type == EventType.SUMMARY_UPDATED
        assert event.data == {
            "session_id": "s1",
            "summary": "fixing tests",
            "title": "Test fixes",
        }
