"""Wire protocol — decouples session management from clients.

Events flow from the registry and the summary queue to every attached
client view. A transport (websocket, socket.io, a TUI) subscribes to the
wire and forwards events; the core never knows which one is listening.
"""

from __future__ import annotations

import asyncio
import enum
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from claude_manager.session.models import Session


class EventType(enum.Enum):
    SESSION_CREATED = "session_created"
    SESSION_UPDATED = "session_updated"
    SESSION_DELETED = "session_deleted"
    SESSION_OUTPUT = "session_output"
    SUMMARY_UPDATED = "summary_updated"


@dataclass
class WireEvent:
    """An event on the wire."""

    type: EventType
    data: dict[str, Any] = field(default_factory=dict)


class Wire:
    """Fan-out of session events to every attached client.

    Each subscriber gets its own unbounded queue; ``None`` on a queue means
    the wire has shut down and no further events will arrive.
    """

    def __init__(self) -> None:
        self._subscribers: list[asyncio.Queue[WireEvent | None]] = []
        self._closed: bool = False

    def send(self, event: WireEvent) -> None:
        """Broadcast ``event``; a no-op once the wire is closed."""
        if self._closed:
            return
        for q in self._subscribers:
            q.put_nowait(event)

    def send_session_created(self, session: Session) -> None:
        self.send(
            WireEvent(type=EventType.SESSION_CREATED, data={"session": session.to_dict()})
        )

    def send_session_updated(self, session: Session) -> None:
        self.send(
            WireEvent(type=EventType.SESSION_UPDATED, data={"session": session.to_dict()})
        )

    def send_session_deleted(
        self,
        session_id: str,
        reason: str = "deleted",
        exit_code: int | None = None,
    ) -> None:
        self.send(
            WireEvent(
                type=EventType.SESSION_DELETED,
                data={"session_id": session_id, "reason": reason, "exit_code": exit_code},
            )
        )

    def send_session_output(self, session_id: str, data: str) -> None:
        self.send(
            WireEvent(
                type=EventType.SESSION_OUTPUT,
                data={
                    "session_id": session_id,
                    "data": data,
                    "timestamp": datetime.now(timezone.utc).isoformat(),
                },
            )
        )

    def send_summary_updated(self, session_id: str, summary: str, title: str) -> None:
        self.send(
            WireEvent(
                type=EventType.SUMMARY_UPDATED,
                data={"session_id": session_id, "summary": summary, "title": title},
            )
        )

    def subscribe(self) -> asyncio.Queue[WireEvent | None]:
        """Attach a client. Late subscribers to a closed wire get only the sentinel."""
        q: asyncio.Queue[WireEvent | None] = asyncio.Queue()
        if self._closed:
            q.put_nowait(None)
        else:
            self._subscribers.append(q)
        return q

    def unsubscribe(self, q: asyncio.Queue) -> None:
        """Detach a client; unknown queues are ignored."""
        if q in self._subscribers:
            self._subscribers.remove(q)

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        """Deliver the ``None`` sentinel to every subscriber, once."""
        if self._closed:
            return
        self._closed = True
        for q in self._subscribers:
            q.put_nowait(None)
