"""Session data models."""

from __future__ import annotations

import enum
import os
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from claude_manager.pty.buffer import OutputBuffer

DEFAULT_TASK = "starting"
DEFAULT_TITLE = "New session"
DEFAULT_SUMMARY = "New session, no conversation yet"


class SessionStatus(str, enum.Enum):
    """Live state of a session as inferred from its output."""

    IDLE = "idle"  # Nothing happening
    BUSY = "busy"  # Spinner on screen, the CLI is working
    WAITING = "waiting"  # Blocked on a yes/no confirmation


def _now() -> datetime:
    return datetime.now(timezone.utc)


def display_name_for(path: str) -> str:
    """Last component of ``path``; the path itself when it has none."""
    return os.path.basename(path.rstrip(os.sep)) or path


@dataclass
class Session:
    """One managed CLI process and what is known about it.

    ``status`` and ``current_task`` are written by the registry from the
    status classifier; ``title`` and ``summary`` only by the summary queue.
    """

    working_directory: str
    launch_command: str
    buffer: OutputBuffer = field(default_factory=OutputBuffer, repr=False)
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    status: SessionStatus = SessionStatus.IDLE
    current_task: str = DEFAULT_TASK
    title: str = DEFAULT_TITLE
    summary: str = DEFAULT_SUMMARY
    created_at: datetime = field(default_factory=_now)
    last_activity_at: datetime = field(default_factory=_now)

    @property
    def display_name(self) -> str:
        return display_name_for(self.working_directory)

    def to_dict(self) -> dict[str, Any]:
        """JSON-friendly view sent to clients. Buffer contents are excluded."""
        return {
            "id": self.id,
            "working_directory": self.working_directory,
            "display_name": self.display_name,
            "launch_command": self.launch_command,
            "status": self.status.value,
            "current_task": self.current_task,
            "title": self.title,
            "summary": self.summary,
            "created_at": self.created_at.isoformat(),
            "last_activity_at": self.last_activity_at.isoformat(),
            "buffered_chunks": len(self.buffer),
        }
