"""Session registry — the single owner of live sessions and their processes."""

from __future__ import annotations

import asyncio
import functools
import logging
import os
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Protocol

from claude_manager.config import ShellConfig
from claude_manager.errors import CreationError, SpawnError
from claude_manager.pty.buffer import OutputBuffer
from claude_manager.pty.process import PTYProcess
from claude_manager.session.models import Session, SessionStatus
from claude_manager.session.status import Classification, StatusClassifier, StatusRules
from claude_manager.session.wire import Wire

logger = logging.getLogger(__name__)


class ProcessHandle(Protocol):
    def write(self, data: str | bytes) -> None: ...

    def resize(self, cols: int, rows: int) -> bool: ...

    def kill(self) -> None: ...


Spawner = Callable[..., Awaitable[ProcessHandle]]


@dataclass
class _SessionRecord:
    """A session plus everything the registry owns on its behalf."""

    session: Session
    classifier: StatusClassifier
    process: ProcessHandle | None = None
    recheck: asyncio.TimerHandle | None = None
    # Bumped on every cancel; a firing timer with a stale token does nothing
    recheck_token: int = 0
    closed: bool = False


class SessionRegistry:
    """Creates, tracks and destroys sessions.

    The registry is the only component that spawns or kills a process.
    Output from each process is appended to the session buffer, run
    through the status classifier and broadcast on the wire, in that
    order. All mutation happens on the event loop thread, so the session
    map needs no lock.

    Operations on unknown session ids are no-ops: a client may act on a
    session that another client deleted a moment earlier.
    """

    def __init__(
        self,
        wire: Wire | None = None,
        shell: ShellConfig | None = None,
        rules: StatusRules | None = None,
        max_chunks: int = 5000,
        recheck_margin: float = 0.1,
        spawner: Spawner | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.wire = wire or Wire()
        self._shell = shell or ShellConfig()
        self._rules = rules or StatusRules()
        self._max_chunks = max_chunks
        self._recheck_margin = recheck_margin
        self._spawner: Spawner = spawner or PTYProcess.spawn
        self._clock = clock
        self._records: dict[str, _SessionRecord] = {}

    # -- lifecycle ----------------------------------------------------------

    async def create(
        self,
        working_directory: str | os.PathLike[str],
        launch_command: str | None = None,
    ) -> Session:
        """Spawn a new session in ``working_directory``.

        The PTY starts small (clients resize right after attaching).

        Raises:
            CreationError: The process could not be started. Nothing is
                registered and no event is sent.
        """
        path = os.path.abspath(os.path.expanduser(os.fspath(working_directory)))
        command = launch_command or self._shell.launch_command

        session = Session(
            working_directory=path,
            launch_command=command,
            buffer=OutputBuffer(self._max_chunks),
        )
        record = _SessionRecord(
            session=session,
            classifier=StatusClassifier(rules=self._rules, clock=self._clock),
        )

        try:
            process = await self._spawner(
                path,
                command,
                self._shell.cols,
                self._shell.rows,
                shell=self._shell.shell,
                login=self._shell.login,
                term=self._shell.term,
                extra_paths=self._shell.extra_paths,
                on_output=functools.partial(self._on_output, record),
                on_exit=functools.partial(self._on_exit, record),
            )
        except SpawnError as e:
            record.closed = True
            logger.error("Failed to create session in %s: %s", path, e)
            raise CreationError(f"Could not start session in {path}: {e}") from e

        record.process = process
        if record.closed:
            raise CreationError(f"Session process in {path} exited during startup")

        self._records[session.id] = record
        logger.info("Created session %s in %s (cmd=%s)", session.id[:8], path, command)
        self.wire.send_session_created(session)
        return session

    def delete(self, session_id: str) -> bool:
        """Kill a session's process and forget it. Returns False if unknown."""
        record = self._records.pop(session_id, None)
        if record is None:
            return False

        record.closed = True
        self._cancel_recheck(record)
        if record.process is not None:
            record.process.kill()
        logger.info("Deleted session %s", session_id[:8])
        self.wire.send_session_deleted(session_id)
        return True

    def destroy_all(self) -> int:
        """Delete every session. Called on shutdown so no child outlives us."""
        session_ids = list(self._records)
        logger.info("Destroying all sessions (%d total)", len(session_ids))
        for session_id in session_ids:
            self.delete(session_id)
        return len(session_ids)

    # -- client operations --------------------------------------------------

    def write(self, session_id: str, data: str | bytes) -> None:
        record = self._records.get(session_id)
        if record is not None and record.process is not None:
            record.process.write(data)

    def resize(self, session_id: str, cols: int, rows: int) -> bool:
        record = self._records.get(session_id)
        if record is None or record.process is None:
            return False
        return record.process.resize(cols, rows)

    def get(self, session_id: str) -> Session | None:
        record = self._records.get(session_id)
        return record.session if record is not None else None

    def list_sessions(self) -> list[Session]:
        return [r.session for r in self._records.values()]

    def history(self, session_id: str) -> str:
        """Buffered output for replay; empty for unknown sessions."""
        record = self._records.get(session_id)
        return record.session.buffer.snapshot() if record is not None else ""

    def chunks(self, session_id: str) -> list[str] | None:
        """Buffered output chunks, or None if the session is gone."""
        record = self._records.get(session_id)
        return record.session.buffer.chunks() if record is not None else None

    def update_summary(self, session_id: str, title: str, summary: str) -> bool:
        record = self._records.get(session_id)
        if record is None:
            return False
        record.session.title = title
        record.session.summary = summary
        return True

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, session_id: Any) -> bool:
        return session_id in self._records

    # -- process callbacks --------------------------------------------------

    def _on_output(self, record: _SessionRecord, chunk: str) -> None:
        if record.closed:
            return
        session = record.session
        session.buffer.append(chunk)
        session.last_activity_at = datetime.now(timezone.utc)

        result = record.classifier.classify(
            chunk, session.buffer.tail(self._rules.history_size)
        )
        self._cancel_recheck(record)
        if result.status is SessionStatus.BUSY:
            self._schedule_recheck(record)

        self._apply(record, result)
        self.wire.send_session_output(session.id, chunk)

    def _on_exit(self, record: _SessionRecord, exit_code: int | None) -> None:
        if record.closed:
            return
        record.closed = True
        self._cancel_recheck(record)

        session_id = record.session.id
        if self._records.get(session_id) is record:
            del self._records[session_id]
            logger.info("Session %s exited (code=%s)", session_id[:8], exit_code)
            self.wire.send_session_deleted(session_id, reason="exited", exit_code=exit_code)

    # -- status -------------------------------------------------------------

    def _apply(self, record: _SessionRecord, result: Classification) -> bool:
        session = record.session
        if session.status is result.status and session.current_task == result.task:
            return False
        logger.debug(
            "[%s] Status: %s -> %s, Task: %s",
            session.id[:8],
            session.status.value,
            result.status.value,
            result.task,
        )
        session.status = result.status
        session.current_task = result.task
        self.wire.send_session_updated(session)
        return True

    def _schedule_recheck(self, record: _SessionRecord) -> None:
        self._cancel_recheck(record)
        token = record.recheck_token
        delay = record.classifier.debounce_remaining() + self._recheck_margin
        loop = asyncio.get_running_loop()
        record.recheck = loop.call_later(delay, self._run_recheck, record, token)

    def _cancel_recheck(self, record: _SessionRecord) -> None:
        record.recheck_token += 1
        if record.recheck is not None:
            record.recheck.cancel()
            record.recheck = None

    def _run_recheck(self, record: _SessionRecord, token: int) -> None:
        if record.closed or token != record.recheck_token:
            return
        record.recheck = None

        # Re-derive from the live buffer, not from state captured at scheduling
        result = record.classifier.classify(
            "", record.session.buffer.tail(self._rules.history_size)
        )
        if result.status is SessionStatus.BUSY:
            self._schedule_recheck(record)
        self._apply(record, result)
