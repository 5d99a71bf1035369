"""Control surface — the operations a client transport exposes.

A websocket or socket.io adapter maps its incoming messages onto these
methods and forwards the queue returned by ``attach()`` to its peer.
"""

from __future__ import annotations

import asyncio
import logging
import os

from claude_manager.config import ManagerConfig
from claude_manager.llm.provider import CompletionProvider, create_provider
from claude_manager.llm.summarizer import Summarizer
from claude_manager.pty.tools import ToolCheck, check_tool
from claude_manager.session.models import Session
from claude_manager.session.registry import SessionRegistry, Spawner
from claude_manager.session.status import StatusRules
from claude_manager.session.wire import EventType, Wire, WireEvent
from claude_manager.summary.queue import SummaryOutcome, SummaryQueue

logger = logging.getLogger(__name__)


class SessionController:
    """Wires registry, summary queue and wire together from a config."""

    def __init__(
        self,
        config: ManagerConfig | None = None,
        provider: CompletionProvider | None = None,
        spawner: Spawner | None = None,
        wire: Wire | None = None,
    ) -> None:
        self.config = config or ManagerConfig()
        self.wire = wire or Wire()
        self.registry = SessionRegistry(
            wire=self.wire,
            shell=self.config.shell,
            rules=StatusRules.from_config(self.config.status),
            max_chunks=self.config.buffer.max_chunks,
            recheck_margin=self.config.status.recheck_margin,
            spawner=spawner,
        )

        summary_cfg = self.config.summary
        provider = provider or create_provider(
            model=summary_cfg.model,
            temperature=summary_cfg.temperature,
            max_tokens=summary_cfg.max_tokens,
        )
        self.summary_queue = SummaryQueue(
            registry=self.registry,
            summarizer=Summarizer(
                provider,
                transcript_chunks=summary_cfg.transcript_chunks,
                max_transcript_chars=summary_cfg.max_transcript_chars,
            ),
            wire=self.wire,
            max_retries=summary_cfg.max_retries,
            queue_delay=summary_cfg.queue_delay,
        )

    # -- clients ------------------------------------------------------------

    def attach(self) -> asyncio.Queue[WireEvent | None]:
        """Subscribe a client and replay the sessions that already exist."""
        queue = self.wire.subscribe()
        for session in self.registry.list_sessions():
            queue.put_nowait(
                WireEvent(type=EventType.SESSION_CREATED, data={"session": session.to_dict()})
            )
        return queue

    def detach(self, queue: asyncio.Queue) -> None:
        self.wire.unsubscribe(queue)

    # -- session operations -------------------------------------------------

    async def create_session(
        self,
        path: str | os.PathLike[str],
        launch_command: str | None = None,
    ) -> Session:
        """Raises CreationError when the session could not be started."""
        return await self.registry.create(path, launch_command)

    def write_input(self, session_id: str, data: str | bytes) -> None:
        self.registry.write(session_id, data)

    def resize(self, session_id: str, cols: int, rows: int) -> None:
        self.registry.resize(session_id, cols, rows)

    def delete_session(self, session_id: str) -> bool:
        return self.registry.delete(session_id)

    def get_history(self, session_id: str) -> str:
        return self.registry.history(session_id)

    def sessions(self) -> list[Session]:
        return self.registry.list_sessions()

    async def check_cli(self) -> ToolCheck:
        """Whether the configured launch command runs with the session PATH."""
        shell = self.config.shell
        return await check_tool(shell.launch_command, extra_paths=shell.extra_paths)

    async def check_node(self) -> ToolCheck:
        return await check_tool("node", extra_paths=self.config.shell.extra_paths)

    def request_summary(self, session_id: str) -> asyncio.Future[SummaryOutcome]:
        return self.summary_queue.enqueue(session_id)

    def request_all_summaries(self) -> list[asyncio.Future[SummaryOutcome]]:
        """Queue a summary for every live session, oldest first."""
        sessions = sorted(self.registry.list_sessions(), key=lambda s: s.created_at)
        return [self.summary_queue.enqueue(s.id) for s in sessions]

    async def shutdown(self) -> None:
        """Stop summarizing, kill every session, close the wire."""
        await self.summary_queue.close()
        count = self.registry.destroy_all()
        self.wire.close()
        logger.info("Controller shut down (%d sessions destroyed)", count)
