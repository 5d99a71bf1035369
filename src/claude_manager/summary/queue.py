"""Summary request queue — serialized, retrying calls to the summarization API.

The API enforces one shared rate limit, so concurrent requests only raise
the failure rate. The queue runs exactly one job at a time across all
sessions, spaces jobs by a fixed delay, and re-enqueues rate-limited jobs
at the tail a bounded number of times. Every job ends in a resolved
future; none is dropped.
"""

from __future__ import annotations

import asyncio
import contextlib
import enum
import logging
from collections import deque
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from claude_manager.errors import (
    SummaryAuthError,
    SummaryParseError,
    SummaryRateLimited,
    SummaryTransportError,
)
from claude_manager.session.models import DEFAULT_TITLE
from claude_manager.session.wire import Wire

if TYPE_CHECKING:
    from claude_manager.llm.summarizer import Summarizer
    from claude_manager.session.registry import SessionRegistry

logger = logging.getLogger(__name__)

EMPTY_SUMMARY = "Session output is empty"
RATE_LIMITED_SUMMARY = "Rate limited, try again later"
AUTH_FAILED_SUMMARY = "Summary failed: API authentication error"
PARSE_FAILED_SUMMARY = "Summary failed: could not parse response"
TRANSPORT_FAILED_SUMMARY = "Summary failed: could not reach API"
FAILED_SUMMARY = "Summary generation failed"
CANCELLED_SUMMARY = "Summary cancelled"


class JobState(enum.Enum):
    QUEUED = "queued"
    IN_FLIGHT = "in_flight"
    RETRY_QUEUED = "retry_queued"
    RESOLVED = "resolved"


@dataclass
class SummaryOutcome:
    """What a summary request finally produced."""

    session_id: str
    title: str
    summary: str
    ok: bool
    error: str | None = None
    attempts: int = 1


@dataclass
class SummaryJob:
    session_id: str
    future: asyncio.Future[SummaryOutcome] = field(repr=False)
    retries: int = 0
    state: JobState = JobState.QUEUED


class SummaryQueue:
    """Global FIFO of summary jobs with a single worker.

    Jobs for the same session are independent; the queue does not
    coalesce them. A job whose session is deleted before it resolves still
    resolves its future, but nothing is written back or broadcast.
    """

    def __init__(
        self,
        registry: SessionRegistry,
        summarizer: Summarizer,
        wire: Wire | None = None,
        max_retries: int = 2,
        queue_delay: float = 1.5,
    ) -> None:
        self._registry = registry
        self._summarizer = summarizer
        self._wire = wire or registry.wire
        self._max_retries = max_retries
        self._queue_delay = queue_delay
        self._jobs: deque[SummaryJob] = deque()
        self._in_flight: SummaryJob | None = None
        self._worker: asyncio.Task[None] | None = None
        self._last_finished: float | None = None
        self._closed = False

    def enqueue(self, session_id: str) -> asyncio.Future[SummaryOutcome]:
        """Queue a summary of ``session_id``. The future always resolves."""
        loop = asyncio.get_running_loop()
        future: asyncio.Future[SummaryOutcome] = loop.create_future()
        if self._closed:
            future.set_result(self._cancelled(session_id))
            return future

        self._jobs.append(SummaryJob(session_id=session_id, future=future))
        logger.debug("Queued summary for %s (%d pending)", session_id[:8], len(self._jobs))

        if self._worker is None or self._worker.done():
            self._worker = loop.create_task(self._drain())
        return future

    @property
    def pending(self) -> int:
        """Jobs waiting to run, including retries."""
        return len(self._jobs)

    @property
    def busy(self) -> bool:
        return self._in_flight is not None

    @property
    def closed(self) -> bool:
        return self._closed

    async def close(self) -> None:
        """Stop the worker and resolve every outstanding job as cancelled."""
        if self._closed:
            return
        self._closed = True

        # The worker clears _in_flight as it unwinds, so capture it first
        in_flight = self._in_flight
        worker, self._worker = self._worker, None
        if worker is not None and not worker.done():
            worker.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await worker

        leftovers = list(self._jobs)
        self._jobs.clear()
        if in_flight is not None:
            leftovers.insert(0, in_flight)
        self._in_flight = None
        for job in leftovers:
            job.state = JobState.RESOLVED
            if not job.future.done():
                job.future.set_result(self._cancelled(job.session_id))

    # -- worker -------------------------------------------------------------

    async def _drain(self) -> None:
        loop = asyncio.get_running_loop()
        while self._jobs:
            if self._last_finished is not None:
                wait = self._last_finished + self._queue_delay - loop.time()
                if wait > 0:
                    await asyncio.sleep(wait)
                if not self._jobs:
                    break

            job = self._jobs.popleft()
            job.state = JobState.IN_FLIGHT
            self._in_flight = job
            try:
                await self._process(job)
            finally:
                self._in_flight = None
                self._last_finished = loop.time()

    async def _process(self, job: SummaryJob) -> None:
        chunks = self._registry.chunks(job.session_id)
        if chunks is None:
            self._resolve(
                job,
                DEFAULT_TITLE,
                CANCELLED_SUMMARY,
                ok=False,
                error="session no longer exists",
            )
            return

        if not chunks:
            self._resolve(job, DEFAULT_TITLE, EMPTY_SUMMARY, ok=True)
            return

        try:
            title, summary = await self._summarizer.summarize(chunks)
        except SummaryRateLimited as e:
            if job.retries < self._max_retries:
                job.retries += 1
                job.state = JobState.RETRY_QUEUED
                self._jobs.append(job)
                logger.info(
                    "[Summary] Rate limited, will retry (%d/%d)",
                    job.retries,
                    self._max_retries,
                )
                return
            self._resolve(job, DEFAULT_TITLE, RATE_LIMITED_SUMMARY, ok=False, error=str(e))
        except SummaryAuthError as e:
            self._resolve(job, DEFAULT_TITLE, AUTH_FAILED_SUMMARY, ok=False, error=str(e))
        except SummaryParseError as e:
            self._resolve(job, DEFAULT_TITLE, PARSE_FAILED_SUMMARY, ok=False, error=str(e))
        except SummaryTransportError as e:
            self._resolve(
                job, DEFAULT_TITLE, TRANSPORT_FAILED_SUMMARY, ok=False, error=str(e)
            )
        except Exception as e:
            logger.exception("Summary generation error for %s", job.session_id[:8])
            self._resolve(job, DEFAULT_TITLE, FAILED_SUMMARY, ok=False, error=str(e))
        else:
            self._resolve(job, title, summary, ok=True)

    def _resolve(
        self,
        job: SummaryJob,
        title: str,
        summary: str,
        ok: bool,
        error: str | None = None,
    ) -> None:
        job.state = JobState.RESOLVED
        outcome = SummaryOutcome(
            session_id=job.session_id,
            title=title,
            summary=summary,
            ok=ok,
            error=error,
            attempts=job.retries + 1,
        )

        if self._registry.update_summary(job.session_id, title, summary):
            self._wire.send_summary_updated(job.session_id, summary, title)
        else:
            logger.debug("Discarding summary for deleted session %s", job.session_id[:8])

        if not job.future.done():
            job.future.set_result(outcome)

    @staticmethod
    def _cancelled(session_id: str) -> SummaryOutcome:
        return SummaryOutcome(
            session_id=session_id,
            title=DEFAULT_TITLE,
            summary=CANCELLED_SUMMARY,
            ok=False,
            error="summary queue closed",
            attempts=0,
        )
