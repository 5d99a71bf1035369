"""Status detection — infer idle/busy/waiting from raw terminal output.

The wrapped CLI draws a spinner glyph while it works and prints a
``[Y/n]``-style prompt when it needs a confirmation. Spinner frames are
interleaved with ordinary redraws, so a session that stops showing the
glyph for one frame is not yet idle: ``busy`` is held for a debounce
interval after the last glyph. The glyph, keyword and prompt tables live
in ``StatusRules`` so the registry never depends on them directly.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Callable, Sequence

from claude_manager.session.models import SessionStatus

if TYPE_CHECKING:
    from claude_manager.config import StatusConfig

TASK_PROCESSING = "processing"
TASK_WAITING = "awaiting input"
TASK_IDLE = "idle"


@dataclass(frozen=True)
class Classification:
    status: SessionStatus
    task: str


@dataclass(frozen=True)
class StatusRules:
    """Tables and timings describing the wrapped CLI's output conventions."""

    spinner_glyphs: tuple[str, ...] = ("✻", "✽", "✶", "✳", "✢", "·", "⠂", "⠐")
    # Checked in order, first hit wins
    task_keywords: tuple[tuple[tuple[str, ...], str], ...] = (
        (("Read",), "reading files"),
        (("Write", "Edit"), "editing files"),
        (("Search", "Grep"), "searching"),
        (("Bash", "Run"), "running command"),
        (("Think",), "thinking"),
    )
    prompt_patterns: tuple[str, ...] = ("[Y/n]", "[y/N]", "(y/n)", "(Y/n)")
    debounce: float = 1.5
    status_window: int = 10
    task_window: int = 20

    @classmethod
    def from_config(cls, config: StatusConfig) -> StatusRules:
        return cls(
            spinner_glyphs=tuple(config.spinner_glyphs),
            task_keywords=tuple(
                (tuple(words), label) for words, label in config.task_keywords
            ),
            prompt_patterns=tuple(config.prompt_patterns),
            debounce=config.debounce,
            status_window=config.status_window,
            task_window=config.task_window,
        )

    @property
    def history_size(self) -> int:
        """How many trailing chunks classification ever looks at."""
        return max(self.status_window, self.task_window, 1)

    def has_spinner(self, text: str) -> bool:
        return any(glyph in text for glyph in self.spinner_glyphs)

    def has_prompt(self, text: str) -> bool:
        return any(pattern in text for pattern in self.prompt_patterns)

    def task_for(self, text: str) -> str:
        for words, label in self.task_keywords:
            if any(word in text for word in words):
                return label
        return TASK_PROCESSING


def _tail(history: Sequence[str], n: int) -> str:
    if n <= 0:
        return ""
    return "".join(history[-n:])


@dataclass
class StatusClassifier:
    """Per-session status state machine.

    Holds only the timing memory needed for the busy debounce: when a
    spinner was last seen and which task label it carried. Total over all
    inputs; never raises.
    """

    rules: StatusRules = field(default_factory=StatusRules)
    clock: Callable[[], float] = time.monotonic
    last_busy_at: float | None = None
    last_task: str | None = None

    def classify(self, chunk: str, history: Sequence[str]) -> Classification:
        """Classify from the newest ``chunk`` and the buffered ``history``.

        ``history`` is expected to already contain ``chunk`` as its last
        element. Pass an empty chunk to re-evaluate without new output.
        """
        rules = self.rules
        now = self.clock()

        if chunk and rules.has_spinner(chunk):
            task = rules.task_for(_tail(history, rules.task_window))
            self.last_busy_at = now
            self.last_task = task
            return Classification(SessionStatus.BUSY, task)

        if self.in_debounce(now):
            return Classification(SessionStatus.BUSY, self.last_task or TASK_PROCESSING)

        if rules.has_prompt(_tail(history, rules.status_window)):
            return Classification(SessionStatus.WAITING, TASK_WAITING)

        return Classification(SessionStatus.IDLE, TASK_IDLE)

    def in_debounce(self, now: float | None = None) -> bool:
        if self.last_busy_at is None:
            return False
        if now is None:
            now = self.clock()
        return now - self.last_busy_at < self.rules.debounce

    def debounce_remaining(self) -> float:
        """Seconds until a held busy state may be demoted (0 when not held)."""
        if self.last_busy_at is None:
            return 0.0
        return max(0.0, self.last_busy_at + self.rules.debounce - self.clock())

    def reset(self) -> None:
        self.last_busy_at = None
        self.last_task = None
