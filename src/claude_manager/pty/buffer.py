"""Rolling output buffer for PTY sessions."""

from __future__ import annotations

import threading
from collections import deque


class OutputBuffer:
    """Thread-safe bounded history of raw PTY output chunks.

    Chunks are stored exactly as read from the terminal (ANSI sequences
    included) so that ``snapshot()`` can be replayed into a terminal
    emulator of a newly attached client. Once ``max_chunks`` is reached the
    oldest chunk is dropped for every new one.
    """

    def __init__(self, max_chunks: int = 5000) -> None:
        if max_chunks < 1:
            raise ValueError("max_chunks must be at least 1")
        self._chunks: deque[str] = deque(maxlen=max_chunks)
        self._total_chunks: int = 0  # Total chunks ever added
        self._lock = threading.Lock()

    def append(self, chunk: str) -> None:
        """Append a chunk, evicting the oldest one past capacity."""
        with self._lock:
            self._chunks.append(chunk)
            self._total_chunks += 1

    def snapshot(self) -> str:
        """All retained chunks concatenated in order."""
        with self._lock:
            return "".join(self._chunks)

    def chunks(self) -> list[str]:
        """Copy of the retained chunks."""
        with self._lock:
            return list(self._chunks)

    def tail(self, n: int) -> list[str]:
        """The last ``n`` chunks (fewer if not that many are buffered)."""
        if n <= 0:
            return []
        with self._lock:
            size = len(self._chunks)
            if n >= size:
                return list(self._chunks)
            # deque slicing is not supported; walk only the tail
            return [self._chunks[i] for i in range(size - n, size)]

    @property
    def max_chunks(self) -> int:
        return self._chunks.maxlen or 0

    @property
    def total_chunks(self) -> int:
        """Total number of chunks ever appended."""
        with self._lock:
            return self._total_chunks

    def clear(self) -> None:
        with self._lock:
            self._chunks.clear()
            self._total_chunks = 0

    def __len__(self) -> int:
        with self._lock:
            return len(self._chunks)
