"""Shared fakes for session tests."""

from __future__ import annotations

from typing import Any, Callable

import pytest

from claude_manager.errors import SpawnError


class FakeProcess:
    """Stands in for PTYProcess: records calls, lets tests emit output/exit."""

    def __init__(
        self,
        working_directory: str,
        launch_command: str,
        cols: int,
        rows: int,
        on_output: Callable[[str], None] | None = None,
        on_exit: Callable[[int | None], None] | None = None,
        **kwargs: Any,
    ) -> None:
        self.working_directory = working_directory
        self.launch_command = launch_command
        self.size = (cols, rows)
        self.options = kwargs
        self.on_output = on_output
        self.on_exit = on_exit
        self.written: list[str | bytes] = []
        self.resizes: list[tuple[int, int]] = []
        self.kill_count = 0
        self.alive = True

    def emit(self, chunk: str) -> None:
        assert self.on_output is not None
        self.on_output(chunk)

    def exit(self, code: int | None = 0) -> None:
        self.alive = False
        if self.on_exit is not None:
            self.on_exit(code)

    def write(self, data: str | bytes) -> None:
        if self.alive:
            self.written.append(data)

    def resize(self, cols: int, rows: int) -> bool:
        if not self.alive or (cols, rows) == self.size:
            return False
        self.size = (cols, rows)
        self.resizes.append((cols, rows))
        return True

    def kill(self) -> None:
        self.kill_count += 1
        if self.alive:
            self.exit(None)


class FakeSpawner:
    """Async spawner returning FakeProcess handles; can be told to fail."""

    def __init__(self) -> None:
        self.processes: list[FakeProcess] = []
        self.fail_with: Exception | None = None

    async def __call__(self, *args: Any, **kwargs: Any) -> FakeProcess:
        if self.fail_with is not None:
            raise self.fail_with
        process = FakeProcess(*args, **kwargs)
        self.processes.append(process)
        return process

    @property
    def last(self) -> FakeProcess:
        return self.processes[-1]


@pytest.fixture
def spawner() -> FakeSpawner:
    return FakeSpawner()


@pytest.fixture
def failing_spawner() -> FakeSpawner:
    spawner = FakeSpawner()
    spawner.fail_with = SpawnError("Not a directory: /nope")
    return spawner
