"""PTY process — one interactive CLI running in a pseudo-terminal."""

from __future__ import annotations

import asyncio
import codecs
import enum
import fcntl
import logging
import os
import pty
import signal
import struct
import subprocess
import sys
import termios
from dataclasses import dataclass, field
from typing import Callable, Mapping, Sequence

from claude_manager.errors import SpawnError

logger = logging.getLogger(__name__)

READ_SIZE = 64 * 1024
REAP_TIMEOUT = 5.0

# GUI-launched processes (Finder, Electron, systemd units) often inherit a
# PATH without the directories the CLI is installed into.
MACOS_BIN_PATHS = [
    "/opt/homebrew/bin",
    "/opt/homebrew/sbin",
    "/usr/local/bin",
    "/usr/local/opt/node/bin",
    "/usr/bin",
    "/bin",
    "/usr/sbin",
    "/sbin",
    "~/.local/bin",
]

POSIX_BIN_PATHS = [
    "/usr/local/bin",
    "/usr/local/sbin",
    "/usr/bin",
    "/bin",
    "/usr/sbin",
    "/sbin",
    "~/.local/bin",
]


class PTYStatus(enum.Enum):
    """Lifecycle states for a PTY process."""

    RUNNING = "running"
    KILLING = "killing"  # Kill requested, fd still being torn down
    KILLED = "killed"  # Killed by us (SIGKILL)
    EXITED = "exited"  # Process exited on its own


def default_bin_paths(platform: str | None = None) -> list[str]:
    """Platform-standard binary directories, with ``~`` expanded."""
    platform = platform or sys.platform
    paths = MACOS_BIN_PATHS if platform == "darwin" else POSIX_BIN_PATHS
    return [os.path.expanduser(p) for p in paths]


def build_env(
    extra_env: Mapping[str, str] | None = None,
    extra_paths: Sequence[str] = (),
    term: str = "xterm-256color",
    base: Mapping[str, str] | None = None,
    platform: str | None = None,
) -> dict[str, str]:
    """Build the environment for a session process.

    PATH keeps the caller's entries first, followed by ``extra_paths`` and
    the platform defaults. Duplicates keep their first position.
    """
    env = dict(os.environ if base is None else base)
    if extra_env:
        env.update(extra_env)

    current = env.get("PATH", "").split(os.pathsep)
    extras = [os.path.expanduser(p) for p in extra_paths]
    seen: set[str] = set()
    merged: list[str] = []
    for entry in [*current, *extras, *default_bin_paths(platform)]:
        if entry and entry not in seen:
            seen.add(entry)
            merged.append(entry)

    env["PATH"] = os.pathsep.join(merged)
    env["TERM"] = term
    return env


def _set_winsize(fd: int, cols: int, rows: int) -> None:
    winsz = struct.pack("HHHH", rows, cols, 0, 0)
    fcntl.ioctl(fd, termios.TIOCSWINSZ, winsz)


@dataclass
class PTYProcess:
    """A process attached to a pseudo-terminal.

    Output is read with ``loop.add_reader`` on the non-blocking master fd,
    so any number of sessions share the event loop without tying up
    executor threads. Each read is decoded incrementally (multi-byte
    characters split across reads are reassembled) and handed to
    ``on_output`` in order. ``on_exit`` fires exactly once, whether the
    process ended on its own or through ``kill()``.

    Uses subprocess.Popen (not os.fork) to avoid deadlocks when spawned
    from within a running asyncio event loop.
    """

    working_directory: str
    command: list[str]
    on_output: Callable[[str], None] | None = None
    on_exit: Callable[[int | None], None] | None = None

    # Internal state
    _master_fd: int = field(default=-1, init=False)
    _proc: subprocess.Popen | None = field(default=None, init=False)
    _pgid: int = field(default=0, init=False)
    _loop: asyncio.AbstractEventLoop | None = field(default=None, init=False)
    _status: PTYStatus = field(default=PTYStatus.RUNNING, init=False)
    _size: tuple[int, int] = field(default=(0, 0), init=False)
    _pending: bytearray = field(default_factory=bytearray, init=False)
    _decoder: codecs.IncrementalDecoder = field(
        default_factory=lambda: codecs.getincrementaldecoder("utf-8")(errors="replace"),
        init=False,
    )
    _reap_task: asyncio.Future | None = field(default=None, init=False)
    _exit_code: int | None = field(default=None, init=False)
    _exit_notified: bool = field(default=False, init=False)
    _exited: asyncio.Event | None = field(default=None, init=False)

    @classmethod
    async def spawn(
        cls,
        working_directory: str,
        launch_command: str,
        cols: int = 80,
        rows: int = 24,
        *,
        shell: str = "/bin/sh",
        login: bool = True,
        term: str = "xterm-256color",
        extra_env: Mapping[str, str] | None = None,
        extra_paths: Sequence[str] = (),
        on_output: Callable[[str], None] | None = None,
        on_exit: Callable[[int | None], None] | None = None,
    ) -> PTYProcess:
        """Run ``launch_command`` inside a (login) shell in a new PTY.

        Raises:
            SpawnError: The directory is unusable or the shell failed to start.
        """
        if not os.path.isdir(working_directory):
            raise SpawnError(f"Not a directory: {working_directory}")

        argv = [shell, "-l", "-c", launch_command] if login else [shell, "-c", launch_command]
        process = cls(
            working_directory=working_directory,
            command=argv,
            on_output=on_output,
            on_exit=on_exit,
        )
        env = build_env(extra_env, extra_paths, term=term)
        process._start(max(1, cols), max(1, rows), env)
        return process

    def _start(self, cols: int, rows: int, env: dict[str, str]) -> None:
        self._loop = asyncio.get_running_loop()
        self._exited = asyncio.Event()

        try:
            master_fd, slave_fd = pty.openpty()
        except OSError as e:
            raise SpawnError(f"Could not allocate a pseudo-terminal: {e}") from e

        try:
            _set_winsize(slave_fd, cols, rows)
            self._proc = subprocess.Popen(
                self.command,
                stdin=slave_fd,
                stdout=slave_fd,
                stderr=slave_fd,
                start_new_session=True,  # Own process group for tree-killing
                env=env,
                cwd=self.working_directory,
                close_fds=True,
            )
        except (OSError, ValueError, subprocess.SubprocessError) as e:
            # ValueError: NUL bytes in argv or env
            os.close(master_fd)
            raise SpawnError(f"Failed to start {self.command[0]}: {e}") from e
        finally:
            # Parent always closes slave fd
            os.close(slave_fd)

        self._master_fd = master_fd
        self._size = (cols, rows)
        try:
            self._pgid = os.getpgid(self._proc.pid)
        except ProcessLookupError:
            # Already gone; start_new_session makes the pid the group id
            self._pgid = self._proc.pid
        self._status = PTYStatus.RUNNING

        os.set_blocking(master_fd, False)
        self._loop.add_reader(master_fd, self._on_readable)

        logger.info(
            "PTY process started: pid=%d pgid=%d cwd=%s cmd=%s",
            self._proc.pid,
            self._pgid,
            self.working_directory,
            " ".join(self.command),
        )

    # -- reading ------------------------------------------------------------

    def _on_readable(self) -> None:
        try:
            data = os.read(self._master_fd, READ_SIZE)
        except BlockingIOError:
            return
        except OSError:
            # EIO: every slave fd is closed, the child is gone
            data = b""

        if not data:
            self._handle_eof()
            return

        self._emit_output(self._decoder.decode(data))

    def _emit_output(self, text: str) -> None:
        if not text or self.on_output is None:
            return
        try:
            self.on_output(text)
        except Exception:
            logger.exception("Error in on_output callback (pid=%s)", self.pid)

    def _handle_eof(self) -> None:
        if self._status != PTYStatus.RUNNING:
            return
        self._emit_output(self._decoder.decode(b"", final=True))
        self._status = PTYStatus.EXITED
        self._close_fd()
        self._schedule_reap()

    # -- writing ------------------------------------------------------------

    def write(self, data: str | bytes) -> None:
        """Forward input to the process. Silently ignored once it has exited."""
        if not self.alive:
            return
        payload = data.encode("utf-8") if isinstance(data, str) else bytes(data)
        if not payload:
            return

        if self._pending:
            # Keep byte order behind what is already queued
            self._pending.extend(payload)
            return

        try:
            written = os.write(self._master_fd, payload)
        except BlockingIOError:
            written = 0
        except OSError as e:
            logger.debug("Write to pid=%s failed: %s", self.pid, e)
            return

        if written < len(payload):
            self._pending.extend(payload[written:])
            assert self._loop is not None
            self._loop.add_writer(self._master_fd, self._on_writable)

    def _on_writable(self) -> None:
        try:
            written = os.write(self._master_fd, self._pending)
        except BlockingIOError:
            return
        except OSError as e:
            logger.debug("Write to pid=%s failed: %s", self.pid, e)
            self._pending.clear()
            written = 0

        del self._pending[:written]
        if not self._pending and self._loop is not None:
            self._loop.remove_writer(self._master_fd)

    # -- control ------------------------------------------------------------

    def resize(self, cols: int, rows: int) -> bool:
        """Set the terminal size. Returns False when nothing changed."""
        cols, rows = max(1, int(cols)), max(1, int(rows))
        if not self.alive or (cols, rows) == self._size:
            return False
        try:
            _set_winsize(self._master_fd, cols, rows)
        except OSError as e:
            logger.debug("Resize of pid=%s failed: %s", self.pid, e)
            return False
        self._size = (cols, rows)

        # Without a controlling terminal the kernel will not deliver
        # SIGWINCH for us, so programs caching their width need a nudge.
        try:
            os.killpg(self._pgid, signal.SIGWINCH)
        except OSError:
            pass
        return True

    def kill(self) -> None:
        """Kill the entire process tree. Safe to call repeatedly."""
        if self._status not in (PTYStatus.RUNNING, PTYStatus.KILLING):
            return

        self._status = PTYStatus.KILLING
        try:
            os.killpg(self._pgid, signal.SIGKILL)
            logger.info("Killed PTY process pid=%s (pgid=%d)", self.pid, self._pgid)
        except ProcessLookupError:
            logger.debug("Process group already gone: %d", self._pgid)
        except OSError as e:
            logger.warning("Error killing PTY process pid=%s: %s", self.pid, e)

        self._close_fd()
        self._status = PTYStatus.KILLED
        self._schedule_reap()

    def _close_fd(self) -> None:
        if self._master_fd < 0:
            return
        loop = self._loop
        if loop is not None and not loop.is_closed():
            loop.remove_reader(self._master_fd)
            loop.remove_writer(self._master_fd)
        self._pending.clear()
        try:
            os.close(self._master_fd)
        except OSError:
            pass
        self._master_fd = -1

    # -- exit ---------------------------------------------------------------

    def _schedule_reap(self) -> None:
        if self._reap_task is not None or self._exit_notified:
            return
        loop = self._loop
        if loop is None or loop.is_closed():
            self._notify_exit(self._wait_for_child())
            return
        self._reap_task = loop.create_task(self._reap())

    async def _reap(self) -> None:
        loop = asyncio.get_running_loop()
        code = await loop.run_in_executor(None, self._wait_for_child)
        self._notify_exit(code)

    def _wait_for_child(self) -> int | None:
        """Block until the child is reaped (run in an executor thread)."""
        if self._proc is None:
            return None
        try:
            return self._proc.wait(timeout=REAP_TIMEOUT)
        except subprocess.TimeoutExpired:
            # Closed its terminal but kept running
            try:
                os.killpg(self._pgid, signal.SIGKILL)
            except OSError:
                pass
            return self._proc.wait()

    def _notify_exit(self, exit_code: int | None) -> None:
        if self._exit_notified:
            return
        self._exit_notified = True
        self._exit_code = exit_code
        if self._exited is not None:
            self._exited.set()
        logger.info("PTY process pid=%s exited (code=%s)", self.pid, exit_code)
        if self.on_exit is not None:
            try:
                self.on_exit(exit_code)
            except Exception:
                logger.exception("Error in on_exit callback (pid=%s)", self.pid)

    async def wait(self) -> int | None:
        """Wait until the exit notification has fired. Returns the exit code."""
        if self._exited is not None:
            await self._exited.wait()
        return self._exit_code

    # -- properties ---------------------------------------------------------

    @property
    def pid(self) -> int | None:
        return self._proc.pid if self._proc is not None else None

    @property
    def alive(self) -> bool:
        return self._status == PTYStatus.RUNNING

    @property
    def status(self) -> PTYStatus:
        return self._status

    @property
    def size(self) -> tuple[int, int]:
        """Current (cols, rows)."""
        return self._size

    @property
    def exit_code(self) -> int | None:
        return self._exit_code

    def __del__(self) -> None:
        """Ensure the process tree does not outlive a dropped handle."""
        if getattr(self, "_status", None) not in (PTYStatus.RUNNING, PTYStatus.KILLING):
            return
        if getattr(self, "_proc", None) is None:
            return
        try:
            os.killpg(self._pgid, signal.SIGKILL)
        except OSError:
            pass
        if self._master_fd >= 0:
            try:
                os.close(self._master_fd)
            except OSError:
                pass
