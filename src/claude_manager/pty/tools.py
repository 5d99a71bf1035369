"""Installation checks for the tools sessions depend on.

A launch command that is not on PATH does not fail to spawn: the login
shell starts fine and exits with 127 a moment later. Running
``<tool> --version`` with the same augmented environment tells the two
cases apart before any session is created.
"""

from __future__ import annotations

import asyncio
import logging
import os
import shlex
import shutil
import signal
from dataclasses import dataclass
from typing import Any, Mapping, Sequence

from claude_manager.pty.process import build_env

logger = logging.getLogger(__name__)

VERSION_TIMEOUT = 5.0


@dataclass
class ToolCheck:
    """Whether a tool could be run, and the version it reported."""

    command: str
    installed: bool
    version: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {"installed": self.installed, "version": self.version}


def program_of(command: str) -> str:
    """The executable of a launch command ("claude --resume" -> "claude")."""
    try:
        parts = shlex.split(command)
    except ValueError:
        parts = command.split()
    return parts[0] if parts else ""


async def check_tool(
    command: str,
    *,
    extra_env: Mapping[str, str] | None = None,
    extra_paths: Sequence[str] = (),
    timeout: float = VERSION_TIMEOUT,
) -> ToolCheck:
    """Run ``<program> --version`` and report whether it succeeded.

    Only the first word of ``command`` is used, so a full launch command
    can be passed. A missing program, a non-zero exit or a timeout all
    count as not installed. The version is the first non-empty output line.
    """
    program = program_of(command)
    env = build_env(extra_env, extra_paths)
    executable = shutil.which(program, path=env["PATH"]) if program else None
    if executable is None:
        logger.info("%s not found on PATH", program or "(empty command)")
        return ToolCheck(command=program, installed=False)

    try:
        proc = await asyncio.create_subprocess_exec(
            executable,
            "--version",
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.STDOUT,
            env=env,
            start_new_session=True,
        )
    except (OSError, ValueError) as e:
        logger.info("Could not run %s --version: %s", executable, e)
        return ToolCheck(command=program, installed=False)

    try:
        output, _ = await asyncio.wait_for(proc.communicate(), timeout)
    except asyncio.TimeoutError:
        logger.warning("%s --version timed out after %.1fs", executable, timeout)
        try:
            os.killpg(proc.pid, signal.SIGKILL)
        except ProcessLookupError:
            logger.debug("Process group already gone: %d", proc.pid)
        await proc.wait()
        return ToolCheck(command=program, installed=False)

    if proc.returncode != 0:
        logger.info("%s --version exited with %s", executable, proc.returncode)
        return ToolCheck(command=program, installed=False)

    lines = output.decode("utf-8", errors="replace").splitlines()
    version = next((line.strip() for line in lines if line.strip()), None)
    return ToolCheck(command=program, installed=True, version=version)
