"""PTY process management — pseudo-terminal processes and their output history.

Every session runs its CLI in a PTY with process group isolation, a
bounded output buffer for replay, and guaranteed cleanup.
"""

from claude_manager.pty.buffer import OutputBuffer
from claude_manager.pty.process import PTYProcess, PTYStatus, build_env
from claude_manager.pty.tools import ToolCheck, check_tool

__all__ = [
    "OutputBuffer",
    "PTYProcess",
    "PTYStatus",
    "ToolCheck",
    "build_env",
    "check_tool",
]
