"""Text cleanup — turn raw terminal output into something an LLM can read."""

from __future__ import annotations

import re

MAX_CHARS = 12_000

# CSI (including private "?" modes), OSC terminated by BEL or ST, and the
# remaining two-byte escapes.
_ANSI_RE = re.compile(
    r"\x1b\[[0-?]*[ -/]*[@-~]"
    r"|\x1b\][^\x07\x1b]*(?:\x07|\x1b\\)"
    r"|\x1b[@-Z\\-_]"
)


def strip_ansi(text: str) -> str:
    """Strip ANSI escape sequences from text."""
    return _ANSI_RE.sub("", text)


def sanitize_control(text: str) -> str:
    """Remove control characters left over after ANSI stripping.

    Keeps printable chars, tabs and newlines. Carriage returns become
    newlines so that spinner redraws do not glue lines together.
    """
    cleaned = []
    for ch in text.replace("\r\n", "\n"):
        cp = ord(ch)
        if ch == "\r":
            cleaned.append("\n")
        elif ch in ("\t", "\n"):
            cleaned.append(ch)
        elif cp >= 32 and cp not in range(0x7F, 0xA0):
            # Skip C0 controls (except above), C1 controls, and format chars
            if cp not in range(0xFFF9, 0xFFFC):
                cleaned.append(ch)
    return "".join(cleaned)


def collapse_blank_lines(text: str) -> str:
    """Trim trailing whitespace per line and squeeze runs of empty lines."""
    lines = [line.rstrip() for line in text.split("\n")]
    out: list[str] = []
    for line in lines:
        if not line and out and not out[-1]:
            continue
        out.append(line)
    return "\n".join(out).strip("\n")


def truncate_tail(text: str, max_chars: int = MAX_CHARS) -> str:
    """Keep the last ``max_chars`` characters, starting at a line boundary."""
    if max_chars <= 0:
        return ""
    if len(text) <= max_chars:
        return text
    kept = text[-max_chars:]
    newline = kept.find("\n")
    if 0 <= newline < len(kept) - 1:
        kept = kept[newline + 1 :]
    return kept


def clean_terminal_output(text: str, max_chars: int = MAX_CHARS) -> str:
    """Strip escapes and control characters, then cap the size (tail kept)."""
    cleaned = collapse_blank_lines(sanitize_control(strip_ansi(text)))
    return truncate_tail(cleaned, max_chars)
