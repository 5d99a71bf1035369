"""Tests for claude_manager.text."""

from __future__ import annotations

from claude_manager.text import (
    clean_terminal_output,
    collapse_blank_lines,
    sanitize_control,
    strip_ansi,
    truncate_tail,
)


# ---------------------------------------------------------------------------
# strip_ansi
# ---------------------------------------------------------------------------


class TestStripAnsi:
    def test_no_ansi(self) -> None:
        assert strip_ansi("hello world") == "hello world"

    def test_color_codes(self) -> None:
        assert strip_ansi("\x1b[31mred\x1b[0m") == "red"

    def test_multiple_codes(self) -> None:
        text = "\x1b[1;31;40mhello\x1b[0m \x1b[32mworld\x1b[0m"
        assert strip_ansi(text) == "hello world"

    def test_cursor_movement(self) -> None:
        assert strip_ansi("\x1b[2Ahello") == "hello"

    def test_private_modes(self) -> None:
        assert strip_ansi("\x1b[?25lhidden cursor\x1b[?25h") == "hidden cursor"

    def test_osc_title(self) -> None:
        assert strip_ansi("\x1b]0;my title\x07prompt") == "prompt"
        assert strip_ansi("\x1b]0;my title\x1b\\prompt") == "prompt"

    def test_empty_string(self) -> None:
        assert strip_ansi("") == ""


# ---------------------------------------------------------------------------
# sanitize_control
# ---------------------------------------------------------------------------


class TestSanitizeControl:
    def test_clean_text(self) -> None:
        assert sanitize_control("hello world") == "hello world"

    def test_preserves_tab_and_newline(self) -> None:
        assert sanitize_control("a\tb\nc") == "a\tb\nc"

    def test_carriage_return_becomes_newline(self) -> None:
        assert sanitize_control("a\rb") == "a\nb"
        assert sanitize_control("a\r\nb") == "a\nb"

    def test_strips_bell_and_null(self) -> None:
        assert sanitize_control("a\x07b\x00c") == "abc"

    def test_strips_c1_control(self) -> None:
        assert sanitize_control("a\x7fb") == "ab"
        assert sanitize_control("a\x9bb") == "ab"

    def test_keeps_unicode(self) -> None:
        assert sanitize_control("✻ café 日本語") == "✻ café 日本語"


# ---------------------------------------------------------------------------
# collapse_blank_lines / truncate_tail
# ---------------------------------------------------------------------------


class TestCollapseBlankLines:
    def test_squeezes_runs(self) -> None:
        assert collapse_blank_lines("a\n\n\n\nb") == "a\n\nb"

    def test_trims_trailing_spaces(self) -> None:
        assert collapse_blank_lines("a   \nb\t") == "a\nb"

    def test_strips_outer_blank_lines(self) -> None:
        assert collapse_blank_lines("\n\na\n\n") == "a"


class TestTruncateTail:
    def test_within_limit(self) -> None:
        assert truncate_tail("short", 100) == "short"

    def test_keeps_tail_from_line_boundary(self) -> None:
        text = "\n".join(f"line {i}" for i in range(100))
        result = truncate_tail(text, 30)
        assert len(result) <= 30
        assert result.endswith("line 99")
        assert result.startswith("line ")

    def test_single_long_line(self) -> None:
        result = truncate_tail("x" * 50, 10)
        assert result == "x" * 10

    def test_zero_limit(self) -> None:
        assert truncate_tail("abc", 0) == ""


class TestCleanTerminalOutput:
    def test_full_pipeline(self) -> None:
        raw = "\x1b[2K\r✻ Reading…\x1b[0m\r\n\r\n\r\n\x1b[32mdone\x1b[0m   \r\n"
        assert clean_terminal_output(raw) == "✻ Reading…\n\ndone"

    def test_caps_size(self) -> None:
        raw = "\n".join(f"row {i}" for i in range(5000))
        result = clean_terminal_output(raw, max_chars=200)
        assert len(result) <= 200
        assert result.endswith("row 4999")
