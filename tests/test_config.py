"""Tests for claude_manager.config.ManagerConfig.load."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from pydantic import ValidationError

from claude_manager.config import ManagerConfig, StatusConfig

ENV_VARS = (
    "CLAUDE_MANAGER_SHELL",
    "CLAUDE_MANAGER_COMMAND",
    "CLAUDE_MANAGER_MODEL",
    "CLAUDE_MANAGER_MAX_CHUNKS",
    "CLAUDE_MANAGER_DEBOUNCE",
    "CLAUDE_MANAGER_SUMMARY_RETRIES",
    "CLAUDE_MANAGER_SUMMARY_DELAY",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


def write_config(path: Path, data: dict) -> str:
    path.write_text(json.dumps(data))
    return str(path)


class TestDefaults:
    def test_defaults(self) -> None:
        config = ManagerConfig.load()
        assert config.shell.launch_command == "claude"
        assert config.shell.login is True
        assert (config.shell.cols, config.shell.rows) == (80, 24)
        assert config.buffer.max_chunks == 5000
        assert config.status.debounce == 1.5
        assert config.status.status_window == 10
        assert config.status.task_window == 20
        assert config.summary.max_retries == 2
        assert config.summary.queue_delay == 1.5

    def test_shell_falls_back_to_sh(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("SHELL", raising=False)
        assert ManagerConfig().shell.shell == "/bin/sh"

    def test_shell_from_environment(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("SHELL", "/bin/zsh")
        assert ManagerConfig().shell.shell == "/bin/zsh"

    def test_missing_file_uses_defaults(self, tmp_path: Path) -> None:
        config = ManagerConfig.load(str(tmp_path / "nope.json"))
        assert config.shell.launch_command == "claude"


class TestFile:
    def test_values_from_file(self, tmp_path: Path) -> None:
        path = write_config(
            tmp_path / "config.json",
            {
                "shell": {"launch_command": "claude --continue", "extra_paths": ["/opt/x"]},
                "buffer": {"max_chunks": 100},
                "summary": {"model": "openai/gpt-4o", "queue_delay": 0.5},
            },
        )
        config = ManagerConfig.load(path)
        assert config.shell.launch_command == "claude --continue"
        assert config.shell.extra_paths == ["/opt/x"]
        assert config.buffer.max_chunks == 100
        assert config.summary.model == "openai/gpt-4o"
        assert config.summary.queue_delay == 0.5

    def test_custom_status_tables(self, tmp_path: Path) -> None:
        path = write_config(
            tmp_path / "config.json",
            {
                "status": {
                    "spinner_glyphs": ["*"],
                    "task_keywords": [[["compile"], "compiling"]],
                }
            },
        )
        config = ManagerConfig.load(path)
        assert config.status.spinner_glyphs == ["*"]
        assert config.status.task_keywords == [(["compile"], "compiling")]


class TestEnvOverrides:
    def test_env_wins_over_file(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        path = write_config(tmp_path / "config.json", {"summary": {"model": "openai/gpt-4o"}})
        monkeypatch.setenv("CLAUDE_MANAGER_MODEL", "gemini/gemini-2.0-flash")
        config = ManagerConfig.load(path)
        assert config.summary.model == "gemini/gemini-2.0-flash"

    def test_all_env_vars(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("CLAUDE_MANAGER_SHELL", "/bin/bash")
        monkeypatch.setenv("CLAUDE_MANAGER_COMMAND", "aider")
        monkeypatch.setenv("CLAUDE_MANAGER_MAX_CHUNKS", "42")
        monkeypatch.setenv("CLAUDE_MANAGER_DEBOUNCE", "0.75")
        monkeypatch.setenv("CLAUDE_MANAGER_SUMMARY_RETRIES", "5")
        monkeypatch.setenv("CLAUDE_MANAGER_SUMMARY_DELAY", "3")

        config = ManagerConfig.load()

        assert config.shell.shell == "/bin/bash"
        assert config.shell.launch_command == "aider"
        assert config.buffer.max_chunks == 42
        assert config.status.debounce == 0.75
        assert config.summary.max_retries == 5
        assert config.summary.queue_delay == 3.0

    def test_status_defaults_preserved_with_override(
        self, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("CLAUDE_MANAGER_DEBOUNCE", "2")
        config = ManagerConfig.load()
        assert config.status.prompt_patterns == StatusConfig().prompt_patterns


class TestValidation:
    @pytest.mark.parametrize(
        ("name", "value"),
        [
            ("CLAUDE_MANAGER_MAX_CHUNKS", "0"),
            ("CLAUDE_MANAGER_DEBOUNCE", "-1"),
            ("CLAUDE_MANAGER_SUMMARY_RETRIES", "-2"),
            ("CLAUDE_MANAGER_SUMMARY_DELAY", "-0.5"),
            ("CLAUDE_MANAGER_MAX_CHUNKS", "lots"),
        ],
    )
    def test_bad_env_value_rejected(
        self, name: str, value: str, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv(name, value)
        with pytest.raises(ValidationError):
            ManagerConfig.load()

    @pytest.mark.parametrize(
        "data",
        [
            {"buffer": {"max_chunks": 0}},
            {"shell": {"cols": 0}},
            {"status": {"status_window": 0}},
            {"summary": {"max_tokens": 0}},
            {"summary": {"temperature": -0.1}},
        ],
    )
    def test_bad_file_value_rejected(self, data: dict, tmp_path: Path) -> None:
        path = write_config(tmp_path / "config.json", data)
        with pytest.raises(ValidationError):
            ManagerConfig.load(path)

    def test_zero_delays_allowed(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("CLAUDE_MANAGER_DEBOUNCE", "0")
        monkeypatch.setenv("CLAUDE_MANAGER_SUMMARY_DELAY", "0")
        monkeypatch.setenv("CLAUDE_MANAGER_SUMMARY_RETRIES", "0")
        config = ManagerConfig.load()
        assert config.status.debounce == 0
        assert config.summary.queue_delay == 0
        assert config.summary.max_retries == 0
