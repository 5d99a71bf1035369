"""Configuration — Pydantic models for claude-manager settings."""

from __future__ import annotations

import json
import os
from typing import Any

from dotenv import load_dotenv
from pydantic import BaseModel, Field


class ShellConfig(BaseModel):
    """How session processes are launched."""

    shell: str = Field(
        default_factory=lambda: os.environ.get("SHELL") or "/bin/sh",
        description="Login shell used to run the launch command",
    )
    login: bool = Field(default=True, description="Pass -l to the shell")
    launch_command: str = Field(default="claude")
    term: str = Field(default="xterm-256color")
    cols: int = Field(default=80, ge=1, description="Initial PTY width")
    rows: int = Field(default=24, ge=1, description="Initial PTY height")
    extra_paths: list[str] = Field(
        default_factory=list,
        description="Directories prepended to PATH in addition to the platform defaults",
    )


class BufferConfig(BaseModel):
    max_chunks: int = Field(default=5000, ge=1, description="Output chunks kept per session")


class StatusConfig(BaseModel):
    """Status detection tuning.

    The glyph and keyword tables describe the conventions of the wrapped
    CLI. Swap them here when wrapping something that draws its spinner
    differently.
    """

    debounce: float = Field(
        default=1.5, ge=0, description="Seconds a busy state is held after the last spinner"
    )
    recheck_margin: float = Field(
        default=0.1, ge=0, description="Extra delay before re-evaluating a busy session"
    )
    status_window: int = Field(default=10, ge=1)
    task_window: int = Field(default=20, ge=1)
    spinner_glyphs: list[str] = Field(
        default_factory=lambda: ["✻", "✽", "✶", "✳", "✢", "·", "⠂", "⠐"]
    )
    task_keywords: list[tuple[list[str], str]] = Field(
        default_factory=lambda: [
            (["Read"], "reading files"),
            (["Write", "Edit"], "editing files"),
            (["Search", "Grep"], "searching"),
            (["Bash", "Run"], "running command"),
            (["Think"], "thinking"),
        ]
    )
    prompt_patterns: list[str] = Field(
        default_factory=lambda: ["[Y/n]", "[y/N]", "(y/n)", "(Y/n)"]
    )


class SummaryConfig(BaseModel):
    """Summarization API configuration.

    Model names use litellm's provider-prefix format, e.g.
    "anthropic/claude-sonnet-4-20250514". API keys are read from the
    provider's env vars by litellm.
    """

    model: str = Field(default="anthropic/claude-sonnet-4-20250514")
    max_tokens: int = Field(default=200, ge=1)
    temperature: float | None = Field(default=None, ge=0)
    max_retries: int = Field(
        default=2, ge=0, description="Requeues allowed after a rate-limit response"
    )
    queue_delay: float = Field(
        default=1.5, ge=0, description="Seconds between consecutive summary requests"
    )
    transcript_chunks: int = Field(default=100, ge=1)
    max_transcript_chars: int = Field(default=12_000, ge=1)


class ManagerConfig(BaseModel):
    """Top-level claude-manager configuration."""

    shell: ShellConfig = Field(default_factory=ShellConfig)
    buffer: BufferConfig = Field(default_factory=BufferConfig)
    status: StatusConfig = Field(default_factory=StatusConfig)
    summary: SummaryConfig = Field(default_factory=SummaryConfig)

    @classmethod
    def load(cls, config_path: str | None = None) -> ManagerConfig:
        """Load config from file, env vars, or defaults.

        Priority: env vars > config file > defaults.

        Raises:
            pydantic.ValidationError: A value is out of range or of the wrong type.

        Env vars:
            CLAUDE_MANAGER_SHELL            - Shell used to launch sessions
            CLAUDE_MANAGER_COMMAND          - Default launch command
            CLAUDE_MANAGER_MODEL            - Summarization model (litellm format)
            CLAUDE_MANAGER_MAX_CHUNKS       - Output chunks kept per session
            CLAUDE_MANAGER_DEBOUNCE         - Busy debounce in seconds
            CLAUDE_MANAGER_SUMMARY_RETRIES  - Rate-limit retries per summary
            CLAUDE_MANAGER_SUMMARY_DELAY    - Seconds between summary requests
        """
        # .env values win over stale shell exports
        load_dotenv(override=True)

        config_data: dict[str, Any] = {}

        if config_path and os.path.exists(config_path):
            with open(config_path) as f:
                config_data = json.load(f)

        shell = config_data.get("shell", {})
        buffer = config_data.get("buffer", {})
        status = config_data.get("status", {})
        summary = config_data.get("summary", {})

        env_shell = os.environ.get("CLAUDE_MANAGER_SHELL")
        if env_shell:
            shell["shell"] = env_shell

        env_command = os.environ.get("CLAUDE_MANAGER_COMMAND")
        if env_command:
            shell["launch_command"] = env_command

        env_model = os.environ.get("CLAUDE_MANAGER_MODEL")
        if env_model:
            summary["model"] = env_model

        # Numeric values stay strings here; validation coerces and range-checks them
        env_max_chunks = os.environ.get("CLAUDE_MANAGER_MAX_CHUNKS")
        if env_max_chunks:
            buffer["max_chunks"] = env_max_chunks

        env_debounce = os.environ.get("CLAUDE_MANAGER_DEBOUNCE")
        if env_debounce:
            status["debounce"] = env_debounce

        env_retries = os.environ.get("CLAUDE_MANAGER_SUMMARY_RETRIES")
        if env_retries:
            summary["max_retries"] = env_retries

        env_delay = os.environ.get("CLAUDE_MANAGER_SUMMARY_DELAY")
        if env_delay:
            summary["queue_delay"] = env_delay

        for key, section in (
            ("shell", shell),
            ("buffer", buffer),
            ("status", status),
            ("summary", summary),
        ):
            if section:
                config_data[key] = section

        return cls.model_validate(config_data)
