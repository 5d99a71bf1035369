"""Session summarization — title and summary of a transcript via the LLM.

Every failure is translated into the ``SummaryError`` taxonomy so that the
summary queue never has to know about litellm's exception classes.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Sequence

from pydantic import BaseModel, ValidationError

from claude_manager.errors import (
    SummaryAuthError,
    SummaryError,
    SummaryParseError,
    SummaryRateLimited,
    SummaryTransportError,
)
from claude_manager.llm.provider import CompletionProvider
from claude_manager.session.models import DEFAULT_TITLE
from claude_manager.text import clean_terminal_output

logger = logging.getLogger(__name__)

FALLBACK_SUMMARY = "Could not summarize this session"

SUMMARY_PROMPT = """\
Analyze the following terminal session of an AI coding assistant and reply \
with JSON in exactly this shape:
{{
  "title": "a short title of at most 6 words",
  "summary": "what the session is about, in at most 40 words"
}}

Session output:
{transcript}

Reply with the JSON only, no other text."""

_CODE_BLOCK_RE = re.compile(r"```(?:json)?\s*([\s\S]*?)```")


class SummaryResult(BaseModel):
    """Structured reply of the summarization model."""

    title: str | None = None
    summary: str | None = None

    def resolved(self) -> tuple[str, str]:
        """(title, summary) with placeholders for missing or blank fields."""
        title = (self.title or "").strip() or DEFAULT_TITLE
        summary = (self.summary or "").strip() or FALLBACK_SUMMARY
        return title, summary


def build_transcript(
    chunks: Sequence[str],
    max_chunks: int = 100,
    max_chars: int = 12_000,
) -> str:
    """Join the most recent chunks into a cleaned, size-capped transcript."""
    recent = list(chunks[-max_chunks:]) if max_chunks > 0 else []
    return clean_terminal_output("\n".join(recent), max_chars)


def extract_json(text: str) -> str:
    """Unwrap a fenced ```json block if the model added one."""
    match = _CODE_BLOCK_RE.search(text)
    if match:
        return match.group(1).strip()
    return text.strip()


def parse_summary(text: str) -> SummaryResult:
    """Parse the model reply.

    Raises:
        SummaryParseError: Empty reply, invalid JSON, or not a JSON object.
    """
    payload = extract_json(text)
    if not payload:
        raise SummaryParseError("Empty response from summarization model")
    try:
        data = json.loads(payload)
    except json.JSONDecodeError as e:
        raise SummaryParseError(f"Response is not valid JSON: {e}") from e
    if not isinstance(data, dict):
        raise SummaryParseError(f"Expected a JSON object, got {type(data).__name__}")
    try:
        return SummaryResult.model_validate(
            {k: _as_text(data.get(k)) for k in ("title", "summary")}
        )
    except ValidationError as e:
        raise SummaryParseError(f"Unexpected response shape: {e}") from e


def _as_text(value: Any) -> str | None:
    if value is None or isinstance(value, str):
        return value
    return str(value)


def translate_error(exc: BaseException) -> SummaryError:
    """Map a provider exception onto the summary error taxonomy."""
    if isinstance(exc, SummaryError):
        return exc

    import litellm

    status_code = getattr(exc, "status_code", None)
    if isinstance(exc, litellm.RateLimitError) or status_code == 429:
        return SummaryRateLimited(str(exc))
    if isinstance(exc, litellm.AuthenticationError) or status_code in (401, 403):
        return SummaryAuthError(str(exc))
    return SummaryTransportError(f"{type(exc).__name__}: {exc}")


class Summarizer:
    """Turns session output chunks into a title and a summary."""

    def __init__(
        self,
        provider: CompletionProvider,
        transcript_chunks: int = 100,
        max_transcript_chars: int = 12_000,
    ) -> None:
        self.provider = provider
        self.transcript_chunks = transcript_chunks
        self.max_transcript_chars = max_transcript_chars

    async def summarize(self, chunks: Sequence[str]) -> tuple[str, str]:
        """Return (title, summary) for the given output chunks.

        Raises:
            SummaryRateLimited: The API rate-limited the request.
            SummaryAuthError: Credentials are missing or rejected.
            SummaryParseError: The reply could not be understood.
            SummaryTransportError: Anything else went wrong on the way.
        """
        transcript = build_transcript(
            chunks, self.transcript_chunks, self.max_transcript_chars
        )
        prompt = SUMMARY_PROMPT.format(transcript=transcript)

        try:
            text = await self.provider.complete([{"role": "user", "content": prompt}])
        except Exception as e:
            error = translate_error(e)
            logger.warning("Summary request failed: %s", error)
            raise error from e

        return parse_summary(text).resolved()
