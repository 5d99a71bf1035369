"""LLM abstraction layer — litellm completions and session summarization."""

from claude_manager.llm.provider import (
    CompletionProvider,
    LiteLLMProvider,
    ProviderConfig,
    create_provider,
)
from claude_manager.llm.summarizer import (
    Summarizer,
    SummaryResult,
    build_transcript,
    extract_json,
    parse_summary,
    translate_error,
)

__all__ = [
    "CompletionProvider",
    "LiteLLMProvider",
    "ProviderConfig",
    "create_provider",
    "Summarizer",
    "SummaryResult",
    "build_transcript",
    "extract_json",
    "parse_summary",
    "translate_error",
]
