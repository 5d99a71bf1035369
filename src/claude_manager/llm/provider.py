"""Completion provider — one chat completion through litellm.

Summaries are a single short request, so the provider returns the whole
reply text rather than streaming it. The model string carries the provider
prefix ("anthropic/...", "openai/...", "gemini/...") and litellm picks up
the matching API key from the environment.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

if TYPE_CHECKING:
    from litellm import ModelResponse

logger = logging.getLogger(__name__)

# Network hiccups worth another try before the caller sees an error
TRANSIENT_ERRORS = (ConnectionError, TimeoutError, OSError)


@dataclass
class ProviderConfig:
    model: str
    temperature: float | None = None
    max_tokens: int | None = None


@runtime_checkable
class CompletionProvider(Protocol):
    """Anything that can turn a message list into reply text."""

    @property
    def config(self) -> ProviderConfig: ...

    async def complete(
        self,
        messages: list[dict[str, Any]],
        system: str | None = None,
    ) -> str: ...


@dataclass
class LiteLLMProvider:
    """CompletionProvider backed by ``litellm.acompletion``.

    Transient network errors are retried here. Everything else, rate
    limits and auth failures included, propagates as the litellm
    exception; the summarizer decides what those mean.
    """

    _config: ProviderConfig

    @property
    def config(self) -> ProviderConfig:
        return self._config

    async def complete(
        self,
        messages: list[dict[str, Any]],
        system: str | None = None,
    ) -> str:
        response = await _acompletion_with_retry(**self._request(messages, system))
        return _response_text(response)

    def _request(
        self, messages: list[dict[str, Any]], system: str | None
    ) -> dict[str, Any]:
        if system:
            messages = [{"role": "system", "content": system}, *messages]
        request: dict[str, Any] = {"model": self._config.model, "messages": messages}
        # Unset knobs are left out so the provider's own defaults apply
        optional = {
            "temperature": self._config.temperature,
            "max_tokens": self._config.max_tokens,
        }
        request.update({k: v for k, v in optional.items() if v is not None})
        return request


@retry(
    retry=retry_if_exception_type(TRANSIENT_ERRORS),
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=1, max=30),
    before_sleep=before_sleep_log(logger, logging.WARNING),
    reraise=True,
)
async def _acompletion_with_retry(**kwargs: Any) -> ModelResponse:
    import litellm

    logger.debug("Completion request: model=%s", kwargs.get("model"))
    return await litellm.acompletion(**kwargs)


def _response_text(response: Any) -> str:
    """Reply text of the first choice, or "" when there is none."""
    choices = getattr(response, "choices", None)
    if not choices:
        return ""
    message = getattr(choices[0], "message", None)
    return getattr(message, "content", None) or ""


def create_provider(
    model: str,
    temperature: float | None = None,
    max_tokens: int | None = None,
) -> CompletionProvider:
    """Build the default provider for ``model`` (litellm provider/model format)."""
    return LiteLLMProvider(
        _config=ProviderConfig(model=model, temperature=temperature, max_tokens=max_tokens)
    )
