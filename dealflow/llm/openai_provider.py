"""
OpenAI-backed judgment provider.

Transient transport failures (timeouts, dropped connections) are retried with
exponential backoff. Quota and rate-limit failures are never retried: they are
raised as AIQuotaExceededError and the calling batch decides when to resume.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Iterator
from typing import Any

from openai import APIConnectionError, APIError, APITimeoutError, OpenAI, RateLimitError

from dealflow.llm.errors import AIQuotaExceededError, is_quota_error
from dealflow.llm.provider import LLMProvider

logger = logging.getLogger(__name__)

INITIAL_BACKOFF = 1.0  # seconds
BACKOFF_MULTIPLIER = 2.0
DEFAULT_TEMPERATURE = 0.7

_TRANSIENT_ERRORS = (APITimeoutError, APIConnectionError)
_PASSTHROUGH_OPTIONS = ("max_tokens", "response_format")


def _backoff_delays(attempts: int) -> Iterator[float | None]:
    """Yield the wait before each retry; the last attempt yields None."""
    delay = INITIAL_BACKOFF
    for _ in range(attempts - 1):
        yield delay
        delay *= BACKOFF_MULTIPLIER
    yield None


class OpenAIProvider(LLMProvider):
    """Chat-completions provider used for progress evaluation and founder mail."""

    def __init__(
        self,
        api_key: str,
        model: str = "gpt-4o-mini",
        timeout: float = 60.0,
        max_retries: int = 3,
    ) -> None:
        self.model = model
        self.timeout = timeout
        self.max_retries = max(1, max_retries)
        self._client = OpenAI(api_key=api_key, timeout=timeout)

    def _build_request(self, prompt: str, system_prompt: str | None, options: dict[str, Any]) -> dict[str, Any]:
        messages = [{"role": "user", "content": prompt}]
        if system_prompt:
            messages.insert(0, {"role": "system", "content": system_prompt})
        request: dict[str, Any] = {
            "model": self.model,
            "messages": messages,
            "temperature": options.get("temperature", DEFAULT_TEMPERATURE),
        }
        request.update({k: options[k] for k in _PASSTHROUGH_OPTIONS if k in options})
        return request

    def _send(self, request: dict[str, Any]) -> str:
        started = time.monotonic()
        response = self._client.chat.completions.create(**request)
        usage = response.usage
        logger.info(
            "LLM call: model=%s tokens_in=%d tokens_out=%d latency=%.2fs",
            self.model,
            usage.prompt_tokens if usage else 0,
            usage.completion_tokens if usage else 0,
            time.monotonic() - started,
        )
        return response.choices[0].message.content or ""

    def complete(
        self,
        prompt: str,
        system_prompt: str | None = None,
        **kwargs: Any,
    ) -> str:
        """Return the completion text for prompt.

        Recognised kwargs: temperature, max_tokens, response_format
        (``{"type": "json_object"}`` for JSON mode).

        Raises:
            AIQuotaExceededError: quota or rate limit hit.
            APITimeoutError / APIConnectionError: still failing after max_retries.
        """
        request = self._build_request(prompt, system_prompt, kwargs)
        for attempt, delay in enumerate(_backoff_delays(self.max_retries), start=1):
            try:
                return self._send(request)
            except RateLimitError as exc:
                logger.error("OpenAI rate limit or quota hit, not retrying: %s", exc)
                raise AIQuotaExceededError() from exc
            except _TRANSIENT_ERRORS as exc:
                if delay is None:
                    logger.error("OpenAI %s after %d attempts, giving up", type(exc).__name__, attempt)
                    raise
                logger.warning(
                    "OpenAI %s on attempt %d/%d, retrying in %.1fs",
                    type(exc).__name__,
                    attempt,
                    self.max_retries,
                    delay,
                )
                time.sleep(delay)
            except APIError as exc:
                if is_quota_error(exc):
                    raise AIQuotaExceededError() from exc
                logger.error("OpenAI API error: %s", exc)
                raise
        raise AssertionError("retry schedule exhausted without a result")
