"""
Tests for the LLM layer: OpenAIProvider retries, quota classification and the role router.

The OpenAI client is always patched; nothing leaves the process.
"""

from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pytest
from openai import APITimeoutError, RateLimitError

from dealflow.config import Settings
from dealflow.llm.errors import QUOTA_GUIDANCE, AIQuotaExceededError, is_quota_error
from dealflow.llm.openai_provider import OpenAIProvider
from dealflow.llm.router import ModelRole, clear_provider_cache, get_llm_provider, model_for_role
from tests.test_constants import TEST_LLM_API_KEY


def _completion(text: str, tokens_in: int = 12, tokens_out: int = 4) -> SimpleNamespace:
    return SimpleNamespace(
        choices=[SimpleNamespace(message=SimpleNamespace(content=text))],
        usage=SimpleNamespace(prompt_tokens=tokens_in, completion_tokens=tokens_out),
    )


def _llm_settings(**overrides) -> Settings:
    """Settings without reading the environment."""
    settings = object.__new__(Settings)
    defaults = dict(
        llm_provider="openai",
        llm_api_key=TEST_LLM_API_KEY,
        llm_model="gpt-4o-mini",
        llm_model_reasoning="gpt-4o",
        llm_model_json="gpt-4o-mini",
        llm_model_outreach="gpt-4o-mini",
        llm_timeout=60.0,
        llm_max_retries=3,
    )
    defaults.update(overrides)
    for name, value in defaults.items():
        setattr(settings, name, value)
    return settings


def _quota_error() -> RateLimitError:
    return RateLimitError(
        message="You exceeded your current quota",
        response=MagicMock(status_code=429),
        body=None,
    )


@pytest.fixture
def openai_client():
    """Patched OpenAI client plus a patched clock, so retries never sleep."""
    with patch("dealflow.llm.openai_provider.OpenAI") as client_cls, patch(
        "dealflow.llm.openai_provider.time"
    ) as clock:
        clock.monotonic.return_value = 0.0
        client = client_cls.return_value
        client.clock = clock
        client.cls = client_cls
        yield client


class TestOpenAIProvider:
    def test_user_prompt_only(self, openai_client) -> None:
        openai_client.chat.completions.create.return_value = _completion("keep_snoozed")

        assert OpenAIProvider(api_key="k").complete("evaluate") == "keep_snoozed"

        request = openai_client.chat.completions.create.call_args.kwargs
        assert request["model"] == "gpt-4o-mini"
        assert request["messages"] == [{"role": "user", "content": "evaluate"}]
        assert request["temperature"] == 0.7

    def test_system_prompt_and_json_mode(self, openai_client) -> None:
        openai_client.chat.completions.create.return_value = _completion("{}")

        OpenAIProvider(api_key="k", model="gpt-4o").complete(
            "judge progress",
            system_prompt="answer in JSON",
            temperature=0.2,
            response_format={"type": "json_object"},
        )

        request = openai_client.chat.completions.create.call_args.kwargs
        assert [m["role"] for m in request["messages"]] == ["system", "user"]
        assert request["temperature"] == 0.2
        assert request["response_format"] == {"type": "json_object"}
        assert "max_tokens" not in request

    def test_empty_content_is_empty_string(self, openai_client) -> None:
        openai_client.chat.completions.create.return_value = _completion(None)
        assert OpenAIProvider(api_key="k").complete("x") == ""

    def test_timeout_is_retried_with_backoff(self, openai_client) -> None:
        openai_client.chat.completions.create.side_effect = [
            APITimeoutError(request=MagicMock()),
            APITimeoutError(request=MagicMock()),
            _completion("done"),
        ]

        assert OpenAIProvider(api_key="k").complete("x") == "done"

        delays = [c.args[0] for c in openai_client.clock.sleep.call_args_list]
        assert delays == [1.0, 2.0]

    def test_timeout_gives_up_after_max_retries(self, openai_client) -> None:
        openai_client.chat.completions.create.side_effect = APITimeoutError(request=MagicMock())

        with pytest.raises(APITimeoutError):
            OpenAIProvider(api_key="k", max_retries=2).complete("x")

        assert openai_client.chat.completions.create.call_count == 2
        assert openai_client.clock.sleep.call_count == 1

    def test_quota_is_not_retried(self, openai_client) -> None:
        openai_client.chat.completions.create.side_effect = _quota_error()

        with pytest.raises(AIQuotaExceededError) as exc_info:
            OpenAIProvider(api_key="k").complete("x")

        assert str(exc_info.value) == QUOTA_GUIDANCE
        assert openai_client.chat.completions.create.call_count == 1
        openai_client.clock.sleep.assert_not_called()


@pytest.mark.parametrize(
    "exc,expected",
    [
        (_quota_error(), True),
        (AIQuotaExceededError(), True),
        (RuntimeError("Resource has been exhausted (e.g. check quota)."), True),
        (RuntimeError("HTTP 429 Too Many Requests"), True),
        (ValueError("bad json"), False),
    ],
)
def test_is_quota_error(exc: Exception, expected: bool) -> None:
    assert is_quota_error(exc) is expected


def test_is_quota_error_status_code_attribute() -> None:
    exc = RuntimeError("slow down")
    exc.status_code = 429
    assert is_quota_error(exc)


class TestRouter:
    def test_provider_cached_per_role(self, openai_client) -> None:
        settings = _llm_settings()
        json_a = get_llm_provider(ModelRole.JSON, settings=settings)
        json_b = get_llm_provider(ModelRole.JSON, settings=settings)
        outreach = get_llm_provider(ModelRole.OUTREACH, settings=settings)

        assert isinstance(json_a, OpenAIProvider)
        assert json_a is json_b
        assert json_a is not outreach

    def test_cache_can_be_cleared(self, openai_client) -> None:
        settings = _llm_settings()
        first = get_llm_provider(settings=settings)
        clear_provider_cache()
        assert get_llm_provider(settings=settings) is not first

    def test_role_models(self, openai_client) -> None:
        settings = _llm_settings(llm_model_reasoning="gpt-4o", llm_model_json="gpt-4o-mini")
        assert get_llm_provider(ModelRole.REASONING, settings=settings).model == "gpt-4o"
        assert get_llm_provider(ModelRole.JSON, settings=settings).model == "gpt-4o-mini"

    def test_empty_role_model_falls_back(self) -> None:
        settings = _llm_settings(llm_model_outreach="", llm_model="gpt-4.1-mini")
        assert model_for_role(ModelRole.OUTREACH, settings) == "gpt-4.1-mini"

    def test_timeout_and_retries_forwarded(self, openai_client) -> None:
        provider = get_llm_provider(settings=_llm_settings(llm_timeout=90.0, llm_max_retries=5))
        assert provider.timeout == 90.0
        assert provider.max_retries == 5
        assert openai_client.cls.call_args.kwargs["timeout"] == 90.0

    def test_unknown_provider(self) -> None:
        with pytest.raises(ValueError, match="Unknown LLM provider"):
            get_llm_provider(settings=_llm_settings(llm_provider="anthropic"))

    def test_missing_api_key(self) -> None:
        with pytest.raises(ValueError, match="LLM_API_KEY is required"):
            get_llm_provider(settings=_llm_settings(llm_api_key=None))
