"""
LLM provider router.

Maps a judgment task (ModelRole) to a configured provider and model. Provider
instances are cached per (provider_name, role) so repeated scheduler runs reuse
one HTTP client.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import TYPE_CHECKING

from dealflow.llm.provider import LLMProvider

if TYPE_CHECKING:
    from dealflow.config import Settings

logger = logging.getLogger(__name__)

SUPPORTED_PROVIDERS: tuple[str, ...] = ("openai",)


class ModelRole(str, Enum):
    """Judgment task, used to pick the model."""

    REASONING = "reasoning"  # deal scoring commentary
    JSON = "json"  # structured snooze progress evaluation
    OUTREACH = "outreach"  # founder rejection / follow-up messages


# Settings attribute holding the model name for each role
_ROLE_MODEL_SETTING: dict[ModelRole, str] = {
    ModelRole.REASONING: "llm_model_reasoning",
    ModelRole.JSON: "llm_model_json",
    ModelRole.OUTREACH: "llm_model_outreach",
}

_provider_cache: dict[str, LLMProvider] = {}


def model_for_role(role: ModelRole, settings: Settings) -> str:
    return getattr(settings, _ROLE_MODEL_SETTING[role], None) or settings.llm_model


def get_llm_provider(
    role: ModelRole = ModelRole.REASONING,
    settings: Settings | None = None,
) -> LLMProvider:
    """Return a cached LLMProvider for the configured provider and role.

    Raises:
        ValueError: provider unsupported or LLM_API_KEY missing.
    """
    if settings is None:
        from dealflow.config import get_settings

        settings = get_settings()

    provider_name = settings.llm_provider.lower()
    if provider_name not in SUPPORTED_PROVIDERS:
        raise ValueError(
            f"Unknown LLM provider: '{provider_name}'. "
            f"Supported providers: {', '.join(SUPPORTED_PROVIDERS)}"
        )

    cache_key = f"{provider_name}:{role.value}"
    cached = _provider_cache.get(cache_key)
    if cached is not None:
        return cached

    if not settings.llm_api_key:
        raise ValueError(
            "LLM_API_KEY is required for the OpenAI provider. "
            "Set it in your environment or .env file."
        )

    from dealflow.llm.openai_provider import OpenAIProvider

    model = model_for_role(role, settings)
    provider = OpenAIProvider(
        api_key=settings.llm_api_key,
        model=model,
        timeout=settings.llm_timeout,
        max_retries=settings.llm_max_retries,
    )
    _provider_cache[cache_key] = provider
    logger.info("Created LLM provider: %s role=%s model=%s", provider_name, role.value, model)
    return provider


def clear_provider_cache() -> None:
    """Drop cached providers (tests, settings reload)."""
    _provider_cache.clear()
