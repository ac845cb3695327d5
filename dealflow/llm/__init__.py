"""LLM provider abstraction. LLM is judgment only, never orchestration."""

from dealflow.llm.errors import AIQuotaExceededError, is_quota_error
from dealflow.llm.openai_provider import OpenAIProvider
from dealflow.llm.provider import LLMProvider
from dealflow.llm.router import ModelRole, get_llm_provider

__all__ = [
    "AIQuotaExceededError",
    "LLMProvider",
    "ModelRole",
    "OpenAIProvider",
    "get_llm_provider",
    "is_quota_error",
]
