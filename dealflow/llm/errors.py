"""LLM failure classification."""

from __future__ import annotations

from openai import RateLimitError

QUOTA_GUIDANCE = "AI quota exceeded - please check your API billing or wait for quota reset"


class AIQuotaExceededError(RuntimeError):
    """The AI judgment service refused the call for quota or rate-limit reasons.

    Not retried by the core; callers back off and report billing/quota guidance.
    """

    def __init__(self, message: str = QUOTA_GUIDANCE) -> None:
        super().__init__(message)


def is_quota_error(exc: BaseException) -> bool:
    """Return True when the failure carries a quota / rate-limit signature."""
    if isinstance(exc, (AIQuotaExceededError, RateLimitError)):
        return True
    if getattr(exc, "status_code", None) == 429:
        return True
    text = str(exc).lower()
    return "429" in text or "quota" in text
