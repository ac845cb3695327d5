"""
LLM provider abstraction.

The LLM is the AI judgment collaborator only. It may:
- evaluate a snoozed proposal against new correspondence
- compose founder-facing rejection and follow-up messages

It may NOT: access the DB, change proposal state, or decide to send mail.
"""

from abc import ABC, abstractmethod
from typing import Any


class LLMProvider(ABC):
    """Abstract base for LLM providers."""

    @abstractmethod
    def complete(
        self,
        prompt: str,
        system_prompt: str | None = None,
        **kwargs: Any,
    ) -> str:
        """Send prompt and return completion text."""
        ...
