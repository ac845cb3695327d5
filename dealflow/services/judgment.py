"""AI judgment collaborator: snooze progress evaluation and founder mail drafts.

The LLM judges; it never drives control flow. Unparseable output degrades to
a keep_snoozed evaluation. Call failures propagate: quota failures as
AIQuotaExceededError so the caller can stop its batch, anything else as is.
"""

from __future__ import annotations

import json
import logging
import re

from pydantic import ValidationError

from dealflow.config import Settings, get_settings
from dealflow.llm.errors import AIQuotaExceededError, is_quota_error
from dealflow.llm.provider import LLMProvider
from dealflow.llm.router import ModelRole, get_llm_provider
from dealflow.models import ProposalQueueEntry
from dealflow.prompts.loader import render_prompt
from dealflow.schemas.proposal import ProgressEvaluation, ProgressRecommendation

logger = logging.getLogger(__name__)

EVALUATION_FAILED_SUMMARY = "Failed to evaluate progress"
FOLLOWUP_BODY_CHARS = 2000

_JSON_FENCE_RE = re.compile(r"^```(?:json)?\s*|\s*```$", re.MULTILINE)
_SIGN_OFF_RE = re.compile(r"Best regards,?\s*\n.*$", re.IGNORECASE | re.DOTALL)


def _parse_json_safe(text: str | None) -> dict | None:
    """Parse a JSON object, tolerating a markdown code fence. None on failure."""
    if not text:
        return None
    try:
        parsed = json.loads(_JSON_FENCE_RE.sub("", text.strip()))
    except (json.JSONDecodeError, TypeError):
        return None
    return parsed if isinstance(parsed, dict) else None


def fallback_evaluation() -> ProgressEvaluation:
    return ProgressEvaluation(
        recommendation=ProgressRecommendation.KEEP_SNOOZED,
        progress_summary=EVALUATION_FAILED_SUMMARY,
    )


def _first_name(full_name: str | None) -> str:
    if not full_name or not full_name.strip():
        return "there"
    return full_name.split()[0]


def _describe_followups(followups: list[ProposalQueueEntry]) -> str:
    blocks = []
    for i, f in enumerate(followups, start=1):
        blocks.append(
            f"[{i}] Subject: {f.email_subject}\n"
            f"From: {f.email_from or 'unknown'}\n"
            f"Content: {(f.email_preview or f.description or '')[:FOLLOWUP_BODY_CHARS]}"
        )
    return "\n\n".join(blocks)


class JudgmentService:
    """Wraps the LLM provider for the judgments the proposal lifecycle needs."""

    def __init__(
        self,
        provider: LLMProvider | None = None,
        outreach_provider: LLMProvider | None = None,
        settings: Settings | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self._provider = provider
        self._outreach_provider = outreach_provider or provider

    @property
    def provider(self) -> LLMProvider:
        if self._provider is None:
            self._provider = get_llm_provider(ModelRole.JSON, settings=self.settings)
        return self._provider

    @property
    def outreach_provider(self) -> LLMProvider:
        if self._outreach_provider is None:
            self._outreach_provider = get_llm_provider(ModelRole.OUTREACH, settings=self.settings)
        return self._outreach_provider

    def _complete(self, provider: LLMProvider, prompt: str, **kwargs) -> str:
        try:
            return provider.complete(prompt, **kwargs)
        except AIQuotaExceededError:
            raise
        except Exception as exc:
            if is_quota_error(exc):
                raise AIQuotaExceededError() from exc
            raise

    def evaluate_progress(
        self,
        entry: ProposalQueueEntry,
        followups: list[ProposalQueueEntry],
    ) -> ProgressEvaluation:
        """Judge whether follow-up correspondence shows progress on a snoozed proposal.

        Malformed JSON or out-of-range values yield the keep_snoozed fallback.
        A failed call (timeout, connection error) propagates so the caller can
        leave the entry and its follow-ups untouched until the next run.

        Raises:
            AIQuotaExceededError: quota or rate limit hit.
        """
        prompt = render_prompt(
            "progress_evaluation_v1",
            STARTUP_NAME=entry.startup_name,
            DESCRIPTION=entry.description or "Not provided",
            STAGE=entry.stage or "Unknown",
            EXTRACTED_DATA=json.dumps(entry.extracted_data or {}, default=str),
            FOLLOWUPS=_describe_followups(followups),
        )
        raw = self._complete(
            self.provider, prompt, response_format={"type": "json_object"}, temperature=0.2
        )

        parsed = _parse_json_safe(raw)
        if parsed is None:
            logger.error("Progress evaluation returned invalid JSON for proposal %s", entry.id)
            return fallback_evaluation()
        try:
            return ProgressEvaluation.model_validate(parsed)
        except ValidationError:
            logger.error("Progress evaluation JSON failed validation for proposal %s", entry.id)
            return fallback_evaluation()

    def _compose(self, template_name: str, entry: ProposalQueueEntry) -> str:
        signature = self.settings.founder_mail_signature
        prompt = render_prompt(
            template_name,
            STARTUP_NAME=entry.startup_name,
            FOUNDER_NAME=entry.founder_name or "Unknown",
            FOUNDER_FIRST_NAME=_first_name(entry.founder_name),
            DESCRIPTION=entry.description or "Not provided",
            SIGNATURE=signature,
        )
        text = self._complete(self.outreach_provider, prompt, temperature=0.7).strip()
        # Pin the sign-off regardless of what the model wrote after it
        if _SIGN_OFF_RE.search(text):
            return _SIGN_OFF_RE.sub(lambda _m: f"Best regards,\n{signature}", text)
        return f"{text}\n\nBest regards,\n{signature}"

    def compose_rejection_email(self, entry: ProposalQueueEntry) -> str:
        return self._compose("rejection_email_v1", entry)

    def compose_snooze_email(self, entry: ProposalQueueEntry) -> str:
        return self._compose("snooze_email_v1", entry)
