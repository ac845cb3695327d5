"""Founder notifications for queue transitions.

Composition goes through the judgment service, delivery through SMTP. Both
steps are best-effort: a failure is logged and reported as False.
"""

from __future__ import annotations

import logging
from collections.abc import Callable

from dealflow.models import ProposalQueueEntry
from dealflow.services.email_service import send_founder_email
from dealflow.services.judgment import JudgmentService

logger = logging.getLogger(__name__)

Mailer = Callable[[str, str, str], bool]


def rejection_subject(entry: ProposalQueueEntry) -> str:
    return f"Re: {entry.startup_name}"


def snooze_subject(entry: ProposalQueueEntry) -> str:
    return f"Re: {entry.startup_name} - Looking forward to updates"


class FounderNotifier:
    def __init__(self, judgment: JudgmentService, mailer: Mailer | None = None) -> None:
        self.judgment = judgment
        self.mailer = mailer or send_founder_email

    def _notify(
        self,
        kind: str,
        entry: ProposalQueueEntry,
        compose: Callable[[ProposalQueueEntry], str],
        subject: str,
    ) -> bool:
        if not entry.founder_email:
            return False
        try:
            body = compose(entry)
        except Exception:
            logger.exception("Could not compose %s email for proposal %s", kind, entry.id)
            return False
        sent = self.mailer(entry.founder_email, subject, body)
        if sent:
            logger.info("Sent %s email for proposal %s", kind, entry.id)
        else:
            logger.warning("%s email not sent for proposal %s", kind.capitalize(), entry.id)
        return sent

    def notify_rejection(self, entry: ProposalQueueEntry) -> bool:
        return self._notify(
            "rejection", entry, self.judgment.compose_rejection_email, rejection_subject(entry)
        )

    def notify_snooze(self, entry: ProposalQueueEntry) -> bool:
        return self._notify(
            "snooze", entry, self.judgment.compose_snooze_email, snooze_subject(entry)
        )
