"""Snooze reactivation check.

Run periodically by an external trigger. For each snoozed entry, newer
pending entries from the same sender are follow-up correspondence: they are
judged together against the original, then absorbed into it.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Protocol, assert_never

from sqlalchemy import func
from sqlalchemy.orm import Session

from dealflow.llm.errors import AIQuotaExceededError
from dealflow.models import ProposalQueueEntry
from dealflow.schemas.proposal import ProgressEvaluation, ProgressRecommendation, SnoozeCheckResult
from dealflow.services.proposals.queue_manager import FounderNotifierLike, reject_proposal
from dealflow.services.proposals.state_machine import (
    MERGED_REASON,
    ProposalAction,
    ProposalStatus,
    next_status,
)
from dealflow.services.timeutil import as_utc, utc_now

logger = logging.getLogger(__name__)

NO_PROGRESS_REASON = "no meaningful progress after multiple follow-ups"


class ProgressJudge(Protocol):
    def evaluate_progress(
        self, entry: ProposalQueueEntry, followups: list[ProposalQueueEntry]
    ) -> ProgressEvaluation: ...


def find_followups(db: Session, entry: ProposalQueueEntry) -> list[ProposalQueueEntry]:
    """Pending entries from the same sender created after the entry's last review, oldest first."""
    if not entry.email_from:
        return []
    since = as_utc(entry.reviewed_at or entry.created_at)
    rows = (
        db.query(ProposalQueueEntry)
        .filter(
            ProposalQueueEntry.organization_id == entry.organization_id,
            ProposalQueueEntry.status == ProposalStatus.PENDING.value,
            func.lower(ProposalQueueEntry.email_from) == entry.email_from.lower(),
            ProposalQueueEntry.id != entry.id,
        )
        .order_by(ProposalQueueEntry.created_at.asc(), ProposalQueueEntry.id.asc())
        .all()
    )
    return [r for r in rows if as_utc(r.created_at) > since]


def _absorb_followups(followups: list[ProposalQueueEntry], now: datetime) -> None:
    # No sender suppression here: the original conversation is still open
    for followup in followups:
        followup.status = next_status(followup.status, ProposalAction.REJECT, followup.id).value
        followup.rejection_reason = MERGED_REASON
        followup.reviewed_at = now


def reactivation_notes(evaluation: ProgressEvaluation) -> str:
    return (
        f"REACTIVATED: {evaluation.progress_summary}\n"
        f"Key changes: {', '.join(evaluation.key_changes)}"
    )


def apply_evaluation(
    db: Session,
    entry: ProposalQueueEntry,
    followups: list[ProposalQueueEntry],
    evaluation: ProgressEvaluation,
    notifier: FounderNotifierLike | None = None,
    now: datetime | None = None,
) -> ProgressRecommendation:
    """Persist the outcome of one progress evaluation."""
    now = now or utc_now()
    recommendation = evaluation.recommendation
    entry.last_progress_check = now
    _absorb_followups(followups, now)

    match recommendation:
        case ProgressRecommendation.REACTIVATE:
            entry.status = next_status(entry.status, ProposalAction.REACTIVATE, entry.id).value
            entry.progress_notes = reactivation_notes(evaluation)
            db.commit()
        case ProgressRecommendation.REJECT:
            entry.progress_notes = evaluation.progress_summary
            db.commit()
            reject_proposal(
                db, entry.id, None, reason=NO_PROGRESS_REASON, notifier=notifier, now=now
            )
        case ProgressRecommendation.KEEP_SNOOZED:
            entry.progress_notes = evaluation.progress_summary
            db.commit()
        case _:
            assert_never(recommendation)

    logger.info(
        "Snooze check: id=%s startup=%s recommendation=%s followups=%d",
        entry.id,
        entry.startup_name,
        recommendation.value,
        len(followups),
    )
    return recommendation


def check_snoozed_proposals(
    db: Session,
    organization_id: str,
    judgment: ProgressJudge,
    notifier: FounderNotifierLike | None = None,
    now: datetime | None = None,
) -> SnoozeCheckResult:
    """Evaluate every snoozed entry that has follow-up correspondence.

    Entries are processed one at a time. A failure on one entry is logged and
    the run moves on; a quota failure ends the run with quota_exceeded set.
    """
    now = now or utc_now()
    result = SnoozeCheckResult()

    snoozed = (
        db.query(ProposalQueueEntry)
        .filter(
            ProposalQueueEntry.organization_id == organization_id,
            ProposalQueueEntry.status == ProposalStatus.SNOOZED.value,
            ProposalQueueEntry.email_from.is_not(None),
        )
        .order_by(ProposalQueueEntry.id.asc())
        .all()
    )

    for entry in snoozed:
        entry_id = entry.id
        try:
            followups = find_followups(db, entry)
            if not followups:
                continue
            result.checked += 1
            evaluation = judgment.evaluate_progress(entry, followups)
            recommendation = apply_evaluation(db, entry, followups, evaluation, notifier, now)
        except AIQuotaExceededError:
            db.rollback()
            logger.warning("Snooze check stopped: AI quota exceeded at proposal %s", entry_id)
            result.quota_exceeded = True
            break
        except Exception:
            db.rollback()
            logger.exception("Snooze check failed for proposal %s", entry_id)
            result.failed += 1
            continue

        match recommendation:
            case ProgressRecommendation.REACTIVATE:
                result.reactivated += 1
            case ProgressRecommendation.REJECT:
                result.rejected += 1
            case ProgressRecommendation.KEEP_SNOOZED:
                result.keep_snoozed += 1
            case _:
                assert_never(recommendation)

    logger.info(
        "Snooze check done: org=%s checked=%d reactivated=%d rejected=%d kept=%d failed=%d",
        organization_id,
        result.checked,
        result.reactivated,
        result.rejected,
        result.keep_snoozed,
        result.failed,
    )
    return result
