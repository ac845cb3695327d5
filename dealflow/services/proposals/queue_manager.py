"""Proposal queue transitions: approve, reject, snooze.

Each transition locks the entry row, validates the move through the state
machine and commits the primary change on its own. Score seeding, attachment
replay and founder mail are post-commit hooks.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Protocol

from dateutil.relativedelta import relativedelta
from sqlalchemy import func
from sqlalchemy.orm import Session

from dealflow.config import Settings, get_settings
from dealflow.models import Deal, ProposalQueueEntry, RejectedEmail
from dealflow.schemas.proposal import QueuedProposal, TransitionResult
from dealflow.services.errors import (
    DuplicateDealError,
    InvalidProposalTransitionError,
    ProposalNotFoundError,
)
from dealflow.services.proposals.deal_factory import (
    DocumentAnalyzer,
    build_deal_from_proposal,
    normalize_name,
    replay_attachments,
    seed_deal_score,
)
from dealflow.services.proposals.hooks import PostCommitHooks
from dealflow.services.proposals.state_machine import ProposalAction, ProposalStatus, next_status
from dealflow.services.timeutil import utc_now

logger = logging.getLogger(__name__)


class FounderNotifierLike(Protocol):
    def notify_rejection(self, entry: ProposalQueueEntry) -> bool: ...

    def notify_snooze(self, entry: ProposalQueueEntry) -> bool: ...


def get_queued_proposals(db: Session, organization_id: str) -> list[QueuedProposal]:
    """All pending entries for the organization, newest first."""
    rows = (
        db.query(ProposalQueueEntry)
        .filter(
            ProposalQueueEntry.organization_id == organization_id,
            ProposalQueueEntry.status == ProposalStatus.PENDING.value,
        )
        .order_by(ProposalQueueEntry.created_at.desc(), ProposalQueueEntry.id.desc())
        .all()
    )
    return [QueuedProposal.model_validate(r) for r in rows]


def _load_for_update(db: Session, proposal_id: int) -> ProposalQueueEntry:
    entry = (
        db.query(ProposalQueueEntry)
        .filter(ProposalQueueEntry.id == proposal_id)
        .with_for_update()
        .first()
    )
    if entry is None:
        db.rollback()
        raise ProposalNotFoundError(proposal_id)
    return entry


def _transition(db: Session, entry: ProposalQueueEntry, action: ProposalAction) -> ProposalStatus:
    try:
        return next_status(entry.status, action, entry.id)
    except ValueError:
        db.rollback()
        raise


def approve_proposal(
    db: Session,
    proposal_id: int,
    user_id: str | None,
    analyzer: DocumentAnalyzer | None = None,
    now: datetime | None = None,
) -> TransitionResult:
    """Create the deal for a pending entry and mark the entry approved.

    The deal and the entry update share one commit. Score seeding and
    attachment replay follow as hooks; their failure leaves the approval intact.

    Raises:
        ProposalNotFoundError: no such entry.
        ProposalAlreadyProcessedError: entry already approved or rejected.
        InvalidProposalTransitionError: entry is snoozed.
        DuplicateDealError: the organization already has a deal with this name.
    """
    now = now or utc_now()
    entry = _load_for_update(db, proposal_id)
    target = _transition(db, entry, ProposalAction.APPROVE)

    normalized = entry.normalized_name or normalize_name(entry.startup_name)
    existing = (
        db.query(Deal.id)
        .filter(Deal.organization_id == entry.organization_id, Deal.normalized_name == normalized)
        .first()
    )
    if normalized and existing is not None:
        db.rollback()
        raise DuplicateDealError(proposal_id, existing[0])

    deal = build_deal_from_proposal(entry, user_id)
    db.add(deal)
    db.flush()

    entry.status = target.value
    entry.reviewed_at = now
    entry.reviewed_by = user_id
    entry.created_deal_id = deal.id
    db.commit()

    deal_id = deal.id
    confidence = entry.confidence
    message_id = entry.email_message_id
    attachments = list(entry.attachments or [])
    logger.info(
        "Proposal approved: id=%s deal_id=%s startup=%s", proposal_id, deal_id, entry.startup_name
    )

    hooks = PostCommitHooks(db=db)
    hooks.add("seed_score", lambda: seed_deal_score(db, deal_id, confidence, user_id, now=now))
    if attachments:
        hooks.add(
            "replay_attachments",
            lambda: replay_attachments(db, deal_id, message_id, attachments, analyzer),
        )
    hooks.run()

    return TransitionResult(proposal_id=proposal_id, status=target.value, deal_id=deal_id)


def _suppress_sender(
    db: Session,
    entry: ProposalQueueEntry,
    reason: str,
    user_id: str | None,
    now: datetime,
) -> None:
    """Insert or refresh the RejectedEmail record for the entry's sender."""
    address = entry.sender_address
    if not address:
        return
    address = address.strip().lower()
    record = (
        db.query(RejectedEmail)
        .filter(
            RejectedEmail.organization_id == entry.organization_id,
            func.lower(RejectedEmail.email_address) == address,
        )
        .first()
    )
    if record is None:
        record = RejectedEmail(organization_id=entry.organization_id, email_address=address)
        db.add(record)
    record.startup_name = entry.startup_name
    record.reason = reason
    record.rejected_by = user_id
    record.rejected_at = now


def reject_proposal(
    db: Session,
    proposal_id: int,
    user_id: str | None,
    reason: str | None = None,
    notifier: FounderNotifierLike | None = None,
    now: datetime | None = None,
    settings: Settings | None = None,
) -> TransitionResult:
    """Reject a pending or snoozed entry and suppress its sender.

    Raises:
        ProposalNotFoundError: no such entry.
        ProposalAlreadyProcessedError: entry already approved or rejected.
    """
    if settings is None:
        settings = get_settings()
    now = now or utc_now()
    reason = reason or settings.default_rejection_reason

    entry = _load_for_update(db, proposal_id)
    target = _transition(db, entry, ProposalAction.REJECT)

    entry.status = target.value
    entry.reviewed_at = now
    entry.reviewed_by = user_id
    entry.rejection_reason = reason
    _suppress_sender(db, entry, reason, user_id, now)
    db.commit()
    logger.info("Proposal rejected: id=%s reason=%s", proposal_id, reason)

    hooks = PostCommitHooks(db=db)
    if notifier is not None and entry.founder_email:
        hooks.add("notify", lambda: notifier.notify_rejection(entry))
    hooks.run()

    return TransitionResult(
        proposal_id=proposal_id,
        status=target.value,
        email_sent=hooks.result_of("notify") is True,
    )


def snooze_proposal(
    db: Session,
    proposal_id: int,
    user_id: str | None,
    months: int | None = None,
    notifier: FounderNotifierLike | None = None,
    now: datetime | None = None,
    settings: Settings | None = None,
) -> TransitionResult:
    """Snooze (or re-snooze) an entry until now + months.

    Raises:
        InvalidProposalTransitionError: months < 1.
        ProposalNotFoundError: no such entry.
        ProposalAlreadyProcessedError: entry already approved or rejected.
    """
    if settings is None:
        settings = get_settings()
    if months is None:
        months = settings.default_snooze_months
    if months < 1:
        raise InvalidProposalTransitionError(f"Snooze period must be at least 1 month, got {months}")
    now = now or utc_now()

    entry = _load_for_update(db, proposal_id)
    target = _transition(db, entry, ProposalAction.SNOOZE)

    entry.status = target.value
    entry.reviewed_at = now
    entry.reviewed_by = user_id
    snoozed_until = now + relativedelta(months=months)
    snooze_count = (entry.snooze_count or 0) + 1
    entry.snoozed_until = snoozed_until
    entry.snooze_count = snooze_count
    db.commit()
    logger.info(
        "Proposal snoozed: id=%s until=%s count=%d",
        proposal_id,
        snoozed_until.isoformat(),
        snooze_count,
    )

    hooks = PostCommitHooks(db=db)
    if notifier is not None and entry.founder_email:
        hooks.add("notify", lambda: notifier.notify_snooze(entry))
    hooks.run()

    return TransitionResult(
        proposal_id=proposal_id,
        status=target.value,
        email_sent=hooks.result_of("notify") is True,
        snoozed_until=snoozed_until,
        snooze_count=snooze_count,
    )
