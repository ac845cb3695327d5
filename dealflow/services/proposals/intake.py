"""Inbound proposal intake: gate extracted pitches into the review queue.

Gate order is fixed: confidence, message id, suppressed sender, name.
A name already used by a deal or queue entry blocks intake, except for a
snoozed sender's follow-up mail.
Low-confidence noise is dropped before it can occupy a dedup slot.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from dealflow.config import Settings, get_settings
from dealflow.llm.errors import QUOTA_GUIDANCE, AIQuotaExceededError
from dealflow.models import Deal, ProposalQueueEntry, RejectedEmail
from dealflow.schemas.proposal import (
    ExtractedProposal,
    InboundMessage,
    IntakeOutcome,
    IntakeResult,
    SyncResult,
)
from dealflow.services.proposals.deal_factory import normalize_name
from dealflow.services.proposals.state_machine import MERGED_REASON, ProposalStatus

logger = logging.getLogger(__name__)

PREVIEW_CHARS = 500
AI_REASON_EXTRACTED = "ai_extracted"
PDF_MIME_TYPE = "application/pdf"

Extractor = Callable[[InboundMessage], ExtractedProposal | None]


def _lower(address: str | None) -> str | None:
    return address.strip().lower() if address else None


def is_rejected_sender(db: Session, organization_id: str, address: str | None) -> bool:
    """True when address has a RejectedEmail suppression record in the organization."""
    normalized = _lower(address)
    if not normalized:
        return False
    return (
        db.query(RejectedEmail.id)
        .filter(
            RejectedEmail.organization_id == organization_id,
            func.lower(RejectedEmail.email_address) == normalized,
        )
        .first()
        is not None
    )


def message_already_queued(db: Session, message_id: str) -> bool:
    return (
        db.query(ProposalQueueEntry.id)
        .filter(ProposalQueueEntry.email_message_id == message_id)
        .first()
        is not None
    )


def _open_to_followup(row: ProposalQueueEntry, sender: str) -> bool:
    if _lower(row.email_from) != sender:
        return False
    if row.status == ProposalStatus.REJECTED.value:
        return row.rejection_reason == MERGED_REASON
    return row.status in (ProposalStatus.SNOOZED.value, ProposalStatus.PENDING.value)


def _name_taken(
    db: Session, organization_id: str, normalized: str, sender: str | None
) -> bool:
    """A deal or queue entry in the organization already uses the normalized name.

    The one exception is follow-up correspondence: while the sender's own
    entry under this name is snoozed, that sender's new mail is let through
    so the snooze check can judge it. Every other same-name entry must then
    be the snoozed original, a follow-up awaiting the check, or a follow-up
    already merged into the original.
    """
    deal_hit = (
        db.query(Deal.id)
        .filter(Deal.organization_id == organization_id, Deal.normalized_name == normalized)
        .first()
    )
    if deal_hit is not None:
        return True

    rows = (
        db.query(ProposalQueueEntry)
        .filter(
            ProposalQueueEntry.organization_id == organization_id,
            ProposalQueueEntry.normalized_name == normalized,
        )
        .all()
    )
    if not rows:
        return False
    if not sender:
        return True
    snoozed = any(
        r.status == ProposalStatus.SNOOZED.value and _lower(r.email_from) == sender for r in rows
    )
    return not (snoozed and all(_open_to_followup(r, sender) for r in rows))


def _pdf_attachments(message: InboundMessage) -> list[dict]:
    return [
        a.model_dump()
        for a in message.attachments
        if a.content_type.lower() == PDF_MIME_TYPE
    ]


def enqueue_proposal(
    db: Session,
    organization_id: str,
    user_id: str | None,
    message: InboundMessage,
    extraction: ExtractedProposal | None,
    settings: Settings | None = None,
) -> IntakeResult:
    """Queue an extracted proposal if it passes every intake gate.

    Skips are outcomes, not errors: the returned IntakeResult says which gate
    stopped the message.
    """
    if settings is None:
        settings = get_settings()

    def outcome(kind: IntakeOutcome, **extra) -> IntakeResult:
        return IntakeResult(message_id=message.message_id, outcome=kind, **extra)

    if extraction is None or not (extraction.startup_name or "").strip():
        logger.info("Intake skipped (no proposal): message_id=%s", message.message_id)
        return outcome(IntakeOutcome.NO_PROPOSAL)

    startup_name = extraction.startup_name.strip()
    if extraction.confidence < settings.intake_confidence_threshold:
        logger.info(
            "Intake skipped (low confidence %.0f%%): %s", extraction.confidence, startup_name
        )
        return outcome(IntakeOutcome.LOW_CONFIDENCE, startup_name=startup_name)

    if message_already_queued(db, message.message_id):
        logger.info("Intake skipped (already queued): message_id=%s", message.message_id)
        return outcome(IntakeOutcome.DUPLICATE_MESSAGE, startup_name=startup_name)

    sender = _lower(message.from_address)
    founder_email = _lower(extraction.contact_email)
    if is_rejected_sender(db, organization_id, sender) or is_rejected_sender(
        db, organization_id, founder_email
    ):
        logger.info("Intake skipped (rejected sender): %s", founder_email or sender)
        return outcome(IntakeOutcome.SUPPRESSED_SENDER, startup_name=startup_name)

    normalized = normalize_name(startup_name)
    if _name_taken(db, organization_id, normalized, sender):
        logger.info("Intake skipped (duplicate name): %s", startup_name)
        return outcome(IntakeOutcome.DUPLICATE_NAME, startup_name=startup_name)

    entry = ProposalQueueEntry(
        organization_id=organization_id,
        user_id=user_id,
        email_message_id=message.message_id,
        email_subject=message.subject or "No Subject",
        email_from=sender,
        email_from_name=message.from_name,
        email_date=message.date,
        email_preview=(message.body or "")[:PREVIEW_CHARS],
        startup_name=startup_name,
        normalized_name=normalized,
        description=extraction.description,
        website=extraction.website,
        founder_name=extraction.founder_name,
        founder_email=founder_email,
        ask_amount=extraction.ask_amount,
        stage=extraction.stage,
        extracted_data=extraction.model_dump(mode="json"),
        confidence=extraction.confidence / 100,
        ai_reason=AI_REASON_EXTRACTED,
        attachments=_pdf_attachments(message) or None,
        status=ProposalStatus.PENDING.value,
    )
    db.add(entry)
    try:
        db.commit()
    except IntegrityError:
        # Concurrent intake of the same message id
        db.rollback()
        logger.info("Intake skipped (message id race): message_id=%s", message.message_id)
        return outcome(IntakeOutcome.DUPLICATE_MESSAGE, startup_name=startup_name)

    logger.info(
        "Proposal queued: id=%s startup=%s confidence=%.0f%% from=%s",
        entry.id,
        startup_name,
        extraction.confidence,
        sender,
    )
    return outcome(IntakeOutcome.QUEUED, proposal_id=entry.id, startup_name=startup_name)


def ingest_messages(
    db: Session,
    organization_id: str,
    user_id: str | None,
    messages: Iterable[InboundMessage],
    extract: Extractor,
    settings: Settings | None = None,
) -> SyncResult:
    """Extract and enqueue a batch of forwarded messages.

    Already-queued message ids are skipped before extraction. A failure on one
    message is logged and the batch continues; a quota failure stops the batch.
    """
    if settings is None:
        settings = get_settings()

    result = SyncResult()
    for message in messages:
        result.processed += 1
        if message_already_queued(db, message.message_id):
            result.skipped += 1
            result.results.append(
                IntakeResult(
                    message_id=message.message_id, outcome=IntakeOutcome.DUPLICATE_MESSAGE
                )
            )
            continue

        try:
            extraction = extract(message)
            intake = enqueue_proposal(
                db, organization_id, user_id, message, extraction, settings=settings
            )
        except AIQuotaExceededError:
            logger.warning(
                "Intake stopped: AI quota exceeded after %d messages", result.processed - 1
            )
            result.processed -= 1
            result.quota_exceeded = True
            result.errors.append(QUOTA_GUIDANCE)
            break
        except Exception as exc:
            db.rollback()
            logger.exception("Intake failed for message %s", message.message_id)
            result.failed += 1
            result.errors.append(f"{message.subject or message.message_id}: {exc}")
            continue

        result.results.append(intake)
        if intake.outcome is IntakeOutcome.QUEUED:
            result.queued += 1
        else:
            result.skipped += 1

    logger.info(
        "Intake batch done: org=%s processed=%d queued=%d skipped=%d failed=%d quota=%s",
        organization_id,
        result.processed,
        result.queued,
        result.skipped,
        result.failed,
        result.quota_exceeded,
    )
    return result
