"""Build a durable Deal from an approved queue entry and seed its score.

Seeding and attachment replay run as post-commit hooks; each is
best-effort relative to the approval that scheduled it.
"""

from __future__ import annotations

import base64
import binascii
import logging
import re
from datetime import datetime
from typing import Protocol

from sqlalchemy.orm import Session

from dealflow.models import Deal, DealDocument, ProposalQueueEntry
from dealflow.schemas.proposal import AttachmentPayload, ExtractedProposal
from dealflow.schemas.scoring import AnalyzedBy, ScoreCategory, ScoreEventCreate, ScoreSource
from dealflow.services.scoring.aggregator import bases_from_confidence, set_base_score
from dealflow.services.scoring.ledger import append_event

logger = logging.getLogger(__name__)

INTAKE_SIGNAL = "Email proposal received - initial evaluation"
DEFAULT_STAGE = "seed"

_WHITESPACE_RE = re.compile(r"\s+")

_STAGE_ALIASES: dict[str, str] = {
    "pre-seed": "pre_seed",
    "preseed": "pre_seed",
    "pre seed": "pre_seed",
    "pre_seed": "pre_seed",
    "seed": "seed",
    "series-a": "series_a",
    "series a": "series_a",
    "series_a": "series_a",
    "series-b": "series_b",
    "series b": "series_b",
    "series_b": "series_b",
    "growth": "growth",
}


def normalize_name(name: str | None) -> str:
    """Case-insensitive dedup key: lowercased, trimmed, inner whitespace collapsed."""
    if not name:
        return ""
    return _WHITESPACE_RE.sub(" ", name.strip()).lower()


def normalize_stage(stage: str | None) -> str:
    if not stage:
        return DEFAULT_STAGE
    return _STAGE_ALIASES.get(stage.strip().lower(), DEFAULT_STAGE)


def build_notes(extraction: ExtractedProposal | None, confidence_pct: float) -> str:
    """Human-readable deal notes from the stored extraction."""
    lines: list[str] = []
    raw_source = "email"
    if extraction is not None:
        raw_source = extraction.raw_source or raw_source
        if extraction.sector:
            lines.append(f"Sector: {extraction.sector}")
        if extraction.ask_amount:
            lines.append(f"Raising: {extraction.ask_amount}")
        if extraction.location:
            lines.append(f"Location: {extraction.location}")
        if extraction.founder_name:
            lines.append(f"Founder: {extraction.founder_name}")
        linkedin = extraction.founder_linkedin or (
            extraction.contact_info.linkedin if extraction.contact_info else None
        )
        if linkedin:
            lines.append(f"LinkedIn: {linkedin}")
        if extraction.key_highlights:
            lines.append("")
            lines.append("Key Highlights:")
            lines.extend(f"- {h}" for h in extraction.key_highlights)
    lines.append("")
    lines.append(f"[Imported from {raw_source} with {confidence_pct:g}% confidence]")
    return "\n".join(lines).lstrip("\n")


def build_deal_from_proposal(entry: ProposalQueueEntry, owner_id: str | None) -> Deal:
    """Instantiate (not persist) the Deal for an approved entry."""
    extraction = ExtractedProposal.from_stored(entry.extracted_data)
    confidence_pct = round(entry.confidence * 100, 1)
    return Deal(
        organization_id=entry.organization_id,
        owner_id=owner_id,
        name=entry.startup_name,
        normalized_name=entry.normalized_name or normalize_name(entry.startup_name),
        website=entry.website,
        description=entry.description,
        stage=normalize_stage(entry.stage),
        status="reviewing",
        founder_name=entry.founder_name,
        founder_email=entry.founder_email,
        ask_amount=entry.ask_amount,
        notes=build_notes(extraction, confidence_pct),
    )


def seed_deal_score(
    db: Session,
    deal_id: int,
    confidence: float,
    user_id: str | None = None,
    now: datetime | None = None,
) -> int | None:
    """Write category bases from the 0-1 intake confidence, then log the intake event.

    Returns the resulting score (None when the recompute for the deal failed).
    """
    confidence_pct = confidence * 100
    set_base_score(db, deal_id, bases_from_confidence(confidence_pct), recompute=False, now=now)
    result = append_event(
        db,
        ScoreEventCreate(
            deal_id=deal_id,
            source=ScoreSource.EMAIL,
            category=ScoreCategory.COMMUNICATION,
            signal=INTAKE_SIGNAL,
            impact=0,
            confidence=max(0.0, min(confidence, 1.0)),
            evidence=f"Proposal intake confidence {confidence_pct:g}%",
            analyzed_by=AnalyzedBy.AI,
            user_id=user_id,
        ),
        now=now,
    )
    score = result.scores.get(deal_id)
    return score.score if score else None


class DocumentAnalyzer(Protocol):
    """Document-analysis collaborator fed with replayed attachment bytes."""

    def analyze(self, db: Session, deal: Deal, document: DealDocument, content: bytes) -> None: ...


def attachment_url(message_id: str, filename: str) -> str:
    return f"email-attachment://{message_id}/{filename}"


def replay_attachments(
    db: Session,
    deal_id: int,
    message_id: str,
    attachments: list[dict] | None,
    analyzer: DocumentAnalyzer | None = None,
) -> int:
    """Attach queued attachments to the deal and pass their bytes to the analyzer.

    Each attachment is isolated: an undecodable payload or analyzer failure is
    logged and the next attachment is still processed. Returns how many
    documents were stored.
    """
    if not attachments:
        return 0
    deal = db.get(Deal, deal_id)
    if deal is None:
        logger.warning("Attachment replay skipped: deal %s no longer exists", deal_id)
        return 0

    stored = 0
    for raw in attachments:
        try:
            payload = AttachmentPayload.model_validate(raw)
            content = base64.b64decode(payload.content_base64, validate=True)
        except (ValueError, binascii.Error):
            logger.warning("Skipping unreadable attachment on message %s", message_id)
            continue

        document = DealDocument(
            deal_id=deal_id,
            file_url=attachment_url(message_id, payload.filename),
            file_name=payload.filename,
            file_size=payload.size or len(content),
            mime_type=payload.content_type,
        )
        db.add(document)
        db.commit()
        stored += 1

        if analyzer is None:
            continue
        try:
            analyzer.analyze(db, deal, document, content)
        except Exception:
            db.rollback()
            logger.exception(
                "Document analysis failed: deal_id=%s file=%s", deal_id, payload.filename
            )

    logger.info("Attachments replayed: deal_id=%s stored=%d", deal_id, stored)
    return stored
