"""Proposal intake, queue and snooze-evaluation schemas."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

EXTRACTION_SCHEMA_VERSION = 1


class ContactInfo(BaseModel):
    model_config = ConfigDict(extra="ignore")

    email: Optional[str] = None
    phone: Optional[str] = None
    linkedin: Optional[str] = None


class ExtractedProposal(BaseModel):
    """Structured extraction of a pitch from inbound correspondence.

    Every field is optional: the extraction collaborator regularly returns
    partial payloads, and stored payloads are re-read through this model.
    ``confidence`` is the collaborator's opaque 0-100 quality score.
    """

    model_config = ConfigDict(extra="ignore")

    schema_version: Literal[1] = EXTRACTION_SCHEMA_VERSION
    startup_name: Optional[str] = None
    founder_name: Optional[str] = None
    founder_email: Optional[str] = None
    founder_linkedin: Optional[str] = None
    website: Optional[str] = None
    description: Optional[str] = None
    stage: Optional[str] = None
    sector: Optional[str] = None
    ask_amount: Optional[str] = None
    location: Optional[str] = None
    key_highlights: list[str] = Field(default_factory=list)
    contact_info: Optional[ContactInfo] = None
    confidence: float = Field(0.0, ge=0.0, le=100.0)
    raw_source: str = "email"

    @classmethod
    def from_stored(cls, payload: dict[str, Any] | None) -> Optional["ExtractedProposal"]:
        """Re-read a stored payload; unreadable payloads yield None."""
        if not payload:
            return None
        try:
            return cls.model_validate(payload)
        except ValidationError:
            return None

    @property
    def contact_email(self) -> Optional[str]:
        if self.founder_email:
            return self.founder_email
        return self.contact_info.email if self.contact_info else None


class AttachmentPayload(BaseModel):
    filename: str = "attachment.pdf"
    content_type: str
    size: int = 0
    content_base64: str


class InboundMessage(BaseModel):
    """Forwarded email as supplied by the mailbox collaborator."""

    message_id: str = Field(..., min_length=1)
    subject: str = ""
    from_address: Optional[str] = None
    from_name: Optional[str] = None
    date: Optional[datetime] = None
    body: str = ""
    attachments: list[AttachmentPayload] = Field(default_factory=list)


class IntakeOutcome(str, Enum):
    QUEUED = "queued"
    NO_PROPOSAL = "no_proposal"
    LOW_CONFIDENCE = "low_confidence"
    DUPLICATE_MESSAGE = "duplicate_message"
    SUPPRESSED_SENDER = "suppressed_sender"
    DUPLICATE_NAME = "duplicate_name"


class IntakeResult(BaseModel):
    message_id: str
    outcome: IntakeOutcome
    proposal_id: Optional[int] = None
    startup_name: Optional[str] = None


class SyncResult(BaseModel):
    """Batch intake summary."""

    processed: int = 0
    queued: int = 0
    skipped: int = 0
    failed: int = 0
    quota_exceeded: bool = False
    results: list[IntakeResult] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)


class QueuedProposal(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    email_subject: str
    email_from: Optional[str] = None
    email_from_name: Optional[str] = None
    email_date: Optional[datetime] = None
    email_preview: str = ""
    startup_name: str
    description: Optional[str] = None
    website: Optional[str] = None
    founder_name: Optional[str] = None
    founder_email: Optional[str] = None
    ask_amount: Optional[str] = None
    stage: Optional[str] = None
    confidence: float
    ai_reason: Optional[str] = None
    status: str
    created_at: datetime


class TransitionResult(BaseModel):
    """Confirmation returned by approve / reject / snooze."""

    proposal_id: int
    status: str
    deal_id: Optional[int] = None
    email_sent: bool = False
    snoozed_until: Optional[datetime] = None
    snooze_count: Optional[int] = None


class ProgressRecommendation(str, Enum):
    REACTIVATE = "reactivate"
    REJECT = "reject"
    KEEP_SNOOZED = "keep_snoozed"


class ProgressEvaluation(BaseModel):
    model_config = ConfigDict(extra="ignore")

    recommendation: ProgressRecommendation = ProgressRecommendation.KEEP_SNOOZED
    progress_summary: str = ""
    key_changes: list[str] = Field(default_factory=list)
    progress_score: int = Field(0, ge=0, le=100)
    has_significant_progress: bool = False


class SnoozeCheckResult(BaseModel):
    checked: int = 0
    reactivated: int = 0
    rejected: int = 0
    keep_snoozed: int = 0
    failed: int = 0
    quota_exceeded: bool = False
