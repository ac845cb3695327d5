"""ProposalQueueEntry model: AI-extracted proposal awaiting disposition."""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import JSON, DateTime, Float, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from dealflow.db.session import Base


class ProposalQueueEntry(Base):
    """One entry per distinct inbound proposal.

    status follows the proposal lifecycle (pending, approved, rejected,
    snoozed); approved and rejected are terminal.
    """

    __tablename__ = "proposal_queue"

    __table_args__ = (
        Index("ix_proposal_queue_org_status", "organization_id", "status"),
        Index("ix_proposal_queue_org_normalized_name", "organization_id", "normalized_name"),
        Index("ix_proposal_queue_org_email_from", "organization_id", "email_from"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    organization_id: Mapped[str] = mapped_column(String(64), nullable=False)
    user_id: Mapped[str | None] = mapped_column(String(64), nullable=True)

    email_message_id: Mapped[str] = mapped_column(String(512), unique=True, nullable=False)
    email_subject: Mapped[str] = mapped_column(String(1024), default="", nullable=False)
    email_from: Mapped[str | None] = mapped_column(String(255), nullable=True)
    email_from_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    email_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    email_preview: Mapped[str] = mapped_column(Text, default="", nullable=False)

    startup_name: Mapped[str] = mapped_column(String(255), nullable=False)
    normalized_name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    website: Mapped[str | None] = mapped_column(String(2048), nullable=True)
    founder_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    founder_email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    ask_amount: Mapped[str | None] = mapped_column(String(128), nullable=True)
    stage: Mapped[str | None] = mapped_column(String(64), nullable=True)
    extracted_data: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    confidence: Mapped[float] = mapped_column(Float, nullable=False)  # 0-1
    ai_reason: Mapped[str | None] = mapped_column(String(64), nullable=True)
    attachments: Mapped[list | None] = mapped_column(JSON, nullable=True)

    status: Mapped[str] = mapped_column(String(16), default="pending", nullable=False)
    reviewed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    reviewed_by: Mapped[str | None] = mapped_column(String(64), nullable=True)
    rejection_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    snoozed_until: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    snooze_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    last_progress_check: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    progress_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_deal_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("deals.id", ondelete="SET NULL"), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    @property
    def sender_address(self) -> str | None:
        """Founder address when extracted, else the mailbox sender."""
        return self.founder_email or self.email_from
