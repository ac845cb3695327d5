"""RejectedEmail model: suppresses re-queuing from rejected senders."""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import DateTime, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from dealflow.db.session import Base


class RejectedEmail(Base):
    """Sender address whose proposal was rejected within an organization."""

    __tablename__ = "rejected_emails"

    __table_args__ = (
        UniqueConstraint(
            "organization_id", "email_address", name="uq_rejected_emails_org_address"
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    organization_id: Mapped[str] = mapped_column(String(64), nullable=False)
    email_address: Mapped[str] = mapped_column(String(255), nullable=False)
    startup_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    rejected_by: Mapped[str | None] = mapped_column(String(64), nullable=True)
    rejected_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )
