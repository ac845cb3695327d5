"""Deal model: a durable startup record under review."""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import JSON, DateTime, Float, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from dealflow.db.session import Base


class Deal(Base):
    """Startup deal with its persisted score state.

    current_score, score_breakdown, score_trend and score_trend_delta are
    derived by the score aggregator and never edited by hand.
    """

    __tablename__ = "deals"

    __table_args__ = (Index("ix_deals_org_normalized_name", "organization_id", "normalized_name"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    organization_id: Mapped[str] = mapped_column(String(64), nullable=False)
    owner_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    normalized_name: Mapped[str] = mapped_column(String(255), nullable=False)
    website: Mapped[str | None] = mapped_column(String(2048), nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    stage: Mapped[str] = mapped_column(String(32), default="seed", nullable=False)
    status: Mapped[str] = mapped_column(String(32), default="reviewing", nullable=False)
    founder_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    founder_email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    ask_amount: Mapped[str | None] = mapped_column(String(128), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    base_score: Mapped[float | None] = mapped_column(Float, nullable=True)
    current_score: Mapped[int | None] = mapped_column(Integer, nullable=True)
    score_breakdown: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    score_trend: Mapped[str | None] = mapped_column(String(16), nullable=True)
    score_trend_delta: Mapped[float | None] = mapped_column(Float, nullable=True)
    score_updated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    score_events: Mapped[list["ScoreEvent"]] = relationship(
        "ScoreEvent", back_populates="deal", cascade="all, delete-orphan"
    )
    score_alerts: Mapped[list["ScoreAlert"]] = relationship(
        "ScoreAlert", back_populates="deal", cascade="all, delete-orphan"
    )
    documents: Mapped[list["DealDocument"]] = relationship(
        "DealDocument", back_populates="deal", cascade="all, delete-orphan"
    )
