"""Score ledger, breakdown and alert schemas."""

from __future__ import annotations

from datetime import date, datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class ScoreCategory(str, Enum):
    """Closed set of categories a score event may target."""

    TEAM = "team"
    MARKET = "market"
    PRODUCT = "product"
    TRACTION = "traction"
    DEAL = "deal"
    COMMUNICATION = "communication"
    MOMENTUM = "momentum"
    RED_FLAG = "red_flag"


class ScoreSource(str, Enum):
    DOCUMENT = "document"
    EMAIL = "email"
    MEETING = "meeting"
    RESEARCH = "research"
    MANUAL = "manual"
    SYSTEM = "system"


class AnalyzedBy(str, Enum):
    AI = "ai"
    USER = "user"


class ScoreTrend(str, Enum):
    UP = "up"
    DOWN = "down"
    STABLE = "stable"


class AlertType(str, Enum):
    MAJOR_INCREASE = "major_increase"
    MAJOR_DECREASE = "major_decrease"
    RED_FLAG = "red_flag"
    MILESTONE = "milestone"


class AlertUrgency(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


# ── Ledger input / output ──────────────────────────────────────────────────


class ScoreEventCreate(BaseModel):
    """Signal produced by document analysis, email analysis or manual entry."""

    deal_id: int
    source: ScoreSource
    source_id: Optional[str] = Field(None, max_length=255)
    category: ScoreCategory
    signal: str = Field(..., min_length=1, max_length=512)
    impact: float
    confidence: float = Field(1.0, ge=0.0, le=1.0)
    evidence: Optional[str] = None
    analyzed_by: AnalyzedBy
    user_id: Optional[str] = None
    timestamp: Optional[datetime] = Field(
        None, description="Event time; defaults to now. Used for backfills."
    )


class ScoreEventRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    deal_id: int
    source: str
    source_id: Optional[str] = None
    category: str
    signal: str
    impact: float
    confidence: float
    evidence: Optional[str] = None
    analyzed_by: str
    timestamp: datetime


class EventPage(BaseModel):
    """Paginated list of score events, newest first."""

    items: list[ScoreEventRead]
    total: int
    limit: int = 50
    offset: int = 0


class ScoreHistoryPoint(BaseModel):
    date: date
    running_score: float
    event_count: int


# ── Breakdown ──────────────────────────────────────────────────────────────


class CategoryScore(BaseModel):
    """Base (seeded once) and adjusted (decayed event impact) for a category."""

    base: float = 0.0
    adjusted: float = 0.0


class ScoreBreakdown(BaseModel):
    """Per-deal derived snapshot. Recomputed, never hand-edited."""

    team: CategoryScore = Field(default_factory=CategoryScore)
    market: CategoryScore = Field(default_factory=CategoryScore)
    product: CategoryScore = Field(default_factory=CategoryScore)
    traction: CategoryScore = Field(default_factory=CategoryScore)
    deal: CategoryScore = Field(default_factory=CategoryScore)
    communication: float = 0.0
    momentum: float = 0.0
    red_flags: float = 0.0

    @classmethod
    def from_stored(cls, payload: dict[str, Any] | None) -> "ScoreBreakdown":
        """Load a persisted breakdown, tolerating missing or partial payloads."""
        if not payload:
            return cls()
        return cls.model_validate(payload)

    def category(self, name: str) -> CategoryScore:
        return getattr(self, name)

    def with_bases_only(self) -> "ScoreBreakdown":
        """Copy keeping category bases and zeroing every derived value."""
        fresh = ScoreBreakdown()
        for name in ("team", "market", "product", "traction", "deal"):
            fresh.category(name).base = self.category(name).base
        return fresh

    def base_total(self) -> float:
        return sum(self.category(n).base for n in ("team", "market", "product", "traction", "deal"))

    def adjusted_total(self) -> float:
        return sum(
            self.category(n).adjusted for n in ("team", "market", "product", "traction", "deal")
        )


class TrendResult(BaseModel):
    trend: ScoreTrend
    delta: float


class AlertDraft(BaseModel):
    """Alert decided by the rule engine, not yet persisted."""

    alert_type: AlertType
    urgency: AlertUrgency
    trigger: str


class ScoreResult(BaseModel):
    """Outcome of one recomputation."""

    deal_id: int
    score: int
    previous_score: Optional[int] = None
    breakdown: ScoreBreakdown
    trend: ScoreTrend
    trend_delta: float
    alerts: list[AlertDraft] = Field(default_factory=list)
