"""Deal scoring constants and the decay schedule.

Centralized configuration for the score aggregator, trend evaluator and
alert rule engine. No magic numbers inside the scoring modules; all values
are defined here.
"""

from __future__ import annotations

from dealflow.schemas.scoring import AlertType, AlertUrgency, ScoreCategory

# ── Weighted categories and their maximum points (sum = 100) ───────────────

CATEGORY_MAX_POINTS: dict[ScoreCategory, int] = {
    ScoreCategory.TEAM: 25,
    ScoreCategory.MARKET: 25,
    ScoreCategory.PRODUCT: 20,
    ScoreCategory.TRACTION: 20,
    ScoreCategory.DEAL: 10,
}

WEIGHTED_CATEGORIES: tuple[ScoreCategory, ...] = tuple(CATEGORY_MAX_POINTS)

SCORE_MIN: int = 0
SCORE_MAX: int = 100

# ── Decay schedule: (max age in days, weight) ─────────────────────────────
# Events older than the last breakpoint keep DECAY_FLOOR of their impact.

DECAY_SCHEDULE: tuple[tuple[int, float], ...] = (
    (7, 1.0),
    (30, 0.9),
    (60, 0.75),
    (90, 0.6),
)
DECAY_FLOOR: float = 0.5

# ── Trend (30-day window, undecayed) ──────────────────────────────────────

TREND_WINDOW_DAYS: int = 30
TREND_THRESHOLD: float = 2.0

# ── Alert rules ───────────────────────────────────────────────────────────

MAJOR_INCREASE_DELTA: int = 5
MAJOR_DECREASE_DELTA: int = -5

ALERT_URGENCY: dict[AlertType, AlertUrgency] = {
    AlertType.MAJOR_INCREASE: AlertUrgency.MEDIUM,
    AlertType.MAJOR_DECREASE: AlertUrgency.HIGH,
    AlertType.RED_FLAG: AlertUrgency.HIGH,
    AlertType.MILESTONE: AlertUrgency.MEDIUM,
}

RED_FLAG_CATEGORIES: frozenset[str] = frozenset(
    {"metric_inconsistency", "team_departure", "runway_concern", ScoreCategory.RED_FLAG.value}
)

# Checked in order; only the first crossing is reported
MILESTONE_THRESHOLDS: tuple[int, ...] = (90, 80, 70, 50)

# ── Ledger queries ────────────────────────────────────────────────────────

DEFAULT_EVENTS_PAGE_SIZE: int = 50
DEFAULT_HISTORY_DAYS: int = 30


def decay_weight(age_days: float) -> float:
    """Return the decay multiplier for an event of the given age.

    - 0–7 days: 1.0
    - 8–30 days: 0.9
    - 31–60 days: 0.75
    - 61–90 days: 0.6
    - 91+ days: 0.5

    Negative ages (clock skew, future timestamps) are treated as 0.
    """
    if age_days < 0:
        age_days = 0
    for max_age, weight in DECAY_SCHEDULE:
        if age_days <= max_age:
            return weight
    return DECAY_FLOOR
