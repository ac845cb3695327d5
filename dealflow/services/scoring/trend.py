"""Trend evaluator: 30-day momentum classification."""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime, timedelta

from dealflow.schemas.scoring import ScoreTrend, TrendResult
from dealflow.services.scoring.events import EventLike, get_confidence
from dealflow.services.scoring.scoring_constants import TREND_THRESHOLD, TREND_WINDOW_DAYS
from dealflow.services.timeutil import as_utc


def classify_trend(delta: float) -> ScoreTrend:
    """up when delta > 2, down when delta < -2, otherwise stable."""
    if delta > TREND_THRESHOLD:
        return ScoreTrend.UP
    if delta < -TREND_THRESHOLD:
        return ScoreTrend.DOWN
    return ScoreTrend.STABLE


def compute_trend(events: Iterable[EventLike], now: datetime) -> TrendResult:
    """Sum undecayed impact x confidence over the trailing window and classify it."""
    cutoff = as_utc(now) - timedelta(days=TREND_WINDOW_DAYS)
    delta = sum(
        ev.impact * get_confidence(ev) for ev in events if as_utc(ev.timestamp) >= cutoff
    )
    return TrendResult(trend=classify_trend(delta), delta=delta)
