"""Minimal event interface shared by the aggregator and trend evaluator."""

from __future__ import annotations

from datetime import datetime
from typing import Protocol

from dealflow.services.timeutil import as_utc

DEFAULT_CONFIDENCE: float = 1.0

SECONDS_PER_DAY: int = 86_400


class EventLike(Protocol):
    """Minimal interface for ledger events (ORM rows or test doubles)."""

    category: str
    signal: str
    impact: float
    confidence: float | None
    timestamp: datetime


def get_confidence(ev: EventLike) -> float:
    """Return event confidence clamped to 0..1, or the default when unset."""
    c = ev.confidence
    if c is None:
        return DEFAULT_CONFIDENCE
    return max(0.0, min(1.0, float(c)))


def age_in_days(timestamp: datetime, now: datetime) -> float:
    """Return fractional days from timestamp to now (negative for future events)."""
    return (as_utc(now) - as_utc(timestamp)).total_seconds() / SECONDS_PER_DAY
