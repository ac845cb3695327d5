"""Score aggregator: full recomputation of a deal's score from its ledger.

Every recomputation starts from the category bases and replays the whole
ledger with time decay relative to ``now``, so the result depends only on the
stored events and the wall clock, never on insertion order.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from datetime import datetime
from typing import assert_never

from sqlalchemy.orm import Session

from dealflow.models import Deal, ScoreEvent
from dealflow.schemas.scoring import ScoreBreakdown, ScoreCategory, ScoreResult
from dealflow.services.errors import BaseScoreLockedError, DealNotFoundError
from dealflow.services.scoring.alert_rules import evaluate_alerts, write_alerts
from dealflow.services.scoring.events import EventLike, age_in_days, get_confidence
from dealflow.services.scoring.scoring_constants import (
    CATEGORY_MAX_POINTS,
    SCORE_MAX,
    SCORE_MIN,
    WEIGHTED_CATEGORIES,
    decay_weight,
)
from dealflow.services.scoring.trend import compute_trend
from dealflow.services.timeutil import utc_now

logger = logging.getLogger(__name__)


def _apply_impact(breakdown: ScoreBreakdown, category: ScoreCategory, weighted: float) -> None:
    """Route a weighted impact into the breakdown field owned by its category."""
    match category:
        case (
            ScoreCategory.TEAM
            | ScoreCategory.MARKET
            | ScoreCategory.PRODUCT
            | ScoreCategory.TRACTION
            | ScoreCategory.DEAL
        ):
            breakdown.category(category.value).adjusted += weighted
        case ScoreCategory.COMMUNICATION:
            breakdown.communication += weighted
        case ScoreCategory.MOMENTUM:
            breakdown.momentum += weighted
        case ScoreCategory.RED_FLAG:
            breakdown.red_flags += weighted
        case _:
            assert_never(category)


def weighted_impact(ev: EventLike, now: datetime) -> float:
    """impact x confidence x decay(age)."""
    return ev.impact * get_confidence(ev) * decay_weight(age_in_days(ev.timestamp, now))


def clamp_score(raw: float) -> int:
    return max(SCORE_MIN, min(SCORE_MAX, int(round(raw))))


def compute_breakdown(
    events: Iterable[EventLike],
    base_score: float | None,
    existing: ScoreBreakdown | None,
    now: datetime,
) -> tuple[int, ScoreBreakdown]:
    """Compute (score, breakdown) from category bases and the full event ledger.

    base_score is the deal's stored base; when None it is derived from the
    category bases carried over from ``existing``.
    """
    breakdown = (existing or ScoreBreakdown()).with_bases_only()

    for ev in events:
        try:
            category = ScoreCategory(ev.category)
        except ValueError:
            logger.warning("Skipping event with unknown category %r", ev.category)
            continue
        _apply_impact(breakdown, category, weighted_impact(ev, now))

    effective_base = base_score if base_score is not None else breakdown.base_total()
    raw = (
        effective_base
        + breakdown.adjusted_total()
        + breakdown.communication
        + breakdown.momentum
        + breakdown.red_flags
    )
    return clamp_score(raw), breakdown


def _load_deal_for_update(db: Session, deal_id: int) -> Deal:
    # Row lock serialises concurrent recomputations of the same deal
    deal = db.query(Deal).filter(Deal.id == deal_id).with_for_update().first()
    if deal is None:
        raise DealNotFoundError(deal_id)
    return deal


def recompute_score(
    db: Session,
    deal_id: int,
    now: datetime | None = None,
    trigger: ScoreEvent | None = None,
) -> ScoreResult:
    """Recompute and persist a deal's score, breakdown and trend; emit alerts.

    The previously persisted score is the alert baseline. A deal's first
    recomputation (no previous score) never alerts. Alerts are written in a
    separate commit after the score update.

    ``trigger`` is the newly appended event that caused this recompute. Decay
    refreshes and base changes pass None, so an event already in the ledger
    never raises a red-flag alert twice.

    Raises:
        DealNotFoundError: deal_id does not exist.
    """
    now = now or utc_now()
    deal = _load_deal_for_update(db, deal_id)

    events = (
        db.query(ScoreEvent)
        .filter(ScoreEvent.deal_id == deal_id)
        .order_by(ScoreEvent.timestamp.desc(), ScoreEvent.id.desc())
        .all()
    )

    existing = ScoreBreakdown.from_stored(deal.score_breakdown)
    score, breakdown = compute_breakdown(events, deal.base_score, existing, now)
    trend = compute_trend(events, now)

    previous_score = deal.current_score
    organization_id = deal.organization_id

    deal.current_score = score
    deal.score_breakdown = breakdown.model_dump()
    deal.score_trend = trend.trend.value
    deal.score_trend_delta = trend.delta
    deal.score_updated_at = now
    db.commit()

    logger.info(
        "Score recomputed: deal_id=%s score=%d previous=%s trend=%s events=%d",
        deal_id,
        score,
        previous_score,
        trend.trend.value,
        len(events),
    )

    drafts = []
    if previous_score is not None:
        drafts = evaluate_alerts(previous_score, score, trigger)
        write_alerts(db, organization_id, deal_id, previous_score, score, drafts)

    return ScoreResult(
        deal_id=deal_id,
        score=score,
        previous_score=previous_score,
        breakdown=breakdown,
        trend=trend.trend,
        trend_delta=trend.delta,
        alerts=drafts,
    )


def bases_from_confidence(confidence: float) -> dict[ScoreCategory, int]:
    """Split a 0-100 confidence across the weighted categories by their maxima.

    80 → team 20, market 20, product 16, traction 16, deal 8.
    """
    return {
        cat: round(confidence * max_points / 100)
        for cat, max_points in CATEGORY_MAX_POINTS.items()
    }


def set_base_score(
    db: Session,
    deal_id: int,
    bases: Mapping[ScoreCategory | str, float],
    *,
    overwrite: bool = False,
    recompute: bool = True,
    now: datetime | None = None,
) -> ScoreResult | None:
    """Set the category bases (and thus base_score) for a deal.

    Bases are written once; an existing base is only replaced when
    ``overwrite`` is True. Each base is clamped to 0..category maximum.
    Missing categories default to 0.

    Raises:
        DealNotFoundError: deal_id does not exist.
        BaseScoreLockedError: the deal already has a base and overwrite is False.
    """
    now = now or utc_now()
    deal = _load_deal_for_update(db, deal_id)
    if deal.base_score is not None and not overwrite:
        db.rollback()
        raise BaseScoreLockedError(deal_id)

    normalized = {ScoreCategory(k): float(v) for k, v in bases.items()}
    breakdown = ScoreBreakdown.from_stored(deal.score_breakdown)
    for cat in WEIGHTED_CATEGORIES:
        value = normalized.get(cat, 0.0)
        breakdown.category(cat.value).base = max(0.0, min(value, float(CATEGORY_MAX_POINTS[cat])))

    deal.base_score = breakdown.base_total()
    deal.score_breakdown = breakdown.model_dump()
    deal.score_updated_at = now
    db.commit()
    logger.info(
        "Base score set: deal_id=%s base_score=%.1f overwrite=%s", deal_id, deal.base_score, overwrite
    )

    if recompute:
        return recompute_score(db, deal_id, now=now)
    return None


def recompute_scores(
    db: Session,
    deal_ids: Iterable[int] | None = None,
    now: datetime | None = None,
    triggers: Mapping[int, ScoreEvent] | None = None,
) -> tuple[dict[int, ScoreResult], list[int]]:
    """Recompute each deal in turn (all deals when deal_ids is None).

    A failure on one deal is rolled back, logged and reported in the failed
    list; the others still run. ``triggers`` maps a deal id to the appended
    event behind its recompute. Returns (scores by deal id, failed deal ids).
    """
    now = now or utc_now()
    if deal_ids is None:
        deal_ids = [row[0] for row in db.query(Deal.id).order_by(Deal.id).all()]

    triggers = triggers or {}
    scores: dict[int, ScoreResult] = {}
    failed: list[int] = []
    for deal_id in deal_ids:
        try:
            scores[deal_id] = recompute_score(db, deal_id, now=now, trigger=triggers.get(deal_id))
        except Exception:
            db.rollback()
            logger.exception("Score recompute failed for deal %s", deal_id)
            failed.append(deal_id)
    return scores, failed
