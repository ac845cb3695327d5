"""Alert rule engine: decides which alerts a score change triggers.

Rules (evaluated only when the deal had a previous score):
- delta >= +5 → major_increase (medium)
- delta <= -5 → major_decrease (high)
- trigger event in a red-flag category → red_flag (high)
- first milestone crossed among 90, 80, 70, 50 (either direction) → milestone (medium)
"""

from __future__ import annotations

import logging
from typing import Protocol

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from dealflow.models import ScoreAlert
from dealflow.schemas.scoring import AlertDraft, AlertType
from dealflow.services.scoring.scoring_constants import (
    ALERT_URGENCY,
    MAJOR_DECREASE_DELTA,
    MAJOR_INCREASE_DELTA,
    MILESTONE_THRESHOLDS,
    RED_FLAG_CATEGORIES,
)

logger = logging.getLogger(__name__)


class _TriggerLike(Protocol):
    signal: str
    category: str


def _draft(alert_type: AlertType, trigger: str) -> AlertDraft:
    return AlertDraft(alert_type=alert_type, urgency=ALERT_URGENCY[alert_type], trigger=trigger)


def crossed_milestone(previous_score: int, new_score: int) -> int | None:
    """Return the first threshold with previous and new on opposite sides, else None."""
    for threshold in MILESTONE_THRESHOLDS:
        if (previous_score < threshold) != (new_score < threshold):
            return threshold
    return None


def evaluate_alerts(
    previous_score: int,
    new_score: int,
    trigger: _TriggerLike | None = None,
) -> list[AlertDraft]:
    """Return every alert the score change qualifies for."""
    delta = new_score - previous_score
    drafts: list[AlertDraft] = []

    if delta >= MAJOR_INCREASE_DELTA:
        drafts.append(
            _draft(AlertType.MAJOR_INCREASE, trigger.signal if trigger else "Score increased")
        )
    if delta <= MAJOR_DECREASE_DELTA:
        drafts.append(
            _draft(AlertType.MAJOR_DECREASE, trigger.signal if trigger else "Score decreased")
        )
    if trigger is not None and trigger.category in RED_FLAG_CATEGORIES:
        drafts.append(_draft(AlertType.RED_FLAG, trigger.signal))

    milestone = crossed_milestone(previous_score, new_score)
    if milestone is not None:
        drafts.append(_draft(AlertType.MILESTONE, f"Score crossed {milestone} threshold"))

    return drafts


def write_alerts(
    db: Session,
    organization_id: str,
    deal_id: int,
    previous_score: int,
    new_score: int,
    drafts: list[AlertDraft],
) -> list[ScoreAlert]:
    """Insert all drafts in one commit. Failure is logged and yields an empty list.

    Runs after the score update has been committed, so a failed insert never
    rolls back the score.
    """
    if not drafts:
        return []
    alerts = [
        ScoreAlert(
            organization_id=organization_id,
            deal_id=deal_id,
            alert_type=d.alert_type.value,
            previous_score=previous_score,
            new_score=new_score,
            trigger=d.trigger,
            urgency=d.urgency.value,
        )
        for d in drafts
    ]
    try:
        db.add_all(alerts)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Alert insert failed for deal %s (%d alerts dropped)", deal_id, len(alerts))
        return []

    logger.info(
        "Alerts created: deal_id=%s types=%s (%d -> %d)",
        deal_id,
        ",".join(a.alert_type for a in alerts),
        previous_score,
        new_score,
    )
    return alerts


def get_alerts(db: Session, deal_id: int, limit: int = 50) -> list[ScoreAlert]:
    """Return the deal's alerts, newest first."""
    return (
        db.query(ScoreAlert)
        .filter(ScoreAlert.deal_id == deal_id)
        .order_by(ScoreAlert.created_at.desc(), ScoreAlert.id.desc())
        .limit(limit)
        .all()
    )
