"""Score ledger: append-only signal events per deal, plus read views.

Appending always triggers a full recomputation of every deal touched.
"""

from __future__ import annotations

import logging
from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import datetime, timedelta

from sqlalchemy.orm import Session

from dealflow.models import Deal, ScoreEvent
from dealflow.schemas.scoring import (
    EventPage,
    ScoreCategory,
    ScoreEventCreate,
    ScoreEventRead,
    ScoreHistoryPoint,
    ScoreResult,
)
from dealflow.services.errors import DealNotFoundError
from dealflow.services.scoring.aggregator import recompute_scores
from dealflow.services.scoring.events import get_confidence
from dealflow.services.scoring.scoring_constants import (
    DEFAULT_EVENTS_PAGE_SIZE,
    DEFAULT_HISTORY_DAYS,
)
from dealflow.services.timeutil import as_utc, utc_now

logger = logging.getLogger(__name__)


@dataclass
class AppendResult:
    """Events written and the recomputation outcome per affected deal."""

    events: list[ScoreEvent] = field(default_factory=list)
    scores: dict[int, ScoreResult] = field(default_factory=dict)
    failed_deal_ids: list[int] = field(default_factory=list)


def _ensure_deals_exist(db: Session, deal_ids: set[int]) -> None:
    found = {row[0] for row in db.query(Deal.id).filter(Deal.id.in_(deal_ids)).all()}
    missing = sorted(deal_ids - found)
    if missing:
        raise DealNotFoundError(missing[0])


def _newest_per_deal(rows: list[ScoreEvent]) -> dict[int, ScoreEvent]:
    """Newest appended event per deal; on equal timestamps the later row wins."""
    newest: dict[int, ScoreEvent] = {}
    for row in rows:
        current = newest.get(row.deal_id)
        if current is None or as_utc(row.timestamp) >= as_utc(current.timestamp):
            newest[row.deal_id] = row
    return newest


def append_events(
    db: Session,
    events: list[ScoreEventCreate],
    now: datetime | None = None,
) -> AppendResult:
    """Persist events in one commit, then recompute every distinct deal touched.

    All referenced deals must exist before anything is written. A recompute
    failure for one deal is logged and recorded; the remaining deals are still
    recomputed.

    Raises:
        DealNotFoundError: any event references a missing deal.
    """
    result = AppendResult()
    if not events:
        return result

    now = now or utc_now()
    deal_ids = list(OrderedDict.fromkeys(e.deal_id for e in events))
    _ensure_deals_exist(db, set(deal_ids))

    rows = [
        ScoreEvent(
            deal_id=e.deal_id,
            source=e.source.value,
            source_id=e.source_id,
            category=e.category.value,
            signal=e.signal,
            impact=e.impact,
            confidence=e.confidence,
            evidence=e.evidence,
            analyzed_by=e.analyzed_by.value,
            user_id=e.user_id,
            timestamp=as_utc(e.timestamp) if e.timestamp else now,
        )
        for e in events
    ]
    triggers = _newest_per_deal(rows)
    db.add_all(rows)
    db.commit()
    result.events = rows
    logger.info("Score events appended: count=%d deals=%d", len(rows), len(deal_ids))

    result.scores, result.failed_deal_ids = recompute_scores(
        db, deal_ids, now=now, triggers=triggers
    )

    return result


def append_event(
    db: Session,
    event: ScoreEventCreate,
    now: datetime | None = None,
) -> AppendResult:
    """Persist a single event and recompute its deal."""
    return append_events(db, [event], now=now)


def get_events(
    db: Session,
    deal_id: int,
    category: ScoreCategory | str | None = None,
    limit: int = DEFAULT_EVENTS_PAGE_SIZE,
    offset: int = 0,
) -> EventPage:
    """Return a page of the deal's events (newest first) with the total count."""
    if db.query(Deal.id).filter(Deal.id == deal_id).first() is None:
        raise DealNotFoundError(deal_id)

    query = db.query(ScoreEvent).filter(ScoreEvent.deal_id == deal_id)
    if category is not None:
        query = query.filter(ScoreEvent.category == ScoreCategory(category).value)

    total = query.count()
    rows = (
        query.order_by(ScoreEvent.timestamp.desc(), ScoreEvent.id.desc())
        .offset(offset)
        .limit(limit)
        .all()
    )
    return EventPage(
        items=[ScoreEventRead.model_validate(r) for r in rows],
        total=total,
        limit=limit,
        offset=offset,
    )


def get_score_history(
    db: Session,
    deal_id: int,
    days: int = DEFAULT_HISTORY_DAYS,
    now: datetime | None = None,
) -> list[ScoreHistoryPoint]:
    """Return per-day (date, running score, event count) points for charting.

    The running score is the cumulative sum of impact x confidence over the
    window's events in timestamp order; days without events are omitted.
    """
    if db.query(Deal.id).filter(Deal.id == deal_id).first() is None:
        raise DealNotFoundError(deal_id)

    now = now or utc_now()
    start = now - timedelta(days=days)
    events = (
        db.query(ScoreEvent)
        .filter(ScoreEvent.deal_id == deal_id, ScoreEvent.timestamp >= start)
        .order_by(ScoreEvent.timestamp.asc(), ScoreEvent.id.asc())
        .all()
    )

    daily: OrderedDict = OrderedDict()
    running = 0.0
    for ev in events:
        day = as_utc(ev.timestamp).date()
        running += ev.impact * get_confidence(ev)
        point = daily.get(day)
        if point is None:
            daily[day] = ScoreHistoryPoint(date=day, running_score=running, event_count=1)
        else:
            point.running_score = running
            point.event_count += 1

    return list(daily.values())
