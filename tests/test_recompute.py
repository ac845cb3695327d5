"""Tests for persisted score recomputation, base seeding and alert emission."""

from __future__ import annotations

from datetime import timedelta

import pytest
from sqlalchemy.orm import Session

from dealflow.models import ScoreAlert
from dealflow.schemas.scoring import (
    AnalyzedBy,
    ScoreCategory,
    ScoreEventCreate,
    ScoreSource,
    ScoreTrend,
)
from dealflow.services.errors import BaseScoreLockedError, DealNotFoundError
from dealflow.services.scoring.aggregator import (
    bases_from_confidence,
    recompute_score,
    recompute_scores,
    set_base_score,
)
from dealflow.services.scoring.ledger import append_event
from tests.factories import NOW, make_deal, make_event


class TestRecomputeScore:
    def test_first_recompute_never_alerts(self, db: Session) -> None:
        deal = make_deal(db, base_score=60.0)
        make_event(db, deal, impact=30)

        result = recompute_score(db, deal.id, now=NOW)

        assert result.previous_score is None
        assert result.score == 90
        assert result.alerts == []
        assert db.query(ScoreAlert).count() == 0

    def test_increase_of_six_alerts_once(self, db: Session) -> None:
        deal = make_deal(db, base_score=60.0)
        recompute_score(db, deal.id, now=NOW)
        event = make_event(db, deal, impact=6, signal="Term sheet from lead")

        result = recompute_score(db, deal.id, now=NOW, trigger=event)

        assert result.previous_score == 60
        assert result.score == 66
        alerts = db.query(ScoreAlert).all()
        assert [a.alert_type for a in alerts] == ["major_increase"]
        assert alerts[0].trigger == "Term sheet from lead"
        assert alerts[0].urgency == "medium"

    def test_drop_from_82_to_78_is_milestone_only(self, db: Session) -> None:
        deal = make_deal(db, base_score=82.0)
        recompute_score(db, deal.id, now=NOW)
        make_event(db, deal, category="market", impact=-4, signal="Competitor raised")

        result = recompute_score(db, deal.id, now=NOW)

        assert result.score == 78
        alerts = db.query(ScoreAlert).all()
        assert [a.alert_type for a in alerts] == ["milestone"]
        assert alerts[0].trigger == "Score crossed 80 threshold"

    def test_increase_without_trigger_uses_generic_text(self, db: Session) -> None:
        deal = make_deal(db, base_score=60.0)
        recompute_score(db, deal.id, now=NOW)
        make_event(db, deal, impact=6)

        recompute_score(db, deal.id, now=NOW)

        alert = db.query(ScoreAlert).one()
        assert alert.alert_type == "major_increase"
        assert alert.trigger == "Score increased"

    def test_red_flag_in_ledger_does_not_realert_on_recompute(self, db: Session) -> None:
        deal = make_deal(db, base_score=60.0)
        make_event(db, deal, category="red_flag", impact=-2, signal="Co-founder left")

        for hours in range(3):
            recompute_score(db, deal.id, now=NOW + timedelta(hours=hours))

        assert db.query(ScoreAlert).count() == 0

    def test_appended_red_flag_alerts_once(self, db: Session) -> None:
        deal = make_deal(db, base_score=60.0)
        recompute_score(db, deal.id, now=NOW)
        append_event(
            db,
            ScoreEventCreate(
                deal_id=deal.id,
                source=ScoreSource.MANUAL,
                category=ScoreCategory.RED_FLAG,
                signal="Co-founder left",
                impact=-2,
                analyzed_by=AnalyzedBy.USER,
                timestamp=NOW,
            ),
            now=NOW,
        )

        recompute_score(db, deal.id, now=NOW + timedelta(hours=1))
        recompute_score(db, deal.id, now=NOW + timedelta(hours=2))

        alerts = db.query(ScoreAlert).all()
        assert [a.alert_type for a in alerts] == ["red_flag"]
        assert alerts[0].trigger == "Co-founder left"
        assert alerts[0].urgency == "high"

    def test_persists_breakdown_and_trend(self, db: Session) -> None:
        deal = make_deal(db, base_score=50.0)
        make_event(db, deal, category="momentum", impact=3, age_days=3)

        recompute_score(db, deal.id, now=NOW)
        db.refresh(deal)

        assert deal.current_score == 53
        assert deal.score_breakdown["momentum"] == 3
        assert deal.score_trend == ScoreTrend.UP.value
        assert deal.score_trend_delta == 3
        assert deal.score_updated_at is not None

    def test_idempotent_without_new_events(self, db: Session) -> None:
        deal = make_deal(db, base_score=55.0)
        make_event(db, deal, impact=4, confidence=0.5, age_days=12)
        make_event(db, deal, category="red_flag", impact=-3, age_days=70)

        first = recompute_score(db, deal.id, now=NOW)
        second = recompute_score(db, deal.id, now=NOW + timedelta(hours=1))

        assert first.breakdown == second.breakdown
        assert first.score == second.score
        assert second.alerts == []

    def test_clamped_between_0_and_100(self, db: Session) -> None:
        high = make_deal(db, "High", base_score=90.0)
        low = make_deal(db, "Low", base_score=10.0)
        make_event(db, high, impact=80)
        make_event(db, low, impact=-80)

        assert recompute_score(db, high.id, now=NOW).score == 100
        assert recompute_score(db, low.id, now=NOW).score == 0

    def test_unknown_deal(self, db: Session) -> None:
        with pytest.raises(DealNotFoundError):
            recompute_score(db, 77, now=NOW)


class TestSetBaseScore:
    def test_seeds_bases_and_recomputes(self, db: Session) -> None:
        deal = make_deal(db)
        result = set_base_score(db, deal.id, bases_from_confidence(80), now=NOW)

        db.refresh(deal)
        assert deal.base_score == 80
        assert result.score == 80
        breakdown = deal.score_breakdown
        assert [breakdown[c]["base"] for c in ("team", "market", "product", "traction", "deal")] == [
            20,
            20,
            16,
            16,
            8,
        ]

    def test_bases_clamped_to_category_max(self, db: Session) -> None:
        deal = make_deal(db)
        set_base_score(db, deal.id, {"team": 40, "deal": -5}, recompute=False, now=NOW)
        db.refresh(deal)
        assert deal.score_breakdown["team"]["base"] == 25
        assert deal.score_breakdown["deal"]["base"] == 0
        assert deal.base_score == 25
        assert deal.current_score is None

    def test_second_write_is_locked(self, db: Session) -> None:
        deal = make_deal(db)
        set_base_score(db, deal.id, {ScoreCategory.TEAM: 10}, now=NOW)
        with pytest.raises(BaseScoreLockedError):
            set_base_score(db, deal.id, {ScoreCategory.TEAM: 20}, now=NOW)
        db.refresh(deal)
        assert deal.base_score == 10

    def test_overwrite_reseeds(self, db: Session) -> None:
        deal = make_deal(db)
        set_base_score(db, deal.id, {ScoreCategory.TEAM: 10}, now=NOW)
        result = set_base_score(db, deal.id, {ScoreCategory.TEAM: 20}, overwrite=True, now=NOW)
        assert result.score == 20


def test_recompute_scores_all_deals(db: Session) -> None:
    a = make_deal(db, "Alpha", base_score=30.0)
    b = make_deal(db, "Beta", base_score=45.0)
    scores, failed = recompute_scores(db, now=NOW)
    assert failed == []
    assert scores[a.id].score == 30
    assert scores[b.id].score == 45


def test_recompute_scores_reports_missing_deal(db: Session) -> None:
    a = make_deal(db, base_score=30.0)
    scores, failed = recompute_scores(db, [a.id, 999], now=NOW)
    assert list(scores) == [a.id]
    assert failed == [999]
