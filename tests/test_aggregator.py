"""Tests for the pure score aggregation (no database)."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest

from dealflow.schemas.scoring import CategoryScore, ScoreBreakdown, ScoreCategory
from dealflow.services.scoring.aggregator import (
    bases_from_confidence,
    clamp_score,
    compute_breakdown,
    weighted_impact,
)

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def _event(category: str, impact: float, confidence: float | None = 1.0, age_days: float = 0):
    return SimpleNamespace(
        category=category,
        signal=f"{category} signal",
        impact=impact,
        confidence=confidence,
        timestamp=NOW - timedelta(days=age_days),
    )


def _seeded(team=20.0, market=20.0, product=16.0, traction=16.0, deal=8.0) -> ScoreBreakdown:
    return ScoreBreakdown(
        team=CategoryScore(base=team),
        market=CategoryScore(base=market),
        product=CategoryScore(base=product),
        traction=CategoryScore(base=traction),
        deal=CategoryScore(base=deal),
    )


class TestWeightedImpact:
    def test_impact_times_confidence_times_decay(self) -> None:
        assert weighted_impact(_event("team", 10, 0.5, age_days=20), NOW) == pytest.approx(4.5)

    def test_missing_confidence_defaults_to_one(self) -> None:
        assert weighted_impact(_event("team", 4, None), NOW) == 4

    def test_naive_timestamps_are_utc(self) -> None:
        ev = _event("team", 10, age_days=10)
        ev.timestamp = ev.timestamp.replace(tzinfo=None)
        assert weighted_impact(ev, NOW) == pytest.approx(9.0)


class TestComputeBreakdown:
    def test_base_only(self) -> None:
        score, breakdown = compute_breakdown([], 80.0, _seeded(), NOW)
        assert score == 80
        assert breakdown.team.base == 20
        assert breakdown.team.adjusted == 0

    def test_routes_each_category(self) -> None:
        events = [
            _event("team", 2),
            _event("traction", 3),
            _event("communication", 1),
            _event("momentum", 4),
            _event("red_flag", -6),
        ]
        score, breakdown = compute_breakdown(events, 50.0, _seeded(), NOW)
        assert breakdown.team.adjusted == 2
        assert breakdown.traction.adjusted == 3
        assert breakdown.communication == 1
        assert breakdown.momentum == 4
        assert breakdown.red_flags == -6
        assert score == 50 + 2 + 3 + 1 + 4 - 6

    def test_decay_applied_per_event_age(self) -> None:
        events = [_event("market", 10, age_days=1), _event("market", 10, age_days=45)]
        _, breakdown = compute_breakdown(events, 0.0, None, NOW)
        assert breakdown.market.adjusted == pytest.approx(10 + 7.5)

    def test_unknown_category_is_skipped(self) -> None:
        score, breakdown = compute_breakdown([_event("astrology", 50)], 40.0, None, NOW)
        assert score == 40
        assert breakdown.adjusted_total() == 0

    def test_base_derived_from_category_bases_when_unset(self) -> None:
        score, _ = compute_breakdown([], None, _seeded(), NOW)
        assert score == 80

    @pytest.mark.parametrize("impact,expected", [(500, 100), (-500, 0)])
    def test_score_is_clamped(self, impact: float, expected: int) -> None:
        score, _ = compute_breakdown([_event("traction", impact)], 50.0, None, NOW)
        assert score == expected

    def test_idempotent(self) -> None:
        events = [_event("team", 3, 0.7, age_days=12), _event("deal", -2, age_days=70)]
        first = compute_breakdown(events, 60.0, _seeded(), NOW)
        second = compute_breakdown(events, 60.0, first[1], NOW)
        assert first[0] == second[0]
        assert first[1] == second[1]

    def test_previous_adjusted_values_are_discarded(self) -> None:
        stale = _seeded()
        stale.team.adjusted = 99
        stale.momentum = 12
        score, breakdown = compute_breakdown([], 80.0, stale, NOW)
        assert score == 80
        assert breakdown.team.adjusted == 0
        assert breakdown.momentum == 0

    def test_order_independent(self) -> None:
        events = [_event("team", 3, age_days=2), _event("product", -1, age_days=40)]
        a = compute_breakdown(events, 55.0, None, NOW)
        b = compute_breakdown(list(reversed(events)), 55.0, None, NOW)
        assert a == b


def test_clamp_score_rounds() -> None:
    assert clamp_score(71.6) == 72
    assert clamp_score(-0.4) == 0
    assert clamp_score(100.2) == 100


def test_bases_from_confidence_80() -> None:
    bases = bases_from_confidence(80)
    assert bases == {
        ScoreCategory.TEAM: 20,
        ScoreCategory.MARKET: 20,
        ScoreCategory.PRODUCT: 16,
        ScoreCategory.TRACTION: 16,
        ScoreCategory.DEAL: 8,
    }
    assert sum(bases.values()) == 80
