"""Deal scoring engine: ledger, aggregator, trend and alert rules."""

from dealflow.services.scoring.aggregator import (
    bases_from_confidence,
    compute_breakdown,
    recompute_score,
    recompute_scores,
    set_base_score,
)
from dealflow.services.scoring.alert_rules import evaluate_alerts, get_alerts
from dealflow.services.scoring.ledger import (
    AppendResult,
    append_event,
    append_events,
    get_events,
    get_score_history,
)
from dealflow.services.scoring.scoring_constants import decay_weight
from dealflow.services.scoring.trend import classify_trend, compute_trend

__all__ = [
    "AppendResult",
    "append_event",
    "append_events",
    "bases_from_confidence",
    "classify_trend",
    "compute_breakdown",
    "compute_trend",
    "decay_weight",
    "evaluate_alerts",
    "get_alerts",
    "get_events",
    "get_score_history",
    "recompute_score",
    "recompute_scores",
    "set_base_score",
]
