"""SQLAlchemy models."""

from dealflow.models.deal import Deal
from dealflow.models.deal_document import DealDocument
from dealflow.models.proposal_queue_entry import ProposalQueueEntry
from dealflow.models.rejected_email import RejectedEmail
from dealflow.models.score_alert import ScoreAlert
from dealflow.models.score_event import ScoreEvent

__all__ = [
    "Deal",
    "DealDocument",
    "ProposalQueueEntry",
    "RejectedEmail",
    "ScoreAlert",
    "ScoreEvent",
]
