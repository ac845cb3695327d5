"""Proposal queue: intake, lifecycle transitions and snooze reactivation."""

from dealflow.services.proposals.hooks import PostCommitHooks
from dealflow.services.proposals.intake import enqueue_proposal, ingest_messages, is_rejected_sender
from dealflow.services.proposals.queue_manager import (
    approve_proposal,
    get_queued_proposals,
    reject_proposal,
    snooze_proposal,
)
from dealflow.services.proposals.snooze_scheduler import check_snoozed_proposals
from dealflow.services.proposals.state_machine import ProposalAction, ProposalStatus, next_status

__all__ = [
    "PostCommitHooks",
    "ProposalAction",
    "ProposalStatus",
    "approve_proposal",
    "check_snoozed_proposals",
    "enqueue_proposal",
    "get_queued_proposals",
    "ingest_messages",
    "is_rejected_sender",
    "next_status",
    "reject_proposal",
    "snooze_proposal",
]
