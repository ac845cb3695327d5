"""Proposal lifecycle: pending, approved, rejected, snoozed.

approved and rejected are terminal. Every transition goes through
next_status(); callers never assign status strings directly.
"""

from __future__ import annotations

from enum import Enum

from dealflow.services.errors import (
    InvalidProposalTransitionError,
    ProposalAlreadyProcessedError,
)


class ProposalStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    SNOOZED = "snoozed"


class ProposalAction(str, Enum):
    APPROVE = "approve"
    REJECT = "reject"
    SNOOZE = "snooze"
    REACTIVATE = "reactivate"  # scheduler only


# rejection_reason of a follow-up absorbed into its snoozed original
MERGED_REASON = "merged into original"

TERMINAL_STATUSES: frozenset[ProposalStatus] = frozenset(
    {ProposalStatus.APPROVED, ProposalStatus.REJECTED}
)

TRANSITIONS: dict[tuple[ProposalStatus, ProposalAction], ProposalStatus] = {
    (ProposalStatus.PENDING, ProposalAction.APPROVE): ProposalStatus.APPROVED,
    (ProposalStatus.PENDING, ProposalAction.REJECT): ProposalStatus.REJECTED,
    (ProposalStatus.PENDING, ProposalAction.SNOOZE): ProposalStatus.SNOOZED,
    (ProposalStatus.SNOOZED, ProposalAction.REJECT): ProposalStatus.REJECTED,
    (ProposalStatus.SNOOZED, ProposalAction.SNOOZE): ProposalStatus.SNOOZED,
    (ProposalStatus.SNOOZED, ProposalAction.REACTIVATE): ProposalStatus.PENDING,
}


def is_terminal(status: ProposalStatus | str) -> bool:
    return ProposalStatus(status) in TERMINAL_STATUSES


def next_status(
    current: ProposalStatus | str,
    action: ProposalAction | str,
    proposal_id: int | None = None,
) -> ProposalStatus:
    """Return the status reached by applying action to current.

    Raises:
        ProposalAlreadyProcessedError: current is terminal.
        InvalidProposalTransitionError: action not allowed from current.
    """
    status = ProposalStatus(current)
    act = ProposalAction(action)
    if status in TERMINAL_STATUSES:
        raise ProposalAlreadyProcessedError(proposal_id, status.value)
    target = TRANSITIONS.get((status, act))
    if target is None:
        raise InvalidProposalTransitionError(
            f"Cannot {act.value} proposal {proposal_id} from status {status.value}"
        )
    return target
