"""Tests for the proposal lifecycle state machine."""

from __future__ import annotations

import pytest

from dealflow.services.errors import (
    InvalidProposalTransitionError,
    ProposalAlreadyProcessedError,
)
from dealflow.services.proposals.state_machine import (
    ProposalAction,
    ProposalStatus,
    is_terminal,
    next_status,
)


@pytest.mark.parametrize(
    "current,action,expected",
    [
        ("pending", "approve", ProposalStatus.APPROVED),
        ("pending", "reject", ProposalStatus.REJECTED),
        ("pending", "snooze", ProposalStatus.SNOOZED),
        ("snoozed", "reject", ProposalStatus.REJECTED),
        ("snoozed", "snooze", ProposalStatus.SNOOZED),
        ("snoozed", "reactivate", ProposalStatus.PENDING),
    ],
)
def test_allowed_transitions(current: str, action: str, expected: ProposalStatus) -> None:
    assert next_status(current, action) is expected


@pytest.mark.parametrize("terminal", ["approved", "rejected"])
@pytest.mark.parametrize("action", list(ProposalAction))
def test_terminal_states_are_already_processed(terminal: str, action: ProposalAction) -> None:
    with pytest.raises(ProposalAlreadyProcessedError) as exc_info:
        next_status(terminal, action, proposal_id=7)
    assert exc_info.value.code == "ALREADY_PROCESSED"
    assert exc_info.value.proposal_id == 7


@pytest.mark.parametrize(
    "current,action",
    [("snoozed", "approve"), ("pending", "reactivate")],
)
def test_invalid_transitions(current: str, action: str) -> None:
    with pytest.raises(InvalidProposalTransitionError) as exc_info:
        next_status(current, action)
    assert exc_info.value.code == "INVALID_TRANSITION"


def test_unknown_status_rejected() -> None:
    with pytest.raises(ValueError):
        next_status("archived", "approve")


def test_is_terminal() -> None:
    assert is_terminal("approved")
    assert is_terminal(ProposalStatus.REJECTED)
    assert not is_terminal("snoozed")
