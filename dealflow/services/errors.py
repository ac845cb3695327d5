"""Domain errors raised by the scoring and proposal services."""

from __future__ import annotations


class DealNotFoundError(LookupError):
    """Raised when an operation references a deal id that does not exist."""

    def __init__(self, deal_id: int) -> None:
        super().__init__(f"Deal {deal_id} not found")
        self.deal_id = deal_id


class ProposalNotFoundError(LookupError):
    """Raised when an operation references a proposal id that does not exist."""

    def __init__(self, proposal_id: int) -> None:
        super().__init__(f"Proposal {proposal_id} not found")
        self.proposal_id = proposal_id


class ProposalAlreadyProcessedError(ValueError):
    """Raised on any transition attempt out of a terminal state."""

    code = "ALREADY_PROCESSED"

    def __init__(self, proposal_id: int | None, status: str) -> None:
        super().__init__(f"Proposal {proposal_id} already processed (status={status})")
        self.proposal_id = proposal_id
        self.status = status


class InvalidProposalTransitionError(ValueError):
    """Raised when a transition is not allowed from a non-terminal state."""

    code = "INVALID_TRANSITION"


class BaseScoreLockedError(ValueError):
    """Raised when category bases are already set and overwrite was not requested."""

    def __init__(self, deal_id: int) -> None:
        super().__init__(f"Deal {deal_id} already has a base score; pass overwrite=True to re-seed")
        self.deal_id = deal_id


class DuplicateDealError(ValueError):
    """Raised when approving would create a second deal with the same normalized name."""

    code = "DUPLICATE_DEAL"

    def __init__(self, proposal_id: int, deal_id: int) -> None:
        super().__init__(f"Proposal {proposal_id} duplicates existing deal {deal_id}")
        self.proposal_id = proposal_id
        self.deal_id = deal_id
