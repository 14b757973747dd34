"""
Governance error taxonomy.

Every rejected precondition raises exactly one of these. None of them are
transient; callers should not retry. ``kind`` lets a host runtime map an
exception to a tagged result without matching on class names.
"""

from enum import Enum

from ..exceptions import TokenGovException


class GovernorErrorKind(str, Enum):
    AMOUNT_SHOULD_NOT_BE_ZERO = "AmountShouldNotBeZero"
    DURATION_ERROR = "DurationError"
    QUORUM_NOT_REACHED = "QuorumNotReached"
    PROPOSAL_NOT_FOUND = "ProposalNotFound"
    PROPOSAL_ALREADY_EXECUTED = "ProposalAlreadyExecuted"
    VOTE_PERIOD_ENDED = "VotePeriodEnded"
    VOTE_PERIOD_NOT_ENDED = "VotePeriodNotEnded"
    ALREADY_VOTED = "AlreadyVoted"
    PROPOSAL_NOT_ACCEPTED = "ProposalNotAccepted"
    INVALID_ORACLE_STATE = "InvalidOracleState"


class GovernorError(TokenGovException):
    """Base governance exception."""

    kind: GovernorErrorKind

    def __init__(self, message: str = "", proposal_id=None):
        kind = getattr(self, "kind", None)
        super().__init__(message or (kind.value if kind else type(self).__name__))
        self.proposal_id = proposal_id


class AmountShouldNotBeZeroError(GovernorError):
    """Proposal amount is zero (or negative)."""
    kind = GovernorErrorKind.AMOUNT_SHOULD_NOT_BE_ZERO


class DurationError(GovernorError):
    """Voting duration is zero or negative."""
    kind = GovernorErrorKind.DURATION_ERROR


class DurationOverflowError(DurationError):
    """vote_start + duration leaves the timestamp domain."""


class QuorumNotReachedError(GovernorError):
    kind = GovernorErrorKind.QUORUM_NOT_REACHED


class ProposalNotFoundError(GovernorError):
    kind = GovernorErrorKind.PROPOSAL_NOT_FOUND


class ProposalAlreadyExecutedError(GovernorError):
    kind = GovernorErrorKind.PROPOSAL_ALREADY_EXECUTED


class VotePeriodEndedError(GovernorError):
    kind = GovernorErrorKind.VOTE_PERIOD_ENDED


class VotePeriodNotEndedError(GovernorError):
    """Execution attempted while voting is open (strict mode only)."""
    kind = GovernorErrorKind.VOTE_PERIOD_NOT_ENDED


class AlreadyVotedError(GovernorError):
    kind = GovernorErrorKind.ALREADY_VOTED


class ProposalNotAcceptedError(GovernorError):
    kind = GovernorErrorKind.PROPOSAL_NOT_ACCEPTED


class InvalidOracleStateError(GovernorError):
    """Stake oracle returned unusable figures or failed outright."""
    kind = GovernorErrorKind.INVALID_ORACLE_STATE
