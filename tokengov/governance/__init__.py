"""
tokengov Governance

Provides:
  - Proposal / ProposalState / ProposalRegistry          (proposals.py)
  - VoteType / VoteTally / compute_weight                (voting.py)
  - GovernanceEngine / GovernorConfig / GovernorState     (engine.py)
  - Clock / IdentitySource / StakeWeightOracle adapters   (collaborators.py)
  - GovernorError taxonomy                                (errors.py)
"""

from .errors import (
    AlreadyVotedError,
    AmountShouldNotBeZeroError,
    DurationError,
    DurationOverflowError,
    GovernorError,
    GovernorErrorKind,
    InvalidOracleStateError,
    ProposalAlreadyExecutedError,
    ProposalNotAcceptedError,
    ProposalNotFoundError,
    QuorumNotReachedError,
    VotePeriodEndedError,
    VotePeriodNotEndedError,
)
from .proposals import (
    Proposal,
    ProposalRegistry,
    ProposalState,
)
from .voting import (
    ProposalVoteTally,
    VoteRecord,
    VoteTally,
    VoteType,
    compute_weight,
)
from .collaborators import (
    CallerContext,
    Clock,
    IdentitySource,
    ManualClock,
    StakeWeightOracle,
    StaticStakeOracle,
    SystemClock,
    TokenStakeOracle,
)
from .engine import (
    GovernanceEngine,
    GovernorConfig,
    GovernorState,
)

__all__ = [
    # Errors
    "AlreadyVotedError",
    "AmountShouldNotBeZeroError",
    "DurationError",
    "DurationOverflowError",
    "GovernorError",
    "GovernorErrorKind",
    "InvalidOracleStateError",
    "ProposalAlreadyExecutedError",
    "ProposalNotAcceptedError",
    "ProposalNotFoundError",
    "QuorumNotReachedError",
    "VotePeriodEndedError",
    "VotePeriodNotEndedError",
    # Proposals
    "Proposal",
    "ProposalRegistry",
    "ProposalState",
    # Voting
    "ProposalVoteTally",
    "VoteRecord",
    "VoteTally",
    "VoteType",
    "compute_weight",
    # Collaborators
    "CallerContext",
    "Clock",
    "IdentitySource",
    "ManualClock",
    "StakeWeightOracle",
    "StaticStakeOracle",
    "SystemClock",
    "TokenStakeOracle",
    # Engine
    "GovernanceEngine",
    "GovernorConfig",
    "GovernorState",
]
