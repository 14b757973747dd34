"""
Governance Engine

Orchestrates the proposal lifecycle:

    propose  ──>  ACTIVE  ──(now > vote_end)──>  CLOSED
                    │                               │
                    └──── execute (quorum + strict majority) ──> EXECUTED

Proposal state is derived from the stored record and the clock, never
stored. The engine is the only component that talks to the clock, the
identity source and the stake oracle.
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional

from ..constants import (
    GOVERNANCE_DEFAULT_QUORUM,
    GOVERNANCE_MAX_QUORUM,
    GOVERNANCE_MAX_TIMESTAMP,
    GOVERNANCE_MIN_QUORUM,
)
from ..exceptions import ConfigurationError
from ..logger import get_logger
from ..storage import KeyValueStore, MemoryStore
from .collaborators import Clock, IdentitySource, StakeWeightOracle
from .errors import (
    AlreadyVotedError,
    AmountShouldNotBeZeroError,
    DurationError,
    DurationOverflowError,
    GovernorError,
    InvalidOracleStateError,
    ProposalAlreadyExecutedError,
    ProposalNotAcceptedError,
    ProposalNotFoundError,
    QuorumNotReachedError,
    VotePeriodEndedError,
    VotePeriodNotEndedError,
)
from .proposals import Proposal, ProposalRegistry, ProposalState
from .voting import ProposalVoteTally, VoteRecord, VoteTally, VoteType, compute_weight

logger = get_logger(__name__)


# ══════════════════════════════════════════════════════════════════════
#  CONFIGURATION & STATE
# ══════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class GovernorConfig:
    """
    Immutable governor settings.

    Attributes:
        quorum_threshold:      Minimum FOR + AGAINST weight, in percentage points
        stake_asset:           Opaque reference to the stake asset
        require_voting_closed: Only allow execution once now > vote_end
        max_timestamp:         Largest representable vote_end
    """
    quorum_threshold: int = GOVERNANCE_DEFAULT_QUORUM
    stake_asset: str = ""
    require_voting_closed: bool = False
    max_timestamp: int = GOVERNANCE_MAX_TIMESTAMP

    def __post_init__(self):
        if isinstance(self.quorum_threshold, bool) or not isinstance(self.quorum_threshold, int):
            raise ConfigurationError(
                f"quorum_threshold must be an integer, got {self.quorum_threshold!r}"
            )
        if not GOVERNANCE_MIN_QUORUM <= self.quorum_threshold <= GOVERNANCE_MAX_QUORUM:
            raise ConfigurationError(
                f"quorum_threshold must be within "
                f"{GOVERNANCE_MIN_QUORUM}-{GOVERNANCE_MAX_QUORUM}, got {self.quorum_threshold}"
            )
        if self.max_timestamp <= 0:
            raise ConfigurationError("max_timestamp must be positive")
        if not isinstance(self.require_voting_closed, bool):
            raise ConfigurationError(
                f"require_voting_closed must be a bool, got {self.require_voting_closed!r}"
            )


class GovernorState:
    """Proposal registry and vote tally sharing one store and its lock."""

    def __init__(self, store: Optional[KeyValueStore] = None):
        self.store = store if store is not None else MemoryStore()
        self.lock = self.store.lock
        self.proposals = ProposalRegistry(self.store)
        self.tally = VoteTally(self.store)


# ══════════════════════════════════════════════════════════════════════
#  ENGINE
# ══════════════════════════════════════════════════════════════════════

class GovernanceEngine:
    """
    Token-weighted governor for fund-transfer proposals.

    Every public call runs under the state store's re-entrant lock, which
    serialises writers across all engines built over that store: two
    concurrent votes from one voter, or two concurrent executions of one
    proposal, cannot both succeed. Each call gathers all of its inputs (clock,
    caller, oracle figures) before writing, so a rejected call leaves no
    partial state.
    """

    def __init__(
        self,
        config: GovernorConfig,
        clock: Clock,
        identity: IdentitySource,
        oracle: StakeWeightOracle,
        state: Optional[GovernorState] = None,
    ):
        self.config = config
        self._clock = clock
        self._identity = identity
        self._oracle = oracle
        self._state = state if state is not None else GovernorState()
        self._lock = self._state.lock
        logger.info(
            f"Governor ready: quorum={config.quorum_threshold}% "
            f"asset={config.stake_asset or '-'} "
            f"require_voting_closed={config.require_voting_closed}"
        )

    # ── Read-only views ───────────────────────────────────────────────

    def now(self) -> int:
        return self._clock.now()

    def get_proposal(self, proposal_id: int) -> Optional[Proposal]:
        with self._lock:
            return self._state.proposals.get(proposal_id)

    def next_proposal_id(self) -> int:
        with self._lock:
            return self._state.proposals.next_id

    def get_tally(self, proposal_id: int) -> Optional[ProposalVoteTally]:
        with self._lock:
            return self._state.tally.get_tally(proposal_id)

    def has_voted(self, proposal_id: int, voter: str) -> bool:
        with self._lock:
            return self._state.tally.has_voted(proposal_id, voter)

    def proposal_state(self, proposal_id: int) -> ProposalState:
        with self._lock:
            return self._require_proposal(proposal_id).state_at(self.now())

    def summary(self, proposal_id: int) -> Dict[str, Any]:
        """Proposal, tally and derived state as one dict."""
        with self._lock:
            proposal = self._require_proposal(proposal_id)
            tally = self._state.tally.get_tally(proposal_id)
            tally = tally or ProposalVoteTally(proposal_id=proposal_id)
            return {
                **proposal.to_dict(),
                "state": proposal.state_at(self.now()).name,
                "forWeight": tally.for_weight,
                "againstWeight": tally.against_weight,
                "voters": self._state.tally.voter_count(proposal_id),
                "quorumThreshold": self.config.quorum_threshold,
            }

    # ── Operations ────────────────────────────────────────────────────

    def propose(self, to: str, amount: int, duration: int) -> int:
        """
        Create a proposal to transfer *amount* to *to*, open for *duration*.

        Returns the new proposal id.
        """
        if amount <= 0:
            logger.warning(f"Rejected proposal to {to}: amount {amount} is not positive")
            raise AmountShouldNotBeZeroError(
                f"Proposal amount must be positive, got {amount}"
            )
        if duration <= 0:
            logger.warning(f"Rejected proposal to {to}: duration {duration} is not positive")
            raise DurationError(f"Voting duration must be positive, got {duration}")

        with self._lock:
            now = self.now()
            vote_end = now + duration
            if vote_end > self.config.max_timestamp:
                logger.warning(
                    f"Rejected proposal to {to}: voting end {vote_end} overflows "
                    f"the timestamp range"
                )
                raise DurationOverflowError(
                    f"Voting end {now} + {duration} exceeds the maximum "
                    f"timestamp {self.config.max_timestamp}"
                )
            proposal_id = self._state.proposals.create(
                recipient=to, amount=amount, vote_start=now, vote_end=vote_end
            )

        logger.info(
            f"Proposal #{proposal_id} created: {amount} -> {to}, "
            f"voting [{now}, {vote_end}]"
        )
        return proposal_id

    def vote(self, proposal_id: int, vote_type: VoteType) -> VoteRecord:
        """Cast the current caller's stake-weighted vote."""
        vote_type = VoteType(vote_type)
        with self._lock:
            proposal = self._require_proposal(proposal_id)
            if proposal.executed:
                logger.warning(f"Proposal #{proposal_id}: vote rejected, already executed")
                raise ProposalAlreadyExecutedError(
                    f"Proposal #{proposal_id} is already executed", proposal_id
                )
            now = self.now()
            if now > proposal.vote_end:
                logger.warning(
                    f"Proposal #{proposal_id}: vote rejected, voting ended at {proposal.vote_end}"
                )
                raise VotePeriodEndedError(
                    f"Voting on proposal #{proposal_id} ended at {proposal.vote_end} (now={now})",
                    proposal_id,
                )

            voter = self._identity.current_caller()
            if self._state.tally.has_voted(proposal_id, voter):
                logger.warning(f"Proposal #{proposal_id}: {voter} tried to vote twice")
                raise AlreadyVotedError(
                    f"{voter} has already voted on proposal #{proposal_id}",
                    proposal_id,
                )

            weight = self._weight_of(voter, proposal_id)
            record = self._state.tally.record_vote(proposal_id, voter, vote_type, weight)

        logger.info(
            f"Proposal #{proposal_id}: {voter} voted {vote_type.name} (weight={weight})"
        )
        return record

    def execute(self, proposal_id: int) -> Proposal:
        """Mark a proposal executed if quorum and a strict majority are met."""
        with self._lock:
            proposal = self._require_proposal(proposal_id)
            if proposal.executed:
                logger.warning(f"Proposal #{proposal_id}: already executed")
                raise ProposalAlreadyExecutedError(
                    f"Proposal #{proposal_id} is already executed", proposal_id
                )

            if self.config.require_voting_closed:
                now = self.now()
                if now <= proposal.vote_end:
                    logger.debug(
                        f"Proposal #{proposal_id}: execution before voting closed (now={now})"
                    )
                    raise VotePeriodNotEndedError(
                        f"Voting on proposal #{proposal_id} is open until {proposal.vote_end}",
                        proposal_id,
                    )

            tally = self._state.tally.get_tally(proposal_id)
            quorum = self.config.quorum_threshold
            if tally is None or tally.total < quorum:
                participation = tally.total if tally else 0
                logger.warning(
                    f"Proposal #{proposal_id}: quorum not reached ({participation}/{quorum})"
                )
                raise QuorumNotReachedError(
                    f"Proposal #{proposal_id} has {participation} of {quorum} required weight",
                    proposal_id,
                )

            # Ties are rejected
            if tally.for_weight <= tally.against_weight:
                logger.info(
                    f"Proposal #{proposal_id}: not accepted "
                    f"(for={tally.for_weight}, against={tally.against_weight})"
                )
                raise ProposalNotAcceptedError(
                    f"Proposal #{proposal_id} lacks a strict majority "
                    f"({tally.for_weight} for, {tally.against_weight} against)",
                    proposal_id,
                )

            proposal = self._state.proposals.mark_executed(proposal_id)

        logger.info(
            f"Proposal #{proposal_id} EXECUTED: {proposal.amount} -> {proposal.recipient} "
            f"(for={tally.for_weight}, against={tally.against_weight})"
        )
        return proposal

    # ── Internals ─────────────────────────────────────────────────────

    def _require_proposal(self, proposal_id: int) -> Proposal:
        proposal = self._state.proposals.get(proposal_id)
        if proposal is None:
            logger.debug(f"Proposal #{proposal_id} not found")
            raise ProposalNotFoundError(
                f"Proposal #{proposal_id} does not exist", proposal_id
            )
        return proposal

    def _weight_of(self, voter: str, proposal_id: int) -> int:
        try:
            balance = self._oracle.balance_of(voter)
            supply = self._oracle.total_supply()
        except GovernorError:
            raise
        except Exception as e:
            logger.error(f"Proposal #{proposal_id}: stake oracle query failed: {e}")
            raise InvalidOracleStateError(
                f"Stake oracle query failed: {e}", proposal_id
            ) from e
        try:
            return compute_weight(balance, supply)
        except InvalidOracleStateError as e:
            e.proposal_id = proposal_id
            raise

    def __repr__(self) -> str:
        return (
            f"<GovernanceEngine proposals={self._state.proposals.next_id} "
            f"quorum={self.config.quorum_threshold}%>"
        )
