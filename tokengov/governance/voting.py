"""
Stake-Weighted Vote Tally

Implements:
  - Weight = floor(balance * 100 / total_supply), an integer percentage
  - One vote per voter per proposal
  - Per-proposal FOR / AGAINST accumulators, created on the first vote

Fractions of a percentage point are discarded on purpose: a holder of 0.9%
of supply votes with weight 0.
"""

from dataclasses import dataclass
from enum import IntEnum
from typing import Any, Dict, Optional

from ..constants import (
    GOVERNANCE_NS_TALLY,
    GOVERNANCE_NS_VOTE,
    GOVERNANCE_WEIGHT_SCALE,
)
from ..logger import get_logger
from ..storage import KeyValueStore, MemoryStore
from .errors import AlreadyVotedError, InvalidOracleStateError

logger = get_logger(__name__)


# ══════════════════════════════════════════════════════════════════════
#  VOTE DATA
# ══════════════════════════════════════════════════════════════════════

class VoteType(IntEnum):
    FOR = 0
    AGAINST = 1


@dataclass(frozen=True)
class VoteRecord:
    """Marker that ``voter`` has voted on ``proposal_id``."""
    proposal_id: int
    voter: str
    vote_type: VoteType
    weight: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "proposalId": self.proposal_id,
            "voter": self.voter,
            "voteType": self.vote_type.name,
            "weight": self.weight,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "VoteRecord":
        return cls(
            proposal_id=data["proposalId"],
            voter=data["voter"],
            vote_type=VoteType[data["voteType"]],
            weight=data["weight"],
        )


@dataclass
class ProposalVoteTally:
    """Aggregated weights for one proposal. Python ints never overflow."""
    proposal_id: int
    for_weight: int = 0
    against_weight: int = 0

    @property
    def total(self) -> int:
        return self.for_weight + self.against_weight

    def as_tuple(self):
        return (self.for_weight, self.against_weight)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "proposalId": self.proposal_id,
            "forWeight": self.for_weight,
            "againstWeight": self.against_weight,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ProposalVoteTally":
        return cls(
            proposal_id=data["proposalId"],
            for_weight=data["forWeight"],
            against_weight=data["againstWeight"],
        )


# ══════════════════════════════════════════════════════════════════════
#  WEIGHT
# ══════════════════════════════════════════════════════════════════════

def compute_weight(balance: int, total_supply: int) -> int:
    """
    Integer-percentage voting weight of *balance* out of *total_supply*.

    Raises InvalidOracleStateError for a zero supply, negative figures, or a
    balance larger than the supply.
    """
    if total_supply == 0:
        raise InvalidOracleStateError("Stake asset total supply is zero")
    if total_supply < 0 or balance < 0:
        raise InvalidOracleStateError(
            f"Negative stake figures (balance={balance}, supply={total_supply})"
        )
    if balance > total_supply:
        raise InvalidOracleStateError(
            f"Balance {balance} exceeds total supply {total_supply}"
        )
    # Multiply before dividing so precision is only lost once, at the floor.
    return (balance * GOVERNANCE_WEIGHT_SCALE) // total_supply


# ══════════════════════════════════════════════════════════════════════
#  TALLY
# ══════════════════════════════════════════════════════════════════════

class VoteTally:
    """
    Owns vote records and per-proposal accumulators.

    ``record_vote`` runs its check, marker insert and accumulation under the
    store-wide lock, so two calls for the same (proposal, voter) pair cannot
    both pass the "not yet voted" check, even through different tallies over
    one store. If the accumulator write fails the marker is removed again.
    """

    def __init__(self, store: Optional[KeyValueStore] = None):
        self._store = store if store is not None else MemoryStore()
        self._lock = self._store.lock

    @staticmethod
    def _vote_key(proposal_id: int, voter: str):
        return (GOVERNANCE_NS_VOTE, proposal_id, voter)

    @staticmethod
    def _tally_key(proposal_id: int):
        return (GOVERNANCE_NS_TALLY, proposal_id)

    def record_vote(
        self,
        proposal_id: int,
        voter: str,
        vote_type: VoteType,
        weight: int,
    ) -> VoteRecord:
        vote_type = VoteType(vote_type)
        if weight < 0:
            raise ValueError(f"Vote weight cannot be negative: {weight}")

        record = VoteRecord(
            proposal_id=proposal_id,
            voter=voter,
            vote_type=vote_type,
            weight=weight,
        )
        vote_key = self._vote_key(proposal_id, voter)
        tally_key = self._tally_key(proposal_id)

        with self._lock:
            if not self._store.put_if_absent(vote_key, record.to_dict()):
                raise AlreadyVotedError(
                    f"{voter} has already voted on proposal #{proposal_id}",
                    proposal_id,
                )
            created = False
            try:
                created = self._store.put_if_absent(
                    tally_key, ProposalVoteTally(proposal_id=proposal_id).to_dict()
                )
                tally = ProposalVoteTally.from_dict(self._store.get(tally_key))
                if vote_type == VoteType.FOR:
                    tally.for_weight += weight
                else:
                    tally.against_weight += weight
                self._store.put(tally_key, tally.to_dict())
            except Exception:
                logger.warning(
                    f"Proposal #{proposal_id}: tally update failed, "
                    f"discarding vote from {voter}"
                )
                if created:
                    self._store.delete(tally_key)
                self._store.delete(vote_key)
                raise

        return record

    def get_tally(self, proposal_id: int) -> Optional[ProposalVoteTally]:
        """None means no vote has ever been cast on the proposal."""
        with self._lock:
            data = self._store.get(self._tally_key(proposal_id))
        return ProposalVoteTally.from_dict(data) if data is not None else None

    def has_voted(self, proposal_id: int, voter: str) -> bool:
        return self._store.contains(self._vote_key(proposal_id, voter))

    def get_vote(self, proposal_id: int, voter: str) -> Optional[VoteRecord]:
        data = self._store.get(self._vote_key(proposal_id, voter))
        return VoteRecord.from_dict(data) if data is not None else None

    def voter_count(self, proposal_id: int) -> int:
        return sum(
            1 for key in self._store.keys(GOVERNANCE_NS_VOTE) if key[1] == proposal_id
        )

    def __repr__(self) -> str:
        tallies = sum(1 for _ in self._store.keys(GOVERNANCE_NS_TALLY))
        return f"<VoteTally proposals={tallies}>"
