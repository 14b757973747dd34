"""
Governance Proposals

Defines the fund-transfer Proposal record, its derived lifecycle state, and
the ProposalRegistry that owns proposal records and the monotonic id
sequence.
"""

from dataclasses import dataclass
from enum import IntEnum
from typing import Any, Dict, List, Optional

from ..constants import GOVERNANCE_NS_META, GOVERNANCE_NS_PROPOSAL
from ..logger import get_logger
from ..storage import KeyValueStore, MemoryStore
from .errors import ProposalNotFoundError

logger = get_logger(__name__)


# ══════════════════════════════════════════════════════════════════════
#  ENUMS
# ══════════════════════════════════════════════════════════════════════

class ProposalState(IntEnum):
    """Lifecycle stage, derived from stored fields and the current time."""
    PENDING = 0     # now < vote_start
    ACTIVE = 1      # vote_start <= now <= vote_end, not executed
    CLOSED = 2      # now > vote_end, not executed
    EXECUTED = 3    # Terminal


# ══════════════════════════════════════════════════════════════════════
#  PROPOSAL
# ══════════════════════════════════════════════════════════════════════

@dataclass
class Proposal:
    """
    Request to move ``amount`` of the governed asset to ``recipient``.

    Fields:
        id:          Sequential identifier, starting at 0
        recipient:   Opaque identity of the funds destination
        amount:      Positive quantity of the governed asset
        vote_start:  Timestamp at creation
        vote_end:    vote_start + voting duration
        executed:    Flips false -> true once, on successful execution
    """
    id: int
    recipient: str
    amount: int
    vote_start: int
    vote_end: int
    executed: bool = False

    def state_at(self, now: int) -> ProposalState:
        if self.executed:
            return ProposalState.EXECUTED
        if now < self.vote_start:
            return ProposalState.PENDING
        if now > self.vote_end:
            return ProposalState.CLOSED
        return ProposalState.ACTIVE

    def is_voting_open(self, now: int) -> bool:
        return self.state_at(now) == ProposalState.ACTIVE

    # ── Serialization ─────────────────────────────────────────────────

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "recipient": self.recipient,
            "amount": self.amount,
            "voteStart": self.vote_start,
            "voteEnd": self.vote_end,
            "executed": self.executed,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Proposal":
        return cls(
            id=data["id"],
            recipient=data["recipient"],
            amount=data["amount"],
            vote_start=data["voteStart"],
            vote_end=data["voteEnd"],
            executed=data.get("executed", False),
        )

    def __repr__(self) -> str:
        return (
            f"<Proposal #{self.id} to={self.recipient} amount={self.amount} "
            f"window=[{self.vote_start}, {self.vote_end}] executed={self.executed}>"
        )


# ══════════════════════════════════════════════════════════════════════
#  REGISTRY
# ══════════════════════════════════════════════════════════════════════

class ProposalRegistry:
    """
    Owns proposal records and the id sequence.

    No input validation happens here; GovernanceEngine validates before
    calling ``create``.

    The id sequence is guarded by the store-wide lock, so registries sharing
    a store never hand out the same id twice.
    """

    _COUNTER_KEY = (GOVERNANCE_NS_META, "next_proposal_id")

    def __init__(self, store: Optional[KeyValueStore] = None):
        self._store = store if store is not None else MemoryStore()
        self._lock = self._store.lock

    @staticmethod
    def _key(proposal_id: int):
        return (GOVERNANCE_NS_PROPOSAL, proposal_id)

    @property
    def next_id(self) -> int:
        meta = self._store.get(self._COUNTER_KEY)
        return meta["value"] if meta else 0

    def create(self, recipient: str, amount: int, vote_start: int, vote_end: int) -> int:
        """Store a new proposal under the next id and return that id."""
        with self._lock:
            proposal_id = self.next_id
            proposal = Proposal(
                id=proposal_id,
                recipient=recipient,
                amount=amount,
                vote_start=vote_start,
                vote_end=vote_end,
            )
            self._store.put(self._key(proposal_id), proposal.to_dict())
            try:
                self._store.put(self._COUNTER_KEY, {"value": proposal_id + 1})
            except Exception:
                self._store.delete(self._key(proposal_id))
                raise
        logger.debug(f"Stored {proposal!r}")
        return proposal_id

    def get(self, proposal_id: int) -> Optional[Proposal]:
        data = self._store.get(self._key(proposal_id))
        return Proposal.from_dict(data) if data is not None else None

    def mark_executed(self, proposal_id: int) -> Proposal:
        with self._lock:
            proposal = self.get(proposal_id)
            if proposal is None:
                raise ProposalNotFoundError(
                    f"Proposal #{proposal_id} does not exist", proposal_id
                )
            proposal.executed = True
            self._store.put(self._key(proposal_id), proposal.to_dict())
        return proposal

    def all(self) -> List[Proposal]:
        return [p for p in (self.get(i) for i in range(self.next_id)) if p is not None]

    def __len__(self) -> int:
        return self.next_id

    def __repr__(self) -> str:
        return f"<ProposalRegistry proposals={self.next_id}>"
