"""
Proposal Registry & Vote Tally Test Suite

Coverage:
  - Proposal record, derived state, serialization
  - ProposalRegistry id sequence and mark_executed
  - compute_weight floor arithmetic and malformed oracle figures
  - VoteTally one-vote rule and lazy accumulators
  - MemoryStore semantics
"""

import os
import sys

import pytest

# ── Path setup ────────────────────────────────────────────────────────
ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from tokengov.exceptions import StorageError
from tokengov.governance.errors import (
    AlreadyVotedError,
    InvalidOracleStateError,
    ProposalNotFoundError,
)
from tokengov.governance.proposals import Proposal, ProposalRegistry, ProposalState
from tokengov.governance.voting import (
    ProposalVoteTally,
    VoteRecord,
    VoteTally,
    VoteType,
    compute_weight,
)
from tokengov.storage import MemoryStore


ALICE = "alice"
BOB = "bob"
RECIPIENT = "treasury-grantee"


class FailingStore(MemoryStore):
    """MemoryStore whose put fails for one namespace while ``failing`` is set."""

    def __init__(self, namespace):
        super().__init__()
        self.namespace = namespace
        self.failing = True

    def put(self, key, value):
        if self.failing and key[0] == self.namespace:
            raise StorageError(f"write to {key!r} failed")
        super().put(key, value)


def make_proposal(pid=0, start=100, end=200, executed=False) -> Proposal:
    return Proposal(
        id=pid,
        recipient=RECIPIENT,
        amount=500,
        vote_start=start,
        vote_end=end,
        executed=executed,
    )


# ══════════════════════════════════════════════════════════════════════
#  PROPOSAL
# ══════════════════════════════════════════════════════════════════════

class TestProposalState:

    def test_pending(self):
        assert make_proposal().state_at(99) == ProposalState.PENDING

    def test_active_bounds_inclusive(self):
        p = make_proposal()
        assert p.state_at(100) == ProposalState.ACTIVE
        assert p.state_at(200) == ProposalState.ACTIVE
        assert p.is_voting_open(150)

    def test_closed(self):
        p = make_proposal()
        assert p.state_at(201) == ProposalState.CLOSED
        assert not p.is_voting_open(201)

    def test_executed_is_terminal(self):
        p = make_proposal(executed=True)
        for now in (0, 150, 10_000):
            assert p.state_at(now) == ProposalState.EXECUTED

    def test_to_dict_from_dict(self):
        p = make_proposal(pid=7, executed=True)
        d = p.to_dict()
        assert d["voteStart"] == 100
        assert d["executed"] is True
        assert Proposal.from_dict(d) == p

    def test_repr(self):
        assert "Proposal #3" in repr(make_proposal(pid=3))


# ══════════════════════════════════════════════════════════════════════
#  REGISTRY
# ══════════════════════════════════════════════════════════════════════

class TestProposalRegistry:

    def test_starts_empty(self):
        reg = ProposalRegistry()
        assert reg.next_id == 0
        assert len(reg) == 0
        assert reg.get(0) is None

    def test_create_assigns_sequential_ids(self):
        reg = ProposalRegistry()
        assert reg.create(RECIPIENT, 1, 0, 10) == 0
        assert reg.create(RECIPIENT, 2, 0, 10) == 1
        assert reg.next_id == 2
        assert [p.amount for p in reg.all()] == [1, 2]

    def test_create_does_not_validate(self):
        reg = ProposalRegistry()
        pid = reg.create(RECIPIENT, 0, 10, 10)
        assert reg.get(pid).amount == 0

    def test_mark_executed(self):
        reg = ProposalRegistry()
        pid = reg.create(RECIPIENT, 5, 0, 10)
        p = reg.mark_executed(pid)
        assert p.executed
        assert reg.get(pid).executed

    def test_mark_executed_missing_raises(self):
        reg = ProposalRegistry()
        with pytest.raises(ProposalNotFoundError):
            reg.mark_executed(0)

    def test_state_survives_new_registry_on_same_store(self):
        store = MemoryStore()
        ProposalRegistry(store).create(RECIPIENT, 5, 0, 10)
        reg = ProposalRegistry(store)
        assert reg.next_id == 1
        assert reg.create(RECIPIENT, 6, 0, 10) == 1

    def test_failed_counter_write_discards_proposal(self):
        store = FailingStore("meta")
        reg = ProposalRegistry(store)
        with pytest.raises(StorageError):
            reg.create(RECIPIENT, 5, 0, 10)
        assert reg.next_id == 0
        assert reg.get(0) is None

        store.failing = False
        assert reg.create(RECIPIENT, 5, 0, 10) == 0

    def test_registries_sharing_a_store_share_its_lock(self):
        store = MemoryStore()
        assert ProposalRegistry(store)._lock is ProposalRegistry(store)._lock
        assert ProposalRegistry(store)._lock is VoteTally(store)._lock


# ══════════════════════════════════════════════════════════════════════
#  WEIGHT
# ══════════════════════════════════════════════════════════════════════

class TestComputeWeight:

    @pytest.mark.parametrize(
        "balance,supply,expected",
        [
            (10, 10, 100),
            (0, 10, 0),
            (1, 3, 33),
            (2, 3, 66),
            (999, 100_000, 0),
            (1_000, 100_000, 1),
            (1_999, 100_000, 1),
            (10**30, 10**30 + 1, 99),
        ],
    )
    def test_floor(self, balance, supply, expected):
        assert compute_weight(balance, supply) == expected

    def test_zero_supply_raises(self):
        with pytest.raises(InvalidOracleStateError, match="zero"):
            compute_weight(0, 0)

    def test_negative_raises(self):
        with pytest.raises(InvalidOracleStateError):
            compute_weight(-1, 10)
        with pytest.raises(InvalidOracleStateError):
            compute_weight(1, -10)

    def test_balance_above_supply_raises(self):
        with pytest.raises(InvalidOracleStateError, match="exceeds"):
            compute_weight(11, 10)


# ══════════════════════════════════════════════════════════════════════
#  TALLY
# ══════════════════════════════════════════════════════════════════════

class TestVoteTally:

    def test_no_tally_before_first_vote(self):
        tally = VoteTally()
        assert tally.get_tally(0) is None
        assert not tally.has_voted(0, ALICE)

    def test_record_for_and_against(self):
        tally = VoteTally()
        tally.record_vote(0, ALICE, VoteType.FOR, 60)
        tally.record_vote(0, BOB, VoteType.AGAINST, 30)
        t = tally.get_tally(0)
        assert t == ProposalVoteTally(proposal_id=0, for_weight=60, against_weight=30)
        assert t.total == 90
        assert tally.voter_count(0) == 2

    def test_double_vote_raises_and_keeps_tally(self):
        tally = VoteTally()
        tally.record_vote(0, ALICE, VoteType.FOR, 60)
        with pytest.raises(AlreadyVotedError):
            tally.record_vote(0, ALICE, VoteType.AGAINST, 60)
        assert tally.get_tally(0).as_tuple() == (60, 0)
        assert tally.get_vote(0, ALICE).vote_type == VoteType.FOR

    def test_zero_weight_vote_creates_tally(self):
        tally = VoteTally()
        tally.record_vote(0, ALICE, VoteType.AGAINST, 0)
        assert tally.get_tally(0).as_tuple() == (0, 0)
        assert tally.has_voted(0, ALICE)

    def test_tallies_are_per_proposal(self):
        tally = VoteTally()
        tally.record_vote(0, ALICE, VoteType.FOR, 10)
        tally.record_vote(1, ALICE, VoteType.FOR, 20)
        assert tally.get_tally(0).for_weight == 10
        assert tally.get_tally(1).for_weight == 20
        assert tally.voter_count(0) == 1

    def test_accumulator_is_wide(self):
        tally = VoteTally()
        for i in range(300):
            tally.record_vote(0, f"voter-{i}", VoteType.FOR, 100)
        assert tally.get_tally(0).for_weight == 30_000

    def test_negative_weight_rejected(self):
        tally = VoteTally()
        with pytest.raises(ValueError):
            tally.record_vote(0, ALICE, VoteType.FOR, -1)
        assert not tally.has_voted(0, ALICE)

    def test_failed_tally_write_discards_vote(self):
        store = FailingStore("tally")
        tally = VoteTally(store)
        with pytest.raises(StorageError):
            tally.record_vote(0, ALICE, VoteType.FOR, 60)
        assert not tally.has_voted(0, ALICE)
        assert tally.get_tally(0) is None

        store.failing = False
        tally.record_vote(0, ALICE, VoteType.FOR, 60)
        assert tally.get_tally(0).as_tuple() == (60, 0)

    def test_failed_tally_write_keeps_earlier_votes(self):
        store = FailingStore("tally")
        store.failing = False
        tally = VoteTally(store)
        tally.record_vote(0, BOB, VoteType.AGAINST, 30)
        store.failing = True
        with pytest.raises(StorageError):
            tally.record_vote(0, ALICE, VoteType.FOR, 60)
        assert tally.get_tally(0).as_tuple() == (0, 30)
        assert tally.has_voted(0, BOB)
        assert not tally.has_voted(0, ALICE)

    def test_vote_record_to_dict(self):
        record = VoteRecord(proposal_id=2, voter=ALICE, vote_type=VoteType.AGAINST, weight=7)
        d = record.to_dict()
        assert d["voteType"] == "AGAINST"
        assert VoteRecord.from_dict(d) == record


# ══════════════════════════════════════════════════════════════════════
#  STORE
# ══════════════════════════════════════════════════════════════════════

class TestMemoryStore:

    def test_put_get_delete(self):
        store = MemoryStore()
        store.put(("proposal", 0), {"a": 1})
        assert store.get(("proposal", 0)) == {"a": 1}
        assert store.contains(("proposal", 0))
        assert store.delete(("proposal", 0))
        assert not store.delete(("proposal", 0))
        assert store.get(("proposal", 0)) is None

    def test_values_are_copied(self):
        store = MemoryStore()
        value = {"nested": {"x": 1}}
        store.put(("k",), value)
        value["nested"]["x"] = 2
        got = store.get(("k",))
        got["nested"]["x"] = 3
        assert store.get(("k",)) == {"nested": {"x": 1}}

    def test_put_if_absent(self):
        store = MemoryStore()
        assert store.put_if_absent(("k",), {"v": 1})
        assert not store.put_if_absent(("k",), {"v": 2})
        assert store.get(("k",)) == {"v": 1}

    def test_keys_by_namespace(self):
        store = MemoryStore()
        store.put(("vote", 0, ALICE), {})
        store.put(("vote", 0, BOB), {})
        store.put(("tally", 0), {})
        assert sorted(store.keys("vote")) == [("vote", 0, ALICE), ("vote", 0, BOB)]
        assert len(list(store.keys())) == 3
        assert len(store) == 3

    def test_bad_key_raises(self):
        store = MemoryStore()
        with pytest.raises(StorageError):
            store.put("proposal:0", {})
        with pytest.raises(StorageError):
            store.get(())

    def test_bad_value_raises(self):
        with pytest.raises(StorageError):
            MemoryStore().put(("k",), [1, 2])

    def test_lock_is_per_store_and_reentrant(self):
        store = MemoryStore()
        assert store.lock is store.lock
        assert store.lock is not MemoryStore().lock
        with store.lock:
            with store.lock:
                store.put(("k",), {})
