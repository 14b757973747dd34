"""
External collaborators consumed by GovernanceEngine.

The engine never reads the wall clock, the caller, or token balances
directly; the host runtime supplies them through these interfaces. The
concrete adapters cover the common cases and tests.
"""

import threading
import time
from typing import Any, Callable, Dict, Optional, Protocol, runtime_checkable

from ..logger import get_logger

logger = get_logger(__name__)


# ══════════════════════════════════════════════════════════════════════
#  INTERFACES
# ══════════════════════════════════════════════════════════════════════

@runtime_checkable
class Clock(Protocol):
    def now(self) -> int:
        """Current time as a non-decreasing integer."""


@runtime_checkable
class IdentitySource(Protocol):
    def current_caller(self) -> str:
        """Identity of the account making the current call."""


@runtime_checkable
class StakeWeightOracle(Protocol):
    def balance_of(self, identity: str) -> int:
        ...

    def total_supply(self) -> int:
        ...


# ══════════════════════════════════════════════════════════════════════
#  CLOCKS
# ══════════════════════════════════════════════════════════════════════

class SystemClock:
    """Wall clock in whole seconds, never stepping backwards."""

    def __init__(self, time_fn: Callable[[], float] = time.time):
        self._time_fn = time_fn
        self._last = 0
        self._lock = threading.Lock()

    def now(self) -> int:
        with self._lock:
            self._last = max(self._last, int(self._time_fn()))
            return self._last


class ManualClock:
    """Clock that only moves when told to."""

    def __init__(self, start: int = 0):
        if start < 0:
            raise ValueError("Clock cannot start before 0")
        self._now = start

    def now(self) -> int:
        return self._now

    def set(self, timestamp: int) -> None:
        if timestamp < self._now:
            raise ValueError(
                f"Clock is non-decreasing: {timestamp} < {self._now}"
            )
        self._now = timestamp

    def advance(self, seconds: int = 1) -> int:
        self.set(self._now + seconds)
        return self._now


# ══════════════════════════════════════════════════════════════════════
#  IDENTITY
# ══════════════════════════════════════════════════════════════════════

class CallerContext:
    """
    Per-thread current caller.

    A host sets the caller before dispatching into the engine; threads that
    never set one fall back to ``default``.
    """

    def __init__(self, default: Optional[str] = None):
        self._default = default
        self._local = threading.local()

    def set_caller(self, identity: str) -> None:
        self._local.caller = identity

    def current_caller(self) -> str:
        caller = getattr(self._local, "caller", None) or self._default
        if not caller:
            raise LookupError("No caller identity set for this call")
        return caller


# ══════════════════════════════════════════════════════════════════════
#  STAKE ORACLES
# ══════════════════════════════════════════════════════════════════════

class StaticStakeOracle:
    """
    In-memory balances for the reference stake asset.

    ``total_supply`` defaults to the sum of the configured balances.
    """

    def __init__(
        self,
        balances: Optional[Dict[str, int]] = None,
        total_supply: Optional[int] = None,
        stake_asset: str = "",
    ):
        self.stake_asset = stake_asset
        self._balances: Dict[str, int] = dict(balances or {})
        self._total_supply = total_supply

    def set_balance(self, identity: str, amount: int) -> None:
        self._balances[identity] = amount

    def balance_of(self, identity: str) -> int:
        return self._balances.get(identity, 0)

    def total_supply(self) -> int:
        if self._total_supply is not None:
            return self._total_supply
        return sum(self._balances.values())

    def __repr__(self) -> str:
        return (
            f"<StaticStakeOracle asset={self.stake_asset!r} "
            f"holders={len(self._balances)} supply={self.total_supply()}>"
        )


class TokenStakeOracle:
    """
    Adapter over a token ledger object.

    The token must expose ``balance_of(address)`` and ``total_supply`` as a
    property, attribute, or zero-argument method. Decimal balances are
    converted to integers in the token's smallest unit.
    """

    def __init__(self, token: Any, decimals: int = 0):
        self.token = token
        self._scale = 10 ** decimals

    def _to_units(self, value) -> int:
        return int(value * self._scale)

    def balance_of(self, identity: str) -> int:
        return self._to_units(self.token.balance_of(identity))

    def total_supply(self) -> int:
        supply = self.token.total_supply
        if callable(supply):
            supply = supply()
        return self._to_units(supply)
