"""
Configuration, Collaborator & Logging Test Suite

Coverage:
  - TOML loading, env overrides, validation, build_engine wiring
  - Clock / identity / stake-oracle adapters
  - TerminalSafeFormatter sanitization
"""

import logging
import os
import sys
import threading
from decimal import Decimal
from unittest.mock import MagicMock

import pytest

# ── Path setup ────────────────────────────────────────────────────────
ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from tokengov.config import TokenGovConfig, build_engine, load_config
from tokengov.exceptions import ConfigurationError
from tokengov.governance import (
    CallerContext,
    Clock,
    IdentitySource,
    ManualClock,
    StakeWeightOracle,
    StaticStakeOracle,
    SystemClock,
    TokenStakeOracle,
    VoteType,
)
from tokengov.logger import TerminalSafeFormatter, LogManager


ALICE = "alice"
BOB = "bob"

CONFIG_TOML = """
[governor]
quorum_threshold = 30
stake_asset = "GOV"

[stake]
total_supply = 1000

[stake.balances]
alice = 400
bob = 100

[logging]
level = "debug"
"""


@pytest.fixture
def clean_env(monkeypatch):
    for var in (
        "TOKENGOV_QUORUM_THRESHOLD",
        "TOKENGOV_STAKE_ASSET",
        "TOKENGOV_REQUIRE_VOTING_CLOSED",
        "TOKENGOV_LOG_LEVEL",
        "TOKENGOV_CONFIG",
    ):
        monkeypatch.delenv(var, raising=False)
    return monkeypatch


@pytest.fixture
def config_file(tmp_path, clean_env):
    path = tmp_path / "governor.toml"
    path.write_text(CONFIG_TOML)
    return path


# ══════════════════════════════════════════════════════════════════════
#  CONFIG
# ══════════════════════════════════════════════════════════════════════

class TestConfigLoading:

    def test_from_file(self, config_file):
        cfg = load_config(str(config_file))
        assert cfg.governor.quorum_threshold == 30
        assert cfg.governor.stake_asset == "GOV"
        assert cfg.stake.total_supply == 1000
        assert cfg.stake.balances == {"alice": 400, "bob": 100}
        assert cfg.logging.level == "DEBUG"

    def test_missing_file_uses_defaults(self, tmp_path, clean_env):
        cfg = load_config(str(tmp_path / "nope.toml"))
        assert cfg.governor.quorum_threshold == 50
        assert cfg.stake.balances == {}

    def test_path_from_env(self, config_file, clean_env):
        clean_env.setenv("TOKENGOV_CONFIG", str(config_file))
        assert load_config().governor.quorum_threshold == 30

    def test_env_overrides(self, config_file, clean_env):
        clean_env.setenv("TOKENGOV_QUORUM_THRESHOLD", "75")
        clean_env.setenv("TOKENGOV_REQUIRE_VOTING_CLOSED", "true")
        clean_env.setenv("TOKENGOV_LOG_LEVEL", "warning")
        cfg = load_config(str(config_file))
        assert cfg.governor.quorum_threshold == 75
        assert cfg.governor.require_voting_closed is True
        assert cfg.logging.level == "WARNING"

    def test_bad_env_quorum_raises(self, config_file, clean_env):
        clean_env.setenv("TOKENGOV_QUORUM_THRESHOLD", "lots")
        with pytest.raises(ConfigurationError):
            load_config(str(config_file))

    def test_invalid_toml_raises(self, tmp_path, clean_env):
        path = tmp_path / "broken.toml"
        path.write_text("[governor\nquorum_threshold = ")
        with pytest.raises(ConfigurationError, match="Invalid TOML"):
            load_config(str(path))

    @pytest.mark.parametrize(
        "data",
        [
            {"governor": {"quorum_threshold": 150}},
            {"governor": {"quorum_threshold": True}},
            {"governor": {"require_voting_closed": "false"}},
            {"logging": {"file_output": "yes"}},
            {"logging": {"level": "LOUD"}},
            {"stake": {"balances": {"alice": -1}}},
            {"stake": {"total_supply": 0}},
            {"stake": {"total_supply": 10, "balances": {"alice": 11}}},
        ],
    )
    def test_validate_rejects(self, data):
        with pytest.raises(ConfigurationError):
            TokenGovConfig.from_dict(data).validate()

    def test_to_dict(self, config_file):
        d = load_config(str(config_file)).to_dict()
        assert d["governor"]["quorum_threshold"] == 30
        assert d["stake"]["holders"] == 2


class TestBuildEngine:

    def test_wires_static_oracle(self, config_file):
        cfg = load_config(str(config_file))
        identity = CallerContext(default=ALICE)
        engine = build_engine(cfg, clock=ManualClock(10), identity=identity)
        assert engine.config.quorum_threshold == 30
        assert engine.config.stake_asset == "GOV"

        pid = engine.propose("grantee", 250, 60)
        assert engine.vote(pid, VoteType.FOR).weight == 40
        engine.execute(pid)
        assert engine.get_proposal(pid).executed

    def test_explicit_oracle_wins(self, config_file):
        cfg = load_config(str(config_file))
        oracle = StaticStakeOracle({ALICE: 1}, total_supply=100)
        engine = build_engine(
            cfg, clock=ManualClock(0), identity=CallerContext(ALICE), oracle=oracle
        )
        engine.propose("grantee", 1, 10)
        assert engine.vote(0, VoteType.FOR).weight == 1


# ══════════════════════════════════════════════════════════════════════
#  COLLABORATORS
# ══════════════════════════════════════════════════════════════════════

class TestClocks:

    def test_manual_clock(self):
        clock = ManualClock(5)
        assert clock.now() == 5
        assert clock.advance(3) == 8
        clock.set(8)
        assert clock.now() == 8

    def test_manual_clock_never_goes_back(self):
        clock = ManualClock(5)
        with pytest.raises(ValueError, match="non-decreasing"):
            clock.set(4)

    def test_system_clock_is_monotonic(self):
        readings = iter([100.7, 99.0, 101.2])
        clock = SystemClock(time_fn=lambda: next(readings))
        assert [clock.now(), clock.now(), clock.now()] == [100, 100, 101]

    def test_protocols(self):
        assert isinstance(ManualClock(), Clock)
        assert isinstance(SystemClock(), Clock)
        assert isinstance(CallerContext(ALICE), IdentitySource)
        assert isinstance(StaticStakeOracle(), StakeWeightOracle)


class TestCallerContext:

    def test_default_caller(self):
        assert CallerContext(ALICE).current_caller() == ALICE

    def test_no_caller_raises(self):
        with pytest.raises(LookupError):
            CallerContext().current_caller()

    def test_caller_is_per_thread(self):
        ctx = CallerContext(default=ALICE)
        ctx.set_caller(BOB)
        seen = []
        t = threading.Thread(target=lambda: seen.append(ctx.current_caller()))
        t.start()
        t.join()
        assert seen == [ALICE]
        assert ctx.current_caller() == BOB


class TestStakeOracles:

    def test_static_supply_defaults_to_sum(self):
        oracle = StaticStakeOracle({ALICE: 3, BOB: 7})
        assert oracle.total_supply() == 10
        assert oracle.balance_of("nobody") == 0

    def test_static_explicit_supply(self):
        oracle = StaticStakeOracle({ALICE: 3}, total_supply=1000)
        assert oracle.total_supply() == 1000

    def test_token_oracle_property_supply(self):
        token = MagicMock()
        token.balance_of.return_value = Decimal("2.5")
        token.total_supply = Decimal("10")
        oracle = TokenStakeOracle(token, decimals=2)
        assert oracle.balance_of(ALICE) == 250
        assert oracle.total_supply() == 1000
        token.balance_of.assert_called_once_with(ALICE)

    def test_token_oracle_method_supply(self):
        class Ledger:
            def balance_of(self, address):
                return 4

            def total_supply(self):
                return 16

        oracle = TokenStakeOracle(Ledger())
        assert oracle.balance_of(ALICE) == 4
        assert oracle.total_supply() == 16


# ══════════════════════════════════════════════════════════════════════
#  LOGGING
# ══════════════════════════════════════════════════════════════════════

class TestLogging:

    def test_log_manager_is_singleton(self):
        assert LogManager() is LogManager()
        assert LogManager().is_configured

    def test_formatter_strips_escape_sequences(self):
        assert TerminalSafeFormatter.sanitize("\x1b[31mred\x1b[0m\rvoter\x07") == "redvoter"

    def test_formatter_formats_record(self):
        fmt = TerminalSafeFormatter(fmt="%(message)s")
        record = logging.LogRecord(
            name="t", level=logging.INFO, pathname="", lineno=0,
            msg="Proposal #1: %s voted", args=("evil\x1b[2J",), exc_info=None,
        )
        assert fmt.format(record) == "Proposal #1: evil voted"

    def test_bad_log_format_falls_back(self):
        assert LogManager.validate_log_format("(name)s") != "(name)s"
