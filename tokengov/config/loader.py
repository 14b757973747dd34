"""
tokengov TOML Configuration Loader

Loads governor.toml with environment variable overrides, using the same
dataclass + from_dict + from_file pattern for every section.

Environment variable mapping:
    [governor] quorum_threshold      → TOKENGOV_QUORUM_THRESHOLD
    [governor] stake_asset           → TOKENGOV_STAKE_ASSET
    [governor] require_voting_closed → TOKENGOV_REQUIRE_VOTING_CLOSED
    [logging]  level                 → TOKENGOV_LOG_LEVEL
    config file path                 → TOKENGOV_CONFIG
"""

from __future__ import annotations

import logging
import os
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib

from ..constants import GOVERNANCE_DEFAULT_QUORUM, GOVERNANCE_MAX_TIMESTAMP
from ..exceptions import ConfigurationError

logger = logging.getLogger(__name__)

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def _env_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


# ---------------------------------------------------------------------------
# Section dataclasses
# ---------------------------------------------------------------------------


@dataclass
class GovernorSectionConfig:
    """[governor] section."""
    quorum_threshold: int = GOVERNANCE_DEFAULT_QUORUM
    stake_asset: str = ""
    require_voting_closed: bool = False
    max_timestamp: int = GOVERNANCE_MAX_TIMESTAMP

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GovernorSectionConfig":
        return cls(
            quorum_threshold=data.get("quorum_threshold", GOVERNANCE_DEFAULT_QUORUM),
            stake_asset=data.get("stake_asset", ""),
            require_voting_closed=data.get("require_voting_closed", False),
            max_timestamp=data.get("max_timestamp", GOVERNANCE_MAX_TIMESTAMP),
        )

    def apply_env(self) -> None:
        """Override from environment variables."""
        if v := os.environ.get("TOKENGOV_QUORUM_THRESHOLD"):
            try:
                self.quorum_threshold = int(v)
            except ValueError as e:
                raise ConfigurationError(
                    f"TOKENGOV_QUORUM_THRESHOLD must be an integer, got {v!r}"
                ) from e
        if v := os.environ.get("TOKENGOV_STAKE_ASSET"):
            self.stake_asset = v
        if v := os.environ.get("TOKENGOV_REQUIRE_VOTING_CLOSED"):
            self.require_voting_closed = _env_bool(v)


@dataclass
class StakeSectionConfig:
    """
    [stake] section.

    Static balances for hosts without a live ledger. ``total_supply`` left
    unset means "sum of balances".
    """
    total_supply: Optional[int] = None
    balances: Dict[str, int] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StakeSectionConfig":
        return cls(
            total_supply=data.get("total_supply"),
            balances=dict(data.get("balances", {})),
        )


@dataclass
class LoggingSectionConfig:
    """[logging] section."""
    level: str = "INFO"
    file_output: bool = False
    log_file: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LoggingSectionConfig":
        return cls(
            level=str(data.get("level", "INFO")).upper(),
            file_output=data.get("file_output", False),
            log_file=data.get("log_file"),
        )

    def apply_env(self) -> None:
        if v := os.environ.get("TOKENGOV_LOG_LEVEL"):
            self.level = v.upper()


# ---------------------------------------------------------------------------
# Top-level config
# ---------------------------------------------------------------------------


@dataclass
class TokenGovConfig:
    """All sections of governor.toml."""
    governor: GovernorSectionConfig = field(default_factory=GovernorSectionConfig)
    stake: StakeSectionConfig = field(default_factory=StakeSectionConfig)
    logging: LoggingSectionConfig = field(default_factory=LoggingSectionConfig)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TokenGovConfig":
        return cls(
            governor=GovernorSectionConfig.from_dict(data.get("governor", {})),
            stake=StakeSectionConfig.from_dict(data.get("stake", {})),
            logging=LoggingSectionConfig.from_dict(data.get("logging", {})),
        )

    @classmethod
    def from_file(cls, config_path: str) -> "TokenGovConfig":
        """
        Load configuration from a TOML file.

        A missing file is not an error: defaults plus environment overrides
        are returned.
        """
        path = Path(config_path)
        if not path.exists():
            logger.warning("Config file not found: %s, using defaults", config_path)
            cfg = cls()
            cfg.apply_env()
            return cfg

        try:
            with open(path, "rb") as f:
                raw = tomllib.load(f)
        except tomllib.TOMLDecodeError as e:
            raise ConfigurationError(f"Invalid TOML in {config_path}: {e}") from e

        cfg = cls.from_dict(raw)
        cfg.apply_env()
        return cfg

    # --- env overrides ----------------------------------------------------

    def apply_env(self) -> None:
        """Apply environment variable overrides to all sections."""
        self.governor.apply_env()
        self.logging.apply_env()

    # --- validation -------------------------------------------------------

    def validate(self) -> bool:
        """
        Validate all configuration sections.

        Raises:
            ConfigurationError: on invalid config
        """
        q = self.governor.quorum_threshold
        if isinstance(q, bool) or not isinstance(q, int) or not 0 <= q <= 100:
            raise ConfigurationError(f"quorum_threshold must be an integer 0-100, got {q!r}")
        for name, value in (
            ("governor.require_voting_closed", self.governor.require_voting_closed),
            ("logging.file_output", self.logging.file_output),
        ):
            if not isinstance(value, bool):
                raise ConfigurationError(f"{name} must be true or false, got {value!r}")
        if self.logging.level not in _LOG_LEVELS:
            raise ConfigurationError(f"Invalid log level: {self.logging.level}")
        for holder, amount in self.stake.balances.items():
            if not isinstance(amount, int) or amount < 0:
                raise ConfigurationError(f"Invalid stake balance for {holder}: {amount!r}")
        if self.stake.total_supply is not None:
            if self.stake.total_supply <= 0:
                raise ConfigurationError("stake.total_supply must be positive")
            if sum(self.stake.balances.values()) > self.stake.total_supply:
                raise ConfigurationError("stake balances exceed stake.total_supply")
        return True

    # --- serialisation ----------------------------------------------------

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to dict (for diagnostics)."""
        return {
            "governor": {
                "quorum_threshold": self.governor.quorum_threshold,
                "stake_asset": self.governor.stake_asset,
                "require_voting_closed": self.governor.require_voting_closed,
                "max_timestamp": self.governor.max_timestamp,
            },
            "stake": {
                "total_supply": self.stake.total_supply,
                "holders": len(self.stake.balances),
            },
            "logging": {
                "level": self.logging.level,
                "file_output": self.logging.file_output,
                "log_file": self.logging.log_file,
            },
        }


# -----------------------------------------------------------------------
# Convenience functions
# -----------------------------------------------------------------------

def load_config(path: Optional[str] = None) -> TokenGovConfig:
    """
    Load governor configuration.

    Resolution order:
        1. Explicit *path* argument
        2. TOKENGOV_CONFIG env var
        3. ./governor.toml in current directory
        4. Defaults (with env overrides)
    """
    if path is None:
        path = os.environ.get("TOKENGOV_CONFIG", "governor.toml")

    cfg = TokenGovConfig.from_file(path)
    cfg.validate()
    return cfg


def build_engine(config: TokenGovConfig, clock=None, identity=None, oracle=None, store=None):
    """
    Wire a GovernanceEngine from *config*.

    Missing collaborators default to a SystemClock, an empty CallerContext
    and a StaticStakeOracle built from the [stake] section.
    """
    from ..governance import (
        CallerContext,
        GovernanceEngine,
        GovernorConfig,
        GovernorState,
        StaticStakeOracle,
        SystemClock,
    )
    from ..logger import configure_logging

    configure_logging(
        log_level=config.logging.level,
        file_output=config.logging.file_output,
        log_file=Path(config.logging.log_file) if config.logging.log_file else None,
    )

    governor_config = GovernorConfig(
        quorum_threshold=config.governor.quorum_threshold,
        stake_asset=config.governor.stake_asset,
        require_voting_closed=config.governor.require_voting_closed,
        max_timestamp=config.governor.max_timestamp,
    )
    if oracle is None:
        oracle = StaticStakeOracle(
            balances=config.stake.balances,
            total_supply=config.stake.total_supply,
            stake_asset=config.governor.stake_asset,
        )
    return GovernanceEngine(
        config=governor_config,
        clock=clock or SystemClock(),
        identity=identity or CallerContext(),
        oracle=oracle,
        state=GovernorState(store),
    )
