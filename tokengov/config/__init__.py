"""
tokengov Configuration

Loads governor.toml at startup.
Environment variables override TOML values.
"""

from .loader import (
    GovernorSectionConfig,
    LoggingSectionConfig,
    StakeSectionConfig,
    TokenGovConfig,
    build_engine,
    load_config,
)

__all__ = [
    "GovernorSectionConfig",
    "LoggingSectionConfig",
    "StakeSectionConfig",
    "TokenGovConfig",
    "build_engine",
    "load_config",
]
