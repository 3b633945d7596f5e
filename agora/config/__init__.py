"""
Agora Unified Configuration

Loads all sections of governance.toml.
Environment variables override TOML values.
"""

from .loader import (
    DelegateVotingConfig,
    EngineSectionConfig,
    GovernanceConfig,
    LoggingConfig,
    QuadraticVotingConfig,
    load_config,
)

__all__ = [
    "DelegateVotingConfig",
    "EngineSectionConfig",
    "GovernanceConfig",
    "LoggingConfig",
    "QuadraticVotingConfig",
    "load_config",
]
