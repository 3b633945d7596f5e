"""
Agora TOML Configuration Loader

Loads all sections of governance.toml with environment variable overrides.
Each section is a dataclass with from_dict / apply_env, and the top-level
GovernanceConfig ties them together.

Environment variable mapping:
    [engine] mode                 → AGORA_MODE
    [engine] vote_time            → AGORA_VOTE_TIME
    [delegate] support_required   → AGORA_SUPPORT_REQUIRED_PCT
    [delegate] min_accept_quorum  → AGORA_MIN_ACCEPT_QUORUM_PCT
    [quadratic] support_required  → AGORA_QUADRATIC_SUPPORT_REQUIRED
    [quadratic] points_per_term   → AGORA_POINTS_PER_TERM
    [quadratic] term_length       → AGORA_TERM_LENGTH
    [logging] level               → AGORA_LOG_LEVEL
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any, Dict, Optional

try:
    import tomllib as tomli  # Python 3.11+
except ImportError:
    import tomli  # type: ignore[no-redef]

from ..constants import (
    AGORA_CONFIG,
    GOVERNANCE_DEFAULT_MIN_ACCEPT_QUORUM_PCT,
    GOVERNANCE_DEFAULT_SUPPORT_REQUIRED_PCT,
    GOVERNANCE_DEFAULT_VOTE_TIME_SECONDS,
    PCT_BASE,
    QUADRATIC_DEFAULT_POINTS_PER_TERM,
    QUADRATIC_DEFAULT_SUPPORT_REQUIRED,
    QUADRATIC_DEFAULT_TERM_LENGTH_SECONDS,
)
from ..exceptions import ConfigurationError

logger = logging.getLogger(__name__)

ENGINE_MODES = ("delegate", "quadratic")
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def _to_decimal(value: Any, name: str) -> Decimal:
    try:
        return Decimal(str(value))
    except InvalidOperation:
        raise ConfigurationError(f"{name} must be a decimal number, got {value!r}")


# ---------------------------------------------------------------------------
# Sections
# ---------------------------------------------------------------------------


@dataclass
class EngineSectionConfig:
    """[engine] section."""
    mode: str = "delegate"
    vote_time: int = GOVERNANCE_DEFAULT_VOTE_TIME_SECONDS

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "EngineSectionConfig":
        return cls(
            mode=data.get("mode", "delegate"),
            vote_time=int(data.get("vote_time", GOVERNANCE_DEFAULT_VOTE_TIME_SECONDS)),
        )

    def apply_env(self) -> None:
        """Override from environment variables."""
        if v := os.environ.get("AGORA_MODE"):
            self.mode = v
        if v := os.environ.get("AGORA_VOTE_TIME"):
            self.vote_time = int(v)


@dataclass
class DelegateVotingConfig:
    """[delegate] section: linear voting thresholds as fractions of 1."""
    support_required: Decimal = GOVERNANCE_DEFAULT_SUPPORT_REQUIRED_PCT
    min_accept_quorum: Decimal = GOVERNANCE_DEFAULT_MIN_ACCEPT_QUORUM_PCT

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DelegateVotingConfig":
        return cls(
            support_required=_to_decimal(
                data.get("support_required", GOVERNANCE_DEFAULT_SUPPORT_REQUIRED_PCT),
                "delegate.support_required",
            ),
            min_accept_quorum=_to_decimal(
                data.get("min_accept_quorum", GOVERNANCE_DEFAULT_MIN_ACCEPT_QUORUM_PCT),
                "delegate.min_accept_quorum",
            ),
        )

    def apply_env(self) -> None:
        if v := os.environ.get("AGORA_SUPPORT_REQUIRED_PCT"):
            self.support_required = _to_decimal(v, "AGORA_SUPPORT_REQUIRED_PCT")
        if v := os.environ.get("AGORA_MIN_ACCEPT_QUORUM_PCT"):
            self.min_accept_quorum = _to_decimal(v, "AGORA_MIN_ACCEPT_QUORUM_PCT")


@dataclass
class QuadraticVotingConfig:
    """[quadratic] section."""
    support_required: int = QUADRATIC_DEFAULT_SUPPORT_REQUIRED
    points_per_term: int = QUADRATIC_DEFAULT_POINTS_PER_TERM
    term_length: int = QUADRATIC_DEFAULT_TERM_LENGTH_SECONDS

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "QuadraticVotingConfig":
        return cls(
            support_required=int(data.get("support_required", QUADRATIC_DEFAULT_SUPPORT_REQUIRED)),
            points_per_term=int(data.get("points_per_term", QUADRATIC_DEFAULT_POINTS_PER_TERM)),
            term_length=int(data.get("term_length", QUADRATIC_DEFAULT_TERM_LENGTH_SECONDS)),
        )

    def apply_env(self) -> None:
        if v := os.environ.get("AGORA_QUADRATIC_SUPPORT_REQUIRED"):
            self.support_required = int(v)
        if v := os.environ.get("AGORA_POINTS_PER_TERM"):
            self.points_per_term = int(v)
        if v := os.environ.get("AGORA_TERM_LENGTH"):
            self.term_length = int(v)


@dataclass
class LoggingConfig:
    """[logging] section."""
    level: str = "INFO"
    file_output: bool = False
    log_file: str = "logs/agora.log"

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LoggingConfig":
        return cls(
            level=str(data.get("level", "INFO")).upper(),
            file_output=bool(data.get("file_output", False)),
            log_file=data.get("log_file", "logs/agora.log"),
        )

    def apply_env(self) -> None:
        if v := os.environ.get("AGORA_LOG_LEVEL"):
            self.level = v.upper()


# -----------------------------------------------------------------------
# Top-level config
# -----------------------------------------------------------------------

@dataclass
class GovernanceConfig:
    """
    Unified governance configuration.

    Loads every section of governance.toml and applies environment variable
    overrides.
    """
    engine: EngineSectionConfig = field(default_factory=EngineSectionConfig)
    delegate: DelegateVotingConfig = field(default_factory=DelegateVotingConfig)
    quadratic: QuadraticVotingConfig = field(default_factory=QuadraticVotingConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    # --- factories --------------------------------------------------------

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GovernanceConfig":
        """Create GovernanceConfig from a parsed TOML dict."""
        return cls(
            engine=EngineSectionConfig.from_dict(data.get("engine", {})),
            delegate=DelegateVotingConfig.from_dict(data.get("delegate", {})),
            quadratic=QuadraticVotingConfig.from_dict(data.get("quadratic", {})),
            logging=LoggingConfig.from_dict(data.get("logging", {})),
        )

    @classmethod
    def from_file(cls, config_path: str) -> "GovernanceConfig":
        """
        Load configuration from a TOML file.

        A missing file yields defaults (with env overrides).
        """
        path = Path(config_path)
        if not path.exists():
            logger.warning("Config file not found: %s, using defaults", config_path)
            cfg = cls()
            cfg.apply_env()
            return cfg

        with open(path, "rb") as f:
            try:
                raw = tomli.load(f)
            except tomli.TOMLDecodeError as exc:
                raise ConfigurationError(f"Invalid TOML in {config_path}: {exc}") from exc

        cfg = cls.from_dict(raw)
        cfg.apply_env()
        return cfg

    # --- env overrides ----------------------------------------------------

    def apply_env(self) -> None:
        """Apply environment variable overrides to all sections."""
        self.engine.apply_env()
        self.delegate.apply_env()
        self.quadratic.apply_env()
        self.logging.apply_env()

    # --- validation -------------------------------------------------------

    def validate(self) -> bool:
        """
        Validate all configuration sections.

        Raises:
            ConfigurationError: on invalid config
        """
        if self.engine.mode not in ENGINE_MODES:
            raise ConfigurationError(f"Invalid engine mode: {self.engine.mode}")
        if self.engine.vote_time <= 0:
            raise ConfigurationError("vote_time must be > 0")
        if not (self.delegate.min_accept_quorum <= self.delegate.support_required < PCT_BASE):
            raise ConfigurationError(
                "delegate thresholds must satisfy "
                "0 <= min_accept_quorum <= support_required < 1"
            )
        if self.delegate.min_accept_quorum < 0:
            raise ConfigurationError("min_accept_quorum cannot be negative")
        if self.quadratic.support_required <= 0:
            raise ConfigurationError("quadratic.support_required must be > 0")
        if self.quadratic.points_per_term <= 0:
            raise ConfigurationError("points_per_term must be > 0")
        if self.quadratic.term_length <= 0:
            raise ConfigurationError("term_length must be > 0")
        if self.logging.level not in LOG_LEVELS:
            raise ConfigurationError(f"Invalid log level: {self.logging.level}")
        return True

    def configure_logging(self) -> None:
        """Re-apply the log manager settings from the [logging] section."""
        from ..logger import LogManager

        LogManager().reconfigure(
            log_level=self.logging.level,
            log_file=Path(self.logging.log_file),
            file_output=self.logging.file_output,
        )

    # --- serialisation ----------------------------------------------------

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to dict (for diagnostics, NOT for re-creating TOML)."""
        return {
            "engine": {
                "mode": self.engine.mode,
                "vote_time": self.engine.vote_time,
            },
            "delegate": {
                "support_required": str(self.delegate.support_required),
                "min_accept_quorum": str(self.delegate.min_accept_quorum),
            },
            "quadratic": {
                "support_required": self.quadratic.support_required,
                "points_per_term": self.quadratic.points_per_term,
                "term_length": self.quadratic.term_length,
            },
            "logging": {
                "level": self.logging.level,
                "file_output": self.logging.file_output,
                "log_file": self.logging.log_file,
            },
        }


# -----------------------------------------------------------------------
# Convenience function
# -----------------------------------------------------------------------

def load_config(path: Optional[str] = None) -> GovernanceConfig:
    """
    Load governance configuration.

    Resolution order:
        1. Explicit *path* argument
        2. AGORA_CONFIG env var
        3. AGORA_CONFIG from .env (default ./governance.toml)
        4. Defaults (with env overrides)
    """
    if path is None:
        path = os.environ.get("AGORA_CONFIG", str(AGORA_CONFIG))

    cfg = GovernanceConfig.from_file(path)
    cfg.validate()
    return cfg
