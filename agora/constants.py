"""
Agora Governance Constants

This module consolidates the global constants and environment configuration
used throughout the engine. Constants are organized by category for easy
reference and maintenance.
"""
import ast
from decimal import Decimal
from dotenv import dotenv_values
from eth_utils import keccak

# =============================================================================
# ENVIRONMENT CONFIGURATION
# =============================================================================
# Load environment variables once at module import
_config = dotenv_values(".env")

ENGINE_DEFAULTS = {
    'AGORA_CONFIG':                    'governance.toml',
    'AGORA_LOG_FILE':                  'logs/agora.log',
}

LOGGER_DEFAULTS = {
    'LOG_LEVEL':                       'INFO',
    'LOG_FORMAT':                      '%(asctime)s - %(levelname)s - %(name)s - %(message)s',
    'LOG_DATE_FORMAT':                 '%Y-%m-%dT%H:%M:%S',
    'LOG_CONSOLE_HIGHLIGHTING':        'True',
    'LOG_FILE_OUTPUT':                 'False',
}

LOG_MAX_FILE_SIZE = 10 * 1024 * 1024 # 10MB
LOG_BACKUP_COUNT = 5


# ==================================================================================
# VOTING PARAMETERS
# ==================================================================================
# Percentages are expressed as Decimal fractions of 1 (0.5 == 50%).
PCT_BASE = Decimal("1")

# Delegate (linear) voting
GOVERNANCE_DEFAULT_SUPPORT_REQUIRED_PCT = Decimal("0.50")
GOVERNANCE_DEFAULT_MIN_ACCEPT_QUORUM_PCT = Decimal("0.20")
GOVERNANCE_DEFAULT_VOTE_TIME_SECONDS = 7 * 86400

# Quadratic voting
QUADRATIC_DEFAULT_SUPPORT_REQUIRED = 5          # Yea units needed to pass
QUADRATIC_DEFAULT_POINTS_PER_TERM = 64
QUADRATIC_DEFAULT_TERM_LENGTH_SECONDS = 30 * 86400

# Voter states
VOTER_STATE_ABSENT = 0
VOTER_STATE_YEA = 1
VOTER_STATE_NAY = 2


# ==================================================================================
# AUTHORIZATION ROLES
# ==================================================================================
# Role identifiers are the keccak256 of the role name, hex encoded.
CREATE_VOTES_ROLE = "0x" + keccak(text="CREATE_VOTES_ROLE").hex()
MODIFY_SUPPORT_ROLE = "0x" + keccak(text="MODIFY_SUPPORT_ROLE").hex()
MODIFY_QUORUM_ROLE = "0x" + keccak(text="MODIFY_QUORUM_ROLE").hex()

# Wildcard entity for permissions granted to everyone
ANY_ENTITY = "0x" + "ff" * 20


# ==================================================================================
# ACTION SCRIPTS
# ==================================================================================
CALLS_SCRIPT_SPEC_ID = 1
SCRIPT_SPEC_ID_LENGTH = 4
SCRIPT_ADDRESS_LENGTH = 20
SCRIPT_CALLDATA_LENGTH_BYTES = 4
SELECTOR_LENGTH = 4
ABI_WORD_LENGTH = 32


# ==================================================================================
# CONFIGURATION WRAPPERS
# ==================================================================================
class ConfigString(str):
    """
    String subclass that stores a default value.
    """
    def __new__(cls, value, default):
        obj = str.__new__(cls, value)
        obj._default = default
        return obj

    def default(self):
        return self._default

class ConfigBool(int):
    """
    Int subclass acting as a boolean that stores a default value.
    """
    def __new__(cls, value, default):
        obj = int.__new__(cls, bool(value))
        obj._default = default
        return obj

    def default(self):
        return self._default

    def __repr__(self):
        return str(bool(self))

    def __str__(self):
        return str(bool(self))

    def __eq__(self, other):
        return bool(self) == other

    def __hash__(self):
        return hash(bool(self))


# ==================================================================================
# DYNAMIC CONFIGURATION LOADING
# ==================================================================================
DEFAULTS = ENGINE_DEFAULTS | LOGGER_DEFAULTS
namespace = globals()

def parse_bool(v):
    """
    Convert "True"/"False" (any casing, with surrounding whitespace) into bool.
    Only calls ast.literal_eval for known literals.
    """
    if not isinstance(v, str):
        return v
    s = v.strip()
    if not s:
        return v
    if s.casefold() in {"true", "false"}:
        return ast.literal_eval(s.title())
    return v

for key, default_raw in DEFAULTS.items():
    # dotenv_values returns strings or None. None is treated as missing.
    raw = _config.get(key)
    value_raw = default_raw if raw is None else raw

    value = parse_bool(value_raw)
    default_val = parse_bool(default_raw)

    if isinstance(value, bool):
        namespace[key] = ConfigBool(value, default_val)
    else:
        namespace[key] = ConfigString(value_raw, default_val)
