"""
perpcore Constants

This module consolidates the protocol constants and environment configuration
used throughout the codebase. Constants are organized by category for easy
reference and maintenance.
"""
import ast

from dotenv import dotenv_values

# =============================================================================
# ENVIRONMENT CONFIGURATION
# =============================================================================
# Load environment variables once at module import
_config = dotenv_values(".env")

LOGGER_DEFAULTS = {
    'LOG_LEVEL':                       'INFO',
    'LOG_FORMAT':                      '%(asctime)s - %(levelname)s - %(name)s - %(message)s',
    'LOG_DATE_FORMAT':                 '%Y-%m-%dT%H:%M:%S',
    'LOG_CONSOLE_HIGHLIGHTING':        'True',
    'LOG_TO_FILE':                     'False',
}

LOG_MAX_FILE_SIZE = 10 * 1024 * 1024 # 10MB
LOG_BACKUP_COUNT = 5


# WARNING: THE VALUES BELOW CHANGE SETTLEMENT RESULTS. EVERY DEPLOYMENT THAT
# SHARES A LEDGER MUST USE THE SAME VALUES.

# ==================================================================================
# ACCOUNTING CONSTANTS
# ==================================================================================
BASIS_POINTS = 10_000                 # margin ratios are expressed in 1/10000
DEFAULT_MARGIN_REQUIREMENT = 300      # 3 % of original collateral
DEFAULT_LEVERAGE = 10
FEE_DIVISOR = 100                     # 1 % imbalance fee
LIQUIDATION_REWARD_DIVISOR = 3        # liquidator receives a third of settlement


# ==================================================================================
# EVENT TOPICS
# ==================================================================================
TOPIC_PLACE = "PLACE"
TOPIC_CLOSE = "CLOSE"
TOPIC_LIQUIDATE = "LIQ"


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

    __hash__ = int.__hash__


# ==================================================================================
# DYNAMIC CONFIGURATION LOADING
# ==================================================================================
namespace = globals()

def parse_bool(v):
    """
    Convert "True"/"False" (any casing, with surrounding whitespace) into bool.
    Avoids exceptions by only calling ast.literal_eval for known literals.
    """
    if not isinstance(v, str):
        return v
    s = v.strip()
    if not s:
        return v
    if s.casefold() in {"true", "false"}:
        # ast.literal_eval expects "True"/"False"
        return ast.literal_eval(s.title())
    return v


def parse_flag(v) -> bool:
    """
    Strict boolean: a real bool or the "true"/"false" literals only.

    Raises:
        ValueError: for anything else ("0", "no", 1, None, ...)
    """
    value = parse_bool(v)
    if not isinstance(value, bool):
        raise ValueError(f"Expected true or false, got {v!r}")
    return value


for key, default_raw in LOGGER_DEFAULTS.items():
    # dotenv_values returns strings or None. None is treated as missing.
    raw = _config.get(key)
    value_raw = default_raw if raw is None else raw

    value = parse_bool(value_raw)
    default_val = parse_bool(default_raw)

    if isinstance(value, bool):
        namespace[key] = ConfigBool(value, default_val)
    else:
        namespace[key] = ConfigString(value_raw, default_val)
