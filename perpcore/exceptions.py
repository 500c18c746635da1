"""
perpcore Exceptions

Custom exception classes for the perpetual accounting engine.

Every engine failure carries a stable integer ``code`` so that callers which
only see a result envelope can still tell the failure kinds apart.
"""

from enum import IntEnum
from typing import Optional


class ErrorCode(IntEnum):
    """Failure codes.  Values are stable and part of the public contract."""
    POSITION_OPEN = 1
    POSITION_NOT_OPEN = 2
    ZERO_VALUE = 3
    ABOVE_MARGIN = 4
    INVALID_PRICE = 5
    UNAUTHORIZED = 6
    CUSTODY_FAILURE = 7


class PerpError(Exception):
    """Base exception for engine failures."""
    code: Optional[ErrorCode] = None


class PositionOpenError(PerpError):
    """Trader already holds an open position."""
    code = ErrorCode.POSITION_OPEN


class PositionNotOpenError(PerpError):
    """No position is stored for the trader."""
    code = ErrorCode.POSITION_NOT_OPEN


class ZeroValueError(PerpError):
    """Requested trade size is not positive."""
    code = ErrorCode.ZERO_VALUE


class AboveMarginError(PerpError):
    """Position is adequately collateralized and may not be liquidated."""
    code = ErrorCode.ABOVE_MARGIN

    def __init__(self, margin_ratio: int, margin_requirement: int):
        self.margin_ratio = margin_ratio
        self.margin_requirement = margin_requirement
        super().__init__(
            f"Margin ratio {margin_ratio} bps is not below requirement {margin_requirement} bps"
        )


class InvalidPriceError(PerpError):
    """Reference price is missing or not positive."""
    code = ErrorCode.INVALID_PRICE


class UnauthorizedError(PerpError):
    """Principal failed the authorization check."""
    code = ErrorCode.UNAUTHORIZED

    def __init__(self, principal: str, reason: str = ""):
        self.principal = principal
        self.reason = reason
        super().__init__(f"Authorization failed for {principal}" + (f": {reason}" if reason else ""))


class ConfigurationError(Exception):
    """Configuration error."""
    pass
