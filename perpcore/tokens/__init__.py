"""
perpcore Settlement Token

In-memory settlement currency and the custodian adapter used by the engine.
"""

from .settlement import (
    ApprovalEvent,
    Custodian,
    InsufficientAllowanceError,
    InsufficientBalanceError,
    SettlementToken,
    SettlementTokenError,
    TokenCustodian,
    TokenFrozenError,
    TransferEvent,
)

__all__ = [
    "ApprovalEvent",
    "Custodian",
    "InsufficientAllowanceError",
    "InsufficientBalanceError",
    "SettlementToken",
    "SettlementTokenError",
    "TokenCustodian",
    "TokenFrozenError",
    "TransferEvent",
]
