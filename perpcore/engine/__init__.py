"""
perpcore Engine

Leveraged-position accounting for a single-asset perpetual market.

Components:
  - Fee model (order-flow imbalance fee)
  - PnL engine (leveraged settlement value)
  - Position ledger (positions, aggregates, history)
  - Margin engine (liquidation eligibility)
  - Trade lifecycle (atomic open / close / liquidate)
  - Trusted price oracle, authorization and event collaborators
  - Transaction envelope and dispatcher
"""

from .fees import (
    calculate_fee,
    increases_imbalance,
)
from .pnl import (
    MoveKind,
    PriceMove,
    classify_move,
    leveraged_amount,
    settle,
)
from .ledger import (
    LedgerSnapshot,
    LedgerState,
    Position,
    PositionLedger,
)
from .margin import (
    is_liquidatable,
    margin_ratio,
)
from .oracle import (
    PriceOracle,
    TrustedPriceOracle,
)
from .auth import (
    AllowAllAuthorizer,
    AllowListAuthorizer,
    Authorizer,
    CallbackAuthorizer,
)
from .events import (
    EventSink,
    MemoryEventSink,
    PerpEvent,
)
from .lifecycle import (
    CloseResult,
    LiquidationResult,
    TradeLifecycle,
    create_market,
)
from .transactions import (
    PerpOpType,
    PerpTransaction,
)
from .state_manager import (
    PerpExecResult,
    PerpStateManager,
)

__all__ = [
    # Fees
    "calculate_fee", "increases_imbalance",
    # PnL
    "MoveKind", "PriceMove", "classify_move", "leveraged_amount", "settle",
    # Ledger
    "LedgerSnapshot", "LedgerState", "Position", "PositionLedger",
    # Margin
    "is_liquidatable", "margin_ratio",
    # Collaborators
    "PriceOracle", "TrustedPriceOracle",
    "AllowAllAuthorizer", "AllowListAuthorizer", "Authorizer", "CallbackAuthorizer",
    "EventSink", "MemoryEventSink", "PerpEvent",
    # Lifecycle
    "CloseResult", "LiquidationResult", "TradeLifecycle", "create_market",
    # Dispatcher
    "PerpOpType", "PerpTransaction", "PerpExecResult", "PerpStateManager",
]
