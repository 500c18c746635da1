"""
perpcore State Manager

Front door for hosts that submit PerpTransactions instead of calling the
lifecycle directly.

Responsibilities:
  - Structural validation and per-sender nonce (replay protection)
  - Dispatch to TradeLifecycle / the trusted oracle
  - Turn exceptions into a PerpExecResult carrying a stable error code

All state mutations still happen inside TradeLifecycle, which guarantees
the all-or-nothing behaviour of each invocation.
"""

from __future__ import annotations

from collections import deque
from typing import Any, Deque, Dict, List, Optional

from ..constants import parse_flag
from ..exceptions import ErrorCode, PerpError
from ..logger import get_logger
from ..tokens.settlement import SettlementTokenError
from .lifecycle import TradeLifecycle
from .transactions import PerpOpType, PerpTransaction

logger = get_logger(__name__)


class PerpExecResult:
    """Result of executing a single transaction."""

    __slots__ = ("success", "data", "error", "error_code")

    def __init__(
        self,
        success: bool = True,
        data: Optional[Dict[str, Any]] = None,
        error: str = "",
        error_code: Optional[ErrorCode] = None,
    ):
        self.success = success
        self.data = data or {}
        self.error = error
        self.error_code = error_code

    def __repr__(self) -> str:
        if self.success:
            return f"PerpExecResult(success=True, data={self.data})"
        code = self.error_code.name if self.error_code is not None else None
        return f"PerpExecResult(success=False, code={code}, error={self.error!r})"


class PerpStateManager:
    """
    Dispatcher over one market.

    Usage:
        mgr = PerpStateManager(lifecycle)
        result = mgr.process_transaction(tx)
        if not result.success:
            handle(result.error_code)
    """

    def __init__(self, lifecycle: TradeLifecycle, max_processed: int = 10_000) -> None:
        self.lifecycle = lifecycle
        self._nonces: Dict[str, int] = {}
        # oldest entries drop off once the bound is reached
        self._processed: Deque[PerpTransaction] = deque(maxlen=max_processed)

    def get_nonce(self, address: str) -> int:
        return self._nonces.get(address, 0)

    @property
    def processed(self) -> List[PerpTransaction]:
        return list(self._processed)

    def drain_processed(self) -> List[PerpTransaction]:
        """Return every recorded transaction and forget them."""
        drained = list(self._processed)
        self._processed.clear()
        return drained

    def process_transaction(self, tx: PerpTransaction) -> PerpExecResult:
        """
        Execute a single transaction.

        Failures never raise; they come back as ``success=False`` with an
        ``error_code`` when the failure kind is known.
        """
        # 1. Basic structural validation
        try:
            tx.validate_basic()
        except (TypeError, ValueError) as e:
            return self._record(tx, PerpExecResult(success=False, error=str(e)))

        # 2. Nonce check (replay protection)
        expected_nonce = self._nonces.get(tx.sender, 0)
        if tx.nonce != expected_nonce:
            return self._record(tx, PerpExecResult(
                success=False,
                error=f"Invalid nonce: expected {expected_nonce}, got {tx.nonce}",
            ))

        # 3. Execute the operation
        try:
            result = self._execute_op(tx)
        except PerpError as e:
            logger.info("Perp op %s rejected: %s", tx.op_type.name, e)
            result = PerpExecResult(success=False, error=str(e), error_code=e.code)
        except SettlementTokenError as e:
            logger.error("Perp op %s custody failure: %s", tx.op_type.name, e)
            result = PerpExecResult(
                success=False, error=str(e), error_code=ErrorCode.CUSTODY_FAILURE,
            )
        except Exception as e:
            logger.error("Perp op %s failed: %s", tx.op_type.name, e)
            result = PerpExecResult(success=False, error=str(e))

        # 4. Update nonce on success
        if result.success:
            self._nonces[tx.sender] = tx.nonce + 1

        return self._record(tx, result)

    def _record(self, tx: PerpTransaction, result: PerpExecResult) -> PerpExecResult:
        tx.success = result.success
        tx.result = result.data
        tx.error = result.error
        self._processed.append(tx)
        return result

    def _execute_op(self, tx: PerpTransaction) -> PerpExecResult:
        """Dispatch to the appropriate handler."""
        handlers = {
            PerpOpType.OPEN_POSITION: self._op_open_position,
            PerpOpType.CLOSE_POSITION: self._op_close_position,
            PerpOpType.LIQUIDATE: self._op_liquidate,
            PerpOpType.UPDATE_PRICE: self._op_update_price,
        }
        return handlers[tx.op_type](tx)

    # =====================================================================
    #  Operation handlers
    # =====================================================================

    def _op_open_position(self, tx: PerpTransaction) -> PerpExecResult:
        p = tx.params
        position = self.lifecycle.open(tx.sender, int(p["value"]), parse_flag(p["long"]))
        return PerpExecResult(success=True, data=position.to_dict())

    def _op_close_position(self, tx: PerpTransaction) -> PerpExecResult:
        closed = self.lifecycle.close(tx.sender)
        return PerpExecResult(
            success=True,
            data={"settlement": closed.settlement, "close_price": closed.position.close_price},
        )

    def _op_liquidate(self, tx: PerpTransaction) -> PerpExecResult:
        result = self.lifecycle.liquidate(tx.sender, tx.params["trader"])
        return PerpExecResult(
            success=True,
            data={
                "trader": result.trader,
                "settlement": result.settlement,
                "margin_ratio": result.margin_ratio,
                "reward": result.reward,
            },
        )

    def _op_update_price(self, tx: PerpTransaction) -> PerpExecResult:
        oracle = self.lifecycle.oracle
        if not hasattr(oracle, "update_price"):
            return PerpExecResult(success=False, error="Oracle does not accept price updates")
        price = int(tx.params["price"])
        oracle.update_price(tx.sender, price)
        return PerpExecResult(success=True, data={"price": price})

    def get_stats(self) -> Dict[str, Any]:
        state = self.lifecycle.state
        return {
            "asset": state.asset,
            "open_positions": len(state.positions),
            "total_long": state.total_long,
            "total_short": state.total_short,
            "history": len(state.history),
            "processed": len(self._processed),
        }
