"""
Test suite for the perpcore accounting primitives

Covers:
  Fee model (order-flow imbalance)
  PnL engine (leveraged settlement)
  Margin engine (liquidation eligibility)
  Position ledger (aggregates, history, snapshot/rollback)
"""

import pytest

from perpcore.constants import BASIS_POINTS, DEFAULT_MARGIN_REQUIREMENT
from perpcore.engine.fees import calculate_fee, increases_imbalance
from perpcore.engine.ledger import LedgerState, Position, PositionLedger
from perpcore.engine.margin import is_liquidatable, margin_ratio
from perpcore.engine.pnl import (
    MoveKind,
    PriceMove,
    classify_move,
    leveraged_amount,
    settle,
)
from perpcore.exceptions import ErrorCode, InvalidPriceError, PositionNotOpenError

ADDR_A = "trader-a"
ADDR_B = "trader-b"
LEVERAGE = 10


# ============================================================================
# Fee model
# ============================================================================

class TestFeeModel:
    """1 % fee only when the trade deepens an existing imbalance."""

    def test_long_into_long_heavy_market_pays(self):
        assert calculate_fee(5000, 2000, 1000, True) == 10

    def test_short_into_long_heavy_market_free(self):
        assert calculate_fee(5000, 2000, 1000, False) == 0

    def test_short_into_short_heavy_market_pays(self):
        assert calculate_fee(2000, 5000, 1000, False) == 10

    def test_long_into_short_heavy_market_free(self):
        assert calculate_fee(2000, 5000, 1000, True) == 0

    @pytest.mark.parametrize("long", [True, False])
    def test_balanced_market_free(self, long):
        assert calculate_fee(5000, 5000, 1000, long) == 0

    @pytest.mark.parametrize("long", [True, False])
    def test_empty_market_free(self, long):
        assert calculate_fee(0, 0, 1000, long) == 0

    def test_fee_truncates(self):
        assert calculate_fee(1, 0, 199, True) == 1
        assert calculate_fee(1, 0, 99, True) == 0

    def test_inputs_not_mutated(self):
        totals = [5000, 2000]
        calculate_fee(totals[0], totals[1], 1000, True)
        assert totals == [5000, 2000]

    def test_increases_imbalance(self):
        assert increases_imbalance(2, 1, True)
        assert not increases_imbalance(2, 1, False)
        assert not increases_imbalance(1, 1, True)


# ============================================================================
# PnL engine
# ============================================================================

class TestPriceMove:
    """Direction-adjusted move classification."""

    def test_long_gain(self):
        assert classify_move(True, 50000, 55000) == PriceMove(MoveKind.GAIN, 5000)

    def test_long_loss(self):
        assert classify_move(True, 50000, 45000) == PriceMove(MoveKind.LOSS, 5000)

    def test_short_gain(self):
        assert classify_move(False, 50000, 45000) == PriceMove(MoveKind.GAIN, 5000)

    def test_short_loss(self):
        assert classify_move(False, 50000, 55000) == PriceMove(MoveKind.LOSS, 5000)

    @pytest.mark.parametrize("long", [True, False])
    def test_unchanged(self, long):
        move = classify_move(long, 50000, 50000)
        assert move.kind == MoveKind.UNCHANGED
        assert move.amount == 0


class TestSettlement:
    """Leveraged settlement value, multiply-then-divide."""

    def _long(self, value=1000, open_price=50000) -> Position:
        return Position(value=value, open_price=open_price, long=True)

    def _short(self, value=1000, open_price=50000) -> Position:
        return Position(value=value, open_price=open_price, long=False)

    def test_long_profit(self):
        # 5000 move * 10x * 1000 / 50000 = 1000 profit
        assert settle(self._long(), 55000, LEVERAGE) == 2000

    def test_long_loss_equal_to_collateral_wipes_out(self):
        assert settle(self._long(), 45000, LEVERAGE) == 0

    def test_short_profit(self):
        assert settle(self._short(), 45000, LEVERAGE) == 2000

    def test_short_loss_equal_to_collateral_wipes_out(self):
        assert settle(self._short(), 55000, LEVERAGE) == 0

    def test_partial_loss(self):
        # 2000 move * 10 * 1000 / 50000 = 400 loss
        assert settle(self._long(), 48000, LEVERAGE) == 600

    def test_small_loss(self):
        assert settle(self._long(), 49000, LEVERAGE) == 800

    @pytest.mark.parametrize("long", [True, False])
    def test_unchanged_price_returns_value(self, long):
        pos = Position(value=1000, open_price=50000, long=long)
        assert settle(pos, 50000, LEVERAGE) == 1000

    def test_loss_beyond_collateral_never_negative(self):
        assert settle(self._long(), 100, LEVERAGE) == 0
        assert settle(self._short(), 10_000_000, LEVERAGE) == 0

    def test_rounding_floors_after_multiplying(self):
        pos = self._long(value=999)
        # 1 * 10 * 999 // 50000 == 0
        assert settle(pos, 50001, LEVERAGE) == 999
        # 7 * 10 * 999 // 50000 == 1
        assert settle(pos, 50007, LEVERAGE) == 1000

    def test_leveraged_amount_order_of_operations(self):
        # Flooring the multiplier first (10 * 1000 // 50000 == 0) would lose the whole move
        assert leveraged_amount(5000, 10, 1000, 50000) == 1000

    def test_zero_open_price_rejected(self):
        pos = Position(value=1000, open_price=0, long=True)
        with pytest.raises(InvalidPriceError) as exc:
            settle(pos, 50000, LEVERAGE)
        assert exc.value.code == ErrorCode.INVALID_PRICE

    def test_settle_is_pure(self):
        pos = self._long()
        settle(pos, 55000, LEVERAGE)
        assert pos == self._long()


# ============================================================================
# Margin engine
# ============================================================================

class TestMargin:
    """Margin ratio in basis points of original collateral."""

    def test_full_collateral(self):
        assert margin_ratio(1000, 1000) == BASIS_POINTS

    def test_ratio_floors(self):
        assert margin_ratio(20, 1000) == 200
        assert margin_ratio(1, 3) == 3333

    def test_strictly_below_requirement_is_liquidatable(self):
        assert is_liquidatable(29, 1000, DEFAULT_MARGIN_REQUIREMENT)
        assert is_liquidatable(0, 1000, DEFAULT_MARGIN_REQUIREMENT)

    def test_at_requirement_is_not_liquidatable(self):
        assert not is_liquidatable(30, 1000, DEFAULT_MARGIN_REQUIREMENT)

    def test_healthy_is_not_liquidatable(self):
        assert not is_liquidatable(800, 1000, DEFAULT_MARGIN_REQUIREMENT)


# ============================================================================
# Position ledger
# ============================================================================

class TestPositionLedger:
    """Aggregates, history and rollback."""

    def _ledger(self) -> PositionLedger:
        return PositionLedger(LedgerState(asset="BTC", leverage=LEVERAGE))

    def test_defaults(self):
        state = LedgerState()
        assert state.margin_requirement == 300
        assert state.total_long == 0
        assert state.total_short == 0
        assert state.history == []
        assert state.positions == {}

    def test_record_open_credits_side(self):
        ledger = self._ledger()
        ledger.record_open(ADDR_A, Position(1000, 50000, long=True))
        ledger.record_open(ADDR_B, Position(500, 50000, long=False))
        assert ledger.total_long == 1000
        assert ledger.total_short == 500
        assert ledger.state.open_interest == 1500
        assert len(ledger) == 2
        assert ledger.check_invariants()

    def test_archive_debits_original_value(self):
        ledger = self._ledger()
        ledger.record_open(ADDR_A, Position(1000, 50000, long=True))
        closed = ledger.archive(ADDR_A, 55000)
        assert closed.close_price == 55000
        assert closed.value == 1000
        assert ledger.total_long == 0
        assert ADDR_A not in ledger
        assert ledger.history == (closed,)

    def test_archive_keeps_stored_position_untouched(self):
        ledger = self._ledger()
        original = Position(1000, 50000, long=True)
        ledger.record_open(ADDR_A, original)
        ledger.archive(ADDR_A, 55000)
        assert original.close_price == 0

    def test_archive_missing_raises(self):
        ledger = self._ledger()
        with pytest.raises(PositionNotOpenError):
            ledger.archive(ADDR_A, 50000)

    def test_history_in_call_order(self):
        ledger = self._ledger()
        ledger.record_open(ADDR_A, Position(1000, 50000, long=True))
        ledger.record_open(ADDR_B, Position(500, 50000, long=False))
        ledger.archive(ADDR_B, 51000)
        ledger.archive(ADDR_A, 52000)
        assert [p.close_price for p in ledger.history] == [51000, 52000]

    def test_snapshot_restore(self):
        ledger = self._ledger()
        ledger.record_open(ADDR_A, Position(1000, 50000, long=True))
        snap = ledger.snapshot()
        ledger.archive(ADDR_A, 55000)
        ledger.record_open(ADDR_B, Position(700, 55000, long=False))
        ledger.restore(snap)
        assert ledger.get(ADDR_A) == Position(1000, 50000, long=True)
        assert ledger.get(ADDR_B) is None
        assert ledger.total_long == 1000
        assert ledger.total_short == 0
        assert ledger.history == ()

    def test_overwrite_breaks_aggregate_invariant(self):
        ledger = self._ledger()
        ledger.record_open(ADDR_A, Position(1000, 50000, long=True))
        previous = ledger.record_open(ADDR_A, Position(990, 50000, long=True))
        assert previous.value == 1000
        assert ledger.total_long == 1990
        assert not ledger.check_invariants()

    def test_position_to_dict(self):
        pos = Position(1000, 50000, 0, False)
        assert pos.to_dict() == {
            "value": 1000, "open_price": 50000, "close_price": 0, "long": False,
        }
        assert pos.side == "short"
