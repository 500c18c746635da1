"""
Imbalance fee model.

A trade pays 1 % of its requested size only when it lands on the side of the
market that already carries strictly more open notional.  Trades that reduce
the imbalance, and any trade into a balanced market, are free.
"""

from __future__ import annotations

from ..constants import FEE_DIVISOR


def increases_imbalance(total_long: int, total_short: int, long: bool) -> bool:
    """True when the trade side is already the heavier side."""
    if long:
        return total_long > total_short
    return total_short > total_long


def calculate_fee(total_long: int, total_short: int, value: int, long: bool) -> int:
    """
    Fee charged on opening a position of *value* on the given side.

    Args:
        total_long: open notional on the long side
        total_short: open notional on the short side
        value: requested trade size in the smallest settlement unit
        long: trade direction

    Returns:
        ``value // 100`` when the trade increases an existing imbalance, else 0
    """
    if increases_imbalance(total_long, total_short, long):
        # truncate toward zero
        return value // FEE_DIVISOR if value >= 0 else -(-value // FEE_DIVISOR)
    return 0
