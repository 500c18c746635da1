"""
Leveraged settlement value.

The price move since entry is classified once into a tagged outcome
(gain, loss or unchanged) so the long/short symmetry lives in a single
function instead of two mirrored branches.

All arithmetic is integer and multiply-then-divide:

    scaled = amount * leverage * value // open_price

The multiplier ``leverage * value / open_price`` is never floored on its own.
Doing so would round every realistic position (value much smaller than price)
down to a zero multiplier.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from ..exceptions import InvalidPriceError
from .ledger import Position


class MoveKind(str, Enum):
    GAIN = "gain"
    LOSS = "loss"
    UNCHANGED = "unchanged"


@dataclass(frozen=True)
class PriceMove:
    """Direction-adjusted price move: kind plus non-negative magnitude."""
    kind: MoveKind
    amount: int = 0


def classify_move(long: bool, open_price: int, current_price: int) -> PriceMove:
    """
    Classify the move from *open_price* to *current_price* for a position side.

    Longs gain when the price rises, shorts gain when it falls.
    """
    delta = current_price - open_price
    if not long:
        delta = -delta
    if delta > 0:
        return PriceMove(MoveKind.GAIN, delta)
    if delta < 0:
        return PriceMove(MoveKind.LOSS, -delta)
    return PriceMove(MoveKind.UNCHANGED)


def leveraged_amount(amount: int, leverage: int, value: int, open_price: int) -> int:
    """Price move scaled to collateral units: ``amount * leverage * value // open_price``."""
    if open_price <= 0:
        raise InvalidPriceError(f"Open price must be positive, got {open_price}")
    return (amount * leverage * value) // open_price


def settle(position: Position, current_price: int, leverage: int) -> int:
    """
    Current settlement value of *position*.

    Returns:
        ``value + scaled`` on a gain, ``value - scaled`` on a loss, 0 when the
        loss consumes the whole collateral, ``value`` when the price is unchanged.

    Raises:
        InvalidPriceError: position carries a non-positive open price
    """
    if position.open_price <= 0:
        raise InvalidPriceError(f"Open price must be positive, got {position.open_price}")

    move = classify_move(position.long, position.open_price, current_price)
    if move.kind == MoveKind.UNCHANGED:
        return position.value

    scaled = leveraged_amount(move.amount, leverage, position.value, position.open_price)
    if move.kind == MoveKind.GAIN:
        return position.value + scaled

    # wiped out: never negative
    if scaled >= position.value:
        return 0
    return position.value - scaled
