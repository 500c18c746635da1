"""
perpcore Position Ledger

Owns the per-trader position map, the two aggregate notional counters and
the append-only history of archived positions.

Invariants:
  - at most one stored position per trader (keys are unique)
  - total_long  == sum(value) over open long positions
  - total_short == sum(value) over open short positions
  - history is append-only; archived positions are never mutated
  - aggregates move by the original position value, never by settlement
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Dict, Iterator, List, Optional, Tuple

from ..constants import DEFAULT_LEVERAGE, DEFAULT_MARGIN_REQUIREMENT
from ..exceptions import PositionNotOpenError


# ---------------------------------------------------------------------------
# Data models
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Position:
    """A trader's open leveraged exposure."""
    value: int              # collateral net of entry fee
    open_price: int
    close_price: int = 0    # set only when archived
    long: bool = True

    @property
    def side(self) -> str:
        return "long" if self.long else "short"

    def closed_at(self, price: int) -> Position:
        """Archived copy carrying the final reference price."""
        return replace(self, close_price=price)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "value": self.value,
            "open_price": self.open_price,
            "close_price": self.close_price,
            "long": self.long,
        }


@dataclass
class LedgerState:
    """Complete ledger state of one market.  Passed explicitly, never global."""
    asset: str = ""
    leverage: int = DEFAULT_LEVERAGE
    margin_requirement: int = DEFAULT_MARGIN_REQUIREMENT
    positions: Dict[str, Position] = field(default_factory=dict)
    total_long: int = 0
    total_short: int = 0
    history: List[Position] = field(default_factory=list)

    @property
    def open_interest(self) -> int:
        return self.total_long + self.total_short


@dataclass(frozen=True)
class LedgerSnapshot:
    """Point-in-time copy used to roll back a failed invocation."""
    positions: Dict[str, Position]
    total_long: int
    total_short: int
    history_length: int


# ---------------------------------------------------------------------------
# Position Ledger
# ---------------------------------------------------------------------------

class PositionLedger:
    """
    Point-addressable store over a LedgerState.

    All writes go through ``record_open`` and ``archive`` so the aggregate
    counters cannot drift from the stored positions.
    """

    def __init__(self, state: Optional[LedgerState] = None) -> None:
        self.state = state if state is not None else LedgerState()

    # -- Reads --------------------------------------------------------------

    def get(self, trader: str) -> Optional[Position]:
        return self.state.positions.get(trader)

    def require(self, trader: str) -> Position:
        position = self.state.positions.get(trader)
        if position is None:
            raise PositionNotOpenError(f"No open position for {trader}")
        return position

    def __contains__(self, trader: str) -> bool:
        return trader in self.state.positions

    def __len__(self) -> int:
        return len(self.state.positions)

    def __iter__(self) -> Iterator[Tuple[str, Position]]:
        return iter(list(self.state.positions.items()))

    @property
    def total_long(self) -> int:
        return self.state.total_long

    @property
    def total_short(self) -> int:
        return self.state.total_short

    @property
    def history(self) -> Tuple[Position, ...]:
        return tuple(self.state.history)

    # -- Writes -------------------------------------------------------------

    def record_open(self, trader: str, position: Position) -> Optional[Position]:
        """
        Store *position* for *trader* and credit its side's aggregate.

        Returns:
            The position that was overwritten, if any.  Its value stays in
            the aggregate; callers decide whether overwriting is allowed.
        """
        previous = self.state.positions.get(trader)
        self._adjust_total(position.long, position.value)
        self.state.positions[trader] = position
        return previous

    def archive(self, trader: str, close_price: int) -> Position:
        """
        Remove *trader*'s position, debit its side by the original value and
        append the closed copy to history.

        Returns:
            The archived position (with close_price set).
        """
        position = self.require(trader)
        closed = position.closed_at(close_price)
        self.state.history.append(closed)
        self._adjust_total(position.long, -position.value)
        del self.state.positions[trader]
        return closed

    def _adjust_total(self, long: bool, delta: int) -> None:
        if long:
            self.state.total_long += delta
        else:
            self.state.total_short += delta

    # -- Snapshot / rollback ------------------------------------------------

    def snapshot(self) -> LedgerSnapshot:
        # Positions are immutable, a shallow copy of the map is enough
        return LedgerSnapshot(
            positions=dict(self.state.positions),
            total_long=self.state.total_long,
            total_short=self.state.total_short,
            history_length=len(self.state.history),
        )

    def restore(self, snapshot: LedgerSnapshot) -> None:
        self.state.positions = dict(snapshot.positions)
        self.state.total_long = snapshot.total_long
        self.state.total_short = snapshot.total_short
        del self.state.history[snapshot.history_length:]

    def check_invariants(self) -> bool:
        """Recompute both aggregates from stored positions and compare."""
        long_sum = sum(p.value for p in self.state.positions.values() if p.long)
        short_sum = sum(p.value for p in self.state.positions.values() if not p.long)
        return long_sum == self.state.total_long and short_sum == self.state.total_short
