"""
perpcore Trade Lifecycle

Open / close / liquidate as all-or-nothing invocations over one market.

Each mutating call:
  1. authorizes the acting principal
  2. checks preconditions (nothing is touched on failure)
  3. snapshots the ledger and the custodian
  4. mutates the ledger and moves collateral
  5. restores the snapshot if any step in 4 raises
  6. publishes a notification after commit (best effort)

The engine holds no locks.  The host serializes invocations.
"""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Dict, Iterator, Optional

from ..config import MarketConfig
from ..constants import LIQUIDATION_REWARD_DIVISOR, TOPIC_CLOSE, TOPIC_LIQUIDATE, TOPIC_PLACE
from ..exceptions import (
    AboveMarginError,
    ConfigurationError,
    InvalidPriceError,
    PositionOpenError,
    ZeroValueError,
)
from ..logger import get_logger
from ..tokens.settlement import Custodian
from .auth import AllowAllAuthorizer, Authorizer
from .events import EventSink, MemoryEventSink
from .fees import calculate_fee
from .ledger import LedgerState, Position, PositionLedger
from .margin import is_liquidatable, margin_ratio
from .oracle import PriceOracle, TrustedPriceOracle
from .pnl import settle

logger = get_logger(__name__)


@dataclass(frozen=True)
class CloseResult:
    """Outcome of a voluntary close."""
    trader: str
    position: Position        # archived copy, close_price set
    settlement: int


@dataclass(frozen=True)
class LiquidationResult:
    """Outcome of a successful liquidation."""
    trader: str
    liquidator: str
    position: Position        # archived copy, close_price set
    settlement: int
    margin_ratio: int
    reward: int

    @property
    def retained(self) -> int:
        """Part of the settlement kept in custody as the liquidation penalty."""
        return self.settlement - self.reward


class TradeLifecycle:
    """
    The only mutator of a market's LedgerState.

    Usage:
        lifecycle = create_market(config, custodian)
        lifecycle.oracle.update_price(config.oracle, 50_000)
        lifecycle.open("alice", 1_000, long=True)
        lifecycle.close("alice")
    """

    def __init__(
        self,
        state: LedgerState,
        oracle: PriceOracle,
        custodian: Custodian,
        custody_address: str,
        authorizer: Optional[Authorizer] = None,
        events: Optional[EventSink] = None,
        allow_overwrite: bool = False,
    ) -> None:
        self.ledger = PositionLedger(state)
        self.oracle = oracle
        self.custodian = custodian
        self.custody_address = custody_address
        self.authorizer = authorizer if authorizer is not None else AllowAllAuthorizer()
        self.events = events if events is not None else MemoryEventSink()
        self.allow_overwrite = allow_overwrite

    @property
    def state(self) -> LedgerState:
        return self.ledger.state

    # -- Read-only views ----------------------------------------------------

    def current_price(self) -> int:
        return self.oracle.current_price()

    def calculate_fee(self, value: int, long: bool) -> int:
        """Fee a trade of *value* would pay against the live aggregates."""
        return calculate_fee(self.state.total_long, self.state.total_short, value, long)

    def get_position(self, trader: str) -> Optional[Position]:
        return self.ledger.get(trader)

    def position_value(self, trader: str) -> int:
        """Current settlement value of *trader*'s position, 0 when none is stored."""
        position = self.ledger.get(trader)
        if position is None:
            return 0
        return settle(position, self.current_price(), self.state.leverage)

    def margin_ratio(self, trader: str) -> int:
        position = self.ledger.require(trader)
        settlement = settle(position, self.current_price(), self.state.leverage)
        return margin_ratio(settlement, position.value)

    # -- Open ---------------------------------------------------------------

    def open(self, trader: str, value: int, long: bool) -> Position:
        """
        Open a position of *value* collateral on the given side.

        Raises:
            UnauthorizedError: trader failed authorization
            ZeroValueError: value <= 0
            PositionOpenError: trader already holds a position (guard enabled)
            InvalidPriceError: no positive reference price yet
            SettlementTokenError: collateral could not be pulled
        """
        self.authorizer.require(trader)
        if value <= 0:
            raise ZeroValueError(f"Trade value must be positive, got {value}")

        existing = self.ledger.get(trader)
        if existing is not None and not self.allow_overwrite:
            raise PositionOpenError(f"{trader} already holds an open {existing.side} position")

        price = self.current_price()
        if price <= 0:
            raise InvalidPriceError("No reference price has been published")

        with self._atomic("open", trader):
            self.custodian.pull(trader, self.custody_address, value)
            fee = calculate_fee(self.state.total_long, self.state.total_short, value, long)
            position = Position(value=value - fee, open_price=price, close_price=0, long=long)
            previous = self.ledger.record_open(trader, position)

        if previous is not None:
            # Compatibility mode: the previous value stays counted in the aggregate
            logger.warning(
                "Position for %s overwritten: %d collateral no longer tracked",
                trader, previous.value,
            )
        logger.info(
            "Opened %s for %s: value=%d fee=%d price=%d",
            position.side, trader, position.value, fee, price,
        )
        self._publish(TOPIC_PLACE, {"trader": trader, "value": value, "long": long})
        return position

    # -- Close --------------------------------------------------------------

    def close(self, trader: str) -> CloseResult:
        """
        Close *trader*'s position and pay out its settlement value.

        Raises:
            UnauthorizedError: trader failed authorization
            PositionNotOpenError: no stored position
            SettlementTokenError: payout failed (ledger rolled back)
        """
        self.authorizer.require(trader)
        position = self.ledger.require(trader)
        price = self.current_price()
        settlement = settle(position, price, self.state.leverage)

        with self._atomic("close", trader):
            closed = self.ledger.archive(trader, price)
            if settlement > 0:
                self.custodian.push(trader, settlement)

        logger.info(
            "Closed %s for %s: value=%d settlement=%d price=%d",
            closed.side, trader, closed.value, settlement, price,
        )
        self._publish(TOPIC_CLOSE, {"trader": trader, "settlement": settlement})
        return CloseResult(trader=trader, position=closed, settlement=settlement)

    # -- Liquidate ----------------------------------------------------------

    def liquidate(self, liquidator: str, trader: str) -> LiquidationResult:
        """
        Force-close an under-margined position and reward the liquidator.

        The liquidator receives ``settlement // 3``; the rest of the
        settlement stays in custody and nothing is paid to the trader.

        Raises:
            UnauthorizedError: liquidator failed authorization
            PositionNotOpenError: no stored position for *trader*
            AboveMarginError: margin ratio is not below the requirement
            SettlementTokenError: reward payout failed (ledger rolled back)
        """
        self.authorizer.require(liquidator)
        position = self.ledger.require(trader)
        price = self.current_price()
        settlement = settle(position, price, self.state.leverage)
        ratio = margin_ratio(settlement, position.value)

        if not is_liquidatable(settlement, position.value, self.state.margin_requirement):
            raise AboveMarginError(ratio, self.state.margin_requirement)

        reward = settlement // LIQUIDATION_REWARD_DIVISOR
        with self._atomic("liquidate", trader):
            closed = self.ledger.archive(trader, price)
            if reward > 0:
                self.custodian.push(liquidator, reward)

        logger.warning(
            "Position of %s liquidated by %s: settlement=%d ratio=%d reward=%d",
            trader, liquidator, settlement, ratio, reward,
        )
        self._publish(
            TOPIC_LIQUIDATE,
            {"trader": trader, "liquidator": liquidator, "settlement": settlement},
        )
        return LiquidationResult(
            trader=trader,
            liquidator=liquidator,
            position=closed,
            settlement=settlement,
            margin_ratio=ratio,
            reward=reward,
        )

    # -- Internals ----------------------------------------------------------

    @contextmanager
    def _atomic(self, op: str, trader: str) -> Iterator[None]:
        """Roll the ledger and the custodian back if the block raises."""
        ledger_snapshot = self.ledger.snapshot()
        custody_snapshot = self.custodian.snapshot()
        try:
            yield
        except BaseException as e:
            self.ledger.restore(ledger_snapshot)
            self.custodian.restore(custody_snapshot)
            logger.warning("%s for %s rolled back: %s", op, trader, e)
            raise

    def _publish(self, topic: str, payload: Dict[str, Any]) -> None:
        try:
            self.events.publish(topic, payload)
        except Exception as e:
            logger.error("Event %s not delivered: %s", topic, e)


def create_market(
    config: MarketConfig,
    custodian: Custodian,
    custody_address: Optional[str] = None,
    authorizer: Optional[Authorizer] = None,
    events: Optional[EventSink] = None,
    oracle: Optional[PriceOracle] = None,
) -> TradeLifecycle:
    """
    One-time market initialization.

    Builds an empty LedgerState (no positions, zero aggregates, empty history)
    with the configured leverage and margin requirement.  Unless an oracle is
    supplied, a TrustedPriceOracle is created with ``config.oracle`` as its
    only trusted publisher.

    When the custodian exposes its token, the token symbol must equal
    ``config.settlement_token``.  Custodians without a ``token`` attribute
    are trusted to settle in the configured currency.

    Raises:
        ConfigurationError: invalid config or settlement token mismatch
    """
    config.validate()
    token = getattr(custodian, "token", None)
    if token is not None and token.symbol != config.settlement_token:
        raise ConfigurationError(
            f"Custodian settles in {token.symbol}, market expects {config.settlement_token}"
        )
    state = LedgerState(
        asset=config.asset,
        leverage=config.leverage,
        margin_requirement=config.margin_requirement,
    )
    if oracle is None:
        oracle = TrustedPriceOracle(asset=config.asset, trusted={config.oracle})
    address = custody_address or getattr(custodian, "address", "") or f"{config.asset}-PERP"
    logger.info(
        "Perp market initialized: %s leverage=%d margin_requirement=%d",
        config.asset, config.leverage, config.margin_requirement,
    )
    return TradeLifecycle(
        state=state,
        oracle=oracle,
        custodian=custodian,
        custody_address=address,
        authorizer=authorizer,
        events=events,
        allow_overwrite=config.allow_overwrite,
    )
