"""
perpcore Reference Price Oracle

Single-asset reference price fed by a set of trusted oracle identities.

  - Only trusted identities may publish a price
  - Published prices must be strictly positive
  - Reads return 0 until the first update (callers must reject that state)
  - No staleness or sanity bound is applied here; that is the host's policy
"""

from __future__ import annotations

import time
from typing import Optional, Protocol, Set

from ..exceptions import InvalidPriceError, UnauthorizedError
from ..logger import get_logger

logger = get_logger(__name__)


class PriceOracle(Protocol):
    """Read side of a price feed as consumed by the engine."""

    def current_price(self) -> int: ...


class TrustedPriceOracle:
    """
    In-memory price feed with a trusted publisher set.

    Usage:
        oracle = TrustedPriceOracle(asset="BTC", trusted={"oracle-1"})
        oracle.update_price("oracle-1", 50_000)
        oracle.current_price()  # 50000
    """

    def __init__(self, asset: str = "", trusted: Optional[Set[str]] = None) -> None:
        self.asset = asset
        self._trusted: Set[str] = set(trusted or ())
        self._price: int = 0
        self._last_updated: float = 0.0

    # -- Trusted set --------------------------------------------------------

    def is_trusted(self, oracle: str) -> bool:
        return oracle in self._trusted

    def add_oracle(self, oracle: str) -> None:
        if not oracle:
            raise ValueError("Oracle identity required")
        self._trusted.add(oracle)
        logger.info("Oracle trusted for %s: %s", self.asset, oracle)

    def remove_oracle(self, oracle: str) -> None:
        self._trusted.discard(oracle)
        logger.info("Oracle removed for %s: %s", self.asset, oracle)

    @property
    def oracles(self) -> Set[str]:
        return set(self._trusted)

    # -- Price --------------------------------------------------------------

    def update_price(self, oracle: str, price: int, timestamp: Optional[float] = None) -> None:
        """
        Publish a new reference price.

        Raises:
            UnauthorizedError: *oracle* is not in the trusted set
            InvalidPriceError: *price* is not positive
        """
        if oracle not in self._trusted:
            raise UnauthorizedError(oracle, "not a trusted oracle")
        if price <= 0:
            raise InvalidPriceError(f"Price must be positive, got {price}")
        self._price = int(price)
        self._last_updated = timestamp if timestamp is not None else time.time()
        logger.debug("Price update %s: %d by %s", self.asset, price, oracle)

    def current_price(self) -> int:
        return self._price

    @property
    def last_updated(self) -> float:
        return self._last_updated

    @property
    def has_price(self) -> bool:
        return self._price > 0
