"""
Settlement Token

In-memory fungible token used as the settlement currency of a market, plus
the custodian adapter through which the engine moves collateral.

  - ERC-20–style interface (transfer, approve, transfer_from, balance_of)
  - Integer amounts in the smallest currency unit
  - Fails loudly on insufficient balance or allowance, never truncates
  - Snapshot / restore so the engine can roll back a failed invocation
"""

import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Protocol, Tuple

from ..logger import get_logger

logger = get_logger(__name__)


# ══════════════════════════════════════════════════════════════════════
#  EXCEPTIONS
# ══════════════════════════════════════════════════════════════════════

class SettlementTokenError(Exception):
    """Base exception for settlement token operations."""


class InsufficientBalanceError(SettlementTokenError):
    """Raised when sender balance is too low."""


class InsufficientAllowanceError(SettlementTokenError):
    """Raised when spender allowance is too low."""


class TokenFrozenError(SettlementTokenError):
    """Raised when the token is frozen (e.g. paused by the operator)."""


# ══════════════════════════════════════════════════════════════════════
#  EVENTS
# ══════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class TransferEvent:
    """Emitted on every successful transfer."""
    token_symbol: str
    sender: str
    recipient: str
    amount: int
    timestamp: float = field(default_factory=time.time)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event": "Transfer",
            "token": self.token_symbol,
            "from": self.sender,
            "to": self.recipient,
            "amount": self.amount,
            "timestamp": self.timestamp,
        }


@dataclass(frozen=True)
class ApprovalEvent:
    """Emitted on every successful approve."""
    token_symbol: str
    owner: str
    spender: str
    amount: int
    timestamp: float = field(default_factory=time.time)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event": "Approval",
            "token": self.token_symbol,
            "owner": self.owner,
            "spender": self.spender,
            "amount": self.amount,
            "timestamp": self.timestamp,
        }


@dataclass(frozen=True)
class TokenSnapshot:
    balances: Dict[str, int]
    allowances: Dict[Tuple[str, str], int]
    total_supply: int
    event_count: int


# ══════════════════════════════════════════════════════════════════════
#  TOKEN
# ══════════════════════════════════════════════════════════════════════

class SettlementToken:
    """
    Settlement currency ledger.

    Mirrors ERC-20 semantics:
        - balance_of(address) → int
        - transfer(sender, recipient, amount)
        - approve(owner, spender, amount)
        - transfer_from(spender, sender, recipient, amount)
        - total_supply → int
    """

    def __init__(self, name: str, symbol: str, decimals: int = 7):
        if not name:
            raise SettlementTokenError("Token name cannot be empty")
        if not symbol:
            raise SettlementTokenError("Token symbol cannot be empty")
        if decimals < 0 or decimals > 18:
            raise SettlementTokenError(f"Decimals must be 0-18, got {decimals}")

        self.name = name
        self.symbol = symbol
        self.decimals = decimals
        self._total_supply = 0
        self._frozen = False

        self._balances: Dict[str, int] = {}
        self._allowances: Dict[Tuple[str, str], int] = {}  # (owner, spender)
        self._events: List[Any] = []

    # ── Read-only views ───────────────────────────────────────────────

    @property
    def total_supply(self) -> int:
        return self._total_supply

    def balance_of(self, address: str) -> int:
        return self._balances.get(address, 0)

    def allowance(self, owner: str, spender: str) -> int:
        return self._allowances.get((owner, spender), 0)

    @property
    def is_frozen(self) -> bool:
        return self._frozen

    @property
    def events(self) -> List[Any]:
        return list(self._events)

    # ── State guards ──────────────────────────────────────────────────

    def _require_not_frozen(self):
        if self._frozen:
            raise TokenFrozenError(f"Token {self.symbol} is frozen")

    # ── Core operations ───────────────────────────────────────────────

    def mint(self, recipient: str, amount: int) -> None:
        """Credit newly issued units to *recipient*."""
        self._require_not_frozen()
        if amount <= 0:
            raise SettlementTokenError("Mint amount must be positive")
        self._balances[recipient] = self.balance_of(recipient) + amount
        self._total_supply += amount
        logger.debug("Mint: %s %d %s", recipient, amount, self.symbol)

    def transfer(self, sender: str, recipient: str, amount: int) -> TransferEvent:
        self._require_not_frozen()

        if amount <= 0:
            raise SettlementTokenError("Transfer amount must be positive")
        if sender == recipient:
            raise SettlementTokenError("Cannot transfer to self")

        bal = self.balance_of(sender)
        if bal < amount:
            raise InsufficientBalanceError(
                f"{sender} balance {bal} < transfer amount {amount}"
            )

        self._balances[sender] = bal - amount
        self._balances[recipient] = self.balance_of(recipient) + amount

        event = TransferEvent(
            token_symbol=self.symbol,
            sender=sender,
            recipient=recipient,
            amount=amount,
        )
        self._events.append(event)
        logger.debug("Transfer: %s -> %s %d %s", sender, recipient, amount, self.symbol)
        return event

    def approve(self, owner: str, spender: str, amount: int) -> ApprovalEvent:
        """Set spender allowance."""
        self._require_not_frozen()

        if amount < 0:
            raise SettlementTokenError("Allowance amount cannot be negative")

        self._allowances[(owner, spender)] = amount

        event = ApprovalEvent(
            token_symbol=self.symbol,
            owner=owner,
            spender=spender,
            amount=amount,
        )
        self._events.append(event)
        logger.debug("Approve: %s -> %s allowance=%d %s", owner, spender, amount, self.symbol)
        return event

    def transfer_from(
        self,
        spender: str,
        sender: str,
        recipient: str,
        amount: int,
    ) -> TransferEvent:
        """Transfer on behalf of *sender* using spender's allowance."""
        self._require_not_frozen()

        if amount <= 0:
            raise SettlementTokenError("Transfer amount must be positive")

        bal = self.balance_of(sender)
        if bal < amount:
            raise InsufficientBalanceError(
                f"{sender} balance {bal} < transfer amount {amount}"
            )

        allow = self.allowance(sender, spender)
        if allow < amount:
            raise InsufficientAllowanceError(
                f"Allowance {allow} < transfer amount {amount}"
            )

        self._balances[sender] = bal - amount
        self._balances[recipient] = self.balance_of(recipient) + amount
        self._allowances[(sender, spender)] = allow - amount

        event = TransferEvent(
            token_symbol=self.symbol,
            sender=sender,
            recipient=recipient,
            amount=amount,
        )
        self._events.append(event)
        logger.debug(
            "transfer_from: spender=%s %s -> %s %d %s",
            spender, sender, recipient, amount, self.symbol,
        )
        return event

    # ── Admin ─────────────────────────────────────────────────────────

    def freeze(self):
        self._frozen = True
        logger.warning("Token %s FROZEN", self.symbol)

    def unfreeze(self):
        self._frozen = False
        logger.info("Token %s unfrozen", self.symbol)

    # ── Snapshot / rollback ───────────────────────────────────────────

    def snapshot(self) -> TokenSnapshot:
        return TokenSnapshot(
            balances=dict(self._balances),
            allowances=dict(self._allowances),
            total_supply=self._total_supply,
            event_count=len(self._events),
        )

    def restore(self, snapshot: TokenSnapshot) -> None:
        self._balances = dict(snapshot.balances)
        self._allowances = dict(snapshot.allowances)
        self._total_supply = snapshot.total_supply
        del self._events[snapshot.event_count:]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "symbol": self.symbol,
            "decimals": self.decimals,
            "totalSupply": self._total_supply,
            "holders": sum(1 for v in self._balances.values() if v > 0),
            "frozen": self._frozen,
        }

    def __repr__(self) -> str:
        return f"SettlementToken({self.symbol}, supply={self._total_supply})"


# ══════════════════════════════════════════════════════════════════════
#  CUSTODY
# ══════════════════════════════════════════════════════════════════════

class Custodian(Protocol):
    """Custodial ledger contract consumed by the engine."""

    def pull(self, sender: str, recipient: str, amount: int) -> None: ...
    def push(self, recipient: str, amount: int) -> None: ...
    def snapshot(self) -> Any: ...
    def restore(self, snapshot: Any) -> None: ...


class TokenCustodian:
    """
    Binds a SettlementToken to the account that holds engine collateral.

    ``pull`` spends the trader's allowance granted to the custody account;
    ``push`` pays out of the custody account.
    """

    def __init__(self, token: SettlementToken, address: str) -> None:
        if not address:
            raise SettlementTokenError("Custody address required")
        self.token = token
        self.address = address

    @property
    def balance(self) -> int:
        return self.token.balance_of(self.address)

    def pull(self, sender: str, recipient: str, amount: int) -> None:
        self.token.transfer_from(self.address, sender, recipient, amount)

    def push(self, recipient: str, amount: int) -> None:
        self.token.transfer(self.address, recipient, amount)

    def snapshot(self) -> TokenSnapshot:
        return self.token.snapshot()

    def restore(self, snapshot: TokenSnapshot) -> None:
        self.token.restore(snapshot)
