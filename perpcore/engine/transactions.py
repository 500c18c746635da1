"""
perpcore Transaction Envelope

Defines the request envelope for every market operation submitted through
the dispatcher.

Transaction Types:
  - OPEN_POSITION:   Open a long or short position
  - CLOSE_POSITION:  Close the sender's position
  - LIQUIDATE:       Liquidate another trader's under-margined position
  - UPDATE_PRICE:    Publish a reference price (trusted oracles only)

A per-sender nonce makes a replayed envelope fail instead of re-executing;
the operations themselves are not safe to retry blindly.
"""

from __future__ import annotations

import hashlib
import json
import time
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any, Dict


# ---------------------------------------------------------------------------
# Operation Types
# ---------------------------------------------------------------------------

class PerpOpType(IntEnum):
    """All market operation types.  Values are part of the wire format."""
    OPEN_POSITION = 1
    CLOSE_POSITION = 2
    LIQUIDATE = 3
    UPDATE_PRICE = 4


REQUIRED_PARAMS: Dict[PerpOpType, tuple] = {
    PerpOpType.OPEN_POSITION: ("value", "long"),
    PerpOpType.CLOSE_POSITION: (),
    PerpOpType.LIQUIDATE: ("trader",),
    PerpOpType.UPDATE_PRICE: ("price",),
}


# ---------------------------------------------------------------------------
# Transaction
# ---------------------------------------------------------------------------

@dataclass
class PerpTransaction:
    """
    Envelope for a single market operation.

    ``sender`` is the acting principal: the trader for open/close, the
    liquidator for liquidate, the oracle identity for price updates.
    """
    op_type: PerpOpType
    sender: str
    nonce: int
    params: Dict[str, Any] = field(default_factory=dict)
    timestamp: float = 0.0

    # --- Computed after execution ---
    success: bool = False
    result: Dict[str, Any] = field(default_factory=dict)
    error: str = ""

    def __post_init__(self):
        if self.timestamp == 0.0:
            self.timestamp = time.time()

    # -- Hashing ------------------------------------------------------------

    def tx_hash(self) -> str:
        """Deterministic transaction hash."""
        return hashlib.blake2b(self._canonical_bytes(), digest_size=32).hexdigest()

    def _canonical_bytes(self) -> bytes:
        params_json = json.dumps(self.params, sort_keys=True, default=str).encode("utf-8")
        parts = [
            self.op_type.to_bytes(1, "big"),
            self.sender.encode("utf-8"),
            self.nonce.to_bytes(8, "big"),
            params_json,
        ]
        return b"".join(parts)

    # -- Serialization ------------------------------------------------------

    def to_dict(self) -> Dict[str, Any]:
        return {
            "op_type": int(self.op_type),
            "sender": self.sender,
            "nonce": self.nonce,
            "params": self.params,
            "timestamp": self.timestamp,
            "tx_hash": self.tx_hash(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> PerpTransaction:
        return cls(
            op_type=PerpOpType(data["op_type"]),
            sender=data["sender"],
            nonce=data["nonce"],
            params=data.get("params", {}),
            timestamp=data.get("timestamp", 0.0),
        )

    # -- Validation ---------------------------------------------------------

    def validate_basic(self) -> bool:
        """
        Structural validation (no state access needed).

        Raises:
            ValueError: with specific reason
        """
        if not self.sender:
            raise ValueError("Missing sender address")
        if self.nonce < 0:
            raise ValueError("Nonce must be non-negative")
        if self.op_type not in PerpOpType:
            raise ValueError(f"Unknown operation type: {self.op_type}")

        for key in REQUIRED_PARAMS[self.op_type]:
            if key not in self.params:
                raise ValueError(f"{self.op_type.name} missing param: {key}")
        return True

    def __repr__(self) -> str:
        return (f"PerpTransaction(op={self.op_type.name}, sender={self.sender[:16]}, "
                f"nonce={self.nonce}, hash={self.tx_hash()[:12]}...)")
