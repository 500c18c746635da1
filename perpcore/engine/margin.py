"""
Margin evaluation for liquidation eligibility.
"""

from __future__ import annotations

from ..constants import BASIS_POINTS


def margin_ratio(settlement: int, value: int) -> int:
    """Settlement expressed in basis points of the original collateral."""
    return (settlement * BASIS_POINTS) // value


def is_liquidatable(settlement: int, value: int, margin_requirement: int) -> bool:
    """A position may be liquidated only when its ratio is strictly below the requirement."""
    return margin_ratio(settlement, value) < margin_requirement
