"""
perpcore Market Configuration

Loads the [market] section of perp.toml.
Environment variables override TOML values.
"""

from .loader import (
    MarketConfig,
    load_config,
)

__all__ = [
    "MarketConfig",
    "load_config",
]
