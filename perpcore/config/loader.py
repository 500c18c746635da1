"""
perpcore Market Configuration Loader

Loads the one-time market parameters from a TOML file with environment
variable overrides.

Environment variable mapping:
    [market] asset              → PERP_ASSET
    [market] leverage           → PERP_LEVERAGE
    [market] settlement_token   → PERP_SETTLEMENT_TOKEN
    [market] oracle             → PERP_ORACLE
    [market] margin_requirement → PERP_MARGIN_REQUIREMENT
    [market] allow_overwrite    → PERP_ALLOW_OVERWRITE
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

try:
    import tomllib as tomli  # Python 3.11+
except ImportError:
    import tomli  # type: ignore[no-redef]

from ..constants import BASIS_POINTS, DEFAULT_LEVERAGE, DEFAULT_MARGIN_REQUIREMENT, parse_flag
from ..exceptions import ConfigurationError

logger = logging.getLogger(__name__)


def _coerce(key: str, raw: Any, convert):
    """Convert one setting, reporting the offending key on failure."""
    try:
        return convert(raw)
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"{key}: {e}") from e


@dataclass
class MarketConfig:
    """[market] section."""
    asset: str = ""
    leverage: int = DEFAULT_LEVERAGE
    settlement_token: str = ""
    oracle: str = ""
    margin_requirement: int = DEFAULT_MARGIN_REQUIREMENT
    allow_overwrite: bool = False

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MarketConfig":
        # Accept either a full document or the bare [market] table
        data = data.get("market", data)
        return cls(
            asset=data.get("asset", ""),
            leverage=_coerce("leverage", data.get("leverage", DEFAULT_LEVERAGE), int),
            settlement_token=data.get("settlement_token", ""),
            oracle=data.get("oracle", ""),
            margin_requirement=_coerce(
                "margin_requirement",
                data.get("margin_requirement", DEFAULT_MARGIN_REQUIREMENT),
                int,
            ),
            allow_overwrite=_coerce("allow_overwrite", data.get("allow_overwrite", False), parse_flag),
        )

    @classmethod
    def from_file(cls, path: str) -> "MarketConfig":
        """
        Load from a TOML file, then apply environment overrides.

        A missing file yields defaults (with env overrides).
        """
        p = Path(path)
        if p.is_file():
            with p.open("rb") as f:
                data = tomli.load(f)
            logger.info("Loaded market config from %s", p)
        else:
            logger.info("Market config %s not found, using defaults", p)
            data = {}
        config = cls.from_dict(data)
        config.apply_env()
        return config

    def apply_env(self) -> None:
        """Override from environment variables."""
        if v := os.environ.get("PERP_ASSET"):
            self.asset = v
        if v := os.environ.get("PERP_LEVERAGE"):
            self.leverage = _coerce("PERP_LEVERAGE", v, int)
        if v := os.environ.get("PERP_SETTLEMENT_TOKEN"):
            self.settlement_token = v
        if v := os.environ.get("PERP_ORACLE"):
            self.oracle = v
        if v := os.environ.get("PERP_MARGIN_REQUIREMENT"):
            self.margin_requirement = _coerce("PERP_MARGIN_REQUIREMENT", v, int)
        if v := os.environ.get("PERP_ALLOW_OVERWRITE"):
            self.allow_overwrite = _coerce("PERP_ALLOW_OVERWRITE", v, parse_flag)

    def validate(self) -> bool:
        """
        Validate the market parameters.

        Returns:
            True if valid

        Raises:
            ConfigurationError: on invalid config
        """
        if not self.asset:
            raise ConfigurationError("asset is required")
        if self.leverage <= 0:
            raise ConfigurationError(f"leverage must be positive, got {self.leverage}")
        if not self.settlement_token:
            raise ConfigurationError("settlement_token is required")
        if not self.oracle:
            raise ConfigurationError("oracle is required")
        if not 0 < self.margin_requirement <= BASIS_POINTS:
            raise ConfigurationError(
                f"margin_requirement must be in (0, {BASIS_POINTS}], got {self.margin_requirement}"
            )
        return True

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to dict (for diagnostics, NOT for re-creating TOML)."""
        return {
            "market": {
                "asset": self.asset,
                "leverage": self.leverage,
                "settlement_token": self.settlement_token,
                "oracle": self.oracle,
                "margin_requirement": self.margin_requirement,
                "allow_overwrite": self.allow_overwrite,
            }
        }


def load_config(path: Optional[str] = None) -> MarketConfig:
    """
    Load market configuration.

    Resolution order:
        1. Explicit *path* argument
        2. PERP_CONFIG env var
        3. ./perp.toml in current directory
        4. Defaults (with env overrides)
    """
    if path is None:
        path = os.environ.get("PERP_CONFIG", "perp.toml")

    return MarketConfig.from_file(path)
