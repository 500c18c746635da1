"""
perpcore Package

Leveraged-position accounting engine for a single-asset perpetual market.

Core imports are lazily loaded so that importing the package does not
configure logging or read ``.env``. For direct module access, import from
submodules:

    from perpcore.engine import TradeLifecycle, create_market
    from perpcore.config import MarketConfig
    from perpcore.exceptions import ZeroValueError
"""

__version__ = "0.1.0"


def __getattr__(name):
    """Lazy module loading."""
    if name == 'TradeLifecycle':
        from .engine import TradeLifecycle
        return TradeLifecycle
    elif name == 'create_market':
        from .engine import create_market
        return create_market
    elif name == 'MarketConfig':
        from .config import MarketConfig
        return MarketConfig
    elif name == 'PerpError':
        from .exceptions import PerpError
        return PerpError
    raise AttributeError(f"module 'perpcore' has no attribute {name!r}")

__all__ = ['TradeLifecycle', 'create_market', 'MarketConfig', 'PerpError']
