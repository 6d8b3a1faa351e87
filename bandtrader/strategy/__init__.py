from .base import Strategy, StrategyFactory, StrategyRegistry
from .price_band import PriceBandStrategy

__all__ = [
    "PriceBandStrategy",
    "Strategy",
    "StrategyFactory",
    "StrategyRegistry",
    "default_registry",
]


def default_registry() -> StrategyRegistry:
    """Registry with the built-in strategies."""
    registry = StrategyRegistry()
    registry.register("band", PriceBandStrategy)
    return registry
