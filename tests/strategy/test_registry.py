"""Tests for strategy registration."""

import pytest

from bandtrader.errors import ConfigError
from bandtrader.strategy import PriceBandStrategy, Strategy, StrategyRegistry, default_registry


class HoldStrategy(Strategy):
    name = "Hold"

    async def run(self, params, ctx):
        return None


def test_register_and_create(broker):
    registry = StrategyRegistry()
    registry.register("hold", HoldStrategy)

    strategy = registry.create("hold", broker)

    assert isinstance(strategy, HoldStrategy)
    assert strategy.client is broker
    assert "hold" in registry


def test_register_as_decorator(broker):
    registry = StrategyRegistry()

    @registry.register("decorated")
    class Decorated(HoldStrategy):
        name = "Decorated"

    assert registry.names() == ["decorated"]
    assert registry.create("decorated", broker).name == "Decorated"


def test_factory_can_be_any_callable(broker):
    registry = StrategyRegistry()
    registry.register("band-fast", lambda client: PriceBandStrategy(client))

    assert isinstance(registry.create("band-fast", broker), PriceBandStrategy)


def test_duplicate_key():
    registry = StrategyRegistry()
    registry.register("hold", HoldStrategy)
    with pytest.raises(ValueError, match="already registered"):
        registry.register("hold", HoldStrategy)


def test_unknown_key_lists_available(broker):
    registry = StrategyRegistry()
    registry.register("hold", HoldStrategy)

    with pytest.raises(ConfigError, match="available: hold"):
        registry.create("missing", broker)


def test_default_registry_has_band():
    registry = default_registry()
    assert registry.names() == ["band"]


def test_strategy_is_abstract(broker):
    with pytest.raises(TypeError):
        Strategy(broker)
