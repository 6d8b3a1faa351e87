"""
Strategy contract and registry.

A strategy is anything with a ``name`` and an async ``run(params, ctx)``.
Strategies are looked up by key in a ``StrategyRegistry``; new strategies
register a factory instead of touching the dispatcher.
"""

import abc
import logging
from typing import Callable

from bandtrader.config import TradeParams
from bandtrader.context import RunContext
from bandtrader.errors import ConfigError
from bandtrader.execution.broker import BrokerClient
from bandtrader.report import Report


log = logging.getLogger(__name__)


__all__ = ["Strategy", "StrategyFactory", "StrategyRegistry"]


class Strategy(abc.ABC):
    """
    Base class for trading strategies.

    Example:
        class HoldStrategy(Strategy):
            name = "Hold"

            async def run(self, params, ctx):
                await ctx.sleep(60)
                return None
    """

    name: str = ""

    def __init__(self, client: BrokerClient):
        self.client = client

    @abc.abstractmethod
    async def run(self, params: TradeParams, ctx: RunContext) -> Report | None:
        """
        Run the strategy until it finishes or ``ctx`` is cancelled.

        Returns:
            The simulation report when simulating, otherwise None.
        """
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name={self.name!r})"


StrategyFactory = Callable[[BrokerClient], Strategy]


class StrategyRegistry:
    """Maps strategy keys to factories."""

    def __init__(self) -> None:
        self._factories: dict[str, StrategyFactory] = {}

    def register(self, key: str, factory: StrategyFactory | None = None):
        """
        Register ``factory`` under ``key``.

        Usable directly (``registry.register("band", PriceBandStrategy)``) or
        as a class decorator (``@registry.register("band")``).
        """
        if factory is None:
            def decorator(f: StrategyFactory) -> StrategyFactory:
                self.register(key, f)
                return f
            return decorator

        if key in self._factories:
            raise ValueError(f"Strategy {key!r} already registered")
        self._factories[key] = factory
        log.debug("Registered strategy %s", key)
        return factory

    def create(self, key: str, client: BrokerClient) -> Strategy:
        factory = self._factories.get(key)
        if factory is None:
            raise ConfigError(
                f"Unknown strategy {key!r}; available: {', '.join(self.names()) or '(none)'}"
            )
        return factory(client)

    def names(self) -> list[str]:
        return sorted(self._factories)

    def __contains__(self, key: object) -> bool:
        return key in self._factories
