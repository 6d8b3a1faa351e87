"""
Bandtrader - price band trading on candle history.

Computes a buy/sell band from recent candles, trades it through a brokerage
order gateway, or replays a day of history to estimate the outcome.
"""

__version__ = "0.1.0"

from .errors import (
    BandTraderError,
    ConfigError,
    EmptyInputError,
    InsufficientQuantityError,
    OrderRejectedError,
    PositionBlockedError,
    TransientNetworkError,
)
from .types import OrderSide, OrderStatus
from .marketdata import Candle, Instrument, InstrumentDirectory
from .analysis import BandAnalyzer, PriceBand, compute_band
from .report import Report, ReportSink, SimulationSummary, TickRecord
from .config import TradeParams
from .context import RunContext
from .execution import BrokerClient, PriceBandExecutor
from .simulation import SimulationHarness
from .strategy import PriceBandStrategy, Strategy, StrategyRegistry, default_registry
from .runner import configure_logging, run_strategy, run_strategy_async

__all__ = [
    "BandAnalyzer",
    "BandTraderError",
    "BrokerClient",
    "Candle",
    "ConfigError",
    "EmptyInputError",
    "Instrument",
    "InstrumentDirectory",
    "InsufficientQuantityError",
    "OrderRejectedError",
    "OrderSide",
    "OrderStatus",
    "PositionBlockedError",
    "PriceBand",
    "PriceBandExecutor",
    "PriceBandStrategy",
    "Report",
    "ReportSink",
    "RunContext",
    "SimulationHarness",
    "SimulationSummary",
    "Strategy",
    "StrategyRegistry",
    "TickRecord",
    "TradeParams",
    "TransientNetworkError",
    "__version__",
    "compute_band",
    "configure_logging",
    "default_registry",
    "run_strategy",
    "run_strategy_async",
]
