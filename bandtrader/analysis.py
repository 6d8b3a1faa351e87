"""Price band analysis.

Turns a short window of completed candles into a limit-price band: buy a
little above the average low, sell a little below the average high.
"""

import logging
import math
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, Iterable

from bandtrader.errors import EmptyInputError, call_collaborator
from bandtrader.marketdata.candle import Candle
from bandtrader.marketdata.window import CandleWindow

if TYPE_CHECKING:
    from bandtrader.execution.broker import MarketDataClient


log = logging.getLogger(__name__)


__all__ = [
    "BandAnalyzer",
    "DEFAULT_SPREAD_RATIO",
    "DEFAULT_WINDOW_SIZE",
    "PriceBand",
    "compute_band",
]


DEFAULT_WINDOW_SIZE = 3
DEFAULT_SPREAD_RATIO = 0.01


@dataclass(frozen=True)
class PriceBand:
    """Recommended limit prices."""
    buy_price: float
    sell_price: float

    @property
    def spread(self) -> float:
        return self.sell_price - self.buy_price


def _round_half_away(x: float) -> float:
    # round() in Python is half-to-even; prices round half away from zero.
    return math.copysign(math.floor(abs(x) + 0.5), x)


def _snap(x: float) -> float:
    # Drop float noise so 100.1 * 100 floors to 10010, not 10009.
    return round(x, 6)


def compute_band(
    candles: Iterable[Candle],
    window_size: int = DEFAULT_WINDOW_SIZE,
    spread_ratio: float = DEFAULT_SPREAD_RATIO,
) -> PriceBand:
    """
    Compute the buy/sell band from the most recent completed candles.

    The last ``window_size`` completed candles are averaged into
    ``min_avg`` (lows) and ``max_avg`` (highs). The band is pulled inwards by
    ``delta_p``, ``spread_ratio`` of the spread rounded to a cent, then buy
    rounds up and sell rounds down to two decimals.

    Raises:
        EmptyInputError: If no completed candle is present.
    """
    window = CandleWindow.from_candles(candles, capacity=window_size)
    if not len(window):
        raise EmptyInputError("No completed candles to analyze")

    min_avg = window.lows.mean()
    max_avg = window.highs.mean()
    delta = max_avg - min_avg
    delta_p = _round_half_away(delta * spread_ratio * 100) / 100

    low_edge = min_avg + delta_p
    high_edge = max_avg - delta_p
    buy_price = math.ceil(_snap(low_edge * 100)) / 100
    sell_price = math.floor(_snap(high_edge * 100)) / 100

    if buy_price > sell_price and delta >= 0:
        # Both edges sit inside one cent; quote a single price.
        mid = _round_half_away(_snap((low_edge + high_edge) / 2 * 100)) / 100
        buy_price = sell_price = mid

    return PriceBand(buy_price=buy_price, sell_price=sell_price)


class BandAnalyzer:
    """
    Band computation bound to a market data source.

    Example:
        analyzer = BandAnalyzer(client)
        band = await analyzer.analyze(figi, start, end, "5MINUTE")
    """

    def __init__(
        self,
        market_data: "MarketDataClient | None" = None,
        window_size: int = DEFAULT_WINDOW_SIZE,
        spread_ratio: float = DEFAULT_SPREAD_RATIO,
    ):
        self.market_data = market_data
        self.window_size = window_size
        self.spread_ratio = spread_ratio

    async def analyze(
        self,
        instrument_id: str,
        start: datetime,
        end: datetime,
        period: str,
    ) -> PriceBand:
        """Fetch candles for ``[start, end)`` and compute the band.

        Raises:
            TransientNetworkError: The candle request failed.
            EmptyInputError: No candles in the range.
        """
        if self.market_data is None:
            raise RuntimeError("BandAnalyzer has no market data client")

        candles = await call_collaborator(
            "get_candles", self.market_data.get_candles(instrument_id, start, end, period)
        )
        if not candles:
            raise EmptyInputError(
                f"No candles for {instrument_id} between {start.isoformat()} and {end.isoformat()}"
            )
        band = self.from_candles(candles)
        log.debug("Band for %s from %d candles: %s", instrument_id, len(candles), band)
        return band

    def from_candles(self, candles: Iterable[Candle]) -> PriceBand:
        return compute_band(candles, window_size=self.window_size, spread_ratio=self.spread_ratio)
