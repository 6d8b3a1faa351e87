"""
Day-replay simulation of the price band strategy.

Replays yesterday's candles, computes a band whenever the analysis queue is
full, and tracks virtual orders against later candles. No orders reach the
gateway.
"""

import logging
from collections import deque
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Iterable

from bandtrader.analysis import BandAnalyzer
from bandtrader.config import TradeParams
from bandtrader.context import RunContext
from bandtrader.errors import call_collaborator
from bandtrader.execution.broker import MarketDataClient
from bandtrader.marketdata.candle import Candle
from bandtrader.marketdata.instrument import Instrument
from bandtrader.report import Report, SimulationSummary, TickRecord
from bandtrader.time_utils import previous_day_window, utc_now


log = logging.getLogger(__name__)


__all__ = [
    "SimulatedOrder",
    "SimulationHarness",
    "summarise",
]


@dataclass
class SimulatedOrder:
    """A virtual round trip; flags flip as later candles cross its prices."""
    buy_price: float
    sell_price: float
    quantity: int  # shares
    is_purchased: bool = False
    is_sold: bool = False

    @property
    def buy_sum(self) -> float:
        return self.buy_price * self.quantity

    @property
    def sell_sum(self) -> float:
        return self.sell_price * self.quantity

    @property
    def profit(self) -> float:
        return self.sell_sum - self.buy_sum

    def observe(self, candle: Candle) -> None:
        """Buy if the candle trades the buy price, else sell if it trades the sell price."""
        if not self.is_purchased:
            if candle.contains(self.buy_price):
                self.is_purchased = True
            return
        if not self.is_sold and candle.contains(self.sell_price):
            self.is_sold = True


def summarise(
    orders: Iterable[SimulatedOrder],
    quantity: int,
    last_price: float,
) -> SimulationSummary:
    """Aggregate order outcomes; unsold holdings are valued at ``last_price``."""
    orders = list(orders)
    profit = on_market = not_taken = 0.0
    on_market_qty = 0

    for order in orders:
        if order.is_sold:
            profit += order.profit
        elif order.is_purchased:
            on_market += order.buy_sum
            on_market_qty += order.quantity
        else:
            not_taken += order.buy_sum

    last_value = on_market_qty * last_price
    return SimulationSummary(
        quantity_per_operation=quantity,
        orders=len(orders),
        purchased=sum(1 for o in orders if o.is_purchased),
        sold=sum(1 for o in orders if o.is_sold),
        profit=profit,
        on_market_value=on_market,
        not_taken_value=not_taken,
        last_price_value=last_value,
        last_price_profit=last_value - on_market,
    )


class SimulationHarness:
    """
    Replays one day of history through the band analyzer.

    Example:
        harness = SimulationHarness(client)
        report = await harness.simulate(params, instrument)
    """

    def __init__(
        self,
        market_data: MarketDataClient,
        analyzer: BandAnalyzer | None = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.market_data = market_data
        self.analyzer = analyzer if analyzer is not None else BandAnalyzer()
        self.clock = clock

    async def simulate(
        self,
        params: TradeParams,
        instrument: Instrument,
        ctx: RunContext | None = None,
    ) -> Report:
        """
        Replay yesterday's candles for ``instrument``.

        The finished report is returned and published to
        ``params.report_sink``. If the replay fails or is cancelled, the
        partial report is published with ``complete=False`` before the
        error propagates.
        """
        start, end = previous_day_window(self.clock())
        candles = await call_collaborator(
            "get_candles",
            self.market_data.get_candles(instrument.figi, start, end, params.sampling_interval),
        )
        log.info(
            "Simulating %s over %s - %s: %d candles",
            instrument,
            start.isoformat(),
            end.isoformat(),
            len(candles),
        )

        report = Report(instrument_id=instrument.figi)
        try:
            report.summary = self.replay(params, instrument, candles, report, ctx)
            report.complete = ctx is None or not ctx.cancelled
        finally:
            params.report_sink.publish(report)
        return report

    def replay(
        self,
        params: TradeParams,
        instrument: Instrument,
        candles: Iterable[Candle],
        report: Report,
        ctx: RunContext | None = None,
    ) -> SimulationSummary:
        """Run the candle loop, recording ticks into ``report``."""
        quantity = instrument.lot * params.simulated_lot_multiplier
        queue_size = params.queue_size
        queue: deque[Candle] = deque()
        orders: list[SimulatedOrder] = []
        last_price = 0.0

        for candle in candles:
            if ctx is not None and ctx.cancelled:
                log.info("Simulation cancelled")
                break

            for order in orders:
                order.observe(candle)

            if not candle.is_complete:
                continue

            tick = TickRecord(market_high=candle.high, market_low=candle.low)

            if len(queue) > queue_size:
                band = self.analyzer.from_candles(queue)
                tick = TickRecord(
                    market_high=candle.high,
                    market_low=candle.low,
                    calculated_buy=band.buy_price,
                    calculated_sell=band.sell_price,
                )
                order = SimulatedOrder(
                    buy_price=band.buy_price,
                    sell_price=band.sell_price,
                    quantity=quantity,
                )
                if order.profit < params.min_profit:
                    log.info(
                        "Period skipped: buy=%.2f sell=%.2f qty=%d profit=%.2f",
                        order.buy_price,
                        order.sell_price,
                        quantity,
                        order.profit,
                    )
                else:
                    orders.append(order)
                    log.info(
                        "Recommended prices: buy=%.2f sell=%.2f qty=%d profit=%.2f",
                        order.buy_price,
                        order.sell_price,
                        quantity,
                        order.profit,
                    )
                queue.popleft()

            log.debug(
                "Added candle: high=%.2f low=%.2f volume=%.0f",
                candle.high,
                candle.low,
                candle.volume,
            )
            queue.append(candle)
            report.record(tick)
            last_price = candle.high

        summary = summarise(orders, quantity, last_price)
        log.info("Buy result: %d/%d filled", summary.purchased, summary.orders)
        log.info("Sell result: %d/%d filled", summary.sold, summary.orders)
        log.info("Quantity per operation: %d", summary.quantity_per_operation)
        log.info("Profit: %.2f", summary.profit)
        log.info("Still on market: %.2f", summary.on_market_value)
        log.info("Not taken: %.2f", summary.not_taken_value)
        log.info("Sale at last price: %.2f", summary.last_price_value)
        log.info("Profit on sale at last price: %.2f", summary.last_price_profit)
        return summary
