"""
Live order execution for the price band strategy.

One cycle: validate -> fetch instrument -> compute band -> buy -> wait for
fill -> sell -> wait for fill. Cycles repeat until the run is cancelled or
a step fails.
"""

import logging
from datetime import datetime
from enum import Enum
from typing import Awaitable, Callable, TypeVar

from bandtrader.analysis import BandAnalyzer, PriceBand
from bandtrader.config import TradeParams
from bandtrader.context import RunContext
from bandtrader.errors import (
    InsufficientQuantityError,
    OrderRejectedError,
    PositionBlockedError,
    call_collaborator,
)
from bandtrader.events import EventDispatcher
from bandtrader.execution.broker import BrokerClient, Position
from bandtrader.execution.events import (
    CycleCompletedEvent,
    OrderFilledEvent,
    OrderPlacedEvent,
    OrderRejectedEvent,
)
from bandtrader.marketdata.instrument import Instrument
from bandtrader.sizing import calc_lot_count
from bandtrader.time_utils import utc_now
from bandtrader.types import OrderSide


log = logging.getLogger(__name__)


__all__ = [
    "ExecutionState",
    "PriceBandExecutor",
    "StepOutcome",
]


T = TypeVar("T")


class ExecutionState(str, Enum):
    IDLE = "idle"
    VALIDATING = "validating"
    FETCHING_INSTRUMENT = "fetching_instrument"
    COMPUTING_BAND = "computing_band"
    BUYING = "buying"
    WAITING_BUY_FILL = "waiting_buy_fill"
    SELLING = "selling"
    WAITING_SELL_FILL = "waiting_sell_fill"
    FAILED = "failed"


class StepOutcome(str, Enum):
    """Non-error result of a buy, sell or wait step."""

    FILLED = "filled"
    ALREADY_HELD = "already_held"  # buy found an open position
    NOTHING_TO_SELL = "nothing_to_sell"  # sell found no order and no position
    CANCELLED = "cancelled"


class PriceBandExecutor:
    """
    Drives buy/sell cycles against an order gateway.

    Buy and sell steps are idempotent: an active order for the instrument is
    awaited instead of placing another, and an open position counts as
    already bought.

    Example:
        executor = PriceBandExecutor(client)
        cycles = await executor.run(params, RunContext(timeout=300))
    """

    # Seconds between order status polls
    POLL_INTERVAL = 10.0

    def __init__(
        self,
        client: BrokerClient,
        analyzer: BandAnalyzer | None = None,
        dispatcher: EventDispatcher | None = None,
        clock: Callable[[], datetime] = utc_now,
        poll_interval: float | None = None,
    ):
        self.client = client
        self.analyzer = analyzer if analyzer is not None else BandAnalyzer(client)
        self.dispatcher = dispatcher if dispatcher is not None else EventDispatcher()
        self.clock = clock
        self.poll_interval = self.POLL_INTERVAL if poll_interval is None else float(poll_interval)
        self.state = ExecutionState.IDLE

    def _transition(self, state: ExecutionState) -> None:
        log.debug("Executor %s -> %s", self.state.value, state.value)
        self.state = state

    async def _call(self, operation: str, awaitable: Awaitable[T]) -> T:
        return await call_collaborator(operation, awaitable)

    # ------------------------------------------------------------------
    # Run loop
    # ------------------------------------------------------------------

    async def run(self, params: TradeParams, ctx: RunContext) -> int:
        """
        Trade until ``ctx`` is cancelled.

        Returns:
            Number of completed buy/sell cycles.

        Raises:
            BandTraderError: Any failing step aborts the run.
        """
        cycles = 0
        while not ctx.cancelled:
            try:
                finished = await self.run_cycle(params, ctx)
            except Exception:
                self._transition(ExecutionState.FAILED)
                raise

            if not finished:
                break

            cycles += 1
            log.info("Cycle %d completed for %s", cycles, params.instrument_id)
            await self.dispatcher.publish(
                CycleCompletedEvent(
                    account_id=params.account_id,
                    instrument_id=params.instrument_id,
                    cycle=cycles,
                )
            )

        log.info("Strategy cancelled after %d cycle%s", cycles, "s" if cycles != 1 else "")
        self._transition(ExecutionState.IDLE)
        return cycles

    async def run_cycle(self, params: TradeParams, ctx: RunContext) -> bool:
        """One buy-then-sell cycle. Returns False if cancelled while waiting."""
        self._transition(ExecutionState.VALIDATING)
        params.validate()

        self._transition(ExecutionState.FETCHING_INSTRUMENT)
        instrument = await self._call(
            "get_instrument", self.client.get_instrument(params.instrument_id)
        )

        self._transition(ExecutionState.COMPUTING_BAND)
        band = await self._compute_band(params, instrument)

        quantity = calc_lot_count(
            params.max_deal_sum, band.buy_price, instrument.lot, params.operation_lots
        )
        if quantity < 1:
            raise InsufficientQuantityError(
                f"max_deal_sum {params.max_deal_sum} buys less than one lot of "
                f"{instrument} at {band.buy_price}"
            )

        self._transition(ExecutionState.BUYING)
        outcome = await self.buy(params.account_id, instrument, band.buy_price, quantity, ctx)
        if outcome is StepOutcome.CANCELLED:
            return False

        self._transition(ExecutionState.SELLING)
        outcome = await self.sell(params.account_id, instrument, band.sell_price, ctx)
        if outcome is StepOutcome.CANCELLED:
            return False
        if outcome is StepOutcome.NOTHING_TO_SELL:
            log.warning("Nothing to sell for %s on account %s", instrument, params.account_id)

        return True

    async def _compute_band(self, params: TradeParams, instrument: Instrument) -> PriceBand:
        end = self.clock()
        start = end - params.analysis_period
        band = await self.analyzer.analyze(
            instrument.figi, start, end, params.sampling_interval
        )
        log.info(
            "Band for %s: buy=%.2f sell=%.2f", instrument, band.buy_price, band.sell_price
        )
        return band

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    async def buy(
        self,
        account_id: str,
        instrument: Instrument,
        price: float,
        quantity: int,
        ctx: RunContext,
    ) -> StepOutcome:
        """Buy ``quantity`` lots at ``price`` unless already bought."""
        order = await self._call(
            "get_active_order", self.client.get_active_order(account_id, instrument.figi)
        )
        if order is not None:
            log.info("Reusing active order %s for %s", order.order_id, instrument)
            order_id = order.order_id
        else:
            position = await self._open_position(account_id, instrument)
            if position is not None:
                log.warning(
                    "Found open position of %d lots for %s on account %s",
                    position.balance,
                    instrument,
                    account_id,
                )
                return StepOutcome.ALREADY_HELD

            order_id = await self._place(account_id, instrument, OrderSide.BUY, price, quantity)

        self._transition(ExecutionState.WAITING_BUY_FILL)
        return await self.wait_for_fill(account_id, order_id, ctx)

    async def sell(
        self,
        account_id: str,
        instrument: Instrument,
        price: float,
        ctx: RunContext,
    ) -> StepOutcome:
        """Sell the whole open position at ``price``."""
        order = await self._call(
            "get_active_order", self.client.get_active_order(account_id, instrument.figi)
        )
        if order is not None:
            log.info("Reusing active order %s for %s", order.order_id, instrument)
            order_id = order.order_id
        else:
            position = await self._open_position(account_id, instrument)
            if position is None:
                return StepOutcome.NOTHING_TO_SELL

            order_id = await self._place(
                account_id, instrument, OrderSide.SELL, price, position.balance
            )

        self._transition(ExecutionState.WAITING_SELL_FILL)
        return await self.wait_for_fill(account_id, order_id, ctx)

    async def wait_for_fill(self, account_id: str, order_id: str, ctx: RunContext) -> StepOutcome:
        """
        Poll the order until it fills.

        Each poll waits ``poll_interval`` seconds first; cancellation wins the
        race against the timer. There is no retry limit.

        Raises:
            OrderRejectedError: The gateway reports the order rejected or cancelled.
        """
        log.info("Waiting for order %s on account %s", order_id, account_id)

        while True:
            if not await ctx.sleep(self.poll_interval):
                log.info("Stopped waiting for order %s: run cancelled", order_id)
                return StepOutcome.CANCELLED

            status = await self._call(
                "get_order_state", self.client.get_order_state(account_id, order_id)
            )

            if status.is_failed:
                await self.dispatcher.publish(
                    OrderRejectedEvent(account_id=account_id, order_id=order_id, reason=status.value)
                )
                raise OrderRejectedError(f"Order {order_id} is {status.value}", order_id=order_id)

            if status.is_terminal:
                log.info("Order %s filled", order_id)
                await self.dispatcher.publish(
                    OrderFilledEvent(account_id=account_id, order_id=order_id)
                )
                return StepOutcome.FILLED

            log.debug("Order %s still %s", order_id, status.value)

    async def _open_position(self, account_id: str, instrument: Instrument) -> Position | None:
        position = await self._call(
            "get_open_position", self.client.get_open_position(account_id, instrument.figi)
        )
        if position is None:
            return None
        if position.exchange_blocked:
            raise PositionBlockedError(f"Position in {instrument} is blocked by the exchange")
        return position if position.balance > 0 else None

    async def _place(
        self,
        account_id: str,
        instrument: Instrument,
        side: OrderSide,
        price: float,
        quantity: int,
    ) -> str:
        log.info(
            "Placing %s order for %s: %d lots at %.2f", side.value, instrument, quantity, price
        )
        order_id = await self._call(
            "place_order",
            self.client.place_order(account_id, instrument.figi, side, price, quantity),
        )
        await self.dispatcher.publish(
            OrderPlacedEvent(
                account_id=account_id,
                instrument_id=instrument.figi,
                order_id=order_id,
                side=side,
                price=price,
                quantity=quantity,
            )
        )
        return order_id
