"""Tests for the live buy/sell state machine."""

import asyncio
from datetime import timedelta
from unittest.mock import AsyncMock, MagicMock

import pytest

from bandtrader.analysis import BandAnalyzer
from bandtrader.context import RunContext
from bandtrader.errors import (
    ConfigError,
    EmptyInputError,
    InsufficientQuantityError,
    OrderRejectedError,
    PositionBlockedError,
    TransientNetworkError,
)
from bandtrader.events import EventDispatcher
from bandtrader.execution.broker import BrokerClient
from bandtrader.execution.events import (
    CycleCompletedEvent,
    OrderFilledEvent,
    OrderPlacedEvent,
    OrderRejectedEvent,
)
from bandtrader.execution.executor import ExecutionState, PriceBandExecutor, StepOutcome
from bandtrader.types import OrderSide, OrderStatus

from conftest import ACCOUNT, FIGI, NOW, make_series


@pytest.fixture
def market(started_broker):
    """Broker with three 5-minute candles before NOW: band 100.02 / 101.98."""
    start = NOW - timedelta(minutes=15)
    started_broker.add_candles(FIGI, "5MINUTE", make_series([(101, 99), (102, 100), (103, 101)], start))
    return started_broker


@pytest.fixture
def dispatcher():
    return EventDispatcher()


@pytest.fixture
def executor(market, dispatcher):
    return PriceBandExecutor(market, dispatcher=dispatcher, clock=lambda: NOW, poll_interval=0.01)


def _mock_client(instrument):
    client = MagicMock(spec=BrokerClient)
    client.get_instrument = AsyncMock(return_value=instrument)
    client.get_candles = AsyncMock(return_value=[])
    client.get_active_order = AsyncMock(return_value=None)
    client.get_open_position = AsyncMock(return_value=None)
    client.place_order = AsyncMock(return_value="ORDER-1")
    client.get_order_state = AsyncMock(return_value=OrderStatus.NEW)
    return client


# ---------------------------------------------------------------------------
# Full cycles
# ---------------------------------------------------------------------------


async def test_cycle_buys_low_and_sells_high(market, executor, dispatcher, make_params):
    ctx = RunContext(timeout=5)
    placed = []

    def move_market(event):
        placed.append(event)
        market.set_mark_price(FIGI, 100.0 if event.side is OrderSide.BUY else 102.0)

    dispatcher.subscribe(OrderPlacedEvent, move_market)
    dispatcher.subscribe(CycleCompletedEvent, lambda event: ctx.cancel())

    cycles = await executor.run(make_params(), ctx)

    assert cycles == 1
    assert executor.state is ExecutionState.IDLE
    assert [(e.side, e.price, e.quantity) for e in placed] == [
        (OrderSide.BUY, 100.02, 1),
        (OrderSide.SELL, 101.98, 1),
    ]
    assert all(o.status is OrderStatus.FILLED for o in market.orders.values())
    assert await market.get_open_position(ACCOUNT, FIGI) is None


async def test_cycles_repeat_until_cancelled(market, executor, dispatcher, make_params):
    ctx = RunContext(timeout=5)
    completed = []

    def move_market(event):
        market.set_mark_price(FIGI, 100.0 if event.side is OrderSide.BUY else 102.0)

    def on_cycle(event):
        completed.append(event.cycle)
        if event.cycle == 3:
            ctx.cancel()

    dispatcher.subscribe(OrderPlacedEvent, move_market)
    dispatcher.subscribe(CycleCompletedEvent, on_cycle)

    assert await executor.run(make_params(), ctx) == 3
    assert completed == [1, 2, 3]
    assert len(market.orders) == 6


async def test_quantity_capped_by_max_deal_sum(market, executor, dispatcher, make_params):
    ctx = RunContext()
    placed = []
    dispatcher.subscribe(OrderPlacedEvent, lambda event: (placed.append(event), ctx.cancel()))

    # lot 10 at 100.02 -> 1000.2 per lot; 2500 buys 2 of the 5 requested
    await executor.run(make_params(operation_lots=5, max_deal_sum=2500.0), ctx)

    assert placed[0].quantity == 2


# ---------------------------------------------------------------------------
# Buy / sell steps
# ---------------------------------------------------------------------------


async def test_buy_is_idempotent_with_open_position(market, executor, instrument):
    market.set_position(ACCOUNT, FIGI, 3)
    ctx = RunContext()

    first = await executor.buy(ACCOUNT, instrument, 100.0, 1, ctx)
    second = await executor.buy(ACCOUNT, instrument, 100.0, 1, ctx)

    assert first is StepOutcome.ALREADY_HELD
    assert second is StepOutcome.ALREADY_HELD
    assert market.orders == {}


async def test_buy_reuses_active_order(market, executor, instrument):
    existing = await market.place_order(ACCOUNT, FIGI, OrderSide.BUY, 99.0, 1)
    asyncio.get_running_loop().call_later(0.02, market.fill_order, existing)

    outcome = await executor.buy(ACCOUNT, instrument, 100.0, 1, RunContext(timeout=5))

    assert outcome is StepOutcome.FILLED
    assert list(market.orders) == [existing]


async def test_sell_without_order_or_position(market, executor, instrument):
    client_poll = AsyncMock(wraps=market.get_order_state)
    market.get_order_state = client_poll

    outcome = await executor.sell(ACCOUNT, instrument, 101.0, RunContext())

    assert outcome is StepOutcome.NOTHING_TO_SELL
    assert market.orders == {}
    client_poll.assert_not_awaited()


async def test_sell_places_whole_position(market, executor, instrument, dispatcher):
    market.set_position(ACCOUNT, FIGI, 4)
    placed = []
    dispatcher.subscribe(OrderPlacedEvent, placed.append)
    market.set_mark_price(FIGI, 110.0)

    outcome = await executor.sell(ACCOUNT, instrument, 101.0, RunContext(timeout=5))

    assert outcome is StepOutcome.FILLED
    assert placed[0].side is OrderSide.SELL
    assert placed[0].quantity == 4


async def test_sell_reuses_active_order(market, executor, instrument):
    market.set_position(ACCOUNT, FIGI, 2)
    existing = await market.place_order(ACCOUNT, FIGI, OrderSide.SELL, 110.0, 2)
    asyncio.get_running_loop().call_later(0.02, market.fill_order, existing)

    outcome = await executor.sell(ACCOUNT, instrument, 101.0, RunContext(timeout=5))

    assert outcome is StepOutcome.FILLED
    assert list(market.orders) == [existing]
    assert await market.get_open_position(ACCOUNT, FIGI) is None


async def test_blocked_position(market, executor, instrument):
    market.set_position(ACCOUNT, FIGI, 2, exchange_blocked=True)

    with pytest.raises(PositionBlockedError):
        await executor.buy(ACCOUNT, instrument, 100.0, 1, RunContext())


async def test_blocked_position_on_sell(market, executor, instrument):
    market.set_position(ACCOUNT, FIGI, 2, exchange_blocked=True)

    with pytest.raises(PositionBlockedError):
        await executor.sell(ACCOUNT, instrument, 101.0, RunContext())

    assert market.orders == {}


# ---------------------------------------------------------------------------
# Waiting for fills
# ---------------------------------------------------------------------------


async def test_cancelled_while_waiting_returns_without_error(instrument, make_params):
    client = _mock_client(instrument)
    client.get_candles.return_value = make_series(
        [(101, 99), (102, 100), (103, 101)], NOW - timedelta(minutes=15)
    )
    executor = PriceBandExecutor(client, clock=lambda: NOW, poll_interval=0.01)
    ctx = RunContext()
    asyncio.get_running_loop().call_later(0.1, ctx.cancel)

    cycles = await executor.run(make_params(), ctx)

    assert cycles == 0
    assert executor.state is ExecutionState.IDLE
    client.place_order.assert_awaited_once()
    polls = client.get_order_state.await_count
    assert polls >= 1

    await asyncio.sleep(0.05)
    assert client.get_order_state.await_count == polls


async def test_no_polling_once_cancelled(instrument):
    client = _mock_client(instrument)
    executor = PriceBandExecutor(client, poll_interval=0.01)
    ctx = RunContext()
    ctx.cancel()

    assert await executor.wait_for_fill(ACCOUNT, "ORDER-1", ctx) is StepOutcome.CANCELLED
    client.get_order_state.assert_not_awaited()


@pytest.mark.parametrize("status", [OrderStatus.REJECTED, OrderStatus.CANCELLED])
async def test_rejected_order_raises(instrument, status):
    client = _mock_client(instrument)
    client.get_order_state.return_value = status
    dispatcher = EventDispatcher()
    rejected = []
    dispatcher.subscribe(OrderRejectedEvent, rejected.append)
    executor = PriceBandExecutor(client, dispatcher=dispatcher, poll_interval=0.01)

    with pytest.raises(OrderRejectedError) as exc_info:
        await executor.wait_for_fill(ACCOUNT, "ORDER-1", RunContext(timeout=5))

    assert exc_info.value.order_id == "ORDER-1"
    assert rejected[0].reason == status.value


async def test_fill_publishes_event(instrument):
    client = _mock_client(instrument)
    client.get_order_state.side_effect = [OrderStatus.NEW, OrderStatus.NEW, OrderStatus.FILLED]
    dispatcher = EventDispatcher()
    filled = []
    dispatcher.subscribe(OrderFilledEvent, filled.append)
    executor = PriceBandExecutor(client, dispatcher=dispatcher, poll_interval=0.01)

    outcome = await executor.wait_for_fill(ACCOUNT, "ORDER-1", RunContext(timeout=5))

    assert outcome is StepOutcome.FILLED
    assert client.get_order_state.await_count == 3
    assert filled[0].order_id == "ORDER-1"


async def test_rejection_aborts_run(market, executor, dispatcher, make_params):
    dispatcher.subscribe(OrderPlacedEvent, lambda event: market.reject_order(event.order_id))

    with pytest.raises(OrderRejectedError):
        await executor.run(make_params(), RunContext(timeout=5))

    assert executor.state is ExecutionState.FAILED


async def test_rejection_on_placement_passes_through(market, executor, make_params):
    market.reject_next = OrderStatus.REJECTED

    with pytest.raises(OrderRejectedError):
        await executor.run(make_params(), RunContext(timeout=5))


# ---------------------------------------------------------------------------
# Failures before trading
# ---------------------------------------------------------------------------


async def test_invalid_params_fail_before_network(instrument, make_params):
    client = _mock_client(instrument)
    executor = PriceBandExecutor(client)

    with pytest.raises(ConfigError):
        await executor.run(make_params(max_deal_sum=20000.0), RunContext())

    client.get_instrument.assert_not_awaited()
    assert executor.state is ExecutionState.FAILED


async def test_gateway_failure_is_wrapped(instrument, make_params):
    client = _mock_client(instrument)
    client.get_instrument.side_effect = ConnectionError("connection reset")
    executor = PriceBandExecutor(client)

    with pytest.raises(TransientNetworkError) as exc_info:
        await executor.run(make_params(), RunContext())

    assert exc_info.value.operation == "get_instrument"
    assert isinstance(exc_info.value.cause, ConnectionError)


async def test_poll_failure_is_fatal(instrument):
    client = _mock_client(instrument)
    client.get_order_state.side_effect = OSError("network down")
    executor = PriceBandExecutor(client, poll_interval=0.01)

    with pytest.raises(TransientNetworkError, match="get_order_state"):
        await executor.wait_for_fill(ACCOUNT, "ORDER-1", RunContext(timeout=5))


async def test_no_candles(started_broker, make_params):
    executor = PriceBandExecutor(started_broker, clock=lambda: NOW)

    with pytest.raises(EmptyInputError):
        await executor.run(make_params(), RunContext())


async def test_insufficient_quantity(market, executor, make_params):
    with pytest.raises(InsufficientQuantityError):
        await executor.run(make_params(max_deal_sum=500.0), RunContext())

    assert market.orders == {}


async def test_analyzer_errors_are_not_reported_as_network_failures(instrument, make_params):
    client = _mock_client(instrument)
    executor = PriceBandExecutor(client, analyzer=BandAnalyzer(), clock=lambda: NOW)

    with pytest.raises(RuntimeError, match="no market data client") as exc_info:
        await executor.run(make_params(), RunContext())

    assert not isinstance(exc_info.value, TransientNetworkError)
    assert executor.state is ExecutionState.FAILED


async def test_candle_request_failure_names_operation(instrument, make_params):
    client = _mock_client(instrument)
    client.get_candles.side_effect = OSError("connection reset")
    executor = PriceBandExecutor(client, clock=lambda: NOW)

    with pytest.raises(TransientNetworkError) as exc_info:
        await executor.run(make_params(), RunContext())

    assert exc_info.value.operation == "get_candles"
