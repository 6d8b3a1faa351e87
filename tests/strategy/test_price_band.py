"""Tests for the price band strategy entry point."""

from datetime import datetime, timezone
from unittest.mock import AsyncMock

import pytest

from bandtrader.context import RunContext
from bandtrader.errors import ConfigError, TransientNetworkError
from bandtrader.strategy import PriceBandStrategy

from conftest import FIGI, make_series


async def test_live_run_delegates_to_executor(broker, make_params):
    strategy = PriceBandStrategy(broker)
    strategy.executor.run = AsyncMock(return_value=2)
    params = make_params()
    ctx = RunContext()

    assert await strategy.run(params, ctx) is None
    strategy.executor.run.assert_awaited_once_with(params, ctx)


async def test_simulated_run_returns_report(broker, make_params):
    broker.add_candles(
        FIGI,
        "5MINUTE",
        make_series([(102, 98)] * 5, datetime(2024, 3, 4, 10, 0, tzinfo=timezone.utc)),
    )
    strategy = PriceBandStrategy(broker)
    strategy.harness.clock = lambda: datetime(2024, 3, 5, 9, 30, tzinfo=timezone.utc)
    params = make_params(simulate=True, simulated_lot_multiplier=2)

    report = await strategy.run(params, RunContext())

    assert report is params.report_sink.report
    assert len(report.ticks) == 5
    assert report.summary.quantity_per_operation == 20
    assert report.summary.orders == 1


async def test_invalid_params_rejected_before_any_call(broker, make_params):
    strategy = PriceBandStrategy(broker)
    broker.get_instrument = AsyncMock()

    with pytest.raises(ConfigError):
        await strategy.run(make_params(simulate=True), RunContext())

    broker.get_instrument.assert_not_awaited()


async def test_unknown_instrument_in_simulation(broker, make_params):
    strategy = PriceBandStrategy(broker)
    params = make_params(instrument_id="UNKNOWN", simulate=True, simulated_lot_multiplier=1)

    with pytest.raises(TransientNetworkError, match="get_instrument"):
        await strategy.run(params, RunContext())


def test_components_share_analyzer(broker):
    strategy = PriceBandStrategy(broker)

    assert strategy.executor.analyzer is strategy.analyzer
    assert strategy.harness.analyzer is strategy.analyzer
    assert strategy.analyzer.market_data is broker
