# tests/conftest.py
import os
import sys
from datetime import datetime, timedelta, timezone

import pytest

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from bandtrader.config import TradeParams
from bandtrader.marketdata.candle import Candle
from bandtrader.marketdata.instrument import Instrument
from bandtrader.providers.memory import InMemoryBroker

FIGI = "BBG004730N88"
ACCOUNT = "ACC-1"
NOW = datetime(2024, 3, 5, 12, 0, tzinfo=timezone.utc)


def make_candle(high, low, ts=None, complete=True, volume=100.0):
    """Candle with open/close inside [low, high]."""
    ts = ts or NOW
    return Candle(
        timestamp=ts,
        open=low,
        high=high,
        low=low,
        close=high,
        volume=volume,
        is_complete=complete,
    )


def make_series(bars, start, step=timedelta(minutes=5)):
    """Candles from (high, low[, complete]) tuples, ``step`` apart from ``start``."""
    candles = []
    for i, bar in enumerate(bars):
        high, low, *rest = bar
        candles.append(make_candle(high, low, ts=start + i * step, complete=rest[0] if rest else True))
    return candles


@pytest.fixture
def instrument():
    return Instrument(figi=FIGI, ticker="SBER", lot=10)


@pytest.fixture
def broker(instrument):
    return InMemoryBroker([instrument])


@pytest.fixture
async def started_broker(broker):
    await broker.start()
    yield broker
    await broker.close()


@pytest.fixture
def make_params():
    def _make(**overrides):
        values = dict(
            account_id=ACCOUNT,
            instrument_id=FIGI,
            operation_lots=1,
            max_deal_sum=5000.0,
            deal_limit=10000.0,
            sampling_interval="5MINUTE",
            analysis_period=timedelta(minutes=15),
        )
        values.update(overrides)
        return TradeParams(**values)

    return _make
