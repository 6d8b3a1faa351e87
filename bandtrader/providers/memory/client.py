from __future__ import annotations

import itertools
from dataclasses import dataclass, replace
from datetime import datetime
from pathlib import Path
from typing import Iterable

from bandtrader.errors import OrderRejectedError
from bandtrader.execution.broker import BrokerClient, Order, Position
from bandtrader.marketdata.candle import Candle, load_candles_csv
from bandtrader.marketdata.instrument import Instrument
from bandtrader.types import OrderSide, OrderStatus


@dataclass
class _Holding:
    balance: int = 0
    exchange_blocked: bool = False


class InMemoryBroker(BrokerClient):
    """
    Sandbox broker.

    - start/close are no-ops
    - get_candles serves from in-memory history keyed by (figi, period)
    - limit orders rest as NEW until a mark price crosses them, or until a
      test calls fill_order/reject_order
    - filled orders move lots into or out of the account's holding
    """

    def __init__(
        self,
        instruments: Iterable[Instrument] = (),
        history: dict[tuple[str, str], list[Candle]] | None = None,
    ):
        self.instruments: dict[str, Instrument] = {i.figi: i for i in instruments}
        self._history: dict[tuple[str, str], list[Candle]] = {
            key: sorted(candles, key=lambda c: c.timestamp)
            for key, candles in (history or {}).items()
        }
        self._order_counter = itertools.count(1)

        self._started = False
        self._closed = False

        self._mark_price: dict[str, float] = {}
        self.orders: dict[str, Order] = {}
        self._holdings: dict[tuple[str, str], _Holding] = {}

        # Next placement is rejected with this status (REJECTED/CANCELLED).
        self.reject_next: OrderStatus | None = None

    @classmethod
    def from_csv(
        cls,
        path: Path,
        *,
        instrument: Instrument,
        period: str = "5MINUTE",
    ) -> InMemoryBroker:
        return cls([instrument], {(instrument.figi, period.upper()): load_candles_csv(path)})

    async def start(self) -> None:
        self._started = True

    async def close(self) -> None:
        self._closed = True

    # ------------------------------------------------------------------
    # Market data
    # ------------------------------------------------------------------

    def add_candles(self, figi: str, period: str, candles: Iterable[Candle]) -> None:
        series = self._history.setdefault((figi, period.upper()), [])
        series.extend(candles)
        series.sort(key=lambda c: c.timestamp)

    async def get_instrument(self, instrument_id: str) -> Instrument:
        if instrument_id not in self.instruments:
            raise LookupError(f"Unknown instrument {instrument_id}")
        return self.instruments[instrument_id]

    async def get_candles(
        self,
        instrument_id: str,
        start: datetime,
        end: datetime,
        period: str,
    ) -> list[Candle]:
        candles = self._history.get((instrument_id, period.upper()), [])
        return [c for c in candles if start <= c.timestamp < end]

    # ------------------------------------------------------------------
    # Orders
    # ------------------------------------------------------------------

    async def place_order(
        self,
        account_id: str,
        instrument_id: str,
        side: OrderSide,
        limit_price: float,
        quantity: int,
    ) -> str:
        if not self._started:
            raise RuntimeError("InMemoryBroker not started")
        if quantity <= 0:
            raise ValueError("quantity must be > 0")
        if instrument_id not in self.instruments:
            raise LookupError(f"Unknown instrument {instrument_id}")

        order = Order(
            order_id=f"SANDBOX-{next(self._order_counter)}",
            account_id=account_id,
            instrument_id=instrument_id,
            side=OrderSide(side),
            limit_price=float(limit_price),
            quantity=int(quantity),
        )
        self.orders[order.order_id] = order

        if self.reject_next is not None:
            order.status, self.reject_next = self.reject_next, None
            raise OrderRejectedError(
                f"Order {order.order_id} {order.status.value} on placement",
                order_id=order.order_id,
            )

        mark = self._mark_price.get(instrument_id)
        if mark is not None and self._crosses(order, mark):
            self._fill(order)

        return order.order_id

    async def get_order_state(self, account_id: str, order_id: str) -> OrderStatus:
        order = self._order(account_id, order_id)
        return order.status

    async def get_open_position(self, account_id: str, instrument_id: str) -> Position | None:
        holding = self._holdings.get((account_id, instrument_id))
        if holding is None or (holding.balance <= 0 and not holding.exchange_blocked):
            return None
        return Position(
            instrument_id=instrument_id,
            balance=holding.balance,
            exchange_blocked=holding.exchange_blocked,
        )

    async def get_active_order(self, account_id: str, instrument_id: str) -> Order | None:
        for order in self.orders.values():
            if (
                order.account_id == account_id
                and order.instrument_id == instrument_id
                and order.status is OrderStatus.NEW
            ):
                return replace(order)
        return None

    # ------------------------------------------------------------------
    # Sandbox controls
    # ------------------------------------------------------------------

    def set_mark_price(self, instrument_id: str, price: float) -> None:
        """Move the market; resting orders crossed by ``price`` fill."""
        self._mark_price[instrument_id] = float(price)
        for order in list(self.orders.values()):
            if (
                order.instrument_id == instrument_id
                and order.status is OrderStatus.NEW
                and self._crosses(order, price)
            ):
                self._fill(order)

    def set_position(
        self,
        account_id: str,
        instrument_id: str,
        balance: int,
        exchange_blocked: bool = False,
    ) -> None:
        self._holdings[(account_id, instrument_id)] = _Holding(balance, exchange_blocked)

    def fill_order(self, order_id: str) -> None:
        order = self.orders[order_id]
        if order.status is not OrderStatus.NEW:
            raise ValueError(f"Order {order_id} is already {order.status.value}")
        self._fill(order)

    def reject_order(self, order_id: str, status: OrderStatus = OrderStatus.REJECTED) -> None:
        if not status.is_failed:
            raise ValueError(f"{status} is not a rejection status")
        self.orders[order_id].status = status

    def _order(self, account_id: str, order_id: str) -> Order:
        order = self.orders.get(order_id)
        if order is None or order.account_id != account_id:
            raise LookupError(f"Unknown order {order_id} for account {account_id}")
        return order

    @staticmethod
    def _crosses(order: Order, price: float) -> bool:
        if order.side is OrderSide.BUY:
            return price <= order.limit_price
        return price >= order.limit_price

    def _fill(self, order: Order) -> None:
        holding = self._holdings.setdefault((order.account_id, order.instrument_id), _Holding())
        if order.side is OrderSide.BUY:
            holding.balance += order.quantity
        else:
            holding.balance -= min(holding.balance, order.quantity)
        order.status = OrderStatus.FILLED
