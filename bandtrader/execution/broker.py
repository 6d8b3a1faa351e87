"""
Collaborator interfaces.

The strategy core only talks to a brokerage through these contracts.
Concrete providers (a real brokerage client, the in-memory sandbox) implement
them; authentication and transport stay on the provider side.
"""

import abc
from dataclasses import dataclass
from datetime import datetime

from bandtrader.marketdata.candle import Candle
from bandtrader.marketdata.instrument import Instrument
from bandtrader.types import OrderSide, OrderStatus


@dataclass
class Order:
    """A limit order as seen by the gateway. The gateway owns its status."""

    order_id: str
    account_id: str
    instrument_id: str
    side: OrderSide
    limit_price: float
    quantity: int  # lots
    status: OrderStatus = OrderStatus.NEW


@dataclass(frozen=True)
class Position:
    """Securities held for one instrument on an account."""

    instrument_id: str
    balance: int  # lots
    exchange_blocked: bool = False


class MarketDataClient(abc.ABC):
    """Instrument and candle history lookups."""

    @abc.abstractmethod
    async def get_instrument(self, instrument_id: str) -> Instrument:
        """Fetch the instrument descriptor (lot size, ticker) by figi."""
        raise NotImplementedError

    @abc.abstractmethod
    async def get_candles(
        self,
        instrument_id: str,
        start: datetime,
        end: datetime,
        period: str,
    ) -> list[Candle]:
        """
        Fetch candles whose bucket starts in ``[start, end)``.

        Args:
            instrument_id: The instrument figi.
            start: Inclusive lower bound.
            end: Exclusive upper bound.
            period: Candle timeframe (e.g. "5MINUTE").

        Returns:
            Candles ordered oldest to newest; possibly empty. The newest
            candle may be incomplete.
        """
        raise NotImplementedError


class OrderGateway(abc.ABC):
    """Order placement and state queries."""

    @abc.abstractmethod
    async def place_order(
        self,
        account_id: str,
        instrument_id: str,
        side: OrderSide,
        limit_price: float,
        quantity: int,
    ) -> str:
        """Place a limit order and return its id.

        Raises:
            OrderRejectedError: If the execution report is rejected or cancelled.
        """
        raise NotImplementedError

    @abc.abstractmethod
    async def get_order_state(self, account_id: str, order_id: str) -> OrderStatus:
        raise NotImplementedError

    @abc.abstractmethod
    async def get_open_position(self, account_id: str, instrument_id: str) -> Position | None:
        """Return the position for ``instrument_id`` if it has a positive
        balance or is blocked, else None."""
        raise NotImplementedError

    @abc.abstractmethod
    async def get_active_order(self, account_id: str, instrument_id: str) -> Order | None:
        """Return the first pending order for ``instrument_id``, if any."""
        raise NotImplementedError


class BrokerClient(MarketDataClient, OrderGateway):
    """A full brokerage connection with a lifecycle."""

    async def start(self) -> None:
        """Initialise the client (e.g. create session, authenticate)."""

    async def close(self) -> None:
        """Close any underlying resources."""
