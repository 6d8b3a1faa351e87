"""Broker-agnostic trading types."""

from enum import Enum


class OrderSide(str, Enum):
    """Side of a limit order."""

    BUY = "buy"
    SELL = "sell"


class OrderStatus(str, Enum):
    """Execution status of an order as reported by the gateway.

    ``NEW`` covers every pending state (accepted, partially filled).
    """

    NEW = "new"
    FILLED = "filled"
    REJECTED = "rejected"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self is not OrderStatus.NEW

    @property
    def is_failed(self) -> bool:
        return self in (OrderStatus.REJECTED, OrderStatus.CANCELLED)
