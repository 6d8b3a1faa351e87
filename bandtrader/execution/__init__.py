"""
Live order execution and the collaborator contracts it relies on.
"""

from .broker import (
    BrokerClient,
    MarketDataClient,
    Order,
    OrderGateway,
    Position,
)
from .events import (
    CycleCompletedEvent,
    OrderFilledEvent,
    OrderPlacedEvent,
    OrderRejectedEvent,
)
from .executor import ExecutionState, PriceBandExecutor, StepOutcome

__all__ = [
    "BrokerClient",
    "CycleCompletedEvent",
    "ExecutionState",
    "MarketDataClient",
    "Order",
    "OrderFilledEvent",
    "OrderGateway",
    "OrderPlacedEvent",
    "OrderRejectedEvent",
    "Position",
    "PriceBandExecutor",
    "StepOutcome",
]
