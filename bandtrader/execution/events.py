from bandtrader.events import DomainEvent, event
from bandtrader.types import OrderSide


@event
class OrderPlacedEvent(DomainEvent):
    account_id: str
    instrument_id: str
    order_id: str
    side: OrderSide
    price: float
    quantity: int


@event
class OrderFilledEvent(DomainEvent):
    account_id: str
    order_id: str


@event
class OrderRejectedEvent(DomainEvent):
    account_id: str
    order_id: str
    reason: str


@event
class CycleCompletedEvent(DomainEvent):
    account_id: str
    instrument_id: str
    cycle: int
