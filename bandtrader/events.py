"""
Notifications emitted while trading.

The executor announces order placements, fills, rejections and completed
buy/sell cycles (see ``bandtrader.execution.events``). Observers such as
audit logs, dashboards or tests subscribe to the event class they care about.
"""

import asyncio
import logging
from abc import ABC
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Awaitable, Callable


log = logging.getLogger(__name__)


def event(cls):
    """Declare an immutable event class."""
    return dataclass(frozen=True, slots=True)(cls)


@dataclass(frozen=True, slots=True, kw_only=True)
class DomainEvent(ABC):
    """Base of all trading events; stamped with the UTC time of creation."""
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


Handler = Callable[[DomainEvent], None | Awaitable[None]]


class EventDispatcher:
    """
    Delivers order and cycle events to their subscribers.

    A failing observer must never abort a trade, so handler errors are logged
    and delivery continues with the next handler.

    Example:
        dispatcher = EventDispatcher()
        dispatcher.subscribe(OrderFilledEvent, lambda e: print(e.order_id))
        executor = PriceBandExecutor(client, dispatcher=dispatcher)
    """

    def __init__(self):
        self._handlers: dict[type[DomainEvent], list[Handler]] = defaultdict(list)

    def subscribe(self, event_type: type[DomainEvent], handler: Handler) -> None:
        """Call ``handler`` (sync or async) for every ``event_type`` published."""
        self._handlers[event_type].append(handler)

    def unsubscribe(self, event_type: type[DomainEvent], handler: Handler) -> None:
        if handler in self._handlers[event_type]:
            self._handlers[event_type].remove(handler)

    async def publish(self, event: DomainEvent) -> None:
        """Run the handlers of ``type(event)`` in subscription order."""
        for handler in list(self._handlers[type(event)]):
            try:
                result = handler(event)
                if asyncio.iscoroutine(result):
                    await result
            except Exception:
                log.exception(
                    "Handler %s failed on %s",
                    getattr(handler, "__name__", repr(handler)),
                    type(event).__name__,
                )
