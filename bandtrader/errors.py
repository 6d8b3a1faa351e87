"""Error taxonomy.

Every error raised on purpose by bandtrader derives from ``BandTraderError``.
Anything else coming out of a collaborator is wrapped in
``TransientNetworkError`` by ``call_collaborator`` at the call site.
"""

from typing import Awaitable, TypeVar


class BandTraderError(Exception):
    """Base class for all bandtrader errors."""


class ConfigError(BandTraderError):
    """Invalid parameter combination. Raised before any network call."""


class EmptyInputError(BandTraderError):
    """No usable (completed) price observations."""


class InsufficientQuantityError(BandTraderError):
    """Computed trade size is below one lot."""


class OrderRejectedError(BandTraderError):
    """The gateway reported a rejected or cancelled execution."""

    def __init__(self, message: str, order_id: str = ""):
        super().__init__(message)
        self.order_id = order_id


class PositionBlockedError(BandTraderError):
    """The open position is blocked by the exchange."""


class TransientNetworkError(BandTraderError):
    """A collaborator call failed; carries the operation that failed."""

    def __init__(self, operation: str, cause: BaseException):
        super().__init__(f"{operation} failed: {cause}")
        self.operation = operation
        self.cause = cause


T = TypeVar("T")


async def call_collaborator(operation: str, awaitable: Awaitable[T]) -> T:
    """Await a collaborator call.

    Domain errors pass through untouched; any other failure is wrapped in
    ``TransientNetworkError`` naming ``operation``.
    """
    try:
        return await awaitable
    except BandTraderError:
        raise
    except Exception as exc:
        raise TransientNetworkError(operation, exc) from exc
