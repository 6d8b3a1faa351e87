"""
Concrete collaborator implementations.

Brokerage clients implement ``bandtrader.execution.broker.BrokerClient``.
"""

from .memory import InMemoryBroker

__all__ = [
    "InMemoryBroker",
]
