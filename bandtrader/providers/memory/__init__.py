"""In-memory sandbox provider."""

from .client import InMemoryBroker

__all__ = ["InMemoryBroker"]
