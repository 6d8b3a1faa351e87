"""Historical replay of the price band strategy."""

from .harness import SimulatedOrder, SimulationHarness, summarise

__all__ = [
    "SimulatedOrder",
    "SimulationHarness",
    "summarise",
]
