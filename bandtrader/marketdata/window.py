from collections import deque
from typing import Iterable, Optional

import numpy as np

from bandtrader.marketdata.candle import Candle


class SlidingWindow:
    """
    Fixed-capacity ring buffer of floats.

    Pushing onto a full window evicts the oldest value in O(1).

    Example:
        window = SlidingWindow(3)
        for price in (1.0, 2.0, 3.0, 4.0):
            window.push(price)
        window.values()  # [2.0, 3.0, 4.0]
    """

    def __init__(self, capacity: int = 3):
        if capacity < 1:
            raise ValueError(f"capacity must be >= 1, got {capacity}")
        self.capacity = capacity
        self._values: deque[float] = deque(maxlen=capacity)

    def push(self, value: float) -> None:
        self._values.append(float(value))

    def values(self) -> list[float]:
        """Values oldest first."""
        return list(self._values)

    def as_array(self) -> np.ndarray:
        return np.array(self._values, dtype=np.float64)

    def mean(self) -> float:
        if not self._values:
            raise ValueError("mean of an empty window")
        return float(self.as_array().mean())

    @property
    def latest(self) -> Optional[float]:
        return self._values[-1] if self._values else None

    def __len__(self) -> int:
        return len(self._values)

    def __repr__(self) -> str:
        return f"SlidingWindow({len(self)}/{self.capacity})"


class CandleWindow:
    """
    Parallel high/low windows fed from candles.

    Only completed candles are admitted; in-progress buckets are ignored.
    """

    def __init__(self, capacity: int = 3):
        self.highs = SlidingWindow(capacity)
        self.lows = SlidingWindow(capacity)

    @classmethod
    def from_candles(cls, candles: Iterable[Candle], capacity: int = 3) -> "CandleWindow":
        window = cls(capacity)
        for candle in candles:
            window.admit(candle)
        return window

    def admit(self, candle: Candle) -> bool:
        """Add ``candle`` if it is complete. Returns True if it was admitted."""
        if not candle.is_complete:
            return False
        self.highs.push(candle.high)
        self.lows.push(candle.low)
        return True

    @property
    def capacity(self) -> int:
        return self.highs.capacity

    def __len__(self) -> int:
        return len(self.highs)
