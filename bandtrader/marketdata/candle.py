import csv
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

from bandtrader.time_utils import parse_timestamp


@dataclass(frozen=True)
class Candle:
    """
    Represents a single OHLCV candle.

    Attributes:
        timestamp: Start of the bucket (UTC-aware)
        open: Opening price
        high: Highest price during period
        low: Lowest price during period
        close: Closing price
        volume: Traded volume (or 0 if unavailable)
        is_complete: False while the bucket is still in progress
    """

    timestamp: datetime
    open: float
    high: float
    low: float
    close: float
    volume: float = 0.0
    is_complete: bool = True

    @property
    def mid(self) -> float:
        """Calculate midpoint between high and low."""
        return (self.high + self.low) / 2

    @property
    def range(self) -> float:
        """Calculate candle range (high - low)."""
        return self.high - self.low

    def contains(self, price: float) -> bool:
        """True if ``price`` traded within this candle."""
        return self.low <= price <= self.high

    def __repr__(self) -> str:
        return (
            f"Candle(timestamp={self.timestamp.isoformat()}, "
            f"O={self.open:.2f}, H={self.high:.2f}, "
            f"L={self.low:.2f}, C={self.close:.2f}, "
            f"V={self.volume:.0f}{'' if self.is_complete else ', open'})"
        )


_TRUE = {"1", "true", "yes", "y"}


def load_candles_csv(path: Path) -> list[Candle]:
    """
    Load candles from a CSV file, ordered oldest to newest.

    Expected header: timestamp, open, high, low, close[, volume][, is_complete]
    Missing ``is_complete`` means the candle is complete.
    """
    candles: list[Candle] = []
    with Path(path).open(newline="") as f:
        for row in csv.DictReader(f):
            complete = row.get("is_complete")
            candles.append(
                Candle(
                    timestamp=parse_timestamp(row["timestamp"]),
                    open=float(row["open"]),
                    high=float(row["high"]),
                    low=float(row["low"]),
                    close=float(row["close"]),
                    volume=float(row.get("volume") or 0.0),
                    is_complete=True if not complete else complete.strip().lower() in _TRUE,
                )
            )
    candles.sort(key=lambda c: c.timestamp)
    return candles
