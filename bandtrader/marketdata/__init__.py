from .candle import Candle, load_candles_csv
from .instrument import DEFAULT_FIGIS, Instrument, InstrumentDirectory
from .window import CandleWindow, SlidingWindow

__all__ = [
    "Candle",
    "CandleWindow",
    "DEFAULT_FIGIS",
    "Instrument",
    "InstrumentDirectory",
    "SlidingWindow",
    "load_candles_csv",
]
