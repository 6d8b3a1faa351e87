import re
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping, Optional


@dataclass(frozen=True)
class Instrument:
    """
    An immutable description of a tradable share as reported by the broker.

    Attributes:
        figi: The broker's instrument identifier (opaque string). Required.
        ticker: The exchange ticker (e.g. 'SBER').
        lot: Number of shares per lot; order quantities are expressed in lots.
        name: Human-readable name.
        currency: Quote currency code.
        isin: International Securities Identification Number (12 characters).

    Example:
        >>> sber = Instrument(figi="BBG004730N88", ticker="SBER", lot=10)
        >>> print(sber)
        SBER
    """
    figi: str
    ticker: str = ""
    lot: int = 1
    name: Optional[str] = None
    currency: str = "RUB"
    isin: Optional[str] = None

    def __post_init__(self) -> None:
        if not self.figi:
            raise ValueError("Instrument figi must not be empty")
        if self.lot < 1:
            raise ValueError(f"Invalid lot size for {self.figi}: {self.lot}")
        if self.isin is not None:
            self._validate_isin(self.isin)

    def _validate_isin(self, isin: str) -> None:
        """
        Validates the ISIN format and checksum using the Luhn algorithm.
        Raises ValueError if invalid.
        """
        if not re.fullmatch(r"[A-Z]{2}[A-Z0-9]{9}[0-9]", isin):
            raise ValueError(
                f"Invalid ISIN format for {self.figi}: '{isin}'. "
                "Expected 2 letters, 9 alphanumeric, and 1 digit."
            )

        # A=10, B=11, ..., Z=35
        digits_str = "".join(
            str(int(char, 36)) if char.isalpha() else char for char in isin
        )

        checksum_sum = 0
        for i, digit in enumerate(int(d) for d in reversed(digits_str)):
            if i % 2 == 1:
                doubled = digit * 2
                checksum_sum += doubled if doubled < 10 else doubled - 9
            else:
                checksum_sum += digit

        if checksum_sum % 10 != 0:
            raise ValueError(f"ISIN checksum failed for {self.figi}: '{isin}'.")

    def __str__(self) -> str:
        return self.ticker or self.figi

    def __repr__(self) -> str:
        return f"Instrument(figi={self.figi!r}, ticker={self.ticker!r}, lot={self.lot})"


DEFAULT_FIGIS: Mapping[str, str] = MappingProxyType(
    {
        "SBER": "BBG004730N88",
        "SBERP": "BBG0047315Y7",
        "M": "BBG000C46HM9",
        "SAVE": "BBG000BF6RQ9",
        "MGNT": "BBG004RVFCY3",
        "DSKY": "BBG000BN56Q9",
        "MAGN": "BBG004S68507",
        "NLMK": "BBG004S681B4",
        "GMKN": "BBG004731489",
    }
)


@dataclass(frozen=True)
class InstrumentDirectory:
    """
    Ticker to figi lookup, built once at startup and passed to whoever needs it.

    Example:
        directory = InstrumentDirectory.default()
        directory.figi_for("sber")  # 'BBG004730N88'
    """
    figis: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        normalised = {ticker.strip().upper(): figi for ticker, figi in self.figis.items()}
        object.__setattr__(self, "figis", MappingProxyType(normalised))

    @classmethod
    def default(cls) -> "InstrumentDirectory":
        return cls(dict(DEFAULT_FIGIS))

    def figi_for(self, ticker: str) -> str:
        """Return the figi for ``ticker``; raises KeyError if unknown."""
        key = ticker.strip().upper()
        if key not in self.figis:
            raise KeyError(f"Unknown ticker: {ticker!r}")
        return self.figis[key]

    def ticker_for(self, figi: str) -> Optional[str]:
        for ticker, candidate in self.figis.items():
            if candidate == figi:
                return ticker
        return None

    def __contains__(self, ticker: object) -> bool:
        return isinstance(ticker, str) and ticker.strip().upper() in self.figis

    def __len__(self) -> int:
        return len(self.figis)
