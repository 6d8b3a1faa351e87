from __future__ import annotations

from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any, Mapping

from bandtrader.errors import ConfigError
from bandtrader.marketdata.instrument import InstrumentDirectory
from bandtrader.report import ReportSink
from bandtrader.time_utils import parse_period


DEFAULT_MIN_PROFIT = 10.0


@dataclass(frozen=True)
class TradeParams:
    """
    Parameters of one strategy run. Created once, never mutated.

    ``report_sink`` is the only mutable member: the simulator publishes its
    report there for whoever renders it afterwards.
    """
    account_id: str
    instrument_id: str
    operation_lots: int
    max_deal_sum: float  # money per deal
    deal_limit: float  # ceiling over all deals
    sampling_interval: str = "5MINUTE"
    analysis_period: timedelta = timedelta(minutes=20)
    recompute_period: timedelta = timedelta(minutes=30)
    simulate: bool = False
    simulated_lot_multiplier: int = 0
    min_profit: float = DEFAULT_MIN_PROFIT
    report_sink: ReportSink = field(default_factory=ReportSink, compare=False, repr=False)

    def validate(self) -> None:
        """Raise ``ConfigError`` on an invalid parameter combination."""
        if self.max_deal_sum > self.deal_limit:
            raise ConfigError(
                f"deal_limit ({self.deal_limit}) should be at least max_deal_sum ({self.max_deal_sum})"
            )
        if self.simulate and self.simulated_lot_multiplier <= 0:
            raise ConfigError("simulated_lot_multiplier should be greater than zero when simulating")
        if self.operation_lots <= 0:
            raise ConfigError(f"operation_lots should be positive, got {self.operation_lots}")
        if not self.account_id or not self.instrument_id:
            raise ConfigError("account_id and instrument_id are required")
        try:
            interval = parse_period(self.sampling_interval)
        except ValueError as exc:
            raise ConfigError(str(exc)) from exc
        if self.analysis_period < interval:
            raise ConfigError(
                f"analysis_period ({self.analysis_period}) is shorter than one "
                f"{self.sampling_interval} candle"
            )
        if self.recompute_period <= timedelta(0):
            raise ConfigError("recompute_period should be positive")

    @property
    def interval(self) -> timedelta:
        return parse_period(self.sampling_interval)

    @property
    def queue_size(self) -> int:
        """Number of candles the analysis period spans."""
        return int(self.analysis_period // self.interval)

    @classmethod
    def from_raw(
        cls,
        raw: Mapping[str, Any],
        directory: InstrumentDirectory | None = None,
        report_sink: ReportSink | None = None,
    ) -> TradeParams:
        """Build from a plain mapping (e.g. parsed JSON) and validate.

        Durations accept a period code (``"20MINUTE"``) or a number of
        seconds. ``ticker`` may replace ``instrument_id`` when a directory is
        given. Raises ``ConfigError`` with a clear message on bad or missing
        values instead of letting ``KeyError`` or ``TypeError`` propagate.
        """
        instrument_id = raw.get("instrument_id")
        if not instrument_id and raw.get("ticker"):
            if directory is None:
                raise ConfigError("ticker given but no instrument directory to resolve it")
            try:
                instrument_id = directory.figi_for(str(raw["ticker"]))
            except KeyError as exc:
                raise ConfigError(str(exc)) from exc

        params = cls(
            account_id=_required(raw, "account_id", str),
            instrument_id=str(instrument_id or ""),
            operation_lots=_required(raw, "operation_lots", int),
            max_deal_sum=_required(raw, "max_deal_sum", float),
            deal_limit=_required(raw, "deal_limit", float),
            sampling_interval=str(raw.get("sampling_interval", "5MINUTE")).upper(),
            analysis_period=_duration(raw, "analysis_period", timedelta(minutes=20)),
            recompute_period=_duration(raw, "recompute_period", timedelta(minutes=30)),
            simulate=_flag(raw.get("simulate", False)),
            simulated_lot_multiplier=_optional(raw, "simulated_lot_multiplier", int, 0),
            min_profit=_optional(raw, "min_profit", float, DEFAULT_MIN_PROFIT),
            report_sink=report_sink if report_sink is not None else ReportSink(),
        )
        params.validate()
        return params


def _required(raw: Mapping[str, Any], key: str, kind: type) -> Any:
    if key not in raw or raw[key] is None:
        raise ConfigError(f"{key} is missing")
    return _convert(raw[key], key, kind)


def _optional(raw: Mapping[str, Any], key: str, kind: type, default: Any) -> Any:
    if raw.get(key) is None:
        return default
    return _convert(raw[key], key, kind)


def _convert(value: Any, key: str, kind: type) -> Any:
    if kind is int and isinstance(value, float) and not value.is_integer():
        raise ConfigError(f"{key} must be a whole number, got {value!r}")
    try:
        return kind(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"{key} is not a valid {kind.__name__}: {value!r}") from exc


def _duration(raw: Mapping[str, Any], key: str, default: timedelta) -> timedelta:
    value = raw.get(key)
    if value is None:
        return default
    if isinstance(value, timedelta):
        return value
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return timedelta(seconds=value)
    try:
        return parse_period(str(value))
    except ValueError as exc:
        raise ConfigError(f"{key}: {exc}") from exc


def _flag(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes", "y"}
    return bool(value)
