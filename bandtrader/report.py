import csv
import json
from dataclasses import asdict, dataclass, field
from pathlib import Path


__all__ = [
    "Report",
    "ReportSink",
    "SimulationSummary",
    "TickRecord",
]


@dataclass(frozen=True)
class TickRecord:
    """One replayed candle and the band computed at that point (if any)."""
    market_high: float
    market_low: float
    calculated_buy: float | None = None
    calculated_sell: float | None = None

    @property
    def has_band(self) -> bool:
        return self.calculated_buy is not None and self.calculated_sell is not None


@dataclass(frozen=True)
class SimulationSummary:
    """Aggregated outcome of the simulated orders."""
    quantity_per_operation: int
    orders: int
    purchased: int
    sold: int
    profit: float  # realised, sold orders
    on_market_value: float  # cost basis of purchased but unsold orders
    not_taken_value: float  # cost basis of never purchased orders
    last_price_value: float  # unsold quantity valued at the last observed price
    last_price_profit: float  # last_price_value - on_market_value


@dataclass
class Report:
    """Per-tick records plus the aggregate figures of one simulation run."""
    instrument_id: str = ""
    ticks: list[TickRecord] = field(default_factory=list)
    summary: SimulationSummary | None = None
    complete: bool = False

    def record(self, tick: TickRecord) -> None:
        self.ticks.append(tick)

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def write(self, out_dir: Path) -> None:
        """Write ticks.csv and summary.json into ``out_dir``."""
        out_dir.mkdir(parents=True, exist_ok=True)
        self.write_ticks_csv(out_dir / "ticks.csv")
        self.write_summary_json(out_dir / "summary.json")

    def write_ticks_csv(self, path: Path) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("w", newline="") as f:
            w = csv.writer(f)
            w.writerow(["market_high", "market_low", "calculated_buy", "calculated_sell"])
            for t in self.ticks:
                w.writerow([
                    _fmt(t.market_high),
                    _fmt(t.market_low),
                    _fmt(t.calculated_buy),
                    _fmt(t.calculated_sell),
                ])

    def write_summary_json(self, path: Path) -> None:
        payload = {
            "instrument_id": self.instrument_id,
            "complete": self.complete,
            "summary": asdict(self.summary) if self.summary is not None else None,
        }
        path.write_text(json.dumps(payload, indent=2, sort_keys=True))

    @classmethod
    def read(cls, out_dir: Path) -> "Report":
        """Load a report previously written with ``write()``."""
        meta = json.loads((out_dir / "summary.json").read_text())
        summary = meta.get("summary")
        return cls(
            instrument_id=meta.get("instrument_id", ""),
            ticks=cls.read_ticks_csv(out_dir / "ticks.csv"),
            summary=SimulationSummary(**summary) if summary else None,
            complete=bool(meta.get("complete")),
        )

    @staticmethod
    def read_ticks_csv(path: Path) -> list[TickRecord]:
        with path.open(newline="") as f:
            return [
                TickRecord(
                    market_high=float(row["market_high"]),
                    market_low=float(row["market_low"]),
                    calculated_buy=_parse(row["calculated_buy"]),
                    calculated_sell=_parse(row["calculated_sell"]),
                )
                for row in csv.DictReader(f)
            ]


def _fmt(value: float | None) -> str:
    return "" if value is None else repr(float(value))


def _parse(value: str) -> float | None:
    return float(value) if value.strip() else None


class ReportSink:
    """
    Mutable collector handed to the report consumer.

    Producers build a report privately and publish it once; ``report`` stays
    None until then.
    """

    def __init__(self) -> None:
        self.report: Report | None = None

    def publish(self, report: Report) -> None:
        self.report = report

    def __repr__(self) -> str:
        return f"ReportSink(published={self.report is not None})"
