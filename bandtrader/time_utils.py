"""Centralised timestamp and period handling.

Internal representation: UTC-aware ``datetime``. Candle periods are broker
style codes (``"5MINUTE"``, ``"HOUR"``) converted to ``timedelta`` here.
"""

from datetime import datetime, timedelta, timezone


__all__ = [
    "parse_period",
    "parse_timestamp",
    "periods_in",
    "previous_day_window",
    "utc_now",
]


# ---------------------------------------------------------------------------
# Periods
# ---------------------------------------------------------------------------


def parse_period(period: str) -> timedelta:
    """Convert a period code to a ``timedelta``.

    Accepted codes: ``SECOND``, ``<n>MINUTE``, ``HOUR``, ``<n>HOUR``, ``DAY``.
    """
    p = period.strip().upper()

    if p == "SECOND":
        return timedelta(seconds=1)
    if p == "DAY":
        return timedelta(days=1)
    if p == "HOUR":
        return timedelta(hours=1)

    for suffix, unit in (("MINUTE", "minutes"), ("HOUR", "hours")):
        if p.endswith(suffix):
            count = p.removesuffix(suffix)
            if count.isdigit() and int(count) > 0:
                return timedelta(**{unit: int(count)})

    raise ValueError(f"Unsupported period: {period!r}")


def periods_in(span: timedelta, period: str) -> int:
    """Number of whole ``period`` buckets that fit in ``span``."""
    return int(span // parse_period(period))


# ---------------------------------------------------------------------------
# Timestamps
# ---------------------------------------------------------------------------


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def parse_timestamp(ts: str | int | float | datetime) -> datetime:
    """Parse any timestamp representation to a UTC-aware datetime.

    Accepted inputs:
      * ``datetime`` (naive values are assumed UTC)
      * ISO 8601 string (``T`` or space separator, with or without ``Z``)
      * ``YYYY/MM/DD`` date prefix (normalised to dashes)
      * Integer or float milliseconds since epoch, or a numeric string
    """
    if isinstance(ts, datetime):
        return ts if ts.tzinfo is not None else ts.replace(tzinfo=timezone.utc)

    if isinstance(ts, (int, float)):
        return datetime.fromtimestamp(ts / 1000, tz=timezone.utc)

    s = (ts or "").strip()
    if not s:
        raise ValueError("Empty timestamp")

    # String that looks like a number -> milliseconds
    if s.replace(".", "", 1).lstrip("-").isdigit():
        return datetime.fromtimestamp(int(float(s)) / 1000, tz=timezone.utc)

    if len(s) >= 10 and s[4] == "/" and s[7] == "/":
        s = f"{s[:4]}-{s[5:7]}-{s[8:]}"

    s = s.replace("Z", "+00:00")
    s = s.replace(" ", "T", 1)

    dt = datetime.fromisoformat(s)
    return dt if dt.tzinfo is not None else dt.replace(tzinfo=timezone.utc)


def previous_day_window(now: datetime) -> tuple[datetime, datetime]:
    """Return (start, end) of the calendar day before ``now``.

    Both bounds are midnight in ``now``'s own timezone.
    """
    end = now.replace(hour=0, minute=0, second=0, microsecond=0)
    return end - timedelta(days=1), end
