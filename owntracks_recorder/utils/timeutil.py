# owntracks_recorder/utils/timeutil.py
from datetime import datetime, timezone
from typing import List, Optional

from dateutil.parser import parse as parse_dt

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_PARSE_ANCHOR = datetime(1970, 1, 1)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def from_tst(tst) -> datetime:
    """Unix seconds (int, float or numeric string) -> aware UTC datetime."""
    return datetime.fromtimestamp(float(tst), tz=timezone.utc)


def format_record_ts(ts: datetime) -> str:
    # 2024-03-01T12:00:00.000Z, the form every partition line starts with
    ts = ts.astimezone(timezone.utc)
    return ts.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def parse_record_ts(value: str) -> datetime:
    ts = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts


def parse_query_date(value: Optional[str], default: datetime) -> datetime:
    """Parse a ``from``/``to`` query value; naive results are read as UTC.

    Raises ValueError when ``value`` is present but not a date.
    """
    if not value:
        return default
    try:
        # missing parts fall back to the start of the period: "2024" is 2024-01-01
        ts = parse_dt(value, default=_PARSE_ANCHOR)
        if ts.tzinfo is None:
            ts = ts.replace(tzinfo=timezone.utc)
        return ts.astimezone(timezone.utc)
    except (OverflowError, ValueError) as e:
        raise ValueError(f"unparseable date {value!r}") from e


def month_key(ts: datetime) -> str:
    return ts.astimezone(timezone.utc).strftime("%Y-%m")


def iter_months(start: datetime, end: datetime) -> List[str]:
    """Every ``YYYY-MM`` from ``start``'s month to ``end``'s month inclusive."""
    start = start.astimezone(timezone.utc)
    end = end.astimezone(timezone.utc)
    year, month = start.year, start.month
    months = []
    while (year, month) <= (end.year, end.month):
        months.append(f"{year:04d}-{month:02d}")
        month += 1
        if month > 12:
            year, month = year + 1, 1
    return months
