"""
Pure aggregation of raw metric entries into rollups and chart series.

No I/O and no state: given the same entries, "now" and timezone, every
function returns the same result. All day keys use one canonical zone
(config.LOCAL_TZ unless a zone is passed explicitly).
"""
from __future__ import annotations

from datetime import date, datetime
from typing import Iterable, List, Optional, Sequence

import pandas as pd
import pytz

from . import config
from .models import DayPoint, MacroPoint, Policy, parse_timestamp, to_number


def _zone(tz):
    return config.LOCAL_TZ if tz is None else tz


def day_key(timestamp, tz=None) -> date:
    """
    Normalize a timestamp to the calendar day it falls on in the canonical zone.

    >>> day_key("2025-03-01T23:30:00Z", tz=pytz.utc)
    datetime.date(2025, 3, 1)
    >>> day_key("2025-03-01T23:30:00Z", tz=pytz.timezone("Europe/Rome"))
    datetime.date(2025, 3, 2)
    """
    return parse_timestamp(timestamp).astimezone(_zone(tz)).date()


def today_total(entries: Iterable, now: Optional[datetime] = None, tz=None) -> float:
    """
    Sum of the values of every entry logged on today's day key.
    Entries from other days are ignored whatever their sign; no entries gives 0.0.

    >>> today_total([])
    0.0
    """
    now = now if now is not None else datetime.now(tz=pytz.utc)
    today = day_key(now, tz)
    return float(sum(to_number(entry.value) for entry in entries if day_key(entry.timestamp, tz) == today))


def _frame(entries: Sequence, tz) -> pd.DataFrame:
    df = pd.DataFrame({
        "Day": [day_key(entry.timestamp, tz) for entry in entries],
        "Epoch": [parse_timestamp(entry.timestamp).timestamp() for entry in entries],
        "Value": [entry.value for entry in entries],
    })
    df["Value"] = pd.to_numeric(df["Value"], errors="coerce").fillna(0.0).astype(float)
    return df


def daily_series(entries: Sequence, policy: Policy, tz=None) -> List[DayPoint]:
    """
    Bucket entries by day key and reduce each bucket.

    - Policy.SUM adds every value of the day (hydration)
    - Policy.LAST keeps the value with the greatest timestamp of the day (weight);
      equal timestamps resolve to the later one in input order
    Output is ascending by date with exactly one point per distinct day.

    >>> from fitmanager.models import MetricEntry
    >>> utc = pytz.utc
    >>> weights = [
    ...     MetricEntry("b", parse_timestamp("2025-03-01T18:00:00Z"), 71.0),
    ...     MetricEntry("a", parse_timestamp("2025-03-01T09:00:00Z"), 70.0),
    ... ]
    >>> [(p.day.isoformat(), p.value) for p in daily_series(weights, Policy.LAST, tz=utc)]
    [('2025-03-01', 71.0)]
    >>> water = [
    ...     MetricEntry("x", parse_timestamp("2025-03-01T08:00:00Z"), 200.0),
    ...     MetricEntry("y", parse_timestamp("2025-03-01T12:00:00Z"), 300.0),
    ... ]
    >>> [p.value for p in daily_series(water, Policy.SUM, tz=utc)]
    [500.0]
    """
    if not entries:
        return []
    df = _frame(entries, _zone(tz))
    # stable sort keeps input order among identical timestamps
    df = df.sort_values("Epoch", kind="mergesort")
    grouped = df.groupby("Day", sort=True)["Value"]
    if policy is Policy.SUM:
        reduced = grouped.sum()
    elif policy is Policy.LAST:
        reduced = grouped.last()
    else:
        raise ValueError(f"Unknown aggregation policy: {policy!r}")
    return [DayPoint(day=day, value=float(value)) for day, value in reduced.items()]


def macro_series(entries: Sequence, tz=None) -> List[MacroPoint]:
    """One point per logged entry, ascending by timestamp; no daily rollup."""
    ordered = sorted(entries, key=lambda entry: parse_timestamp(entry.timestamp))
    return [
        MacroPoint(
            day=day_key(entry.timestamp, tz),
            timestamp=entry.timestamp,
            protein=to_number(entry.protein),
            carbs=to_number(entry.carbs),
            fats=to_number(entry.fats),
        )
        for entry in ordered
    ]


def latest_entry(entries: Iterable):
    """Entry with the greatest timestamp, or None when there is none."""
    latest = None
    for entry in entries:
        if latest is None or parse_timestamp(entry.timestamp) >= parse_timestamp(latest.timestamp):
            latest = entry
    return latest


def progress_fraction(total: float, cap: float) -> float:
    """
    Share of a target reached, clamped to [0, 1].

    >>> progress_fraction(1500, 2000), progress_fraction(5000, 4000), progress_fraction(-10, 4000)
    (0.75, 1.0, 0.0)
    """
    if cap <= 0:
        return 0.0
    return max(0.0, min(1.0, float(total) / float(cap)))
