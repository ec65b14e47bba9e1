"""
Data models for the FitManager client.

- MetricKind: endpoint and payload shape of each metric category
- MetricEntry / MacroEntry: immutable entries as returned by the remote store
- DayPoint / MacroPoint: chart-ready points produced by the aggregator
- UserProfile: the profile record and its mutable subset
- DashboardSummary: read-only view-model for the landing page
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

import pytz
from dateutil import parser as dateparser

from . import config

logger = logging.getLogger(__name__)


class Policy(Enum):
    """How entries sharing a day key are reduced."""
    SUM = "sum"
    LAST = "last"


class PendingAction(Enum):
    NONE = "none"
    UPDATE = "update"
    DELETE = "delete"


@dataclass(frozen=True)
class MetricKind:
    name: str
    path: str
    fields: Tuple[str, ...]
    policy: Optional[Policy] = None

    @property
    def is_macros(self) -> bool:
        return len(self.fields) > 1


WEIGHT = MetricKind("weight", "/weights", ("weight",), Policy.LAST)
HYDRATION = MetricKind("hydration", "/hydrations", ("amount",), Policy.SUM)
MACROS = MetricKind("macros", "/macros", ("protein", "carbs", "fats"))


# -------------------------------
# Parsing helpers
# -------------------------------

def to_number(value: Any) -> float:
    """
    Coerce an API value to float; anything non-numeric becomes 0.0.

    >>> to_number("72.5"), to_number(None), to_number("abc"), to_number(float("nan"))
    (72.5, 0.0, 0.0, 0.0)
    """
    if isinstance(value, bool):
        return 0.0
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    if not math.isfinite(number):
        return 0.0
    return number


def _localize(dt: datetime, zone) -> datetime:
    if hasattr(zone, "localize"):
        return zone.localize(dt)
    return dt.replace(tzinfo=zone)


def parse_timestamp(value: Any) -> datetime:
    """
    Parse an API timestamp into an aware datetime. Naive values are taken as UTC.
    A plain date is midnight in the canonical zone.

    >>> parse_timestamp("2025-03-01T08:00:00.000Z").isoformat()
    '2025-03-01T08:00:00+00:00'
    >>> parse_timestamp("2025-03-01 08:00").tzinfo is not None
    True
    """
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, date):
        return _localize(datetime(value.year, value.month, value.day), config.LOCAL_TZ)
    else:
        dt = dateparser.parse(str(value))
    if dt.tzinfo is None:
        dt = pytz.utc.localize(dt)
    return dt


def format_timestamp(dt: datetime) -> str:
    """ISO-8601 in UTC with millisecond precision and a Z suffix."""
    if dt.tzinfo is None:
        dt = pytz.utc.localize(dt)
    dt = dt.astimezone(pytz.utc)
    return dt.strftime("%Y-%m-%dT%H:%M:%S.") + f"{dt.microsecond // 1000:03d}Z"


def _entry_id(raw: Dict[str, Any]) -> str:
    return str(raw.get("_id", raw.get("id", "")))


# -------------------------------
# Entries
# -------------------------------

@dataclass(frozen=True)
class MetricEntry:
    """A weight or hydration entry: one scalar value at one instant."""
    id: str
    timestamp: datetime
    value: float

    @classmethod
    def from_api(cls, raw: Dict[str, Any], kind: MetricKind) -> "MetricEntry":
        return cls(
            id=_entry_id(raw),
            timestamp=parse_timestamp(raw.get("date")),
            value=to_number(raw.get(kind.fields[0])),
        )


@dataclass(frozen=True)
class MacroEntry:
    id: str
    timestamp: datetime
    protein: float = 0.0
    carbs: float = 0.0
    fats: float = 0.0

    @classmethod
    def from_api(cls, raw: Dict[str, Any], kind: MetricKind = MACROS) -> "MacroEntry":
        return cls(
            id=_entry_id(raw),
            timestamp=parse_timestamp(raw.get("date")),
            protein=to_number(raw.get("protein")),
            carbs=to_number(raw.get("carbs")),
            fats=to_number(raw.get("fats")),
        )

    def as_triple(self) -> Dict[str, float]:
        return {"protein": self.protein, "carbs": self.carbs, "fats": self.fats}


def parse_entries(rows: Optional[List[Dict[str, Any]]], kind: MetricKind) -> List:
    """
    Parse a raw API array, keeping server order.
    Rows without a usable date are skipped with a warning.
    """
    factory = MacroEntry.from_api if kind.is_macros else MetricEntry.from_api
    entries = []
    for index, row in enumerate(rows or []):
        try:
            entries.append(factory(row, kind))
        except (ValueError, OverflowError, AttributeError) as e:
            logger.warning("Skipping %s record %d: unreadable date (%s)", kind.name, index, e)
    return entries


@dataclass(frozen=True)
class Snapshot:
    """Result of a mutation: the full list as re-read right after the write."""
    kind: MetricKind
    entries: List
    fetched_at: datetime


# -------------------------------
# Chart points
# -------------------------------

@dataclass(frozen=True)
class DayPoint:
    day: date
    value: float


@dataclass(frozen=True)
class MacroPoint:
    day: date
    timestamp: datetime
    protein: float
    carbs: float
    fats: float


# -------------------------------
# Profile
# -------------------------------

SEX_CHOICES = ("M", "F", "O")

_PROFILE_API_FIELDS = {
    "username": "username",
    "email": "email",
    "date_of_birth": "dateOfBirth",
    "sex": "sex",
    "height": "height",
    "initial_weight": "initialWeight",
    "target_weight": "targetWeight",
    "workouts_per_week": "workoutsPerWeek",
    "updated_at": "updatedAt",
}
_MUTABLE_PROFILE_FIELDS = (
    "username",
    "date_of_birth",
    "sex",
    "height",
    "initial_weight",
    "target_weight",
    "workouts_per_week",
)


def _optional_number(value: Any) -> Optional[float]:
    if value in (None, ""):
        return None
    return to_number(value)


@dataclass
class UserProfile:
    username: str = ""
    email: str = ""
    date_of_birth: Optional[str] = None
    sex: str = ""
    height: Optional[float] = None
    initial_weight: Optional[float] = None
    target_weight: Optional[float] = None
    workouts_per_week: Optional[float] = None
    updated_at: Optional[str] = None

    @classmethod
    def from_api(cls, raw: Optional[Dict[str, Any]]) -> "UserProfile":
        raw = raw or {}
        dob = raw.get("dateOfBirth")
        sex = raw.get("sex") or ""
        return cls(
            username=raw.get("username") or "",
            email=raw.get("email") or "",
            # keep only the calendar date of an ISO timestamp
            date_of_birth=str(dob).split("T")[0] if dob else None,
            sex=sex if sex in SEX_CHOICES else "",
            height=_optional_number(raw.get("height")),
            initial_weight=_optional_number(raw.get("initialWeight")),
            target_weight=_optional_number(raw.get("targetWeight")),
            workouts_per_week=_optional_number(raw.get("workoutsPerWeek")),
            updated_at=raw.get("updatedAt"),
        )

    def to_update_payload(self) -> Dict[str, Any]:
        """Mutable fields only, keyed the way the API expects. Email is never sent."""
        return {_PROFILE_API_FIELDS[name]: getattr(self, name) for name in _MUTABLE_PROFILE_FIELDS}


# -------------------------------
# Dashboard
# -------------------------------

@dataclass(frozen=True)
class DashboardSummary:
    profile: UserProfile
    latest_weight: Optional[float]
    latest_macros: Dict[str, float] = field(default_factory=lambda: {"protein": 0.0, "carbs": 0.0, "fats": 0.0})
    has_macros: bool = False
    today_hydration: float = 0.0
    hydration_progress: float = 0.0

    @property
    def weight_label(self) -> str:
        return "N/A" if self.latest_weight is None else f"{self.latest_weight:g}"
