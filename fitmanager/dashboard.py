"""Landing-page summary: latest weight and macros, today's hydration, profile."""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional, Sequence

from . import config
from .aggregator import latest_entry, progress_fraction, today_total
from .api import ApiClient
from .errors import AuthenticationError, FitManagerError, TransportError
from .models import HYDRATION, MACROS, WEIGHT, DashboardSummary, UserProfile, parse_entries, to_number
from .repository import MetricRepository

logger = logging.getLogger(__name__)


def compose(
    profile: UserProfile,
    weights: Sequence,
    macros: Sequence,
    hydrations: Sequence,
    now: Optional[datetime] = None,
    tz=None,
    hydration_goal: float = config.HYDRATION_DAILY_GOAL,
) -> DashboardSummary:
    """Build the summary view-model. Inputs are only read."""
    weight = latest_entry(weights)
    macro = latest_entry(macros)
    hydration = today_total(hydrations, now=now, tz=tz)
    return DashboardSummary(
        profile=profile,
        latest_weight=None if weight is None else to_number(weight.value),
        latest_macros=macro.as_triple() if macro is not None else {"protein": 0.0, "carbs": 0.0, "fats": 0.0},
        has_macros=macro is not None,
        today_hydration=hydration,
        hydration_progress=progress_fraction(hydration, hydration_goal),
    )


class DashboardComposer:
    path = "/dashboard"

    def __init__(self, api: ApiClient, hydrations: Optional[MetricRepository] = None):
        self.api = api
        self.hydrations = hydrations if hydrations is not None else MetricRepository(api, HYDRATION)

    def load(self, now: Optional[datetime] = None, tz=None) -> DashboardSummary:
        """
        Fetch and compose the summary. A failed /dashboard read means the
        session cannot be trusted: it is logged and raised as
        AuthenticationError so the caller clears the session and returns to
        login. A hydration outage only blanks today's total.
        """
        try:
            data = self.api.get(self.path)
        except FitManagerError as e:
            logger.error("Dashboard fetch failed: %s", e)
            raise AuthenticationError("Could not load your dashboard") from e
        if not isinstance(data, dict):
            logger.error("Dashboard payload was not an object")
            raise AuthenticationError("Could not load your dashboard")

        try:
            hydrations = self.hydrations.list()
        except TransportError as e:
            logger.warning("Hydration list unavailable, showing 0 for today: %s", e)
            hydrations = []

        weight = data.get("latestWeight")
        macro = data.get("latestMacros")
        return compose(
            profile=UserProfile.from_api(data.get("user")),
            weights=parse_entries([weight] if weight else [], WEIGHT),
            macros=parse_entries([macro] if macro else [], MACROS),
            hydrations=hydrations,
            now=now,
            tz=tz,
        )
