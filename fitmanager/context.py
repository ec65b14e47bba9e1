"""Wiring: one SessionStore injected into every component that needs it."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Optional

import requests

from . import config
from .api import ApiClient
from .dashboard import DashboardComposer
from .gate import ReauthGate
from .models import HYDRATION, MACROS, WEIGHT
from .repository import AuthService, MetricRepository, ProfileRepository
from .session import SessionStore


@dataclass
class AppContext:
    session: SessionStore
    api: ApiClient
    auth: AuthService
    weights: MetricRepository
    hydrations: MetricRepository
    macros: MetricRepository
    profiles: ProfileRepository
    gate: ReauthGate
    dashboard: DashboardComposer


def build_context(
    storage=None,
    base_url: str = config.API_URL,
    timeout: float = config.REQUEST_TIMEOUT,
    navigate_to_login: Optional[Callable[[], None]] = None,
    http: Optional[requests.Session] = None,
) -> AppContext:
    session = SessionStore(storage)
    api = ApiClient(session, base_url=base_url, timeout=timeout, on_unauthorized=navigate_to_login, http=http)
    auth = AuthService(api, session)
    profiles = ProfileRepository(api)
    hydrations = MetricRepository(api, HYDRATION)
    return AppContext(
        session=session,
        api=api,
        auth=auth,
        weights=MetricRepository(api, WEIGHT),
        hydrations=hydrations,
        macros=MetricRepository(api, MACROS),
        profiles=profiles,
        gate=ReauthGate(auth, profiles, session, navigate_to_login=navigate_to_login),
        dashboard=DashboardComposer(api, hydrations),
    )
