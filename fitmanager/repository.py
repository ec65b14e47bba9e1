"""
Remote data access: metric repositories, the profile record and auth routes.

Repositories never cache and never patch a local copy. Every mutation is
followed by a full re-read, and the mutation returns that fresh Snapshot.
"""
from __future__ import annotations

import logging
import math
from datetime import datetime
from typing import Any, Dict, List

import pytz

from .api import ApiClient
from .errors import AuthenticationError, ValidationError
from .models import (
    MetricKind,
    Snapshot,
    UserProfile,
    format_timestamp,
    parse_entries,
    parse_timestamp,
    to_number,
)
from .session import SessionStore

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(tz=pytz.utc)


def _required_number(value: Any, field: str) -> float:
    if value is None or isinstance(value, bool) or (isinstance(value, str) and not value.strip()):
        raise ValidationError(f"Please enter a valid number for {field}")
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ValidationError(f"Please enter a valid number for {field}")
    if not math.isfinite(number):
        raise ValidationError(f"Please enter a valid number for {field}")
    return number


class MetricRepository:
    """CRUD access to one metric kind (weight, hydration or macros)."""

    def __init__(self, api: ApiClient, kind: MetricKind):
        self.api = api
        self.kind = kind

    def __repr__(self) -> str:
        return f"MetricRepository({self.kind.name})"

    def list(self) -> List:
        """All entries for the current user, in the order the store returns them."""
        rows = self.api.get(self.kind.path)
        return parse_entries(rows if isinstance(rows, list) else [], self.kind)

    def _snapshot(self) -> Snapshot:
        return Snapshot(kind=self.kind, entries=self.list(), fetched_at=_utcnow())

    def build_payload(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """
        Serialize a create payload. Scalar kinds need their value; macros
        default missing amounts to 0. The date defaults to now.
        """
        body: Dict[str, Any] = {}
        if self.kind.is_macros:
            for name in self.kind.fields:
                body[name] = to_number(payload.get(name))
        else:
            name = self.kind.fields[0]
            body[name] = _required_number(payload.get(name), name)
        when = payload.get("date")
        body["date"] = format_timestamp(parse_timestamp(when) if when is not None else _utcnow())
        return body

    def create(self, payload: Dict[str, Any]) -> Snapshot:
        body = self.build_payload(payload)
        self.api.post(self.kind.path, body)
        logger.info("Created %s entry", self.kind.name)
        return self._snapshot()

    def delete_by_id(self, entry_id: str) -> Snapshot:
        self.api.delete(f"{self.kind.path}/{entry_id}")
        logger.info("Deleted %s entry %s", self.kind.name, entry_id)
        return self._snapshot()

    def most_recent(self):
        """Newest entry as reported by the store (?last=true), or None."""
        rows = self.api.get(self.kind.path, params={"last": "true"})
        if isinstance(rows, dict):
            rows = [rows]
        entries = parse_entries(rows if isinstance(rows, list) else [], self.kind)
        return entries[0] if entries else None

    def delete_most_recent(self) -> Snapshot:
        """Delete the newest entry; with no entries this is a no-op."""
        latest = self.most_recent()
        if latest is None:
            logger.info("No %s entry to delete", self.kind.name)
            return self._snapshot()
        return self.delete_by_id(latest.id)


class ProfileRepository:
    path = "/user"

    def __init__(self, api: ApiClient):
        self.api = api

    def fetch(self) -> UserProfile:
        return UserProfile.from_api(self.api.get(self.path))

    def update(self, fields: Dict[str, Any]) -> UserProfile:
        """Replace the mutable profile fields; returns the record as stored."""
        data = self.api.put(self.path, fields)
        logger.info("Profile updated")
        return UserProfile.from_api(data)

    def delete(self) -> None:
        self.api.delete(self.path)
        logger.info("Account deleted")


class AuthService:
    """Login, registration and credential checks. These routes carry no bearer token."""

    def __init__(self, api: ApiClient, session_store: SessionStore):
        self.api = api
        self.session_store = session_store

    def _start_session(self, data: Any) -> str:
        token = data.get("token") if isinstance(data, dict) else None
        if not token:
            raise AuthenticationError("Server did not return a session token")
        self.session_store.login(token)
        return token

    def login(self, username: str, password: str) -> str:
        data = self.api.post("/auth/login", {"username": username, "password": password}, auth=False)
        return self._start_session(data)

    def register(self, username: str, email: str, password: str) -> str:
        data = self.api.post(
            "/auth/register",
            {"username": username, "email": email, "password": password},
            auth=False,
        )
        return self._start_session(data)

    def verify(self, username: str, password: str) -> bool:
        data = self.api.post("/auth/verify", {"username": username, "password": password}, auth=False)
        return bool(isinstance(data, dict) and data.get("verified"))
