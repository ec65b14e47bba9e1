"""
Shared fixtures. HTTP goes to FakeServer, an in-memory stand-in for the
FitManager API that answers requests.Session.request calls.
"""

import itertools
from urllib.parse import urlparse

import pytest
import pytz
import requests

from fitmanager.context import build_context
from fitmanager.session import MemoryTokenStorage

BASE_URL = "http://api.test/api"
UTC = pytz.utc


class FakeResponse:
    def __init__(self, status_code=200, body=None):
        self.status_code = status_code
        self._body = body
        self.content = b"" if body is None else b"{}"
        self.text = "" if body is None else str(body)

    def json(self):
        if self._body is None:
            raise ValueError("no body")
        return self._body


class FakeServer:
    """Routes requests like the real API. Set `fail` to force a status for a path."""

    METRIC_PATHS = {"/weights", "/hydrations", "/macros"}

    def __init__(self, users=None):
        self.headers = {}
        self.calls = []
        self.users = users or {"u": {"password": "p", "email": "u@example.com"}}
        self.tokens = {}
        self.entries = {path: [] for path in self.METRIC_PATHS}
        self.profile = {
            "username": "u",
            "email": "u@example.com",
            "dateOfBirth": "1990-05-04T00:00:00.000Z",
            "sex": "M",
            "height": 180,
            "initialWeight": 82,
            "targetWeight": 75,
            "workoutsPerWeek": 3,
        }
        self.account_deleted = False
        self.fail = {}
        self.raise_network = False
        self._ids = itertools.count(1)

    # helpers for tests
    def seed(self, path, **fields):
        row = {"_id": f"id{next(self._ids)}", **fields}
        self.entries[path].append(row)
        return row

    def issue_token(self, username):
        token = f"token-{username}-{len(self.tokens) + 1}"
        self.tokens[token] = username
        return token

    def calls_to(self, method, path):
        return [c for c in self.calls if c["method"] == method and c["path"] == path]

    # requests.Session interface
    def request(self, method, url, params=None, json=None, headers=None, timeout=None):
        path = urlparse(url).path[len(urlparse(BASE_URL).path):]
        self.calls.append({"method": method, "path": path, "params": params, "json": json, "headers": headers or {}})
        if self.raise_network:
            raise requests.ConnectionError("connection refused")
        if (method, path) in self.fail:
            status = self.fail[(method, path)]
            return FakeResponse(status, {"message": f"forced {status}"})
        if path.startswith("/auth/"):
            return self._auth(path, json or {})
        auth = (headers or {}).get("Authorization", "")
        if not auth.startswith("Bearer ") or auth[len("Bearer "):] not in self.tokens:
            return FakeResponse(401, {"message": "Unauthorized"})
        return self._resource(method, path, params or {}, json or {})

    def _auth(self, path, body):
        username = body.get("username")
        user = self.users.get(username)
        if path == "/auth/register":
            self.users[username] = {"password": body.get("password"), "email": body.get("email")}
            return FakeResponse(201, {"token": self.issue_token(username)})
        ok = user is not None and user["password"] == body.get("password")
        if path == "/auth/verify":
            return FakeResponse(200, {"verified": ok})
        if not ok:
            return FakeResponse(401, {"message": "Invalid credentials"})
        return FakeResponse(200, {"token": self.issue_token(username)})

    def _resource(self, method, path, params, body):
        if path == "/user":
            if method == "GET":
                return FakeResponse(200, dict(self.profile))
            if method == "PUT":
                self.profile.update(body)
                return FakeResponse(200, dict(self.profile))
            if method == "DELETE":
                self.account_deleted = True
                return FakeResponse(200, {"message": "deleted"})
        if path == "/dashboard":
            return FakeResponse(200, {
                "user": dict(self.profile),
                "latestWeight": self._newest("/weights"),
                "latestMacros": self._newest("/macros"),
            })
        base, _, entry_id = path.rpartition("/")
        if path in self.METRIC_PATHS:
            if method == "GET" and params.get("last") == "true":
                newest = self._newest(path)
                return FakeResponse(200, [newest] if newest else [])
            if method == "GET":
                return FakeResponse(200, list(self.entries[path]))
            if method == "POST":
                for value in body.values():
                    if isinstance(value, (int, float)) and value < 0:
                        return FakeResponse(400, {"message": "Values must be positive"})
                return FakeResponse(201, self.seed(path, **body))
        if base in self.METRIC_PATHS and method == "DELETE":
            before = len(self.entries[base])
            self.entries[base] = [row for row in self.entries[base] if row["_id"] != entry_id]
            if len(self.entries[base]) == before:
                return FakeResponse(404, {"message": "Not found"})
            return FakeResponse(200, {"message": "deleted"})
        return FakeResponse(404, {"message": "No route"})

    def _newest(self, path):
        rows = self.entries[path]
        if not rows:
            return None
        return max(rows, key=lambda row: row["date"])


@pytest.fixture
def server():
    return FakeServer()


@pytest.fixture
def redirects():
    return []


@pytest.fixture
def ctx(server, redirects):
    return build_context(
        storage=MemoryTokenStorage(),
        base_url=BASE_URL,
        navigate_to_login=lambda: redirects.append("login"),
        http=server,
    )


@pytest.fixture
def logged_in(ctx):
    ctx.auth.login("u", "p")
    return ctx
