"""
Thin HTTP wrapper around the remote FitManager API.

Every authenticated call carries the session's bearer token. Responses are
classified into the client error taxonomy; a 401/403 clears the session and
fires the on_unauthorized hook (normally "go to the login page").
"""
from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Optional

import requests

from . import config
from .errors import AuthenticationError, TransportError, ValidationError
from .session import SessionStore

logger = logging.getLogger(__name__)

UNAUTHORIZED_STATUSES = (401, 403)
VALIDATION_STATUSES = (400, 422)


def _error_message(resp: requests.Response) -> str:
    try:
        body = resp.json()
    except ValueError:
        return (resp.text or "").strip()[:300] or f"HTTP {resp.status_code}"
    if isinstance(body, dict):
        for key in ("message", "error", "msg"):
            if body.get(key):
                return str(body[key])
    return f"HTTP {resp.status_code}"


class ApiClient:
    def __init__(
        self,
        session_store: SessionStore,
        base_url: str = config.API_URL,
        timeout: float = config.REQUEST_TIMEOUT,
        on_unauthorized: Optional[Callable[[], None]] = None,
        http: Optional[requests.Session] = None,
    ):
        self.session_store = session_store
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.on_unauthorized = on_unauthorized
        self.http = http if http is not None else requests.Session()
        self.http.headers.update({"Accept": "application/json"})

    # -------------------------------
    # Verbs
    # -------------------------------

    def get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        return self.request("GET", path, params=params)

    def post(self, path: str, payload: Optional[Dict[str, Any]] = None, auth: bool = True) -> Any:
        return self.request("POST", path, json=payload, auth=auth)

    def put(self, path: str, payload: Optional[Dict[str, Any]] = None) -> Any:
        return self.request("PUT", path, json=payload)

    def delete(self, path: str) -> Any:
        return self.request("DELETE", path)

    # -------------------------------
    # Core request
    # -------------------------------

    def _headers(self, auth: bool) -> Dict[str, str]:
        headers: Dict[str, str] = {"Content-Type": "application/json"}
        if auth:
            token = self.session_store.current_token()
            if token:
                headers["Authorization"] = f"Bearer {token}"
        return headers

    def request(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        json: Optional[Dict[str, Any]] = None,
        auth: bool = True,
    ) -> Any:
        url = self.base_url + path
        try:
            resp = self.http.request(
                method,
                url,
                params=params,
                json=json,
                headers=self._headers(auth),
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            logger.error("%s %s failed: %s", method, path, e)
            raise TransportError(f"Could not reach the server: {e}") from e

        status = resp.status_code
        if status in UNAUTHORIZED_STATUSES:
            # auth routes answer 401 for bad credentials; only a rejected token ends the session
            if auth:
                logger.warning("%s %s rejected with %s; clearing session", method, path, status)
                self._handle_unauthorized()
            else:
                logger.warning("%s %s refused credentials", method, path)
            raise AuthenticationError(_error_message(resp))
        if status in VALIDATION_STATUSES:
            message = _error_message(resp)
            logger.warning("%s %s rejected as invalid: %s", method, path, message)
            raise ValidationError(message, status_code=status)
        if not 200 <= status < 300:
            message = _error_message(resp)
            logger.error("%s %s returned %s: %s", method, path, status, message)
            raise TransportError(message, status_code=status)

        if status == 204 or not resp.content:
            return None
        try:
            return resp.json()
        except ValueError as e:
            logger.error("%s %s returned a body that is not JSON", method, path)
            raise TransportError("Malformed response from server", status_code=status) from e

    def _handle_unauthorized(self) -> None:
        self.session_store.logout()
        if self.on_unauthorized is not None:
            self.on_unauthorized()
