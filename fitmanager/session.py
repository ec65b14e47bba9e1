"""
Session lifecycle: the single owner of the authentication token.

The token lives in memory and in a key-value slot that the store rehydrates
from on construction. The slot is per client by default; a file slot shared
by the whole machine is opt-in.
"""
from __future__ import annotations

import json
import logging
import os
from datetime import datetime
from typing import Callable, Dict, List, MutableMapping, Optional

from . import config

logger = logging.getLogger(__name__)

Listener = Callable[[Optional[str]], None]


# -------------------------------
# Token storage
# -------------------------------

class MemoryTokenStorage:
    """Process-local storage; the default when the token is not persisted."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._data: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def delete(self, key: str) -> None:
        self._data.pop(key, None)


class SessionStateTokenStorage:
    """
    Slot inside a per-client mapping such as Streamlit's st.session_state,
    so each browser session holds its own token.
    """

    def __init__(self, state: MutableMapping, prefix: str = "fitmanager_"):
        self.state = state
        self.prefix = prefix

    def get(self, key: str) -> Optional[str]:
        value = self.state.get(self.prefix + key)
        return value if isinstance(value, str) and value else None

    def set(self, key: str, value: str) -> None:
        self.state[self.prefix + key] = value

    def delete(self, key: str) -> None:
        if self.prefix + key in self.state:
            del self.state[self.prefix + key]


class FileTokenStorage:
    """
    Key-value slot persisted as a small JSON document readable only by its owner.
    A missing or unreadable file reads as empty.
    """

    def __init__(self, path: Optional[str] = None):
        self.path = path or config.STATE_PATH

    def _load(self) -> Dict[str, str]:
        if not os.path.exists(self.path):
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                obj = json.load(f)
        except (OSError, ValueError) as e:
            logger.warning("Ignoring unreadable session file %s: %s", self.path, e)
            return {}
        values = obj.get("values", {}) if isinstance(obj, dict) else {}
        return values if isinstance(values, dict) else {}

    def _save(self, values: Dict[str, str]) -> None:
        directory = os.path.dirname(self.path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        fd = os.open(self.path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        # the mode above only applies to new files
        os.chmod(self.path, 0o600)
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump({"values": values, "saved_at": datetime.now().isoformat()}, f, indent=2)

    def get(self, key: str) -> Optional[str]:
        value = self._load().get(key)
        return value if isinstance(value, str) and value else None

    def set(self, key: str, value: str) -> None:
        values = self._load()
        values[key] = value
        self._save(values)

    def delete(self, key: str) -> None:
        values = self._load()
        if key in values:
            del values[key]
            self._save(values)


def default_storage():
    """File slot when FITMANAGER_PERSIST_TOKEN is set, otherwise process memory."""
    if config.PERSIST_TOKEN:
        return FileTokenStorage()
    return MemoryTokenStorage()


# -------------------------------
# Session store
# -------------------------------

class SessionStore:
    """
    Holds the current token. Absence of a token means "logged out"; nothing
    here can fail on that account.
    """

    def __init__(self, storage=None, key: str = config.TOKEN_KEY):
        self._storage = storage if storage is not None else default_storage()
        self._key = key
        self._listeners: List[Listener] = []
        self._token: Optional[str] = self._storage.get(self._key)
        if self._token:
            logger.debug("Session rehydrated from storage")

    @property
    def is_authenticated(self) -> bool:
        return self._token is not None

    def current_token(self) -> Optional[str]:
        return self._token

    def login(self, token: str) -> None:
        self._storage.set(self._key, token)
        self._token = token
        logger.info("Session started")
        self._notify()

    def logout(self) -> None:
        was_active = self._token is not None
        self._storage.delete(self._key)
        self._token = None
        if was_active:
            logger.info("Session cleared")
            self._notify()

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a change listener; returns a function that removes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self) -> None:
        for listener in list(self._listeners):
            try:
                listener(self._token)
            except Exception:
                logger.exception("Session listener failed")
