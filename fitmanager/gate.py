"""
Re-authentication gate for sensitive mutations (profile update, account deletion).

A valid session token is not enough for these: the user must type their
credentials again right before the action runs.

    Idle --request_action--> AwaitingConfirmation --confirm/cancel--> Idle
"""
from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Optional

from .errors import AuthenticationError, GateError
from .models import PendingAction, UserProfile
from .repository import AuthService, ProfileRepository
from .session import SessionStore

logger = logging.getLogger(__name__)


class ReauthGate:
    def __init__(
        self,
        auth: AuthService,
        profiles: ProfileRepository,
        session_store: SessionStore,
        navigate_to_login: Optional[Callable[[], None]] = None,
    ):
        self.auth = auth
        self.profiles = profiles
        self.session_store = session_store
        self.navigate_to_login = navigate_to_login
        self._pending = PendingAction.NONE
        self._payload: Optional[Dict[str, Any]] = None

    @property
    def pending(self) -> PendingAction:
        return self._pending

    @property
    def awaiting_confirmation(self) -> bool:
        return self._pending is not PendingAction.NONE

    def request_action(self, kind: PendingAction, payload: Optional[Dict[str, Any]] = None) -> None:
        """
        Record the action to run once credentials are confirmed. A second
        request replaces the first; only one gated action is ever in flight.
        """
        if kind is PendingAction.NONE:
            raise ValueError("request_action needs UPDATE or DELETE")
        if kind is PendingAction.UPDATE and payload is None:
            raise ValueError("UPDATE needs the profile fields to write")
        if self.awaiting_confirmation:
            logger.info("Replacing pending %s with %s", self._pending.value, kind.value)
        self._pending = kind
        self._payload = dict(payload) if payload is not None else None

    def cancel(self) -> None:
        self._reset()

    def confirm(self, username: str, password: str) -> Optional[UserProfile]:
        """
        Verify the credentials, then run the pending action.

        Returns the updated profile for UPDATE and None for DELETE. Raises
        AuthenticationError when the credentials are refused. The pending
        action and its payload are cleared whatever happens.
        """
        if not self.awaiting_confirmation:
            raise GateError("Nothing is waiting for confirmation")
        try:
            if not self.auth.verify(username, password):
                logger.warning("Re-authentication refused for pending %s", self._pending.value)
                raise AuthenticationError("Invalid credentials")
            if self._pending is PendingAction.UPDATE:
                return self._update()
            return self._delete()
        finally:
            self._reset()

    def _update(self) -> UserProfile:
        return self.profiles.update(self._payload or {})

    def _delete(self) -> None:
        self.profiles.delete()
        # only reached once the remote delete succeeded
        self.session_store.logout()
        if self.navigate_to_login is not None:
            self.navigate_to_login()
        return None

    def _reset(self) -> None:
        self._pending = PendingAction.NONE
        self._payload = None
