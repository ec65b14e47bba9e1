"""Exception taxonomy shared by the API wrapper, repositories and the gate."""
from __future__ import annotations

from typing import Optional


class FitManagerError(Exception):
    """Base class for every client-side failure."""


class TransportError(FitManagerError):
    """Network failure, timeout, or a non-2xx response not classified further."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class ValidationError(TransportError):
    """The remote store rejected a payload (400-class on create/update)."""


class AuthenticationError(FitManagerError):
    """The session is no longer valid, or a re-auth check was refused."""


class GateError(FitManagerError):
    """A gated confirmation was attempted with no pending action."""
