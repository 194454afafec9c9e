"""Errors raised by the passkey stores, engine and coordinator.

Every ceremony error is terminal for that attempt: callers restart from the
matching ``begin`` call.
"""

from __future__ import annotations


class PasskeyError(Exception):
    """Base class for passkey ceremony failures."""


class ValidationError(PasskeyError):
    """A required field is missing or the request cannot be served as asked."""


class NotFoundError(PasskeyError):
    """The referenced identity or pending session does not exist."""


class StorageInconsistencyError(NotFoundError):
    """The store does not hold the credential an update refers to."""


class EngineError(PasskeyError):
    """The verification engine could not produce a challenge."""


class VerificationError(EngineError):
    """The verification engine rejected a client response."""
