"""Passkey (WebAuthn) authentication: stores, verification engine and ceremonies."""

from passgate.passkeys.errors import (
    EngineError,
    NotFoundError,
    PasskeyError,
    StorageInconsistencyError,
    ValidationError,
    VerificationError,
)
from passgate.passkeys.ids import is_user_id, new_user_id
from passgate.passkeys.models import (
    Credential,
    Identity,
    LoginPending,
    LoginResult,
    RegistrationPending,
    RegistrationResult,
    Session,
)
from passgate.passkeys.service import AuthCoordinator
from passgate.passkeys.store import CredentialStore, SessionStore
from passgate.passkeys.webauthn import VerificationEngine, WebAuthnEngine

__all__ = [
    "AuthCoordinator",
    "Credential",
    "CredentialStore",
    "EngineError",
    "Identity",
    "LoginPending",
    "LoginResult",
    "NotFoundError",
    "PasskeyError",
    "RegistrationPending",
    "RegistrationResult",
    "Session",
    "SessionStore",
    "StorageInconsistencyError",
    "ValidationError",
    "VerificationEngine",
    "VerificationError",
    "WebAuthnEngine",
    "is_user_id",
    "new_user_id",
]
