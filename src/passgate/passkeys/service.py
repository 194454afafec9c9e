"""Passkey (WebAuthn) ceremonies: registration and login for named users.

Each ceremony is a ``begin`` that stores a single pending session for the
username and a ``finish`` that consumes it. A finish always removes the pending
session, whatever its outcome, so a challenge response can never be replayed.
"""

from __future__ import annotations

import logging
from typing import Any

from passgate.passkeys.errors import NotFoundError, ValidationError, VerificationError
from passgate.passkeys.ids import new_user_id
from passgate.passkeys.models import (
    Identity,
    LoginPending,
    LoginResult,
    RegistrationPending,
    RegistrationResult,
)
from passgate.passkeys.store import CredentialStore, SessionStore
from passgate.passkeys.webauthn import VerificationEngine, bytes_to_base64url

logger = logging.getLogger(__name__)


def _require_name(name: Any) -> str:
    if not isinstance(name, str) or not name.strip():
        raise ValidationError("Username is required")
    return name


def _require_response(response: Any) -> dict[str, Any]:
    if not isinstance(response, dict) or not response:
        raise ValidationError("Credential response is required")
    return response


class AuthCoordinator:
    """Runs the four ceremony steps against one pair of stores."""

    def __init__(
        self,
        engine: VerificationEngine,
        credentials: CredentialStore,
        sessions: SessionStore,
    ) -> None:
        self.engine = engine
        self.credentials = credentials
        self.sessions = sessions

    def _identity(self, name: str) -> Identity:
        if (identity := self.credentials.get_identity(name)) is None:
            raise NotFoundError(f"User not found: {name}")
        return identity

    # -----------------------------------------------------------------------
    # Registration
    # -----------------------------------------------------------------------

    def begin_registration(self, name: str) -> dict[str, Any]:
        """Return creation options for *name*, creating the identity on first use."""
        _require_name(name)
        identity, created = self.credentials.get_or_create_identity(name, new_user_id)
        if created:
            logger.info("created identity for %s", name)

        options, session = self.engine.begin_registration_challenge(identity)
        self.sessions.save(name, session)
        return options

    def finish_registration(self, name: str, response: dict[str, Any]) -> RegistrationResult:
        """Verify an attestation for the pending registration and store the credential."""
        _require_name(name)
        session = self.sessions.pop(name)
        identity = self._identity(name)
        if session is None:
            raise NotFoundError(f"Session not found: {name}")
        if not isinstance(session, RegistrationPending):
            raise NotFoundError(f"No registration pending for user: {name}")
        _require_response(response)

        try:
            credential = self.engine.finish_registration(identity, session, response)
        except VerificationError as exc:
            logger.warning("registration rejected for %s: %s", name, exc)
            raise

        identity = self.credentials.add_credential(name, credential)
        logger.info(
            "registered credential %s for %s",
            bytes_to_base64url(credential.credential_id),
            name,
        )
        return RegistrationResult(identity=identity, credential=credential)

    # -----------------------------------------------------------------------
    # Login
    # -----------------------------------------------------------------------

    def begin_login(self, name: str) -> dict[str, Any]:
        """Return request options limited to the credentials *name* has registered."""
        _require_name(name)
        identity = self._identity(name)
        if not identity.credentials:
            raise ValidationError("No credentials registered for this user")

        options, session = self.engine.begin_login_challenge(identity)
        self.sessions.save(name, session)
        return options

    def finish_login(self, name: str, response: dict[str, Any]) -> LoginResult:
        """Verify an assertion for the pending login and record the new sign count.

        A sign count that cannot be stored does not fail the login; it is logged
        and reported through ``LoginResult.sign_count_persisted``.
        """
        _require_name(name)
        session = self.sessions.pop(name)
        identity = self._identity(name)
        if session is None:
            raise NotFoundError(f"Session not found: {name}")
        if not isinstance(session, LoginPending):
            raise NotFoundError(f"No login pending for user: {name}")
        _require_response(response)

        try:
            credential = self.engine.finish_login(identity, session, response)
        except VerificationError as exc:
            logger.warning("login rejected for %s: %s", name, exc)
            raise

        persisted = True
        try:
            identity = self.credentials.update_credential(name, credential)
        except NotFoundError as exc:
            persisted = False
            logger.warning(
                "sign count not persisted for %s: %s",
                name,
                exc,
                extra={
                    "event": "sign_count_not_persisted",
                    "username": name,
                    "credential_id": bytes_to_base64url(credential.credential_id),
                    "sign_count": credential.sign_count,
                },
            )

        logger.info("login succeeded for %s", name)
        return LoginResult(identity=identity, credential=credential, sign_count_persisted=persisted)
