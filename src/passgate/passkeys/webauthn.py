"""Verification engine: challenge construction and response verification.

The coordinator only depends on the :class:`VerificationEngine` protocol.
:class:`WebAuthnEngine` is the production implementation, a thin wrapper around
py_webauthn that keeps attestation parsing and signature checks out of this
package.
"""

from __future__ import annotations

import json
import secrets
from base64 import urlsafe_b64decode, urlsafe_b64encode
from dataclasses import replace
from datetime import UTC, datetime, timedelta
from typing import Any, Protocol

from webauthn import (
    generate_authentication_options,
    generate_registration_options,
    options_to_json,
    verify_authentication_response,
    verify_registration_response,
)
from webauthn.helpers import (
    parse_authentication_credential_json,
    parse_registration_credential_json,
)
from webauthn.helpers.exceptions import (
    InvalidAuthenticationResponse,
    InvalidAuthenticatorDataStructure,
    InvalidCBORData,
    InvalidJSONStructure,
    InvalidRegistrationResponse,
)
from webauthn.helpers.structs import (
    AttestationConveyancePreference,
    AuthenticatorSelectionCriteria,
    CredentialDeviceType,
    PublicKeyCredentialDescriptor,
    ResidentKeyRequirement,
    UserVerificationRequirement,
)

from passgate.config import Settings
from passgate.passkeys.errors import EngineError, VerificationError
from passgate.passkeys.models import Credential, Identity, LoginPending, RegistrationPending

# Everything py_webauthn raises for a response it refuses, plus decoding errors
# (binascii.Error is a ValueError) from malformed base64url fields.
_REJECTED = (
    InvalidRegistrationResponse,
    InvalidAuthenticationResponse,
    InvalidJSONStructure,
    InvalidCBORData,
    InvalidAuthenticatorDataStructure,
    ValueError,
    KeyError,
    TypeError,
    AttributeError,
)


def bytes_to_base64url(b: bytes) -> str:
    return urlsafe_b64encode(b).rstrip(b"=").decode("ascii")


def base64url_to_bytes(s: str) -> bytes:
    padding = 4 - len(s) % 4
    if padding != 4:
        s += "=" * padding
    return urlsafe_b64decode(s)


def _new_challenge() -> bytes:
    return secrets.token_bytes(32)


def _deadline(timeout_ms: int) -> datetime:
    return datetime.now(UTC) + timedelta(milliseconds=timeout_ms)


class VerificationEngine(Protocol):
    """What the coordinator needs from a WebAuthn implementation."""

    def begin_registration_challenge(
        self, identity: Identity
    ) -> tuple[dict[str, Any], RegistrationPending]: ...

    def finish_registration(
        self, identity: Identity, session: RegistrationPending, response: dict[str, Any]
    ) -> Credential: ...

    def begin_login_challenge(self, identity: Identity) -> tuple[dict[str, Any], LoginPending]: ...

    def finish_login(
        self, identity: Identity, session: LoginPending, response: dict[str, Any]
    ) -> Credential: ...


class WebAuthnEngine:
    """py_webauthn-backed engine configured once from :class:`Settings`."""

    def __init__(self, settings: Settings) -> None:
        self.settings = settings
        self.rp_id = settings.effective_rp_id()
        self.rp_name = settings.rp_display_name
        self.origins = settings.effective_origins()

    # -- policy helpers --

    def _uv(self) -> UserVerificationRequirement:
        """Map setting string to webauthn enum value."""
        return UserVerificationRequirement(self.settings.user_verification)

    def _check_session(
        self, identity: Identity, session: RegistrationPending | LoginPending
    ) -> None:
        if session.user_id != identity.id:
            raise VerificationError("Session does not belong to this user")
        if self.settings.enforce_timeouts and session.is_expired():
            raise VerificationError("Challenge expired")

    # -- registration --

    def begin_registration_challenge(
        self, identity: Identity
    ) -> tuple[dict[str, Any], RegistrationPending]:
        """Build PublicKeyCredentialCreationOptions and the session that verifies them."""
        challenge = _new_challenge()
        excluded = identity.credential_ids
        try:
            opts = generate_registration_options(
                rp_id=self.rp_id,
                rp_name=self.rp_name,
                user_id=identity.id,
                user_name=identity.name,
                user_display_name=identity.display_name,
                challenge=challenge,
                timeout=self.settings.registration_timeout_ms,
                attestation=AttestationConveyancePreference(self.settings.attestation),
                authenticator_selection=AuthenticatorSelectionCriteria(
                    resident_key=ResidentKeyRequirement(self.settings.resident_key),
                    user_verification=self._uv(),
                ),
                exclude_credentials=[PublicKeyCredentialDescriptor(id=c) for c in excluded],
            )
        except ValueError as exc:
            raise EngineError(f"Failed to begin registration: {exc}") from exc

        session = RegistrationPending(
            challenge=challenge,
            user_id=identity.id,
            expires_at=_deadline(self.settings.registration_timeout_ms),
            user_verification=self.settings.user_verification,
            excluded_credential_ids=excluded,
        )
        options: dict[str, Any] = json.loads(options_to_json(opts))
        return options, session

    def finish_registration(
        self, identity: Identity, session: RegistrationPending, response: dict[str, Any]
    ) -> Credential:
        """Verify an attestation against *session* and return the new credential."""
        self._check_session(identity, session)
        try:
            cred = parse_registration_credential_json(json.dumps(response))
            verified = verify_registration_response(
                credential=cred,
                expected_challenge=session.challenge,
                expected_rp_id=self.rp_id,
                expected_origin=self.origins,
                require_user_verification=session.user_verification == "required",
            )
        except _REJECTED as exc:
            raise VerificationError(str(exc) or type(exc).__name__) from exc

        if identity.find_credential(verified.credential_id) is not None:
            raise VerificationError("Credential already registered for this user")

        transports = response.get("response", {}).get("transports") or ()
        return Credential(
            credential_id=verified.credential_id,
            public_key=verified.credential_public_key,
            sign_count=verified.sign_count,
            aaguid=verified.aaguid,
            attestation_format=str(getattr(verified.fmt, "value", verified.fmt)),
            transports=tuple(str(t) for t in transports),
            backup_eligible=verified.credential_device_type == CredentialDeviceType.MULTI_DEVICE,
            backed_up=verified.credential_backed_up,
            user_verified=verified.user_verified,
        )

    # -- login --

    def begin_login_challenge(self, identity: Identity) -> tuple[dict[str, Any], LoginPending]:
        """Build PublicKeyCredentialRequestOptions scoped to the identity's credentials."""
        challenge = _new_challenge()
        allowed = identity.credential_ids
        try:
            opts = generate_authentication_options(
                rp_id=self.rp_id,
                challenge=challenge,
                timeout=self.settings.login_timeout_ms,
                user_verification=self._uv(),
                allow_credentials=[PublicKeyCredentialDescriptor(id=c) for c in allowed],
            )
        except ValueError as exc:
            raise EngineError(f"Failed to begin login: {exc}") from exc

        session = LoginPending(
            challenge=challenge,
            user_id=identity.id,
            expires_at=_deadline(self.settings.login_timeout_ms),
            user_verification=self.settings.user_verification,
            allowed_credential_ids=allowed,
        )
        options: dict[str, Any] = json.loads(options_to_json(opts))
        return options, session

    def finish_login(
        self, identity: Identity, session: LoginPending, response: dict[str, Any]
    ) -> Credential:
        """Verify an assertion and return the stored credential with its new counters."""
        self._check_session(identity, session)
        try:
            raw_id = base64url_to_bytes(response.get("rawId") or response.get("id", ""))
            user_handle = response.get("response", {}).get("userHandle")
            handle = base64url_to_bytes(user_handle) if user_handle else None
        except _REJECTED as exc:
            raise VerificationError("Malformed credential id or user handle") from exc

        if raw_id not in session.allowed_credential_ids:
            raise VerificationError("Credential not allowed for this challenge")
        if (stored := identity.find_credential(raw_id)) is None:
            raise VerificationError("Unknown credential")
        if handle is not None and handle != identity.id:
            raise VerificationError("User handle does not match this user")

        try:
            cred = parse_authentication_credential_json(json.dumps(response))
            verified = verify_authentication_response(
                credential=cred,
                expected_challenge=session.challenge,
                expected_rp_id=self.rp_id,
                expected_origin=self.origins,
                credential_public_key=stored.public_key,
                credential_current_sign_count=stored.sign_count,
                require_user_verification=session.user_verification == "required",
            )
        except _REJECTED as exc:
            raise VerificationError(str(exc) or type(exc).__name__) from exc

        return replace(
            stored,
            sign_count=verified.new_sign_count,
            backed_up=verified.credential_backed_up,
            user_verified=verified.user_verified,
            last_used_at=datetime.now(UTC),
        )
