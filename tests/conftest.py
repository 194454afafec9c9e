"""Common test fixtures and helpers."""

from __future__ import annotations

import hashlib
import json
import os
import struct
from base64 import urlsafe_b64encode
from dataclasses import replace
from datetime import UTC, datetime, timedelta
from typing import Any

import cbor2
import pytest
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec
from fastapi.testclient import TestClient

from passgate.app import create_app
from passgate.config import Settings
from passgate.passkeys.errors import EngineError, VerificationError
from passgate.passkeys.models import Credential, LoginPending, RegistrationPending
from passgate.passkeys.service import AuthCoordinator
from passgate.passkeys.store import CredentialStore, SessionStore
from passgate.passkeys.webauthn import WebAuthnEngine

RP_ID = "localhost"
ORIGIN = "http://localhost:8080"

# Authenticator data flags.
_UP = 0x01
_UV = 0x04
_AT = 0x40


def _b64(b: bytes) -> str:
    return urlsafe_b64encode(b).rstrip(b"=").decode("ascii")


# ---------------------------------------------------------------------------
# Software authenticator (ES256, "none" attestation)
# ---------------------------------------------------------------------------


class SoftAuthenticator:
    """Minimal platform authenticator holding a single P-256 key pair."""

    def __init__(self, rp_id: str = RP_ID, origin: str = ORIGIN) -> None:
        self.rp_id = rp_id
        self.origin = origin
        self.private_key = ec.generate_private_key(ec.SECP256R1())
        self.credential_id = os.urandom(16)
        self.sign_count = 0

    @property
    def credential_id_b64(self) -> str:
        return _b64(self.credential_id)

    def _rp_id_hash(self) -> bytes:
        return hashlib.sha256(self.rp_id.encode("utf-8")).digest()

    def _cose_public_key(self) -> bytes:
        numbers = self.private_key.public_key().public_numbers()
        return cbor2.dumps(
            {
                1: 2,  # kty: EC2
                3: -7,  # alg: ES256
                -1: 1,  # crv: P-256
                -2: numbers.x.to_bytes(32, "big"),
                -3: numbers.y.to_bytes(32, "big"),
            }
        )

    def _client_data(self, kind: str, challenge: str, origin: str | None) -> bytes:
        return json.dumps(
            {
                "type": kind,
                "challenge": challenge,
                "origin": origin or self.origin,
                "crossOrigin": False,
            }
        ).encode("utf-8")

    def create(self, options: dict[str, Any], *, origin: str | None = None) -> dict[str, Any]:
        """Answer creation options with a registration response."""
        client_data = self._client_data("webauthn.create", options["challenge"], origin)
        auth_data = (
            self._rp_id_hash()
            + bytes([_UP | _UV | _AT])
            + struct.pack(">I", self.sign_count)
            + b"\x00" * 16  # aaguid
            + struct.pack(">H", len(self.credential_id))
            + self.credential_id
            + self._cose_public_key()
        )
        attestation = cbor2.dumps({"fmt": "none", "attStmt": {}, "authData": auth_data})
        return {
            "id": self.credential_id_b64,
            "rawId": self.credential_id_b64,
            "type": "public-key",
            "response": {
                "clientDataJSON": _b64(client_data),
                "attestationObject": _b64(attestation),
                "transports": ["internal"],
            },
            "clientExtensionResults": {},
        }

    def get(
        self,
        options: dict[str, Any],
        *,
        user_handle: bytes | None = None,
        origin: str | None = None,
    ) -> dict[str, Any]:
        """Answer request options with an assertion, bumping the sign count."""
        self.sign_count += 1
        client_data = self._client_data("webauthn.get", options["challenge"], origin)
        auth_data = self._rp_id_hash() + bytes([_UP | _UV]) + struct.pack(">I", self.sign_count)
        signature = self.private_key.sign(
            auth_data + hashlib.sha256(client_data).digest(),
            ec.ECDSA(hashes.SHA256()),
        )
        response: dict[str, Any] = {
            "clientDataJSON": _b64(client_data),
            "authenticatorData": _b64(auth_data),
            "signature": _b64(signature),
        }
        if user_handle is not None:
            response["userHandle"] = _b64(user_handle)
        return {
            "id": self.credential_id_b64,
            "rawId": self.credential_id_b64,
            "type": "public-key",
            "response": response,
            "clientExtensionResults": {},
        }


# ---------------------------------------------------------------------------
# Deterministic engine
# ---------------------------------------------------------------------------


class FakeEngine:
    """Engine whose responses are valid when they echo the session challenge as hex.

    Registration responses carry ``{"challenge", "id"}``; login responses carry
    ``{"challenge", "id"}`` and optionally ``"sign_count"``.
    """

    def __init__(self) -> None:
        self.calls: list[tuple[str, str]] = []
        self.fail_begin = False

    def _deadline(self) -> datetime:
        return datetime.now(UTC) + timedelta(seconds=60)

    def begin_registration_challenge(self, identity):  # type: ignore[no-untyped-def]
        self.calls.append(("begin_registration", identity.name))
        if self.fail_begin:
            raise EngineError("challenge generation failed")
        session = RegistrationPending(
            challenge=os.urandom(16),
            user_id=identity.id,
            expires_at=self._deadline(),
            excluded_credential_ids=identity.credential_ids,
        )
        options = {
            "challenge": session.challenge.hex(),
            "user": {"id": _b64(identity.id), "name": identity.name},
            "excludeCredentials": [c.hex() for c in identity.credential_ids],
        }
        return options, session

    def finish_registration(self, identity, session, response):  # type: ignore[no-untyped-def]
        self.calls.append(("finish_registration", identity.name))
        if response.get("challenge") != session.challenge.hex():
            raise VerificationError("Challenge mismatch")
        return Credential(
            credential_id=bytes.fromhex(response["id"]),
            public_key=b"cose:" + bytes.fromhex(response["id"]),
        )

    def begin_login_challenge(self, identity):  # type: ignore[no-untyped-def]
        self.calls.append(("begin_login", identity.name))
        if self.fail_begin:
            raise EngineError("challenge generation failed")
        session = LoginPending(
            challenge=os.urandom(16),
            user_id=identity.id,
            expires_at=self._deadline(),
            allowed_credential_ids=identity.credential_ids,
        )
        options = {
            "challenge": session.challenge.hex(),
            "allowCredentials": [c.hex() for c in identity.credential_ids],
        }
        return options, session

    def finish_login(self, identity, session, response):  # type: ignore[no-untyped-def]
        self.calls.append(("finish_login", identity.name))
        if response.get("challenge") != session.challenge.hex():
            raise VerificationError("Challenge mismatch")
        cred_id = bytes.fromhex(response["id"])
        if (stored := identity.find_credential(cred_id)) is None:
            if "sign_count" in response:
                # Lets tests return a credential the store does not hold.
                return Credential(credential_id=cred_id, public_key=b"", sign_count=1)
            raise VerificationError("Unknown credential")
        return replace(stored, sign_count=response.get("sign_count", stored.sign_count + 1))


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def settings():
    return Settings(rp_id=RP_ID, origins=[ORIGIN], env="development")


@pytest.fixture()
def fake_engine():
    return FakeEngine()


@pytest.fixture()
def fake_coordinator(fake_engine):
    return AuthCoordinator(fake_engine, CredentialStore(), SessionStore())


@pytest.fixture()
def coordinator(settings):
    return AuthCoordinator(WebAuthnEngine(settings), CredentialStore(), SessionStore())


@pytest.fixture()
def authenticator():
    return SoftAuthenticator()


@pytest.fixture()
def make_authenticator():
    return SoftAuthenticator


@pytest.fixture()
def client(settings):
    with TestClient(create_app(settings)) as c:
        yield c
