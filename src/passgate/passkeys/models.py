"""In-memory passkey records.

Records are frozen: the stores replace whole records under their lock, so any
record handed out is a snapshot that cannot change underneath the caller.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime


def _utcnow() -> datetime:
    return datetime.now(UTC)


# ---------------------------------------------------------------------------
# Credential / Identity
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Credential:
    """A registered public-key credential.

    ``public_key`` is the COSE-encoded key exactly as the engine returned it.
    """

    credential_id: bytes
    public_key: bytes
    sign_count: int = 0
    aaguid: str = ""
    attestation_format: str = "none"
    transports: tuple[str, ...] = ()
    backup_eligible: bool = False
    backed_up: bool = False
    user_verified: bool = False
    created_at: datetime = field(default_factory=_utcnow)
    last_used_at: datetime | None = None


@dataclass(frozen=True)
class Identity:
    """A principal: stable handle, unique login name, and its credentials."""

    id: bytes
    name: str
    display_name: str
    credentials: tuple[Credential, ...] = ()
    created_at: datetime = field(default_factory=_utcnow)

    @property
    def credential_ids(self) -> tuple[bytes, ...]:
        return tuple(c.credential_id for c in self.credentials)

    def find_credential(self, credential_id: bytes) -> Credential | None:
        for cred in self.credentials:
            if cred.credential_id == credential_id:
                return cred
        return None


# ---------------------------------------------------------------------------
# Pending sessions
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RegistrationPending:
    """Challenge issued by a registration begin, awaiting an attestation."""

    challenge: bytes
    user_id: bytes
    expires_at: datetime
    user_verification: str = "preferred"
    excluded_credential_ids: tuple[bytes, ...] = ()
    created_at: datetime = field(default_factory=_utcnow)

    kind = "registration"

    def is_expired(self, now: datetime | None = None) -> bool:
        return (now or _utcnow()) >= self.expires_at


@dataclass(frozen=True)
class LoginPending:
    """Challenge issued by a login begin, awaiting an assertion."""

    challenge: bytes
    user_id: bytes
    expires_at: datetime
    user_verification: str = "preferred"
    allowed_credential_ids: tuple[bytes, ...] = ()
    created_at: datetime = field(default_factory=_utcnow)

    kind = "login"

    def is_expired(self, now: datetime | None = None) -> bool:
        return (now or _utcnow()) >= self.expires_at


Session = RegistrationPending | LoginPending


# ---------------------------------------------------------------------------
# Ceremony results
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RegistrationResult:
    identity: Identity
    credential: Credential


@dataclass(frozen=True)
class LoginResult:
    identity: Identity
    credential: Credential
    sign_count_persisted: bool = True

    @property
    def user_id(self) -> bytes:
        return self.identity.id

    @property
    def name(self) -> str:
        return self.identity.name
