"""Process-lifetime stores for identities and pending challenge sessions.

Both stores keep a single dict behind one lock. Writers replace whole frozen
records, so readers never observe a half-applied update.
"""

from __future__ import annotations

import threading
from collections.abc import Callable
from dataclasses import replace
from datetime import UTC, datetime

from passgate.passkeys.errors import NotFoundError, StorageInconsistencyError
from passgate.passkeys.models import Credential, Identity, Session

# ---------------------------------------------------------------------------
# Identities and credentials
# ---------------------------------------------------------------------------


class CredentialStore:
    """Identities keyed by login name, each owning its registered credentials."""

    def __init__(self) -> None:
        self._identities: dict[str, Identity] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._identities)

    def get_identity(self, name: str) -> Identity | None:
        with self._lock:
            return self._identities.get(name)

    def create_identity(
        self, name: str, user_id: bytes, display_name: str | None = None
    ) -> Identity:
        """Store a fresh identity with no credentials.

        The caller checks for an existing identity first; a second call for the
        same *name* replaces it.
        """
        identity = Identity(id=user_id, name=name, display_name=display_name or name)
        with self._lock:
            self._identities[name] = identity
        return identity

    def get_or_create_identity(
        self,
        name: str,
        user_id_factory: Callable[[], bytes],
        display_name: str | None = None,
    ) -> tuple[Identity, bool]:
        """Return the identity for *name*, creating it if absent.

        The lookup and the insert happen under one lock acquisition, so an
        existing identity (and its id) is never replaced. The second element is
        ``True`` when a new identity was created.
        """
        with self._lock:
            if (identity := self._identities.get(name)) is not None:
                return identity, False
            identity = Identity(
                id=user_id_factory(), name=name, display_name=display_name or name
            )
            self._identities[name] = identity
        return identity, True

    def add_credential(self, name: str, credential: Credential) -> Identity:
        """Append *credential* to the identity registered under *name*."""
        with self._lock:
            if (identity := self._identities.get(name)) is None:
                raise NotFoundError(f"User not found: {name}")
            identity = replace(identity, credentials=(*identity.credentials, credential))
            self._identities[name] = identity
        return identity

    def update_credential(self, name: str, credential: Credential) -> Identity:
        """Replace the stored credential sharing ``credential.credential_id``.

        Position in the credential sequence is preserved; nothing is appended.
        """
        with self._lock:
            if (identity := self._identities.get(name)) is None:
                raise NotFoundError(f"User not found: {name}")
            creds = list(identity.credentials)
            for i, existing in enumerate(creds):
                if existing.credential_id == credential.credential_id:
                    creds[i] = credential
                    break
            else:
                raise StorageInconsistencyError(f"Credential not found for user: {name}")
            identity = replace(identity, credentials=tuple(creds))
            self._identities[name] = identity
        return identity


# ---------------------------------------------------------------------------
# Pending sessions
# ---------------------------------------------------------------------------


class SessionStore:
    """At most one outstanding challenge session per login name."""

    def __init__(self) -> None:
        self._sessions: dict[str, Session] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

    def save(self, name: str, session: Session) -> None:
        """Store *session* for *name*, replacing any session already pending."""
        with self._lock:
            self._sessions[name] = session

    def load(self, name: str) -> Session | None:
        with self._lock:
            return self._sessions.get(name)

    def delete(self, name: str) -> None:
        with self._lock:
            self._sessions.pop(name, None)

    def pop(self, name: str) -> Session | None:
        """Remove and return the session for *name* in one step."""
        with self._lock:
            return self._sessions.pop(name, None)

    def purge_expired(self, now: datetime | None = None) -> int:
        """Delete sessions whose deadline has passed. Returns count deleted."""
        now = now or datetime.now(UTC)
        with self._lock:
            expired = [name for name, s in self._sessions.items() if s.is_expired(now)]
            for name in expired:
                del self._sessions[name]
        return len(expired)
