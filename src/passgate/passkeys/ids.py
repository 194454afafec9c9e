"""Identity handle generator and validator.

Scheme
------
* Generate 20 random bytes -> base32-encode (lowercase, no padding) -> 32 chars.
* Replace the first character with the ``'u'`` prefix.

The handle is what the authenticator stores as the WebAuthn *user handle*. It is
allocated once per identity and never derived from the username, so renaming or
reusing a username cannot collide with an existing handle.
"""

from __future__ import annotations

import base64
import os

_ID_LEN = 32
_ALLOWED_CHARS = set("abcdefghijklmnopqrstuvwxyz234567")


def _random_base32() -> str:
    """Return a 32-char lowercase base32 string from 20 random bytes (no padding)."""
    raw = os.urandom(20)
    return base64.b32encode(raw).decode("ascii").lower()


def new_user_id() -> bytes:
    """Generate a user handle (32 ASCII bytes, starts with ``b'u'``)."""
    s = _random_base32()
    return ("u" + s[1:]).encode("ascii")


def is_user_id(value: str | bytes) -> bool:
    """Return ``True`` when *value* looks like a handle from :func:`new_user_id`."""
    if isinstance(value, bytes):
        try:
            value = value.decode("ascii")
        except UnicodeDecodeError:
            return False
    if len(value) != _ID_LEN:
        return False
    if value[0] != "u":
        return False
    return all(c in _ALLOWED_CHARS for c in value[1:])
