"""passgate - passwordless passkey (WebAuthn) registration and login."""

from passgate.app import create_app
from passgate.version import __version__

__all__ = ["create_app", "__version__"]
