"""Application factory."""

from __future__ import annotations

import logging

from fastapi import FastAPI
from pydantic import BaseModel, Field

from passgate.config import Settings
from passgate.passkeys.router import router as passkey_router
from passgate.passkeys.service import AuthCoordinator
from passgate.passkeys.store import CredentialStore, SessionStore
from passgate.passkeys.webauthn import VerificationEngine, WebAuthnEngine
from passgate.version import __version__ as PASSGATE_VERSION

logger = logging.getLogger(__name__)


def create_app(
    settings: Settings | None = None,
    engine: VerificationEngine | None = None,
) -> FastAPI:
    """Create a FastAPI application with its own stores and coordinator."""
    if settings is None:
        settings = Settings()
    if engine is None:
        engine = WebAuthnEngine(settings)

    # Volatile state: lives as long as this app instance.
    credentials = CredentialStore()
    sessions = SessionStore()
    coordinator = AuthCoordinator(engine, credentials, sessions)

    app = FastAPI(
        title="passgate",
        description="Passwordless passkey registration and login",
        version=PASSGATE_VERSION,
    )

    # Store on app.state for dependency access.
    app.state.settings = settings
    app.state.credentials = credentials
    app.state.sessions = sessions
    app.state.coordinator = coordinator

    app.include_router(passkey_router)

    class HealthResponse(BaseModel):
        status: str = Field(..., description="Health status string.")

    @app.get(
        "/health",
        response_model=HealthResponse,
        summary="Health",
        description="Basic health check for the service.",
    )
    def health() -> HealthResponse:
        return HealthResponse(status="healthy")

    if isinstance(engine, WebAuthnEngine):
        logger.info("relying party %s, origins %s", engine.rp_id, ", ".join(engine.origins))
    return app
