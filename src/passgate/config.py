"""Environment-driven configuration using pydantic-settings."""

from __future__ import annotations

import warnings

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Central configuration. All values can be overridden via env vars prefixed ``PASSGATE_``."""

    model_config = SettingsConfigDict(
        env_prefix="PASSGATE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # --- environment ---
    env: str = "development"

    # --- relying party ---
    rp_id: str = ""
    rp_display_name: str = "Passkey Demo"
    origins: list[str] = []

    # --- ceremony policy ---
    registration_timeout_ms: int = 60000
    login_timeout_ms: int = 60000
    enforce_timeouts: bool = True
    user_verification: str = "preferred"
    attestation: str = "none"
    resident_key: str = "preferred"

    # --- server ---
    host: str = "0.0.0.0"
    port: int = 8080

    def effective_rp_id(self) -> str:
        """Return the WebAuthn relying party ID."""
        if self.rp_id:
            return self.rp_id
        if self.env == "production":
            raise RuntimeError("PASSGATE_RP_ID must be set in production mode.")
        warnings.warn(
            "Using 'localhost' as WebAuthn RP ID. Set PASSGATE_RP_ID for production.",
            UserWarning,
            stacklevel=2,
        )
        return "localhost"

    def effective_origins(self) -> list[str]:
        """Return the origins a client response may come from."""
        if self.origins:
            return list(self.origins)
        if self.env == "production":
            raise RuntimeError("PASSGATE_ORIGINS must be set in production mode.")
        warnings.warn(
            "Using 'http://localhost:8080' as WebAuthn origin. "
            "Set PASSGATE_ORIGINS for production.",
            UserWarning,
            stacklevel=2,
        )
        return ["http://localhost:8080"]
