"""Pydantic schemas for passkey (WebAuthn) endpoints."""

from __future__ import annotations

from pydantic import BaseModel, Field

# -- Begin --


class BeginRequest(BaseModel):
    username: str = Field("", description="Login name the ceremony is for.")


# -- Finish --


class RegisterFinishResponse(BaseModel):
    success: bool = Field(True, description="Always true on a 2xx response.")
    message: str = Field(..., description="Human-readable status message.")
    username: str = Field(..., description="Login name the credential was registered for.")
    credential_count: int = Field(..., description="Credentials now registered for the user.")


class LoginFinishResponse(BaseModel):
    success: bool = Field(True, description="Always true on a 2xx response.")
    message: str = Field(..., description="Human-readable status message.")
    username: str = Field(..., description="Authenticated login name.")
    user_id: str = Field(..., description="Base64url user handle of the authenticated user.")
    sign_count: int = Field(..., description="Authenticator sign count after this login.")


class ErrorResponse(BaseModel):
    detail: str = Field(..., description="Error message.")
