"""Passkey (WebAuthn) API router - mounted at ``/api``."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Body, Depends, HTTPException, Query, Request, status

from passgate.passkeys import schemas
from passgate.passkeys.errors import (
    EngineError,
    NotFoundError,
    PasskeyError,
    ValidationError,
    VerificationError,
)
from passgate.passkeys.service import AuthCoordinator
from passgate.passkeys.webauthn import bytes_to_base64url

router = APIRouter(prefix="/api", tags=["passkey"])

_ERROR_RESPONSES: dict[int | str, dict[str, Any]] = {
    400: {"model": schemas.ErrorResponse, "description": "Invalid request or failed verification."},
    404: {"model": schemas.ErrorResponse, "description": "Unknown user or no pending challenge."},
}


def _coordinator(request: Request) -> AuthCoordinator:
    return request.app.state.coordinator


def _http_error(exc: PasskeyError) -> HTTPException:
    if isinstance(exc, ValidationError | VerificationError):
        code = status.HTTP_400_BAD_REQUEST
    elif isinstance(exc, NotFoundError):
        code = status.HTTP_404_NOT_FOUND
    elif isinstance(exc, EngineError):
        code = status.HTTP_500_INTERNAL_SERVER_ERROR
    else:
        code = status.HTTP_400_BAD_REQUEST
    return HTTPException(status_code=code, detail=str(exc))


def _finish_args(username: str | None, body: dict[str, Any]) -> tuple[str, dict[str, Any]]:
    """Username comes from the query string or the body; the credential is the body."""
    name = username or body.get("username")
    if not isinstance(name, str):
        name = ""
    credential = body.get("credential")
    if not isinstance(credential, dict):
        credential = {k: v for k, v in body.items() if k != "username"}
    return name, credential


# ---------------------------------------------------------------------------
# Registration
# ---------------------------------------------------------------------------


@router.post(
    "/register/begin",
    summary="Begin passkey registration",
    description=(
        "Create the user on first use, store a single-use challenge for it and return "
        "WebAuthn creation options."
    ),
    responses=_ERROR_RESPONSES,
)
def register_begin(
    body: schemas.BeginRequest,
    coordinator: AuthCoordinator = Depends(_coordinator),
) -> dict[str, Any]:
    try:
        return coordinator.begin_registration(body.username)
    except PasskeyError as exc:
        raise _http_error(exc) from None


@router.post(
    "/register/finish",
    response_model=schemas.RegisterFinishResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Finish passkey registration",
    description="Verify the attestation against the pending challenge and store the credential.",
    responses=_ERROR_RESPONSES,
)
def register_finish(
    body: dict[str, Any] = Body(...),
    username: str | None = Query(None),
    coordinator: AuthCoordinator = Depends(_coordinator),
) -> schemas.RegisterFinishResponse:
    name, credential = _finish_args(username, body)
    try:
        result = coordinator.finish_registration(name, credential)
    except PasskeyError as exc:
        raise _http_error(exc) from None
    return schemas.RegisterFinishResponse(
        message="Registration successful",
        username=result.identity.name,
        credential_count=len(result.identity.credentials),
    )


# ---------------------------------------------------------------------------
# Login
# ---------------------------------------------------------------------------


@router.post(
    "/login/begin",
    summary="Begin passkey login",
    description="Return WebAuthn request options limited to the user's registered credentials.",
    responses=_ERROR_RESPONSES,
)
def login_begin(
    body: schemas.BeginRequest,
    coordinator: AuthCoordinator = Depends(_coordinator),
) -> dict[str, Any]:
    try:
        return coordinator.begin_login(body.username)
    except PasskeyError as exc:
        raise _http_error(exc) from None


@router.post(
    "/login/finish",
    response_model=schemas.LoginFinishResponse,
    summary="Finish passkey login",
    description="Verify the assertion against the pending challenge and record the sign count.",
    responses=_ERROR_RESPONSES,
)
def login_finish(
    body: dict[str, Any] = Body(...),
    username: str | None = Query(None),
    coordinator: AuthCoordinator = Depends(_coordinator),
) -> schemas.LoginFinishResponse:
    name, credential = _finish_args(username, body)
    try:
        result = coordinator.finish_login(name, credential)
    except PasskeyError as exc:
        raise _http_error(exc) from None
    return schemas.LoginFinishResponse(
        message="Login successful",
        username=result.name,
        user_id=bytes_to_base64url(result.user_id),
        sign_count=result.credential.sign_count,
    )
