"""passgate quickstart - passkey registration and login for named users.

Run:
    PASSGATE_RP_ID=localhost PASSGATE_ORIGINS='["http://localhost:8080"]' \
        uvicorn examples.quickstart:app --port 8080 --reload

Open http://localhost:8080/docs to interact with the API.

Auth flow (passkeys):
    1. POST /api/register/begin  {"username": "alice"} -> creation options
    2. (browser) navigator.credentials.create(options)
    3. POST /api/register/finish?username=alice       -> credential stored
    4. POST /api/login/begin     {"username": "alice"} -> request options
    5. (browser) navigator.credentials.get(options)
    6. POST /api/login/finish?username=alice          -> user id + sign count
"""

from typing import Any

from passgate import create_app
from passgate.passkeys.webauthn import bytes_to_base64url

app = create_app()


@app.get("/users/{username}/passkeys")
def passkeys(username: str) -> dict[str, list[dict[str, Any]]]:
    """List the passkeys registered for *username* (demo only)."""
    identity = app.state.credentials.get_identity(username)
    if identity is None:
        return {"passkeys": []}
    return {
        "passkeys": [
            {
                "id": bytes_to_base64url(c.credential_id),
                "sign_count": c.sign_count,
                "created_at": c.created_at,
                "aaguid": c.aaguid,
            }
            for c in identity.credentials
        ]
    }
