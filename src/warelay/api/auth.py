"""Static bearer token authentication for protected routes."""

from __future__ import annotations

import hmac

from fastapi import Request

from warelay.errors import AuthError
from warelay.observability.logging import get_logger

logger = get_logger(__name__)


def extract_bearer_token(authorization: str | None) -> str | None:
    """Return the token segment of "Bearer <token>", or None if absent."""
    if not authorization:
        return None
    parts = authorization.split()
    if len(parts) < 2 or parts[0].lower() != "bearer":
        return None
    return parts[1]


def authenticate(authorization: str | None, *, expected_token: str) -> None:
    """Validate an Authorization header against the configured secret.

    Raises:
        AuthError: 401 when the header or token is missing, 403 when the
            token does not match.
    """
    token = extract_bearer_token(authorization)
    if token is None:
        raise AuthError(401, "Token not provided.")
    if not hmac.compare_digest(token.encode(), expected_token.encode()):
        raise AuthError(403, "Invalid token.")


def require_api_token(request: Request) -> None:
    """FastAPI dependency guarding the send routes."""
    settings = request.app.state.settings
    try:
        authenticate(request.headers.get("Authorization"), expected_token=settings.api_token)
    except AuthError as e:
        logger.warning(
            "api auth rejected",
            extra={"extra_fields": {"status_code": e.status_code}},
        )
        raise
