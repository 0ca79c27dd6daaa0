"""JWT verification for tokens issued by the auth platform.

The ``sub`` claim carries the platform's opaque user id. Production verifies RS256
signatures against a public key file; local runs and tests use HS256 with
``jwt_secret``. Issuing tokens here is only for development and tests.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any

import jwt

from pairly.config import get_settings

_signing_key: str | None = None
_verifying_key: str | None = None


def _load_keys() -> tuple[str, str]:
    """Load signing/verifying keys (cached after first call)."""
    global _signing_key, _verifying_key  # noqa: PLW0603
    if _signing_key is None or _verifying_key is None:
        settings = get_settings()
        if settings.jwt_algorithm.startswith("HS"):
            _signing_key = _verifying_key = settings.jwt_secret
        else:
            _verifying_key = Path(settings.jwt_public_key_path).read_text()
            private_path = Path(settings.jwt_private_key_path)
            _signing_key = private_path.read_text() if private_path.exists() else ""
    return _signing_key, _verifying_key


def reset_keys() -> None:
    """Reset cached keys (useful for testing)."""
    global _signing_key, _verifying_key  # noqa: PLW0603
    _signing_key = None
    _verifying_key = None


def create_access_token(user_id: str, expires_in: timedelta | None = None) -> str:
    """Create an access token for ``user_id`` (development and tests only)."""
    signing_key, _ = _load_keys()
    if not signing_key:
        msg = "No signing key configured"
        raise RuntimeError(msg)
    settings = get_settings()
    now = datetime.now(timezone.utc)
    payload: dict[str, Any] = {
        "sub": user_id,
        "iat": now,
        "exp": now + (expires_in or timedelta(minutes=settings.jwt_access_token_expire_minutes)),
        "iss": settings.jwt_issuer,
        "type": "access",
    }
    return jwt.encode(payload, signing_key, algorithm=settings.jwt_algorithm)


def verify_token(token: str, expected_type: str = "access") -> dict[str, Any]:
    """
    Verify and decode a JWT token.

    Raises:
        jwt.InvalidTokenError: If the token is invalid, expired, or wrong type.
    """
    _, verifying_key = _load_keys()
    settings = get_settings()
    try:
        payload: dict[str, Any] = jwt.decode(
            token,
            verifying_key,
            algorithms=[settings.jwt_algorithm],
            issuer=settings.jwt_issuer,
        )
    except jwt.ExpiredSignatureError:
        msg = "Token has expired"
        raise jwt.InvalidTokenError(msg) from None

    if payload.get("type", expected_type) != expected_type:
        msg = f"Expected token type '{expected_type}', got '{payload.get('type')}'"
        raise jwt.InvalidTokenError(msg)
    if not payload.get("sub"):
        msg = "Token has no subject"
        raise jwt.InvalidTokenError(msg)

    return payload
