"""
Session Token Handling

JWT encoding/decoding for sign-in sessions. Each token carries the
principal id (sub), email and a session id (jti) that keys the session
cache.
"""

import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import jwt

JWT_ALGORITHM = "HS256"
JWT_SESSION_EXPIRE_HOURS = 8


# =============================================================================
# TOKEN CREATION
# =============================================================================

def create_session_token(
    principal_id: str,
    email: str,
    secret: str,
    expires_delta: Optional[timedelta] = None,
    algorithm: str = JWT_ALGORITHM,
) -> str:
    """
    Create a signed session token.

    Args:
        principal_id: Profile id of the signed-in principal
        email: Principal's email
        secret: Signing key
        expires_delta: Custom lifetime (default 8 hours)

    Returns:
        JWT token string
    """
    if expires_delta is None:
        expires_delta = timedelta(hours=JWT_SESSION_EXPIRE_HOURS)

    issued_at = datetime.now(timezone.utc)
    payload = {
        "sub": str(principal_id),
        "email": email,
        "jti": uuid.uuid4().hex,
        "iat": issued_at,
        "exp": issued_at + expires_delta,
        "type": "session",
    }
    return jwt.encode(payload, secret, algorithm=algorithm)


# =============================================================================
# TOKEN DECODING
# =============================================================================

def decode_session_token(token: str, secret: str, algorithm: str = JWT_ALGORITHM) -> Dict[str, Any]:
    """
    Decode and validate a session token.

    Raises:
        jwt.InvalidTokenError: If the token is invalid, expired or not a session token
    """
    payload = jwt.decode(token, secret, algorithms=[algorithm], options={"require": ["sub", "exp", "jti"]})
    if payload.get("type") != "session":
        raise jwt.InvalidTokenError("Not a session token")
    return payload


def decode_session_token_safe(token: str, secret: str, algorithm: str = JWT_ALGORITHM) -> Optional[Dict[str, Any]]:
    """
    Decode a session token without raising exceptions.

    Returns None if token is invalid.
    """
    try:
        return decode_session_token(token, secret, algorithm)
    except jwt.InvalidTokenError:
        return None
