"""
Password Utilities - bcrypt hashing and policy checks.
"""

import logging
from typing import List

import bcrypt

from domain.errors import ValidationError

logger = logging.getLogger(__name__)

# bcrypt work factor
BCRYPT_ROUNDS = 12

# Password policy; bcrypt only looks at the first 72 bytes
MIN_PASSWORD_LENGTH = 8
MAX_PASSWORD_BYTES = 72


def validate_password_strength(password: str) -> List[str]:
    """
    Check a new password against the policy.

    Returns:
        List of problems (empty if acceptable)
    """
    errors = []
    if not password or len(password) < MIN_PASSWORD_LENGTH:
        errors.append(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
    elif len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
        errors.append(f"Password must be at most {MAX_PASSWORD_BYTES} bytes")
    return errors


def hash_password(password: str, rounds: int = BCRYPT_ROUNDS) -> str:
    """
    Hash a password using bcrypt.

    Raises:
        ValidationError: If the password violates the policy
    """
    errors = validate_password_strength(password)
    if errors:
        raise ValidationError(errors[0], field="password")

    salt = bcrypt.gensalt(rounds=rounds)
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


def verify_password(password: str, hashed: str) -> bool:
    """
    Verify a password against its hash.

    Returns False for empty input, over-long input or a malformed hash.
    """
    if not password or not hashed:
        return False
    encoded = password.encode("utf-8")
    if len(encoded) > MAX_PASSWORD_BYTES:
        return False
    try:
        return bcrypt.checkpw(encoded, hashed.encode("utf-8"))
    except ValueError as e:
        logger.warning(f"Password verification failed on malformed hash: {e}")
        return False
