"""
Security helpers for the incident desk.

Password hashing and policy checks.
"""

from .password import (
    MIN_PASSWORD_LENGTH,
    hash_password,
    validate_password_strength,
    verify_password,
)

__all__ = [
    "MIN_PASSWORD_LENGTH",
    "hash_password",
    "validate_password_strength",
    "verify_password",
]
