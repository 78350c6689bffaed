"""
Security module - Fixed security parameters and storage key names.
"""

from timeauth.security.constants import (
    HASH_LENGTH_BYTES,
    KDF_ITERATIONS,
    MIN_SECRET_LENGTH,
    MIN_USERNAME_LENGTH,
    SALT_LENGTH_BYTES,
    SESSION_LIFETIME_SECONDS,
    SESSION_TOKEN_BYTES,
)

__all__ = [
    "HASH_LENGTH_BYTES",
    "KDF_ITERATIONS",
    "MIN_SECRET_LENGTH",
    "MIN_USERNAME_LENGTH",
    "SALT_LENGTH_BYTES",
    "SESSION_LIFETIME_SECONDS",
    "SESSION_TOKEN_BYTES",
]
