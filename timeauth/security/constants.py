"""
Security Constants
==================

Defines security-related constants used throughout timeauth.
These values mirror the persisted data already in use and should not be
modified without a migration plan for existing identities and sessions.
"""

from typing import Final

# Credential Requirements
MIN_USERNAME_LENGTH: Final[int] = 3
MIN_SECRET_LENGTH: Final[int] = 6

# Key Derivation (PBKDF2-HMAC-SHA256)
KDF_ITERATIONS: Final[int] = 100_000
SALT_LENGTH_BYTES: Final[int] = 32
HASH_LENGTH_BYTES: Final[int] = 32  # 256 bits

# Session Security
SESSION_TOKEN_BYTES: Final[int] = 32  # hex-encoded to 64 chars
SESSION_LIFETIME_SECONDS: Final[int] = 30 * 24 * 60 * 60  # 30 days

# Storage keys
IDENTITIES_KEY: Final[str] = "identities"
SESSION_KEY: Final[str] = "current-session"
SNAPSHOT_KEY: Final[str] = "current-identity-snapshot"
SYSTEM_POLICY_KEY: Final[str] = "system-policy"
