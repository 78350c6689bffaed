"""
timeauth - Credential & Session Management
==========================================

Local-first authentication for the time-tracking application: salted
secret hashing, identity storage, session issue and expiry, admin/user
privilege and first-admin bootstrap, on top of a plain key-value store.

Security Notice:
- No secrets are logged
- Admin-gated operations fail closed
- Malformed stored data never raises to callers
"""

from timeauth.core.auth import AuthErrorKind, AuthManager, AuthResult, Identity, Role
from timeauth.core.config import AuthConfig
from timeauth.core.logging import get_secure_logger
from timeauth.db import JsonFileStorage, MemoryStorage

__version__ = "0.1.0"
__author__ = "timeauth Team"

__all__ = [
    "AuthConfig",
    "AuthErrorKind",
    "AuthManager",
    "AuthResult",
    "Identity",
    "JsonFileStorage",
    "MemoryStorage",
    "Role",
    "get_secure_logger",
    "__version__",
]
