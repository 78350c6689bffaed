"""
Authentication Module
=====================

Provides credential and session management with:
- PBKDF2-HMAC-SHA256 secret hashing with per-identity salt
- Admin/user roles, first registered identity becomes admin
- Single-slot sessions with 30-day expiry
- Admin-gated system policy
- First-admin bootstrap for stores without an admin

Security Properties:
- Constant-time verification
- Secure session tokens
- Malformed persisted data degrades to "absent"
"""

from timeauth.core.auth.pbkdf2_auth import (
    CryptoUnavailable,
    HashResult,
    Pbkdf2Hasher,
)
from timeauth.core.auth.credential_store import (
    CredentialStore,
    DuplicateEmail,
    DuplicateUsername,
    Identity,
    IdentityNotFoundError,
    Role,
)
from timeauth.core.auth.session_control import (
    Session,
    SessionIssuer,
)
from timeauth.core.auth.system_policy import (
    SystemPolicy,
    SystemPolicyStore,
)
from timeauth.core.auth.auth_manager import (
    AuthErrorKind,
    AuthManager,
    AuthResult,
)

__all__ = [
    "CryptoUnavailable",
    "HashResult",
    "Pbkdf2Hasher",
    "CredentialStore",
    "DuplicateEmail",
    "DuplicateUsername",
    "Identity",
    "IdentityNotFoundError",
    "Role",
    "Session",
    "SessionIssuer",
    "SystemPolicy",
    "SystemPolicyStore",
    "AuthErrorKind",
    "AuthManager",
    "AuthResult",
]
