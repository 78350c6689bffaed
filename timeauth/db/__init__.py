"""
Database module - Persisted key-value storage used by the auth components.

Security Considerations:
- The store is fully controlled by whoever controls the client
- No plaintext secrets are ever written, only salted hashes
- Malformed content degrades to "absent", it never raises to callers
"""

from timeauth.db.storage import (
    JsonFileStorage,
    KeyValueStorage,
    MemoryStorage,
    PrefixedStorage,
    StorageUnavailable,
)

__all__ = [
    "JsonFileStorage",
    "KeyValueStorage",
    "MemoryStorage",
    "PrefixedStorage",
    "StorageUnavailable",
]
