"""
Credential Store
================

Durable mapping of identity id -> identity record, kept as one JSON list
under the ``identities`` storage key.

Invariants:
- Usernames are unique, compared case-insensitively
- Emails are unique, compared case-insensitively
- Every identity has exactly one role

Writes follow read-modify-write of the whole list. There is no locking;
the store assumes a single writer.
"""

from __future__ import annotations

import json
import logging
import secrets
import string
from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum
from typing import Any, Final, List, Optional

from timeauth.db.storage import KeyValueStorage
from timeauth.security.constants import IDENTITIES_KEY
from timeauth.utils.timestamps import from_iso, to_iso, utc_now

_ID_ALPHABET: Final[str] = string.digits + string.ascii_lowercase
_ID_SUFFIX_LENGTH: Final[int] = 9


class Role(Enum):
    """Privilege tiers. There is exactly one tier above ordinary."""
    ADMIN = "admin"
    USER = "user"

    @classmethod
    def from_string(cls, value: str) -> "Role":
        """Convert a persisted role string to Role."""
        return cls(value.lower())


@dataclass
class Identity:
    """
    A registered principal.

    Note: password_hash and salt are never exposed in repr.
    """
    id: str
    username: str
    email: str
    password_hash: str
    salt: str
    role: Role
    created_at: datetime
    last_login: Optional[datetime] = None

    def __repr__(self) -> str:
        """Safe representation without credential material."""
        return (
            f"Identity(id={self.id!r}, username={self.username!r}, "
            f"role={self.role.value})"
        )

    def is_admin(self) -> bool:
        return self.role is Role.ADMIN

    def public(self) -> "Identity":
        """Copy with hash and salt blanked, for handing to callers."""
        return replace(self, password_hash="", salt="")

    def to_record(self) -> dict[str, Any]:
        """Serialize to the persisted JSON shape."""
        record: dict[str, Any] = {
            "id": self.id,
            "username": self.username,
            "email": self.email,
            "passwordHash": self.password_hash,
            "salt": self.salt,
            "role": self.role.value,
            "createdAt": to_iso(self.created_at),
        }
        if self.last_login is not None:
            record["lastLogin"] = to_iso(self.last_login)
        return record

    @classmethod
    def from_record(cls, record: Any) -> "Identity":
        """
        Rebuild an identity from its persisted JSON shape.

        Raises:
            ValueError: If required fields are missing or malformed
        """
        if not isinstance(record, dict):
            raise ValueError("Identity record must be an object")

        try:
            fields = {
                name: record[key]
                for name, key in (
                    ("id", "id"),
                    ("username", "username"),
                    ("email", "email"),
                    ("password_hash", "passwordHash"),
                    ("salt", "salt"),
                )
            }
        except KeyError as e:
            raise ValueError(f"Identity record is missing {e.args[0]!r}") from e

        if not all(isinstance(v, str) for v in fields.values()):
            raise ValueError("Identity record has non-string fields")

        last_login = record.get("lastLogin")

        return cls(
            role=Role.from_string(str(record.get("role", ""))),
            created_at=from_iso(record.get("createdAt")),
            last_login=from_iso(last_login) if last_login else None,
            **fields,
        )


class CredentialStoreError(Exception):
    """Base exception for credential store errors."""
    pass


class DuplicateUsername(CredentialStoreError):
    """Raised when the username is already taken (case-insensitive)."""
    pass


class DuplicateEmail(CredentialStoreError):
    """Raised when the email is already registered (case-insensitive)."""
    pass


class IdentityNotFoundError(CredentialStoreError):
    """Raised when updating an identity id that is not stored."""
    pass


def generate_identity_id(now: Optional[datetime] = None) -> str:
    """Opaque id of the form ``user-<epoch ms>-<9 base36 chars>``."""
    now = now or utc_now()
    millis = int(now.timestamp() * 1000)
    suffix = "".join(secrets.choice(_ID_ALPHABET) for _ in range(_ID_SUFFIX_LENGTH))
    return f"user-{millis}-{suffix}"


class CredentialStore:
    """
    Identity persistence with case-insensitive secondary lookups.

    Usage:
        store = CredentialStore(MemoryStorage())
        store.insert(identity)
        found = store.find_by_login("Alice@Example.com")

    Notes:
        - Malformed persisted data reads as an empty store rather than
          raising; a warning is logged
        - StorageUnavailable from the backing storage propagates
    """

    __slots__ = ("_storage", "_key", "_log")

    def __init__(self, storage: KeyValueStorage, key: str = IDENTITIES_KEY) -> None:
        self._storage = storage
        self._key = key
        self._log = logging.getLogger("timeauth.credentials")

    def _load(self) -> List[Identity]:
        raw = self._storage.get(self._key)
        if not raw:
            return []

        try:
            records = json.loads(raw)
            if not isinstance(records, list):
                raise ValueError("identities value is not a list")
            return [Identity.from_record(record) for record in records]
        except ValueError as e:
            # json.JSONDecodeError is a ValueError subclass
            self._log.warning("Discarding unreadable identity data: %s", e)
            return []

    def _save(self, identities: List[Identity]) -> None:
        payload = json.dumps([identity.to_record() for identity in identities])
        self._storage.set(self._key, payload)

    def list_all(self) -> List[Identity]:
        """All identities in insertion order."""
        return self._load()

    def has_identities(self) -> bool:
        return len(self._load()) > 0

    def find_by_login(self, identifier: str) -> Optional[Identity]:
        """First identity whose username or email matches, ignoring case."""
        if not identifier:
            return None

        needle = identifier.lower()
        for identity in self._load():
            if identity.username.lower() == needle or identity.email.lower() == needle:
                return identity
        return None

    def find_by_id(self, identity_id: str) -> Optional[Identity]:
        for identity in self._load():
            if identity.id == identity_id:
                return identity
        return None

    def find_by_username(self, username: str) -> Optional[Identity]:
        """Exact (case-sensitive) username match."""
        for identity in self._load():
            if identity.username == username:
                return identity
        return None

    def insert(self, identity: Identity) -> Identity:
        """
        Add a new identity.

        Raises:
            DuplicateUsername: If the username is taken (checked first)
            DuplicateEmail: If the email is registered
        """
        identities = self._load()

        username = identity.username.lower()
        if any(existing.username.lower() == username for existing in identities):
            raise DuplicateUsername(f"Username '{identity.username}' already exists")

        email = identity.email.lower()
        if any(existing.email.lower() == email for existing in identities):
            raise DuplicateEmail("Email address is already registered")

        identities.append(identity)
        self._save(identities)
        self._log.debug("Stored identity %s", identity.id)
        return identity

    def update(self, identity: Identity) -> Identity:
        """
        Replace the stored record with the same id.

        Raises:
            IdentityNotFoundError: If no identity has that id
        """
        identities = self._load()

        for index, existing in enumerate(identities):
            if existing.id == identity.id:
                identities[index] = identity
                self._save(identities)
                return identity

        raise IdentityNotFoundError(f"Identity with ID '{identity.id}' not found")

    def clear(self) -> None:
        """Remove every identity."""
        self._storage.remove(self._key)
