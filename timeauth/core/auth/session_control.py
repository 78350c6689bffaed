"""
Session Control
===============

Single-slot session management with fixed-lifetime expiry.

Security Features:
- Cryptographically random session tokens (256 bits)
- Fixed 30-day validity window from issue time
- Logging in replaces any previous session in the slot
- Explicit teardown on logout or on detected expiry

Alongside the session, a snapshot of the owning identity is stored so that
authentication checks do not need to read the credential store. The
snapshot must be refreshed whenever the owning identity changes.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Callable, Optional

from timeauth.core.auth.credential_store import Identity
from timeauth.core.auth.pbkdf2_auth import Pbkdf2Hasher
from timeauth.db.storage import KeyValueStorage
from timeauth.security.constants import (
    SESSION_KEY,
    SESSION_LIFETIME_SECONDS,
    SESSION_TOKEN_BYTES,
    SNAPSHOT_KEY,
)
from timeauth.utils.timestamps import from_iso, to_iso, truncate_ms, utc_now


@dataclass
class Session:
    """
    One authenticated context.

    The session references its identity by id; it does not own it.
    """
    user_id: str
    token: str
    created_at: datetime
    expires_at: datetime

    def __repr__(self) -> str:
        """Safe representation without token."""
        return (
            f"Session(user_id={self.user_id!r}, "
            f"expires_at={to_iso(self.expires_at)})"
        )

    def is_expired(self, now: datetime) -> bool:
        return not now < self.expires_at

    def to_record(self) -> dict[str, Any]:
        return {
            "userId": self.user_id,
            "token": self.token,
            "createdAt": to_iso(self.created_at),
            "expiresAt": to_iso(self.expires_at),
        }

    @classmethod
    def from_record(cls, record: Any) -> "Session":
        """
        Raises:
            ValueError: If the record is malformed
        """
        if not isinstance(record, dict):
            raise ValueError("Session record must be an object")

        user_id = record.get("userId")
        token = record.get("token")
        if not isinstance(user_id, str) or not isinstance(token, str) or not token:
            raise ValueError("Session record is missing userId or token")

        return cls(
            user_id=user_id,
            token=token,
            created_at=from_iso(record.get("createdAt")),
            expires_at=from_iso(record.get("expiresAt")),
        )


class SessionIssuer:
    """
    Issue, read and tear down the single session slot.

    Usage:
        issuer = SessionIssuer(storage, hasher)

        # After successful credential verification
        session = issuer.issue(identity)

        # On each check
        session = issuer.current_session()
        if session and issuer.is_valid(session):
            ...

        # Logout
        issuer.teardown()
    """

    __slots__ = (
        "_storage",
        "_hasher",
        "_lifetime",
        "_token_length",
        "_clock",
        "_session_key",
        "_snapshot_key",
        "_log",
    )

    def __init__(
        self,
        storage: KeyValueStorage,
        hasher: Pbkdf2Hasher,
        lifetime_seconds: int = SESSION_LIFETIME_SECONDS,
        token_length: int = SESSION_TOKEN_BYTES,
        clock: Optional[Callable[[], datetime]] = None,
        session_key: str = SESSION_KEY,
        snapshot_key: str = SNAPSHOT_KEY,
    ) -> None:
        """
        Initialize the session issuer.

        Args:
            storage: Persisted key-value store
            hasher: Source of secure randomness for tokens
            lifetime_seconds: Session validity (default: 30 days)
            token_length: Random bytes per token (default: 32)
            clock: Returns the current aware UTC time (default: utc_now)
        """
        self._storage = storage
        self._hasher = hasher
        self._lifetime = timedelta(seconds=lifetime_seconds)
        self._token_length = token_length
        self._clock = clock or utc_now
        self._session_key = session_key
        self._snapshot_key = snapshot_key
        self._log = logging.getLogger("timeauth.sessions")

    def now(self) -> datetime:
        return truncate_ms(self._clock())

    def create(self, identity: Identity) -> Session:
        """
        Build a new session for ``identity`` without writing anything.

        Raises:
            CryptoUnavailable: If no secure token can be generated
        """
        token = self._hasher.generate_token(self._token_length)
        now = self.now()

        return Session(
            user_id=identity.id,
            token=token,
            created_at=now,
            expires_at=now + self._lifetime,
        )

    def persist(self, session: Session, identity: Identity) -> None:
        """Write ``session`` and a snapshot of ``identity`` into the slot."""
        self._storage.set(self._session_key, json.dumps(session.to_record()))
        self._write_snapshot(identity)

        self._log.info("Session issued for identity %s", identity.id)

    def issue(self, identity: Identity) -> Session:
        """
        Create a session for ``identity`` and persist it with a snapshot
        of the identity, replacing any previous session.

        Raises:
            CryptoUnavailable: If no secure token can be generated
        """
        session = self.create(identity)
        self.persist(session, identity)
        return session

    def current_session(self) -> Optional[Session]:
        """The persisted session, or None if absent or malformed."""
        raw = self._storage.get(self._session_key)
        if not raw:
            return None

        try:
            return Session.from_record(json.loads(raw))
        except ValueError as e:
            self._log.warning("Ignoring unreadable session data: %s", e)
            return None

    def current_snapshot(self) -> Optional[Identity]:
        """The denormalized identity of the session owner, or None."""
        raw = self._storage.get(self._snapshot_key)
        if not raw:
            return None

        try:
            return Identity.from_record(json.loads(raw))
        except ValueError as e:
            self._log.warning("Ignoring unreadable identity snapshot: %s", e)
            return None

    def is_valid(self, session: Session) -> bool:
        return not session.is_expired(self.now())

    def refresh_snapshot(self, identity: Identity) -> bool:
        """
        Rewrite the snapshot if ``identity`` owns the current session.

        Returns:
            True if the snapshot was rewritten
        """
        session = self.current_session()
        if session is None or session.user_id != identity.id:
            return False

        self._write_snapshot(identity)
        self._log.debug("Snapshot refreshed for identity %s", identity.id)
        return True

    def teardown(self) -> None:
        """Remove the session and its snapshot. Safe to call repeatedly."""
        self._storage.remove(self._session_key)
        self._storage.remove(self._snapshot_key)

    def _write_snapshot(self, identity: Identity) -> None:
        self._storage.set(self._snapshot_key, json.dumps(identity.to_record()))
