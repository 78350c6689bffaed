"""
System Policy
=============

Global configuration toggles stored as a single record under the
``system-policy`` key. Created lazily with permissive defaults.

The store itself performs no authorization; the admin gate lives in
AuthManager.update_system_policy.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Optional

from timeauth.db.storage import KeyValueStorage
from timeauth.security.constants import SYSTEM_POLICY_KEY
from timeauth.utils.timestamps import from_iso, to_iso, utc_now


@dataclass
class SystemPolicy:
    """Singleton policy record."""
    registration_enabled: bool
    created_at: datetime
    updated_at: datetime

    def to_record(self) -> dict[str, Any]:
        return {
            "registrationEnabled": self.registration_enabled,
            "createdAt": to_iso(self.created_at),
            "updatedAt": to_iso(self.updated_at),
        }

    @classmethod
    def from_record(cls, record: Any) -> "SystemPolicy":
        """
        Raises:
            ValueError: If the record is malformed
        """
        if not isinstance(record, dict):
            raise ValueError("Policy record must be an object")

        enabled = record.get("registrationEnabled")
        if not isinstance(enabled, bool):
            raise ValueError("registrationEnabled must be a boolean")

        return cls(
            registration_enabled=enabled,
            created_at=from_iso(record.get("createdAt")),
            updated_at=from_iso(record.get("updatedAt")),
        )


class SystemPolicyStore:
    """Lazily-initialized persistence for the SystemPolicy singleton."""

    __slots__ = ("_storage", "_key", "_clock", "_log")

    def __init__(
        self,
        storage: KeyValueStorage,
        clock: Optional[Callable[[], datetime]] = None,
        key: str = SYSTEM_POLICY_KEY,
    ) -> None:
        self._storage = storage
        self._clock = clock or utc_now
        self._key = key
        self._log = logging.getLogger("timeauth.policy")

    def default(self) -> SystemPolicy:
        now = self._clock()
        return SystemPolicy(registration_enabled=True, created_at=now, updated_at=now)

    def get(self) -> SystemPolicy:
        """
        Read the policy, creating and persisting the default if absent.

        Malformed data yields the default without overwriting the stored value.
        """
        raw = self._storage.get(self._key)
        if not raw:
            return self.initialize()

        try:
            return SystemPolicy.from_record(json.loads(raw))
        except ValueError as e:
            self._log.warning("Ignoring unreadable system policy: %s", e)
            return self.default()

    def initialize(self) -> SystemPolicy:
        """Write the default policy unconditionally."""
        policy = self.default()
        self.save(policy)
        return policy

    def save(self, policy: SystemPolicy) -> None:
        self._storage.set(self._key, json.dumps(policy.to_record()))

    def update(self, **changes: Any) -> SystemPolicy:
        """
        Apply known field changes and bump ``updated_at``.

        Unknown keys and ``created_at``/``updated_at`` are ignored.
        """
        policy = self.get()

        if "registration_enabled" in changes:
            policy.registration_enabled = bool(changes["registration_enabled"])

        ignored = set(changes) - {"registration_enabled"}
        if ignored:
            self._log.debug("Ignoring unknown policy fields: %s", sorted(ignored))

        policy.updated_at = self._clock()
        self.save(policy)
        return policy
