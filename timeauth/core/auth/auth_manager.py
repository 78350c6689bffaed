"""
Auth Manager
============

Orchestrates registration, login, logout, privilege checks and the
first-admin bootstrap on top of the credential store, hasher, session
issuer and system policy store.

States per storage partition:
    Unbootstrapped  no identities exist
    Anonymous       identities exist, no valid session
    Authenticated   a valid session exists; user or admin depending on
                    the role of the session's identity

Every public operation returns a value (AuthResult, bool or None). Internal
exceptions are converted at this boundary so callers can branch on the
outcome without exception handling.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Final, Generic, Mapping, Optional, TypeVar

from timeauth.core.auth.credential_store import (
    CredentialStore,
    DuplicateEmail,
    DuplicateUsername,
    Identity,
    IdentityNotFoundError,
    Role,
    generate_identity_id,
)
from timeauth.core.auth.pbkdf2_auth import CryptoUnavailable, Pbkdf2Hasher
from timeauth.core.auth.session_control import SessionIssuer
from timeauth.core.auth.system_policy import SystemPolicy, SystemPolicyStore
from timeauth.core.config import AuthConfig
from timeauth.core.logging import configure_package_logging
from timeauth.db.storage import (
    JsonFileStorage,
    KeyValueStorage,
    PrefixedStorage,
    StorageUnavailable,
)
from timeauth.utils.validators import ValidationError, validate_registration

T = TypeVar("T")


class AuthErrorKind(Enum):
    """Semantic failure kinds. Presentation is left to the caller."""
    REGISTRATION_DISABLED = "registration_disabled"
    INVALID_USERNAME = "invalid_username"
    INVALID_EMAIL = "invalid_email"
    INVALID_SECRET = "invalid_secret"
    DUPLICATE_USERNAME = "duplicate_username"
    DUPLICATE_EMAIL = "duplicate_email"
    IDENTITY_NOT_FOUND = "identity_not_found"
    INVALID_CREDENTIAL = "invalid_credential"
    NO_IDENTITIES = "no_identities"
    ALREADY_ADMIN = "already_admin"
    NOT_AUTHORIZED = "not_authorized"
    CRYPTO_UNAVAILABLE = "crypto_unavailable"
    STORAGE_UNAVAILABLE = "storage_unavailable"


_DEFAULT_MESSAGES: Final[dict[AuthErrorKind, str]] = {
    AuthErrorKind.REGISTRATION_DISABLED: "Registration is currently disabled",
    AuthErrorKind.INVALID_USERNAME: "Username must be at least 3 characters long",
    AuthErrorKind.INVALID_EMAIL: "A valid email address is required",
    AuthErrorKind.INVALID_SECRET: "Password must be at least 6 characters long",
    AuthErrorKind.DUPLICATE_USERNAME: "Username is already taken",
    AuthErrorKind.DUPLICATE_EMAIL: "Email address is already registered",
    AuthErrorKind.IDENTITY_NOT_FOUND: "User not found",
    AuthErrorKind.INVALID_CREDENTIAL: "Wrong password",
    AuthErrorKind.NO_IDENTITIES: "No users found",
    AuthErrorKind.ALREADY_ADMIN: "User is already admin",
    AuthErrorKind.NOT_AUTHORIZED: "Admin privileges required",
    AuthErrorKind.CRYPTO_UNAVAILABLE: "Secure random source is unavailable",
    AuthErrorKind.STORAGE_UNAVAILABLE: "Storage is unavailable",
}

_VALIDATION_KINDS: Final[dict[str, AuthErrorKind]] = {
    "username": AuthErrorKind.INVALID_USERNAME,
    "email": AuthErrorKind.INVALID_EMAIL,
    "secret": AuthErrorKind.INVALID_SECRET,
}

# Persisted (camelCase) policy names accepted by update_system_policy
_POLICY_ALIASES: Final[dict[str, str]] = {
    "registrationEnabled": "registration_enabled",
}


@dataclass(frozen=True, slots=True)
class AuthResult(Generic[T]):
    """
    Outcome of an auth operation.

    Attributes:
        ok: Whether the operation succeeded
        value: Success payload (an Identity or a message)
        error: Failure kind, None on success
        message: Human-readable description
    """
    ok: bool
    value: Optional[T] = None
    error: Optional[AuthErrorKind] = None
    message: str = ""

    @classmethod
    def success(cls, value: T, message: str = "") -> "AuthResult[T]":
        return cls(ok=True, value=value, message=message)

    @classmethod
    def failure(cls, kind: AuthErrorKind, message: Optional[str] = None) -> "AuthResult[T]":
        return cls(ok=False, error=kind, message=message or _DEFAULT_MESSAGES[kind])

    def __bool__(self) -> bool:
        return self.ok


class AuthManager:
    """
    Credential and session management for one storage partition.

    Usage:
        manager = AuthManager(MemoryStorage())

        result = manager.register("alice", "alice@example.com", "secret1")
        if result.ok:
            manager.login("alice", "secret1")

        if manager.is_current_admin():
            manager.update_system_policy(registration_enabled=False)

        manager.logout()

    Notes:
        - The first registered identity becomes admin
        - Registration creates no session; logging in is a separate step
        - Session expiry is detected lazily by is_authenticated()
    """

    __slots__ = ("_config", "_hasher", "_credentials", "_sessions", "_policy", "_log")

    def __init__(
        self,
        storage: KeyValueStorage,
        config: Optional[AuthConfig] = None,
        hasher: Optional[Pbkdf2Hasher] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        """
        Initialize the auth manager.

        Args:
            storage: Persisted key-value store shared by all components
            config: Configuration (default: built-in defaults)
            hasher: Secret hasher (default: built from config.security)
            clock: Returns the current aware UTC time (default: utc_now)
        """
        self._config = config or AuthConfig()
        security = self._config.security

        if self._config.storage.key_prefix:
            storage = PrefixedStorage(storage, self._config.storage.key_prefix)

        self._hasher = hasher or Pbkdf2Hasher(
            iterations=security.kdf_iterations,
            hash_length=security.hash_length,
            salt_length=security.salt_length,
        )
        self._credentials = CredentialStore(storage)
        self._sessions = SessionIssuer(
            storage,
            self._hasher,
            lifetime_seconds=security.session_lifetime_seconds,
            token_length=security.token_length,
            clock=clock,
        )
        self._policy = SystemPolicyStore(storage, clock=self._sessions.now)
        self._log = logging.getLogger("timeauth.auth")

    @classmethod
    def from_config(cls, config: Optional[AuthConfig] = None) -> "AuthManager":
        """Build a manager backed by the JSON store file under ``config.paths.data_dir``."""
        config = config or AuthConfig.get_instance()
        config.ensure_directories()
        configure_package_logging(
            log_dir=config.paths.log_dir,
            level=config.logging.level,
            enable_console=config.logging.enable_console,
            enable_file=config.logging.enable_file,
            enable_json=config.logging.enable_json,
            max_file_size=config.logging.max_file_size_bytes,
            backup_count=config.logging.backup_count,
        )
        return cls(JsonFileStorage(config.store_path), config=config)

    @property
    def credentials(self) -> CredentialStore:
        return self._credentials

    @property
    def sessions(self) -> SessionIssuer:
        return self._sessions

    # -- registration ---------------------------------------------------

    def register(self, username: str, email: str, secret: str) -> AuthResult[Identity]:
        """
        Create a new identity.

        Checks, first failure wins: registration gate (only once an identity
        exists), username, email, secret, duplicate username, duplicate email.
        The very first identity becomes admin and initializes the system
        policy with registration enabled. No session is created.
        """
        try:
            identities = self._credentials.list_all()

            if identities and not self._policy.get().registration_enabled:
                self._log.info("Registration rejected: registration disabled")
                return AuthResult.failure(AuthErrorKind.REGISTRATION_DISABLED)

            try:
                validate_registration(username, email, secret)
            except ValidationError as e:
                return AuthResult.failure(_VALIDATION_KINDS[e.field_name])

            if any(i.username.lower() == username.lower() for i in identities):
                return AuthResult.failure(AuthErrorKind.DUPLICATE_USERNAME)
            if any(i.email.lower() == email.lower() for i in identities):
                return AuthResult.failure(AuthErrorKind.DUPLICATE_EMAIL)

            is_first = not identities
            now = self._sessions.now()
            hashed = self._hasher.hash(secret)

            identity = Identity(
                id=generate_identity_id(now),
                username=username,
                email=email,
                password_hash=hashed.hash_hex,
                salt=hashed.salt_hex,
                role=Role.ADMIN if is_first else Role.USER,
                created_at=now,
            )

            if is_first:
                self._policy.initialize()

            self._credentials.insert(identity)

        except DuplicateUsername:
            return AuthResult.failure(AuthErrorKind.DUPLICATE_USERNAME)
        except DuplicateEmail:
            return AuthResult.failure(AuthErrorKind.DUPLICATE_EMAIL)
        except CryptoUnavailable as e:
            self._log.error("Registration failed: %s", e)
            return AuthResult.failure(AuthErrorKind.CRYPTO_UNAVAILABLE)
        except StorageUnavailable as e:
            self._log.error("Registration failed: %s", e)
            return AuthResult.failure(AuthErrorKind.STORAGE_UNAVAILABLE)

        self._log.info(
            "Registered identity %s (%s)%s",
            identity.id,
            identity.role.value,
            " as first user" if is_first else "",
        )
        return AuthResult.success(identity.public())

    # -- login / logout -------------------------------------------------

    def login(self, username_or_email: str, secret: str) -> AuthResult[Identity]:
        """
        Verify credentials and open a session, replacing any previous one.

        By default an unknown identity and a wrong secret are reported as
        distinct errors. With ``security.unify_login_errors`` both report
        INVALID_CREDENTIAL. Either way an unknown identity costs one hash
        derivation.
        """
        try:
            identity = self._credentials.find_by_login(username_or_email)

            if identity is None:
                self._hasher.burn(secret)
                self._log.info("Login failed: unknown identity")
                if self._config.security.unify_login_errors:
                    return AuthResult.failure(AuthErrorKind.INVALID_CREDENTIAL)
                return AuthResult.failure(AuthErrorKind.IDENTITY_NOT_FOUND)

            if not self._hasher.verify(secret, identity.password_hash, identity.salt):
                self._log.info("Login failed: wrong credential for identity %s", identity.id)
                return AuthResult.failure(AuthErrorKind.INVALID_CREDENTIAL)

            # No writes before the token exists
            session = self._sessions.create(identity)
            identity.last_login = session.created_at
            self._credentials.update(identity)
            self._sessions.persist(session, identity)

        except IdentityNotFoundError:
            return AuthResult.failure(AuthErrorKind.IDENTITY_NOT_FOUND)
        except CryptoUnavailable as e:
            self._log.error("Login failed: %s", e)
            return AuthResult.failure(AuthErrorKind.CRYPTO_UNAVAILABLE)
        except StorageUnavailable as e:
            self._log.error("Login failed: %s", e)
            return AuthResult.failure(AuthErrorKind.STORAGE_UNAVAILABLE)

        self._log.info("Identity %s logged in", identity.id)
        return AuthResult.success(identity.public())

    def logout(self) -> None:
        """Tear down the session. A no-op when nobody is logged in."""
        try:
            self._sessions.teardown()
        except StorageUnavailable as e:
            self._log.error("Logout could not clear the session: %s", e)

    # -- session state --------------------------------------------------

    def is_authenticated(self) -> bool:
        """
        True if a valid session exists.

        An expired session, or one without a matching identity snapshot, is
        torn down as a side effect.
        """
        try:
            session = self._sessions.current_session()
            if session is None:
                self._sessions.teardown()
                return False

            if not self._sessions.is_valid(session):
                self._log.info("Session for identity %s expired", session.user_id)
                self._sessions.teardown()
                return False

            snapshot = self._sessions.current_snapshot()
            if snapshot is None or snapshot.id != session.user_id:
                self._log.warning("Session snapshot missing or mismatched; logging out")
                self._sessions.teardown()
                return False

            return True

        except StorageUnavailable as e:
            self._log.error("Cannot check session: %s", e)
            return False

    def current_identity(self) -> Optional[Identity]:
        """The logged-in identity from the session snapshot, or None."""
        if not self.is_authenticated():
            return None

        try:
            snapshot = self._sessions.current_snapshot()
        except StorageUnavailable as e:
            self._log.error("Cannot read identity snapshot: %s", e)
            return None

        return snapshot.public() if snapshot else None

    def is_current_admin(self) -> bool:
        identity = self.current_identity()
        return identity is not None and identity.is_admin()

    # -- system policy --------------------------------------------------

    def get_system_policy(self) -> SystemPolicy:
        try:
            return self._policy.get()
        except StorageUnavailable as e:
            self._log.error("Cannot read system policy: %s", e)
            return self._policy.default()

    def is_registration_enabled(self) -> bool:
        return self.get_system_policy().registration_enabled

    def update_system_policy(
        self,
        patch: Optional[Mapping[str, Any]] = None,
        **changes: Any,
    ) -> bool:
        """
        Apply policy changes. Admin only.

        Accepts snake_case or persisted camelCase field names, either as a
        mapping or as keyword arguments.

        Returns:
            True if the policy was updated, False for non-admin callers
            (nothing is changed)
        """
        if not self.is_current_admin():
            self._log.warning("Policy update refused: caller is not admin")
            return False

        merged = {**(patch or {}), **changes}
        normalized = {_POLICY_ALIASES.get(k, k): v for k, v in merged.items()}

        try:
            policy = self._policy.update(**normalized)
        except StorageUnavailable as e:
            self._log.error("Policy update failed: %s", e)
            return False

        self._log.info(
            "System policy updated (registration_enabled=%s)", policy.registration_enabled
        )
        return True

    # -- admin bootstrap ------------------------------------------------

    def has_identities(self) -> bool:
        try:
            return self._credentials.has_identities()
        except StorageUnavailable as e:
            self._log.error("Cannot read identities: %s", e)
            return False

    def bootstrap_first_admin(self) -> AuthResult[str]:
        """
        Promote the earliest-created identity to admin.

        Needs no session, so it stays usable when no admin exists. It only
        ever touches the first identity (earliest ``created_at``, ties by
        ``id``) and does nothing once any admin exists.
        """
        try:
            identities = self._credentials.list_all()
            if not identities:
                return AuthResult.failure(AuthErrorKind.NO_IDENTITIES)

            first = min(identities, key=lambda i: (i.created_at, i.id))
            if first.is_admin():
                return AuthResult.failure(
                    AuthErrorKind.ALREADY_ADMIN,
                    f"User {first.username} is already admin",
                )

            existing_admin = next((i for i in identities if i.is_admin()), None)
            if existing_admin is not None:
                self._log.warning(
                    "Bootstrap refused: identity %s is already admin", existing_admin.id
                )
                return AuthResult.failure(
                    AuthErrorKind.ALREADY_ADMIN,
                    f"User {existing_admin.username} is already admin",
                )

            return self._promote(first)

        except (IdentityNotFoundError, StorageUnavailable) as e:
            self._log.error("Bootstrap failed: %s", e)
            return AuthResult.failure(AuthErrorKind.STORAGE_UNAVAILABLE)

    def promote_to_admin(self, username: str) -> AuthResult[str]:
        """Promote the identity with exactly this username. Admin only."""
        if not self.is_current_admin():
            self._log.warning("Promotion refused: caller is not admin")
            return AuthResult.failure(AuthErrorKind.NOT_AUTHORIZED)

        try:
            identity = self._credentials.find_by_username(username)
            if identity is None:
                return AuthResult.failure(
                    AuthErrorKind.IDENTITY_NOT_FOUND, f"User {username} not found"
                )

            if identity.is_admin():
                return AuthResult.failure(
                    AuthErrorKind.ALREADY_ADMIN, f"User {username} is already admin"
                )

            return self._promote(identity)

        except (IdentityNotFoundError, StorageUnavailable) as e:
            self._log.error("Promotion failed: %s", e)
            return AuthResult.failure(AuthErrorKind.STORAGE_UNAVAILABLE)

    def _promote(self, identity: Identity) -> AuthResult[str]:
        identity.role = Role.ADMIN
        self._credentials.update(identity)
        # Keep a logged-in identity's snapshot in step with its new role
        self._sessions.refresh_snapshot(identity)

        self._log.info("Identity %s promoted to admin", identity.id)
        message = f"User {identity.username} was successfully made admin"
        return AuthResult.success(message, message)

    # -- maintenance ----------------------------------------------------

    def clear_all_auth_data(self) -> None:
        """Remove all identities and the session. The system policy is kept."""
        try:
            self._credentials.clear()
            self._sessions.teardown()
        except StorageUnavailable as e:
            self._log.error("Cannot clear auth data: %s", e)
