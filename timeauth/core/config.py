"""
Auth Configuration Module
=========================

Provides immutable, environment-aware configuration with security-first defaults.

Security Features:
- Immutable configuration after initialization
- Environment variable override support
- Secret-looking keys are never read from the environment
- OS-aware path handling
"""

from __future__ import annotations

import hashlib
import os
import platform
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Final, Optional

from timeauth.security.constants import (
    HASH_LENGTH_BYTES,
    KDF_ITERATIONS,
    SALT_LENGTH_BYTES,
    SESSION_LIFETIME_SECONDS,
    SESSION_TOKEN_BYTES,
)


_SENSITIVE_KEYS: Final[frozenset[str]] = frozenset({
    "password", "secret", "token_value", "api_key",
    "private", "credential",
})


def _is_sensitive_key(key: str) -> bool:
    """Check if a configuration key might contain sensitive data."""
    key_lower = key.lower()
    return any(sensitive in key_lower for sensitive in _SENSITIVE_KEYS)


def _parse_bool(value: str) -> bool:
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _get_default_data_dir() -> Path:
    """Get OS-appropriate default data directory."""
    system = platform.system().lower()

    if system == "windows":
        base = Path(os.environ.get("LOCALAPPDATA", Path.home() / "AppData" / "Local"))
    elif system == "darwin":
        base = Path.home() / "Library" / "Application Support"
    else:  # Linux and others
        base = Path(os.environ.get("XDG_DATA_HOME", Path.home() / ".local" / "share"))

    return base / "timeauth"


def _get_default_log_dir() -> Path:
    """Get OS-appropriate default log directory."""
    system = platform.system().lower()

    if system == "windows":
        base = Path(os.environ.get("LOCALAPPDATA", Path.home() / "AppData" / "Local"))
        return base / "timeauth" / "Logs"
    elif system == "darwin":
        return Path.home() / "Library" / "Logs" / "timeauth"
    else:  # Linux and others
        return Path(os.environ.get("XDG_STATE_HOME", Path.home() / ".local" / "state")) / "timeauth" / "logs"


@dataclass(frozen=True, slots=True)
class PathConfig:
    """Immutable path configuration with OS-aware defaults."""

    data_dir: Path = field(default_factory=_get_default_data_dir)
    log_dir: Path = field(default_factory=_get_default_log_dir)

    def __post_init__(self) -> None:
        for field_name in ["data_dir", "log_dir"]:
            path = getattr(self, field_name)
            if not path.is_absolute():
                raise ValueError(f"{field_name} must be an absolute path: {path}")


@dataclass(frozen=True, slots=True)
class SecurityConfig:
    """Immutable credential and session parameters."""

    kdf_iterations: int = KDF_ITERATIONS
    salt_length: int = SALT_LENGTH_BYTES
    hash_length: int = HASH_LENGTH_BYTES
    token_length: int = SESSION_TOKEN_BYTES
    session_lifetime_seconds: int = SESSION_LIFETIME_SECONDS

    # Report unknown identities as a wrong credential on login
    unify_login_errors: bool = False

    def __post_init__(self) -> None:
        if self.kdf_iterations < KDF_ITERATIONS:
            raise ValueError(f"Key derivation iterations must be at least {KDF_ITERATIONS:,}")
        if self.salt_length < SALT_LENGTH_BYTES:
            raise ValueError(f"Salt length must be at least {SALT_LENGTH_BYTES} bytes")
        if self.hash_length < 16:
            raise ValueError("Hash length must be at least 16 bytes")
        if self.token_length < 16:
            raise ValueError("Session token length must be at least 16 bytes")
        if self.session_lifetime_seconds <= 0:
            raise ValueError("Session lifetime must be positive")


@dataclass(frozen=True, slots=True)
class StorageConfig:
    """Immutable persisted-store configuration."""

    key_prefix: str = ""
    filename: str = "auth-store.json"

    def __post_init__(self) -> None:
        if not self.filename or Path(self.filename).name != self.filename:
            raise ValueError(f"Storage filename must be a bare file name: {self.filename!r}")


@dataclass(frozen=True, slots=True)
class LoggingConfig:
    """Immutable logging configuration."""

    level: str = "INFO"
    max_file_size_bytes: int = 10 * 1024 * 1024  # 10 MB
    backup_count: int = 5
    enable_console: bool = True
    enable_file: bool = False
    enable_json: bool = False

    def __post_init__(self) -> None:
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if self.level.upper() not in valid_levels:
            raise ValueError(f"Invalid log level: {self.level}")
        if self.max_file_size_bytes <= 0:
            raise ValueError("max_file_size_bytes must be positive")
        if self.backup_count < 0:
            raise ValueError("backup_count cannot be negative")


class AuthConfig:
    """
    Centralized, immutable configuration loader with environment override support.

    Usage:
        config = AuthConfig.load()
        store_dir = config.paths.data_dir
        iterations = config.security.kdf_iterations
    """

    __slots__ = ("_paths", "_security", "_storage", "_logging", "_frozen", "_config_hash")

    _instance: Optional[AuthConfig] = None

    def __init__(
        self,
        paths: Optional[PathConfig] = None,
        security: Optional[SecurityConfig] = None,
        storage: Optional[StorageConfig] = None,
        logging: Optional[LoggingConfig] = None,
    ) -> None:
        """Initialize configuration. Use AuthConfig.load() for standard initialization."""
        object.__setattr__(self, "_frozen", False)
        object.__setattr__(self, "_paths", paths or PathConfig())
        object.__setattr__(self, "_security", security or SecurityConfig())
        object.__setattr__(self, "_storage", storage or StorageConfig())
        object.__setattr__(self, "_logging", logging or LoggingConfig())
        object.__setattr__(self, "_config_hash", self._compute_hash())
        object.__setattr__(self, "_frozen", True)

    def _compute_hash(self) -> str:
        """Compute a hash of the configuration for integrity checking."""
        config_str = f"{self._paths}|{self._security}|{self._storage}|{self._logging}"
        return hashlib.sha256(config_str.encode()).hexdigest()[:16]

    @property
    def paths(self) -> PathConfig:
        return self._paths

    @property
    def security(self) -> SecurityConfig:
        return self._security

    @property
    def storage(self) -> StorageConfig:
        return self._storage

    @property
    def logging(self) -> LoggingConfig:
        return self._logging

    @property
    def config_hash(self) -> str:
        return self._config_hash

    @property
    def store_path(self) -> Path:
        """Location of the file-backed key-value store."""
        return self._paths.data_dir / self._storage.filename

    @classmethod
    def load(cls, env_prefix: str = "TIMEAUTH") -> AuthConfig:
        """
        Load configuration with environment variable overrides.

        Environment variables are prefixed with TIMEAUTH_ and use double
        underscores for nested values.

        Examples:
            TIMEAUTH_LOGGING__LEVEL=DEBUG
            TIMEAUTH_SECURITY__KDF_ITERATIONS=200000
            TIMEAUTH_SECURITY__UNIFY_LOGIN_ERRORS=true
            TIMEAUTH_PATHS__DATA_DIR=/custom/path
            TIMEAUTH_STORAGE__KEY_PREFIX=chtime-

        Args:
            env_prefix: Prefix for environment variables (default: TIMEAUTH)

        Returns:
            Configured AuthConfig instance
        """
        env_overrides = cls._parse_env_overrides(env_prefix)

        paths_kwargs: dict[str, Any] = {}
        for name in ("data_dir", "log_dir"):
            if f"paths.{name}" in env_overrides:
                paths_kwargs[name] = Path(env_overrides[f"paths.{name}"])

        security_kwargs: dict[str, Any] = {}
        for name in (
            "kdf_iterations",
            "salt_length",
            "hash_length",
            "token_length",
            "session_lifetime_seconds",
        ):
            if f"security.{name}" in env_overrides:
                security_kwargs[name] = int(env_overrides[f"security.{name}"])
        if "security.unify_login_errors" in env_overrides:
            security_kwargs["unify_login_errors"] = _parse_bool(
                env_overrides["security.unify_login_errors"]
            )

        storage_kwargs: dict[str, Any] = {}
        for name in ("key_prefix", "filename"):
            if f"storage.{name}" in env_overrides:
                storage_kwargs[name] = env_overrides[f"storage.{name}"]

        logging_kwargs: dict[str, Any] = {}
        if "logging.level" in env_overrides:
            logging_kwargs["level"] = env_overrides["logging.level"]
        if "logging.enable_console" in env_overrides:
            logging_kwargs["enable_console"] = _parse_bool(env_overrides["logging.enable_console"])
        if "logging.enable_file" in env_overrides:
            logging_kwargs["enable_file"] = _parse_bool(env_overrides["logging.enable_file"])
        if "logging.enable_json" in env_overrides:
            logging_kwargs["enable_json"] = _parse_bool(env_overrides["logging.enable_json"])
        for name in ("max_file_size_bytes", "backup_count"):
            if f"logging.{name}" in env_overrides:
                logging_kwargs[name] = int(env_overrides[f"logging.{name}"])

        return cls(
            paths=PathConfig(**paths_kwargs) if paths_kwargs else None,
            security=SecurityConfig(**security_kwargs) if security_kwargs else None,
            storage=StorageConfig(**storage_kwargs) if storage_kwargs else None,
            logging=LoggingConfig(**logging_kwargs) if logging_kwargs else None,
        )

    @staticmethod
    def _parse_env_overrides(prefix: str) -> dict[str, str]:
        """Parse environment variables with the given prefix."""
        overrides: dict[str, str] = {}
        prefix_upper = f"{prefix.upper()}_"

        for key, value in os.environ.items():
            if key.startswith(prefix_upper):
                # TIMEAUTH_SECTION__KEY -> section.key
                config_key = key[len(prefix_upper):].lower().replace("__", ".")

                if _is_sensitive_key(config_key):
                    continue

                overrides[config_key] = value

        return overrides

    @classmethod
    def get_instance(cls) -> AuthConfig:
        """Get or create the process-wide configuration instance."""
        if cls._instance is None:
            cls._instance = cls.load()
        return cls._instance

    @classmethod
    def reset_instance(cls) -> None:
        """Reset the shared instance. Use only for testing."""
        cls._instance = None

    def ensure_directories(self) -> None:
        """Create the data and log directories with owner-only permissions."""
        import stat

        for directory in (self._paths.data_dir, self._paths.log_dir):
            directory.mkdir(parents=True, exist_ok=True)

            if platform.system().lower() != "windows":
                directory.chmod(stat.S_IRWXU)  # 700 - owner only

    def __repr__(self) -> str:
        return f"AuthConfig(hash={self._config_hash}, store={self.store_path.name})"

    def __setattr__(self, name: str, value: Any) -> None:
        """Prevent modification after initialization."""
        if getattr(self, "_frozen", False):
            raise AttributeError("AuthConfig is immutable after initialization")
        super().__setattr__(name, value)
