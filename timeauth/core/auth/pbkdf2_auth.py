"""
PBKDF2 Secret Hashing
=====================

Implements salted secret hashing using PBKDF2-HMAC-SHA256.

Security Properties:
- Time-hard (100,000 iterations by default)
- 32-byte per-identity salt from a CSPRNG
- Constant-time verification
- Secrets are never logged or stored

Persisted form:
- hash and salt are stored as lowercase hex strings next to each other
  on the identity record

References:
- RFC 8018: PKCS #5 v2.1 (PBKDF2)
- OWASP Password Storage Cheat Sheet
"""

from __future__ import annotations

import hmac
import secrets
from dataclasses import dataclass
from typing import Callable, Final, Optional

from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from timeauth.security.constants import (
    HASH_LENGTH_BYTES,
    KDF_ITERATIONS,
    SALT_LENGTH_BYTES,
    SESSION_TOKEN_BYTES,
)

MIN_ITERATIONS: Final[int] = KDF_ITERATIONS
MIN_SALT_LENGTH: Final[int] = SALT_LENGTH_BYTES
MIN_HASH_LENGTH: Final[int] = 16


class CryptoUnavailable(RuntimeError):
    """Raised when no secure randomness source can be used."""
    pass


def _as_bytes(value: str | bytes) -> bytes:
    if isinstance(value, (bytes, bytearray)):
        return bytes(value)
    return bytes.fromhex(value)


@dataclass(frozen=True, slots=True)
class HashResult:
    """
    Immutable result of secret hashing.

    Attributes:
        hash: The derived key bytes
        salt: Random salt used
    """
    hash: bytes
    salt: bytes

    @property
    def hash_hex(self) -> str:
        return self.hash.hex()

    @property
    def salt_hex(self) -> str:
        return self.salt.hex()

    def __repr__(self) -> str:
        """Safe representation without exposing hash."""
        return f"HashResult(hash_len={len(self.hash)}, salt_len={len(self.salt)})"


class Pbkdf2Hasher:
    """
    PBKDF2-HMAC-SHA256 hasher with secure defaults.

    Usage:
        hasher = Pbkdf2Hasher()

        # Hash a secret with a fresh salt
        result = hasher.hash("user_secret")
        store(result.hash_hex, result.salt_hex)

        # Verify a secret
        is_valid = hasher.verify("user_secret", stored_hash_hex, stored_salt_hex)

    Security Notes:
        - The randomness source must be cryptographically secure; if it is
          unavailable, CryptoUnavailable is raised instead of degrading
        - Comparison uses hmac.compare_digest
    """

    __slots__ = ("_iterations", "_hash_length", "_salt_length", "_random_source")

    def __init__(
        self,
        iterations: int = KDF_ITERATIONS,
        hash_length: int = HASH_LENGTH_BYTES,
        salt_length: int = SALT_LENGTH_BYTES,
        random_source: Optional[Callable[[int], bytes]] = None,
    ) -> None:
        """
        Initialize the hasher.

        Args:
            iterations: PBKDF2 iteration count (default: 100,000)
            hash_length: Output length in bytes (default: 32)
            salt_length: Salt length in bytes (default: 32)
            random_source: Callable returning n secure random bytes
                (default: secrets.token_bytes)
        """
        if iterations < MIN_ITERATIONS:
            raise ValueError(f"iterations must be at least {MIN_ITERATIONS:,}")
        if hash_length < MIN_HASH_LENGTH:
            raise ValueError(f"hash_length must be at least {MIN_HASH_LENGTH} bytes")
        if salt_length < MIN_SALT_LENGTH:
            raise ValueError(f"salt_length must be at least {MIN_SALT_LENGTH} bytes")

        self._iterations = iterations
        self._hash_length = hash_length
        self._salt_length = salt_length
        self._random_source = random_source or secrets.token_bytes

    @property
    def parameters(self) -> dict[str, int]:
        """Get current hashing parameters."""
        return {
            "iterations": self._iterations,
            "hash_length": self._hash_length,
            "salt_length": self._salt_length,
        }

    def random_bytes(self, length: int) -> bytes:
        """
        Read ``length`` bytes from the secure randomness source.

        Raises:
            CryptoUnavailable: If the source is missing or fails
        """
        try:
            data = self._random_source(length)
        except (NotImplementedError, OSError) as e:
            raise CryptoUnavailable("Secure randomness source is unavailable") from e

        if not isinstance(data, (bytes, bytearray)) or len(data) != length:
            raise CryptoUnavailable("Secure randomness source returned unexpected output")

        return bytes(data)

    def generate_salt(self) -> bytes:
        return self.random_bytes(self._salt_length)

    def generate_token(self, length: int = SESSION_TOKEN_BYTES) -> str:
        """Generate a hex-encoded random token (2 * length characters)."""
        return self.random_bytes(length).hex()

    def derive(self, secret: str | bytes, salt: bytes) -> bytes:
        """
        Derive the credential hash for ``secret`` under ``salt``.

        Deterministic for fixed inputs.
        """
        if isinstance(secret, str):
            secret = secret.encode("utf-8")

        kdf = PBKDF2HMAC(
            algorithm=hashes.SHA256(),
            length=self._hash_length,
            salt=salt,
            iterations=self._iterations,
        )
        return kdf.derive(secret)

    def hash(self, secret: str, salt: Optional[bytes] = None) -> HashResult:
        """
        Hash a secret, generating a fresh salt unless one is given.

        Raises:
            ValueError: If the secret is empty
            CryptoUnavailable: If a salt is needed and randomness is unavailable
        """
        if not secret:
            raise ValueError("Secret cannot be empty")

        if salt is None:
            salt = self.generate_salt()

        return HashResult(hash=self.derive(secret, salt), salt=salt)

    def verify(self, secret: str | bytes, stored_hash: str | bytes, salt: str | bytes) -> bool:
        """
        Verify a secret against a stored hash and salt.

        ``stored_hash`` and ``salt`` may be raw bytes or the persisted hex form.

        Returns:
            True if the secret matches, False otherwise (including malformed
            stored values)
        """
        if not secret or not stored_hash or not salt:
            return False

        try:
            salt_bytes = _as_bytes(salt)
            expected = _as_bytes(stored_hash)
        except (TypeError, ValueError):
            return False

        computed = self.derive(secret, salt_bytes)
        return hmac.compare_digest(computed, expected)

    def burn(self, secret: str) -> None:
        """
        Run one derivation and discard it.

        Used on lookups for unknown identities so the response time does not
        reveal whether the account exists.
        """
        self.derive(secret or " ", b"\x00" * self._salt_length)
