"""
Shared fixtures for the timeauth test suite.
"""

from datetime import datetime, timedelta, timezone

import pytest

from timeauth.core.auth import AuthManager, Pbkdf2Hasher
from timeauth.core.config import AuthConfig, LoggingConfig, PathConfig
from timeauth.db import MemoryStorage


class FakeClock:
    """Controllable replacement for utc_now."""

    def __init__(self, start=None):
        self.current = start or datetime(2025, 1, 6, 8, 0, 0, tzinfo=timezone.utc)

    def __call__(self):
        return self.current

    def advance(self, **kwargs):
        self.current += timedelta(**kwargs)
        return self.current


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def storage():
    return MemoryStorage()


@pytest.fixture
def config(tmp_path):
    return AuthConfig(
        paths=PathConfig(data_dir=tmp_path / "data", log_dir=tmp_path / "logs"),
        logging=LoggingConfig(enable_console=False, enable_file=False),
    )


@pytest.fixture(scope="session")
def hasher():
    return Pbkdf2Hasher()


@pytest.fixture
def manager(storage, config, hasher, clock):
    return AuthManager(storage, config=config, hasher=hasher, clock=clock)


@pytest.fixture
def alice_and_bob(manager, clock):
    """alice (first user, admin) and bob (user), nobody logged in."""
    alice = manager.register("alice", "alice@x.com", "secret1")
    clock.advance(minutes=5)
    bob = manager.register("bob", "bob@x.com", "secret2")
    assert alice.ok and bob.ok
    return alice.value, bob.value
