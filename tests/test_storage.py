"""
Tests for key-value storage backends
"""

import json
import os
import platform

import pytest

from timeauth.core.auth import AuthManager
from timeauth.db import JsonFileStorage, KeyValueStorage, MemoryStorage, PrefixedStorage


class TestMemoryStorage:
    """Test in-memory storage"""

    def test_get_set_remove(self):
        storage = MemoryStorage()
        assert storage.get("k") is None
        storage.set("k", "v")
        assert storage.get("k") == "v"
        storage.remove("k")
        storage.remove("k")
        assert storage.get("k") is None

    def test_rejects_non_string_values(self):
        with pytest.raises(TypeError):
            MemoryStorage().set("k", {"a": 1})

    def test_satisfies_protocol(self, tmp_path):
        assert isinstance(MemoryStorage(), KeyValueStorage)
        assert isinstance(JsonFileStorage(tmp_path / "s.json"), KeyValueStorage)

    def test_prefixed_view(self):
        inner = MemoryStorage()
        view = PrefixedStorage(inner, "chtime-")
        view.set("identities", "[]")
        assert inner.get("chtime-identities") == "[]"
        assert view.get("identities") == "[]"
        view.remove("identities")
        assert len(inner) == 0


class TestJsonFileStorage:
    """Test file-backed storage"""

    def test_values_survive_new_instance(self, tmp_path):
        path = tmp_path / "store" / "auth-store.json"
        JsonFileStorage(path).set("identities", "[]")
        assert JsonFileStorage(path).get("identities") == "[]"
        assert json.loads(path.read_text(encoding="utf-8")) == {"identities": "[]"}

    def test_missing_file_reads_empty(self, tmp_path):
        assert JsonFileStorage(tmp_path / "absent.json").get("identities") is None

    def test_remove(self, tmp_path):
        storage = JsonFileStorage(tmp_path / "s.json")
        storage.set("a", "1")
        storage.set("b", "2")
        storage.remove("a")
        storage.remove("missing")
        assert storage.get("a") is None
        assert storage.get("b") == "2"

    @pytest.mark.parametrize(
        "content",
        [b"{broken", b"[1, 2]", b'"text"', b'{"identities": "\xff\xfe"}'],
    )
    def test_corrupt_file_reads_empty_and_is_replaced(self, tmp_path, content):
        path = tmp_path / "s.json"
        path.write_bytes(content)
        storage = JsonFileStorage(path)
        assert storage.get("identities") is None
        storage.set("identities", "[]")
        assert json.loads(path.read_text(encoding="utf-8")) == {"identities": "[]"}

    def test_undecodable_file_does_not_reach_callers(self, tmp_path, config, hasher, clock):
        path = tmp_path / "auth-store.json"
        path.write_bytes(b'{"identities": "\xff\xfe"}')
        manager = AuthManager(JsonFileStorage(path), config=config, hasher=hasher, clock=clock)
        assert manager.has_identities() is False
        assert manager.is_authenticated() is False
        assert manager.register("alice", "alice@x.com", "secret1").ok

    def test_non_string_entries_ignored(self, tmp_path):
        path = tmp_path / "s.json"
        path.write_text('{"a": 1, "b": "two"}', encoding="utf-8")
        storage = JsonFileStorage(path)
        assert storage.get("a") is None
        assert storage.get("b") == "two"

    def test_no_temp_files_left_behind(self, tmp_path):
        storage = JsonFileStorage(tmp_path / "s.json")
        storage.set("a", "1")
        storage.set("a", "2")
        assert sorted(p.name for p in tmp_path.iterdir()) == ["s.json"]

    @pytest.mark.skipif(platform.system().lower() == "windows", reason="POSIX permissions")
    def test_file_is_owner_only(self, tmp_path):
        path = tmp_path / "s.json"
        JsonFileStorage(path).set("a", "1")
        assert os.stat(path).st_mode & 0o777 == 0o600

    def test_auth_state_survives_restart(self, tmp_path, config, hasher, clock):
        path = tmp_path / "auth-store.json"
        first = AuthManager(JsonFileStorage(path), config=config, hasher=hasher, clock=clock)
        first.register("alice", "alice@x.com", "secret1")
        first.login("alice", "secret1")

        second = AuthManager(JsonFileStorage(path), config=config, hasher=hasher, clock=clock)
        assert second.is_authenticated() is True
        assert second.is_current_admin() is True
