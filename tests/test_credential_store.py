"""
Tests for the credential store
"""

import json
from datetime import datetime, timezone

import pytest

from timeauth.core.auth.credential_store import (
    CredentialStore,
    DuplicateEmail,
    DuplicateUsername,
    Identity,
    IdentityNotFoundError,
    Role,
    generate_identity_id,
)

T1 = datetime(2025, 1, 6, 8, 0, 0, 123000, tzinfo=timezone.utc)


def make_identity(username="alice", email="alice@x.com", role=Role.USER, created_at=T1, **extra):
    return Identity(
        id=extra.pop("id", generate_identity_id(created_at)),
        username=username,
        email=email,
        password_hash="ab" * 32,
        salt="cd" * 32,
        role=role,
        created_at=created_at,
        **extra,
    )


@pytest.fixture
def store(storage):
    return CredentialStore(storage)


class TestLookup:
    """Test identity lookups"""

    def test_empty_store(self, store):
        assert store.list_all() == []
        assert store.has_identities() is False
        assert store.find_by_login("alice") is None

    def test_find_by_username_or_email_ignoring_case(self, store):
        alice = store.insert(make_identity())
        assert store.find_by_login("ALICE") == alice
        assert store.find_by_login("Alice@X.com") == alice
        assert store.find_by_login("bob") is None

    def test_find_by_id(self, store):
        alice = store.insert(make_identity())
        assert store.find_by_id(alice.id) == alice
        assert store.find_by_id("user-0-missing") is None

    def test_find_by_username_is_exact(self, store):
        store.insert(make_identity())
        assert store.find_by_username("alice") is not None
        assert store.find_by_username("Alice") is None


class TestUniqueness:
    """Test uniqueness invariants"""

    def test_duplicate_username_differing_in_case(self, store):
        store.insert(make_identity())
        with pytest.raises(DuplicateUsername):
            store.insert(make_identity(username="ALICE", email="other@x.com"))

    def test_duplicate_email_differing_in_case(self, store):
        store.insert(make_identity())
        with pytest.raises(DuplicateEmail):
            store.insert(make_identity(username="carol", email="ALICE@x.COM"))

    def test_username_checked_before_email(self, store):
        store.insert(make_identity())
        with pytest.raises(DuplicateUsername):
            store.insert(make_identity())

    def test_failed_insert_leaves_store_unchanged(self, store):
        store.insert(make_identity())
        with pytest.raises(DuplicateEmail):
            store.insert(make_identity(username="carol"))
        assert len(store.list_all()) == 1


class TestUpdate:
    """Test record replacement"""

    def test_update_replaces_record(self, store):
        alice = store.insert(make_identity())
        alice.role = Role.ADMIN
        store.update(alice)
        assert store.find_by_id(alice.id).role is Role.ADMIN

    def test_update_unknown_id_raises(self, store):
        with pytest.raises(IdentityNotFoundError):
            store.update(make_identity())

    def test_clear(self, store, storage):
        store.insert(make_identity())
        store.clear()
        assert store.list_all() == []
        assert storage.get("identities") is None


class TestPersistence:
    """Test the persisted JSON shape"""

    def test_round_trip_preserves_fields(self, store):
        last_login = datetime(2025, 2, 1, 12, 30, 15, 456000, tzinfo=timezone.utc)
        alice = store.insert(make_identity(role=Role.ADMIN, last_login=last_login))
        reloaded = store.list_all()[0]
        assert reloaded == alice
        assert reloaded.created_at == T1
        assert reloaded.last_login == last_login

    def test_record_shape(self, store, storage):
        alice = store.insert(make_identity())
        record = json.loads(storage.get("identities"))[0]
        assert record == {
            "id": alice.id,
            "username": "alice",
            "email": "alice@x.com",
            "passwordHash": "ab" * 32,
            "salt": "cd" * 32,
            "role": "user",
            "createdAt": "2025-01-06T08:00:00.123Z",
        }

    def test_reads_existing_browser_data(self, store, storage):
        storage.set("identities", json.dumps([{
            "id": "user-1709288130000-k3j9x0a1b",
            "username": "dana",
            "email": "dana@x.com",
            "passwordHash": "00" * 32,
            "salt": "11" * 32,
            "role": "admin",
            "createdAt": "2024-03-01T10:15:30.000Z",
            "lastLogin": "2024-03-02T09:00:00.500Z",
        }]))
        dana = store.find_by_login("dana")
        assert dana.role is Role.ADMIN
        assert dana.created_at == datetime(2024, 3, 1, 10, 15, 30, tzinfo=timezone.utc)
        assert dana.last_login == datetime(2024, 3, 2, 9, 0, 0, 500000, tzinfo=timezone.utc)

    def test_identity_ids_are_unique(self):
        ids = {generate_identity_id(T1) for _ in range(50)}
        assert len(ids) == 50
        assert all(i.startswith(f"user-{int(T1.timestamp() * 1000)}-") for i in ids)

    def test_repr_hides_credentials(self):
        identity = make_identity()
        assert identity.password_hash not in repr(identity)
        assert identity.salt not in repr(identity)

    def test_public_copy_blanks_credentials(self):
        identity = make_identity()
        public = identity.public()
        assert public.password_hash == "" and public.salt == ""
        assert identity.password_hash == "ab" * 32


class TestCorruption:
    """Test reading malformed stored data"""

    @pytest.mark.parametrize(
        "raw",
        [
            "{not json",
            '{"id": "x"}',
            "[1, 2, 3]",
            '[{"id": "x", "username": "a"}]',
        ],
    )
    def test_malformed_data_reads_as_empty(self, store, storage, raw):
        storage.set("identities", raw)
        assert store.list_all() == []
        assert store.find_by_login("alice") is None

    def test_one_bad_record_empties_the_result(self, store, storage):
        store.insert(make_identity())
        records = json.loads(storage.get("identities"))
        records.append({**records[0], "id": "user-2", "createdAt": "yesterday"})
        storage.set("identities", json.dumps(records))
        assert store.list_all() == []

    def test_out_of_range_timestamp_is_malformed(self, store, storage):
        store.insert(make_identity())
        records = json.loads(storage.get("identities"))
        records[0]["createdAt"] = "0001-01-01T00:00:00+01:00"
        storage.set("identities", json.dumps(records))
        assert store.list_all() == []

    def test_unknown_role_is_malformed(self, store, storage):
        store.insert(make_identity())
        records = json.loads(storage.get("identities"))
        records[0]["role"] = "superuser"
        storage.set("identities", json.dumps(records))
        assert store.list_all() == []
