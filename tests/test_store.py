from __future__ import annotations

import pytest

from postsmith.store import InMemoryRateLimitStore, SqliteRateLimitStore


@pytest.fixture(params=["memory", "sqlite"])
def store(request, tmp_path):
    if request.param == "memory":
        return InMemoryRateLimitStore()
    sqlite_store = SqliteRateLimitStore(tmp_path / "nested" / "limits.db")
    sqlite_store.init_db()
    return sqlite_store


def test_set_given_unsorted_timestamps_when_read_back_then_they_are_ascending(store) -> None:
    # Given
    store.set("alice:publish", [30, 10, 20])

    # When
    timestamps = store.get("alice:publish")

    # Then
    assert timestamps == [10, 20, 30]


def test_prune_given_cutoff_when_pruned_then_only_newer_timestamps_remain(store) -> None:
    # Given
    store.set("alice:publish", [100, 200, 300])

    # When
    kept = store.prune("alice:publish", cutoff=200)

    # Then
    assert kept == [300]
    assert store.get("alice:publish") == [300]


def test_keys_given_several_subjects_when_listed_then_empty_keys_are_absent(store) -> None:
    # Given
    store.set("bob:login_attempt", [1])
    store.set("alice:publish", [1, 2])
    store.set("carol:publish", [5])

    # When
    store.prune("carol:publish", cutoff=10)
    store.delete("bob:login_attempt")
    keys = store.keys()

    # Then
    assert keys == ["alice:publish"]
    assert store.get("bob:login_attempt") == []


def test_init_db_given_missing_parent_directory_when_initialized_then_database_file_is_created(tmp_path) -> None:
    # Given
    db_path = tmp_path / "state" / "limits.db"
    store = SqliteRateLimitStore(db_path)

    # When
    store.init_db()
    store.init_db()

    # Then
    assert db_path.exists()
    assert store.keys() == []
