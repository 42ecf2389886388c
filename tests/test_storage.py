"""Summary: Tests for SQLite storage behavior.

Importance: Ensures registrations, tokens, and post history persist correctly.
Alternatives: Use mocks for storage in tests.
"""

from __future__ import annotations

from datetime import datetime
from pathlib import Path

from icalmasto.models import AppRegistration, PostedStatus
from icalmasto.storage.sqlite_store import SqliteStore


def _store(tmp_path: Path) -> SqliteStore:
    store = SqliteStore(str(tmp_path / "test.db"))
    store.initialize()
    return store


def _registration(client_id: str) -> AppRegistration:
    return AppRegistration(
        instance_url="https://mastodon.example",
        client_id=client_id,
        client_secret="v1:encoded",
        redirect_uri="urn:ietf:wg:oauth:2.0:oob",
        scopes="read write",
    )


def test_registration_upsert(tmp_path: Path) -> None:
    """Summary: Re-registering replaces the stored credentials.

    Importance: A single registration per instance keeps login unambiguous.
    Alternatives: Keep every registration ever made.
    """

    store = _store(tmp_path)
    assert store.get_registration("https://mastodon.example") is None
    store.save_registration(_registration("first"))
    store.save_registration(_registration("second"))
    assert store.get_registration("https://mastodon.example") == _registration("second")


def test_access_token_upsert(tmp_path: Path) -> None:
    store = _store(tmp_path)
    store.save_access_token("https://mastodon.example", "v1:one", "Bearer", "read")
    store.save_access_token("https://mastodon.example", "v1:two", "Bearer", "read write")
    record = store.get_access_token("https://mastodon.example")
    assert record is not None
    assert record.access_token == "v1:two"
    assert record.scope == "read write"
    assert store.get_access_token("https://other.example") is None


def test_status_history_is_newest_first(tmp_path: Path) -> None:
    store = _store(tmp_path)
    for number in range(3):
        store.record_status(
            "https://mastodon.example",
            PostedStatus(
                status_id=str(number),
                url=f"https://mastodon.example/@bot/{number}",
                content=f"Status {number}",
                posted_at=datetime(2026, 1, 15, 10, number),
            ),
        )
    statuses = store.list_statuses(2)
    assert [status.status_id for status in statuses] == ["2", "1"]
    assert statuses[0].posted_at == "2026-01-15T10:02:00"


def test_initialize_is_idempotent(tmp_path: Path) -> None:
    store = _store(tmp_path)
    store.save_registration(_registration("kept"))
    store.initialize()
    assert store.get_registration("https://mastodon.example") is not None
