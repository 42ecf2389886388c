"""Summary: SQLite storage implementation for ical-to-masto.

Importance: Persists app registrations, access tokens, and post history between runs.
Alternatives: Write credentials to a JSON file in the user's config directory.
"""

from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Iterator

from icalmasto.models import AppRegistration, PostedStatus


@dataclass(frozen=True)
class StoredAccessToken:
    """Summary: Access token record as stored (still encoded).

    Importance: Lets services decode tokens only when needed.
    Alternatives: Decode tokens inside the storage layer.
    """

    instance_url: str
    access_token: str
    token_type: str | None
    scope: str | None
    created_at: str


@dataclass(frozen=True)
class StoredStatus:
    """Summary: Posted status record with database identifier.

    Importance: Provides a post history for the CLI and API.
    Alternatives: Query the instance for the account's statuses.
    """

    id: int
    instance_url: str
    status_id: str
    url: str | None
    content: str
    posted_at: str


class SqliteStore:
    """Summary: SQLite-backed storage for ical-to-masto.

    Importance: Enables local-first persistence with minimal dependencies.
    Alternatives: Use Postgres and SQLAlchemy.
    """

    def __init__(self, db_path: str) -> None:
        self._db_path = Path(db_path)

    def initialize(self) -> None:
        """Summary: Create tables if they do not exist.

        Importance: Ensures the database is ready before the first login or post.
        Alternatives: Run migrations using a dedicated migration tool.
        """

        with self._connection() as connection:
            cursor = connection.cursor()
            cursor.execute(
                """
                CREATE TABLE IF NOT EXISTS app_registrations (
                    instance_url TEXT PRIMARY KEY,
                    client_id TEXT NOT NULL,
                    client_secret TEXT NOT NULL,
                    redirect_uri TEXT NOT NULL,
                    scopes TEXT NOT NULL,
                    created_at TEXT NOT NULL
                )
                """
            )
            cursor.execute(
                """
                CREATE TABLE IF NOT EXISTS access_tokens (
                    instance_url TEXT PRIMARY KEY,
                    access_token TEXT NOT NULL,
                    token_type TEXT,
                    scope TEXT,
                    created_at TEXT NOT NULL
                )
                """
            )
            cursor.execute(
                """
                CREATE TABLE IF NOT EXISTS posted_statuses (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    instance_url TEXT NOT NULL,
                    status_id TEXT NOT NULL,
                    url TEXT,
                    content TEXT NOT NULL,
                    posted_at TEXT NOT NULL
                )
                """
            )
            connection.commit()

    def save_registration(self, registration: AppRegistration) -> None:
        """Summary: Insert or replace the app registration for an instance.

        Importance: Re-registering replaces stale client credentials.
        Alternatives: Keep every registration and pick the newest.
        """

        with self._connection() as connection:
            connection.execute(
                """
                INSERT INTO app_registrations (
                    instance_url, client_id, client_secret, redirect_uri, scopes, created_at
                ) VALUES (?, ?, ?, ?, ?, ?)
                ON CONFLICT(instance_url) DO UPDATE SET
                    client_id = excluded.client_id,
                    client_secret = excluded.client_secret,
                    redirect_uri = excluded.redirect_uri,
                    scopes = excluded.scopes,
                    created_at = excluded.created_at
                """,
                (
                    registration.instance_url,
                    registration.client_id,
                    registration.client_secret,
                    registration.redirect_uri,
                    registration.scopes,
                    datetime.utcnow().isoformat(),
                ),
            )
            connection.commit()

    def get_registration(self, instance_url: str) -> AppRegistration | None:
        with self._connection() as connection:
            row = connection.execute(
                """
                SELECT instance_url, client_id, client_secret, redirect_uri, scopes
                FROM app_registrations WHERE instance_url = ?
                """,
                (instance_url,),
            ).fetchone()
        if not row:
            return None
        return AppRegistration(
            instance_url=row[0],
            client_id=row[1],
            client_secret=row[2],
            redirect_uri=row[3],
            scopes=row[4],
        )

    def save_access_token(
        self,
        instance_url: str,
        access_token: str,
        token_type: str | None,
        scope: str | None,
    ) -> None:
        """Summary: Insert or replace the access token for an instance.

        Importance: A new login supersedes the previous token.
        Alternatives: Keep a token history per instance.
        """

        with self._connection() as connection:
            connection.execute(
                """
                INSERT INTO access_tokens (instance_url, access_token, token_type, scope, created_at)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT(instance_url) DO UPDATE SET
                    access_token = excluded.access_token,
                    token_type = excluded.token_type,
                    scope = excluded.scope,
                    created_at = excluded.created_at
                """,
                (instance_url, access_token, token_type, scope, datetime.utcnow().isoformat()),
            )
            connection.commit()

    def get_access_token(self, instance_url: str) -> StoredAccessToken | None:
        with self._connection() as connection:
            row = connection.execute(
                """
                SELECT instance_url, access_token, token_type, scope, created_at
                FROM access_tokens WHERE instance_url = ?
                """,
                (instance_url,),
            ).fetchone()
        if not row:
            return None
        return StoredAccessToken(
            instance_url=row[0],
            access_token=row[1],
            token_type=row[2],
            scope=row[3],
            created_at=row[4],
        )

    def record_status(self, instance_url: str, status: PostedStatus) -> int:
        """Summary: Append a published status to the post history.

        Importance: Keeps an audit trail of what was announced.
        Alternatives: Log posts only in application logs.
        """

        with self._connection() as connection:
            cursor = connection.cursor()
            cursor.execute(
                """
                INSERT INTO posted_statuses (instance_url, status_id, url, content, posted_at)
                VALUES (?, ?, ?, ?, ?)
                """,
                (
                    instance_url,
                    status.status_id,
                    status.url,
                    status.content,
                    status.posted_at.isoformat(),
                ),
            )
            connection.commit()
            return int(cursor.lastrowid)

    def list_statuses(self, limit: int) -> list[StoredStatus]:
        with self._connection() as connection:
            rows = connection.execute(
                """
                SELECT id, instance_url, status_id, url, content, posted_at
                FROM posted_statuses ORDER BY id DESC LIMIT ?
                """,
                (limit,),
            ).fetchall()
        return [
            StoredStatus(
                id=int(row[0]),
                instance_url=row[1],
                status_id=row[2],
                url=row[3],
                content=row[4],
                posted_at=row[5],
            )
            for row in rows
        ]

    @contextmanager
    def _connection(self) -> Iterator[sqlite3.Connection]:
        """Summary: Context manager for SQLite connections.

        Importance: Ensures connections are closed cleanly after use.
        Alternatives: Keep a single long-lived connection.
        """

        connection = sqlite3.connect(self._db_path)
        try:
            yield connection
        finally:
            connection.close()
