"""Summary: Application factory wiring core services.

Importance: Centralizes dependency creation for the CLI and API layers.
Alternatives: Instantiate services manually in each entrypoint.
"""

from __future__ import annotations

from dataclasses import dataclass

from icalmasto.config import AppConfig
from icalmasto.publishing import PublisherFactory
from icalmasto.services import AuthService, CalendarService, PostingService
from icalmasto.storage.sqlite_store import SqliteStore
from icalmasto.token_codec import TokenCodec


@dataclass(frozen=True)
class AppServices:
    """Summary: Bundle of core services for ical-to-masto.

    Importance: Simplifies passing dependencies to CLI or API layers.
    Alternatives: Use a dependency injection container.
    """

    auth: AuthService
    calendar: CalendarService
    posting: PostingService
    store: SqliteStore
    config: AppConfig


def build_services(config: AppConfig) -> AppServices:
    """Summary: Build core services from configuration.

    Importance: Provides a single construction path for the application.
    Alternatives: Instantiate services directly within the CLI entrypoint.
    """

    store = SqliteStore(config.db_path)
    store.initialize()
    auth = AuthService(store=store, codec=TokenCodec(config.token_secret), config=config)
    calendar = CalendarService(config=config)
    posting = PostingService(
        store=store,
        calendar=calendar,
        publishers=PublisherFactory(config=config, access_token=auth.access_token),
        config=config,
    )
    return AppServices(auth=auth, calendar=calendar, posting=posting, store=store, config=config)
