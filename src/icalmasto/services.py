"""Summary: Core application services for ical-to-masto.

Importance: Orchestrates login, calendar selection, and status publication flows.
Alternatives: Build a full service layer with a dependency injection framework.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone

from icalmasto.calendar import CalendarProvider, build_calendar_provider
from icalmasto.config import AppConfig
from icalmasto.formatting import compose_status
from icalmasto.models import AppRegistration, Calendar, Event, PostedStatus, StatusDraft
from icalmasto.oauth import (
    build_authorize_url,
    exchange_oauth_code,
    normalize_instance_url,
    register_app,
)
from icalmasto.publishing import PublisherFactory
from icalmasto.selection import parse_reference_time, upcoming_limited
from icalmasto.storage.sqlite_store import SqliteStore, StoredStatus
from icalmasto.token_codec import TokenCodec


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AuthService:
    """Summary: Manages app registration and access tokens for the configured instance.

    Importance: Replaces manual credential handling with a stored, obfuscated login.
    Alternatives: Ask for an access token on every run.
    """

    store: SqliteStore
    codec: TokenCodec
    config: AppConfig

    def register_app(
        self,
        instance: str | None = None,
        client_name: str | None = None,
        redirect_uri: str | None = None,
        scopes: str | None = None,
        website: str | None = None,
    ) -> AppRegistration:
        """Summary: Register with an instance and store the client credentials.

        Importance: First step of the login flow.
        Alternatives: Paste client credentials created in the instance UI.
        """

        registration = register_app(
            instance or self.config.instance_url,
            client_name or self.config.client_name,
            redirect_uri=redirect_uri or self.config.redirect_uri,
            scopes=scopes or self.config.scopes,
            website=website or self.config.website or None,
        )
        self.store.save_registration(
            AppRegistration(
                instance_url=registration.instance_url,
                client_id=registration.client_id,
                client_secret=self.codec.encode(registration.client_secret),
                redirect_uri=registration.redirect_uri,
                scopes=registration.scopes,
            )
        )
        logger.info("Stored app registration for %s.", registration.instance_url)
        return registration

    def load_registration(self, instance: str | None = None) -> AppRegistration:
        instance_url = normalize_instance_url(instance or self.config.instance_url)
        record = self.store.get_registration(instance_url)
        if not record:
            raise ValueError(
                f"No app registration for {instance_url}. Please run 'register-app' first."
            )
        return AppRegistration(
            instance_url=record.instance_url,
            client_id=record.client_id,
            client_secret=self.codec.decode(record.client_secret),
            redirect_uri=record.redirect_uri,
            scopes=record.scopes,
        )

    def authorization_url(self, instance: str | None = None) -> str:
        return build_authorize_url(self.load_registration(instance))

    def complete_login(self, code: str, instance: str | None = None) -> None:
        """Summary: Exchange an authorization code and store the access token.

        Importance: Completes the handshake so later posts need no user input.
        Alternatives: Keep the token only in memory.
        """

        registration = self.load_registration(instance)
        result = exchange_oauth_code(registration, code)
        self.store.save_access_token(
            registration.instance_url,
            self.codec.encode(result.access_token),
            result.token_type,
            result.scope,
        )
        logger.info("Stored access token for %s.", registration.instance_url)

    def access_token(self, instance: str | None = None) -> str:
        instance_url = normalize_instance_url(instance or self.config.instance_url)
        record = self.store.get_access_token(instance_url)
        if not record:
            raise ValueError("No authentication token found. Please run 'login' command first.")
        return self.codec.decode(record.access_token)


@dataclass(frozen=True)
class CalendarService:
    """Summary: Loads the configured calendar and selects upcoming events.

    Importance: The only place outer layers read the clock for the reference time.
    Alternatives: Let every caller build providers and reference times.
    """

    config: AppConfig

    def provider(self) -> CalendarProvider:
        if not self.config.calendar_url:
            raise ValueError("Calendar URL is not configured")
        return build_calendar_provider(
            self.config.calendar_url,
            timeout=self.config.fetch_timeout,
            floating_tz=self.config.floating_tz(),
        )

    def load_calendar(self) -> Calendar:
        calendar = self.provider().load()
        logger.info("Loaded %s events from the calendar.", len(calendar))
        return calendar

    def reference_time(self, value: str | datetime | None = None) -> datetime:
        """Summary: Resolve an optional reference time, defaulting to now.

        Importance: Naive inputs use the same floating zone as the calendar.
        Alternatives: Require callers to always pass a reference time.
        """

        if value is None:
            return datetime.now(timezone.utc)
        return parse_reference_time(value, self.config.floating_tz())

    def upcoming(
        self, reference_time: str | datetime | None = None, limit: int | None = None
    ) -> list[Event]:
        reference = self.reference_time(reference_time)
        return upcoming_limited(self.load_calendar(), reference, limit)


@dataclass(frozen=True)
class PostingService:
    """Summary: Composes and publishes statuses and keeps a post history.

    Importance: Ties calendar selection to the publisher and storage.
    Alternatives: Post directly from the CLI without history.
    """

    store: SqliteStore
    calendar: CalendarService
    publishers: PublisherFactory
    config: AppConfig

    def post_status(self, draft: StatusDraft, instance: str | None = None) -> PostedStatus:
        """Summary: Publish a draft and record it.

        Importance: Central path for every outbound status.
        Alternatives: Record posts only when they come from the calendar.
        """

        publisher = self.publishers.build(instance)
        posted = publisher.publish(draft)
        self.store.record_status(normalize_instance_url(instance or self.config.instance_url), posted)
        logger.info("Posted status %s.", posted.status_id)
        return posted

    def compose_upcoming(
        self, reference_time: str | datetime | None = None, limit: int | None = None
    ) -> str:
        events = self.calendar.upcoming(reference_time, self._limit(limit))
        return compose_status(events, max_length=self.config.status_max_length)

    def post_upcoming(
        self,
        reference_time: str | datetime | None = None,
        limit: int | None = None,
        instance: str | None = None,
    ) -> PostedStatus:
        """Summary: Compose the upcoming-events summary and publish it.

        Importance: The main scheduled workflow of the tool.
        Alternatives: Publish one status per event.
        """

        status = self.compose_upcoming(reference_time, limit)
        draft = StatusDraft(status=status, visibility=self.config.post_visibility or None)
        return self.post_status(draft, instance)

    def list_statuses(self, limit: int) -> list[StoredStatus]:
        return self.store.list_statuses(limit)

    def _limit(self, limit: int | None) -> int | None:
        if limit is not None:
            return limit
        return self.config.post_limit or None
