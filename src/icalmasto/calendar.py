"""Summary: Calendar feed retrieval and provider implementations.

Importance: Encapsulates where calendar text comes from so parsing and selection stay pure.
Alternatives: Fetch feeds inline in the CLI and API handlers.
"""

from __future__ import annotations

import logging
import urllib.error
import urllib.parse
import urllib.request
from abc import ABC, abstractmethod
from datetime import datetime, timezone, tzinfo
from pathlib import Path

from icalmasto.errors import (
    FetchDecodeError,
    FetchEmptyBodyError,
    FetchStatusError,
    FetchTransportError,
)
from icalmasto.ics import parse_calendar
from icalmasto.models import Calendar, Event
from icalmasto.selection import upcoming_limited


logger = logging.getLogger(__name__)

USER_AGENT = "ical-to-masto/0.1"
FEED_SCHEMES = {"webcal": "https", "webcals": "https"}
NETWORK_SCHEMES = frozenset({"http", "https"}) | frozenset(FEED_SCHEMES)


class CalendarProvider(ABC):
    """Summary: Abstract interface for calendar ingestion.

    Importance: Standardizes retrieval across feed URLs and local files.
    Alternatives: Couple ingestion to a single remote feed.
    """

    def __init__(self, floating_tz: tzinfo = timezone.utc) -> None:
        self._floating_tz = floating_tz

    @abstractmethod
    def load(self) -> Calendar:
        """Summary: Load and parse the whole calendar.

        Importance: Returns an immutable calendar that can be queried repeatedly.
        Alternatives: Stream events one at a time.
        """

    def fetch_upcoming(
        self, reference_time: str | datetime, limit: int | None = None
    ) -> list[Event]:
        """Summary: Load the calendar and select upcoming events.

        Importance: Drives the post-upcoming workflow.
        Alternatives: Fetch events by date range instead of a reference time.
        """

        return upcoming_limited(self.load(), reference_time, limit, self._floating_tz)


class FeedCalendarProvider(CalendarProvider):
    """Summary: Loads a calendar from an http(s) or webcal(s) feed.

    Importance: The primary source for calendars published by other services.
    Alternatives: Require users to download .ics files manually.
    """

    def __init__(
        self, locator: str, timeout: float = 10.0, floating_tz: tzinfo = timezone.utc
    ) -> None:
        super().__init__(floating_tz)
        self._locator = locator
        self._timeout = timeout

    def load(self) -> Calendar:
        return fetch_calendar(self._locator, timeout=self._timeout, floating_tz=self._floating_tz)


class IcsFileCalendarProvider(CalendarProvider):
    """Summary: Loads a calendar from a local .ics file.

    Importance: Supports offline use and tests.
    Alternatives: Serve the file over a local HTTP server.
    """

    def __init__(self, ics_path: Path, floating_tz: tzinfo = timezone.utc) -> None:
        super().__init__(floating_tz)
        self._ics_path = ics_path

    def load(self) -> Calendar:
        if not self._ics_path.exists():
            raise FileNotFoundError(f"Calendar file not found: {self._ics_path}")
        raw = self._ics_path.read_text(encoding="utf-8")
        return parse_calendar(raw, floating_tz=self._floating_tz)


def build_calendar_provider(
    locator: str, timeout: float = 10.0, floating_tz: tzinfo = timezone.utc
) -> CalendarProvider:
    """Summary: Pick a provider for a locator.

    Importance: Lets configuration point at a feed URL or a local file.
    Alternatives: Make callers instantiate providers directly.
    """

    parsed = urllib.parse.urlsplit(locator.strip())
    scheme = parsed.scheme.lower()
    if scheme in NETWORK_SCHEMES:
        return FeedCalendarProvider(locator, timeout=timeout, floating_tz=floating_tz)
    if scheme == "file":
        path = Path(urllib.request.url2pathname(parsed.path))
        return IcsFileCalendarProvider(path, floating_tz=floating_tz)
    return IcsFileCalendarProvider(Path(locator), floating_tz=floating_tz)


def normalize_locator(locator: str) -> str:
    """Summary: Rewrite calendar-subscription locators to https.

    Importance: webcal links are plain HTTP(S) feeds with a subscription hint.
    Alternatives: Reject webcal links and ask users to edit them.
    """

    parsed = urllib.parse.urlsplit(locator.strip())
    scheme = parsed.scheme.lower()
    if scheme in FEED_SCHEMES:
        return urllib.parse.urlunsplit(parsed._replace(scheme=FEED_SCHEMES[scheme]))
    if scheme in ("http", "https"):
        return urllib.parse.urlunsplit(parsed._replace(scheme=scheme))
    raise ValueError(f"Unsupported calendar locator: {locator}")


def fetch_calendar_text(locator: str, timeout: float = 10.0) -> str:
    """Summary: Download a calendar document into memory.

    Importance: The only network read of the ingestion engine.
    Alternatives: Use requests or httpx with streaming downloads.
    """

    url = normalize_locator(locator)
    request = urllib.request.Request(
        url,
        headers={"User-Agent": USER_AGENT, "Accept": "text/calendar, text/plain;q=0.9, */*;q=0.5"},
        method="GET",
    )
    try:
        with urllib.request.urlopen(request, timeout=timeout) as response:
            status = response.status
            charset = response.headers.get_content_charset() or "utf-8"
            raw = response.read()
    except urllib.error.HTTPError as exc:
        logger.error("Calendar feed %s answered HTTP %s.", url, exc.code)
        raise FetchStatusError(url, exc.code, str(exc.reason)) from exc
    except (urllib.error.URLError, OSError) as exc:
        logger.error("Calendar feed %s is unreachable: %s", url, exc)
        raise FetchTransportError(url, f"Calendar request failed: {exc}") from exc

    if not 200 <= status < 300:
        logger.error("Calendar feed %s answered HTTP %s.", url, status)
        raise FetchStatusError(url, status)
    if not raw.strip():
        logger.error("Calendar feed %s returned an empty body.", url)
        raise FetchEmptyBodyError(url)
    try:
        text = raw.decode(charset)
    except (UnicodeDecodeError, LookupError) as exc:
        logger.error("Calendar feed %s is not valid %s text.", url, charset)
        raise FetchDecodeError(url, charset) from exc
    logger.info("Fetched %s bytes of calendar data from %s.", len(raw), url)
    return text


def fetch_calendar(
    locator: str, timeout: float = 10.0, floating_tz: tzinfo = timezone.utc
) -> Calendar:
    """Summary: Fetch and parse a calendar feed.

    Importance: Single call used by providers and services.
    Alternatives: Return the raw text and parse at the call site.
    """

    return parse_calendar(fetch_calendar_text(locator, timeout=timeout), floating_tz=floating_tz)
