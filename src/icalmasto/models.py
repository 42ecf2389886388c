"""Summary: Domain model dataclasses for ical-to-masto.

Importance: Defines the calendar and posting entities shared across parsing, selection,
storage, and publishing.
Alternatives: Pass raw dictionaries between the parser and the publisher.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


class TimeKind(str, Enum):
    """Summary: How a calendar timestamp was interpreted when parsed.

    Importance: Lets display code render a time the same way it was read.
    Alternatives: Infer the interpretation again from the tzinfo object.
    """

    UTC = "utc"
    OFFSET = "offset"
    ZONED = "zoned"
    FLOATING = "floating"
    DATE = "date"


@dataclass(frozen=True)
class EventTime:
    """Summary: A parsed DTSTART/DTEND value.

    Importance: Keeps every timestamp timezone-aware so events are always comparable.
    Alternatives: Store naive datetimes and compare them as wall-clock values.
    """

    value: datetime
    kind: TimeKind
    tzid: str | None = None

    @property
    def all_day(self) -> bool:
        return self.kind is TimeKind.DATE


@dataclass(frozen=True)
class Event:
    """Summary: Represents one VEVENT block of a calendar feed.

    Importance: Core unit for selection and status composition.
    Alternatives: Keep the raw property mapping for each event.
    """

    uid: str | None = None
    summary: str | None = None
    location: str | None = None
    start: EventTime | None = None
    end: EventTime | None = None
    url: str | None = None


@dataclass(frozen=True)
class ParseDiagnostic:
    """Summary: Describes a non-fatal problem found while parsing one event.

    Importance: Surfaces corrupt events without aborting the whole document.
    Alternatives: Only log the problem and drop the detail.
    """

    event_index: int | None
    uid: str | None
    property_name: str | None
    message: str


@dataclass(frozen=True)
class Calendar:
    """Summary: The events produced by one parse, in source order.

    Importance: Immutable so the same calendar can be queried for many reference times.
    Alternatives: Return a mutable list and re-parse for each query.
    """

    events: tuple[Event, ...] = ()
    diagnostics: tuple[ParseDiagnostic, ...] = field(default=())

    def __len__(self) -> int:
        return len(self.events)


@dataclass(frozen=True)
class AppRegistration:
    """Summary: Client credentials issued by a Mastodon instance.

    Importance: Needed for the authorization-code handshake and token exchange.
    Alternatives: Ask the user for client credentials on every login.
    """

    instance_url: str
    client_id: str
    client_secret: str
    redirect_uri: str
    scopes: str


@dataclass(frozen=True)
class StatusDraft:
    """Summary: A status ready to be published.

    Importance: Carries the optional posting parameters alongside the text.
    Alternatives: Pass keyword arguments through every layer.
    """

    status: str
    visibility: str | None = None
    sensitive: bool | None = None
    spoiler_text: str | None = None
    language: str | None = None
    in_reply_to_id: str | None = None


@dataclass(frozen=True)
class PostedStatus:
    """Summary: The instance's view of a published status.

    Importance: Gives the CLI and API an ID and link to report back.
    Alternatives: Return the raw JSON payload from the instance.
    """

    status_id: str
    url: str | None
    content: str
    posted_at: datetime
