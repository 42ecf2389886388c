"""Summary: Human-readable rendering of events and status text.

Importance: Produces the text that is posted to the Mastodon account.
Alternatives: Use a templating engine for status composition.
"""

from __future__ import annotations

from typing import Sequence

from icalmasto.models import Event, EventTime, TimeKind


DEFAULT_HEADER = "Upcoming events:"
EMPTY_MESSAGE = "No upcoming events."
UNTITLED = "Untitled event"
NO_TIME = "Time to be announced"
ELLIPSIS = "…"

_DATE_FORMAT = "%a %d %b %Y"
_TIME_FORMAT = "%H:%M"


def display(event: Event) -> str | None:
    """Summary: Render the event start time for people.

    Importance: Used for each event in a composed status.
    Alternatives: Post raw ISO timestamps.
    """

    if event.start is None:
        return None
    return display_time(event.start)


def display_time(moment: EventTime) -> str:
    value = moment.value
    day = value.strftime(_DATE_FORMAT)
    if moment.all_day:
        return day
    text = f"{day}, {value.strftime(_TIME_FORMAT)}"
    if moment.kind is TimeKind.UTC:
        return f"{text} UTC"
    if moment.kind is TimeKind.OFFSET:
        return f"{text} UTC{_format_offset(moment)}"
    if moment.kind is TimeKind.ZONED and moment.tzid:
        return f"{text} ({moment.tzid})"
    return text


def compose_status(
    events: Sequence[Event],
    *,
    header: str = DEFAULT_HEADER,
    empty_message: str = EMPTY_MESSAGE,
    max_length: int = 500,
) -> str:
    """Summary: Compose a status listing events within the character limit.

    Importance: Mastodon rejects statuses longer than the instance limit.
    Alternatives: Post one status per event.
    """

    if not events:
        return empty_message[:max_length]
    blocks = [_event_block(event) for event in events]
    text = header
    added = 0
    for block in blocks:
        candidate = f"{text}\n\n{block}"
        if len(candidate) > max_length:
            break
        text = candidate
        added += 1
    if added:
        return text
    # Not even the first event fits; cut it down.
    candidate = f"{header}\n\n{blocks[0]}"
    return candidate[: max(max_length - len(ELLIPSIS), 0)] + ELLIPSIS


def _event_block(event: Event) -> str:
    lines = [event.summary or UNTITLED, f"When: {display(event) or NO_TIME}"]
    if event.location:
        lines.append(f"Where: {event.location}")
    if event.url:
        lines.append(event.url)
    return "\n".join(lines)


def _format_offset(moment: EventTime) -> str:
    offset = moment.value.utcoffset()
    if offset is None:
        return ""
    minutes = int(offset.total_seconds() // 60)
    sign = "-" if minutes < 0 else "+"
    hours, minutes = divmod(abs(minutes), 60)
    return f"{sign}{hours:02d}:{minutes:02d}"
