"""Summary: Upcoming-event selection over a parsed Calendar.

Importance: Decides which events are announced and in which order.
Alternatives: Filter events while parsing and discard the rest.
"""

from __future__ import annotations

from datetime import datetime, timezone, tzinfo

from icalmasto.ics import parse_ics_datetime
from icalmasto.models import Calendar, Event


def parse_reference_time(
    value: str | datetime, floating_tz: tzinfo = timezone.utc
) -> datetime:
    """Summary: Normalize a reference time to an aware datetime.

    Importance: Reference strings use the same rules as DTSTART values.
    Alternatives: Accept only pre-parsed datetimes.
    """

    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=floating_tz)
        return value
    return parse_ics_datetime(value, floating_tz=floating_tz).value


def upcoming(
    calendar: Calendar, reference_time: str | datetime, floating_tz: tzinfo = timezone.utc
) -> list[Event]:
    """Summary: Return events starting at or after the reference time, oldest first.

    Importance: Core query behind every status post. A naive reference time is read in
    floating_tz, the zone the calendar's floating times were anchored to.
    Alternatives: Return events within a fixed horizon only.
    """

    reference = parse_reference_time(reference_time, floating_tz)
    selected = [
        event
        for event in calendar.events
        if event.start is not None and event.start.value >= reference
    ]
    # sorted() is stable, so equal start times keep calendar order.
    return sorted(selected, key=lambda event: event.start.value)


def upcoming_limited(
    calendar: Calendar,
    reference_time: str | datetime,
    max_count: int | None = None,
    floating_tz: tzinfo = timezone.utc,
) -> list[Event]:
    """Summary: Return at most max_count upcoming events.

    Importance: Keeps status posts short.
    Alternatives: Let the formatter drop events that do not fit.
    """

    if max_count is not None and max_count < 0:
        raise ValueError(f"max_count must not be negative: {max_count}")
    events = upcoming(calendar, reference_time, floating_tz)
    if max_count is None:
        return events
    return events[:max_count]
