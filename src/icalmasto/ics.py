"""Summary: iCalendar (RFC 5545) text parsing into Calendar records.

Importance: Turns a raw feed into typed events without failing on a single bad entry.
Alternatives: Use a full iCalendar library such as icalendar.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone, tzinfo
from typing import Mapping
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from icalmasto.errors import EventParseError
from icalmasto.models import Calendar, Event, EventTime, ParseDiagnostic, TimeKind


logger = logging.getLogger(__name__)

EVENT_COMPONENT = "VEVENT"
EVENT_PROPERTIES = frozenset({"UID", "SUMMARY", "LOCATION", "DTSTART", "DTEND", "URL"})
TEXT_PROPERTIES = frozenset({"SUMMARY", "LOCATION"})

FOLD_WIDTH = 75
WORD_FOLD_MAX_OCTETS = FOLD_WIDTH - 5

OUTSIDE_EVENT = "outside-event"
INSIDE_EVENT = "inside-event"

_LINE_BREAK = re.compile(r"\r\n|\n|\r")
_PROPERTY_NAME = re.compile(r"^([A-Za-z0-9-]+)[;:]")
_ESCAPE = re.compile(r"\\([\\;,nN])")
_DATE = re.compile(r"^\d{8}$")
_DATE_TIME = re.compile(r"^(\d{8}T\d{6})(Z|[+-]\d{4})?$")
_OFFSET_ZONE = re.compile(r"^(?:UTC|GMT)?([+-])(\d{1,2})(?::?(\d{2}))?$")
_UTC_ALIASES = frozenset({"UTC", "UCT", "GMT", "Z", "ZULU", "ETC/UTC", "ETC/UCT", "ETC/GMT"})


@dataclass(frozen=True)
class ContentLine:
    """Summary: One unfolded iCalendar line split into its parts.

    Importance: Gives event grouping a uniform view of names, parameters, and values.
    Alternatives: Match each property with its own regular expression.
    """

    name: str
    params: dict[str, str]
    value: str


def unfold_lines(text: str) -> list[str]:
    """Summary: Rebuild logical lines from folded physical lines.

    Importance: Long properties are wrapped by generators and must be rejoined before parsing.
    In SUMMARY and LOCATION, a fold on a short line between two words stands for the
    space it replaced. Every other property is joined directly.
    Alternatives: Rely on str.splitlines and ignore folding.
    """

    lines: list[str] = []
    previous_octets = 0
    for physical in _LINE_BREAK.split(text.lstrip("\ufeff")):
        if physical[:1] in (" ", "\t") and lines:
            # Only the single fold character is removed.
            continuation = physical[1:]
            if _is_word_fold(lines[-1], continuation, previous_octets):
                lines[-1] += " "
            lines[-1] += continuation
        else:
            lines.append(physical)
        previous_octets = len(physical.encode("utf-8"))
    return lines


def parse_content_line(line: str) -> ContentLine:
    """Summary: Split a logical line into name, parameters, and decoded value.

    Importance: Exposes the TZID and VALUE parameters needed for timestamp parsing.
    Alternatives: Split on the first colon and discard parameters.
    """

    segments: list[str] = []
    current: list[str] = []
    in_quotes = False
    for index, char in enumerate(line):
        if char == '"':
            in_quotes = not in_quotes
            current.append(char)
        elif char == ";" and not in_quotes:
            segments.append("".join(current))
            current = []
        elif char == ":" and not in_quotes:
            segments.append("".join(current))
            value = line[index + 1 :]
            break
        else:
            current.append(char)
    else:
        raise ValueError(f"Content line has no value separator: {line!r}")

    name = segments[0].strip().upper()
    if not name:
        raise ValueError(f"Content line has no property name: {line!r}")
    params: dict[str, str] = {}
    for segment in segments[1:]:
        key, separator, raw = segment.partition("=")
        if not separator:
            continue
        params[key.strip().upper()] = _unquote(raw.strip())
    return ContentLine(name=name, params=params, value=unescape_text(value))


def unescape_text(value: str) -> str:
    """Summary: Decode iCalendar TEXT escapes.

    Importance: Summaries and locations often contain escaped commas and newlines.
    Alternatives: Show the escaped text as-is.
    """

    return _ESCAPE.sub(lambda match: "\n" if match.group(1) in "nN" else match.group(1), value)


def resolve_zone(tzid: str, zones: Mapping[str, tzinfo] | None = None) -> tzinfo | None:
    """Summary: Resolve a TZID parameter to a tzinfo.

    Importance: Converts zone-qualified local times into absolute instants.
    Alternatives: Parse the VTIMEZONE components embedded in the feed.
    """

    name = _unquote(tzid.strip())
    if zones and name in zones:
        return zones[name]
    if name.upper() in _UTC_ALIASES:
        return timezone.utc
    match = _OFFSET_ZONE.match(name.upper())
    if match:
        sign, hours, minutes = match.groups()
        offset = timedelta(hours=int(hours), minutes=int(minutes or 0))
        if offset >= timedelta(hours=24):
            return None
        return timezone(-offset if sign == "-" else offset)
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError, OSError):
        return None


def parse_ics_datetime(
    value: str,
    params: Mapping[str, str] | None = None,
    *,
    floating_tz: tzinfo = timezone.utc,
    zones: Mapping[str, tzinfo] | None = None,
) -> EventTime:
    """Summary: Parse a DTSTART/DTEND value into an aware EventTime.

    Importance: Places UTC, offset, zoned, floating, and all-day values on one timeline.
    Alternatives: Keep timestamps as strings and compare them lexically.
    """

    params = params or {}
    cleaned = value.strip()
    tzid = params.get("TZID")

    if params.get("VALUE", "").upper() == "DATE" or _DATE.match(cleaned):
        if not _DATE.match(cleaned):
            raise EventParseError(f"Unrecognised date value: {value!r}")
        parsed = _strptime(cleaned, "%Y%m%d")
        zone = _zone_for(tzid, zones, cleaned)
        return EventTime(
            value=parsed.replace(tzinfo=zone or floating_tz),
            kind=TimeKind.DATE,
            tzid=tzid if zone else None,
        )

    match = _DATE_TIME.match(cleaned)
    if not match:
        raise EventParseError(f"Unrecognised timestamp: {value!r}")
    local, suffix = match.groups()
    parsed = _strptime(local, "%Y%m%dT%H%M%S")
    if suffix == "Z":
        return EventTime(value=parsed.replace(tzinfo=timezone.utc), kind=TimeKind.UTC)
    if suffix:
        offset = timedelta(hours=int(suffix[1:3]), minutes=int(suffix[3:5]))
        if offset >= timedelta(hours=24):
            raise EventParseError(f"UTC offset out of range: {value!r}")
        fixed = timezone(-offset if suffix[0] == "-" else offset)
        return EventTime(value=parsed.replace(tzinfo=fixed), kind=TimeKind.OFFSET)
    zone = _zone_for(tzid, zones, cleaned)
    if zone is not None:
        return EventTime(value=parsed.replace(tzinfo=zone), kind=TimeKind.ZONED, tzid=tzid)
    return EventTime(value=parsed.replace(tzinfo=floating_tz), kind=TimeKind.FLOATING)


def parse_calendar(
    text: str,
    *,
    floating_tz: tzinfo = timezone.utc,
    zones: Mapping[str, tzinfo] | None = None,
) -> Calendar:
    """Summary: Parse an iCalendar document into a Calendar.

    Importance: Entry point of the parser; never fails because of document content.
    Alternatives: Raise on the first malformed event.
    """

    assembler = _CalendarAssembler(floating_tz=floating_tz, zones=zones)
    for number, raw_line in enumerate(unfold_lines(text), start=1):
        if not raw_line.strip():
            continue
        try:
            line = parse_content_line(raw_line)
        except ValueError:
            logger.debug("Skipping malformed logical line %s.", number)
            continue
        assembler.feed(line)
    calendar = assembler.finish()
    logger.info(
        "Parsed %s events with %s diagnostics.", len(calendar.events), len(calendar.diagnostics)
    )
    return calendar


class _CalendarAssembler:
    """Groups content lines into events with an outside/inside event automaton."""

    def __init__(self, floating_tz: tzinfo, zones: Mapping[str, tzinfo] | None) -> None:
        self._floating_tz = floating_tz
        self._zones = zones
        self._state = OUTSIDE_EVENT
        self._depth = 0
        self._properties: dict[str, ContentLine] = {}
        self._events: list[Event] = []
        self._diagnostics: list[ParseDiagnostic] = []

    def feed(self, line: ContentLine) -> None:
        component = line.value.strip().upper() if line.name in ("BEGIN", "END") else ""
        if self._state == OUTSIDE_EVENT:
            if line.name == "BEGIN" and component == EVENT_COMPONENT:
                self._open()
            elif line.name == "END" and component == EVENT_COMPONENT:
                logger.debug("Ignoring END:VEVENT without a matching BEGIN:VEVENT.")
            return

        if line.name == "BEGIN":
            if component == EVENT_COMPONENT:
                self._discard("BEGIN:VEVENT found before END:VEVENT")
                self._open()
            else:
                self._depth += 1
            return
        if line.name == "END":
            if component == EVENT_COMPONENT:
                self._close()
            elif self._depth:
                self._depth -= 1
            return
        # Properties of nested components such as VALARM belong to them, not the event.
        if self._depth == 0 and line.name in EVENT_PROPERTIES:
            self._properties[line.name] = line

    def finish(self) -> Calendar:
        if self._state == INSIDE_EVENT:
            self._discard("Event block is not terminated by END:VEVENT")
        return Calendar(events=tuple(self._events), diagnostics=tuple(self._diagnostics))

    def _open(self) -> None:
        self._state = INSIDE_EVENT
        self._depth = 0
        self._properties = {}

    def _close(self) -> None:
        index = len(self._events)
        uid = self._text("UID")
        event = Event(
            uid=uid,
            summary=self._text("SUMMARY"),
            location=self._text("LOCATION"),
            start=self._time(index, uid, "DTSTART", required=True),
            end=self._time(index, uid, "DTEND", required=False),
            url=self._text("URL"),
        )
        self._events.append(event)
        self._state = OUTSIDE_EVENT

    def _discard(self, message: str) -> None:
        self._report(None, self._text("UID"), None, message)
        self._state = OUTSIDE_EVENT

    def _text(self, name: str) -> str | None:
        line = self._properties.get(name)
        if line is None:
            return None
        return line.value.strip() or None

    def _time(self, index: int, uid: str | None, name: str, required: bool) -> EventTime | None:
        line = self._properties.get(name)
        if line is None:
            if required:
                self._report(index, uid, name, f"Missing {name}")
            return None
        try:
            return parse_ics_datetime(
                line.value, line.params, floating_tz=self._floating_tz, zones=self._zones
            )
        except EventParseError as exc:
            self._report(index, uid, name, str(exc))
            return None

    def _report(
        self, index: int | None, uid: str | None, name: str | None, message: str
    ) -> None:
        logger.warning("Calendar event %s (uid=%s): %s", index, uid, message)
        self._diagnostics.append(
            ParseDiagnostic(event_index=index, uid=uid, property_name=name, message=message)
        )


def _is_word_fold(logical: str, continuation: str, previous_octets: int) -> bool:
    name = _PROPERTY_NAME.match(logical)
    if name is None or name.group(1).upper() not in TEXT_PROPERTIES:
        return False
    # Width folds split at the octet limit, mid-word; a fold well short of it
    # was placed at a word break and stands for one space.
    if previous_octets >= WORD_FOLD_MAX_OCTETS:
        return False
    if not logical or not continuation:
        return False
    return not logical[-1].isspace() and not continuation[0].isspace()


def _zone_for(tzid: str | None, zones: Mapping[str, tzinfo] | None, value: str) -> tzinfo | None:
    if not tzid:
        return None
    zone = resolve_zone(tzid, zones)
    if zone is None:
        logger.warning("Unknown TZID %s; treating %s as floating time.", tzid, value)
    return zone


def _unquote(value: str) -> str:
    if len(value) >= 2 and value[0] == value[-1] == '"':
        return value[1:-1]
    return value


def _strptime(value: str, fmt: str) -> datetime:
    try:
        return datetime.strptime(value, fmt)
    except ValueError as exc:
        raise EventParseError(f"Invalid calendar date: {value!r}") from exc
