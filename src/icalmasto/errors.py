"""Summary: Exception types for calendar fetching and parsing.

Importance: Lets callers tell transport, status, and content failures apart without
inspecting urllib internals.
Alternatives: Raise bare RuntimeError with descriptive messages only.
"""

from __future__ import annotations


class FetchError(RuntimeError):
    """Summary: Base class for calendar retrieval failures.

    Importance: A single type callers can catch when there is no calendar to select from.
    Alternatives: Return None from the fetcher and log the cause.
    """

    def __init__(self, url: str, message: str) -> None:
        super().__init__(f"{message} ({url})")
        self.url = url


class FetchTransportError(FetchError):
    """Connection, DNS, or timeout failure before a response arrived."""


class FetchStatusError(FetchError):
    """Summary: The server answered with a non-success status.

    Importance: Keeps the status code available for logging and API mapping.
    Alternatives: Encode the status only in the message text.
    """

    def __init__(self, url: str, status: int, reason: str | None = None) -> None:
        detail = f"HTTP {status}" + (f" {reason}" if reason else "")
        super().__init__(url, f"Calendar request failed: {detail}")
        self.status = status


class FetchEmptyBodyError(FetchError):
    """The response carried no calendar content."""

    def __init__(self, url: str) -> None:
        super().__init__(url, "Calendar response body is empty")


class FetchDecodeError(FetchError):
    """The response body could not be decoded as text."""

    def __init__(self, url: str, charset: str) -> None:
        super().__init__(url, f"Calendar response is not valid {charset} text")
        self.charset = charset


class EventParseError(ValueError):
    """Summary: A calendar timestamp could not be interpreted.

    Importance: Raised by timestamp parsing and absorbed per event by the parser.
    Alternatives: Return None from the timestamp parser.
    """
