"""Summary: Status publishers for Mastodon and offline runs.

Importance: Keeps the single outbound write behind a small interface.
Alternatives: Call the statuses endpoint directly from the CLI.
"""

from __future__ import annotations

import json
import logging
import secrets
import urllib.error
import urllib.request
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable

from icalmasto.config import AppConfig
from icalmasto.models import PostedStatus, StatusDraft
from icalmasto.oauth import normalize_instance_url


logger = logging.getLogger(__name__)

VISIBILITIES = frozenset({"public", "unlisted", "private", "direct"})


class StatusPublisher(ABC):
    """Summary: Abstract interface for publishing a status.

    Importance: Allows swapping the live instance for a mock in tests and dry runs.
    Alternatives: Hardcode a single Mastodon client.
    """

    @abstractmethod
    def publish(self, draft: StatusDraft) -> PostedStatus:
        """Summary: Publish a status draft.

        Importance: The only side effect visible to followers.
        Alternatives: Queue drafts for manual approval.
        """


class MockStatusPublisher(StatusPublisher):
    """Summary: Publisher that records drafts without network calls.

    Importance: Supports dry runs and deterministic tests.
    Alternatives: Point the real publisher at a local test instance.
    """

    def __init__(self) -> None:
        self.published: list[StatusDraft] = []

    def publish(self, draft: StatusDraft) -> PostedStatus:
        validate_draft(draft)
        self.published.append(draft)
        return PostedStatus(
            status_id=f"mock-{len(self.published)}",
            url=None,
            content=draft.status,
            posted_at=datetime.utcnow(),
        )


class MastodonStatusPublisher(StatusPublisher):
    """Summary: Publisher that posts to the Mastodon statuses API.

    Importance: Delivers the composed summary to the configured account.
    Alternatives: Use Mastodon.py's status_post.
    """

    def __init__(self, instance_url: str, access_token: str, timeout: float = 30.0) -> None:
        self._base_url = normalize_instance_url(instance_url)
        self._access_token = access_token
        self._timeout = timeout

    def publish(self, draft: StatusDraft) -> PostedStatus:
        """Summary: POST the draft to /api/v1/statuses.

        Importance: An Idempotency-Key keeps a retried request from posting twice.
        Alternatives: Retry without idempotency protection.
        """

        validate_draft(draft)
        request = urllib.request.Request(
            url=f"{self._base_url}/api/v1/statuses",
            data=json.dumps(status_payload(draft)).encode("utf-8"),
            headers={
                "Content-Type": "application/json",
                "Authorization": f"Bearer {self._access_token}",
                "Idempotency-Key": secrets.token_hex(16),
            },
            method="POST",
        )
        try:
            with urllib.request.urlopen(request, timeout=self._timeout) as response:
                raw = json.loads(response.read().decode("utf-8"))
        except urllib.error.HTTPError as exc:
            error_body = exc.read().decode("utf-8")
            raise RuntimeError(f"Status post failed: {error_body or exc.reason}") from exc
        except urllib.error.URLError as exc:
            raise RuntimeError(f"Status post failed: {exc.reason}") from exc
        logger.info("Posted status %s to %s.", raw.get("id"), self._base_url)
        return PostedStatus(
            status_id=str(raw["id"]),
            url=raw.get("url"),
            content=draft.status,
            posted_at=datetime.utcnow(),
        )


@dataclass(frozen=True)
class PublisherFactory:
    """Summary: Factory for selecting a publisher from configuration.

    Importance: Keeps publisher selection logic centralized.
    Alternatives: Wire publishers manually at the application entrypoint.
    """

    config: AppConfig
    access_token: Callable[[str | None], str]

    def build(self, instance: str | None = None) -> StatusPublisher:
        """Summary: Build the configured publisher for an instance.

        Importance: Posts go to the instance the stored login belongs to.
        Alternatives: Always post to the configured default instance.
        """

        if self.config.publisher == "mock":
            return MockStatusPublisher()
        if self.config.publisher == "mastodon":
            return MastodonStatusPublisher(
                instance or self.config.instance_url, self.access_token(instance)
            )
        raise ValueError(f"Unknown publisher: {self.config.publisher}")


def validate_draft(draft: StatusDraft) -> None:
    if not draft.status.strip():
        raise ValueError("Status text is empty")
    if draft.visibility and draft.visibility not in VISIBILITIES:
        raise ValueError(f"Unknown visibility: {draft.visibility}")


def status_payload(draft: StatusDraft) -> dict[str, Any]:
    """Summary: Build the JSON body for the statuses endpoint.

    Importance: Omits unset optional fields so instance defaults apply.
    Alternatives: Send nulls and rely on the instance to ignore them.
    """

    payload: dict[str, Any] = {"status": draft.status}
    optional = {
        "visibility": draft.visibility,
        "sensitive": draft.sensitive,
        "spoiler_text": draft.spoiler_text,
        "language": draft.language,
        "in_reply_to_id": draft.in_reply_to_id,
    }
    payload.update({key: value for key, value in optional.items() if value is not None})
    return payload
