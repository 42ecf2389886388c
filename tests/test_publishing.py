"""Summary: Tests for status publishers and the posting service.

Importance: Ensures the only outbound write sends the right request and is recorded.
Alternatives: Post to a real instance during tests.
"""

from __future__ import annotations

import io
import json
import urllib.error
from dataclasses import replace
from email.message import Message
from pathlib import Path
from typing import Any

import pytest

from icalmasto.app import build_services
from icalmasto.config import AppConfig
from icalmasto.models import StatusDraft
from icalmasto.publishing import (
    MastodonStatusPublisher,
    MockStatusPublisher,
    PublisherFactory,
    status_payload,
)


CALENDAR = "\r\n".join(
    [
        "BEGIN:VCALENDAR",
        "BEGIN:VEVENT",
        "UID:past",
        "DTSTART:20260110T100000Z",
        "SUMMARY:Already happened",
        "END:VEVENT",
        "BEGIN:VEVENT",
        "UID:next",
        "DTSTART:20260120T180000Z",
        "SUMMARY:Book club",
        "LOCATION:Library",
        "END:VEVENT",
        "BEGIN:VEVENT",
        "UID:later",
        "DTSTART:20260201T180000Z",
        "SUMMARY:Film night",
        "END:VEVENT",
        "END:VCALENDAR",
        "",
    ]
)


def _build_config(tmp_path: Path, **overrides: Any) -> AppConfig:
    calendar_path = tmp_path / "club.ics"
    calendar_path.write_text(CALENDAR, encoding="utf-8")
    config = AppConfig(
        db_path=str(tmp_path / "test.db"),
        instance_url="mastodon.example",
        calendar_url=str(calendar_path),
        client_name="ical-to-masto",
        redirect_uri="urn:ietf:wg:oauth:2.0:oob",
        scopes="read write",
        website="",
        publisher="mock",
        post_visibility="unlisted",
        post_limit=5,
        status_max_length=500,
        floating_timezone="UTC",
        fetch_timeout=10.0,
        api_host="127.0.0.1",
        api_port=8000,
        api_key="",
        token_secret="secret",
    )
    return replace(config, **overrides)


class _JsonResponse:
    def __init__(self, payload: dict[str, Any]) -> None:
        self._payload = payload

    def read(self) -> bytes:
        return json.dumps(self._payload).encode("utf-8")

    def __enter__(self) -> "_JsonResponse":
        return self

    def __exit__(self, *_args: object) -> None:
        return None


def test_status_payload_omits_unset_fields() -> None:
    assert status_payload(StatusDraft(status="Hello")) == {"status": "Hello"}
    payload = status_payload(StatusDraft(status="Hello", visibility="unlisted", sensitive=False))
    assert payload == {"status": "Hello", "visibility": "unlisted", "sensitive": False}


def test_mock_publisher_records_drafts() -> None:
    publisher = MockStatusPublisher()
    first = publisher.publish(StatusDraft(status="One"))
    second = publisher.publish(StatusDraft(status="Two"))
    assert [first.status_id, second.status_id] == ["mock-1", "mock-2"]
    assert [draft.status for draft in publisher.published] == ["One", "Two"]


@pytest.mark.parametrize("draft", [StatusDraft(status="  "), StatusDraft(status="Hi", visibility="loud")])
def test_invalid_drafts_are_rejected(draft: StatusDraft) -> None:
    with pytest.raises(ValueError):
        MockStatusPublisher().publish(draft)


def test_mastodon_publisher_posts_json(monkeypatch: pytest.MonkeyPatch) -> None:
    """Summary: The statuses request carries the bearer token and JSON body.

    Importance: This is the request that actually reaches followers.
    Alternatives: Only test the payload builder.
    """

    requests: list[Any] = []

    def _fake_urlopen(request, timeout=None):  # type: ignore[no-untyped-def]
        requests.append(request)
        return _JsonResponse({"id": 109876, "url": "https://mastodon.example/@bot/109876"})

    monkeypatch.setattr("urllib.request.urlopen", _fake_urlopen)
    publisher = MastodonStatusPublisher("mastodon.example/", "token-1")
    posted = publisher.publish(StatusDraft(status="Hello", visibility="public"))

    assert posted.status_id == "109876"
    assert posted.url == "https://mastodon.example/@bot/109876"
    request = requests[0]
    assert request.full_url == "https://mastodon.example/api/v1/statuses"
    assert request.get_header("Authorization") == "Bearer token-1"
    assert request.get_header("Idempotency-key")
    assert json.loads(request.data.decode("utf-8")) == {"status": "Hello", "visibility": "public"}


def test_mastodon_publisher_reports_http_errors(monkeypatch: pytest.MonkeyPatch) -> None:
    def _fail(request, timeout=None):  # type: ignore[no-untyped-def]
        raise urllib.error.HTTPError(
            request.full_url, 422, "Unprocessable", Message(), io.BytesIO(b'{"error":"Text too long"}')
        )

    monkeypatch.setattr("urllib.request.urlopen", _fail)
    with pytest.raises(RuntimeError, match="Text too long"):
        MastodonStatusPublisher("https://mastodon.example", "token-1").publish(StatusDraft(status="Hi"))


def test_publisher_factory(tmp_path: Path) -> None:
    assert isinstance(
        PublisherFactory(_build_config(tmp_path), access_token=lambda instance: "unused").build(),
        MockStatusPublisher,
    )
    live = PublisherFactory(
        _build_config(tmp_path, publisher="mastodon"), access_token=lambda instance: "token-1"
    ).build()
    assert isinstance(live, MastodonStatusPublisher)
    with pytest.raises(ValueError):
        PublisherFactory(_build_config(tmp_path, publisher="carrier-pigeon"), access_token=lambda instance: "").build()


def test_mastodon_publisher_requires_login(tmp_path: Path) -> None:
    services = build_services(_build_config(tmp_path, publisher="mastodon"))
    with pytest.raises(ValueError, match="login"):
        services.posting.post_status(StatusDraft(status="Hello"))


def test_post_upcoming_composes_and_records(tmp_path: Path) -> None:
    """Summary: Post the upcoming summary and keep it in the history.

    Importance: The main scheduled workflow of the tool.
    Alternatives: Check composition and publishing separately.
    """

    services = build_services(_build_config(tmp_path))
    posted = services.posting.post_upcoming("20260115T000000Z", limit=1)
    assert posted.status_id == "mock-1"
    assert posted.content.startswith("Upcoming events:\n\nBook club\n")
    assert "Where: Library" in posted.content
    assert "Film night" not in posted.content

    history = services.posting.list_statuses(10)
    assert [status.content for status in history] == [posted.content]
    assert history[0].instance_url == "https://mastodon.example"


def test_compose_upcoming_uses_configured_limit(tmp_path: Path) -> None:
    services = build_services(_build_config(tmp_path, post_limit=1))
    status = services.posting.compose_upcoming("20260115T000000Z")
    assert "Book club" in status
    assert "Film night" not in status
    unlimited = build_services(_build_config(tmp_path, post_limit=0))
    assert "Film night" in unlimited.posting.compose_upcoming("20260115T000000Z")


def test_compose_upcoming_without_events(tmp_path: Path) -> None:
    services = build_services(_build_config(tmp_path))
    assert services.posting.compose_upcoming("20300101T000000Z") == "No upcoming events."


def test_calendar_service_requires_calendar_url(tmp_path: Path) -> None:
    services = build_services(_build_config(tmp_path, calendar_url=""))
    with pytest.raises(ValueError, match="Calendar URL"):
        services.calendar.upcoming("20260115T000000Z")


def test_post_uses_the_instance_that_was_logged_in(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    """Summary: A login to a non-default instance is used when posting there.

    Importance: Credentials are stored per instance.
    Alternatives: Allow only the configured default instance.
    """

    services = build_services(_build_config(tmp_path, publisher="mastodon"))
    services.store.save_access_token(
        "https://other.example", services.auth.codec.encode("other-token"), "Bearer", "write"
    )
    requests: list[Any] = []

    def _fake_urlopen(request, timeout=None):  # type: ignore[no-untyped-def]
        requests.append(request)
        return _JsonResponse({"id": "42", "url": "https://other.example/@bot/42"})

    monkeypatch.setattr("urllib.request.urlopen", _fake_urlopen)
    posted = services.posting.post_upcoming("20260115T000000Z", limit=1, instance="other.example")

    assert posted.status_id == "42"
    assert requests[0].full_url == "https://other.example/api/v1/statuses"
    assert requests[0].get_header("Authorization") == "Bearer other-token"
    assert services.posting.list_statuses(1)[0].instance_url == "https://other.example"
    with pytest.raises(ValueError, match="login"):
        services.posting.post_status(StatusDraft(status="Hello"))
