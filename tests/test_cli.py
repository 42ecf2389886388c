"""Summary: Tests for the command-line interface.

Importance: The CLI is how schedulers run the tool.
Alternatives: Exercise only the services behind it.
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any

import pytest

from icalmasto.cli import build_parser, main, run_cli
from icalmasto.models import AppRegistration
from icalmasto.oauth import OAuthTokenResult


CALENDAR = "\r\n".join(
    [
        "BEGIN:VCALENDAR",
        "BEGIN:VEVENT",
        "UID:standup",
        "DTSTART:20260116T090000Z",
        "SUMMARY:Standup",
        "END:VEVENT",
        "BEGIN:VEVENT",
        "UID:retro",
        "DTSTART:20260116T150000Z",
        "SUMMARY:Retro",
        "END:VEVENT",
        "END:VCALENDAR",
        "",
    ]
)


@pytest.fixture()
def workspace(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Summary: A working directory with defaults, a calendar, and the mock publisher.

    Importance: run_cli reads configuration relative to the current directory.
    Alternatives: Patch AppConfig.from_env.
    """

    for key in list(os.environ):
        if key.startswith("ICALMASTO_"):
            monkeypatch.delenv(key)
    (tmp_path / "config").mkdir()
    (tmp_path / "club.ics").write_text(CALENDAR, encoding="utf-8")
    defaults = json.loads(
        (Path(__file__).resolve().parents[1] / "config" / "defaults.json").read_text(encoding="utf-8")
    )
    defaults.update(db_path=str(tmp_path / "cli.db"), calendar_url="club.ics", publisher="mock")
    (tmp_path / "config" / "defaults.json").write_text(json.dumps(defaults), encoding="utf-8")
    monkeypatch.chdir(tmp_path)
    return tmp_path


def test_parser_commands() -> None:
    parser = build_parser()
    args = parser.parse_args(["post-upcoming", "--limit", "2", "--dry-run"])
    assert args.command == "post-upcoming"
    assert args.limit == 2
    assert args.dry_run
    post = parser.parse_args(["post", "-s", "Hello", "--sensitive", "--spoiler-text", "cw"])
    assert post.status == "Hello"
    assert post.sensitive
    assert post.spoiler_text == "cw"
    with pytest.raises(SystemExit):
        parser.parse_args(["post"])


def test_upcoming_lists_events(workspace: Path, capsys: pytest.CaptureFixture[str]) -> None:
    run_cli(["upcoming", "--reference", "20260116T120000Z"])
    assert capsys.readouterr().out.splitlines() == ["Fri 16 Jan 2026, 15:00 UTC: Retro"]


def test_upcoming_without_events(workspace: Path, capsys: pytest.CaptureFixture[str]) -> None:
    run_cli(["upcoming", "--reference", "20270101T000000Z"])
    assert capsys.readouterr().out.strip() == "No upcoming events."


def test_post_upcoming_dry_run(workspace: Path, capsys: pytest.CaptureFixture[str]) -> None:
    """Summary: A dry run prints the status instead of posting it.

    Importance: Lets users check the text before it reaches followers.
    Alternatives: Always post and delete afterwards.
    """

    run_cli(["post-upcoming", "--reference", "20260101T000000Z", "--limit", "1", "--dry-run"])
    output = capsys.readouterr().out
    assert output.startswith("Upcoming events:\n\nStandup\nWhen: Fri 16 Jan 2026, 09:00 UTC")
    assert "Retro" not in output


def test_post_records_status(workspace: Path, capsys: pytest.CaptureFixture[str]) -> None:
    run_cli(["post", "-s", "Hello followers"])
    assert "ID: mock-1" in capsys.readouterr().out
    run_cli(["post-upcoming", "--reference", "20260101T000000Z"])
    assert "Posted status mock-1." in capsys.readouterr().out


def test_login_url_requires_registration(workspace: Path) -> None:
    with pytest.raises(SystemExit) as excinfo:
        main(["login-url"])
    assert excinfo.value.code == 1


def test_main_exits_on_missing_calendar(workspace: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("ICALMASTO_CALENDAR_URL", str(workspace / "missing.ics"))
    with pytest.raises(SystemExit) as excinfo:
        main(["upcoming"])
    assert excinfo.value.code == 1


def test_login_with_instance_then_post_there(
    workspace: Path, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    """Summary: Logging in with -i lets post -i publish to that instance.

    Importance: The stored token is looked up for the instance being posted to.
    Alternatives: Edit the configured instance before every post.
    """

    registration = AppRegistration(
        instance_url="https://other.example",
        client_id="client-1",
        client_secret="secret-1",
        redirect_uri="urn:ietf:wg:oauth:2.0:oob",
        scopes="read write",
    )
    monkeypatch.setattr("icalmasto.services.register_app", lambda *args, **kwargs: registration)
    monkeypatch.setattr(
        "icalmasto.services.exchange_oauth_code",
        lambda registration, code: OAuthTokenResult.from_response({"access_token": "other-token"}),
    )
    requests: list[Any] = []

    class _Posted:
        def read(self) -> bytes:
            return json.dumps({"id": "7", "url": "https://other.example/@bot/7"}).encode("utf-8")

        def __enter__(self) -> "_Posted":
            return self

        def __exit__(self, *_args: object) -> None:
            return None

    def _fake_urlopen(request, timeout=None):  # type: ignore[no-untyped-def]
        requests.append(request)
        return _Posted()

    monkeypatch.setattr("urllib.request.urlopen", _fake_urlopen)
    monkeypatch.setenv("ICALMASTO_PUBLISHER", "mastodon")

    run_cli(["register-app", "-i", "other.example"])
    run_cli(["login", "-i", "other.example", "--code", "code-1"])
    run_cli(["post", "-s", "Hello other instance", "-i", "other.example"])

    assert "ID: 7" in capsys.readouterr().out
    assert requests[0].full_url == "https://other.example/api/v1/statuses"
    assert requests[0].get_header("Authorization") == "Bearer other-token"
