"""Summary: Command-line interface for ical-to-masto.

Importance: Provides the entry point for login, manual posts, and scheduled calendar posts.
Alternatives: Use a CLI framework like Typer or Click.
"""

from __future__ import annotations

import argparse
import logging
import sys

from icalmasto.app import build_services
from icalmasto.config import AppConfig
from icalmasto.errors import FetchError
from icalmasto.formatting import display
from icalmasto.models import StatusDraft


logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    """Summary: Build the CLI argument parser.

    Importance: Defines supported commands for local and scheduled operation.
    Alternatives: Split each command into its own script.
    """

    parser = argparse.ArgumentParser(
        prog="ical-to-masto", description="Post upcoming iCal events to Mastodon"
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    register = subparsers.add_parser(
        "register-app", help="Register an application with a Mastodon instance"
    )
    register.add_argument("-i", "--instance", type=str, default=None)
    register.add_argument("-c", "--client-name", type=str, default=None)
    register.add_argument("-r", "--redirect-uri", type=str, default=None)
    register.add_argument("-s", "--scopes", type=str, default=None)
    register.add_argument("-w", "--website", type=str, default=None)

    login_url = subparsers.add_parser("login-url", help="Print the authorization URL")
    login_url.add_argument("-i", "--instance", type=str, default=None)

    login = subparsers.add_parser("login", help="Authenticate with a Mastodon instance")
    login.add_argument("-i", "--instance", type=str, default=None)
    login.add_argument("--code", type=str, default=None)

    post = subparsers.add_parser("post", help="Post a status to Mastodon")
    post.add_argument("-s", "--status", type=str, required=True)
    post.add_argument("-i", "--instance", type=str, default=None)
    post.add_argument("--visibility", type=str, default=None)
    post.add_argument("--sensitive", action="store_true")
    post.add_argument("--spoiler-text", type=str, default=None)
    post.add_argument("--language", type=str, default=None)
    post.add_argument("--in-reply-to-id", type=str, default=None)

    upcoming = subparsers.add_parser("upcoming", help="List upcoming calendar events")
    upcoming.add_argument("--limit", type=int, default=None)
    upcoming.add_argument("--reference", type=str, default=None, help="YYYYMMDDTHHMMSSZ")

    post_upcoming = subparsers.add_parser(
        "post-upcoming", help="Post a summary of upcoming calendar events"
    )
    post_upcoming.add_argument("--limit", type=int, default=None)
    post_upcoming.add_argument("-i", "--instance", type=str, default=None)
    post_upcoming.add_argument("--reference", type=str, default=None, help="YYYYMMDDTHHMMSSZ")
    post_upcoming.add_argument("--dry-run", action="store_true", help="Print instead of posting")

    return parser


def run_cli(argv: list[str] | None = None) -> None:
    """Summary: Execute CLI commands based on arguments.

    Importance: Drives every workflow without a UI.
    Alternatives: Invoke services via the HTTP API.
    """

    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
    parser = build_parser()
    args = parser.parse_args(argv)
    config = AppConfig.from_env()
    services = build_services(config)

    if args.command == "register-app":
        registration = services.auth.register_app(
            instance=args.instance,
            client_name=args.client_name,
            redirect_uri=args.redirect_uri,
            scopes=args.scopes,
            website=args.website,
        )
        print(f"Application registered with {registration.instance_url}.")
        print("Run 'login' next to authorize this application.")
        return

    if args.command == "login-url":
        print(services.auth.authorization_url(args.instance))
        return

    if args.command == "login":
        code = args.code
        if not code:
            print("Please open this URL in your browser to authorize the application:")
            print(services.auth.authorization_url(args.instance))
            code = input("\nAfter authorizing, paste the authorization code here: ")
        services.auth.complete_login(code, args.instance)
        print("Login successful!")
        return

    if args.command == "post":
        draft = StatusDraft(
            status=args.status,
            visibility=args.visibility,
            sensitive=True if args.sensitive else None,
            spoiler_text=args.spoiler_text,
            language=args.language,
            in_reply_to_id=args.in_reply_to_id,
        )
        posted = services.posting.post_status(draft, args.instance)
        print("Status posted successfully!")
        print(f"ID: {posted.status_id}")
        if posted.url:
            print(f"URL: {posted.url}")
        return

    if args.command == "upcoming":
        events = services.calendar.upcoming(args.reference, args.limit)
        if not events:
            print("No upcoming events.")
            return
        for event in events:
            print(f"{display(event)}: {event.summary or 'Untitled event'}")
        return

    if args.command == "post-upcoming":
        if args.dry_run:
            print(services.posting.compose_upcoming(args.reference, args.limit))
            return
        posted = services.posting.post_upcoming(args.reference, args.limit, args.instance)
        print(f"Posted status {posted.status_id}.")
        if posted.url:
            print(f"URL: {posted.url}")
        return


def main(argv: list[str] | None = None) -> None:
    """Summary: Console-script entry point.

    Importance: Turns expected failures into an error line and exit status 1.
    Alternatives: Let tracebacks reach the terminal.
    """

    try:
        run_cli(argv)
    except (FetchError, RuntimeError, ValueError, FileNotFoundError) as exc:
        logger.error("%s", exc)
        sys.exit(1)


if __name__ == "__main__":
    main()
