"""Summary: Application configuration for ical-to-masto.

Importance: Centralizes environment, .env, and config defaults for consistent behavior.
Alternatives: Use a dedicated settings library like Pydantic Settings.
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from datetime import timezone, tzinfo
from pathlib import Path

from icalmasto.ics import resolve_zone


@dataclass(frozen=True)
class AppConfig:
    """Summary: Holds configuration values for the calendar feed, instance, and storage.

    Importance: Ensures all services derive settings from a single source of truth.
    Alternatives: Store settings in a TOML file and parse at startup.
    """

    db_path: str
    instance_url: str
    calendar_url: str
    client_name: str
    redirect_uri: str
    scopes: str
    website: str
    publisher: str
    post_visibility: str
    post_limit: int
    status_max_length: int
    floating_timezone: str
    fetch_timeout: float
    api_host: str
    api_port: int
    api_key: str
    token_secret: str

    @staticmethod
    def from_env() -> "AppConfig":
        """Summary: Build configuration from defaults, .env, and environment.

        Importance: Keeps all variables defined in config defaults while allowing overrides.
        Alternatives: Parse only environment variables without a defaults file.
        """

        defaults = load_defaults(Path("config") / "defaults.json")
        load_dotenv(Path(".env"))
        return AppConfig(
            db_path=os.getenv("ICALMASTO_DB_PATH", defaults["db_path"]),
            instance_url=os.getenv("ICALMASTO_INSTANCE_URL", defaults["instance_url"]),
            calendar_url=os.getenv("ICALMASTO_CALENDAR_URL", defaults["calendar_url"]),
            client_name=os.getenv("ICALMASTO_CLIENT_NAME", defaults["client_name"]),
            redirect_uri=os.getenv("ICALMASTO_REDIRECT_URI", defaults["redirect_uri"]),
            scopes=os.getenv("ICALMASTO_SCOPES", defaults["scopes"]),
            website=os.getenv("ICALMASTO_WEBSITE", defaults["website"]),
            publisher=os.getenv("ICALMASTO_PUBLISHER", defaults["publisher"]),
            post_visibility=os.getenv("ICALMASTO_POST_VISIBILITY", defaults["post_visibility"]),
            post_limit=int(os.getenv("ICALMASTO_POST_LIMIT", defaults["post_limit"])),
            status_max_length=int(
                os.getenv("ICALMASTO_STATUS_MAX_LENGTH", defaults["status_max_length"])
            ),
            floating_timezone=os.getenv(
                "ICALMASTO_FLOATING_TIMEZONE", defaults["floating_timezone"]
            ),
            fetch_timeout=float(os.getenv("ICALMASTO_FETCH_TIMEOUT", defaults["fetch_timeout"])),
            api_host=os.getenv("ICALMASTO_API_HOST", defaults["api_host"]),
            api_port=int(os.getenv("ICALMASTO_API_PORT", defaults["api_port"])),
            api_key=os.getenv("ICALMASTO_API_KEY", defaults["api_key"]),
            token_secret=os.getenv("ICALMASTO_TOKEN_SECRET", defaults["token_secret"]),
        )

    def floating_tz(self) -> tzinfo:
        """Summary: Resolve the zone that floating calendar times are anchored to.

        Importance: Floating and all-day times need a zone to compare with UTC instants.
        Alternatives: Always treat floating times as UTC.
        """

        if not self.floating_timezone:
            return timezone.utc
        zone = resolve_zone(self.floating_timezone)
        if zone is None:
            raise ValueError(f"Unknown floating timezone: {self.floating_timezone}")
        return zone


def load_defaults(path: Path) -> dict[str, str]:
    """Summary: Load configuration defaults from JSON.

    Importance: Ensures all variables exist in a single config file.
    Alternatives: Inline defaults in the AppConfig initializer.
    """

    if not path.exists():
        raise FileNotFoundError(f"Defaults file not found: {path}")
    return json.loads(path.read_text(encoding="utf-8"))


def load_dotenv(path: Path) -> None:
    """Summary: Load key-value pairs from a .env file into the environment.

    Importance: Keeps secrets out of code while supporting local workflows.
    Alternatives: Use python-dotenv or OS-specific secret stores.
    """

    if not path.exists():
        return
    for raw_line in path.read_text(encoding="utf-8").splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, value = line.split("=", 1)
        os.environ.setdefault(key.strip(), value.strip().strip('"'))
