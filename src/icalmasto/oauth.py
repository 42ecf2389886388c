"""Summary: OAuth helpers for registering with and authorizing against a Mastodon instance.

Importance: Generates authorization URLs and performs token exchanges without extra dependencies.
Alternatives: Use a Mastodon client library such as Mastodon.py.
"""

from __future__ import annotations

import json
import logging
import urllib.error
import urllib.parse
import urllib.request
from dataclasses import dataclass
from typing import Any

from icalmasto.models import AppRegistration


logger = logging.getLogger(__name__)

OOB_REDIRECT_URI = "urn:ietf:wg:oauth:2.0:oob"


@dataclass(frozen=True)
class OAuthTokenResult:
    """Summary: Normalized OAuth token response data.

    Importance: Provides a consistent token representation for storage.
    Alternatives: Store the raw instance response without normalization.
    """

    access_token: str
    token_type: str | None
    scope: str | None
    raw: dict[str, Any]

    @staticmethod
    def from_response(payload: dict[str, Any]) -> "OAuthTokenResult":
        """Summary: Build an OAuthTokenResult from an instance payload.

        Importance: Fails clearly when the instance did not issue a token.
        Alternatives: Let a KeyError escape to the caller.
        """

        access_token = payload.get("access_token")
        if not access_token:
            raise RuntimeError("No access token in response")
        return OAuthTokenResult(
            access_token=access_token,
            token_type=payload.get("token_type"),
            scope=payload.get("scope"),
            raw=payload,
        )


def normalize_instance_url(instance: str) -> str:
    """Summary: Turn an instance name or URL into a base URL.

    Importance: Users type "mastodon.social" as often as a full URL.
    Alternatives: Require a full https URL in configuration.
    """

    cleaned = instance.strip().rstrip("/")
    if not cleaned:
        raise ValueError("Mastodon instance is not configured")
    if "://" not in cleaned:
        cleaned = f"https://{cleaned}"
    return cleaned


def register_app(
    instance: str,
    client_name: str,
    redirect_uri: str | None = None,
    scopes: str = "read write",
    website: str | None = None,
) -> AppRegistration:
    """Summary: Register this application with a Mastodon instance.

    Importance: Issues the client credentials used by the login flow.
    Alternatives: Create the application by hand in the instance settings.
    """

    base_url = normalize_instance_url(instance)
    redirect = redirect_uri or OOB_REDIRECT_URI
    response = _post_form(f"{base_url}/api/v1/apps", _app_payload(client_name, redirect, scopes, website))
    if not response.get("client_id") or not response.get("client_secret"):
        raise RuntimeError("App registration response is missing client credentials")
    logger.info("Registered %s with %s.", client_name, base_url)
    return AppRegistration(
        instance_url=base_url,
        client_id=response["client_id"],
        client_secret=response["client_secret"],
        redirect_uri=redirect,
        scopes=scopes,
    )


def build_authorize_url(registration: AppRegistration) -> str:
    """Summary: Build the instance's OAuth authorization URL.

    Importance: The user opens it to approve posting on their behalf.
    Alternatives: Open the browser automatically.
    """

    params = {
        "client_id": registration.client_id,
        "response_type": "code",
        "redirect_uri": registration.redirect_uri,
        "scope": registration.scopes,
    }
    return f"{registration.instance_url}/oauth/authorize?" + urllib.parse.urlencode(params)


def exchange_oauth_code(registration: AppRegistration, code: str) -> OAuthTokenResult:
    """Summary: Exchange an OAuth authorization code for an access token.

    Importance: Completes the login handshake.
    Alternatives: Use the password grant, which instances no longer allow.
    """

    if not code.strip():
        raise ValueError("Authorization code is empty")
    response = _post_form(
        f"{registration.instance_url}/oauth/token", _token_payload(registration, code.strip())
    )
    return OAuthTokenResult.from_response(response)


def _app_payload(
    client_name: str, redirect_uri: str, scopes: str, website: str | None
) -> dict[str, str]:
    payload = {"client_name": client_name, "redirect_uris": redirect_uri, "scopes": scopes}
    if website:
        payload["website"] = website
    return payload


def _token_payload(registration: AppRegistration, code: str) -> dict[str, str]:
    """Summary: Build token request parameters for OAuth code exchange.

    Importance: Ensures the payload repeats the redirect URI and scopes used at authorize time.
    Alternatives: Assemble payloads inline inside the exchange function.
    """

    if not registration.client_id or not registration.client_secret:
        raise ValueError(f"Missing OAuth client credentials for {registration.instance_url}")
    return {
        "client_id": registration.client_id,
        "client_secret": registration.client_secret,
        "grant_type": "authorization_code",
        "code": code,
        "redirect_uri": registration.redirect_uri,
        "scope": registration.scopes,
    }


def _post_form(url: str, payload: dict[str, str]) -> dict[str, Any]:
    """Summary: Send a form-encoded POST request and parse JSON.

    Importance: Avoids new dependencies while supporting OAuth exchanges.
    Alternatives: Use requests or a Mastodon SDK.
    """

    data = urllib.parse.urlencode(payload).encode("utf-8")
    request = urllib.request.Request(
        url,
        data=data,
        headers={"Content-Type": "application/x-www-form-urlencoded"},
        method="POST",
    )
    try:
        with urllib.request.urlopen(request, timeout=10) as response:
            raw = response.read().decode("utf-8")
    except urllib.error.HTTPError as exc:
        error_body = exc.read().decode("utf-8")
        raise RuntimeError(f"OAuth request failed: {error_body or exc.reason}") from exc
    except urllib.error.URLError as exc:
        raise RuntimeError(f"OAuth request failed: {exc.reason}") from exc
    return json.loads(raw)
