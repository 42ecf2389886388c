"""Summary: FastAPI application for ical-to-masto.

Importance: Exposes upcoming events and posting workflows over HTTP for schedulers and dashboards.
Alternatives: Use a CLI-only workflow or a different web framework.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, TypeVar

from fastapi import Depends, FastAPI, Header, HTTPException
from pydantic import BaseModel, Field

from icalmasto.app import build_services
from icalmasto.config import AppConfig
from icalmasto.errors import EventParseError, FetchError, FetchStatusError
from icalmasto.formatting import display
from icalmasto.models import Event, EventTime, StatusDraft


logger = logging.getLogger(__name__)

T = TypeVar("T")


class StatusRequest(BaseModel):
    """Summary: Request payload for posting a free-form status.

    Importance: Mirrors the options of the CLI post command.
    Alternatives: Accept only the status text.
    """

    status: str = Field(min_length=1)
    visibility: str | None = None
    sensitive: bool | None = None
    spoiler_text: str | None = None
    language: str | None = None
    in_reply_to_id: str | None = None
    instance: str | None = None


class UpcomingPostRequest(BaseModel):
    """Summary: Request payload for posting the upcoming-events summary.

    Importance: Lets schedulers pin the reference time and event count.
    Alternatives: Always post with server time and the configured limit.
    """

    limit: int | None = Field(default=None, ge=0, le=50)
    reference: str | None = None
    instance: str | None = None


class EventTimeResponse(BaseModel):
    value: str
    kind: str
    tzid: str | None = None


class EventResponse(BaseModel):
    """Summary: Serialized calendar event.

    Importance: Gives clients both the machine-readable start and its display form.
    Alternatives: Return only the display string.
    """

    uid: str | None
    summary: str | None
    location: str | None
    url: str | None
    start: EventTimeResponse | None
    end: EventTimeResponse | None
    display: str | None


def create_app(config: AppConfig) -> FastAPI:
    """Summary: Create a FastAPI app wired to ical-to-masto services.

    Importance: Ensures the API layer shares the same configuration and storage.
    Alternatives: Instantiate services globally outside the factory.
    """

    if not logging.getLogger().handlers:
        logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
    app = FastAPI(title="ical-to-masto API", version="0.1.0")
    services = build_services(config)

    def require_api_key(x_api_key: str | None = Header(default=None)) -> None:
        """Summary: Enforce API key authentication when configured.

        Importance: Prevents anonymous callers from posting to the account.
        Alternatives: Use OAuth or session-based authentication.
        """

        if not config.api_key:
            return
        if x_api_key != config.api_key:
            raise HTTPException(status_code=401, detail="Invalid API key")

    @app.get("/health")
    def health() -> dict[str, str]:
        return {"status": "ok"}

    @app.get("/events/upcoming", response_model=list[EventResponse])
    def list_upcoming(limit: int | None = None, reference: str | None = None) -> list[EventResponse]:
        """Summary: List upcoming events from the configured calendar.

        Importance: Lets clients preview what will be announced.
        Alternatives: Expose the whole parsed calendar.
        """

        events = _run(lambda: services.calendar.upcoming(reference, limit))
        return [_event_response(event) for event in events]

    @app.get("/statuses/preview")
    def preview_status(limit: int | None = None, reference: str | None = None) -> dict[str, str]:
        status = _run(lambda: services.posting.compose_upcoming(reference, limit))
        return {"status": status}

    @app.post("/statuses", dependencies=[Depends(require_api_key)])
    def post_status(payload: StatusRequest) -> dict[str, Any]:
        draft = StatusDraft(
            status=payload.status,
            visibility=payload.visibility,
            sensitive=payload.sensitive,
            spoiler_text=payload.spoiler_text,
            language=payload.language,
            in_reply_to_id=payload.in_reply_to_id,
        )
        posted = _run(lambda: services.posting.post_status(draft, payload.instance))
        return {"id": posted.status_id, "url": posted.url, "content": posted.content}

    @app.post("/statuses/upcoming", dependencies=[Depends(require_api_key)])
    def post_upcoming(payload: UpcomingPostRequest) -> dict[str, Any]:
        """Summary: Compose and publish the upcoming-events summary.

        Importance: Hook for cron-like schedulers that prefer HTTP over the CLI.
        Alternatives: Run the CLI from the scheduler.
        """

        posted = _run(
            lambda: services.posting.post_upcoming(payload.reference, payload.limit, payload.instance)
        )
        return {"id": posted.status_id, "url": posted.url, "content": posted.content}

    @app.get("/statuses", dependencies=[Depends(require_api_key)])
    def list_statuses(limit: int = 20) -> list[dict[str, Any]]:
        return [
            {
                "id": status.id,
                "instance_url": status.instance_url,
                "status_id": status.status_id,
                "url": status.url,
                "content": status.content,
                "posted_at": status.posted_at,
            }
            for status in services.posting.list_statuses(limit)
        ]

    return app


def _run(action: Callable[[], T]) -> T:
    """Summary: Run a service call and map domain errors to HTTP errors.

    Importance: Keeps handlers free of repeated try/except blocks.
    Alternatives: Register FastAPI exception handlers per error type.
    """

    try:
        return action()
    except FetchStatusError as exc:
        raise HTTPException(status_code=502, detail=f"Calendar feed returned HTTP {exc.status}") from exc
    except FetchError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc
    except EventParseError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except FileNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except RuntimeError as exc:
        logger.error("Request failed: %s", exc)
        raise HTTPException(status_code=502, detail=str(exc)) from exc


def _event_response(event: Event) -> EventResponse:
    return EventResponse(
        uid=event.uid,
        summary=event.summary,
        location=event.location,
        url=event.url,
        start=_time_response(event.start),
        end=_time_response(event.end),
        display=display(event),
    )


def _time_response(moment: EventTime | None) -> EventTimeResponse | None:
    if moment is None:
        return None
    return EventTimeResponse(value=moment.value.isoformat(), kind=moment.kind.value, tzid=moment.tzid)
