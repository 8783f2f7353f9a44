# src/tasklog/calendar/client.py

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any
from urllib.parse import quote

import httpx

from ..core.errors import AuthExpired, CalendarError

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://www.googleapis.com/calendar/v3"
MAX_PAGES = 20


def _iso(ts: float) -> str:
    return datetime.fromtimestamp(ts, tz=timezone.utc).isoformat().replace("+00:00", "Z")


def _make_timeout(timeout_s: float) -> httpx.Timeout:
    return httpx.Timeout(timeout_s, connect=min(5.0, timeout_s))


def _error_message(resp: httpx.Response) -> str:
    try:
        data = resp.json()
    except ValueError:
        return f"HTTP {resp.status_code}"
    err = data.get("error") if isinstance(data, dict) else None
    if isinstance(err, dict) and isinstance(err.get("message"), str):
        return err["message"]
    return f"HTTP {resp.status_code}"


class GoogleCalendarClient:
    """
    Read-only Google Calendar v3 events query.

    The bearer token comes from an authorization flow outside this package;
    a 401 is reported as AuthExpired so the caller can ask for a new one.
    """

    def __init__(
        self,
        *,
        base_url: str = DEFAULT_BASE_URL,
        calendar_id: str = "primary",
        timeout_s: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.calendar_id = calendar_id
        self._timeout = _make_timeout(float(timeout_s))
        self._transport = transport

    def _events_url(self) -> str:
        return f"{self.base_url}/calendars/{quote(self.calendar_id, safe='@.')}/events"

    async def list_events(self, *, token: str, time_min: float, time_max: float) -> list[dict[str, Any]]:
        if not token:
            raise AuthExpired("No calendar token; authorize the calendar first.")

        params: dict[str, str] = {
            "timeMin": _iso(time_min),
            "timeMax": _iso(time_max),
            "singleEvents": "true",
            "orderBy": "startTime",
        }
        headers = {"Authorization": f"Bearer {token}", "Accept": "application/json"}
        items: list[dict[str, Any]] = []

        async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
            for _ in range(MAX_PAGES):
                try:
                    resp = await client.get(self._events_url(), params=params, headers=headers)
                except httpx.HTTPError as e:
                    raise CalendarError(f"Calendar request failed: {e.__class__.__name__}") from e

                if resp.status_code == 401:
                    logger.info("Calendar token rejected (401)")
                    raise AuthExpired("Calendar authorization expired; re-authorize to import events.")
                if resp.status_code >= 400:
                    raise CalendarError(_error_message(resp), status_code=resp.status_code)

                try:
                    data = resp.json()
                except ValueError as e:
                    raise CalendarError("Calendar returned a non-JSON response") from e

                page = data.get("items") if isinstance(data, dict) else None
                if isinstance(page, list):
                    items.extend(i for i in page if isinstance(i, dict))

                next_token = data.get("nextPageToken") if isinstance(data, dict) else None
                if not next_token:
                    break
                params["pageToken"] = str(next_token)
            else:
                logger.warning("Calendar pagination stopped after %d pages", MAX_PAGES)

        logger.debug("Calendar returned %d events", len(items))
        return items
