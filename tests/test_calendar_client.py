# tests/test_calendar_client.py

from __future__ import annotations

import httpx
import pytest

from tasklog.calendar.client import GoogleCalendarClient
from tasklog.core.errors import AuthExpired, CalendarError


def _client(handler) -> GoogleCalendarClient:
    return GoogleCalendarClient(base_url="https://calendar.test/v3", transport=httpx.MockTransport(handler))


@pytest.mark.asyncio
async def test_list_events_sends_query_and_follows_pages() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        if "pageToken" not in request.url.params:
            return httpx.Response(200, json={"items": [{"id": "a"}], "nextPageToken": "p2"})
        return httpx.Response(200, json={"items": [{"id": "b"}, "junk"]})

    items = await _client(handler).list_events(token="tok", time_min=0.0, time_max=86400.0)

    assert [i["id"] for i in items] == ["a", "b"]
    assert len(seen) == 2
    first = seen[0]
    assert first.url.path == "/v3/calendars/primary/events"
    assert first.headers["Authorization"] == "Bearer tok"
    assert first.url.params["singleEvents"] == "true"
    assert first.url.params["orderBy"] == "startTime"
    assert first.url.params["timeMin"] == "1970-01-01T00:00:00Z"
    assert first.url.params["timeMax"] == "1970-01-02T00:00:00Z"
    assert seen[1].url.params["pageToken"] == "p2"


@pytest.mark.asyncio
async def test_401_is_auth_expired() -> None:
    client = _client(lambda request: httpx.Response(401, json={"error": {"message": "Invalid Credentials"}}))
    with pytest.raises(AuthExpired):
        await client.list_events(token="old", time_min=0.0, time_max=1.0)


@pytest.mark.asyncio
async def test_missing_token_is_auth_expired_without_request() -> None:
    calls: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(200, json={})

    with pytest.raises(AuthExpired):
        await _client(handler).list_events(token="", time_min=0.0, time_max=1.0)
    assert calls == []


@pytest.mark.asyncio
async def test_other_errors_carry_message_and_status() -> None:
    client = _client(lambda request: httpx.Response(403, json={"error": {"message": "Rate Limit Exceeded"}}))
    with pytest.raises(CalendarError) as ei:
        await client.list_events(token="tok", time_min=0.0, time_max=1.0)
    assert ei.value.status_code == 403
    assert "Rate Limit Exceeded" in str(ei.value)


@pytest.mark.asyncio
async def test_transport_failure_is_calendar_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("down", request=request)

    with pytest.raises(CalendarError):
        await _client(handler).list_events(token="tok", time_min=0.0, time_max=1.0)
