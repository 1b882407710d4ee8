from datetime import datetime

import httpx
import pytest
from slot_reservation.domain.errors import CalendarProviderError
from slot_reservation.domain.services import BusyInterval
from slot_reservation.infrastructure.calendar_client import HttpCalendarClient
from slot_reservation.models import CalendarAccount


def _account() -> CalendarAccount:
    return CalendarAccount(
        id=3,
        user_id=1,
        provider="calendly",
        external_user_uri="https://api.calendly.com/users/abc",
        access_token="secret-token",
    )


@pytest.mark.asyncio
async def test_list_busy_times_normalizes_collection() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(
            200,
            json={
                "collection": [
                    {
                        "type": "calendly",
                        "start_time": "2026-10-20T10:00:00.000000Z",
                        "end_time": "2026-10-20T10:30:00.000000Z",
                        "event": {"uri": "https://api.calendly.com/scheduled_events/1"},
                    },
                    {
                        "type": "external",
                        "start_time": "2026-10-20T19:00:00+09:00",
                        "end_time": "2026-10-20T20:00:00+09:00",
                    },
                ]
            },
        )

    client = HttpCalendarClient(base_url="https://api.calendly.com/", transport=httpx.MockTransport(handler))
    intervals = await client.list_busy_times(_account(), datetime(2026, 10, 20), datetime(2026, 10, 26, 23, 59))

    assert intervals == [
        BusyInterval(
            start=datetime(2026, 10, 20, 10),
            end=datetime(2026, 10, 20, 10, 30),
            source="https://api.calendly.com/scheduled_events/1",
        ),
        BusyInterval(start=datetime(2026, 10, 20, 10), end=datetime(2026, 10, 20, 11), source=""),
    ]
    (request,) = seen
    assert request.url.path == "/user_busy_times"
    assert request.url.params["user"] == "https://api.calendly.com/users/abc"
    assert request.url.params["start_time"] == "2026-10-20T00:00:00.000Z"
    assert request.headers["Authorization"] == "Bearer secret-token"


@pytest.mark.asyncio
async def test_list_busy_times_handles_empty_collection() -> None:
    transport = httpx.MockTransport(lambda request: httpx.Response(200, json={"collection": []}))
    client = HttpCalendarClient(base_url="https://api.calendly.com", transport=transport)
    assert await client.list_busy_times(_account(), datetime(2026, 10, 20), datetime(2026, 10, 21)) == []


@pytest.mark.asyncio
async def test_list_busy_times_wraps_http_errors() -> None:
    transport = httpx.MockTransport(lambda request: httpx.Response(503, json={"message": "down"}))
    client = HttpCalendarClient(base_url="https://api.calendly.com", transport=transport)
    with pytest.raises(CalendarProviderError):
        await client.list_busy_times(_account(), datetime(2026, 10, 20), datetime(2026, 10, 21))


@pytest.mark.asyncio
async def test_list_busy_times_wraps_malformed_entries() -> None:
    transport = httpx.MockTransport(
        lambda request: httpx.Response(200, json={"collection": [{"start_time": "not-a-date"}]})
    )
    client = HttpCalendarClient(base_url="https://api.calendly.com", transport=transport)
    with pytest.raises(CalendarProviderError):
        await client.list_busy_times(_account(), datetime(2026, 10, 20), datetime(2026, 10, 21))


@pytest.mark.parametrize(
    "body",
    [
        [],
        {"collection": {"start_time": "2026-10-20T10:00:00Z"}},
        {"collection": ["2026-10-20T10:00:00Z"]},
        {
            "collection": [
                {
                    "start_time": "2026-10-20T10:00:00Z",
                    "end_time": "2026-10-20T10:30:00Z",
                    "event": "https://api.calendly.com/scheduled_events/1",
                }
            ]
        },
        {"collection": [{"start_time": 1760954400, "end_time": 1760956200}]},
    ],
)
@pytest.mark.asyncio
async def test_list_busy_times_rejects_unexpected_payload_shapes(body: object) -> None:
    transport = httpx.MockTransport(lambda request: httpx.Response(200, json=body))
    client = HttpCalendarClient(base_url="https://api.calendly.com", transport=transport)
    with pytest.raises(CalendarProviderError):
        await client.list_busy_times(_account(), datetime(2026, 10, 20), datetime(2026, 10, 21))
