from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

import httpx

from ..domain.errors import CalendarProviderError
from ..domain.repositories import CalendarClient
from ..domain.services import BusyInterval
from ..models import CalendarAccount
from ..utils.time import parse_iso_to_utc_naive, to_iso_utc

logger = logging.getLogger(__name__)


class HttpCalendarClient(CalendarClient):
    """Reads busy times from a Calendly-style ``/user_busy_times`` endpoint."""

    def __init__(
        self,
        *,
        base_url: str,
        timeout_seconds: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout_seconds = timeout_seconds
        self.transport = transport

    async def list_busy_times(
        self,
        account: CalendarAccount,
        start: datetime,
        end: datetime,
    ) -> list[BusyInterval]:
        params = {
            "user": account.external_user_uri,
            "start_time": to_iso_utc(start),
            "end_time": to_iso_utc(end),
        }
        headers = {
            "Authorization": f"Bearer {account.access_token}",
            "Content-Type": "application/json",
        }
        try:
            async with httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout_seconds,
                transport=self.transport,
            ) as client:
                response = await client.get("/user_busy_times", params=params, headers=headers)
                response.raise_for_status()
                data = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise CalendarProviderError(f"busy times request failed for account {account.id}") from exc

        if not isinstance(data, dict):
            raise CalendarProviderError(f"unexpected busy times payload for account {account.id}")
        collection = data.get("collection") or []
        if not isinstance(collection, list):
            raise CalendarProviderError(f"unexpected busy times payload for account {account.id}")
        return [self._to_interval(item) for item in collection]

    @staticmethod
    def _to_interval(item: Any) -> BusyInterval:
        if not isinstance(item, dict):
            raise CalendarProviderError("malformed busy time entry")
        event = item.get("event") or {}
        if not isinstance(event, dict):
            raise CalendarProviderError("malformed busy time entry")
        try:
            start = parse_iso_to_utc_naive(item["start_time"])
            end = parse_iso_to_utc_naive(item["end_time"])
        except (KeyError, AttributeError, TypeError, ValueError) as exc:
            raise CalendarProviderError("malformed busy time entry") from exc
        uri = event.get("uri")
        return BusyInterval(start=start, end=end, source=uri if isinstance(uri, str) else "")
