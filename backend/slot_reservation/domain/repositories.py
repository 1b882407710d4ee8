from __future__ import annotations

from datetime import datetime
from typing import Protocol

from ..models import Booking, CalendarAccount, EventType, SelectedSlot
from .services import BusyInterval


class EventTypeRepository(Protocol):
    async def get_with_seats(self, event_type_id: int) -> EventType | None: ...

    async def get_by_id(self, event_type_id: int) -> EventType | None: ...


class BookingRepository(Protocol):
    async def get_attendee_count(self, booking_uid: str | None) -> int | None: ...

    async def list_busy_for_user(self, user_id: int, start: datetime, end: datetime) -> list[Booking]: ...


class SlotHoldRepository(Protocol):
    async def upsert(
        self,
        *,
        user_id: int,
        event_type_id: int,
        slot_utc_start_date: datetime,
        slot_utc_end_date: datetime,
        uid: str,
        is_seated: bool,
        release_at: datetime,
    ) -> None: ...

    async def delete_by_uid(self, uid: str) -> int: ...

    async def delete_expired(self, now: datetime) -> int: ...

    async def list_active_for_user(
        self,
        user_id: int,
        start: datetime,
        end: datetime,
        now: datetime,
    ) -> list[SelectedSlot]: ...


class CalendarAccountRepository(Protocol):
    async def list_for_user(self, user_id: int) -> list[CalendarAccount]: ...


class CalendarClient(Protocol):
    async def list_busy_times(
        self,
        account: CalendarAccount,
        start: datetime,
        end: datetime,
    ) -> list[BusyInterval]: ...
