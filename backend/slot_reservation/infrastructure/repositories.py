from __future__ import annotations

from datetime import datetime, timezone
from typing import List

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import selectinload

from ..domain.repositories import (
    BookingRepository,
    CalendarAccountRepository,
    EventTypeRepository,
    SlotHoldRepository,
)
from ..models import Attendee, Booking, BookingStatus, CalendarAccount, EventType, SelectedSlot


class SqlAlchemyEventTypeRepository(EventTypeRepository):
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get_with_seats(self, event_type_id: int) -> EventType | None:
        stmt = select(EventType).options(selectinload(EventType.users)).where(EventType.id == event_type_id)
        result = await self.session.scalar(stmt)
        return result if isinstance(result, EventType) else None

    async def get_by_id(self, event_type_id: int) -> EventType | None:
        result = await self.session.scalar(select(EventType).where(EventType.id == event_type_id))
        return result if isinstance(result, EventType) else None


class SqlAlchemyBookingRepository(BookingRepository):
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get_attendee_count(self, booking_uid: str | None) -> int | None:
        if not booking_uid:
            return None
        booking_id = await self.session.scalar(select(Booking.id).where(Booking.uid == booking_uid))
        if booking_id is None:
            return None
        stmt = select(func.count(Attendee.id)).where(Attendee.booking_id == booking_id)
        return int(await self.session.scalar(stmt) or 0)

    async def list_busy_for_user(self, user_id: int, start: datetime, end: datetime) -> List[Booking]:
        stmt = select(Booking).where(
            Booking.user_id == user_id,
            Booking.status.not_in([BookingStatus.CANCELLED, BookingStatus.REJECTED]),
            Booking.start_time < end,
            Booking.end_time > start,
        )
        rows = await self.session.scalars(stmt)
        return list(rows.all())


class SqlAlchemySlotHoldRepository(SlotHoldRepository):
    """
    Holds are written from concurrent tasks, one per host, so every call opens
    its own session instead of sharing the request session.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self.session_factory = session_factory

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
    ) -> None:
        async with self.session_factory() as session, session.begin():
            existing = await session.scalar(
                select(SelectedSlot).where(
                    SelectedSlot.user_id == user_id,
                    SelectedSlot.slot_utc_start_date == slot_utc_start_date,
                    SelectedSlot.slot_utc_end_date == slot_utc_end_date,
                    SelectedSlot.uid == uid,
                )
            )
            if isinstance(existing, SelectedSlot):
                existing.event_type_id = event_type_id
                existing.is_seated = is_seated
                existing.release_at = release_at
                return
            session.add(
                SelectedSlot(
                    uid=uid,
                    user_id=user_id,
                    event_type_id=event_type_id,
                    slot_utc_start_date=slot_utc_start_date,
                    slot_utc_end_date=slot_utc_end_date,
                    is_seated=is_seated,
                    release_at=release_at,
                    created_at=datetime.now(timezone.utc).replace(tzinfo=None),
                )
            )

    async def delete_by_uid(self, uid: str) -> int:
        async with self.session_factory() as session, session.begin():
            result = await session.execute(delete(SelectedSlot).where(SelectedSlot.uid == uid))
            return int(result.rowcount or 0)

    async def delete_expired(self, now: datetime) -> int:
        async with self.session_factory() as session, session.begin():
            result = await session.execute(delete(SelectedSlot).where(SelectedSlot.release_at <= now))
            return int(result.rowcount or 0)

    async def list_active_for_user(
        self,
        user_id: int,
        start: datetime,
        end: datetime,
        now: datetime,
    ) -> List[SelectedSlot]:
        stmt = select(SelectedSlot).where(
            SelectedSlot.user_id == user_id,
            SelectedSlot.is_seated.is_(False),
            SelectedSlot.release_at > now,
            SelectedSlot.slot_utc_start_date < end,
            SelectedSlot.slot_utc_end_date > start,
        )
        async with self.session_factory() as session:
            rows = await session.scalars(stmt)
            return list(rows.all())


class SqlAlchemyCalendarAccountRepository(CalendarAccountRepository):
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def list_for_user(self, user_id: int) -> List[CalendarAccount]:
        stmt = select(CalendarAccount).where(CalendarAccount.user_id == user_id).order_by(CalendarAccount.id)
        rows = await self.session.scalars(stmt)
        return list(rows.all())
