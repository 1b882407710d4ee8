from typing import AsyncIterator

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from .config import Settings, get_settings
from .database import async_session
from .infrastructure.calendar_client import HttpCalendarClient
from .infrastructure.repositories import (
    SqlAlchemyBookingRepository,
    SqlAlchemyCalendarAccountRepository,
    SqlAlchemyEventTypeRepository,
    SqlAlchemySlotHoldRepository,
)


async def get_session() -> AsyncIterator[AsyncSession]:
    async with async_session() as session:
        yield session


async def get_event_type_repo(session: AsyncSession = Depends(get_session)) -> SqlAlchemyEventTypeRepository:
    return SqlAlchemyEventTypeRepository(session)


async def get_booking_repo(session: AsyncSession = Depends(get_session)) -> SqlAlchemyBookingRepository:
    return SqlAlchemyBookingRepository(session)


async def get_calendar_account_repo(
    session: AsyncSession = Depends(get_session),
) -> SqlAlchemyCalendarAccountRepository:
    return SqlAlchemyCalendarAccountRepository(session)


async def get_slot_hold_repo() -> SqlAlchemySlotHoldRepository:
    return SqlAlchemySlotHoldRepository(async_session)


async def get_calendar_client(settings: Settings = Depends(get_settings)) -> HttpCalendarClient:
    return HttpCalendarClient(
        base_url=settings.calendar_api_base_url,
        timeout_seconds=settings.calendar_request_timeout_seconds,
    )
