import logging
from datetime import datetime, timedelta

from fastapi import APIRouter, Depends, HTTPException, Path, Query, status

from ..config import Settings, get_settings
from ..deps import get_booking_repo, get_calendar_account_repo, get_calendar_client, get_slot_hold_repo
from ..domain.repositories import (
    BookingRepository,
    CalendarAccountRepository,
    CalendarClient,
    SlotHoldRepository,
)
from ..schemas import BusyTimesRead
from ..usecases import availability as availability_usecase
from ..utils.slot_events import emit_slot_event
from ..utils.time import to_utc_naive, utc_now_naive

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/users", tags=["availability"])


@router.get("/{user_id}/busy-times", response_model=BusyTimesRead)
async def list_busy_times(
    user_id: int = Path(..., ge=1),
    start: datetime = Query(..., description="window start (ISO 8601 with timezone)"),
    end: datetime = Query(..., description="window end (ISO 8601 with timezone)"),
    booking_repo: BookingRepository = Depends(get_booking_repo),
    account_repo: CalendarAccountRepository = Depends(get_calendar_account_repo),
    hold_repo: SlotHoldRepository = Depends(get_slot_hold_repo),
    client: CalendarClient = Depends(get_calendar_client),
    settings: Settings = Depends(get_settings),
) -> BusyTimesRead:
    if start.tzinfo is None or end.tzinfo is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="start/end must have timezone")
    utc_start = to_utc_naive(start)
    utc_end = to_utc_naive(end)
    if utc_start >= utc_end:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="start must be earlier than end")

    busy_times = await availability_usecase.get_busy_times(
        booking_repo,
        hold_repo,
        account_repo,
        client,
        user_id=user_id,
        date_from=utc_start,
        date_to=utc_end,
        now=utc_now_naive(),
        lookahead=timedelta(minutes=settings.availability_lookahead_minutes),
        window_days=settings.availability_window_days,
    )

    if busy_times.partial:
        try:
            emit_slot_event(
                action="availability.partial",
                user_id=user_id,
                extra={"missing_sources": len(busy_times.missing_sources)},
            )
        except RuntimeError:
            # availability is still served when telemetry fails
            logger.exception("failed to emit partial availability event for user %s", user_id)

    return BusyTimesRead.from_domain(busy_times=busy_times)
