from datetime import timedelta
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Query, status

from ..config import Settings, get_settings
from ..deps import get_booking_repo, get_event_type_repo, get_slot_hold_repo
from ..domain.errors import EventTypeNotFoundError, ReservationFailedError
from ..domain.repositories import BookingRepository, EventTypeRepository, SlotHoldRepository
from ..schemas import DeleteSelectedSlotOutput, IsTeamEventOutput, ReserveSlotInput, ReserveSlotOutput
from ..usecases import slots as slot_usecase
from ..utils.slot_events import emit_slot_event
from ..utils.time import to_utc_naive, utc_now_naive

router = APIRouter(prefix="/slots", tags=["slots"])


@router.post("/reserve", response_model=ReserveSlotOutput)
async def reserve_slot(
    payload: ReserveSlotInput,
    x_reservation_uid: Optional[str] = Header(default=None),
    event_type_repo: EventTypeRepository = Depends(get_event_type_repo),
    booking_repo: BookingRepository = Depends(get_booking_repo),
    hold_repo: SlotHoldRepository = Depends(get_slot_hold_repo),
    settings: Settings = Depends(get_settings),
) -> ReserveSlotOutput:
    slot_start = to_utc_naive(payload.slot_utc_start_date)
    slot_end = to_utc_naive(payload.slot_utc_end_date)
    try:
        reservation = await slot_usecase.reserve_slot(
            event_type_repo,
            booking_repo,
            hold_repo,
            event_type_id=payload.event_type_id,
            slot_utc_start_date=slot_start,
            slot_utc_end_date=slot_end,
            now=utc_now_naive(),
            uid=x_reservation_uid,
            booking_uid=payload.booking_uid,
            write_timeout=timedelta(milliseconds=settings.hold_write_timeout_ms),
            hold_duration=timedelta(minutes=settings.hold_minutes),
        )
    except EventTypeNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="event type not found")
    except ReservationFailedError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="error reserving slot") from exc

    try:
        emit_slot_event(
            action="slot.held" if reservation.admitted else "slot.not_admitted",
            uid=reservation.uid,
            event_type_id=payload.event_type_id,
            slot_start=slot_start,
            slot_end=slot_end,
            reason=reservation.reason,
        )
    except RuntimeError as exc:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="failed to emit event") from exc

    return ReserveSlotOutput.from_domain(reservation=reservation)


@router.delete("/selected-slot", response_model=DeleteSelectedSlotOutput)
async def delete_selected_slot(
    uid: Optional[str] = Query(default=None),
    hold_repo: SlotHoldRepository = Depends(get_slot_hold_repo),
) -> DeleteSelectedSlotOutput:
    deleted = await slot_usecase.delete_selected_slot(hold_repo, uid=uid)
    if deleted:
        try:
            emit_slot_event(action="slot.released", uid=uid, extra={"holds_deleted": deleted})
        except RuntimeError as exc:
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="failed to emit event"
            ) from exc
    return DeleteSelectedSlotOutput()


@router.get("/is-team-event", response_model=IsTeamEventOutput)
async def is_team_event(
    event_type_id: Optional[int] = Query(default=None),
    event_type_repo: EventTypeRepository = Depends(get_event_type_repo),
) -> IsTeamEventOutput:
    result = await slot_usecase.is_team_event(event_type_repo, event_type_id=event_type_id)
    return IsTeamEventOutput(is_team_event=result)
