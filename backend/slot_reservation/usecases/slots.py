import asyncio
import logging
import uuid
from datetime import datetime, timedelta

from ..domain.errors import EventTypeNotFoundError, ReservationFailedError
from ..domain.repositories import BookingRepository, EventTypeRepository, SlotHoldRepository
from ..domain.services import NotAdmittedReason, SeatSnapshot, SlotReservation, can_hold_seat

logger = logging.getLogger(__name__)

DEFAULT_WRITE_TIMEOUT = timedelta(milliseconds=5000)
DEFAULT_HOLD_DURATION = timedelta(minutes=5)


async def reserve_slot(
    event_type_repo: EventTypeRepository,
    booking_repo: BookingRepository,
    hold_repo: SlotHoldRepository,
    *,
    event_type_id: int,
    slot_utc_start_date: datetime,
    slot_utc_end_date: datetime,
    now: datetime,
    uid: str | None = None,
    booking_uid: str | None = None,
    write_timeout: timedelta = DEFAULT_WRITE_TIMEOUT,
    hold_duration: timedelta = DEFAULT_HOLD_DURATION,
) -> SlotReservation:
    """
    Hold a slot for every host of the event type.

    A full seated slot is not an error: the returned reservation carries
    ``admitted=False`` and nothing is written. If any host's hold cannot be
    written within ``write_timeout`` all holds for the uid are removed and
    ``ReservationFailedError`` is raised.
    """
    uid = uid or str(uuid.uuid4())

    purged = await purge_expired_holds(hold_repo, now=now)
    if purged:
        logger.debug("purged %d expired slot holds", purged)

    event_type = await event_type_repo.get_with_seats(event_type_id)
    if event_type is None:
        raise EventTypeNotFoundError("event type not found")

    is_seated = event_type.seats_per_time_slot is not None
    if is_seated:
        attendee_count = await booking_repo.get_attendee_count(booking_uid)
        snapshot = SeatSnapshot(
            seats_per_time_slot=event_type.seats_per_time_slot,
            attendee_count=attendee_count,
        )
        if not can_hold_seat(snapshot):
            logger.info(
                "slot not admitted for event type %s (seats=%s, attendees=%s)",
                event_type_id,
                snapshot.seats_per_time_slot,
                snapshot.attendee_count,
            )
            return SlotReservation(uid=uid, admitted=False, reason=NotAdmittedReason.SLOT_FULL)

    release_at = now + hold_duration
    tasks = [
        asyncio.ensure_future(
            asyncio.wait_for(
                hold_repo.upsert(
                    user_id=user.id,
                    event_type_id=event_type.id,
                    slot_utc_start_date=slot_utc_start_date,
                    slot_utc_end_date=slot_utc_end_date,
                    uid=uid,
                    is_seated=is_seated,
                    release_at=release_at,
                ),
                timeout=write_timeout.total_seconds(),
            )
        )
        for user in event_type.users
    ]
    try:
        await asyncio.gather(*tasks)
    except Exception as exc:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        try:
            await hold_repo.delete_by_uid(uid)
        except Exception:
            logger.exception("rolling back holds for %s failed", uid)
        logger.warning("reserving slot %s for event type %s failed: %r", uid, event_type_id, exc)
        raise ReservationFailedError("error reserving slot") from exc

    return SlotReservation(uid=uid, admitted=True)


async def delete_selected_slot(hold_repo: SlotHoldRepository, *, uid: str | None) -> int:
    if not uid:
        return 0
    return await hold_repo.delete_by_uid(uid)


async def is_team_event(event_type_repo: EventTypeRepository, *, event_type_id: int | None) -> bool:
    if not event_type_id:
        return False
    event_type = await event_type_repo.get_by_id(event_type_id)
    return event_type is not None and bool(event_type.team_id)


async def purge_expired_holds(hold_repo: SlotHoldRepository, *, now: datetime) -> int:
    return await hold_repo.delete_expired(now)
