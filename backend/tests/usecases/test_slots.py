import asyncio
import uuid
from datetime import datetime, timedelta
from typing import Optional

import pytest
from slot_reservation.domain.errors import EventTypeNotFoundError, ReservationFailedError
from slot_reservation.domain.services import NotAdmittedReason
from slot_reservation.models import EventType, User
from slot_reservation.usecases import slots as uc

NOW = datetime(2026, 10, 19, 9, 0)
SLOT_START = datetime(2026, 10, 20, 10, 0)
SLOT_END = datetime(2026, 10, 20, 10, 30)


def _event_type(*, seats: Optional[int], user_ids: tuple[int, ...] = (1, 2), team_id: Optional[int] = None) -> EventType:
    users = [User(id=user_id, email=f"host{user_id}@example.com", name=f"Host {user_id}") for user_id in user_ids]
    return EventType(id=10, title="Consultation", seats_per_time_slot=seats, team_id=team_id, users=users)


class FakeEventTypeRepo:
    def __init__(self, event_type: Optional[EventType]) -> None:
        self.event_type = event_type

    async def get_with_seats(self, event_type_id: int) -> Optional[EventType]:
        return self.event_type

    async def get_by_id(self, event_type_id: int) -> Optional[EventType]:
        return self.event_type


class FakeBookingRepo:
    def __init__(self, attendee_counts: Optional[dict[str, int]] = None) -> None:
        self.attendee_counts = attendee_counts or {}
        self.requested: list[Optional[str]] = []

    async def get_attendee_count(self, booking_uid: Optional[str]) -> Optional[int]:
        self.requested.append(booking_uid)
        if booking_uid is None:
            return None
        return self.attendee_counts.get(booking_uid)


class FakeHoldRepo:
    def __init__(self, stalled_user_ids: tuple[int, ...] = (), failing_user_ids: tuple[int, ...] = ()) -> None:
        self.holds: dict[tuple[int, datetime, datetime, str], dict[str, object]] = {}
        self.stalled_user_ids = stalled_user_ids
        self.failing_user_ids = failing_user_ids
        self.expired_purges: list[datetime] = []

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
        if user_id in self.stalled_user_ids:
            await asyncio.Event().wait()
        if user_id in self.failing_user_ids:
            raise ConnectionError("database went away")
        self.holds[(user_id, slot_utc_start_date, slot_utc_end_date, uid)] = {
            "event_type_id": event_type_id,
            "is_seated": is_seated,
            "release_at": release_at,
        }

    async def delete_by_uid(self, uid: str) -> int:
        keys = [key for key in self.holds if key[3] == uid]
        for key in keys:
            del self.holds[key]
        return len(keys)

    async def delete_expired(self, now: datetime) -> int:
        self.expired_purges.append(now)
        return 0


async def _reserve(
    event_type_repo: FakeEventTypeRepo,
    booking_repo: FakeBookingRepo,
    hold_repo: FakeHoldRepo,
    **kwargs: object,
):
    return await uc.reserve_slot(
        event_type_repo,
        booking_repo,
        hold_repo,
        event_type_id=10,
        slot_utc_start_date=SLOT_START,
        slot_utc_end_date=SLOT_END,
        now=NOW,
        **kwargs,
    )


@pytest.mark.asyncio
async def test_reserve_admits_seated_slot_with_seats_left() -> None:
    hold_repo = FakeHoldRepo()
    reservation = await _reserve(
        FakeEventTypeRepo(_event_type(seats=4)),
        FakeBookingRepo({"booking-1": 3}),
        hold_repo,
        booking_uid="booking-1",
    )
    assert reservation.admitted is True
    assert reservation.reason is None
    assert {key[0] for key in hold_repo.holds} == {1, 2}
    assert all(key[3] == reservation.uid for key in hold_repo.holds)
    assert all(hold["is_seated"] is True for hold in hold_repo.holds.values())


@pytest.mark.asyncio
async def test_reserve_silently_skips_full_seated_slot() -> None:
    hold_repo = FakeHoldRepo()
    reservation = await _reserve(
        FakeEventTypeRepo(_event_type(seats=4)),
        FakeBookingRepo({"booking-1": 4}),
        hold_repo,
        booking_uid="booking-1",
        uid="client-uid",
    )
    assert reservation.uid == "client-uid"
    assert reservation.admitted is False
    assert reservation.reason == NotAdmittedReason.SLOT_FULL
    assert hold_repo.holds == {}


@pytest.mark.asyncio
async def test_reserve_skips_seated_slot_without_booking_uid() -> None:
    hold_repo = FakeHoldRepo()
    booking_repo = FakeBookingRepo()
    reservation = await _reserve(FakeEventTypeRepo(_event_type(seats=4)), booking_repo, hold_repo)
    assert reservation.admitted is False
    assert booking_repo.requested == [None]
    assert hold_repo.holds == {}


@pytest.mark.parametrize("attendees", [0, 3, 50])
@pytest.mark.asyncio
async def test_reserve_always_holds_unseated_slot(attendees: int) -> None:
    hold_repo = FakeHoldRepo()
    booking_repo = FakeBookingRepo({"booking-1": attendees})
    reservation = await _reserve(
        FakeEventTypeRepo(_event_type(seats=None, user_ids=(1, 2, 3))),
        booking_repo,
        hold_repo,
        booking_uid="booking-1",
    )
    assert reservation.admitted is True
    assert {key[0] for key in hold_repo.holds} == {1, 2, 3}
    assert all(hold["is_seated"] is False for hold in hold_repo.holds.values())
    assert booking_repo.requested == []


@pytest.mark.asyncio
async def test_reserve_rolls_back_every_hold_when_one_write_times_out() -> None:
    hold_repo = FakeHoldRepo(stalled_user_ids=(2,))
    with pytest.raises(ReservationFailedError) as excinfo:
        await _reserve(
            FakeEventTypeRepo(_event_type(seats=None, user_ids=(1, 2, 3))),
            FakeBookingRepo(),
            hold_repo,
            uid="abc",
            write_timeout=timedelta(milliseconds=50),
        )
    assert isinstance(excinfo.value.__cause__, asyncio.TimeoutError)
    assert hold_repo.holds == {}


@pytest.mark.asyncio
async def test_reserve_wraps_write_errors() -> None:
    hold_repo = FakeHoldRepo(failing_user_ids=(1,))
    with pytest.raises(ReservationFailedError) as excinfo:
        await _reserve(FakeEventTypeRepo(_event_type(seats=None)), FakeBookingRepo(), hold_repo, uid="abc")
    assert isinstance(excinfo.value.__cause__, ConnectionError)
    assert hold_repo.holds == {}


class BrokenRollbackHoldRepo(FakeHoldRepo):
    async def delete_by_uid(self, uid: str) -> int:
        raise ConnectionError("database still down")


@pytest.mark.asyncio
async def test_reserve_reports_failure_even_when_rollback_fails() -> None:
    hold_repo = BrokenRollbackHoldRepo(failing_user_ids=(2,))
    with pytest.raises(ReservationFailedError) as excinfo:
        await _reserve(FakeEventTypeRepo(_event_type(seats=None)), FakeBookingRepo(), hold_repo, uid="abc")
    assert str(excinfo.value) == "error reserving slot"
    assert isinstance(excinfo.value.__cause__, ConnectionError)
    assert str(excinfo.value.__cause__) == "database went away"


@pytest.mark.asyncio
async def test_reserve_raises_when_event_type_missing() -> None:
    hold_repo = FakeHoldRepo()
    with pytest.raises(EventTypeNotFoundError):
        await _reserve(FakeEventTypeRepo(None), FakeBookingRepo(), hold_repo)
    assert hold_repo.holds == {}


@pytest.mark.asyncio
async def test_reserve_generates_uuid4_when_caller_has_none() -> None:
    reservation = await _reserve(FakeEventTypeRepo(_event_type(seats=None)), FakeBookingRepo(), FakeHoldRepo())
    assert uuid.UUID(reservation.uid).version == 4


@pytest.mark.asyncio
async def test_reserve_sets_release_time_and_purges_expired_holds() -> None:
    hold_repo = FakeHoldRepo()
    await _reserve(
        FakeEventTypeRepo(_event_type(seats=None, user_ids=(1,))),
        FakeBookingRepo(),
        hold_repo,
        hold_duration=timedelta(minutes=5),
    )
    assert hold_repo.expired_purges == [NOW]
    (hold,) = hold_repo.holds.values()
    assert hold["release_at"] == NOW + timedelta(minutes=5)


def test_default_write_timeout_is_five_seconds() -> None:
    assert uc.DEFAULT_WRITE_TIMEOUT == timedelta(milliseconds=5000)


@pytest.mark.asyncio
async def test_delete_selected_slot_is_idempotent() -> None:
    hold_repo = FakeHoldRepo()
    await _reserve(FakeEventTypeRepo(_event_type(seats=None)), FakeBookingRepo(), hold_repo, uid="abc")
    assert len(hold_repo.holds) == 2

    assert await uc.delete_selected_slot(hold_repo, uid="abc") == 2
    assert await uc.delete_selected_slot(hold_repo, uid="abc") == 0
    assert hold_repo.holds == {}


@pytest.mark.parametrize("uid", [None, ""])
@pytest.mark.asyncio
async def test_delete_selected_slot_ignores_empty_uid(uid: Optional[str]) -> None:
    hold_repo = FakeHoldRepo()
    await _reserve(FakeEventTypeRepo(_event_type(seats=None)), FakeBookingRepo(), hold_repo, uid="abc")
    assert await uc.delete_selected_slot(hold_repo, uid=uid) == 0
    assert len(hold_repo.holds) == 2


@pytest.mark.asyncio
async def test_is_team_event() -> None:
    assert await uc.is_team_event(FakeEventTypeRepo(_event_type(seats=None, team_id=7)), event_type_id=10) is True
    assert await uc.is_team_event(FakeEventTypeRepo(_event_type(seats=None)), event_type_id=10) is False
    assert await uc.is_team_event(FakeEventTypeRepo(None), event_type_id=10) is False
    assert await uc.is_team_event(FakeEventTypeRepo(_event_type(seats=None, team_id=7)), event_type_id=None) is False
