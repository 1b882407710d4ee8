from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, Field, field_serializer, model_validator

from .domain.services import BusyInterval, MissingSource, NotAdmittedReason, SlotReservation
from .usecases.availability import BusyTimes
from .utils.time import utc_naive_to_aware


class ReserveSlotInput(BaseModel):
    event_type_id: int = Field(ge=1)
    slot_utc_start_date: datetime
    slot_utc_end_date: datetime
    booking_uid: Optional[str] = None

    @model_validator(mode="after")
    def _check_range(self) -> "ReserveSlotInput":
        if self.slot_utc_start_date.tzinfo is None or self.slot_utc_end_date.tzinfo is None:
            raise ValueError("slot dates must have timezone")
        if self.slot_utc_start_date >= self.slot_utc_end_date:
            raise ValueError("slot_utc_start_date must be earlier than slot_utc_end_date")
        return self


class ReserveSlotOutput(BaseModel):
    uid: str
    admitted: bool
    reason: Optional[NotAdmittedReason] = None

    @classmethod
    def from_domain(cls, *, reservation: SlotReservation) -> "ReserveSlotOutput":
        return cls(uid=reservation.uid, admitted=reservation.admitted, reason=reservation.reason)


class DeleteSelectedSlotOutput(BaseModel):
    status: str = "ok"


class IsTeamEventOutput(BaseModel):
    is_team_event: bool


class BusyIntervalRead(BaseModel):
    start: datetime
    end: datetime
    source: str

    @field_serializer("start", "end")
    def _ser_datetime(self, dt: datetime) -> str:
        return utc_naive_to_aware(dt).isoformat()

    @classmethod
    def from_domain(cls, *, interval: BusyInterval) -> "BusyIntervalRead":
        return cls(start=interval.start, end=interval.end, source=interval.source)


class MissingSourceRead(BaseModel):
    account_id: int
    window_start: datetime

    @field_serializer("window_start")
    def _ser_datetime(self, dt: datetime) -> str:
        return utc_naive_to_aware(dt).isoformat()


class BusyTimesRead(BaseModel):
    busy: list[BusyIntervalRead]
    by_day: dict[date, list[BusyIntervalRead]]
    partial: bool
    missing_sources: list[MissingSourceRead]

    @classmethod
    def from_domain(cls, *, busy_times: BusyTimes) -> "BusyTimesRead":
        def _read(items: list[BusyInterval]) -> list[BusyIntervalRead]:
            return [BusyIntervalRead.from_domain(interval=i) for i in items]

        return cls(
            busy=_read(busy_times.busy),
            by_day={day: _read(items) for day, items in busy_times.by_day.items()},
            partial=busy_times.partial,
            missing_sources=[_missing(m) for m in busy_times.missing_sources],
        )


def _missing(source: MissingSource) -> MissingSourceRead:
    return MissingSourceRead(account_id=source.account_id, window_start=source.window_start)
