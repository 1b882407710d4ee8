from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from enum import StrEnum
from typing import Iterable, Optional


class NotAdmittedReason(StrEnum):
    SLOT_FULL = "slot_full"


@dataclass(frozen=True)
class SeatSnapshot:
    seats_per_time_slot: Optional[int]
    attendee_count: Optional[int]


@dataclass(frozen=True)
class SlotReservation:
    uid: str
    admitted: bool
    reason: Optional[NotAdmittedReason] = None


@dataclass(frozen=True)
class BusyInterval:
    start: datetime
    end: datetime
    source: str = ""


@dataclass(frozen=True)
class MissingSource:
    account_id: int
    window_start: datetime


@dataclass(frozen=True)
class ExternalBusyTimes:
    intervals: list[BusyInterval] = field(default_factory=list)
    missing_sources: list[MissingSource] = field(default_factory=list)

    @property
    def partial(self) -> bool:
        return bool(self.missing_sources)


def can_hold_seat(snapshot: SeatSnapshot) -> bool:
    """
    Pure admission check for a new hold.

    Event types without seats admit unconditionally. For seated event types an
    unknown or zero attendee count rejects: a booking whose attendees could not
    be loaded is treated as not joinable rather than empty.
    """
    if not snapshot.seats_per_time_slot:
        return True
    if not snapshot.attendee_count:
        return False
    seats_left = snapshot.seats_per_time_slot - snapshot.attendee_count
    return seats_left >= 1


def merge_busy_intervals(intervals: Iterable[BusyInterval]) -> list[BusyInterval]:
    """Sort intervals and coalesce the ones that overlap or touch."""
    merged: list[BusyInterval] = []
    for interval in sorted(intervals, key=lambda i: (i.start, i.end)):
        if interval.end <= interval.start:
            continue
        if merged and interval.start <= merged[-1].end:
            last = merged[-1]
            sources = [s for s in last.source.split(",") if s]
            if interval.source and interval.source not in sources:
                sources.append(interval.source)
            merged[-1] = BusyInterval(
                start=last.start,
                end=max(last.end, interval.end),
                source=",".join(sources),
            )
            continue
        merged.append(interval)
    return merged


def group_by_day(intervals: Iterable[BusyInterval]) -> dict[date, list[BusyInterval]]:
    """Split intervals at midnight and bucket them by (UTC) calendar day."""
    days: dict[date, list[BusyInterval]] = defaultdict(list)
    for interval in intervals:
        cursor = interval.start
        while cursor < interval.end:
            next_midnight = datetime.combine(cursor.date() + timedelta(days=1), datetime.min.time())
            piece_end = min(interval.end, next_midnight)
            days[cursor.date()].append(BusyInterval(start=cursor, end=piece_end, source=interval.source))
            cursor = piece_end
    return dict(sorted(days.items()))
