import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Iterable

from ..domain.errors import CalendarProviderError
from ..domain.repositories import (
    BookingRepository,
    CalendarAccountRepository,
    CalendarClient,
    SlotHoldRepository,
)
from ..domain.services import (
    BusyInterval,
    ExternalBusyTimes,
    MissingSource,
    group_by_day,
    merge_busy_intervals,
)
from ..models import CalendarAccount
from ..utils.time import end_of_day, end_of_month, start_of_day

logger = logging.getLogger(__name__)

DEFAULT_LOOKAHEAD = timedelta(minutes=10)
DEFAULT_WINDOW_DAYS = 6


@dataclass(frozen=True)
class BusyTimes:
    busy: list[BusyInterval]
    by_day: dict[date, list[BusyInterval]]
    missing_sources: list[MissingSource] = field(default_factory=list)

    @property
    def partial(self) -> bool:
        return bool(self.missing_sources)


async def collect_external_busy_times(
    client: CalendarClient,
    accounts: Iterable[CalendarAccount],
    *,
    now: datetime,
    since: datetime | None = None,
    until: datetime | None = None,
    lookahead: timedelta = DEFAULT_LOOKAHEAD,
    window_days: int = DEFAULT_WINDOW_DAYS,
) -> ExternalBusyTimes:
    """
    Walk the providers in week-sized windows, starting just after ``now``.

    Providers cap the span of a single query, so each window is requested
    separately and sequentially. A failed request contributes no intervals and
    is reported in ``missing_sources``; it never aborts the walk. Windows that
    end before ``since`` are stepped over without a request. Results are
    neither sorted nor de-duplicated.
    """
    accounts = list(accounts)
    limit = until if until is not None else end_of_month(now)
    window_start = now + lookahead
    window_end = end_of_day(window_start + timedelta(days=window_days))

    intervals: list[BusyInterval] = []
    missing: list[MissingSource] = []
    while window_start < limit:
        queried = accounts if since is None or window_end >= since else []
        for account in queried:
            try:
                intervals.extend(await client.list_busy_times(account, window_start, window_end))
            except CalendarProviderError:
                logger.warning(
                    "busy times unavailable for calendar account %s in window %s - %s",
                    account.id,
                    window_start.isoformat(),
                    window_end.isoformat(),
                    exc_info=True,
                )
                missing.append(MissingSource(account_id=account.id, window_start=window_start))

        window_start = start_of_day(window_end + timedelta(days=1))
        window_end = end_of_day(window_start + timedelta(days=window_days))

    return ExternalBusyTimes(intervals=intervals, missing_sources=missing)


def _clip(intervals: Iterable[BusyInterval], start: datetime, end: datetime) -> list[BusyInterval]:
    clipped = []
    for interval in intervals:
        if interval.end <= start or interval.start >= end:
            continue
        clipped.append(
            BusyInterval(
                start=max(interval.start, start),
                end=min(interval.end, end),
                source=interval.source,
            )
        )
    return clipped


async def get_busy_times(
    booking_repo: BookingRepository,
    hold_repo: SlotHoldRepository,
    account_repo: CalendarAccountRepository,
    client: CalendarClient,
    *,
    user_id: int,
    date_from: datetime,
    date_to: datetime,
    now: datetime,
    lookahead: timedelta = DEFAULT_LOOKAHEAD,
    window_days: int = DEFAULT_WINDOW_DAYS,
) -> BusyTimes:
    if date_from >= date_to:
        raise ValueError("date_from must be earlier than date_to")

    bookings = await booking_repo.list_busy_for_user(user_id, date_from, date_to)
    holds = await hold_repo.list_active_for_user(user_id, date_from, date_to, now)
    internal = [BusyInterval(start=b.start_time, end=b.end_time, source="booking") for b in bookings]
    internal += [
        BusyInterval(start=h.slot_utc_start_date, end=h.slot_utc_end_date, source="hold") for h in holds
    ]

    accounts = await account_repo.list_for_user(user_id)
    external = await collect_external_busy_times(
        client,
        accounts,
        now=now,
        since=date_from,
        until=date_to,
        lookahead=lookahead,
        window_days=window_days,
    )

    busy = merge_busy_intervals(_clip(internal + external.intervals, date_from, date_to))
    return BusyTimes(busy=busy, by_day=group_by_day(busy), missing_sources=external.missing_sources)
