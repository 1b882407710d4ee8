import calendar
from datetime import datetime, time, timezone


def to_utc_naive(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        raise ValueError("datetime must be timezone-aware")
    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def utc_naive_to_aware(dt: datetime) -> datetime:
    return dt.replace(tzinfo=timezone.utc)


def to_iso_utc(dt: datetime) -> str:
    """Format a naive UTC datetime as an ISO 8601 string with a trailing Z."""
    return dt.replace(tzinfo=None).isoformat(timespec="milliseconds") + "Z"


def parse_iso_to_utc_naive(value: str) -> datetime:
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        return parsed
    return to_utc_naive(parsed)


def start_of_day(dt: datetime) -> datetime:
    return datetime.combine(dt.date(), time.min)


def end_of_day(dt: datetime) -> datetime:
    return datetime.combine(dt.date(), time.max)


def end_of_month(dt: datetime) -> datetime:
    last_day = calendar.monthrange(dt.year, dt.month)[1]
    return end_of_day(dt.replace(day=last_day))


def utc_now_naive() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)
