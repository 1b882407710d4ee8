class DomainError(Exception):
    """Base class for errors raised by the reservation domain."""


class EventTypeNotFoundError(DomainError):
    pass


class ReservationFailedError(DomainError):
    """One or more per-host hold writes failed or timed out."""


class CalendarProviderError(DomainError):
    """An external calendar provider request failed."""
