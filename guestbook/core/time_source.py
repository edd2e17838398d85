"""Time sources used to stamp visitor records.

The current time is an explicit dependency of the registration flow so tests
can pin it. Production uses SystemTimeSource.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime, timezone


class TimeSource(ABC):
    """Interface for anything that can tell the current time."""

    @abstractmethod
    def now(self) -> datetime:
        """Return the current time as a timezone-aware UTC datetime."""
        raise NotImplementedError


class SystemTimeSource(TimeSource):
    """Wall clock."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class FixedTimeSource(TimeSource):
    """Always returns the same instant.

    Args:
        value: Instant to return. Defaults to the time of construction.
            Naive datetimes are assumed to be UTC.
    """

    def __init__(self, value: datetime | None = None) -> None:
        if value is None:
            value = datetime.now(timezone.utc)
        elif value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        self._value = value.astimezone(timezone.utc)

    def __repr__(self) -> str:  # pragma: no cover - representation only
        return f"FixedTimeSource({self._value.isoformat()})"

    def now(self) -> datetime:
        return self._value
