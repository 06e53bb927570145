"""Time source for streak days and time-of-day classification."""

from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Protocol
from zoneinfo import ZoneInfo


class Clock(Protocol):
    def now(self) -> datetime: ...

    def today(self) -> date: ...

    def hour(self) -> int: ...


class SystemClock:
    """Wall clock in a fixed time zone (the user's local zone)."""

    def __init__(self, tz_name: str = "UTC") -> None:
        self.tz = timezone.utc if tz_name.upper() == "UTC" else ZoneInfo(tz_name)

    def now(self) -> datetime:
        return datetime.now(self.tz)

    def today(self) -> date:
        return self.now().date()

    def hour(self) -> int:
        return self.now().hour
