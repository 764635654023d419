"""Working-hours resolution per calendar date."""

import logging
import os
from datetime import date, time
from typing import Any, Dict, Iterable, Optional, Protocol, Tuple

import pytz

from models.entities import WorkingHoursWindow

logger = logging.getLogger(__name__)

WEEKDAY_NAMES = (
    "monday",
    "tuesday",
    "wednesday",
    "thursday",
    "friday",
    "saturday",
    "sunday",
)

DEFAULT_BUSINESS_HOURS: Dict[str, Dict[str, Any]] = {
    name: {"enabled": index < 5, "start": "09:00", "end": "17:00"}
    for index, name in enumerate(WEEKDAY_NAMES)
}


class WorkingHoursResolver(Protocol):
    """Resolves the working-hours window for a calendar date."""

    def resolve(self, day: date) -> Optional[WorkingHoursWindow]:
        ...


def parse_time_of_day(value: str) -> time:
    """Parse ``"HH:MM"`` (or ``"HH:MM:SS"``) into a time."""
    parts = [int(p) for p in str(value).strip().split(":")]
    if not 2 <= len(parts) <= 3:
        raise ValueError(f"Invalid time of day: {value!r}")
    return time(*parts)


class BusinessHoursResolver:
    """Weekday-pattern working hours with holidays and per-date overrides."""

    def __init__(
        self,
        business_hours: Optional[Dict[str, Dict[str, Any]]] = None,
        timezone: Optional[str] = None,
        holidays: Iterable[date] = (),
        overrides: Optional[Dict[date, Optional[Tuple[str, str]]]] = None
    ):
        """
        Initialize resolver.

        Args:
            business_hours: Map of lowercase weekday name to
                ``{"enabled": bool, "start": "HH:MM", "end": "HH:MM"}``;
                weekdays missing from the map are non-working
            timezone: IANA timezone the times are expressed in
                (defaults to env var BUSINESS_TIMEZONE, then UTC)
            holidays: Dates that are never working days
            overrides: Per-date ``(start, end)`` windows, or None to close the date
        """
        self.timezone = timezone or os.getenv("BUSINESS_TIMEZONE", "UTC")
        # Fail fast on a bad timezone name
        pytz.timezone(self.timezone)

        self._weekdays: Dict[int, Optional[Tuple[time, time]]] = {}
        hours = DEFAULT_BUSINESS_HOURS if business_hours is None else business_hours
        for index, name in enumerate(WEEKDAY_NAMES):
            config = hours.get(name)
            if not config or not config.get("enabled", True):
                self._weekdays[index] = None
                continue
            self._weekdays[index] = (
                parse_time_of_day(config.get("start", "09:00")),
                parse_time_of_day(config.get("end", "17:00")),
            )

        self._holidays = set(holidays)
        self._overrides: Dict[date, Optional[Tuple[time, time]]] = {}
        for day, window in (overrides or {}).items():
            if window is None:
                self._overrides[day] = None
            else:
                self._overrides[day] = (parse_time_of_day(window[0]), parse_time_of_day(window[1]))

    def resolve(self, day: date) -> Optional[WorkingHoursWindow]:
        if day in self._overrides:
            bounds = self._overrides[day]
        elif day in self._holidays:
            bounds = None
        else:
            bounds = self._weekdays.get(day.weekday())

        if bounds is None:
            return None
        start, end = bounds
        if end <= start:
            logger.warning("Ignoring empty working-hours window %s-%s on %s", start, end, day)
            return None
        return WorkingHoursWindow(start=start, end=end, timezone=self.timezone)

    def is_working_day(self, day: date) -> bool:
        return self.resolve(day) is not None
