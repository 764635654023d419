"""Mock busy-schedule provider with synthetic calendars."""

import hashlib
from datetime import date, datetime, time, timedelta
from typing import Dict, List, Optional

import pytz

from models.entities import BusyInterval, BusyScheduleError


def _stable_offset(email: str, modulo: int) -> int:
    digest = hashlib.md5(email.lower().encode("utf-8")).hexdigest()
    return int(digest[:8], 16) % modulo


class BusyScheduleProviderMock:
    """
    Mock provider returning recurring synthetic meetings.

    Explicit ``schedules`` win over generated ones. ``fail=True`` makes every
    fetch raise, to exercise the fail-open path.
    """

    def __init__(
        self,
        schedules: Optional[Dict[str, List[BusyInterval]]] = None,
        timezone: str = "UTC",
        fail: bool = False
    ):
        self.schedules = {k.lower(): v for k, v in (schedules or {}).items()}
        self.timezone = timezone
        self.fail = fail
        self.calls: List[dict] = []

    def fetch(
        self,
        attendee_emails: List[str],
        range_start: datetime,
        range_end: datetime
    ) -> Dict[str, List[BusyInterval]]:
        self.calls.append({
            "emails": tuple(attendee_emails),
            "start": range_start,
            "end": range_end
        })
        if self.fail:
            raise BusyScheduleError("Mock busy schedule provider failure")

        result: Dict[str, List[BusyInterval]] = {}
        for email in attendee_emails:
            if email.lower() in self.schedules:
                busy = self.schedules[email.lower()]
            else:
                busy = self._generate_events(email, range_start.date(), range_end.date())
            result[email] = [
                b for b in busy if b.start < range_end and range_start < b.end
            ]
        return result

    def _generate_events(self, email: str, first_day: date, last_day: date) -> List[BusyInterval]:
        """Generate synthetic weekday meetings for one attendee."""
        tz = pytz.timezone(self.timezone)
        offset = _stable_offset(email, 4)
        events: List[BusyInterval] = []

        def block(day: date, start_hour: int, start_minute: int, minutes: int) -> BusyInterval:
            start = tz.localize(datetime.combine(day, time(start_hour, start_minute)))
            return BusyInterval(start=start, end=start + timedelta(minutes=minutes))

        current = first_day
        while current <= last_day:
            # Skip weekends
            if current.weekday() < 5:
                day_index = current.toordinal() + offset

                # Morning standup (9:00-9:30 local)
                events.append(block(current, 9, 0, 30))

                # Team meeting (14:00-15:00 local) - every other day
                if day_index % 2 == 0:
                    events.append(block(current, 14, 0, 60))

                # Client sync (11:00-12:00 local) - every third day
                if day_index % 3 == 0:
                    events.append(block(current, 11, 0, 60))

                # Client review (16:00-17:00 local)
                if day_index % 4 == 1:
                    events.append(block(current, 16, 0, 60))

            current += timedelta(days=1)

        return sorted(events, key=lambda e: e.start)
