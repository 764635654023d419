"""Core slot generation algorithm."""

import logging
from datetime import date, datetime, timedelta
from typing import Callable, List, Mapping, Optional, Sequence, Tuple

import pytz

from models.entities import (
    Attendee,
    AttendeeAvailability,
    BusyInterval,
    SchedulingPolicy,
    TimeInterval,
    TimeSlotCandidate,
    WorkingHoursWindow,
)
from models.roster import Roster
from services.conflict_evaluator import first_conflict

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(pytz.UTC)


class SlotGenerator:
    """Produces the bookable slots of a single calendar day."""

    def __init__(self, clock: Optional[Clock] = None):
        """
        Initialize slot generator.

        Args:
            clock: Returns the current instant; defaults to the system clock (UTC)
        """
        self._clock = clock or utc_now

    def now(self) -> datetime:
        current = self._clock()
        if current.tzinfo is None:
            return pytz.UTC.localize(current)
        return current.astimezone(pytz.UTC)

    def window_bounds(
        self,
        day: date,
        working_hours: WorkingHoursWindow
    ) -> Tuple[datetime, datetime]:
        """Localize the working-hours window for ``day``."""
        tz = pytz.timezone(working_hours.timezone)
        window_start = tz.localize(datetime.combine(day, working_hours.start))
        window_end = tz.localize(datetime.combine(day, working_hours.end))
        return window_start, window_end

    def effective_start(
        self,
        day: date,
        working_hours: WorkingHoursWindow,
        policy: SchedulingPolicy
    ) -> datetime:
        """
        First instant a slot may start on ``day``.

        Minimum notice only applies when ``day`` is the current calendar day
        in the working-hours timezone; later days start at the window start.
        """
        window_start, _ = self.window_bounds(day, working_hours)
        now = self.now()
        tz = pytz.timezone(working_hours.timezone)
        if now.astimezone(tz).date() != day:
            return window_start
        earliest = now + timedelta(hours=policy.min_notice_hours)
        return max(window_start, earliest)

    def generate(
        self,
        day: date,
        roster: Roster,
        busy_by_attendee: Mapping[str, Sequence[BusyInterval]],
        working_hours: Optional[WorkingHoursWindow],
        policy: SchedulingPolicy,
        attendees: Optional[Mapping[str, Attendee]] = None
    ) -> List[TimeSlotCandidate]:
        """
        Generate the ordered list of bookable slots for one day.

        A slot is admitted only if every required attendee is free for its
        whole duration. Optional attendees are annotated per slot and never
        block it.

        Args:
            day: Calendar date to generate slots for
            roster: Current roster partition
            busy_by_attendee: Busy intervals keyed by attendee id
            working_hours: Working-hours window for ``day`` or None if closed
            policy: Validated scheduling policy
            attendees: Optional directory used to drop unknown ids and to
                attach email/name to the availability annotations

        Returns:
            Slots ascending by start time
        """
        if working_hours is None:
            return []

        if attendees is not None:
            roster = roster.restricted_to(attendees.keys())

        tz = pytz.timezone(working_hours.timezone)
        _, window_end = self.window_bounds(day, working_hours)
        cursor = self.effective_start(day, working_hours, policy)
        step = timedelta(minutes=policy.duration_minutes)

        slots: List[TimeSlotCandidate] = []
        while cursor < window_end:
            slot_end = cursor + step
            if slot_end > window_end:
                break

            candidate = TimeInterval(start=cursor, end=slot_end)
            if self._blocked_by_required(candidate, roster, busy_by_attendee):
                cursor = slot_end
                continue

            availability = [
                self._annotate(attendee_id, "required", True, attendees)
                for attendee_id in roster.required
            ]
            for attendee_id in roster.optional:
                busy = busy_by_attendee.get(attendee_id, ())
                free = first_conflict(candidate, busy) is None
                availability.append(self._annotate(attendee_id, "optional", free, attendees))

            slots.append(TimeSlotCandidate(
                start=tz.normalize(cursor),
                end=tz.normalize(slot_end),
                attendee_availability=tuple(availability)
            ))
            cursor = slot_end

        return slots

    def _blocked_by_required(
        self,
        candidate: TimeInterval,
        roster: Roster,
        busy_by_attendee: Mapping[str, Sequence[BusyInterval]]
    ) -> bool:
        for attendee_id in roster.required:
            clash = first_conflict(candidate, busy_by_attendee.get(attendee_id, ()))
            if clash is not None:
                logger.debug(
                    "Slot %s-%s rejected: %s busy %s-%s",
                    candidate.start.isoformat(), candidate.end.isoformat(),
                    attendee_id, clash.start.isoformat(), clash.end.isoformat()
                )
                return True
        return False

    @staticmethod
    def _annotate(
        attendee_id: str,
        role: str,
        available: bool,
        attendees: Optional[Mapping[str, Attendee]]
    ) -> AttendeeAvailability:
        attendee = attendees.get(attendee_id) if attendees else None
        return AttendeeAvailability(
            attendee_id=attendee_id,
            role=role,
            available=available,
            email=attendee.email if attendee else None,
            name=attendee.name if attendee else None
        )
