"""Booking session: wires roster, busy data and slot computation together."""

import logging
from datetime import date, timedelta
from typing import Dict, List, Optional, Tuple

import pytz

from models.entities import (
    Attendee,
    BookingSelection,
    BusyInterval,
    RosterSnapshot,
    SchedulingPolicy,
    TimeSlotCandidate,
)
from models.roster import Roster
from services.availability_index import (
    DailyAvailabilityDigest,
    MonthlyAvailabilityIndex,
    month_start,
    shift_month,
    visible_days,
)
from services.busy_schedule_cache import BusyScheduleCache, BusySnapshot
from services.busy_schedule_client import BusyScheduleProvider
from services.roster_mutator import RosterMutator
from services.slot_generator import Clock, SlotGenerator
from services.team_directory import filter_connected_members
from services.working_hours import WorkingHoursResolver

logger = logging.getLogger(__name__)


class BookingSession:
    """
    State of one visitor's pass through the availability step.

    Busy data is fetched once per (visible month, selected email set) and
    shared by the month digest and the day slot list, so the two never
    disagree.
    """

    def __init__(
        self,
        attendees: List[Attendee],
        busy_provider: BusyScheduleProvider,
        resolver: WorkingHoursResolver,
        policy: SchedulingPolicy,
        seed: Optional[RosterSnapshot] = None,
        client_team_filter: Optional[str] = None,
        month: Optional[date] = None,
        clock: Optional[Clock] = None,
        enforce_advance_horizon: bool = False
    ):
        """
        Initialize booking session.

        Args:
            attendees: Team members of the booking page
            busy_provider: Source of busy intervals
            resolver: Working hours per date
            policy: Validated scheduling policy
            seed: Restored required/optional selection (defaults to all required)
            client_team_filter: Restrict the population to one client team
            month: Initially visible month (defaults to the current month)
            clock: Current-instant source, for tests
            enforce_advance_horizon: Hide days beyond ``policy.max_advance_days``
        """
        connected = filter_connected_members(attendees, client_team_filter)
        self.attendees: Dict[str, Attendee] = {a.id: a for a in connected}
        self._id_by_email = {a.email.lower(): a.id for a in connected}
        self.resolver = resolver
        self.policy = policy
        self.enforce_advance_horizon = enforce_advance_horizon

        self.slot_generator = SlotGenerator(clock)
        self.index = MonthlyAvailabilityIndex(self.slot_generator)
        self.roster_mutator = RosterMutator.from_seed(connected, seed)
        self.busy_cache = BusyScheduleCache(
            busy_provider,
            timezone=getattr(resolver, "timezone", "UTC")
        )
        self.month = month_start(month or self.today)

    # ------------------------------------------------------------------
    # Session inputs
    # ------------------------------------------------------------------

    @property
    def today(self) -> date:
        tz = pytz.timezone(getattr(self.resolver, "timezone", "UTC"))
        return self.slot_generator.now().astimezone(tz).date()

    @property
    def roster(self) -> Roster:
        return self.roster_mutator.roster

    @property
    def visible_attendee_ids(self) -> List[str]:
        return list(self.attendees)

    def set_month(self, month: date) -> None:
        self.month = month_start(month)

    def next_month(self) -> None:
        self.month = shift_month(self.month, 1)

    def previous_month(self) -> None:
        self.month = shift_month(self.month, -1)

    def set_duration(self, duration_minutes: int) -> None:
        """
        Change the meeting duration.

        Raises:
            InvalidPolicyError: If the duration is not positive
        """
        self.policy = self.policy.with_duration(duration_minutes)

    def move(self, attendee_id: str, to: str) -> Roster:
        return self.roster_mutator.move(attendee_id, to)

    def remove(self, attendee_id: str) -> Roster:
        return self.roster_mutator.remove(attendee_id)

    def toggle(self, attendee_id: str, role: str) -> Roster:
        return self.roster_mutator.toggle(attendee_id, role)

    def select_all(self) -> Roster:
        return self.roster_mutator.select_all(self.visible_attendee_ids)

    def clear(self, section: str) -> Roster:
        return self.roster_mutator.clear(section)

    def snapshot(self) -> RosterSnapshot:
        return self.roster_mutator.snapshot()

    # ------------------------------------------------------------------
    # Busy data
    # ------------------------------------------------------------------

    def refresh_busy(self, force: bool = False) -> BusySnapshot:
        """Fetch busy data if the month or selected email set changed."""
        return self.busy_cache.load(self.month, self.roster_mutator.selected_emails, force=force)

    async def refresh_busy_async(self, force: bool = False) -> BusySnapshot:
        return await self.busy_cache.load_async(
            self.month, self.roster_mutator.selected_emails, force=force
        )

    @property
    def busy_data_warning(self) -> Optional[str]:
        """Set when the last fetch failed and slots assume everyone is free."""
        snapshot = self.busy_cache.snapshot
        if snapshot.failed:
            return f"Calendar availability could not be loaded; showing all times as free ({snapshot.error})"
        return None

    def busy_by_attendee(self) -> Dict[str, Tuple[BusyInterval, ...]]:
        """Busy intervals keyed by attendee id, from the current snapshot."""
        busy: Dict[str, Tuple[BusyInterval, ...]] = {
            attendee_id: tuple(attendee.busy)
            for attendee_id, attendee in self.attendees.items()
            if attendee.busy
        }
        for email, intervals in self.busy_cache.snapshot.busy_by_email.items():
            attendee_id = self._id_by_email.get(email.lower())
            if attendee_id is not None:
                busy[attendee_id] = tuple(intervals)
        return busy

    # ------------------------------------------------------------------
    # Derived availability
    # ------------------------------------------------------------------

    def horizon_end(self) -> date:
        return self.today + timedelta(days=self.policy.max_advance_days)

    def is_within_horizon(self, day: date) -> bool:
        return self.today <= day <= self.horizon_end()

    def is_selectable(self, day: date) -> bool:
        """Whether a calendar cell can be clicked: not past and a working day."""
        if day < self.today or self.resolver.resolve(day) is None:
            return False
        if self.enforce_advance_horizon and not self.is_within_horizon(day):
            return False
        return True

    def day_slots(self, day: date) -> List[TimeSlotCandidate]:
        """Bookable slots for one day of the visible month."""
        if not self.is_selectable(day):
            return []
        if day not in visible_days(self.month):
            self.set_month(day)
        self.refresh_busy()
        return self.slot_generator.generate(
            day,
            self.roster,
            self.busy_by_attendee(),
            self.resolver.resolve(day),
            self.policy,
            self.attendees
        )

    def month_digest(self) -> DailyAvailabilityDigest:
        """Per-day available attendee ids for the visible month grid."""
        snapshot = self.refresh_busy()
        digest = self.index.digest_for(
            self.month,
            self.roster,
            self.busy_by_attendee(),
            self.resolver,
            self.policy,
            busy_version=snapshot.version,
            attendees=self.attendees
        )
        if not self.enforce_advance_horizon:
            return digest
        return {
            day: (ids if self.is_within_horizon(day) else frozenset())
            for day, ids in digest.items()
        }

    def calendar_days(self) -> List[date]:
        return visible_days(self.month)

    def select_slot(self, slot: TimeSlotCandidate) -> BookingSelection:
        """Hand the chosen slot and attendees to meeting creation."""
        snapshot = self.snapshot()
        logger.info(
            "Slot selected %s-%s with %d required / %d optional attendee(s)",
            slot.start.isoformat(), slot.end.isoformat(),
            len(snapshot.required_emails), len(snapshot.optional_emails)
        )
        return BookingSelection(
            start=slot.start,
            end=slot.end,
            duration_minutes=int((slot.end - slot.start).total_seconds() // 60),
            required_emails=snapshot.required_emails,
            optional_emails=snapshot.optional_emails
        )
