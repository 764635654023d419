"""Per-day availability digest for a visible calendar month."""

import calendar
import logging
from collections import OrderedDict
from datetime import date, timedelta
from typing import Dict, FrozenSet, Hashable, List, Mapping, Optional, Sequence, Set

import pytz

from models.entities import Attendee, BusyInterval, SchedulingPolicy
from models.roster import Roster
from services.slot_generator import SlotGenerator
from services.working_hours import WorkingHoursResolver

logger = logging.getLogger(__name__)

DailyAvailabilityDigest = Dict[date, FrozenSet[str]]


def month_start(day: date) -> date:
    return day.replace(day=1)


def shift_month(month: date, offset: int) -> date:
    """First day of the month ``offset`` months away from ``month``."""
    index = month.year * 12 + (month.month - 1) + offset
    return date(index // 12, index % 12 + 1, 1)


def visible_days(month: date) -> List[date]:
    """
    Days shown in a Monday-first calendar grid for ``month``.

    Leading and trailing days of the neighbouring months that complete the
    first and last weeks are included.
    """
    first = month_start(month)
    last = first.replace(day=calendar.monthrange(first.year, first.month)[1])
    grid_start = first - timedelta(days=first.weekday())
    grid_end = last + timedelta(days=6 - last.weekday())
    return [grid_start + timedelta(days=i) for i in range((grid_end - grid_start).days + 1)]


class MonthlyAvailabilityIndex:
    """
    Batch application of the slot generator over a month of calendar cells.

    A day's digest is the set of attendee ids flagged available on at least
    one slot the generator produces for that day, so calendar indicators and
    the selected day's slot list always agree.
    """

    def __init__(self, slot_generator: SlotGenerator, max_entries: int = 12):
        self.slot_generator = slot_generator
        self.max_entries = max_entries
        self._cache: "OrderedDict[Hashable, DailyAvailabilityDigest]" = OrderedDict()
        self.hits = 0
        self.misses = 0

    def build_digest(
        self,
        days: Sequence[date],
        roster: Roster,
        busy_by_attendee: Mapping[str, Sequence[BusyInterval]],
        resolver: WorkingHoursResolver,
        policy: SchedulingPolicy,
        attendees: Optional[Mapping[str, Attendee]] = None
    ) -> DailyAvailabilityDigest:
        """Compute the digest for every day in ``days`` without caching."""
        now = self.slot_generator.now()
        digest: DailyAvailabilityDigest = {}
        for day in days:
            window = resolver.resolve(day)
            if window is None:
                digest[day] = frozenset()
                continue
            today = now.astimezone(pytz.timezone(window.timezone)).date()
            if day < today:
                digest[day] = frozenset()
                continue
            slots = self.slot_generator.generate(
                day, roster, busy_by_attendee, window, policy, attendees
            )
            available: Set[str] = set()
            for slot in slots:
                available |= slot.available_attendee_ids
            digest[day] = frozenset(available)
        return digest

    def digest_for(
        self,
        month: date,
        roster: Roster,
        busy_by_attendee: Mapping[str, Sequence[BusyInterval]],
        resolver: WorkingHoursResolver,
        policy: SchedulingPolicy,
        busy_version: Hashable = None,
        attendees: Optional[Mapping[str, Attendee]] = None
    ) -> DailyAvailabilityDigest:
        """
        Memoized digest for the calendar grid of ``month``.

        Entries are keyed by month, roster signature, policy (duration
        included), the version of the busy data and the current date in the
        resolver's timezone. ``busy_version`` must change whenever
        ``busy_by_attendee`` does. Today's cell is recomputed on every call
        since its minimum-notice cutoff moves with the clock.
        """
        today = self._today(resolver)
        key = (
            month_start(month),
            roster.signature,
            policy,
            busy_version,
            today,
            id(resolver),
            frozenset(attendees) if attendees is not None else None,
        )
        cached = self._cache.get(key)
        if cached is not None:
            self.hits += 1
            self._cache.move_to_end(key)
            return self._refresh_today(
                key, cached, today, roster, busy_by_attendee, resolver, policy, attendees
            )

        self.misses += 1
        logger.debug("Building availability digest for %s", month_start(month).isoformat())
        digest = self.build_digest(
            visible_days(month), roster, busy_by_attendee, resolver, policy, attendees
        )
        self._cache[key] = digest
        while len(self._cache) > self.max_entries:
            self._cache.popitem(last=False)
        return digest

    def _today(self, resolver: WorkingHoursResolver) -> date:
        tz = pytz.timezone(getattr(resolver, "timezone", "UTC"))
        return self.slot_generator.now().astimezone(tz).date()

    def _refresh_today(
        self,
        key: Hashable,
        cached: DailyAvailabilityDigest,
        today: date,
        roster: Roster,
        busy_by_attendee: Mapping[str, Sequence[BusyInterval]],
        resolver: WorkingHoursResolver,
        policy: SchedulingPolicy,
        attendees: Optional[Mapping[str, Attendee]]
    ) -> DailyAvailabilityDigest:
        if today not in cached:
            return cached
        fresh = self.build_digest([today], roster, busy_by_attendee, resolver, policy, attendees)[today]
        if fresh == cached[today]:
            return cached
        digest = dict(cached)
        digest[today] = fresh
        self._cache[key] = digest
        return digest

    def invalidate(self) -> None:
        self._cache.clear()

    def cache_info(self) -> Dict[str, int]:
        return {"hits": self.hits, "misses": self.misses, "size": len(self._cache)}
