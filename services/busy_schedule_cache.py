"""Keyed busy-schedule cache with last-key-wins fetch resolution."""

import asyncio
import logging
import threading
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Dict, Iterable, Optional, Tuple

import pytz

from models.entities import BusyInterval, BusyScheduleError
from services.availability_index import month_start, visible_days
from services.busy_schedule_client import BusyScheduleProvider

logger = logging.getLogger(__name__)

FetchKey = Tuple[date, Tuple[str, ...]]


@dataclass(frozen=True)
class FetchTicket:
    """A fetch issued for one (month, email set) key."""
    key: FetchKey
    generation: int
    range_start: datetime
    range_end: datetime

    @property
    def emails(self) -> Tuple[str, ...]:
        return self.key[1]


@dataclass(frozen=True)
class BusySnapshot:
    """The busy data currently applied, replaced whole on each accepted fetch."""
    key: Optional[FetchKey]
    busy_by_email: Dict[str, Tuple[BusyInterval, ...]] = field(default_factory=dict)
    version: int = 0
    error: Optional[str] = None

    @property
    def failed(self) -> bool:
        return self.error is not None


def make_key(month: date, emails: Iterable[str]) -> FetchKey:
    return (month_start(month), tuple(sorted(set(emails))))


class BusyScheduleCache:
    """
    Coordinates busy-schedule fetches for a booking session.

    Each fetch carries the key it was issued for and a generation number.
    Only the newest ticket for the current key may apply its result; anything
    else resolves as stale and is dropped. Failures fail open to an empty
    busy map with ``error`` set so callers can warn the user.
    """

    def __init__(self, provider: BusyScheduleProvider, timezone: str = "UTC"):
        self.provider = provider
        self.timezone = timezone
        self._lock = threading.Lock()
        self._generation = 0
        self._current_key: Optional[FetchKey] = None
        self._current_generation: Optional[int] = None
        self._version = 0
        self._snapshot = BusySnapshot(key=None)

    @property
    def snapshot(self) -> BusySnapshot:
        return self._snapshot

    @property
    def current_key(self) -> Optional[FetchKey]:
        return self._current_key

    def fetch_range(self, month: date) -> Tuple[datetime, datetime]:
        """Instants covering the whole calendar grid of ``month``."""
        tz = pytz.timezone(self.timezone)
        days = visible_days(month)
        range_start = tz.localize(datetime.combine(days[0], datetime.min.time()))
        range_end = tz.localize(datetime.combine(days[-1] + timedelta(days=1), datetime.min.time()))
        return range_start, range_end

    def begin(self, month: date, emails: Iterable[str], force: bool = False) -> Optional[FetchTicket]:
        """
        Register a fetch for ``(month, emails)``.

        Returns None when no request is needed: the key is unchanged (its
        fetch is applied or still in flight), or the email set is empty, in
        which case an empty snapshot is applied immediately.
        """
        key = make_key(month, emails)
        with self._lock:
            if key == self._current_key and not force:
                return None

            self._generation += 1
            self._current_key = key
            self._current_generation = self._generation

            if not key[1]:
                self._replace(BusySnapshot(key=key))
                self._current_generation = None
                return None

            range_start, range_end = self.fetch_range(month)
            ticket = FetchTicket(
                key=key,
                generation=self._generation,
                range_start=range_start,
                range_end=range_end
            )
        logger.info(
            "Fetching busy schedule for %d attendee(s), month %s (generation %d)",
            len(key[1]), key[0].isoformat(), ticket.generation
        )
        return ticket

    def _is_current(self, ticket: FetchTicket) -> bool:
        return ticket.key == self._current_key and ticket.generation == self._current_generation

    def _replace(self, snapshot: BusySnapshot) -> None:
        self._version += 1
        self._snapshot = BusySnapshot(
            key=snapshot.key,
            busy_by_email=snapshot.busy_by_email,
            version=self._version,
            error=snapshot.error
        )

    def complete(self, ticket: FetchTicket, result: Dict[str, Iterable[BusyInterval]]) -> bool:
        """Apply a successful fetch if its ticket is still current."""
        with self._lock:
            if not self._is_current(ticket):
                logger.info("Discarding stale busy schedule (generation %d)", ticket.generation)
                return False
            received = {str(email).lower(): intervals for email, intervals in result.items()}
            busy = {email: tuple(received.get(email.lower(), ())) for email in ticket.emails}
            self._replace(BusySnapshot(key=ticket.key, busy_by_email=busy))
            self._current_generation = None
        return True

    def fail(self, ticket: FetchTicket, error: str) -> bool:
        """Fail open for a current ticket: empty busy data plus an error flag."""
        with self._lock:
            if not self._is_current(ticket):
                logger.info("Ignoring failure of stale fetch (generation %d)", ticket.generation)
                return False
            self._replace(BusySnapshot(key=ticket.key, error=error))
            self._current_generation = None
        logger.warning("Busy schedule unavailable, treating everyone as free: %s", error)
        return True

    def _call_provider(self, ticket: FetchTicket):
        return self.provider.fetch(list(ticket.emails), ticket.range_start, ticket.range_end)

    def _resolve(self, ticket: FetchTicket, outcome) -> BusySnapshot:
        if isinstance(outcome, BaseException):
            self.fail(ticket, str(outcome) or outcome.__class__.__name__)
        else:
            self.complete(ticket, outcome)
        return self._snapshot

    def load(self, month: date, emails: Iterable[str], force: bool = False) -> BusySnapshot:
        """Fetch synchronously if the key changed, and return the current snapshot."""
        ticket = self.begin(month, emails, force=force)
        if ticket is None:
            return self._snapshot
        try:
            outcome = self._call_provider(ticket)
        except BusyScheduleError as e:
            outcome = e
        except Exception as e:
            logger.exception("Unexpected error from busy schedule provider")
            outcome = e
        return self._resolve(ticket, outcome)

    async def load_async(self, month: date, emails: Iterable[str], force: bool = False) -> BusySnapshot:
        """Like ``load`` but runs the provider call in a worker thread."""
        ticket = self.begin(month, emails, force=force)
        if ticket is None:
            return self._snapshot
        try:
            outcome = await asyncio.to_thread(self._call_provider, ticket)
        except BusyScheduleError as e:
            outcome = e
        except Exception as e:
            logger.exception("Unexpected error from busy schedule provider")
            outcome = e
        return self._resolve(ticket, outcome)
