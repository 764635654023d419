"""Invariant-preserving roster mutations driven by user actions."""

import logging
from typing import Callable, Iterable, List, Optional, Tuple

from models.entities import Attendee, RosterSnapshot
from models.roster import Roster

logger = logging.getLogger(__name__)


class RosterMutator:
    """
    Holds the current roster of a booking session.

    Every user action (drag-drop, click, "select all", "clear") goes through
    this class. Each effective change replaces the roster value and bumps
    ``version`` so derived data can be invalidated.
    """

    def __init__(
        self,
        attendees: List[Attendee],
        roster: Optional[Roster] = None,
        on_change: Optional[Callable[[Roster], None]] = None
    ):
        self._attendees = {a.id: a for a in attendees}
        self.roster = roster if roster is not None else Roster.all_required(self._attendees)
        self.version = 0
        self._on_change = on_change

    @classmethod
    def from_seed(
        cls,
        attendees: List[Attendee],
        snapshot: Optional[RosterSnapshot] = None,
        on_change: Optional[Callable[[Roster], None]] = None
    ) -> "RosterMutator":
        """Create a mutator restoring ``snapshot`` or defaulting to all-required."""
        if snapshot is None or not (snapshot.required_emails or snapshot.optional_emails):
            roster = Roster.seed(attendees)
        else:
            roster = Roster.seed(attendees, snapshot.required_emails, snapshot.optional_emails)
        return cls(attendees, roster, on_change)

    def _apply(self, updated: Roster, action: str) -> Roster:
        if updated != self.roster:
            self.roster = updated
            self.version += 1
            logger.debug("Roster %s -> version %d", action, self.version)
            if self._on_change:
                self._on_change(updated)
        return self.roster

    def move(self, attendee_id: str, to: str) -> Roster:
        """Move an attendee into ``to`` (required, optional or pool)."""
        return self._apply(self.roster.moved(attendee_id, to), f"move {attendee_id} to {to}")

    def remove(self, attendee_id: str) -> Roster:
        """Return an attendee to the pool."""
        return self.move(attendee_id, "pool")

    def toggle(self, attendee_id: str, role: str) -> Roster:
        """Add the attendee to ``role``, or back to the pool if already there."""
        if self.roster.section_of(attendee_id) == role:
            return self.remove(attendee_id)
        return self.move(attendee_id, role)

    def select_all(self, visible_ids: Optional[Iterable[str]] = None) -> Roster:
        """Make every visible attendee required and clear optional."""
        ids = list(visible_ids) if visible_ids is not None else list(self._attendees)
        return self._apply(self.roster.with_all_required(ids), "select all")

    def clear(self, section: str) -> Roster:
        """Empty a section, returning its attendees to the pool."""
        return self._apply(self.roster.cleared(section), f"clear {section}")

    def _emails(self, ids: Iterable[str]) -> Tuple[str, ...]:
        return tuple(self._attendees[i].email for i in ids if i in self._attendees)

    def snapshot(self) -> RosterSnapshot:
        """Serializable required/optional selection, by email."""
        return RosterSnapshot(
            required_emails=self._emails(self.roster.required),
            optional_emails=self._emails(self.roster.optional),
        )

    @property
    def required_emails(self) -> Tuple[str, ...]:
        return self._emails(self.roster.required)

    @property
    def selected_emails(self) -> Tuple[str, ...]:
        return self._emails(self.roster.selected)
