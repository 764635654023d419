"""Roster value type: a partition of attendees into required/optional/pool."""

from dataclasses import dataclass
from typing import Dict, FrozenSet, Iterable, List, Optional, Set, Tuple

from models.entities import ROSTER_SECTIONS, Attendee, UnknownRoleError


def _check_section(section: str) -> None:
    if section not in ROSTER_SECTIONS:
        raise UnknownRoleError(
            f"Unknown roster section {section!r}; expected one of {', '.join(ROSTER_SECTIONS)}"
        )


def _without(ids: Tuple[str, ...], removed: Set[str]) -> Tuple[str, ...]:
    return tuple(i for i in ids if i not in removed)


@dataclass(frozen=True)
class Roster:
    """
    Immutable partition of the connected attendee population.

    Every attendee id belongs to exactly one of ``required``, ``optional`` or
    ``pool``. Each section keeps insertion order, which is the order attendees
    are reported in on generated slots. All mutations return a new Roster.
    """
    required: Tuple[str, ...] = ()
    optional: Tuple[str, ...] = ()
    pool: Tuple[str, ...] = ()

    def __post_init__(self):
        seen: Set[str] = set()
        for section in ROSTER_SECTIONS:
            for attendee_id in getattr(self, section):
                if attendee_id in seen:
                    raise ValueError(f"Attendee {attendee_id!r} appears in more than one roster section")
                seen.add(attendee_id)

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    def all_required(cls, attendee_ids: Iterable[str]) -> "Roster":
        """Default session roster: every connected attendee is required."""
        return cls(required=tuple(dict.fromkeys(attendee_ids)))

    @classmethod
    def seed(
        cls,
        attendees: List[Attendee],
        required: Optional[Iterable[str]] = None,
        optional: Optional[Iterable[str]] = None,
    ) -> "Roster":
        """
        Build the initial roster for a booking session.

        Identifiers may be attendee ids or emails (matched case-insensitively).
        With no seed lists every attendee starts as required. An attendee named
        in both lists stays required; identifiers that match nobody are dropped.

        Args:
            attendees: Connected attendee population
            required: Identifiers restored into the required section
            optional: Identifiers restored into the optional section

        Returns:
            A roster covering exactly the given population
        """
        population = [a.id for a in attendees]
        if required is None and optional is None:
            return cls.all_required(population)

        lookup: Dict[str, str] = {}
        for attendee in attendees:
            lookup[attendee.id] = attendee.id
            if attendee.email:
                lookup[attendee.email.strip().lower()] = attendee.id

        def resolve(identifiers: Optional[Iterable[str]]) -> List[str]:
            resolved = []
            for identifier in identifiers or ():
                key = identifier.strip()
                attendee_id = lookup.get(key) or lookup.get(key.lower())
                if attendee_id and attendee_id not in resolved:
                    resolved.append(attendee_id)
            return resolved

        required_ids = resolve(required)
        optional_ids = [i for i in resolve(optional) if i not in required_ids]
        chosen = set(required_ids) | set(optional_ids)
        return cls(
            required=tuple(required_ids),
            optional=tuple(optional_ids),
            pool=tuple(i for i in dict.fromkeys(population) if i not in chosen),
        )

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def population(self) -> FrozenSet[str]:
        return frozenset(self.required + self.optional + self.pool)

    @property
    def selected(self) -> Tuple[str, ...]:
        return self.required + self.optional

    @property
    def signature(self) -> Tuple[Tuple[str, ...], Tuple[str, ...]]:
        """Hashable key identifying the required/optional selection."""
        return (self.required, self.optional)

    def section_of(self, attendee_id: str) -> Optional[str]:
        for section in ROSTER_SECTIONS:
            if attendee_id in getattr(self, section):
                return section
        return None

    def restricted_to(self, known_ids: Iterable[str]) -> "Roster":
        """Drop ids that no longer resolve to a connected attendee."""
        known = set(known_ids)
        return Roster(
            required=tuple(i for i in self.required if i in known),
            optional=tuple(i for i in self.optional if i in known),
            pool=tuple(i for i in self.pool if i in known),
        )

    # ------------------------------------------------------------------
    # Transforms
    # ------------------------------------------------------------------

    def moved(self, attendee_id: str, to: str) -> "Roster":
        """Move one attendee into ``to``, removing it from its current section."""
        _check_section(to)
        if attendee_id in getattr(self, to):
            return self
        sections = {s: _without(getattr(self, s), {attendee_id}) for s in ROSTER_SECTIONS}
        sections[to] = sections[to] + (attendee_id,)
        return Roster(**sections)

    def cleared(self, section: str) -> "Roster":
        """Empty ``section``, returning its attendees to the pool."""
        _check_section(section)
        if section == "pool":
            return self
        emptied = getattr(self, section)
        sections = {s: getattr(self, s) for s in ROSTER_SECTIONS}
        sections[section] = ()
        sections["pool"] = sections["pool"] + emptied
        return Roster(**sections)

    def with_all_required(self, visible_ids: Iterable[str]) -> "Roster":
        """
        Make every visible attendee required and clear the optional section.

        The required section is replaced by the visible attendees; anyone
        previously selected but not visible goes back to the pool.
        """
        visible = tuple(dict.fromkeys(visible_ids))
        visible_set = set(visible)
        displaced = _without(self.required + self.optional, visible_set)
        pool = _without(self.pool, visible_set) + displaced
        return Roster(required=visible, optional=(), pool=pool)
