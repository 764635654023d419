"""Overlap checks between candidate slots and busy calendars."""

from typing import Iterable, Optional

from models.entities import BusyInterval, TimeInterval


def overlaps(candidate: TimeInterval, busy: TimeInterval) -> bool:
    """
    Strict half-open overlap test.

    Intervals that only touch (``busy.end == candidate.start`` or
    ``candidate.end == busy.start``) do not overlap.
    """
    return busy.start < candidate.end and candidate.start < busy.end


def first_conflict(
    candidate: TimeInterval,
    busy: Iterable[BusyInterval]
) -> Optional[BusyInterval]:
    """Return the first busy interval overlapping ``candidate``, if any."""
    for interval in busy:
        if overlaps(candidate, interval):
            return interval
    return None


def conflicts(candidate: TimeInterval, busy: Iterable[BusyInterval]) -> bool:
    """Whether ``candidate`` overlaps any of the given busy intervals."""
    return first_conflict(candidate, busy) is not None
