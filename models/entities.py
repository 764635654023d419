"""Domain models for the booking availability engine."""

from dataclasses import dataclass, field
from datetime import datetime, time
from typing import Dict, FrozenSet, List, Literal, Optional, Tuple

AttendeeRole = Literal["required", "optional"]
RosterSection = Literal["required", "optional", "pool"]

ROSTER_SECTIONS: Tuple[str, ...] = ("required", "optional", "pool")
SUPPORTED_DURATIONS: Tuple[int, ...] = (15, 30, 45, 60, 90)

DEFAULT_MIN_NOTICE_HOURS = 4
DEFAULT_MAX_ADVANCE_DAYS = 60
DEFAULT_AVAILABILITY_TYPE = "available_now"


class SchedulingError(Exception):
    """Base error for the availability engine."""


class InvalidPolicyError(SchedulingError, ValueError):
    """Raised when a scheduling policy fails validation."""


class BusyScheduleError(SchedulingError):
    """Raised by a busy-schedule provider when a fetch fails."""


class UnknownRoleError(ValueError):
    """Raised for a roster section name that is not required/optional/pool."""


@dataclass(frozen=True)
class TimeInterval:
    """Half-open time range ``[start, end)``."""
    start: datetime
    end: datetime

    @property
    def duration_minutes(self) -> int:
        return int((self.end - self.start).total_seconds() // 60)


@dataclass(frozen=True)
class BusyInterval(TimeInterval):
    """A period during which an attendee is already committed."""


@dataclass(frozen=True)
class ClientTeam:
    """A client team that team members can be attached to."""
    id: str
    name: str
    booking_slug: Optional[str] = None
    description: Optional[str] = None
    is_active: bool = True


@dataclass
class Attendee:
    """Represents a potential meeting participant."""
    id: str
    email: str
    name: str
    busy: List[BusyInterval] = field(default_factory=list)
    role: Optional[str] = None  # job title, e.g. "Solutions Architect"
    client_teams: List[ClientTeam] = field(default_factory=list)
    calendar_connected: bool = True
    is_active: bool = True


@dataclass(frozen=True)
class SchedulingPolicy:
    """Booking window and duration rules for one session."""
    min_notice_hours: float = DEFAULT_MIN_NOTICE_HOURS
    max_advance_days: int = DEFAULT_MAX_ADVANCE_DAYS
    duration_minutes: int = 60
    availability_type: str = DEFAULT_AVAILABILITY_TYPE

    def __post_init__(self):
        if self.duration_minutes is None or self.duration_minutes <= 0:
            raise InvalidPolicyError(
                f"duration_minutes must be positive, got {self.duration_minutes!r}"
            )
        if self.min_notice_hours is None or self.min_notice_hours <= 0:
            raise InvalidPolicyError(
                f"min_notice_hours must be positive, got {self.min_notice_hours!r}"
            )
        if self.max_advance_days is None or self.max_advance_days <= 0:
            raise InvalidPolicyError(
                f"max_advance_days must be positive, got {self.max_advance_days!r}"
            )

    def with_duration(self, duration_minutes: int) -> "SchedulingPolicy":
        """Return a copy of this policy with a different meeting duration."""
        return SchedulingPolicy(
            min_notice_hours=self.min_notice_hours,
            max_advance_days=self.max_advance_days,
            duration_minutes=duration_minutes,
            availability_type=self.availability_type,
        )


@dataclass(frozen=True)
class WorkingHoursWindow:
    """Working hours for one calendar date, as local times of day."""
    start: time
    end: time
    timezone: str = "UTC"


@dataclass(frozen=True)
class AttendeeAvailability:
    """Availability of a single attendee for one candidate slot."""
    attendee_id: str
    role: AttendeeRole
    available: bool
    email: Optional[str] = None
    name: Optional[str] = None


@dataclass(frozen=True)
class TimeSlotCandidate:
    """A bookable slot with per-attendee availability annotations."""
    start: datetime
    end: datetime
    attendee_availability: Tuple[AttendeeAvailability, ...] = ()

    @property
    def available_attendee_ids(self) -> FrozenSet[str]:
        return frozenset(a.attendee_id for a in self.attendee_availability if a.available)


@dataclass(frozen=True)
class RosterSnapshot:
    """Serializable view of a roster's required/optional selection."""
    required_emails: Tuple[str, ...] = ()
    optional_emails: Tuple[str, ...] = ()

    def as_dict(self) -> Dict[str, List[str]]:
        return {
            "required": list(self.required_emails),
            "optional": list(self.optional_emails),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "RosterSnapshot":
        return cls(
            required_emails=tuple(data.get("required") or ()),
            optional_emails=tuple(data.get("optional") or ()),
        )


@dataclass(frozen=True)
class BookingSelection:
    """The chosen slot and attendees, handed to meeting creation."""
    start: datetime
    end: datetime
    duration_minutes: int
    required_emails: Tuple[str, ...]
    optional_emails: Tuple[str, ...]
