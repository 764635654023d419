"""Tests for the booking session facade."""

import asyncio
from datetime import date, timedelta

import pytest
from conftest import MONDAY, TUESDAY, utc

from models.entities import (
    Attendee,
    BusyInterval,
    ClientTeam,
    InvalidPolicyError,
    RosterSnapshot,
    SchedulingPolicy,
)
from services.booking_session import BookingSession
from services.busy_schedule_mock import BusyScheduleProviderMock
from services.working_hours import BusinessHoursResolver

SATURDAY = MONDAY + timedelta(days=5)


@pytest.fixture
def provider():
    return BusyScheduleProviderMock(schedules={
        "alice@example.com": [BusyInterval(start=utc(TUESDAY, 10), end=utc(TUESDAY, 12))],
        "bob@example.com": [BusyInterval(start=utc(TUESDAY, 9), end=utc(TUESDAY, 17))],
        "carol@example.com": [],
    })


@pytest.fixture
def session(team, provider, policy, monday_10am):
    return BookingSession(
        team,
        provider,
        BusinessHoursResolver(timezone="UTC"),
        policy,
        clock=monday_10am,
    )


def starts(slots):
    return [s.start.hour for s in slots]


def test_defaults_to_all_required_for_current_month(session):
    assert session.roster.required == ("a", "b", "c")
    assert session.month == date(2030, 3, 1)
    assert session.today == MONDAY


def test_day_slots_require_every_required_attendee(session):
    assert session.day_slots(TUESDAY) == []

    session.move("b", "optional")

    slots = session.day_slots(TUESDAY)
    assert starts(slots) == [9, 12, 13, 14, 15, 16]
    assert all(
        not a.available for s in slots for a in s.attendee_availability if a.attendee_id == "b"
    )


def test_busy_data_is_fetched_once_for_day_and_month(session, provider):
    session.day_slots(TUESDAY)
    session.month_digest()
    session.day_slots(TUESDAY + timedelta(days=1))

    assert len(provider.calls) == 1


def test_moving_within_selection_reuses_busy_data(session, provider):
    session.day_slots(TUESDAY)
    session.move("b", "optional")
    session.day_slots(TUESDAY)
    assert len(provider.calls) == 1

    session.move("b", "pool")
    session.day_slots(TUESDAY)
    assert len(provider.calls) == 2
    assert provider.calls[-1]["emails"] == ("alice@example.com", "carol@example.com")


def test_month_digest_agrees_with_day_slots(session):
    session.move("b", "optional")

    digest = session.month_digest()

    for day in session.calendar_days():
        union = set()
        for slot in session.day_slots(day):
            union |= slot.available_attendee_ids
        assert digest[day] == union, day
    assert digest[TUESDAY] == {"a", "c"}


def test_digest_is_recomputed_after_roster_change(session):
    before = session.month_digest()
    session.clear("required")

    after = session.month_digest()

    assert after is not before
    assert all(ids == frozenset() for ids in after.values())


def test_fetch_failure_fails_open_with_warning(team, policy, monday_10am):
    session = BookingSession(
        team,
        BusyScheduleProviderMock(fail=True),
        BusinessHoursResolver(timezone="UTC"),
        policy,
        clock=monday_10am,
    )

    slots = session.day_slots(TUESDAY)

    assert len(slots) == 8
    assert session.busy_data_warning is not None
    assert "could not be loaded" in session.busy_data_warning


def test_past_and_closed_days_have_no_slots(session):
    assert session.day_slots(MONDAY - timedelta(days=1)) == []
    assert session.day_slots(SATURDAY) == []
    assert not session.is_selectable(SATURDAY)


def test_selecting_day_outside_grid_moves_month(session, provider):
    session.day_slots(date(2030, 4, 16))

    assert session.month == date(2030, 4, 1)
    assert provider.calls[-1]["start"] == utc(date(2030, 4, 1), 0)


def test_advance_horizon_is_opt_in(team, provider, monday_10am):
    policy = SchedulingPolicy(min_notice_hours=4, max_advance_days=2, duration_minutes=60)
    far_day = MONDAY + timedelta(days=3)

    lenient = BookingSession(team, provider, BusinessHoursResolver(timezone="UTC"), policy, clock=monday_10am)
    strict = BookingSession(
        team, provider, BusinessHoursResolver(timezone="UTC"), policy,
        clock=monday_10am, enforce_advance_horizon=True,
    )

    assert lenient.day_slots(far_day)
    assert strict.day_slots(far_day) == []
    assert strict.month_digest()[far_day] == frozenset()
    assert strict.is_within_horizon(MONDAY + timedelta(days=2))


def test_set_duration_validates(session):
    session.set_duration(30)
    assert session.policy.duration_minutes == 30

    with pytest.raises(InvalidPolicyError):
        session.set_duration(0)


def test_seed_restores_selection_and_ignores_unknown_emails(team, provider, policy, monday_10am):
    session = BookingSession(
        team, provider, BusinessHoursResolver(timezone="UTC"), policy,
        seed=RosterSnapshot(("carol@example.com", "ghost@example.com"), ("alice@example.com",)),
        clock=monday_10am,
    )

    assert session.roster.required == ("c",)
    assert session.roster.optional == ("a",)
    assert session.roster.pool == ("b",)


def test_client_team_filter_limits_population(provider, policy, monday_10am):
    acme = ClientTeam(id="t1", name="Acme", booking_slug="acme")
    members = [
        Attendee(id="a", email="alice@example.com", name="Alice", client_teams=[acme]),
        Attendee(id="b", email="bob@example.com", name="Bob"),
    ]

    session = BookingSession(
        members, provider, BusinessHoursResolver(timezone="UTC"), policy,
        client_team_filter="acme", clock=monday_10am,
    )
    session.select_all()

    assert session.roster.required == ("a",)
    assert list(session.attendees) == ["a"]


def test_select_slot_hands_off_emails(session):
    session.move("b", "optional")
    slot = session.day_slots(TUESDAY)[0]

    selection = session.select_slot(slot)

    assert (selection.start, selection.end) == (utc(TUESDAY, 9), utc(TUESDAY, 10))
    assert selection.duration_minutes == 60
    assert selection.required_emails == ("alice@example.com", "carol@example.com")
    assert selection.optional_emails == ("bob@example.com",)


def test_async_refresh_applies_busy_data(session, provider):
    snapshot = asyncio.run(session.refresh_busy_async())

    assert not snapshot.failed
    assert len(provider.calls) == 1
    assert session.busy_by_attendee()["a"] == (BusyInterval(start=utc(TUESDAY, 10), end=utc(TUESDAY, 12)),)


def test_month_navigation(session):
    session.next_month()
    assert session.month == date(2030, 4, 1)
    session.previous_month()
    session.previous_month()
    assert session.month == date(2030, 2, 1)


class LowercasingProvider:
    """Provider that answers with lower-cased calendar emails."""

    def __init__(self, busy):
        self.busy = busy

    def fetch(self, emails, start, end):
        return {email.lower(): self.busy.get(email.lower(), []) for email in emails}


def test_busy_data_survives_email_case_differences(policy, monday_10am):
    members = [Attendee(id="a", email="Alice@Example.com", name="Alice")]
    provider = LowercasingProvider({
        "alice@example.com": [BusyInterval(start=utc(TUESDAY, 0), end=utc(TUESDAY, 23))],
    })
    session = BookingSession(
        members, provider, BusinessHoursResolver(timezone="UTC"), policy, clock=monday_10am
    )

    assert session.day_slots(TUESDAY) == []
    assert session.busy_data_warning is None
    assert session.busy_by_attendee()["a"] == (BusyInterval(start=utc(TUESDAY, 0), end=utc(TUESDAY, 23)),)
