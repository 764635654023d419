"""Shared fixtures for the availability engine tests."""

from datetime import date, datetime, time

import pytest
import pytz

from models.entities import Attendee, SchedulingPolicy, WorkingHoursWindow

# 2030-03-04 is a Monday
MONDAY = date(2030, 3, 4)
TUESDAY = date(2030, 3, 5)


def utc(day: date, hour: int, minute: int = 0) -> datetime:
    return pytz.UTC.localize(datetime.combine(day, time(hour, minute)))


@pytest.fixture
def monday_10am():
    """Clock frozen at Monday 10:00 UTC."""
    return lambda: utc(MONDAY, 10)


@pytest.fixture
def policy():
    return SchedulingPolicy(min_notice_hours=4, max_advance_days=60, duration_minutes=60)


@pytest.fixture
def morning_window():
    return WorkingHoursWindow(start=time(9, 0), end=time(12, 0), timezone="UTC")


@pytest.fixture
def team():
    return [
        Attendee(id="a", email="alice@example.com", name="Alice"),
        Attendee(id="b", email="bob@example.com", name="Bob"),
        Attendee(id="c", email="carol@example.com", name="Carol"),
    ]
