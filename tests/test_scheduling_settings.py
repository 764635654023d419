"""Tests for scheduling policy loading and validation."""

import httpx
import pytest

from models.entities import InvalidPolicyError, SchedulingPolicy
from services.scheduling_settings import SchedulingSettingsClient, policy_from_settings

URL = "https://db.example.com/rest/v1/scheduling_window_settings"


def make_client(handler):
    return SchedulingSettingsClient(settings_url=URL, transport=httpx.MockTransport(handler))


def test_defaults_when_store_not_configured(monkeypatch):
    monkeypatch.delenv("SCHEDULING_SETTINGS_URL", raising=False)

    policy = SchedulingSettingsClient().load_policy(duration_minutes=30)

    assert policy == SchedulingPolicy(min_notice_hours=4, max_advance_days=60, duration_minutes=30)
    assert policy.availability_type == "available_now"


def test_loads_active_record():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.params["is_active"] == "true"
        return httpx.Response(200, json=[{
            "min_notice_hours": 24,
            "max_advance_days": 14,
            "availability_type": "business_hours",
        }])

    policy = make_client(handler).load_policy(duration_minutes=45)

    assert policy.min_notice_hours == 24
    assert policy.max_advance_days == 14
    assert policy.duration_minutes == 45
    assert policy.availability_type == "business_hours"


def test_unreachable_store_falls_back_to_defaults():
    policy = make_client(lambda request: httpx.Response(503)).load_policy(duration_minutes=60)

    assert (policy.min_notice_hours, policy.max_advance_days) == (4, 60)


def test_empty_result_falls_back_to_defaults():
    policy = make_client(lambda request: httpx.Response(200, json=[])).load_policy(60)

    assert policy.max_advance_days == 60


def test_zero_or_missing_values_use_defaults():
    policy = policy_from_settings({"min_notice_hours": 0, "max_advance_days": None}, 60)

    assert (policy.min_notice_hours, policy.max_advance_days) == (4, 60)


@pytest.mark.parametrize("settings,duration", [
    ({"min_notice_hours": -1}, 60),
    ({"max_advance_days": -5}, 60),
    ({}, 0),
    ({}, -30),
    ({"min_notice_hours": "soon"}, 60),
])
def test_invalid_settings_are_rejected_at_load(settings, duration):
    with pytest.raises(InvalidPolicyError):
        policy_from_settings(settings, duration)


def test_policy_validates_on_construction():
    with pytest.raises(InvalidPolicyError):
        SchedulingPolicy(duration_minutes=0)
    with pytest.raises(ValueError):
        SchedulingPolicy(max_advance_days=0)


def test_with_duration_keeps_window_settings():
    policy = SchedulingPolicy(min_notice_hours=2, max_advance_days=30, duration_minutes=60)

    shorter = policy.with_duration(15)

    assert (shorter.min_notice_hours, shorter.max_advance_days, shorter.duration_minutes) == (2, 30, 15)
    with pytest.raises(InvalidPolicyError):
        policy.with_duration(0)
