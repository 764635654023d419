"""Scheduling policy source with offline defaults."""

import json
import logging
import os
from typing import Any, Dict, Optional

import httpx

from models.entities import (
    DEFAULT_AVAILABILITY_TYPE,
    DEFAULT_MAX_ADVANCE_DAYS,
    DEFAULT_MIN_NOTICE_HOURS,
    SUPPORTED_DURATIONS,
    InvalidPolicyError,
    SchedulingPolicy,
)

logger = logging.getLogger(__name__)


def policy_from_settings(settings: Optional[Dict[str, Any]], duration_minutes: int) -> SchedulingPolicy:
    """
    Build a validated policy from a settings record.

    Missing, null or zero values fall back to the defaults. Negative values
    and a non-positive duration are rejected.

    Raises:
        InvalidPolicyError: If the resulting policy is invalid
    """
    settings = settings or {}

    def value(name: str, default):
        raw = settings.get(name)
        if raw is None or raw == 0 or raw == "":
            return default
        return raw

    try:
        min_notice = float(value("min_notice_hours", DEFAULT_MIN_NOTICE_HOURS))
        max_advance = int(value("max_advance_days", DEFAULT_MAX_ADVANCE_DAYS))
        duration = int(duration_minutes)
    except (TypeError, ValueError) as e:
        raise InvalidPolicyError(f"Malformed scheduling settings: {e}") from e

    return SchedulingPolicy(
        min_notice_hours=min_notice,
        max_advance_days=max_advance,
        duration_minutes=duration,
        availability_type=str(value("availability_type", DEFAULT_AVAILABILITY_TYPE)),
    )


class SchedulingSettingsClient:
    """Loads the active scheduling window settings."""

    def __init__(
        self,
        settings_url: str = None,
        timeout: float = None,
        transport: Optional[httpx.BaseTransport] = None
    ):
        """
        Initialize settings client.

        Args:
            settings_url: Settings endpoint (defaults to env var SCHEDULING_SETTINGS_URL)
            timeout: Request timeout in seconds (defaults to env var HTTP_TIMEOUT_SECONDS)
            transport: Optional httpx transport, used by tests
        """
        self.settings_url = settings_url or os.getenv("SCHEDULING_SETTINGS_URL", "")
        self.timeout = timeout or float(os.getenv("HTTP_TIMEOUT_SECONDS", "30"))
        self._transport = transport

    def fetch_settings(self) -> Optional[Dict[str, Any]]:
        """Return the active settings record, or None if the store is unreachable."""
        if not self.settings_url:
            return None
        try:
            with httpx.Client(timeout=self.timeout, transport=self._transport) as client:
                response = client.get(self.settings_url, params={"is_active": "true"})
                response.raise_for_status()
                result = response.json()
        except httpx.HTTPError as e:
            logger.warning("Scheduling settings unreachable, using defaults: %s", e)
            return None
        except json.JSONDecodeError:
            logger.warning("JSON decode error in scheduling settings response, using defaults")
            return None

        # The store may answer with a single record or a list of active ones
        if isinstance(result, list):
            result = result[0] if result else None
        return result if isinstance(result, dict) else None

    def load_policy(self, duration_minutes: int = 60) -> SchedulingPolicy:
        """
        Load the policy for a session with the caller-selected duration.

        Raises:
            InvalidPolicyError: If the stored settings or duration are invalid
        """
        if duration_minutes not in SUPPORTED_DURATIONS:
            logger.info("Non-standard meeting duration requested: %s minutes", duration_minutes)
        return policy_from_settings(self.fetch_settings(), duration_minutes)
