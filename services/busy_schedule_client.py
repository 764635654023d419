"""Busy-schedule provider boundary and its HTTP client."""

import json
import logging
import os
from datetime import datetime
from typing import Any, Dict, List, Optional, Protocol

import httpx
import pytz

from models.entities import BusyInterval, BusyScheduleError

logger = logging.getLogger(__name__)


class BusyScheduleProvider(Protocol):
    """Supplies busy intervals per attendee email for a time range."""

    def fetch(
        self,
        attendee_emails: List[str],
        range_start: datetime,
        range_end: datetime
    ) -> Dict[str, List[BusyInterval]]:
        ...


def parse_instant(value: str) -> datetime:
    """Parse an ISO-8601 instant; naive values are taken as UTC."""
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = pytz.UTC.localize(parsed)
    return parsed


def parse_busy_calendars(payload: Dict[str, Any], attendee_emails: List[str]) -> Dict[str, List[BusyInterval]]:
    """
    Extract busy intervals from a ``check_availability`` response.

    The response nests calendars as
    ``{"availability": {"calendars": {email: {"busy": [{start, end}]}}}}``.
    Requested emails missing from the response get an empty list; malformed
    intervals are skipped.
    """
    calendars = (payload.get("availability") or {}).get("calendars") or {}
    busy_by_email: Dict[str, List[BusyInterval]] = {email: [] for email in attendee_emails}
    # Calendars may echo emails in a different case
    requested = {email.lower(): email for email in attendee_emails}

    for email, calendar in calendars.items():
        raw_busy = calendar.get("busy") if isinstance(calendar, dict) else None
        intervals: List[BusyInterval] = []
        for entry in raw_busy if isinstance(raw_busy, list) else []:
            try:
                start = parse_instant(entry["start"])
                end = parse_instant(entry["end"])
            except (KeyError, TypeError, ValueError, AttributeError):
                logger.warning("Skipping malformed busy interval for %s: %r", email, entry)
                continue
            if start < end:
                intervals.append(BusyInterval(start=start, end=end))
        busy_by_email[requested.get(str(email).lower(), email)] = sorted(intervals, key=lambda i: i.start)

    return busy_by_email


class BusyScheduleClient:
    """Client for the calendar availability function."""

    def __init__(
        self,
        base_url: str = None,
        api_key: str = None,
        timeout: float = None,
        transport: Optional[httpx.BaseTransport] = None
    ):
        """
        Initialize busy-schedule client.

        Args:
            base_url: Availability endpoint (defaults to env var BUSY_SCHEDULE_URL)
            api_key: Bearer token (defaults to env var BUSY_SCHEDULE_API_KEY)
            timeout: Request timeout in seconds (defaults to env var HTTP_TIMEOUT_SECONDS)
            transport: Optional httpx transport, used by tests
        """
        self.base_url = base_url or os.getenv("BUSY_SCHEDULE_URL", "")
        self.api_key = api_key or os.getenv("BUSY_SCHEDULE_API_KEY", "")
        self.timeout = timeout or float(os.getenv("HTTP_TIMEOUT_SECONDS", "30"))
        self._transport = transport

    def _get_headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    def fetch(
        self,
        attendee_emails: List[str],
        range_start: datetime,
        range_end: datetime
    ) -> Dict[str, List[BusyInterval]]:
        """
        Fetch busy intervals for the given attendees.

        Raises:
            BusyScheduleError: On network, HTTP or payload errors
        """
        if not attendee_emails:
            return {}
        if not self.base_url:
            raise BusyScheduleError("BUSY_SCHEDULE_URL is not configured")

        payload = {
            "action": "check_availability",
            "userEmails": list(attendee_emails),
            "eventData": {
                "timeMin": range_start.isoformat(),
                "timeMax": range_end.isoformat()
            }
        }

        try:
            with httpx.Client(timeout=self.timeout, transport=self._transport) as client:
                response = client.post(self.base_url, json=payload, headers=self._get_headers())
                response.raise_for_status()
                result = response.json()
        except httpx.HTTPError as e:
            raise BusyScheduleError(f"HTTP error fetching busy schedule: {e}") from e
        except json.JSONDecodeError as e:
            raise BusyScheduleError("JSON decode error in busy schedule response") from e

        if not isinstance(result, dict):
            raise BusyScheduleError("Unexpected busy schedule response shape")
        if result.get("error"):
            raise BusyScheduleError(f"Busy schedule API error: {result['error']}")

        return parse_busy_calendars(result, attendee_emails)
