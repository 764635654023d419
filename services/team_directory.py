"""Team member directory - source of the connected attendee population."""

import json
import logging
import os
from typing import Any, Dict, List, Optional

import httpx

from models.entities import Attendee, ClientTeam

logger = logging.getLogger(__name__)


def _get_field(data: Dict[str, Any], *keys: str, default: str = "") -> str:
    """Helper to get value with multiple field name variations."""
    for key in keys:
        value = data.get(key, "")
        if value:
            return str(value).strip()
    return default


def _normalize_team_name(name: str) -> str:
    return name.lower().replace(" ", "-")


def team_matches(team: ClientTeam, client_team_filter: str) -> bool:
    """Match a client team by id, booking slug or hyphenated name prefix."""
    wanted = client_team_filter.lower()
    normalized = _normalize_team_name(team.name)
    return (
        team.id == client_team_filter
        or (team.booking_slug or "").lower() == wanted
        or normalized == wanted
        or normalized.startswith(wanted)
    )


def filter_connected_members(
    members: List[Attendee],
    client_team_filter: Optional[str] = None
) -> List[Attendee]:
    """Members with a calendar (or at least an email) that belong to the client team."""
    connected = [m for m in members if m.calendar_connected or m.email]
    if not client_team_filter:
        return connected
    return [m for m in connected if any(team_matches(t, client_team_filter) for t in m.client_teams)]


class TeamDirectoryClient:
    """Client for the public team roster of a booking page."""

    def __init__(
        self,
        base_url: str = None,
        api_key: str = None,
        timeout: float = None,
        transport: Optional[httpx.BaseTransport] = None
    ):
        """
        Initialize directory client.

        Args:
            base_url: RPC base URL (defaults to env var TEAM_DIRECTORY_URL)
            api_key: API key (defaults to env var TEAM_DIRECTORY_API_KEY)
            timeout: Request timeout in seconds (defaults to env var HTTP_TIMEOUT_SECONDS)
            transport: Optional httpx transport, used by tests
        """
        self.base_url = (base_url or os.getenv("TEAM_DIRECTORY_URL", "")).rstrip("/")
        self.api_key = api_key or os.getenv("TEAM_DIRECTORY_API_KEY", "")
        self.timeout = timeout or float(os.getenv("HTTP_TIMEOUT_SECONDS", "30"))
        self._transport = transport

    def _get_headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["apikey"] = self.api_key
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    def _map_member(self, data: Dict[str, Any], team: ClientTeam) -> Optional[Attendee]:
        """Map a public member record to an Attendee attached to ``team``."""
        member_id = _get_field(data, "id", "member_id")
        email = _get_field(data, "email", "email_id")
        if not member_id or not email:
            return None
        return Attendee(
            id=member_id,
            email=email,
            name=_get_field(data, "name", default=email),
            role=_get_field(data, "role_name", "role") or None,
            client_teams=[team],
            calendar_connected=True,
            is_active=bool(data.get("is_active", True))
        )

    def list_members(self, slug: str) -> List[Attendee]:
        """
        Get the public members of the team behind a booking slug.

        Returns:
            List of attendees; empty if the directory is unreachable
        """
        if not self.base_url:
            logger.warning("TEAM_DIRECTORY_URL is not configured")
            return []

        team = ClientTeam(
            id=slug,
            name=slug[:1].upper() + slug[1:],
            booking_slug=slug
        )
        try:
            with httpx.Client(timeout=self.timeout, transport=self._transport) as client:
                response = client.post(
                    f"{self.base_url}/rpc/get_public_team_members_by_slug",
                    json={"slug_param": slug},
                    headers=self._get_headers()
                )
                response.raise_for_status()
                result = response.json()
        except httpx.HTTPError as e:
            logger.error("HTTP error fetching team members for %s: %s", slug, e)
            return []
        except json.JSONDecodeError:
            logger.error("JSON decode error in team directory response")
            return []

        members = []
        for record in result if isinstance(result, list) else []:
            member = self._map_member(record, team)
            if member is not None:
                members.append(member)
        logger.info("Loaded %d team member(s) for %s", len(members), slug)
        return members


class TeamDirectoryMock:
    """Mock directory with synthetic team members."""

    def __init__(self):
        self._teams = [
            ClientTeam(id="team_001", name="Acme Corp", booking_slug="acme"),
            ClientTeam(id="team_002", name="Globex Partners", booking_slug="globex"),
        ]
        self._members = self._generate_members()

    def _generate_members(self) -> List[Attendee]:
        acme, globex = self._teams
        return [
            Attendee(id="mem_001", email="rajesh.kumar@example.com", name="Rajesh Kumar",
                     role="Engagement Lead", client_teams=[acme, globex]),
            Attendee(id="mem_002", email="priya.sharma@example.com", name="Priya Sharma",
                     role="Data Scientist", client_teams=[acme]),
            Attendee(id="mem_003", email="michael.chen@example.com", name="Michael Chen",
                     role="Product Manager", client_teams=[acme]),
            Attendee(id="mem_004", email="sarah.johnson@example.com", name="Sarah Johnson",
                     role="UX Designer", client_teams=[globex]),
            Attendee(id="mem_005", email="emma.wilson@example.com", name="Emma Wilson",
                     role="Business Analyst", client_teams=[globex]),
        ]

    def list_teams(self) -> List[ClientTeam]:
        return list(self._teams)

    def list_members(self, slug: Optional[str] = None) -> List[Attendee]:
        if not slug:
            return list(self._members)
        return filter_connected_members(self._members, slug)
