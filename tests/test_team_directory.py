"""Tests for team member loading and client-team filtering."""

import json

import httpx

from models.entities import Attendee, ClientTeam
from services.team_directory import (
    TeamDirectoryClient,
    TeamDirectoryMock,
    filter_connected_members,
    team_matches,
)

ACME = ClientTeam(id="team_001", name="Acme Corp", booking_slug="acme-bookings")


def test_team_matches_id_slug_and_name_prefix():
    assert team_matches(ACME, "team_001")
    assert team_matches(ACME, "ACME-BOOKINGS")
    assert team_matches(ACME, "acme-corp")
    assert team_matches(ACME, "acme")
    assert not team_matches(ACME, "globex")


def test_filter_connected_members_by_client_team():
    members = [
        Attendee(id="1", email="a@example.com", name="A", client_teams=[ACME]),
        Attendee(id="2", email="b@example.com", name="B"),
        Attendee(id="3", email="", name="C", calendar_connected=False, client_teams=[ACME]),
    ]

    assert [m.id for m in filter_connected_members(members)] == ["1", "2"]
    assert [m.id for m in filter_connected_members(members, "acme")] == ["1"]


def test_client_maps_public_members():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path.endswith("/rpc/get_public_team_members_by_slug")
        assert json.loads(request.content) == {"slug_param": "acme"}
        assert request.headers["apikey"] == "anon"
        return httpx.Response(200, json=[
            {"id": "m1", "name": "Alice", "email": "alice@example.com", "role_name": "Lead", "is_active": True},
            {"id": "m2", "name": "No Email"},
        ])

    client = TeamDirectoryClient(
        base_url="https://db.example.com/rest/v1/",
        api_key="anon",
        transport=httpx.MockTransport(handler),
    )
    members = client.list_members("acme")

    assert len(members) == 1
    alice = members[0]
    assert (alice.id, alice.email, alice.role) == ("m1", "alice@example.com", "Lead")
    assert alice.client_teams[0].booking_slug == "acme"
    assert alice.client_teams[0].name == "Acme"


def test_client_returns_empty_list_on_error():
    client = TeamDirectoryClient(
        base_url="https://db.example.com/rest/v1",
        transport=httpx.MockTransport(lambda request: httpx.Response(500)),
    )

    assert client.list_members("acme") == []


def test_mock_directory_filters_by_slug():
    directory = TeamDirectoryMock()

    assert [m.id for m in directory.list_members("acme")] == ["mem_001", "mem_002", "mem_003"]
    assert [m.id for m in directory.list_members("globex")] == ["mem_001", "mem_004", "mem_005"]
    assert len(directory.list_members()) == 5
