"""Team Booking - availability step demo."""

import logging
import os
from datetime import date

import streamlit as st
from dotenv import load_dotenv

from models.entities import SUPPORTED_DURATIONS, InvalidPolicyError, RosterSnapshot
from services.booking_session import BookingSession
from services.busy_schedule_client import BusyScheduleClient
from services.busy_schedule_mock import BusyScheduleProviderMock
from services.scheduling_settings import SchedulingSettingsClient
from services.team_directory import TeamDirectoryClient, TeamDirectoryMock
from services.working_hours import BusinessHoursResolver

# ============================================================================
# CONFIGURATION
# ============================================================================

# Load environment variables from .env file
load_dotenv()

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO"),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s"
)

BOOKING_SLUG = os.getenv("BOOKING_SLUG", "acme")

st.set_page_config(
    page_title="Team Booking",
    page_icon="🗓️",
    layout="wide"
)

# ============================================================================
# SERVICE INITIALIZATION
# ============================================================================

@st.cache_resource
def get_services(_cache_version="v1"):
    """Initialize and cache external collaborators, falling back to mocks."""
    timezone = os.getenv("BUSINESS_TIMEZONE", "UTC")
    resolver = BusinessHoursResolver(timezone=timezone)

    if os.getenv("TEAM_DIRECTORY_URL"):
        members = TeamDirectoryClient().list_members(BOOKING_SLUG)
    else:
        members = TeamDirectoryMock().list_members(BOOKING_SLUG)

    if os.getenv("BUSY_SCHEDULE_URL"):
        busy_provider = BusyScheduleClient()
    else:
        busy_provider = BusyScheduleProviderMock(timezone=timezone)

    return members, busy_provider, resolver, SchedulingSettingsClient()


members, busy_provider, resolver, settings_client = get_services()

# ============================================================================
# SESSION STATE INITIALIZATION
# ============================================================================

if "booking_session" not in st.session_state:
    try:
        policy = settings_client.load_policy(duration_minutes=60)
    except InvalidPolicyError as e:
        st.error(f"⚠️ Scheduling settings are invalid: {e}")
        st.stop()

    params = st.query_params
    seed = None
    if params.get("required") or params.get("optional"):
        seed = RosterSnapshot(
            required_emails=tuple(filter(None, params.get("required", "").split(","))),
            optional_emails=tuple(filter(None, params.get("optional", "").split(",")))
        )

    st.session_state.booking_session = BookingSession(
        members, busy_provider, resolver, policy, seed=seed
    )
    st.session_state.selected_date = None
    st.session_state.selection = None

session: BookingSession = st.session_state.booking_session


def sync_query_params():
    """Mirror the roster selection into the page URL."""
    snapshot = session.snapshot().as_dict()
    st.query_params["required"] = ",".join(snapshot["required"])
    st.query_params["optional"] = ",".join(snapshot["optional"])


def attendee_label(attendee_id: str) -> str:
    attendee = session.attendees.get(attendee_id)
    return attendee.name if attendee else attendee_id

# ============================================================================
# ROSTER
# ============================================================================

st.title("🗓️ Select Date & Time")

roster_cols = st.columns(3)
for column, section, title in zip(
    roster_cols,
    ("required", "optional", "pool"),
    ("Required (must be available)", "Optional", "Available Team Members")
):
    with column:
        st.markdown(f"**{title}**")
        for attendee_id in getattr(session.roster, section):
            target = st.selectbox(
                attendee_label(attendee_id),
                ("required", "optional", "pool"),
                index=("required", "optional", "pool").index(section),
                key=f"role_{attendee_id}_{section}"
            )
            if target != section:
                session.move(attendee_id, target)
                sync_query_params()
                st.rerun()
        if section != "pool" and getattr(session.roster, section):
            if st.button("Clear", key=f"clear_{section}"):
                session.clear(section)
                sync_query_params()
                st.rerun()

if st.button("Select all as required"):
    session.select_all()
    sync_query_params()
    st.rerun()

duration = st.radio(
    "Duration (minutes)",
    SUPPORTED_DURATIONS,
    index=SUPPORTED_DURATIONS.index(session.policy.duration_minutes)
    if session.policy.duration_minutes in SUPPORTED_DURATIONS else 0,
    horizontal=True
)
if duration != session.policy.duration_minutes:
    session.set_duration(duration)

# ============================================================================
# MONTH CALENDAR
# ============================================================================

nav_prev, nav_title, nav_next = st.columns([1, 4, 1])
if nav_prev.button("◀"):
    session.previous_month()
if nav_next.button("▶"):
    session.next_month()
nav_title.markdown(f"### {session.month:%B %Y}")

digest = session.month_digest()
if session.busy_data_warning:
    st.warning(f"⚠️ {session.busy_data_warning}")

days = session.calendar_days()
for week_start in range(0, len(days), 7):
    week_cols = st.columns(7)
    for column, day in zip(week_cols, days[week_start:week_start + 7]):
        free = digest.get(day, frozenset())
        marker = " ●" * min(len(free), 3)
        disabled = not session.is_selectable(day)
        if column.button(f"{day.day}{marker}", key=f"day_{day.isoformat()}", disabled=disabled):
            st.session_state.selected_date = day
            st.session_state.selection = None

# ============================================================================
# DAY SLOTS
# ============================================================================

selected_date: date = st.session_state.selected_date
if selected_date:
    st.subheader(f"Available Times: {selected_date:%A %d %B}")
    slots = session.day_slots(selected_date)
    if not slots:
        st.info("No slots available.")
    for slot in slots:
        free_names = ", ".join(
            a.name or a.attendee_id for a in slot.attendee_availability if a.available
        )
        label = f"{slot.start:%H:%M} – {slot.end:%H:%M}  ·  {free_names}"
        if st.button(label, key=f"slot_{slot.start.isoformat()}"):
            st.session_state.selection = session.select_slot(slot)

if st.session_state.selection:
    selection = st.session_state.selection
    st.success(
        f"✅ {selection.start:%Y-%m-%d %H:%M} for {selection.duration_minutes} minutes "
        f"with {', '.join(selection.required_emails + selection.optional_emails)}"
    )
