from __future__ import annotations

import logging
from datetime import datetime, timedelta

import httpx

from core.errors import UpstreamCalendarError
from services.availability import (
    BUSINESS_TIMEZONE,
    SLOT_DURATION_MINUTES,
    BusyInterval,
    isoformat_utc,
    parse_instant,
)

logger = logging.getLogger(__name__)

GOOGLE_CALENDAR_API = "https://www.googleapis.com/calendar/v3"
PRIMARY_EVENTS_URL = f"{GOOGLE_CALENDAR_API}/calendars/primary/events"
MAX_EVENT_RESULTS = 250
REMINDER_OVERRIDES = [
    {"method": "email", "minutes": 60},
    {"method": "popup", "minutes": 15},
]


def _send(
    method: str,
    url: str,
    http_client: httpx.Client | None,
    **kwargs,
) -> httpx.Response:
    try:
        if http_client is not None:
            return http_client.request(method, url, **kwargs)
        with httpx.Client(timeout=15) as client:
            return client.request(method, url, **kwargs)
    except httpx.HTTPError as exc:
        logger.error("Google Calendar %s request failed: %s", method, exc)
        raise UpstreamCalendarError("Google Calendar unreachable", str(exc)) from exc


def list_busy_intervals(
    access_token: str,
    window_start: datetime,
    window_end: datetime,
    *,
    max_results: int = MAX_EVENT_RESULTS,
    http_client: httpx.Client | None = None,
) -> list[BusyInterval]:
    params = {
        "timeMin": isoformat_utc(window_start),
        "timeMax": isoformat_utc(window_end),
        "singleEvents": "true",
        "orderBy": "startTime",
        "maxResults": str(max_results),
    }
    headers = {"Authorization": f"Bearer {access_token}"}
    response = _send("GET", PRIMARY_EVENTS_URL, http_client, params=params, headers=headers)
    if response.status_code >= 400:
        raise UpstreamCalendarError("Failed to fetch calendar events", response.text)

    items = response.json().get("items", [])
    logger.info("Found %d calendar events between %s and %s", len(items), params["timeMin"], params["timeMax"])

    intervals: list[BusyInterval] = []
    for event in items:
        start = (event.get("start") or {}).get("dateTime")
        end = (event.get("end") or {}).get("dateTime")
        # All-day events only carry a date and do not block slots.
        if not start or not end:
            continue
        intervals.append(BusyInterval(start=parse_instant(start), end=parse_instant(end)))
    return intervals


def create_calendar_event(
    access_token: str,
    start: datetime,
    *,
    summary: str,
    description: str,
    attendee_email: str,
    attendee_name: str,
    http_client: httpx.Client | None = None,
) -> str:
    end = start + timedelta(minutes=SLOT_DURATION_MINUTES)
    timezone_name = str(BUSINESS_TIMEZONE)
    event = {
        "summary": summary,
        "description": description,
        "start": {"dateTime": isoformat_utc(start), "timeZone": timezone_name},
        "end": {"dateTime": isoformat_utc(end), "timeZone": timezone_name},
        "attendees": [{"email": attendee_email, "displayName": attendee_name}],
        "reminders": {"useDefault": False, "overrides": REMINDER_OVERRIDES},
    }
    headers = {"Authorization": f"Bearer {access_token}", "Content-Type": "application/json"}
    response = _send(
        "POST",
        PRIMARY_EVENTS_URL,
        http_client,
        params={"sendUpdates": "all"},
        headers=headers,
        json=event,
    )
    if response.status_code >= 400:
        raise UpstreamCalendarError("Failed to create calendar event", response.text)

    event_id = response.json()["id"]
    logger.info("Created calendar event %s", event_id)
    return event_id
