from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone

import httpx

from services.availability import AvailabilitySummary, availability_window, generate_slots, resolve
from services.calendar_credentials import get_valid_credentials
from services.google_cal import list_busy_intervals
from services.record_store import RecordStore

logger = logging.getLogger(__name__)

DEFAULT_DAYS_AHEAD = 7


@dataclass(frozen=True)
class AvailabilityListing:
    window_start: datetime
    window_end: datetime
    summary: AvailabilitySummary


def list_availability(
    store: RecordStore,
    days_ahead: int = DEFAULT_DAYS_AHEAD,
    now: datetime | None = None,
    *,
    http_client: httpx.Client | None = None,
) -> AvailabilityListing:
    """Free slots from today through ``days_ahead`` days, checked against the owner's calendar."""
    now = now or datetime.now(tz=timezone.utc)
    window_start, window_end = availability_window(days_ahead, now=now)

    credentials = get_valid_credentials(store, http_client=http_client, now=now)
    busy = list_busy_intervals(credentials.access_token, window_start, window_end, http_client=http_client)
    summary = resolve(generate_slots(window_start, window_end, busy, now=now))

    logger.info(
        "%d of %d slots free over %d busy intervals",
        summary.available_slots,
        summary.total_slots,
        len(busy),
    )
    return AvailabilityListing(window_start=window_start, window_end=window_end, summary=summary)
