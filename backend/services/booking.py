"""Booking of an appointment slot for a coaching application.

Availability is re-checked against the calendar right before the event is
created. This narrows the double-booking window but does not close it: the
calendar offers no lock, so a second request can still create an event for
the same instant between our re-check and our create call.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

import httpx

from core.errors import (
    ConflictError,
    NotFoundError,
    PartialFailureError,
    RecordStoreError,
    ValidationError,
)
from services.availability import BUSINESS_TIMEZONE, SLOT_DURATION_MINUTES, isoformat_utc, parse_instant
from services.calendar_credentials import get_valid_credentials
from services.google_cal import create_calendar_event, list_busy_intervals
from services.record_store import RecordStore

logger = logging.getLogger(__name__)

APPLICATIONS_TABLE = "lp_coaching_applications"
BOOKED_STATUS = "contacted"

PROGRAM_NAMES = {
    "gruppen_coaching": "Gruppen-Coaching",
    "mastermind": "Mastermind",
    "beide": "Gruppen-Coaching & Mastermind",
}

GERMAN_WEEKDAYS = ("Montag", "Dienstag", "Mittwoch", "Donnerstag", "Freitag", "Samstag", "Sonntag")
GERMAN_MONTHS = (
    "Januar",
    "Februar",
    "März",
    "April",
    "Mai",
    "Juni",
    "Juli",
    "August",
    "September",
    "Oktober",
    "November",
    "Dezember",
)


@dataclass(frozen=True)
class BookingResult:
    appointment_datetime: datetime
    formatted_date: str
    formatted_time: str
    calendar_event_id: str
    application: dict


def format_german_date(instant: datetime) -> str:
    local = instant.astimezone(BUSINESS_TIMEZONE)
    return f"{GERMAN_WEEKDAYS[local.weekday()]}, {local.day}. {GERMAN_MONTHS[local.month - 1]} {local.year}"


def format_german_time(instant: datetime) -> str:
    return instant.astimezone(BUSINESS_TIMEZONE).strftime("%H:%M")


def applicant_name(application: dict) -> str:
    return f"{application.get('first_name', '')} {application.get('last_name', '')}".strip()


def _parse_requested(requested: str | datetime | None) -> datetime:
    if isinstance(requested, datetime):
        if requested.tzinfo is None:
            raise ValidationError("datetime muss eine Zeitzone enthalten")
        return requested
    try:
        return parse_instant(requested)
    except ValueError as exc:
        raise ValidationError("datetime ist kein gültiger ISO-Zeitstempel") from exc


def book(
    store: RecordStore,
    application_id: str | None,
    requested: str | datetime | None,
    notes: str | None = None,
    *,
    now: datetime | None = None,
    http_client: httpx.Client | None = None,
) -> BookingResult:
    if not application_id or not requested:
        raise ValidationError("applicationId und datetime sind erforderlich")

    appointment = _parse_requested(requested)
    now = now or datetime.now(tz=timezone.utc)
    if appointment <= now:
        raise ValidationError("Termin muss in der Zukunft liegen")

    applications = store.select(APPLICATIONS_TABLE, {"id": application_id})
    if not applications:
        raise NotFoundError("Bewerbung nicht gefunden")
    application = applications[0]

    if application.get("appointment_booked"):
        raise ConflictError(
            "Du hast bereits einen Termin gebucht",
            existing_datetime=application.get("appointment_datetime"),
        )

    credentials = get_valid_credentials(store, http_client=http_client, now=now)

    slot_end = appointment + timedelta(minutes=SLOT_DURATION_MINUTES)
    busy = list_busy_intervals(credentials.access_token, appointment, slot_end, http_client=http_client)
    if busy:
        logger.info("Slot %s was taken since it was listed", isoformat_utc(appointment))
        raise ConflictError("Dieser Termin ist leider nicht mehr verfügbar. Bitte wähle einen anderen.")

    name = applicant_name(application)
    program = application.get("program_interest") or ""
    event_id = create_calendar_event(
        credentials.access_token,
        appointment,
        summary=f"Kennenlerngespräch: {name}",
        description=(
            f"Bewerbungsgespräch für {PROGRAM_NAMES.get(program, program)}\n\n"
            f"Bewerber: {name}\nE-Mail: {application.get('email', '')}"
        ),
        attendee_email=application.get("email", ""),
        attendee_name=name,
        http_client=http_client,
    )

    appointment_iso = isoformat_utc(appointment)
    try:
        updated = store.update(
            APPLICATIONS_TABLE,
            {"id": application_id},
            {
                "appointment_booked": True,
                "appointment_datetime": appointment_iso,
                "appointment_notes": notes or None,
                "google_calendar_event_id": event_id,
                "status": BOOKED_STATUS,
                "updated_at": now.isoformat(),
            },
            return_representation=True,
        )
    except (RecordStoreError, httpx.HTTPError) as exc:
        logger.error(
            "Calendar event %s created but application %s was not updated: %s",
            event_id,
            application_id,
            getattr(exc, "body", None) or exc,
        )
        raise PartialFailureError(
            "Termin wurde erstellt, aber Bewerbung konnte nicht aktualisiert werden",
            calendar_event_id=event_id,
            appointment_datetime=appointment_iso,
        ) from exc

    return BookingResult(
        appointment_datetime=appointment,
        formatted_date=format_german_date(appointment),
        formatted_time=format_german_time(appointment),
        calendar_event_id=event_id,
        application=updated[0] if updated else application,
    )
