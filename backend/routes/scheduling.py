import logging

from fastapi import APIRouter, Depends, Query, Request, Response

from core.config import get_settings
from core.errors import ConfigurationError, PartialFailureError
from core.rate_limit import limiter
from schemas.scheduling import (
    AppointmentDetails,
    AvailabilityResponse,
    BookingRequest,
    BookingResponse,
    DateRange,
    SlotResponse,
)
from services.availability import isoformat_utc, parse_instant
from services.booking import BookingResult, applicant_name, book, format_german_date, format_german_time
from services.email import send_appointment_confirmation
from services.record_store import RecordStore, get_record_store
from services.scheduling import DEFAULT_DAYS_AHEAD, list_availability
from services.workflow_webhook import notify_workflow

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["scheduling"])
settings = get_settings()


def _require_calendar_configured() -> None:
    if not get_settings().google_oauth_configured:
        logger.error("Missing Google OAuth client id/secret")
        raise ConfigurationError("Google Calendar not configured")


def _notify_booking(result: BookingResult, application_id: str) -> None:
    application = result.application
    name = applicant_name(application)
    try:
        send_appointment_confirmation(name, application.get("email", ""), result.formatted_date, result.formatted_time)
    except Exception:
        logger.exception("Confirmation email for application %s failed", application_id)

    try:
        notify_workflow(
            "appointment_booked",
            {
                "application_id": application_id,
                "appointment_datetime": isoformat_utc(result.appointment_datetime),
                "calendar_event_id": result.calendar_event_id,
                "first_name": application.get("first_name"),
                "last_name": application.get("last_name"),
                "email": application.get("email"),
            },
        )
    except Exception:
        logger.exception("Workflow notification for application %s failed", application_id)


@router.get("/available-slots", response_model=AvailabilityResponse)
def available_slots(
    response: Response,
    days: int = Query(default=DEFAULT_DAYS_AHEAD, ge=0, le=60),
    store: RecordStore = Depends(get_record_store),
) -> AvailabilityResponse:
    _require_calendar_configured()
    listing = list_availability(store, days)
    summary = listing.summary

    response.headers["Cache-Control"] = "no-cache, no-store, must-revalidate"
    return AvailabilityResponse(
        range=DateRange(start=isoformat_utc(listing.window_start), end=isoformat_utc(listing.window_end)),
        total_slots=summary.total_slots,
        available_slots=summary.available_slots,
        slots_by_date={
            day: [SlotResponse(**slot.to_dict()) for slot in slots] for day, slots in summary.slots_by_date.items()
        },
    )


@router.post("/book-appointment", response_model=BookingResponse)
@limiter.limit(settings.rate_limit_forms)
def book_appointment(
    request: Request,
    payload: BookingRequest,
    store: RecordStore = Depends(get_record_store),
) -> BookingResponse:
    try:
        result = book(store, payload.application_id, payload.datetime, payload.notes)
    except PartialFailureError as exc:
        # The calendar event exists, so the applicant does have an appointment.
        appointment = parse_instant(exc.appointment_datetime)
        return BookingResponse(
            message="Termin erfolgreich gebucht!",
            appointment=AppointmentDetails(
                datetime=exc.appointment_datetime,
                formatted_date=format_german_date(appointment),
                formatted_time=format_german_time(appointment),
                calendar_event_id=exc.calendar_event_id,
            ),
            application=None,
            warning=exc.message,
        )

    _notify_booking(result, payload.application_id)
    return BookingResponse(
        message="Termin erfolgreich gebucht!",
        appointment=AppointmentDetails(
            datetime=isoformat_utc(result.appointment_datetime),
            formatted_date=result.formatted_date,
            formatted_time=result.formatted_time,
            calendar_event_id=result.calendar_event_id,
        ),
        application=result.application,
    )
