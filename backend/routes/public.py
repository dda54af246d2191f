import logging

from fastapi import APIRouter, Depends, HTTPException, Request

from core.config import get_settings
from core.errors import RecordStoreError, ValidationError
from core.rate_limit import limiter
from schemas.public import (
    ApplicationRequest,
    BehaviorEventRequest,
    CreatedResponse,
    FormEventRequest,
    LeadRequest,
    MastermindApplicationRequest,
    MastermindLeadRequest,
    MetaPixelEventRequest,
    PageViewRequest,
    SessionEventRequest,
)
from services.record_store import RecordStore, get_record_store
from services.tracking import (
    record_behavior_event,
    record_form_event,
    record_meta_pixel_event,
    record_session_event,
)
from services.workflow_webhook import forward_to_workflow, notify_workflow
from utils.sanitization import sanitize_answers, sanitize_optional, sanitize_text

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["public"])
settings = get_settings()

LEADS_TABLE = "lp_leads"
APPLICATIONS_TABLE = "lp_coaching_applications"
MASTERMIND_APPLICATIONS_TABLE = "mastermind_applications"
MASTERMIND_CAMPAIGN = "mastermind_application"
MASTERMIND_GOALS_LIMIT = 500
APPLICATION_STORE_FAILED = "Fehler beim Speichern der Bewerbung"


def _first_id(rows: list[dict]):
    return rows[0].get("id") if rows else None


@router.post("/leads", response_model=CreatedResponse, status_code=201)
@limiter.limit(settings.rate_limit_forms)
def create_lead(
    request: Request,
    payload: LeadRequest,
    store: RecordStore = Depends(get_record_store),
) -> CreatedResponse:
    rows = store.insert(
        LEADS_TABLE,
        {
            "name": sanitize_text(payload.name),
            "email": payload.email.lower(),
            "company": sanitize_optional(payload.company),
            "phone": sanitize_optional(payload.phone),
            "campaign": sanitize_optional(payload.campaign) or "kontakt",
            "from_page": payload.from_page or "/kontakt",
            "utm_source": payload.utm_source or None,
            "utm_medium": payload.utm_medium or None,
            "utm_campaign": payload.utm_campaign or None,
            "utm_content": payload.utm_content or None,
            "utm_term": payload.utm_term or None,
        },
    )
    return CreatedResponse(success=True, id=_first_id(rows))


@router.post("/lp-application", response_model=CreatedResponse, status_code=201)
@limiter.limit(settings.rate_limit_forms)
def create_application(
    request: Request,
    payload: ApplicationRequest,
    store: RecordStore = Depends(get_record_store),
) -> CreatedResponse:
    utm = {
        "utm_source": request.headers.get("x-utm-source"),
        "utm_medium": request.headers.get("x-utm-medium"),
        "utm_campaign": request.headers.get("x-utm-campaign"),
    }
    application = {
        "first_name": sanitize_text(payload.first_name),
        "last_name": sanitize_text(payload.last_name),
        "email": payload.email.lower(),
        "phone": sanitize_text(payload.phone),
        "company": sanitize_optional(payload.company),
        "position": sanitize_optional(payload.position),
        "program_interest": payload.program,
        "questionnaire_answers": sanitize_answers(payload.questionnaire_answers),
        "motivation": sanitize_optional(payload.motivation),
        "source": "lp_coaching",
        **utm,
        "session_id": request.headers.get("x-session-id"),
        "status": "pending",
    }
    rows = store.insert(APPLICATIONS_TABLE, application)
    application_id = _first_id(rows)

    # The webhook only notifies; the application is already stored.
    try:
        notify_workflow(
            "application_submitted",
            {
                "application_id": application_id,
                **{key: application[key] for key in ("first_name", "last_name", "email", "phone", "company", "position")},
                "program": payload.program,
                "questionnaire_answers": application["questionnaire_answers"],
                "motivation": application["motivation"],
                "source": "lp_coaching",
                **utm,
            },
        )
    except Exception:
        logger.exception("Workflow notification for application %s failed", application_id)

    return CreatedResponse(success=True, id=application_id)


@router.post("/lp-webhook")
async def proxy_lp_webhook(request: Request) -> dict:
    try:
        payload = await request.json()
    except Exception as exc:
        raise HTTPException(status_code=400, detail="Invalid request") from exc

    try:
        forward_to_workflow(payload)
    except Exception:
        logger.warning("Landing-page webhook forwarding failed", exc_info=True)
    return {"success": True}


@router.post("/meta-pixel-event")
def meta_pixel_event(
    payload: MetaPixelEventRequest,
    store: RecordStore = Depends(get_record_store),
) -> dict:
    if not record_meta_pixel_event(store, payload):
        return {"success": True, "warning": "Database insert failed but event was received"}
    return {"success": True}


@router.get("/meta-pixel-event")
def meta_pixel_event_status() -> dict:
    return {"status": "ok", "message": "Meta Pixel Event API is running"}


@router.post("/track")
def track_page_view(payload: PageViewRequest) -> dict:
    logger.info(
        "Page view: page=%s referrer=%s utm_source=%s timestamp=%s",
        payload.page,
        payload.referrer,
        payload.utm_source,
        payload.timestamp,
    )
    return {"success": True, "message": "Page view tracked"}


@router.get("/track")
def track_status() -> dict:
    return {"status": "ok", "message": "Tracking API is running"}


def _require(*checks: tuple[object, str]) -> None:
    """Raise the message of the first missing value, in the order the form shows them."""
    for value, message in checks:
        if not value:
            raise ValidationError(message)


def _insert_submission(store: RecordStore, table: str, payload: dict) -> list[dict]:
    try:
        return store.insert(table, payload)
    except RecordStoreError as exc:
        raise RecordStoreError(APPLICATION_STORE_FAILED, status=exc.status, body=exc.body) from exc


@router.post("/mastermind", response_model=CreatedResponse, status_code=201)
@limiter.limit(settings.rate_limit_forms)
def create_mastermind_lead(
    request: Request,
    payload: MastermindLeadRequest,
    store: RecordStore = Depends(get_record_store),
) -> CreatedResponse:
    _require(
        (payload.email, "Email ist erforderlich"),
        (payload.name, "Name ist erforderlich"),
        (payload.company, "Unternehmen ist erforderlich"),
        (payload.revenue, "Jahresumsatz ist erforderlich"),
        (payload.goals, "Ziele sind erforderlich"),
    )
    # lp_leads has no revenue/goals columns; they ride in the utm fields the form leaves empty.
    goals = sanitize_text(payload.goals)
    rows = _insert_submission(
        store,
        LEADS_TABLE,
        {
            "name": sanitize_text(payload.name),
            "email": payload.email.lower(),
            "company": sanitize_text(payload.company),
            "phone": None,
            "campaign": MASTERMIND_CAMPAIGN,
            "from_page": "/mastermind",
            "utm_source": payload.utm_source,
            "utm_medium": payload.utm_medium,
            "utm_campaign": payload.utm_campaign or f"revenue:{sanitize_text(payload.revenue)}",
            "utm_content": goals[:MASTERMIND_GOALS_LIMIT],
            "utm_term": payload.utm_term,
        },
    )
    return CreatedResponse(success=True, id=_first_id(rows))


@router.post("/mastermind-application", response_model=CreatedResponse, status_code=201)
@limiter.limit(settings.rate_limit_forms)
def create_mastermind_application(
    request: Request,
    payload: MastermindApplicationRequest,
    store: RecordStore = Depends(get_record_store),
) -> CreatedResponse:
    _require(
        (payload.email, "Email ist erforderlich"),
        (payload.first_name and payload.last_name, "Name ist erforderlich"),
        (payload.company, "Unternehmen ist erforderlich"),
    )
    challenges = sanitize_optional(payload.current_challenges)
    rows = _insert_submission(
        store,
        MASTERMIND_APPLICATIONS_TABLE,
        {
            "first_name": sanitize_text(payload.first_name),
            "last_name": sanitize_text(payload.last_name),
            "email": payload.email.lower(),
            "phone": sanitize_optional(payload.phone),
            "company": sanitize_text(payload.company),
            "position": sanitize_optional(payload.position),
            "motivation": challenges,
            "current_challenges": challenges,
            "goals": sanitize_optional(payload.goals),
            "seminar_date": payload.seminar_date,
            "status": "pending",
            "metadata": {},
        },
    )
    return CreatedResponse(success=True, id=_first_id(rows))


@router.post("/lp-session")
def lp_session(
    payload: SessionEventRequest,
    store: RecordStore = Depends(get_record_store),
) -> dict:
    # Session tracking never fails the page; write errors are logged in the service.
    record_session_event(store, payload)
    return {"success": True}


@router.get("/lp-session")
def lp_session_status() -> dict:
    return {"status": "ok", "message": "LP Session Tracking API"}


@router.post("/lp-form-event")
def lp_form_event(
    payload: FormEventRequest,
    store: RecordStore = Depends(get_record_store),
) -> dict:
    record_form_event(store, payload)
    return {"success": True}


@router.get("/lp-form-event")
def lp_form_event_status() -> dict:
    return {"status": "ok", "message": "LP Form Event Tracking API"}


@router.post("/lp-behavior")
def lp_behavior(
    payload: BehaviorEventRequest,
    store: RecordStore = Depends(get_record_store),
) -> dict:
    record_behavior_event(store, payload)
    return {"success": True}


@router.get("/lp-behavior")
def lp_behavior_status() -> dict:
    return {"status": "ok", "message": "LP Behavior API is running"}
