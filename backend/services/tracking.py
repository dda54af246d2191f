from __future__ import annotations

import json
import logging
from datetime import datetime, timezone

from core.errors import RecordStoreError
from schemas.public import BehaviorEventRequest, FormEventRequest, MetaPixelEventRequest, SessionEventRequest
from services.record_store import RecordStore

logger = logging.getLogger(__name__)

META_PIXEL_EVENTS_TABLE = "meta_pixel_events"


def build_meta_pixel_record(payload: MetaPixelEventRequest, now: datetime | None = None) -> dict:
    now = now or datetime.now(tz=timezone.utc)
    record = payload.model_dump()
    # Empty strings and zeros from the browser are stored as NULL.
    for key, value in record.items():
        if key != "event_data" and not value:
            record[key] = None
    record["event_data"] = payload.event_data or {}
    record["event_time"] = now.isoformat()
    return record


def record_meta_pixel_event(store: RecordStore, payload: MetaPixelEventRequest) -> bool:
    """Store one pixel event. Returns False when the insert failed; tracking never fails a request."""
    try:
        store.insert(META_PIXEL_EVENTS_TABLE, build_meta_pixel_record(payload), return_representation=False)
    except RecordStoreError:
        logger.warning("Meta pixel event %s (%s) was not stored", payload.event_name, payload.event_id)
        return False
    logger.info("Tracked meta pixel event %s (%s)", payload.event_name, payload.event_id)
    return True


SESSION_TRACKING_TABLE = "lp_session_tracking"
FORM_EVENTS_TABLE = "lp_form_events"
BEHAVIOR_TABLE = "lp_user_behavior"

BOUNCE_THRESHOLD_SECONDS = 5
CLIENT_ERROR_MESSAGE_LIMIT = 500
MODAL_TIMEOUT_MESSAGE = "form_open_timeout: Modal did not render within 2000ms"

_SESSION_FIELDS = (
    "visitor_id",
    "page_path",
    "page_url",
    "device_type",
    "browser",
    "user_agent",
    "utm_source",
    "utm_medium",
    "utm_campaign",
    "utm_content",
    "utm_term",
    "fbclid",
    "referrer",
)
_SUMMARY_FIELDS = (
    "form_max_step_reached",
    "form_step_1_completed",
    "form_step_2_completed",
    "form_step_3_completed",
    "form_abandonment_step",
    "form_time_step_1_ms",
    "form_time_step_2_ms",
    "form_time_step_3_ms",
    "form_total_time_ms",
)


def _engagement(payload: SessionEventRequest) -> dict:
    time_on_page = payload.time_on_page_seconds or 0
    return {
        "time_on_page_seconds": time_on_page,
        "max_scroll_depth": payload.max_scroll_depth or 0,
        "is_bounce": time_on_page < BOUNCE_THRESHOLD_SECONDS,
    }


def session_update(payload: SessionEventRequest, now: datetime) -> dict:
    """Columns to PATCH onto an existing session row for a non-``create`` action."""
    stamp = now.isoformat()
    action = payload.action
    if action == "heartbeat":
        update = _engagement(payload)
    elif action == "end":
        update = {**_engagement(payload), "session_end": stamp}
    elif action == "form_open":
        update = {"form_opened": True, "form_opened_at": stamp}
    elif action == "form_submit":
        update = {"form_submitted": True, "form_submitted_at": stamp}
    elif action == "cta_click":
        update = {
            "cta_clicked_at": stamp,
            "viewport_height": payload.viewport_height or None,
            "form_variant": payload.form_variant or "v1",
        }
    elif action == "modal_rendered":
        update = {
            "modal_rendered_at": stamp,
            "form_opened": True,
            "form_opened_at": stamp,
            "modal_render_time_ms": payload.modal_render_time_ms or None,
            "modal_height": payload.modal_height or None,
            "first_visible_field_y": payload.first_visible_field_y or None,
        }
    elif action == "first_interaction":
        update = {"first_interaction_at": stamp}
    elif action == "client_error":
        message = payload.error_message[:CLIENT_ERROR_MESSAGE_LIMIT] if payload.error_message else None
        update = {"has_client_error": True, "client_error_message": message}
    elif action == "modal_timeout":
        update = {"has_client_error": True, "client_error_message": MODAL_TIMEOUT_MESSAGE}
    else:
        raise ValueError(f"Unknown session action: {action}")
    update["last_heartbeat"] = stamp
    return update


def record_session_event(store: RecordStore, payload: SessionEventRequest, now: datetime | None = None) -> bool:
    """Create or advance a landing-page session row. Returns False when the store rejected the write."""
    now = now or datetime.now(tz=timezone.utc)
    try:
        if payload.action == "create":
            store.insert(
                SESSION_TRACKING_TABLE,
                {
                    "session_id": payload.session_id,
                    **{key: getattr(payload, key) or None for key in _SESSION_FIELDS},
                    "time_on_page_seconds": 0,
                    "max_scroll_depth": 0,
                    "is_bounce": True,
                    "session_start": now.isoformat(),
                    "last_heartbeat": now.isoformat(),
                },
                return_representation=False,
                merge_duplicates=True,
            )
        else:
            store.update(SESSION_TRACKING_TABLE, {"session_id": payload.session_id}, session_update(payload, now))
    except RecordStoreError:
        logger.warning("Session %s action %s was not stored", payload.session_id, payload.action)
        return False
    logger.debug("Session %s: %s", payload.session_id, payload.action)
    return True


def build_form_event_record(payload: FormEventRequest) -> dict:
    return {
        "session_id": payload.session_id,
        "visitor_id": payload.visitor_id or None,
        "event_type": payload.event_type,
        "step_number": payload.step_number or None,
        "step_name": payload.step_name or None,
        "field_name": payload.field_name or None,
        "field_type": payload.field_type or None,
        "field_filled": bool(payload.field_filled),
        "field_value_length": payload.field_value_length or None,
        "time_since_form_open_ms": payload.time_since_form_open_ms or None,
        "time_on_current_step_ms": payload.time_on_current_step_ms or None,
        "device_type": payload.device_type or None,
        "utm_source": payload.utm_source or None,
        "utm_medium": payload.utm_medium or None,
        "form_variant": payload.form_variant or "v1",
        "validation_error_field": payload.validation_error_field or None,
        "validation_error_type": payload.validation_error_type or None,
        "validation_error_message": payload.validation_error_message or None,
    }


def build_session_summary(payload: FormEventRequest) -> dict:
    """Form progress columns the client actually sent; absent values are left untouched."""
    summary = {key: getattr(payload, key) for key in _SUMMARY_FIELDS if getattr(payload, key) is not None}
    if payload.form_fields_filled is not None:
        summary["form_fields_filled"] = json.dumps(payload.form_fields_filled)
    return summary


def record_form_event(store: RecordStore, payload: FormEventRequest) -> bool:
    """Store one form event and, when asked, roll the form progress up into the session row."""
    stored = True
    try:
        store.insert(FORM_EVENTS_TABLE, build_form_event_record(payload), return_representation=False)
    except RecordStoreError:
        logger.warning("Form event %s for session %s was not stored", payload.event_type, payload.session_id)
        stored = False

    summary = build_session_summary(payload) if payload.update_session_summary else {}
    if summary:
        try:
            store.update(SESSION_TRACKING_TABLE, {"session_id": payload.session_id}, summary)
        except RecordStoreError:
            logger.warning("Session summary for %s was not updated", payload.session_id)
            stored = False
    return stored


def record_behavior_event(store: RecordStore, payload: BehaviorEventRequest) -> None:
    store.insert(
        BEHAVIOR_TABLE,
        {
            "session_id": payload.session_id,
            "page_path": payload.page_path,
            "event_type": payload.event_type,
            "scroll_depth": payload.scroll_depth or None,
            "time_on_page": payload.time_on_page or None,
            "interactions": payload.interactions or None,
            "device_type": payload.device_type or None,
            "referrer": payload.referrer or None,
            "user_agent": payload.user_agent or None,
        },
        return_representation=False,
    )
