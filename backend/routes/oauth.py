from __future__ import annotations

import logging
import secrets
from urllib.parse import urlencode

import httpx
from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import RedirectResponse

from core.config import get_settings
from core.errors import UpstreamAuthError
from services.calendar_credentials import GOOGLE_TOKEN_URL, store_initial_credentials
from services.record_store import RecordStore, get_record_store
from utils.security import make_signed_value, require_intern_session, verify_signed_value

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["oauth"])

GOOGLE_AUTH_URL = "https://accounts.google.com/o/oauth2/v2/auth"
GOOGLE_CALENDAR_SCOPE = "https://www.googleapis.com/auth/calendar"
STATE_PREFIX = "calendar-connect"


def _callback_url() -> str:
    return f"{get_settings().backend_api_url.rstrip('/')}/api/auth/google/callback"


def _frontend_redirect(path: str) -> str:
    settings = get_settings()
    return f"{settings.app_url.rstrip('/')}{path}"


@router.get("/google", dependencies=[Depends(require_intern_session)])
def auth_google() -> RedirectResponse:
    settings = get_settings()
    if not settings.google_oauth_configured:
        raise HTTPException(status_code=500, detail="Google Calendar not configured")

    signed_state = make_signed_value(f"{STATE_PREFIX}:{secrets.token_urlsafe(8)}", ttl_seconds=600)
    query = urlencode(
        {
            "client_id": settings.google_client_id,
            "redirect_uri": _callback_url(),
            "response_type": "code",
            "scope": GOOGLE_CALENDAR_SCOPE,
            "access_type": "offline",
            "prompt": "consent",
            "state": signed_state,
        }
    )
    return RedirectResponse(f"{GOOGLE_AUTH_URL}?{query}")


@router.get("/google/callback")
def auth_google_callback(
    code: str = Query(...),
    state: str = Query(...),
    store: RecordStore = Depends(get_record_store),
) -> RedirectResponse:
    settings = get_settings()
    decoded_state = verify_signed_value(state)
    if not decoded_state or not decoded_state.startswith(f"{STATE_PREFIX}:"):
        raise HTTPException(status_code=400, detail="Invalid OAuth state")

    try:
        with httpx.Client(timeout=20) as client:
            token_response = client.post(
                GOOGLE_TOKEN_URL,
                data={
                    "code": code,
                    "client_id": settings.google_client_id,
                    "client_secret": settings.google_client_secret,
                    "redirect_uri": _callback_url(),
                    "grant_type": "authorization_code",
                },
                headers={"Content-Type": "application/x-www-form-urlencoded"},
            )
    except httpx.HTTPError as exc:
        logger.error("Google token endpoint unreachable: %s", exc)
        raise UpstreamAuthError("Failed to exchange authorization code") from exc
    if token_response.status_code >= 400:
        logger.error("Google code exchange failed (%s): %s", token_response.status_code, token_response.text)
        raise HTTPException(status_code=400, detail="Failed to exchange authorization code")
    payload = token_response.json()

    if not payload.get("refresh_token"):
        # Google only returns a refresh token with prompt=consent on a fresh grant.
        raise HTTPException(status_code=400, detail="Google did not return a refresh token")

    store_initial_credentials(
        store,
        access_token=payload["access_token"],
        refresh_token=payload["refresh_token"],
        expires_in=int(payload.get("expires_in", 3600)),
    )
    return RedirectResponse(_frontend_redirect("/intern?calendar=connected"))
