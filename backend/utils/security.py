from __future__ import annotations

import base64
import hashlib
import hmac
from datetime import datetime, timedelta, timezone

from fastapi import HTTPException, Request

from core.config import get_settings

INTERN_SESSION_COOKIE_NAME = "intern_session"
INTERN_SESSION_TTL_SECONDS = 60 * 60 * 24


def make_signed_value(value: str, ttl_seconds: int = INTERN_SESSION_TTL_SECONDS) -> str:
    settings = get_settings()
    expires_at = int((datetime.now(tz=timezone.utc) + timedelta(seconds=ttl_seconds)).timestamp())
    payload = f"{value}.{expires_at}"
    digest = hmac.new(settings.session_secret.encode("utf-8"), payload.encode("utf-8"), hashlib.sha256).digest()
    signature = base64.urlsafe_b64encode(digest).decode("utf-8").rstrip("=")
    return f"{payload}.{signature}"


def verify_signed_value(signed_value: str) -> str | None:
    settings = get_settings()
    try:
        value, expires_at_raw, signature = signed_value.rsplit(".", 2)
        payload = f"{value}.{expires_at_raw}"
        expected_digest = hmac.new(settings.session_secret.encode("utf-8"), payload.encode("utf-8"), hashlib.sha256).digest()
        expected_signature = base64.urlsafe_b64encode(expected_digest).decode("utf-8").rstrip("=")
        if not hmac.compare_digest(signature, expected_signature):
            return None

        if int(expires_at_raw) < int(datetime.now(tz=timezone.utc).timestamp()):
            return None
        return value
    except ValueError:
        return None


def check_intern_password(provided: str) -> bool:
    expected = get_settings().intern_password
    if not expected:
        return False
    return hmac.compare_digest(provided.encode("utf-8"), expected.encode("utf-8"))


def require_intern_session(request: Request) -> None:
    cookie_value = request.cookies.get(INTERN_SESSION_COOKIE_NAME)
    if not cookie_value or verify_signed_value(cookie_value) != "intern":
        raise HTTPException(status_code=401, detail="Unauthorized")
