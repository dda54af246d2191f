from __future__ import annotations

import logging

from fastapi import APIRouter, HTTPException, Response
from fastapi.responses import RedirectResponse

from core.config import get_settings
from schemas.public import InternLoginRequest
from utils.security import (
    INTERN_SESSION_COOKIE_NAME,
    INTERN_SESSION_TTL_SECONDS,
    check_intern_password,
    make_signed_value,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])


@router.post("/intern-login")
def intern_login(payload: InternLoginRequest, response: Response) -> dict:
    if not check_intern_password(payload.password):
        logger.warning("Rejected intern login")
        raise HTTPException(status_code=401, detail="Invalid password")

    response.set_cookie(
        key=INTERN_SESSION_COOKIE_NAME,
        value=make_signed_value("intern"),
        httponly=True,
        secure=get_settings().environment == "production",
        samesite="lax",
        max_age=INTERN_SESSION_TTL_SECONDS,
        path="/",
    )
    return {"success": True}


@router.api_route("/intern-logout", methods=["GET", "POST"])
def intern_logout() -> RedirectResponse:
    response = RedirectResponse("/intern", status_code=303)
    response.delete_cookie(INTERN_SESSION_COOKIE_NAME, path="/")
    return response
