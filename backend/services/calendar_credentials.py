"""Shared Google Calendar credentials kept in the record store.

There is a single credential row (``user_id = default``) for the calendar
owner. Every calendar call reads it first; tokens that expire within five
minutes are refreshed and written back before use. Two concurrent refreshes
are possible and both writes are last-write-wins.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

import httpx

from core.config import get_settings
from core.errors import ConfigurationError, CredentialsNotFoundError, UpstreamAuthError
from services.record_store import RecordStore

logger = logging.getLogger(__name__)

GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"  # noqa: S105 - OAuth endpoint URL
CREDENTIALS_TABLE = "calendar_credentials"
CREDENTIALS_OWNER = "default"
REFRESH_MARGIN = timedelta(minutes=5)


@dataclass(frozen=True)
class CalendarCredentials:
    access_token: str
    refresh_token: str
    expires_at: datetime

    @classmethod
    def from_record(cls, record: dict) -> CalendarCredentials:
        return cls(
            access_token=record["access_token"],
            refresh_token=record["refresh_token"],
            expires_at=datetime.fromtimestamp(int(record["expiry_date"]) / 1000, tz=timezone.utc),
        )

    def needs_refresh(self, now: datetime) -> bool:
        return self.expires_at < now + REFRESH_MARGIN


def _epoch_ms(value: datetime) -> int:
    return int(value.timestamp() * 1000)


def _refresh_access_token(
    store: RecordStore,
    credentials: CalendarCredentials,
    now: datetime,
    http_client: httpx.Client | None = None,
) -> CalendarCredentials:
    settings = get_settings()
    data = {
        "client_id": settings.google_client_id,
        "client_secret": settings.google_client_secret,
        "refresh_token": credentials.refresh_token,
        "grant_type": "refresh_token",
    }
    headers = {"Content-Type": "application/x-www-form-urlencoded"}
    try:
        if http_client is not None:
            response = http_client.post(GOOGLE_TOKEN_URL, data=data, headers=headers)
        else:
            with httpx.Client(timeout=20) as client:
                response = client.post(GOOGLE_TOKEN_URL, data=data, headers=headers)
    except httpx.HTTPError as exc:
        logger.error("Google token endpoint unreachable: %s", exc)
        raise UpstreamAuthError("Failed to refresh access token") from exc

    if response.status_code >= 400:
        logger.error("Google token refresh failed (%s): %s", response.status_code, response.text)
        raise UpstreamAuthError("Failed to refresh access token")

    try:
        tokens = response.json()
    except ValueError:
        tokens = {}
    if not isinstance(tokens, dict) or not tokens.get("access_token"):
        logger.error("Google token refresh returned no access token: %s", response.text)
        raise UpstreamAuthError("Failed to refresh access token")

    refreshed = CalendarCredentials(
        access_token=tokens["access_token"],
        refresh_token=credentials.refresh_token,
        expires_at=now + timedelta(seconds=int(tokens.get("expires_in", 3600))),
    )
    store.update(
        CREDENTIALS_TABLE,
        {"user_id": CREDENTIALS_OWNER},
        {
            "access_token": refreshed.access_token,
            "expiry_date": _epoch_ms(refreshed.expires_at),
            "updated_at": now.isoformat(),
        },
    )
    logger.info("Google Calendar token refreshed, valid until %s", refreshed.expires_at.isoformat())
    return refreshed


def get_valid_credentials(
    store: RecordStore,
    http_client: httpx.Client | None = None,
    now: datetime | None = None,
) -> CalendarCredentials:
    settings = get_settings()
    if not settings.google_oauth_configured:
        logger.error("Missing Google OAuth client id/secret")
        raise ConfigurationError("Google Calendar not configured")

    rows = store.select(CREDENTIALS_TABLE, {"user_id": CREDENTIALS_OWNER})
    if not rows:
        raise CredentialsNotFoundError("No calendar credentials found. Please connect Google Calendar first.")

    now = now or datetime.now(tz=timezone.utc)
    credentials = CalendarCredentials.from_record(rows[0])
    if credentials.needs_refresh(now):
        logger.info("Google Calendar token expired or about to expire, refreshing")
        credentials = _refresh_access_token(store, credentials, now, http_client)
    return credentials


def store_initial_credentials(
    store: RecordStore,
    *,
    access_token: str,
    refresh_token: str,
    expires_in: int,
    now: datetime | None = None,
) -> CalendarCredentials:
    now = now or datetime.now(tz=timezone.utc)
    credentials = CalendarCredentials(
        access_token=access_token,
        refresh_token=refresh_token,
        expires_at=now + timedelta(seconds=expires_in),
    )
    store.insert(
        CREDENTIALS_TABLE,
        {
            "user_id": CREDENTIALS_OWNER,
            "access_token": credentials.access_token,
            "refresh_token": credentials.refresh_token,
            "expiry_date": _epoch_ms(credentials.expires_at),
            "updated_at": now.isoformat(),
        },
        return_representation=False,
        merge_duplicates=True,
    )
    logger.info("Stored Google Calendar credentials")
    return credentials
