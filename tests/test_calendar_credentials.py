"""Credential lookup, early refresh and first-time storage."""

from __future__ import annotations

from datetime import datetime, timedelta
from unittest.mock import patch
from urllib.parse import parse_qs

import httpx
import pytest

from conftest import FakeCalendar, FakeRecordStore, credential_row
from core.config import get_settings
from core.errors import ConfigurationError, CredentialsNotFoundError, UpstreamAuthError
from services.calendar_credentials import get_valid_credentials, store_initial_credentials
from services.google_cal import list_busy_intervals

pytestmark = pytest.mark.unit

TOKEN_HOST = "oauth2.googleapis.com"


def _store_with_expiry(expires_at: datetime) -> FakeRecordStore:
    return FakeRecordStore({"calendar_credentials": [credential_row(expires_at)]})


def test_valid_token_is_used_without_refresh(now: datetime, calendar: FakeCalendar) -> None:
    store = _store_with_expiry(now + timedelta(minutes=30))

    credentials = get_valid_credentials(store, http_client=calendar.client(), now=now)

    assert credentials.access_token == "stored-token"
    assert calendar.requests == []
    assert store.mutations() == []


def test_token_expiring_within_five_minutes_is_refreshed_once_before_listing(
    now: datetime, calendar: FakeCalendar
) -> None:
    store = _store_with_expiry(now + timedelta(minutes=4))
    client = calendar.client()

    credentials = get_valid_credentials(store, http_client=client, now=now)
    list_busy_intervals(credentials.access_token, now, now + timedelta(days=1), http_client=client)

    token_calls = calendar.calls_to(TOKEN_HOST)
    assert len(token_calls) == 1
    assert store.mutations() == [("update", "calendar_credentials")]
    # refresh happened before the listing call, which used the new token
    assert calendar.requests[0].url.host == TOKEN_HOST
    assert calendar.requests[1].headers["Authorization"] == "Bearer fresh-token"

    form = parse_qs(token_calls[0].content.decode())
    assert form["grant_type"] == ["refresh_token"]
    assert form["refresh_token"] == ["refresh-token"]

    row = store.tables["calendar_credentials"][0]
    assert row["access_token"] == "fresh-token"
    assert row["refresh_token"] == "refresh-token"
    assert row["expiry_date"] == int((now + timedelta(seconds=3599)).timestamp() * 1000)
    assert credentials.refresh_token == "refresh-token"


def test_already_expired_token_is_refreshed(now: datetime, calendar: FakeCalendar) -> None:
    store = _store_with_expiry(now - timedelta(hours=2))

    credentials = get_valid_credentials(store, http_client=calendar.client(), now=now)

    assert credentials.access_token == "fresh-token"
    assert credentials.expires_at == now + timedelta(seconds=3599)


def test_refresh_failure_raises_and_keeps_stored_token(now: datetime, calendar: FakeCalendar) -> None:
    store = _store_with_expiry(now + timedelta(minutes=1))
    calendar.fail_refresh = True

    with pytest.raises(UpstreamAuthError):
        get_valid_credentials(store, http_client=calendar.client(), now=now)

    assert len(calendar.calls_to(TOKEN_HOST)) == 1
    assert store.mutations() == []


def test_missing_record_raises(now: datetime, calendar: FakeCalendar) -> None:
    with pytest.raises(CredentialsNotFoundError):
        get_valid_credentials(FakeRecordStore(), http_client=calendar.client(), now=now)


def test_missing_oauth_client_raises_before_touching_the_store(now: datetime) -> None:
    store = _store_with_expiry(now + timedelta(hours=1))
    unconfigured = get_settings().model_copy(update={"google_client_secret": None})

    with patch("services.calendar_credentials.get_settings", return_value=unconfigured):
        with pytest.raises(ConfigurationError):
            get_valid_credentials(store, now=now)

    assert store.calls == []


def test_initial_credentials_are_merged_into_the_single_row(now: datetime) -> None:
    store = _store_with_expiry(now - timedelta(days=30))

    store_initial_credentials(store, access_token="new-access", refresh_token="new-refresh", expires_in=3600, now=now)

    rows = store.tables["calendar_credentials"]
    assert len(rows) == 1
    assert rows[0]["access_token"] == "new-access"
    assert rows[0]["refresh_token"] == "new-refresh"
    assert rows[0]["user_id"] == "default"


def test_token_response_without_access_token_raises(now: datetime) -> None:
    store = _store_with_expiry(now - timedelta(minutes=1))
    client = httpx.Client(transport=httpx.MockTransport(lambda request: httpx.Response(200, json={"scope": "calendar"})))

    with pytest.raises(UpstreamAuthError):
        get_valid_credentials(store, http_client=client, now=now)

    assert store.mutations() == []


def test_unreachable_token_endpoint_raises(now: datetime) -> None:
    store = _store_with_expiry(now - timedelta(minutes=1))

    def refuse(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(UpstreamAuthError):
        get_valid_credentials(store, http_client=httpx.Client(transport=httpx.MockTransport(refuse)), now=now)
