from __future__ import annotations

import json
import os
from datetime import datetime, timedelta, timezone
from typing import Any, Callable

import httpx
import pytest

# Settings are cached on first use, so the environment is prepared before
# any application module is imported.
os.environ["CRM_SUPABASE_URL"] = "https://records.test"
os.environ["CRM_SUPABASE_SERVICE_ROLE_KEY"] = "service-key"
os.environ["GOOGLE_CLIENT_ID"] = "client-id"
os.environ["GOOGLE_CLIENT_SECRET"] = "client-secret"
os.environ["INTERN_PASSWORD"] = "team-access"
os.environ["SESSION_SECRET"] = "test-session-secret"
os.environ.pop("RESEND_API_KEY", None)
os.environ.pop("WORKFLOW_WEBHOOK_URL", None)

from core.config import get_settings  # noqa: E402
from core.errors import RecordStoreError  # noqa: E402
from core.rate_limit import limiter  # noqa: E402
from services.availability import parse_instant  # noqa: E402
from services.record_store import RecordStore  # noqa: E402

get_settings.cache_clear()
limiter.enabled = False


class FakeRecordStore(RecordStore):
    """In-memory stand-in for the PostgREST record store."""

    # Primary keys of the tables written with merge-duplicates.
    MERGE_KEYS = ("user_id", "session_id")

    def __init__(self, tables: dict[str, list[dict]] | None = None, failing_updates: set[str] | None = None) -> None:
        self.tables: dict[str, list[dict]] = {name: [dict(row) for row in rows] for name, rows in (tables or {}).items()}
        self.failing_updates = failing_updates or set()
        self.calls: list[tuple[str, str]] = []
        self._next_id = 1

    @staticmethod
    def _matches(row: dict, filters: dict[str, Any]) -> bool:
        return all(str(row.get(column)) == str(value) for column, value in filters.items())

    def select(self, table: str, filters: dict[str, Any]) -> list[dict]:
        self.calls.append(("select", table))
        return [dict(row) for row in self.tables.get(table, []) if self._matches(row, filters)]

    def insert(
        self,
        table: str,
        payload: dict[str, Any],
        *,
        return_representation: bool = True,
        merge_duplicates: bool = False,
    ) -> list[dict]:
        self.calls.append(("insert", table))
        rows = self.tables.setdefault(table, [])
        key = next((column for column in self.MERGE_KEYS if column in payload), None)
        if merge_duplicates and key:
            for row in rows:
                if row.get(key) == payload[key]:
                    row.update(payload)
                    return [dict(row)] if return_representation else []
        row = {"id": f"{table}-{self._next_id}", **payload}
        self._next_id += 1
        rows.append(row)
        return [dict(row)] if return_representation else []

    def update(
        self,
        table: str,
        filters: dict[str, Any],
        payload: dict[str, Any],
        *,
        return_representation: bool = False,
    ) -> list[dict]:
        self.calls.append(("update", table))
        if table in self.failing_updates:
            raise RecordStoreError(f"Record store request to {table} failed", status=500, body="boom")
        updated = []
        for row in self.tables.get(table, []):
            if self._matches(row, filters):
                row.update(payload)
                updated.append(dict(row))
        return updated if return_representation else []

    def mutations(self) -> list[tuple[str, str]]:
        return [call for call in self.calls if call[0] != "select"]


class FakeCalendar:
    """Serial event store answering the Google Calendar and token endpoints."""

    def __init__(self, events: list[dict] | None = None) -> None:
        self.events: list[dict] = list(events or [])
        self.requests: list[httpx.Request] = []
        self.fail_create = False
        self.fail_refresh = False
        self.before_list: Callable[[], None] | None = None

    def add_event(self, start: datetime, end: datetime, event_id: str | None = None) -> None:
        self.events.append(
            {
                "id": event_id or f"evt-{len(self.events) + 1}",
                "start": {"dateTime": start.isoformat()},
                "end": {"dateTime": end.isoformat()},
            }
        )

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.url.host == "oauth2.googleapis.com":
            if self.fail_refresh:
                return httpx.Response(400, json={"error": "invalid_grant"})
            return httpx.Response(200, json={"access_token": "fresh-token", "expires_in": 3599})

        if request.method == "GET":
            if self.before_list is not None:
                self.before_list()
            time_min = parse_instant(request.url.params["timeMin"])
            time_max = parse_instant(request.url.params["timeMax"])
            items = []
            for event in self.events:
                start = event["start"].get("dateTime")
                end = event["end"].get("dateTime")
                if start and end and not (parse_instant(start) < time_max and parse_instant(end) > time_min):
                    continue
                items.append(event)
            return httpx.Response(200, json={"items": items})

        if self.fail_create:
            return httpx.Response(403, text="quota exceeded")
        event = json.loads(request.content)
        event["id"] = f"evt-{len(self.events) + 1}"
        self.events.append(event)
        return httpx.Response(200, json=event)

    def client(self) -> httpx.Client:
        return httpx.Client(transport=httpx.MockTransport(self.handler))

    def calls_to(self, host: str, method: str | None = None) -> list[httpx.Request]:
        return [r for r in self.requests if r.url.host == host and (method is None or r.method == method)]


def credential_row(expires_at: datetime, access_token: str = "stored-token") -> dict:
    return {
        "user_id": "default",
        "access_token": access_token,
        "refresh_token": "refresh-token",
        "expiry_date": int(expires_at.timestamp() * 1000),
    }


NOW = datetime(2025, 6, 2, 8, 7, tzinfo=timezone.utc)  # Monday 10:07 in Zurich


@pytest.fixture()
def now() -> datetime:
    return NOW


@pytest.fixture()
def calendar() -> FakeCalendar:
    return FakeCalendar()


@pytest.fixture()
def application() -> dict:
    return {
        "id": "app-1",
        "first_name": "Lena",
        "last_name": "Meier",
        "email": "lena@example.com",
        "program_interest": "mastermind",
        "appointment_booked": False,
        "status": "pending",
    }


@pytest.fixture()
def store(application: dict, now: datetime) -> FakeRecordStore:
    return FakeRecordStore(
        {
            "calendar_credentials": [credential_row(now + timedelta(hours=1))],
            "lp_coaching_applications": [application],
        }
    )
