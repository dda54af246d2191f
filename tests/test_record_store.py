from __future__ import annotations

import json
from unittest.mock import patch

import httpx
import pytest

from core.config import get_settings
from core.errors import ConfigurationError, RecordStoreError
from services.record_store import RecordStore, get_record_store

pytestmark = pytest.mark.unit


def _store(handler) -> tuple[RecordStore, list[httpx.Request]]:
    seen: list[httpx.Request] = []

    def recording(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return handler(request)

    client = httpx.Client(transport=httpx.MockTransport(recording))
    return RecordStore("https://records.test/", "service-key", http_client=client), seen


def test_select_filters_by_equality_and_authenticates() -> None:
    store, seen = _store(lambda request: httpx.Response(200, json=[{"id": "app-1"}]))

    rows = store.select("lp_coaching_applications", {"id": "app-1"})

    assert rows == [{"id": "app-1"}]
    request = seen[0]
    assert request.method == "GET"
    assert request.url.path == "/rest/v1/lp_coaching_applications"
    assert request.url.params["id"] == "eq.app-1"
    assert request.url.params["select"] == "*"
    assert request.headers["apikey"] == "service-key"
    assert request.headers["Authorization"] == "Bearer service-key"


def test_insert_prefer_headers() -> None:
    store, seen = _store(lambda request: httpx.Response(201, json=[{"id": 7}]))

    assert store.insert("lp_leads", {"name": "Max"}) == [{"id": 7}]
    assert seen[0].headers["Prefer"] == "return=representation"
    assert json.loads(seen[0].content) == {"name": "Max"}

    store.insert("calendar_credentials", {"user_id": "default"}, return_representation=False, merge_duplicates=True)
    assert seen[1].headers["Prefer"] == "return=minimal,resolution=merge-duplicates"


def test_update_is_a_filtered_patch() -> None:
    store, seen = _store(lambda request: httpx.Response(204))

    assert store.update("calendar_credentials", {"user_id": "default"}, {"access_token": "x"}) == []

    request = seen[0]
    assert request.method == "PATCH"
    assert request.url.params["user_id"] == "eq.default"
    assert "Prefer" not in request.headers


def test_error_status_raises_with_body() -> None:
    store, _ = _store(lambda request: httpx.Response(409, text="duplicate key"))

    with pytest.raises(RecordStoreError) as excinfo:
        store.insert("lp_leads", {"name": "Max"})

    assert excinfo.value.status == 409
    assert excinfo.value.body == "duplicate key"


def test_factory_requires_configuration() -> None:
    unconfigured = get_settings().model_copy(update={"record_store_service_key": None})

    with patch("services.record_store.get_settings", return_value=unconfigured):
        with pytest.raises(ConfigurationError):
            get_record_store()


def test_transport_failure_raises_record_store_error() -> None:
    def refuse(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("timed out", request=request)

    store, _ = _store(refuse)

    with pytest.raises(RecordStoreError) as excinfo:
        store.update("lp_coaching_applications", {"id": "app-1"}, {"status": "contacted"})

    assert excinfo.value.status is None
    assert "timed out" in excinfo.value.body
