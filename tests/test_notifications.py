from __future__ import annotations

import json
from unittest.mock import patch

import httpx
import pytest

from core.config import get_settings
from services.email import _render_confirmation_html, send_appointment_confirmation
from services.workflow_webhook import forward_to_workflow, notify_workflow

pytestmark = pytest.mark.unit


def _recording_client(seen: list[httpx.Request], status: int = 200):
    real_client = httpx.Client

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(status, json={"ok": status < 400})

    def factory(**kwargs):
        return real_client(transport=httpx.MockTransport(handler))

    return factory


class TestWorkflowWebhook:
    def test_unset_url_skips_the_call(self) -> None:
        seen: list[httpx.Request] = []
        with patch("services.workflow_webhook.httpx.Client", side_effect=_recording_client(seen)):
            assert forward_to_workflow({"a": 1}) is False

        assert seen == []

    def test_notification_envelope(self) -> None:
        configured = get_settings().model_copy(update={"workflow_webhook_url": "https://hooks.test/synclaro"})
        seen: list[httpx.Request] = []

        with (
            patch("services.workflow_webhook.get_settings", return_value=configured),
            patch("services.workflow_webhook.httpx.Client", side_effect=_recording_client(seen)),
        ):
            assert notify_workflow("appointment_booked", {"application_id": "app-1"}) is True

        body = json.loads(seen[0].content)
        assert str(seen[0].url) == "https://hooks.test/synclaro"
        assert body["event_type"] == "appointment_booked"
        assert body["application_id"] == "app-1"
        assert "timestamp" in body

    def test_error_status_returns_false(self) -> None:
        configured = get_settings().model_copy(update={"workflow_webhook_url": "https://hooks.test/synclaro"})
        seen: list[httpx.Request] = []

        with (
            patch("services.workflow_webhook.get_settings", return_value=configured),
            patch("services.workflow_webhook.httpx.Client", side_effect=_recording_client(seen, status=502)),
        ):
            assert forward_to_workflow({"a": 1}) is False


class TestConfirmationEmail:
    def test_without_api_key_nothing_is_sent(self) -> None:
        seen: list[httpx.Request] = []
        with patch("services.email.httpx.Client", side_effect=_recording_client(seen)):
            send_appointment_confirmation("Lena", "lena@example.com", "Montag, 2. Juni 2025", "14:00")

        assert seen == []

    def test_sends_through_resend(self) -> None:
        configured = get_settings().model_copy(update={"resend_api_key": "re_test"})
        seen: list[httpx.Request] = []

        with (
            patch("services.email.get_settings", return_value=configured),
            patch("services.email.httpx.Client", side_effect=_recording_client(seen)),
        ):
            send_appointment_confirmation("Lena Meier", "lena@example.com", "Montag, 2. Juni 2025", "14:00")

        request = seen[0]
        body = json.loads(request.content)
        assert request.headers["Authorization"] == "Bearer re_test"
        assert body["to"] == ["lena@example.com"]
        assert body["subject"] == "Dein Termin am Montag, 2. Juni 2025 um 14:00 Uhr"
        assert "Lena Meier" in body["html"]

    def test_rejected_send_raises(self) -> None:
        configured = get_settings().model_copy(update={"resend_api_key": "re_test"})
        seen: list[httpx.Request] = []

        with (
            patch("services.email.get_settings", return_value=configured),
            patch("services.email.httpx.Client", side_effect=_recording_client(seen, status=422)),
        ):
            with pytest.raises(httpx.HTTPStatusError):
                send_appointment_confirmation("Lena", "lena@example.com", "Montag, 2. Juni 2025", "14:00")

    def test_names_are_escaped(self) -> None:
        html = _render_confirmation_html("<script>x</script>", "Montag, 2. Juni 2025", "14:00")

        assert "<script>" not in html
        assert "&lt;script&gt;" in html
