"""Forwarding of site events to the workflow-automation webhook (n8n)."""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

import httpx

from core.config import get_settings

logger = logging.getLogger(__name__)


def forward_to_workflow(payload: dict[str, Any]) -> bool:
    """POST ``payload`` as-is. Returns False when the webhook is unset or answers non-2xx."""
    url = get_settings().workflow_webhook_url
    if not url:
        return False

    with httpx.Client(timeout=15) as client:
        response = client.post(url, json=payload)
    if response.status_code >= 400:
        logger.warning("Workflow webhook returned %s", response.status_code)
        return False
    return True


def notify_workflow(event_type: str, payload: dict[str, Any]) -> bool:
    return forward_to_workflow(
        {
            "event_type": event_type,
            **payload,
            "timestamp": datetime.now(tz=timezone.utc).isoformat(),
        }
    )
