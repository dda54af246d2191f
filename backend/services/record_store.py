"""Thin client for the hosted PostgREST record store (Supabase)."""
from __future__ import annotations

import logging
from typing import Any

import httpx

from core.config import get_settings
from core.errors import ConfigurationError, RecordStoreError

logger = logging.getLogger(__name__)


class RecordStore:
    def __init__(self, base_url: str, service_key: str, http_client: httpx.Client | None = None) -> None:
        self.base_url = base_url.rstrip("/")
        self._service_key = service_key
        self._client = http_client

    def _headers(self, prefer: str | None = None) -> dict[str, str]:
        headers = {
            "apikey": self._service_key,
            "Authorization": f"Bearer {self._service_key}",
            "Content-Type": "application/json",
        }
        if prefer:
            headers["Prefer"] = prefer
        return headers

    def _request(self, method: str, table: str, **kwargs: Any) -> httpx.Response:
        url = f"{self.base_url}/rest/v1/{table}"
        try:
            if self._client is not None:
                response = self._client.request(method, url, **kwargs)
            else:
                with httpx.Client(timeout=15) as client:
                    response = client.request(method, url, **kwargs)
        except httpx.HTTPError as exc:
            logger.error("Record store %s %s unreachable: %s", method, table, exc)
            raise RecordStoreError(f"Record store request to {table} failed", body=str(exc)) from exc

        if response.status_code >= 400:
            logger.error("Record store %s %s failed (%s): %s", method, table, response.status_code, response.text)
            raise RecordStoreError(
                f"Record store request to {table} failed",
                status=response.status_code,
                body=response.text,
            )
        return response

    @staticmethod
    def _eq_filters(filters: dict[str, Any]) -> dict[str, str]:
        return {column: f"eq.{value}" for column, value in filters.items()}

    def select(self, table: str, filters: dict[str, Any]) -> list[dict]:
        params = {**self._eq_filters(filters), "select": "*"}
        response = self._request("GET", table, params=params, headers=self._headers())
        return response.json()

    def insert(
        self,
        table: str,
        payload: dict[str, Any],
        *,
        return_representation: bool = True,
        merge_duplicates: bool = False,
    ) -> list[dict]:
        prefer = ["return=representation" if return_representation else "return=minimal"]
        if merge_duplicates:
            prefer.append("resolution=merge-duplicates")
        response = self._request("POST", table, json=payload, headers=self._headers(",".join(prefer)))
        return response.json() if return_representation else []

    def update(
        self,
        table: str,
        filters: dict[str, Any],
        payload: dict[str, Any],
        *,
        return_representation: bool = False,
    ) -> list[dict]:
        prefer = "return=representation" if return_representation else None
        response = self._request(
            "PATCH",
            table,
            params=self._eq_filters(filters),
            json=payload,
            headers=self._headers(prefer),
        )
        return response.json() if return_representation else []


def get_record_store() -> RecordStore:
    settings = get_settings()
    if not settings.record_store_url or not settings.record_store_service_key:
        logger.error("Missing CRM_SUPABASE_URL or CRM_SUPABASE_SERVICE_ROLE_KEY")
        raise ConfigurationError("Server configuration error")
    return RecordStore(settings.record_store_url, settings.record_store_service_key)
