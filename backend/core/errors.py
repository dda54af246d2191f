"""Error taxonomy shared by services and routes.

Services raise these; ``main.py`` renders them as ``{"error": message}``
with the class' ``status_code``.
"""
from __future__ import annotations


class AppError(Exception):
    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ConfigurationError(AppError):
    """A required secret or URL is not configured."""


class CredentialsNotFoundError(AppError):
    """No calendar credential record exists yet (calendar never connected)."""


class UpstreamAuthError(AppError):
    """The identity provider rejected the refresh-token exchange."""


class UpstreamCalendarError(AppError):
    def __init__(self, message: str, body: str = "") -> None:
        super().__init__(f"{message}: {body}" if body else message)
        self.body = body


class RecordStoreError(AppError):
    def __init__(self, message: str, status: int | None = None, body: str = "") -> None:
        super().__init__(message)
        self.status = status
        self.body = body


class ValidationError(AppError):
    status_code = 400


class NotFoundError(AppError):
    status_code = 404


class ConflictError(AppError):
    status_code = 409

    def __init__(self, message: str, existing_datetime: str | None = None) -> None:
        super().__init__(message)
        self.existing_datetime = existing_datetime


class PartialFailureError(AppError):
    """The calendar event exists but the application record was not updated."""

    def __init__(self, message: str, calendar_event_id: str, appointment_datetime: str) -> None:
        super().__init__(message)
        self.calendar_event_id = calendar_event_id
        self.appointment_datetime = appointment_datetime
