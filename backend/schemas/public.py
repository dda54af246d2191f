from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator


def _normalize_text(value: str) -> str:
    return " ".join(value.strip().split())


class LeadRequest(BaseModel):
    name: str = Field(min_length=1, max_length=120)
    email: EmailStr
    company: str | None = Field(default=None, max_length=200)
    phone: str | None = Field(default=None, max_length=40)
    campaign: str | None = Field(default=None, max_length=120)
    from_page: str | None = Field(default=None, max_length=300)
    utm_source: str | None = None
    utm_medium: str | None = None
    utm_campaign: str | None = None
    utm_content: str | None = None
    utm_term: str | None = None

    @field_validator("name", "company", "phone", mode="before")
    @classmethod
    def normalize_fields(cls, value: str | None) -> str | None:
        if value is None:
            return None
        if not isinstance(value, str):
            raise TypeError("Expected text input")
        return _normalize_text(value)


class ApplicationRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    first_name: str = Field(alias="firstName", min_length=1, max_length=120)
    last_name: str = Field(alias="lastName", min_length=1, max_length=120)
    email: EmailStr
    phone: str = Field(default="", max_length=40)
    company: str | None = Field(default=None, max_length=200)
    position: str | None = Field(default=None, max_length=200)
    program: Literal["gruppen_coaching", "mastermind", "beide"]
    questionnaire_answers: dict[str, str] = Field(default_factory=dict, alias="questionnaireAnswers")
    motivation: str | None = Field(default=None, max_length=4000)

    @field_validator("first_name", "last_name", "phone", "company", "position", mode="before")
    @classmethod
    def normalize_fields(cls, value: str | None) -> str | None:
        if value is None:
            return None
        if not isinstance(value, str):
            raise TypeError("Expected text input")
        return _normalize_text(value)


class CreatedResponse(BaseModel):
    success: bool
    id: Any = None


class MetaPixelEventRequest(BaseModel):
    event_name: str = Field(min_length=1, max_length=100)
    event_id: str = Field(min_length=1, max_length=200)
    session_id: str = Field(min_length=1, max_length=200)
    visitor_id: str | None = None
    fbclid: str | None = None
    utm_source: str | None = None
    utm_medium: str | None = None
    utm_campaign: str | None = None
    utm_content: str | None = None
    utm_term: str | None = None
    page_url: str | None = None
    page_path: str | None = None
    referrer: str | None = None
    user_agent: str | None = None
    device_type: str | None = None
    browser: str | None = None
    scroll_depth: float | None = None
    time_on_page: float | None = None
    application_id: str | None = None
    appointment_date: str | None = None
    event_data: dict[str, Any] = Field(default_factory=dict)


class PageViewRequest(BaseModel):
    page: str | None = None
    referrer: str | None = None
    utm_source: str | None = None
    timestamp: str | None = None


class InternLoginRequest(BaseModel):
    password: str = Field(min_length=1, max_length=200)


def _blank_to_none(value: Any) -> Any:
    if isinstance(value, str) and not value.strip():
        return None
    return value


class MastermindLeadRequest(BaseModel):
    # Presence is checked by the route so the missing field gets its own message.
    name: str | None = Field(default=None, max_length=120)
    email: EmailStr | None = None
    company: str | None = Field(default=None, max_length=200)
    revenue: str | None = Field(default=None, max_length=120)
    goals: str | None = Field(default=None, max_length=4000)
    utm_source: str | None = None
    utm_medium: str | None = None
    utm_campaign: str | None = None
    utm_content: str | None = None
    utm_term: str | None = None

    @field_validator("*", mode="before")
    @classmethod
    def blank_to_none(cls, value: Any) -> Any:
        return _blank_to_none(value)


class MastermindApplicationRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    first_name: str | None = Field(default=None, alias="firstName", max_length=120)
    last_name: str | None = Field(default=None, alias="lastName", max_length=120)
    email: EmailStr | None = None
    phone: str | None = Field(default=None, max_length=40)
    company: str | None = Field(default=None, max_length=200)
    position: str | None = Field(default=None, max_length=200)
    current_challenges: str | None = Field(default=None, alias="currentChallenges", max_length=4000)
    goals: str | None = Field(default=None, max_length=4000)
    seminar_date: str | None = Field(default=None, alias="seminarDate")

    @field_validator("*", mode="before")
    @classmethod
    def blank_to_none(cls, value: Any) -> Any:
        return _blank_to_none(value)


SessionAction = Literal[
    "create",
    "heartbeat",
    "form_open",
    "form_submit",
    "end",
    "cta_click",
    "modal_rendered",
    "first_interaction",
    "client_error",
    "modal_timeout",
]


class SessionEventRequest(BaseModel):
    action: SessionAction
    session_id: str = Field(min_length=1, max_length=200)
    visitor_id: str | None = None
    page_path: str | None = None
    page_url: str | None = None
    device_type: str | None = None
    browser: str | None = None
    user_agent: str | None = None
    utm_source: str | None = None
    utm_medium: str | None = None
    utm_campaign: str | None = None
    utm_content: str | None = None
    utm_term: str | None = None
    fbclid: str | None = None
    referrer: str | None = None
    time_on_page_seconds: float | None = None
    max_scroll_depth: float | None = None
    viewport_height: int | None = None
    modal_height: int | None = None
    first_visible_field_y: int | None = None
    modal_render_time_ms: int | None = None
    error_message: str | None = None
    error_type: str | None = None
    interaction_type: str | None = None
    form_variant: str | None = None


class FormEventRequest(BaseModel):
    session_id: str = Field(min_length=1, max_length=200)
    visitor_id: str | None = None
    event_type: str = Field(min_length=1, max_length=60)
    step_number: int | None = None
    step_name: str | None = None
    field_name: str | None = None
    field_type: str | None = None
    field_filled: bool | None = None
    field_value_length: int | None = None
    validation_error_field: str | None = None
    validation_error_type: str | None = None
    validation_error_message: str | None = None
    time_since_form_open_ms: int | None = None
    time_on_current_step_ms: int | None = None
    device_type: str | None = None
    utm_source: str | None = None
    utm_medium: str | None = None
    form_variant: str | None = None

    update_session_summary: bool = False
    form_max_step_reached: int | None = None
    form_step_1_completed: bool | None = None
    form_step_2_completed: bool | None = None
    form_step_3_completed: bool | None = None
    form_abandonment_step: int | None = None
    form_time_step_1_ms: int | None = None
    form_time_step_2_ms: int | None = None
    form_time_step_3_ms: int | None = None
    form_total_time_ms: int | None = None
    form_fields_filled: list[str] | None = None


class BehaviorEventRequest(BaseModel):
    session_id: str = Field(min_length=1, max_length=200)
    page_path: str = Field(min_length=1, max_length=300)
    event_type: str | None = None
    scroll_depth: float | None = None
    time_on_page: float | None = None
    interactions: dict[str, Any] | None = None
    device_type: str | None = None
    referrer: str | None = None
    user_agent: str | None = None
    utm_source: str | None = None
    utm_medium: str | None = None
    utm_campaign: str | None = None
