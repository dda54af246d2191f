from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=("../.env", ".env"),
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    app_name: str = "Synclaro API"
    environment: Literal["development", "staging", "production"] = "development"
    app_url: str = Field(default="http://localhost:4321", alias="PUBLIC_SITE_URL")
    backend_api_url: str = "http://localhost:8000"
    log_level: str = "INFO"

    record_store_url: str | None = Field(default=None, alias="CRM_SUPABASE_URL")
    record_store_service_key: str | None = Field(default=None, alias="CRM_SUPABASE_SERVICE_ROLE_KEY")

    google_client_id: str | None = Field(default=None, alias="GOOGLE_CLIENT_ID")
    google_client_secret: str | None = Field(default=None, alias="GOOGLE_CLIENT_SECRET")

    resend_api_key: str | None = Field(default=None, alias="RESEND_API_KEY")
    resend_from_email: str = "Synclaro <termine@synclaro.de>"

    workflow_webhook_url: str | None = Field(default=None, alias="WORKFLOW_WEBHOOK_URL")

    intern_password: str | None = Field(default=None, alias="INTERN_PASSWORD")
    session_secret: str = "change-me"

    rate_limit_forms: str = "10/minute"
    cors_origins: list[str] = Field(default_factory=lambda: ["http://localhost:4321"])

    @field_validator("cors_origins", mode="before")
    @classmethod
    def parse_cors_origins(cls, value: str | list[str]) -> list[str]:
        if isinstance(value, list):
            return value
        if isinstance(value, str):
            return [origin.strip() for origin in value.split(",") if origin.strip()]
        return ["http://localhost:4321"]

    @property
    def google_oauth_configured(self) -> bool:
        return bool(self.google_client_id and self.google_client_secret)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
