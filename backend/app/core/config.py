from functools import lru_cache

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        extra="forbid",
        validate_by_name=True,
        populate_by_name=True,
    )
    database_url: str = ""
    jwt_secret: str = ""
    jwt_audience: str = ""

    docs_enabled: bool = Field(default=True)
    openapi_enabled: bool = Field(default=True)
    expose_error_details: bool = False

    public_base_url: str = Field(
        default="http://localhost:8000",
        validation_alias=AliasChoices("PUBLIC_BASE_URL", "BASE_URL"),
    )
    company_display_name: str = "Sistemas RST"
    currency_code: str = "MXN"

    # External HTML -> PDF service, tried before the local browser.
    pdfshift_api_key: str = ""
    pdfshift_api_url: str = "https://api.pdfshift.io/v3/convert/pdf"
    pdfshift_margin: str = "20mm"
    pdfshift_timeout_seconds: float = 30.0
    playwright_enabled: bool = True
    playwright_timeout_seconds: float = 60.0

    # SMTP defaults, used when company settings leave a field empty.
    smtp_host: str = ""
    smtp_port: int = 0
    smtp_secure: bool = True
    smtp_user: str = ""
    smtp_password: str = ""
    smtp_from_name: str = ""
    smtp_from_email: str = ""
    smtp_timeout_seconds: float = 15.0
    smtp_verify_before_send: bool = True

    email_max_attempts: int = 3
    email_retry_base_seconds: float = 1.0

    enable_recurring_jobs: bool = False
    enable_notification_outbox: bool = True
    notification_worker_interval_seconds: int = 30
    notification_worker_batch_size: int = 50
    notification_worker_max_attempts: int = 5

    enforce_status_transitions: bool = Field(
        default=False,
        validation_alias=AliasChoices("ENFORCE_STATUS_TRANSITIONS"),
    )

    security_headers_enabled: bool = Field(
        default=True,
        validation_alias=AliasChoices("SECURITY_HEADERS_ENABLED", "SECURE_HEADERS_ENABLED"),
    )

    cors_allow_origins: list[str] = Field(default_factory=list)
    cors_allow_methods: list[str] = Field(default_factory=lambda: [
        "GET",
        "POST",
        "PUT",
        "PATCH",
        "DELETE",
        "OPTIONS",
    ])
    cors_allow_headers: list[str] = Field(default_factory=lambda: [
        "Authorization",
        "Content-Type",
        "Accept",
    ])

    @field_validator(
        "cors_allow_origins",
        "cors_allow_methods",
        "cors_allow_headers",
        mode="before",
    )
    @classmethod
    def _split_csv(cls, value):
        if value is None:
            return []
        if isinstance(value, str):
            if value.strip() == "":
                return []
            return [item.strip() for item in value.split(",") if item.strip()]
        return value

    @property
    def pdfshift_enabled(self) -> bool:
        return bool(self.pdfshift_api_key.strip())


@lru_cache

def get_settings() -> Settings:
    return Settings()
