"""Configuration objects and helpers for the scheduler."""

from __future__ import annotations

from typing import Literal, Optional

from pydantic import Field, HttpUrl, SecretStr, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .date_window import DayWindow


class Settings(BaseSettings):
    """Runtime configuration sourced from environment variables."""

    # Applicant
    first_name: str = Field(..., alias="DPS_FIRST_NAME")
    last_name: str = Field(..., alias="DPS_LAST_NAME")
    dob: str = Field(..., alias="DPS_DOB", description="Date of birth as MM/DD/YYYY.")
    last_four_ssn: SecretStr = Field(..., alias="DPS_LAST_FOUR_SSN")
    email: str = Field(..., alias="DPS_EMAIL")
    phone_number: Optional[str] = Field(None, alias="DPS_PHONE_NUMBER")
    type_id: int = Field(71, alias="DPS_TYPE_ID")

    # Location search
    zip_code: str = Field(..., alias="DPS_ZIP_CODE")
    miles: float = Field(25, alias="DPS_MILES")
    preferred_days: int = Field(0, alias="DPS_PREFERRED_DAYS")
    same_day: bool = Field(False, alias="DPS_SAME_DAY")
    days_around_start: Optional[int] = Field(None, alias="DPS_DAYS_AROUND_START")
    days_around: int = Field(7, alias="DPS_DAYS_AROUND")

    # Application
    api_base_url: HttpUrl = Field("https://publicapi.txdpsscheduler.com", alias="DPS_API_BASE_URL")
    site_url: HttpUrl = Field("https://public.txdpsscheduler.com", alias="DPS_SITE_URL")
    interval_seconds: float = Field(10.0, alias="DPS_INTERVAL_SECONDS")
    jitter_seconds: float = Field(1.0, alias="DPS_JITTER_SECONDS")
    concurrency: int = Field(4, alias="DPS_CONCURRENCY", ge=1)
    headers_timeout_seconds: float = Field(20.0, alias="DPS_HEADERS_TIMEOUT_SECONDS", gt=0)
    body_timeout_seconds: Optional[float] = Field(None, alias="DPS_BODY_TIMEOUT_SECONDS", gt=0)
    lookup_attempts: int = Field(3, alias="DPS_LOOKUP_ATTEMPTS", ge=1)
    existing_booking_policy: Literal["keep", "replace"] = Field("keep", alias="DPS_EXISTING_BOOKING_POLICY")
    dry_run: bool = Field(False, alias="DPS_DRY_RUN")

    # Keep-alive endpoint
    webserver: bool = Field(False, alias="DPS_WEBSERVER")
    port: int = Field(3000, alias="PORT")

    # Notifications
    notifier: Literal["none", "telegram", "webhook"] = Field("none", alias="DPS_NOTIFIER")
    telegram_bot_token: Optional[SecretStr] = Field(None, alias="TELEGRAM_BOT_TOKEN")
    telegram_chat_id: Optional[str] = Field(None, alias="TELEGRAM_CHAT_ID")
    webhook_url: Optional[HttpUrl] = Field(None, alias="WEBHOOK_URL")
    webhook_password: Optional[SecretStr] = Field(None, alias="WEBHOOK_PASSWORD")
    webhook_phone_number: Optional[str] = Field(None, alias="WEBHOOK_PHONE_NUMBER")
    webhook_phone_number_type: str = Field("iMessage", alias="WEBHOOK_PHONE_NUMBER_TYPE")
    webhook_send_method: str = Field("private-api", alias="WEBHOOK_SEND_METHOD")

    model_config = SettingsConfigDict(
        env_file=(".env",),
        env_file_encoding="utf-8",
        case_sensitive=False,
        populate_by_name=True,
        extra="ignore",
    )

    @field_validator("jitter_seconds", "interval_seconds")
    @classmethod
    def non_negative(cls, value: float) -> float:
        if value < 0:
            raise ValueError("must not be negative")
        return value

    @model_validator(mode="after")
    def check_consistency(self) -> "Settings":
        """Validate the day window and that the selected notifier has its credentials."""
        DayWindow(end_days=self.days_around, start_days=self.days_around_start)
        if self.notifier == "telegram" and not (self.telegram_bot_token and self.telegram_chat_id):
            raise ValueError("TELEGRAM_BOT_TOKEN and TELEGRAM_CHAT_ID are required for the telegram notifier")
        if self.notifier == "webhook" and not (
            self.webhook_url and self.webhook_password and self.webhook_phone_number
        ):
            raise ValueError("WEBHOOK_URL, WEBHOOK_PASSWORD and WEBHOOK_PHONE_NUMBER are required for the webhook notifier")
        return self

    @property
    def day_window(self) -> DayWindow:
        return DayWindow(end_days=self.days_around, start_days=self.days_around_start)

    @property
    def notifications_enabled(self) -> bool:
        return self.notifier != "none"

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    def appointment_url(self, confirmation_number: str) -> str:
        """Public link where the applicant can print the booking."""
        return f"{str(self.site_url).rstrip('/')}/?b={confirmation_number}"

    @property
    def telegram_api_endpoint(self) -> str:
        """Base Telegram Bot API endpoint."""
        if self.telegram_bot_token is None:
            raise ValueError("TELEGRAM_BOT_TOKEN is not configured")
        return f"https://api.telegram.org/bot{self.telegram_bot_token.get_secret_value()}"
