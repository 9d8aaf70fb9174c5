"""Application configuration."""

from __future__ import annotations

from pathlib import Path
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from croniter import croniter
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_WELCOME_TEXT = "謝謝您加入！之後每天早上會收到「老闆在嗎？」"


class Settings(BaseSettings):
    """Environment-driven settings validated at startup."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    line_channel_access_token: str = Field(..., min_length=1, alias="LINE_CHANNEL_ACCESS_TOKEN")
    line_channel_secret: str = Field(..., min_length=1, alias="LINE_CHANNEL_SECRET")
    line_api_base_url: str = Field(default="https://api.line.me", alias="LINE_API_BASE_URL")
    port: int = Field(default=3000, alias="PORT")
    subscribers_path: Path = Field(default=Path("subscribers.json"), alias="SUBSCRIBERS_PATH")
    # Standard five-field cron expression, evaluated in broadcast_timezone.
    broadcast_cron: str = Field(default="0 9 * * *", alias="BROADCAST_CRON")
    broadcast_timezone: str = Field(default="Asia/Taipei", alias="BROADCAST_TIMEZONE")
    broadcast_enabled: bool = Field(default=True, alias="BROADCAST_ENABLED")
    debounce_seconds: float = Field(default=60.0, alias="DEBOUNCE_SECONDS")
    request_timeout_seconds: float = Field(default=10.0, alias="REQUEST_TIMEOUT_SECONDS")
    welcome_text: str = Field(default=DEFAULT_WELCOME_TEXT, alias="WELCOME_TEXT")

    @field_validator("broadcast_cron")
    @classmethod
    def _check_cron(cls, value: str) -> str:
        if not croniter.is_valid(value):
            raise ValueError(f"Invalid cron expression: {value!r}")
        return value

    @field_validator("broadcast_timezone")
    @classmethod
    def _check_timezone(cls, value: str) -> str:
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ValueError(f"Unknown time zone: {value!r}") from exc
        return value

    @field_validator("debounce_seconds", "request_timeout_seconds")
    @classmethod
    def _check_positive(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("must be positive")
        return value


def load_settings() -> Settings:
    """Load and validate settings."""

    return Settings()
