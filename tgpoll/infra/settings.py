from __future__ import annotations

from enum import Enum
from functools import lru_cache
from typing import Optional

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

TELEGRAM_API_URL = "https://api.telegram.org"
DEFAULT_POLL_TIMEOUT = 30


class ParseMode(str, Enum):
    MARKDOWN = "Markdown"
    HTML = "HTML"


class HandlerErrorPolicy(str, Enum):
    """What the poll loop does when the update handler raises."""

    PROPAGATE = "propagate"
    SKIP = "skip"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", case_sensitive=False)

    telegram_bot_token: str = Field(..., alias="TELEGRAM_BOT_TOKEN")
    telegram_api_url: str = Field(TELEGRAM_API_URL, alias="TELEGRAM_API_URL")

    poll_timeout: int = Field(DEFAULT_POLL_TIMEOUT, alias="POLL_TIMEOUT")
    poll_limit: Optional[int] = Field(None, alias="POLL_LIMIT")
    handler_error_policy: HandlerErrorPolicy = Field(HandlerErrorPolicy.PROPAGATE, alias="HANDLER_ERROR_POLICY")
    echo_enabled: bool = Field(False, alias="ECHO_ENABLED")
    reply_parse_mode: Optional[ParseMode] = Field(None, alias="REPLY_PARSE_MODE")

    request_timeout_sec: float = Field(60.0, alias="REQUEST_TIMEOUT_SEC")
    connect_timeout_sec: float = Field(3.0, alias="CONNECT_TIMEOUT_SEC")

    log_level: str = Field("INFO", alias="LOG_LEVEL")
    metrics_enabled: bool = Field(True, alias="METRICS_ENABLED")
    metrics_port: Optional[int] = Field(None, alias="METRICS_PORT")

    @field_validator("telegram_bot_token")
    @classmethod
    def validate_token(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("TELEGRAM_BOT_TOKEN must not be empty")
        return value

    @field_validator("telegram_api_url")
    @classmethod
    def validate_api_url(cls, value: str) -> str:
        value = value.strip().rstrip("/")
        if not value.startswith(("http://", "https://")):
            raise ValueError("TELEGRAM_API_URL must be an http(s) URL")
        return value

    @field_validator("poll_timeout")
    @classmethod
    def validate_poll_timeout(cls, value: int) -> int:
        if value < 0:
            raise ValueError("POLL_TIMEOUT must be non-negative")
        return value

    @field_validator("poll_limit")
    @classmethod
    def validate_poll_limit(cls, value: Optional[int]) -> Optional[int]:
        if value is not None and not 1 <= value <= 100:
            raise ValueError("POLL_LIMIT must be between 1 and 100")
        return value

    @field_validator("handler_error_policy", mode="before")
    @classmethod
    def validate_handler_error_policy(cls, value: str | HandlerErrorPolicy) -> HandlerErrorPolicy:
        if isinstance(value, HandlerErrorPolicy):
            return value
        normalized = value.strip().lower()
        try:
            return HandlerErrorPolicy(normalized)
        except ValueError as exc:
            raise ValueError("HANDLER_ERROR_POLICY must be 'propagate' or 'skip'") from exc

    @field_validator("reply_parse_mode", mode="before")
    @classmethod
    def validate_parse_mode(cls, value: str | ParseMode | None) -> ParseMode | None:
        if value is None or isinstance(value, ParseMode):
            return value
        normalized = value.strip()
        if not normalized:
            return None
        try:
            return ParseMode(normalized)
        except ValueError as exc:
            raise ValueError("REPLY_PARSE_MODE must be 'Markdown' or 'HTML'") from exc

    @field_validator("metrics_port")
    @classmethod
    def validate_metrics_port(cls, value: Optional[int]) -> Optional[int]:
        if value is not None and not 0 < value < 65536:
            raise ValueError("METRICS_PORT must be a valid TCP port")
        return value

    @model_validator(mode="after")
    def finalize(self) -> "Settings":
        if self.connect_timeout_sec <= 0 or self.request_timeout_sec <= 0:
            raise ValueError("REQUEST_TIMEOUT_SEC and CONNECT_TIMEOUT_SEC must be positive")
        return self


@lru_cache()
def get_settings() -> Settings:
    return Settings()
