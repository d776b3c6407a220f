from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import AliasChoices, Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .errors import ConfigError

TELEGRAM_API_BASE = "https://api.telegram.org"
WEBHOOK_HOST = "0.0.0.0"
FIZZY_BASE_URL = "https://app.fizzy.do"
DB_FILENAME = "bot.db"


class BotSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    bot_token: str = Field(validation_alias=AliasChoices("BOT_TOKEN", "bot_token"))
    telegram_api_proxy_url: str | None = None
    fizzy_base_url: str = FIZZY_BASE_URL
    db_path: Path | None = None
    volume_path: Path | None = Field(
        default=None,
        validation_alias=AliasChoices("RAILWAY_VOLUME_MOUNT_PATH", "volume_path"),
    )
    log_level: Literal["debug", "info", "warning", "error"] = "info"
    log_format: Literal["json", "console"] = "json"
    poll_timeout_s: int = Field(default=50, ge=0, le=600)
    # a PORT switches delivery from long polling to the webhook receiver
    port: int | None = Field(
        default=None,
        ge=1,
        le=65535,
        validation_alias=AliasChoices("PORT", "port"),
    )
    webhook_path: str = "/webhook"
    webhook_secret: str | None = Field(
        default=None, pattern=r"^[A-Za-z0-9_-]{1,256}$", repr=False
    )

    @field_validator("webhook_path")
    @classmethod
    def _leading_slash(cls, value: str) -> str:
        value = value.strip()
        return value if value.startswith("/") else f"/{value}"

    @field_validator("bot_token")
    @classmethod
    def _non_empty_token(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("must not be empty")
        return value

    @field_validator("telegram_api_proxy_url", "fizzy_base_url")
    @classmethod
    def _strip_slash(cls, value: str | None) -> str | None:
        if value is None:
            return None
        value = value.strip().rstrip("/")
        return value or None

    @field_validator("log_level", mode="before")
    @classmethod
    def _lower_level(cls, value: object) -> object:
        if isinstance(value, str):
            value = value.strip().lower()
            if value == "warn":
                return "warning"
        return value

    @property
    def telegram_api_base(self) -> str:
        return self.telegram_api_proxy_url or TELEGRAM_API_BASE

    @property
    def database_path(self) -> Path:
        if self.db_path is not None:
            return self.db_path
        if self.volume_path is not None:
            return self.volume_path / DB_FILENAME
        return Path(DB_FILENAME)


def _format_validation_error(exc: ValidationError) -> str:
    problems = []
    for error in exc.errors():
        loc = ".".join(str(part) for part in error.get("loc", ())) or "settings"
        problems.append(f"{loc.upper()}: {error.get('msg')}")
    return "; ".join(problems)


def load_settings(**overrides: object) -> BotSettings:
    try:
        return BotSettings(**overrides)
    except ValidationError as exc:
        raise ConfigError(
            f"Invalid bot settings: {_format_validation_error(exc)}"
        ) from None
