"""Configuration loader for the ClipNote core (Pydantic edition)."""

from __future__ import annotations

import logging
from datetime import timedelta
from pathlib import Path
from typing import Annotated, Iterable, Literal, Sequence

from dotenv import load_dotenv
from pydantic import AliasChoices, Field, SecretStr, ValidationError, field_validator, model_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

from .utils.secrets import secret_value

LOGGER = logging.getLogger(__name__)


class ConfigError(RuntimeError):
    """Raised when configuration cannot be loaded safely."""


class AppConfig(BaseSettings):
    """Strongly typed runtime configuration loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
        validate_default=True,
    )

    environment: Literal["development", "staging", "production"] = Field(
        default="development",
        validation_alias=AliasChoices("APP_ENVIRONMENT", "APP_ENV"),
    )
    database_path: Path = Field(
        default=Path("clipnote.db"),
        validation_alias=AliasChoices("APP_DATABASE_PATH", "DATABASE_PATH"),
    )
    log_path: Path = Field(
        default=Path("logs/clipnote.log"),
        validation_alias=AliasChoices("APP_LOG_PATH", "LOG_PATH"),
    )
    app_url: str = Field(default="", validation_alias=AliasChoices("APP_URL", "NEXT_PUBLIC_APP_URL"))

    # Upstream credentials
    youtube_api_key: SecretStr | None = Field(default=None, validation_alias="YOUTUBE_API_KEY")
    youtube_api_key_2: SecretStr | None = Field(default=None, validation_alias="YOUTUBE_API_KEY_2")
    youtube_api_key_3: SecretStr | None = Field(default=None, validation_alias="YOUTUBE_API_KEY_3")
    youtube_api_key_4: SecretStr | None = Field(default=None, validation_alias="YOUTUBE_API_KEY_4")
    youtube_api_key_5: SecretStr | None = Field(default=None, validation_alias="YOUTUBE_API_KEY_5")
    youtube_api_keys_extra: Annotated[tuple[str, ...], NoDecode] = Field(
        default_factory=tuple,
        validation_alias="YOUTUBE_API_KEYS",
    )
    twitch_client_id: SecretStr | None = Field(default=None, validation_alias="TWITCH_CLIENT_ID")
    twitch_access_token: SecretStr | None = Field(default=None, validation_alias="TWITCH_ACCESS_TOKEN")
    twitch_access_tokens_extra: Annotated[tuple[str, ...], NoDecode] = Field(
        default_factory=tuple,
        validation_alias="TWITCH_ACCESS_TOKENS",
    )
    chzzk_user_agent: str = Field(
        default="Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36",
        validation_alias="APP_CHZZK_USER_AGENT",
    )

    # Upstream behaviour
    http_timeout_seconds: float = Field(10.0, gt=0, le=120, validation_alias="APP_HTTP_TIMEOUT")
    credential_cooldown_minutes: int | None = Field(
        default=None,
        ge=1,
        validation_alias="APP_CREDENTIAL_COOLDOWN_MINUTES",
    )

    # Sharing
    share_id_length: int = Field(10, ge=6, le=32, validation_alias="APP_SHARE_ID_LENGTH")
    share_id_max_attempts: int = Field(10, ge=1, le=100, validation_alias="APP_SHARE_ID_MAX_ATTEMPTS")

    # Batch refresh
    refresh_concurrency: int = Field(1, ge=1, le=8, validation_alias="APP_REFRESH_CONCURRENCY")
    refresh_transient_attempts: int = Field(2, ge=1, le=5, validation_alias="APP_REFRESH_TRANSIENT_ATTEMPTS")
    refresh_interval_minutes: int | None = Field(
        default=None,
        ge=5,
        validation_alias=AliasChoices("APP_REFRESH_INTERVAL", "APP_REFRESH_INTERVAL_MINUTES"),
    )

    @field_validator("database_path", "log_path", mode="after")
    @classmethod
    def _expand_path(cls, value: Path) -> Path:
        expanded = value.expanduser()
        return expanded if expanded.is_absolute() else (Path.cwd() / expanded).resolve()

    @field_validator("youtube_api_keys_extra", "twitch_access_tokens_extra", mode="before")
    @classmethod
    def _parse_key_list(cls, value: str | Sequence[str] | None) -> tuple[str, ...]:
        if value is None:
            return ()
        if isinstance(value, str):
            tokens = [part.strip() for part in value.replace("\n", ",").split(",") if part.strip()]
            return tuple(tokens)
        return tuple(value)

    @field_validator("app_url", mode="after")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")

    @model_validator(mode="after")
    def _validate_twitch_pair(self) -> "AppConfig":
        if self.twitch_tokens and not secret_value(self.twitch_client_id):
            LOGGER.warning("Twitch access token configured without TWITCH_CLIENT_ID; Twitch metadata disabled.")
        return self

    def ensure_runtime_directories(self) -> None:
        """Create directories required for runtime operation."""
        _ensure_directories((self.log_path.parent, self.database_path.parent))

    @property
    def youtube_keys(self) -> tuple[str, ...]:
        """All configured YouTube Data API keys in rotation order, de-duplicated."""
        singles = (
            self.youtube_api_key,
            self.youtube_api_key_2,
            self.youtube_api_key_3,
            self.youtube_api_key_4,
            self.youtube_api_key_5,
        )
        keys = [secret_value(item) for item in singles]
        keys.extend(item.strip() for item in self.youtube_api_keys_extra)
        return _unique(keys)

    @property
    def twitch_tokens(self) -> tuple[str, ...]:
        keys = [secret_value(self.twitch_access_token)]
        keys.extend(item.strip() for item in self.twitch_access_tokens_extra)
        return _unique(keys)

    @property
    def has_twitch_credentials(self) -> bool:
        return bool(secret_value(self.twitch_client_id) and self.twitch_tokens)

    @property
    def credential_cooldown(self) -> timedelta | None:
        if self.credential_cooldown_minutes is None:
            return None
        return timedelta(minutes=self.credential_cooldown_minutes)


def _unique(values: Iterable[str | None]) -> tuple[str, ...]:
    seen: dict[str, None] = {}
    for value in values:
        if value:
            seen.setdefault(value, None)
    return tuple(seen)


def _ensure_directories(paths: Iterable[Path]) -> None:
    for directory in paths:
        directory.mkdir(parents=True, exist_ok=True)


def load_config(env_path: Path | None = None) -> AppConfig:
    """Load configuration from .env/environment with validation."""
    load_kwargs: dict[str, str] = {}
    if env_path is not None:
        load_dotenv(env_path, override=False)
        load_kwargs["_env_file"] = str(env_path)
    else:
        load_dotenv(override=False)
    try:
        config = AppConfig(**load_kwargs)
    except ValidationError as exc:  # pragma: no cover - exercised in integration tests
        raise ConfigError("Invalid configuration") from exc

    config.ensure_runtime_directories()

    LOGGER.info(
        "AppConfig loaded",
        extra={
            "event": "config.loaded",
            "environment": config.environment,
            "paths": {
                "database": str(config.database_path),
                "log": str(config.log_path),
            },
            "credentials": {
                "youtube_keys": len(config.youtube_keys),
                "twitch_tokens": len(config.twitch_tokens),
            },
        },
    )
    return config
