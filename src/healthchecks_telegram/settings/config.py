import logging
import os
from typing import Any, Dict, Optional
from urllib.parse import urlsplit

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

from healthchecks_telegram.settings.defaults import (
    DEFAULT_SETTINGS,
    DEFAULT_SETTINGS_KEY,
    DEFAULT_TELEGRAM_BASE_URL,
)
from healthchecks_telegram.utils.json_io import deep_merge, load_json

logger = logging.getLogger(__name__)

# Environment variables that override the "telegram" section
_TELEGRAM_ENV = {
    "base_url": "TELEGRAM_BASE_URL",
    "bot_token": "TELEGRAM_BOT_TOKEN",
    "chat_id": "TELEGRAM_CHAT_ID",
}


class TelegramConfigError(ValueError):
    """Raised at startup when the Telegram options are invalid."""


class TelegramOptions(BaseModel):
    model_config = ConfigDict(frozen=True)

    base_url: str = DEFAULT_TELEGRAM_BASE_URL
    bot_token: str
    chat_id: int

    @field_validator("base_url")
    @classmethod
    def _check_base_url(cls, value: str) -> str:
        if not value or not value.strip():
            raise ValueError("base_url must not be empty")
        if not value.lower().startswith("https://"):
            raise ValueError("base_url must use https")
        parts = urlsplit(value)
        if not parts.hostname or any(ch.isspace() for ch in value):
            raise ValueError("base_url must be a well-formed absolute URI")
        return value.rstrip("/")

    @field_validator("bot_token")
    @classmethod
    def _check_bot_token(cls, value: str) -> str:
        if not value or not value.strip():
            raise ValueError("bot_token must not be empty")
        return value

    @field_validator("chat_id", mode="before")
    @classmethod
    def _reject_bool_chat_id(cls, value):
        # bool is an int subclass; True would become chat 1
        if isinstance(value, bool):
            raise ValueError("chat_id must be an integer")
        return value

    @field_validator("chat_id")
    @classmethod
    def _check_chat_id(cls, value: int) -> int:
        if value == 0:
            raise ValueError("chat_id must not be zero")
        return value

    @property
    def send_message_url(self) -> str:
        return f"{self.base_url}/bot{self.bot_token}/sendMessage"


def get_settings_file() -> str:
    """Path to the JSON settings file, overridable via HEALTH_PUBLISHER_SETTINGS_FILE."""
    return os.environ.get(
        "HEALTH_PUBLISHER_SETTINGS_FILE",
        os.path.join("data", "config", "settings.json"),
    )


def get_runtime_settings() -> dict:
    """Load settings: defaults, then the JSON settings file, then environment overrides."""
    saved = load_json(get_settings_file(), {})
    merged = deep_merge(DEFAULT_SETTINGS, saved)

    telegram = dict(merged.get(DEFAULT_SETTINGS_KEY, {}))
    for field, env_name in _TELEGRAM_ENV.items():
        env_value = os.environ.get(env_name)
        if env_value:
            telegram[field] = env_value
    merged[DEFAULT_SETTINGS_KEY] = telegram
    return merged


def build_telegram_options(values: Dict[str, Any]) -> TelegramOptions:
    """Validate raw option values, raising TelegramConfigError with every problem found."""
    try:
        return TelegramOptions(**values)
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or 'telegram'}: {err['msg']}"
            for err in e.errors()
        )
        raise TelegramConfigError(f"Invalid Telegram options: {problems}") from e


def load_telegram_options(settings_key: str = DEFAULT_SETTINGS_KEY, cfg: Optional[dict] = None) -> TelegramOptions:
    """Bind and validate the Telegram options stored under ``settings_key``."""
    if cfg is None:
        cfg = get_runtime_settings()
    section = cfg.get(settings_key)
    if not isinstance(section, dict):
        raise TelegramConfigError(f"Settings section '{settings_key}' is missing")
    return build_telegram_options(section)


def get_port() -> int:
    """Get the server port from environment or default."""
    return int(os.environ.get("PORT", "8000"))
