"""Borderchat application configuration.

Loads settings from two YAML files:
  * borderchat.settings.yaml: non-secret configuration
  * borderchat.secrets.yaml: secrets (never committed)

The settings path can be overridden with the BORDERCHAT_SETTINGS environment
variable; the secrets file is looked up next to it. A handful of deployment
knobs (port, timezone, history and message caps) can also be overridden with
plain environment variables, which win over the YAML values.
"""
from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import yaml
from pydantic import BaseModel, Field, field_validator

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

SETTINGS_FILE = Path("borderchat.settings.yaml")
SECRETS_FILE  = Path("borderchat.secrets.yaml")

SETTINGS_ENV_VAR = "BORDERCHAT_SETTINGS"

# env var -> (section, field)
ENV_OVERRIDES = {
    "PORT":                    ("server", "port"),
    "CHAT_TIMEZONE":           ("chat", "timezone"),
    "CHAT_HISTORY_LIMIT":      ("chat", "history_limit"),
    "CHAT_MAX_MESSAGE_LENGTH": ("chat", "max_message_length"),
}


def _load_yaml(path: Path) -> Dict[str, Any]:
    if not path.exists():
        logger.warning("Config file not found: %s", path)
        return {}
    with path.open(encoding="utf-8") as fh:
        return yaml.safe_load(fh) or {}


def _apply_env_overrides(data: Dict[str, Any]) -> Dict[str, Any]:
    for env_name, (section, field) in ENV_OVERRIDES.items():
        value = os.environ.get(env_name)
        if value is None or value == "":
            continue
        data.setdefault(section, {})[field] = value
        logger.info("Config override from env: %s -> %s.%s", env_name, section, field)
    return data


# ---------------------------------------------------------------------------
# Secrets models
# ---------------------------------------------------------------------------


class ModerationSecrets(BaseModel):
    admin_token: Optional[str] = None


class Secrets(BaseModel):
    moderation: ModerationSecrets = Field(default_factory=ModerationSecrets)


# ---------------------------------------------------------------------------
# Settings models
# ---------------------------------------------------------------------------


class ServerSettings(BaseModel):
    host: str = "0.0.0.0"
    port: int = 3000


class ChatSettings(BaseModel):
    """Room store and write-path limits."""
    history_limit:        int = Field(default=100, ge=1)
    max_message_length:   int = Field(default=50, ge=1)
    timezone:             str = "Asia/Brunei"
    max_device_id_length: int = Field(default=128, ge=1)
    max_room_name_length: int = Field(default=100, ge=1)

    @field_validator("timezone")
    @classmethod
    def _check_timezone(cls, value: str) -> str:
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ValueError(f"Unknown timezone: {value}") from exc
        return value


class NamingSettings(BaseModel):
    """External random-word service used to pick display names."""
    enabled:         bool            = True
    url:             str             = "https://random-word-api.herokuapp.com/word"
    word_length:     int             = Field(default=5, ge=1)
    timeout_seconds: Optional[float] = 5.0


class ModerationSettings(BaseModel):
    banned_device_ids: List[str] = Field(default_factory=list)


class LoggingSettings(BaseModel):
    level: str = "info"


class AppConfig(BaseModel):
    server:     ServerSettings     = Field(default_factory=ServerSettings)
    chat:       ChatSettings       = Field(default_factory=ChatSettings)
    naming:     NamingSettings     = Field(default_factory=NamingSettings)
    moderation: ModerationSettings = Field(default_factory=ModerationSettings)
    logging:    LoggingSettings    = Field(default_factory=LoggingSettings)
    secrets:    Secrets            = Field(default_factory=Secrets)


# ---------------------------------------------------------------------------
# Public loader
# ---------------------------------------------------------------------------


def load_config(settings_path: Optional[Path] = None) -> AppConfig:
    """Load and merge settings + secrets into a single *AppConfig* object."""
    if settings_path is None:
        settings_path = Path(os.environ.get(SETTINGS_ENV_VAR) or SETTINGS_FILE)
    settings_path = Path(settings_path)
    secrets_path = settings_path.parent / SECRETS_FILE.name

    settings_data = _load_yaml(settings_path)
    secrets_data  = _load_yaml(secrets_path)

    # Merge: secrets live under the "secrets" key in AppConfig
    settings_data["secrets"] = secrets_data
    settings_data = _apply_env_overrides(settings_data)

    config = AppConfig(**settings_data)
    logger.info(
        "Settings loaded (server=%s:%s, history_limit=%s, timezone=%s, naming.enabled=%s)",
        config.server.host,
        config.server.port,
        config.chat.history_limit,
        config.chat.timezone,
        config.naming.enabled,
    )
    return config


_config: Optional[AppConfig] = None


def get_config() -> AppConfig:
    """Return the process-wide configuration, loading it on first use."""
    global _config
    if _config is None:
        _config = load_config()
    return _config


def reset_config() -> None:
    """Drop the cached configuration so the next get_config() reloads it."""
    global _config
    _config = None
