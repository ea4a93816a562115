"""Configuration loader with YAML parsing, env-var interpolation, and Pydantic validation."""

from __future__ import annotations

import os
import re
from datetime import timedelta
from pathlib import Path
from typing import Literal, Optional

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator, model_validator

_ENV_VAR_PATTERN = re.compile(r"\$\{(\w+)\}")


class BotConfig(BaseModel):
    id: str
    platform: str  # "line" | "telegram"
    token: str
    channel_secret: str = ""  # LINE only, used for webhook signature checks
    operator_user_ids: list[str] = Field(default_factory=list)
    api_base_url: str = "https://api.line.me"
    timeout: float = 10.0

    @field_validator("operator_user_ids", mode="before")
    @classmethod
    def _drop_unset_ids(cls, value: object) -> object:
        # Uninterpolated "${VAR}" placeholders and blanks are not operator ids
        if isinstance(value, str):
            value = [value]
        if isinstance(value, list):
            return [v for v in value if v and not _ENV_VAR_PATTERN.fullmatch(str(v))]
        return value


class CommandVocabulary(BaseModel):
    """Exact, case-sensitive command strings recognized in inbound text."""

    reset: list[str] = Field(default_factory=lambda: ["reset-all"])
    mark_all_replied: list[str] = Field(
        default_factory=lambda: ["全部返信済み", "すべて返信済み", "mark-replied"]
    )
    status: list[str] = Field(default_factory=lambda: ["status"])
    debug_log: list[str] = Field(default_factory=lambda: ["debug-log"])
    test_notification: list[str] = Field(default_factory=lambda: ["slack-test", "slackテスト"])

    @field_validator("*", mode="before")
    @classmethod
    def _listify(cls, value: object) -> object:
        if isinstance(value, str):
            return [value]
        return value


class TrackingConfig(BaseModel):
    first_reminder_delay: timedelta = timedelta(minutes=15)
    reminder_interval: timedelta = timedelta(hours=1)
    retention_window: timedelta = timedelta(hours=24)
    sweep_interval: timedelta = timedelta(minutes=1)
    retention_sweep_interval: timedelta = timedelta(hours=6)
    group_reminders_enabled: bool = False
    reset_scope: Literal["global", "conversation"] = "global"
    send_timeout: float = 15.0
    commands: CommandVocabulary = Field(default_factory=CommandVocabulary)

    @model_validator(mode="after")
    def _positive_durations(self) -> "TrackingConfig":
        for name in ("reminder_interval", "sweep_interval", "retention_sweep_interval"):
            if getattr(self, name) <= timedelta(0):
                raise ValueError(f"tracking.{name} must be positive")
        for name in ("first_reminder_delay", "retention_window"):
            if getattr(self, name) < timedelta(0):
                raise ValueError(f"tracking.{name} must not be negative")
        return self


class NotificationsConfig(BaseModel):
    slack_webhook_url: Optional[str] = None
    timeout: float = 10.0

    @field_validator("slack_webhook_url", mode="before")
    @classmethod
    def _blank_is_none(cls, value: object) -> object:
        if isinstance(value, str) and (not value.strip() or _ENV_VAR_PATTERN.fullmatch(value)):
            return None
        return value


class ServerConfig(BaseModel):
    host: str = "0.0.0.0"
    port: int = 3000
    public_base_url: Optional[str] = None  # used to build confirmation links
    admin_token: Optional[str] = None  # bearer token for the /api control routes

    @field_validator("public_base_url", "admin_token", mode="before")
    @classmethod
    def _blank_is_none(cls, value: object) -> object:
        if isinstance(value, str) and (not value.strip() or _ENV_VAR_PATTERN.fullmatch(value)):
            return None
        return value


class StorageConfig(BaseModel):
    enabled: bool = False
    db_path: str = "./data/reply_tracker.db"


class AppConfig(BaseModel):
    log_level: str = "INFO"
    log_format: Literal["console", "json"] = "console"
    data_dir: str = "./data"
    bots: list[BotConfig] = Field(default_factory=list)
    server: ServerConfig = Field(default_factory=ServerConfig)
    notifications: NotificationsConfig = Field(default_factory=NotificationsConfig)
    tracking: TrackingConfig = Field(default_factory=TrackingConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)

    @model_validator(mode="after")
    def _unique_bot_ids(self) -> "AppConfig":
        seen: set[str] = set()
        for bot in self.bots:
            if bot.id in seen:
                raise ValueError(f"Duplicate bot id: {bot.id}")
            seen.add(bot.id)
        return self


def _interpolate_env_vars(text: str, extra: dict[str, str] | None = None) -> str:
    """Replace ${VAR_NAME} patterns with environment variable values."""

    def _replace(match: re.Match) -> str:
        var_name = match.group(1)
        if extra and var_name in extra:
            return extra[var_name]
        value = os.environ.get(var_name)
        if value is None:
            return match.group(0)
        return value

    return _ENV_VAR_PATTERN.sub(_replace, text)


def load_config(config_path: str | Path = "config.yaml", env_path: str | Path = ".env") -> AppConfig:
    """Load and validate configuration from YAML file with env-var interpolation."""
    env_file = Path(env_path)
    if env_file.exists():
        load_dotenv(env_file)

    config_file = Path(config_path)
    if not config_file.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_file}")

    raw_text = config_file.read_text(encoding="utf-8")

    # First pass: extract data_dir for self-referencing
    raw_data = yaml.safe_load(raw_text) or {}
    data_dir = str(raw_data.get("data_dir", "./data"))
    data_dir = _interpolate_env_vars(data_dir)

    # Second pass: interpolate all env vars
    interpolated = _interpolate_env_vars(raw_text, extra={"data_dir": data_dir})
    data = yaml.safe_load(interpolated) or {}

    return AppConfig(**data)
