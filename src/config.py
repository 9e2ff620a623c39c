"""Application configuration using Pydantic settings."""

from typing import Any

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _clamped_int(value: Any, default: int, low: int, high: int) -> int:
    """Coerce a raw setting to int and clamp it, falling back to the default."""
    try:
        parsed = int(str(value).strip())
    except (TypeError, ValueError):
        parsed = default
    return min(max(parsed, low), high)


class Settings(BaseSettings):
    """Application settings."""

    # Probe tunables
    timeout_sec: int = 15
    confirm_delay_ms: int = 2000
    in_confirmations_required: int = 1
    error_streak_notify_threshold: int = 5
    error_notify_cooldown_sec: int = 1800

    # Optional override for the probe User-Agent (Chrome UA by default)
    user_agent: str = ""

    # JSON array overriding the built-in target list
    targets_json: str = ""

    # Notifications
    alert_prefix: str = ""
    alert_timezone: str = "Asia/Shanghai"
    tg_bot_token: str = ""
    tg_chat_id: str = ""
    feishu_webhook_url: str = ""
    feishu_secret: str = ""
    dingtalk_webhook_url: str = ""
    dingtalk_secret: str = ""

    # State storage
    state_backend: str = "redis"  # "redis" or "file"
    redis_url: str = "redis://localhost:6379/0"
    state_key: str = "state"
    state_file_path: str = "data/state.json"

    # Single-flight guard around a check run
    check_lock_enabled: bool = True
    check_lock_ttl_seconds: int = 600

    # Scheduler
    scheduler_enabled: bool = True
    check_interval_minutes: int = 2

    # App Settings
    admin_token: str = ""
    debug: bool = False
    log_level: str = "INFO"
    app_host: str = "0.0.0.0"
    app_port: int = 8001

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("timeout_sec", mode="before")
    @classmethod
    def _clamp_timeout(cls, v):
        return _clamped_int(v, 15, 1, 120)

    @field_validator("confirm_delay_ms", mode="before")
    @classmethod
    def _clamp_confirm_delay(cls, v):
        return _clamped_int(v, 2000, 0, 60_000)

    @field_validator("in_confirmations_required", mode="before")
    @classmethod
    def _clamp_confirmations(cls, v):
        return _clamped_int(v, 1, 1, 10)

    @field_validator("error_streak_notify_threshold", mode="before")
    @classmethod
    def _clamp_error_threshold(cls, v):
        return _clamped_int(v, 5, 1, 100)

    @field_validator("error_notify_cooldown_sec", mode="before")
    @classmethod
    def _clamp_error_cooldown(cls, v):
        return _clamped_int(v, 1800, 0, 86_400)

    @field_validator("check_interval_minutes", mode="before")
    @classmethod
    def _clamp_interval(cls, v):
        return _clamped_int(v, 2, 1, 1440)

    @field_validator("check_lock_ttl_seconds", mode="before")
    @classmethod
    def _clamp_lock_ttl(cls, v):
        return _clamped_int(v, 600, 30, 86_400)

    @property
    def timeout_ms(self) -> int:
        return self.timeout_sec * 1000


settings = Settings()
