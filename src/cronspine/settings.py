"""
Centralized settings for cronspine.

``CronSettings`` holds the few knobs a host needs when it loads cron
modules: which timer backend drives the runners, which timezone cron
expressions are evaluated in, and how logging is rendered. Values come from
``CRONSPINE_*`` environment variables or a ``.env`` file.

Examples:
    >>> import os
    >>> os.environ["CRONSPINE_BACKEND"] = "apscheduler"
    >>> reset_settings()
    >>> get_settings().backend
    <TimerBackendName.APSCHEDULER: 'apscheduler'>

Tags:
    cronspine, configuration, settings, pydantic, caching, validation

Doc-Types:
    api-reference
"""

from __future__ import annotations

import logging
from enum import Enum
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class TimerBackendName(str, Enum):
    """Supported timer backends."""

    THREAD = "thread"
    APSCHEDULER = "apscheduler"


class CronSettings(BaseSettings):
    """cronspine configuration.

    Fields
    ──────
    log_level : structlog level for ``configure_logging``
    json_logs : True for JSON, False for console, None to auto-detect
    service   : Service name stamped on every log line
    backend   : Timer backend used by runners started through the host
    timezone  : IANA zone for cron evaluation (None = local time)
    """

    model_config = SettingsConfigDict(
        env_prefix="CRONSPINE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Logging ──────────────────────────────────────────────────
    log_level: str = Field(default="INFO")
    json_logs: bool | None = Field(default=None)
    service: str = Field(default="cronspine")

    # ── Scheduling ───────────────────────────────────────────────
    backend: TimerBackendName = Field(default=TimerBackendName.THREAD)
    timezone: str | None = Field(
        default=None,
        description="IANA timezone for cron expressions; local time when unset",
    )

    @field_validator("log_level")
    @classmethod
    def _normalise_level(cls, value: str) -> str:
        level = value.upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"Unknown log level: {value}")
        return level

    @field_validator("timezone")
    @classmethod
    def _check_timezone(cls, value: str | None) -> str | None:
        if value is None:
            return None
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ValueError(f"Unknown timezone: {value}") from exc
        return value

    @property
    def tzinfo(self) -> ZoneInfo | None:
        return ZoneInfo(self.timezone) if self.timezone else None


# ── Settings factory with caching ────────────────────────────────────────

_settings_cache: dict[str, CronSettings] = {}


def get_settings(*, _force_reload: bool = False) -> CronSettings:
    """Load, validate, and cache a :class:`CronSettings` instance."""
    if not _force_reload and "default" in _settings_cache:
        return _settings_cache["default"]
    settings = CronSettings()
    _settings_cache["default"] = settings
    return settings


def reset_settings() -> None:
    """Drop the cached settings (tests, reloads)."""
    _settings_cache.clear()


__all__ = ["CronSettings", "TimerBackendName", "get_settings", "reset_settings"]
