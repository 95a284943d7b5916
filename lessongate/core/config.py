from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Literal

AppEnv = Literal["dev", "test", "prod"]
LogLevel = Literal["debug", "info", "warning", "error"]


def _getenv(name: str, default: str) -> str:
    # Centralize env access so it’s easy to extend later (type casting, required vars)
    return os.environ.get(name, default).strip()


def _getenv_int(name: str, default: int, *, minimum: int = 0) -> int:
    raw = _getenv(name, str(default))
    try:
        value = int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer (got {raw!r})") from None
    if value < minimum:
        raise ValueError(f"{name} must be >= {minimum} (got {value})")
    return value


@dataclass(frozen=True)
class Settings:
    app_env: AppEnv
    log_level: LogLevel
    log_json: bool
    port: int
    database_url: str | None
    redis_url: str | None
    preview_budget_seconds: int = 180
    viewport_threshold: float = 0.6
    profile_cache_ttl: int = 300
    enrollment_cache_ttl: int = 120
    progress_cache_ttl: int = 120
    fetch_retry_delay_ms: int = 500
    focus_segment_seconds: int = 20 * 60
    required_watch_seconds: int = 20 * 60

    @property
    def is_dev(self) -> bool:
        return self.app_env == "dev"

    @property
    def is_test(self) -> bool:
        return self.app_env == "test"

    @property
    def is_prod(self) -> bool:
        return self.app_env == "prod"


def load_settings() -> Settings:
    app_env_raw = _getenv("APP_ENV", "dev").lower()
    log_level_raw = _getenv("LOG_LEVEL", "info").lower()
    port_raw = _getenv("PORT", "8000")

    if app_env_raw not in ("dev", "test", "prod"):
        raise ValueError(f"APP_ENV must be dev|test|prod (got {app_env_raw!r})")

    if log_level_raw not in ("debug", "info", "warning", "error"):
        raise ValueError(
            f"LOG_LEVEL must be debug|info|warning|error (got {log_level_raw!r})"
        )

    try:
        port = int(port_raw)
    except ValueError:
        raise ValueError(f"PORT must be an integer (got {port_raw!r})") from None

    threshold_raw = _getenv("VIEWPORT_THRESHOLD", "0.6")
    try:
        viewport_threshold = float(threshold_raw)
    except ValueError:
        raise ValueError(
            f"VIEWPORT_THRESHOLD must be a number (got {threshold_raw!r})"
        ) from None
    if not 0.0 < viewport_threshold <= 1.0:
        raise ValueError(
            f"VIEWPORT_THRESHOLD must be in (0, 1] (got {viewport_threshold})"
        )

    database_url = _getenv("DATABASE_URL", "") or None
    redis_url = _getenv("REDIS_URL", "") or None
    log_json = _getenv("LOG_JSON", "false").lower() in ("1", "true", "yes")

    return Settings(  # type: ignore[arg-type]
        app_env=app_env_raw,
        log_level=log_level_raw,
        log_json=log_json,
        port=port,
        database_url=database_url,
        redis_url=redis_url,
        preview_budget_seconds=_getenv_int("PREVIEW_BUDGET_SECONDS", 180, minimum=1),
        viewport_threshold=viewport_threshold,
        profile_cache_ttl=_getenv_int("PROFILE_CACHE_TTL", 300, minimum=1),
        enrollment_cache_ttl=_getenv_int("ENROLLMENT_CACHE_TTL", 120, minimum=1),
        progress_cache_ttl=_getenv_int("PROGRESS_CACHE_TTL", 120, minimum=1),
        fetch_retry_delay_ms=_getenv_int("FETCH_RETRY_DELAY_MS", 500),
        focus_segment_seconds=_getenv_int("FOCUS_SEGMENT_SECONDS", 1200, minimum=1),
        required_watch_seconds=_getenv_int("REQUIRED_WATCH_SECONDS", 1200),
    )


# Optional: module-level singleton so imports are cheap
SETTINGS = load_settings()
