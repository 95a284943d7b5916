from __future__ import annotations

import pytest

from lessongate.core.config import AppEnv, Settings, load_settings

# ---- valid values ----


def test_load_settings_defaults(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("APP_ENV", raising=False)
    monkeypatch.delenv("LOG_LEVEL", raising=False)
    settings = load_settings()
    assert settings.app_env == "dev"
    assert settings.log_level == "info"


def test_load_settings_respects_env_vars(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("APP_ENV", "prod")
    monkeypatch.setenv("LOG_LEVEL", "error")
    settings = load_settings()
    assert settings.app_env == "prod"
    assert settings.log_level == "error"


def test_load_settings_normalizes_case(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("APP_ENV", "PROD")
    monkeypatch.setenv("LOG_LEVEL", "DEBUG")
    settings = load_settings()
    assert settings.app_env == "prod"
    assert settings.log_level == "debug"


def test_load_settings_strips_whitespace(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("APP_ENV", "  test  ")
    monkeypatch.setenv("LOG_LEVEL", "  warning  ")
    settings = load_settings()
    assert settings.app_env == "test"
    assert settings.log_level == "warning"


# ---- invalid APP_ENV ----


def test_load_settings_rejects_invalid_app_env(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    monkeypatch.setenv("APP_ENV", "staging")
    monkeypatch.setenv("LOG_LEVEL", "info")
    with pytest.raises(ValueError, match="APP_ENV must be dev|test|prod"):
        load_settings()


def test_load_settings_rejects_empty_app_env(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    monkeypatch.setenv("APP_ENV", "")
    with pytest.raises(ValueError, match="APP_ENV must be dev|test|prod"):
        load_settings()


# ---- invalid LOG_LEVEL ----


def test_load_settings_rejects_invalid_log_level(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    monkeypatch.setenv("APP_ENV", "dev")
    monkeypatch.setenv("LOG_LEVEL", "verbose")
    with pytest.raises(ValueError, match="LOG_LEVEL must be debug|info|warning|error"):
        load_settings()


def test_load_settings_rejects_empty_log_level(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    monkeypatch.setenv("LOG_LEVEL", "")
    with pytest.raises(ValueError, match="LOG_LEVEL must be debug|info|warning|error"):
        load_settings()


# ---- Settings properties ----


def _make_settings(app_env: AppEnv = "dev") -> Settings:
    return Settings(  # type: ignore[arg-type]
        app_env=app_env,
        log_level="info",
        log_json=False,
        port=8000,
        database_url=None,
        redis_url=None,
    )


def test_settings_is_dev() -> None:
    s = _make_settings("dev")
    assert s.is_dev is True
    assert s.is_test is False
    assert s.is_prod is False


def test_settings_is_test() -> None:
    s = _make_settings("test")
    assert s.is_dev is False
    assert s.is_test is True
    assert s.is_prod is False


def test_settings_is_prod() -> None:
    s = _make_settings("prod")
    assert s.is_dev is False
    assert s.is_test is False
    assert s.is_prod is True


def test_settings_is_frozen() -> None:
    s = _make_settings()
    with pytest.raises(AttributeError):
        s.app_env = "prod"  # type: ignore[misc]


# ---- access / engagement tuning ----


def test_load_settings_tuning_defaults(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in (
        "PREVIEW_BUDGET_SECONDS",
        "VIEWPORT_THRESHOLD",
        "PROFILE_CACHE_TTL",
        "ENROLLMENT_CACHE_TTL",
        "PROGRESS_CACHE_TTL",
        "FETCH_RETRY_DELAY_MS",
        "FOCUS_SEGMENT_SECONDS",
        "REQUIRED_WATCH_SECONDS",
    ):
        monkeypatch.delenv(name, raising=False)
    settings = load_settings()
    assert settings.preview_budget_seconds == 180
    assert settings.viewport_threshold == 0.6
    assert settings.profile_cache_ttl == 300
    assert settings.enrollment_cache_ttl == 120
    assert settings.progress_cache_ttl == 120
    assert settings.fetch_retry_delay_ms == 500
    assert settings.focus_segment_seconds == 1200
    assert settings.required_watch_seconds == 1200


def test_load_settings_reads_preview_budget(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("PREVIEW_BUDGET_SECONDS", "90")
    assert load_settings().preview_budget_seconds == 90


def test_load_settings_allows_disabling_required_watch_time(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    monkeypatch.setenv("REQUIRED_WATCH_SECONDS", "0")
    assert load_settings().required_watch_seconds == 0


def test_load_settings_rejects_negative_required_watch_time(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    monkeypatch.setenv("REQUIRED_WATCH_SECONDS", "-5")
    with pytest.raises(ValueError, match="REQUIRED_WATCH_SECONDS must be >= 0"):
        load_settings()


def test_load_settings_rejects_zero_preview_budget(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    monkeypatch.setenv("PREVIEW_BUDGET_SECONDS", "0")
    with pytest.raises(ValueError, match="PREVIEW_BUDGET_SECONDS must be >= 1"):
        load_settings()


def test_load_settings_rejects_non_integer_ttl(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("PROFILE_CACHE_TTL", "five minutes")
    with pytest.raises(ValueError, match="PROFILE_CACHE_TTL must be an integer"):
        load_settings()


@pytest.mark.parametrize("raw", ["0", "1.5", "-0.2", "abc"])
def test_load_settings_rejects_bad_viewport_threshold(
    monkeypatch: pytest.MonkeyPatch, raw: str
) -> None:
    monkeypatch.setenv("VIEWPORT_THRESHOLD", raw)
    with pytest.raises(ValueError, match="VIEWPORT_THRESHOLD"):
        load_settings()


def test_load_settings_log_json_flag(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("LOG_JSON", "true")
    assert load_settings().log_json is True
    monkeypatch.setenv("LOG_JSON", "no")
    assert load_settings().log_json is False
