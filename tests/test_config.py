"""Tests for environment-driven settings."""

import pytest
from pydantic import ValidationError

from window_limiter.core.config import AppSettings, LogSettings


def test_app_settings_read_rate_limit_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("APP_RATE_LIMIT_REQUESTS", "7")
    monkeypatch.setenv("APP_RATE_LIMIT_WINDOW_SECONDS", "2.5")
    monkeypatch.setenv("APP_RATE_LIMIT_KEY_STRATEGY", "api_key")

    cfg = AppSettings()

    assert cfg.rate_limit_requests == 7
    assert cfg.rate_limit_window_seconds == 2.5
    assert cfg.rate_limit_key_strategy == "api_key"


@pytest.mark.parametrize(
    ("name", "value"),
    [
        ("APP_RATE_LIMIT_REQUESTS", "0"),
        ("APP_RATE_LIMIT_WINDOW_SECONDS", "0"),
        ("APP_RATE_LIMIT_WINDOW_SECONDS", "-5"),
        ("APP_RATE_LIMIT_KEY_STRATEGY", "cookie"),
    ],
)
def test_invalid_rate_limit_settings_fail_fast(
    monkeypatch: pytest.MonkeyPatch, name: str, value: str
) -> None:
    monkeypatch.setenv(name, value)

    with pytest.raises(ValidationError):
        AppSettings()


def test_log_settings_defaults(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("LOG_FORMAT", raising=False)

    cfg = LogSettings()

    assert cfg.format == "json"
    assert cfg.output == "stdout"
    assert cfg.request_id_header == "X-Request-ID"
