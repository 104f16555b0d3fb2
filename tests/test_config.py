import logging

import pytest
from pydantic import ValidationError

from clubhub.config import AppConfig, get_config, reset_config


def test_defaults_match_login_retry_policy(monkeypatch):
    monkeypatch.delenv("PROFILE_FETCH_MAX_ATTEMPTS", raising=False)
    config = AppConfig()
    assert config.PROFILE_FETCH_MAX_ATTEMPTS == 5
    assert config.PROFILE_SETTLE_DELAY_S == 2.0
    assert config.PROFILE_BACKOFF_BASE_S == 1.0
    assert config.PROFILE_TABLE == "users"


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("PROFILE_FETCH_MAX_ATTEMPTS", "3")
    monkeypatch.setenv("PROFILE_TABLE", "members")
    config = AppConfig()
    assert config.PROFILE_FETCH_MAX_ATTEMPTS == 3
    assert config.PROFILE_TABLE == "members"


def test_anon_key_is_secret():
    config = AppConfig(SUPABASE_ANON_KEY="anon-key")
    assert "anon-key" not in repr(config)
    assert config.SUPABASE_ANON_KEY.get_secret_value() == "anon-key"


@pytest.mark.parametrize(
    "overrides",
    [
        {"PROFILE_FETCH_MAX_ATTEMPTS": 0},
        {"PROFILE_SETTLE_DELAY_S": -1.0},
        {"PROFILE_BACKOFF_BASE_S": -0.5},
    ],
)
def test_rejects_unusable_retry_settings(overrides):
    with pytest.raises(ValidationError):
        AppConfig(**overrides)


@pytest.mark.parametrize(
    ("name", "level"),
    [("debug", logging.DEBUG), ("WARNING", logging.WARNING), ("chatty", logging.INFO)],
)
def test_log_level(name, level):
    assert AppConfig(LOG_LEVEL=name).log_level == level


def test_get_config_is_cached():
    reset_config()
    try:
        assert get_config() is get_config()
    finally:
        reset_config()
