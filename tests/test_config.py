"""Unit tests for core/config.py -- Settings validation.

Covers:
- missing SECRET_KEY outside debug mode is a startup failure
- debug mode generates a key
- short keys are rejected in every mode
- token and cap defaults
"""

import pytest
from pydantic import ValidationError

from core.config import Settings, get_settings

LONG_KEY = "k" * 32


def test_missing_secret_in_production_fails(monkeypatch):
    """Without DEBUG a missing SECRET_KEY fails validation."""
    monkeypatch.delenv("SECRET_KEY", raising=False)
    with pytest.raises(ValidationError, match="SECRET_KEY is required"):
        Settings(debug=False, _env_file=None)


def test_debug_mode_generates_secret(monkeypatch):
    """DEBUG mode generates a long enough key."""
    monkeypatch.delenv("SECRET_KEY", raising=False)
    settings = Settings(debug=True, _env_file=None)
    assert len(settings.secret_key) >= 32


def test_short_secret_is_rejected():
    """Keys under 32 characters are rejected even in debug."""
    with pytest.raises(ValidationError, match="at least 32"):
        Settings(debug=True, secret_key="short", _env_file=None)


def test_secret_read_from_environment(monkeypatch):
    """SECRET_KEY is read from the environment."""
    monkeypatch.setenv("SECRET_KEY", LONG_KEY)
    monkeypatch.setenv("DEBUG", "false")
    assert Settings(_env_file=None).secret_key == LONG_KEY


def test_defaults(monkeypatch):
    """Token lifetimes, cap and bcrypt cost have the documented defaults."""
    monkeypatch.setenv("SECRET_KEY", LONG_KEY)
    settings = Settings(_env_file=None)
    assert settings.access_token_expire_seconds == 3600
    assert settings.reset_code_expire_seconds == 300
    assert settings.refresh_token_days == 30
    assert settings.refresh_token_cap == 100
    assert settings.bcrypt_rounds == 10


def test_get_settings_is_cached(monkeypatch):
    """get_settings returns one cached instance."""
    monkeypatch.setenv("SECRET_KEY", LONG_KEY)
    get_settings.cache_clear()
    try:
        assert get_settings() is get_settings()
    finally:
        get_settings.cache_clear()
