import os

import pytest
from pydantic import ValidationError

from advisorkit.config import ENV_PREFIX, Settings, load_settings


@pytest.fixture
def env(monkeypatch):
    for name in list(os.environ):
        if name.startswith(ENV_PREFIX):
            monkeypatch.delenv(name)
    return monkeypatch


@pytest.fixture
def no_env_file(tmp_path):
    return tmp_path / "missing.env"


def test_defaults(env, no_env_file):
    assert load_settings(no_env_file) == Settings()


def test_environment_overrides(env, no_env_file):
    env.setenv("ADVISORKIT_CACHE_MAX_SIZE", "10")
    env.setenv("ADVISORKIT_CACHE_TTL_HOURS", "6.5")
    env.setenv("ADVISORKIT_TELEMETRY_ENDPOINT", "https://logs.example/api")
    env.setenv("ADVISORKIT_LOG_LEVEL", "debug")

    settings = load_settings(no_env_file)
    assert settings.cache_max_size == 10
    assert settings.cache_ttl_hours == 6.5
    assert settings.telemetry_endpoint == "https://logs.example/api"
    assert settings.log_level == "DEBUG"


def test_invalid_values_fall_back(env, no_env_file):
    env.setenv("ADVISORKIT_CACHE_MAX_SIZE", "0")
    env.setenv("ADVISORKIT_CACHE_TTL_HOURS", "a day")
    env.setenv("ADVISORKIT_CLEANUP_INTERVAL_MINUTES", "15")

    settings = load_settings(no_env_file)
    assert settings.cache_max_size == 50
    assert settings.cache_ttl_hours == 24
    assert settings.cleanup_interval_minutes == 15


def test_env_file_is_loaded(env, tmp_path):
    env_file = tmp_path / ".env"
    env_file.write_text("ADVISORKIT_CACHE_DB_PATH=/var/lib/advisorkit/cache.db\n", encoding="utf-8")
    # Registered so teardown removes what the .env file sets.
    env.setenv("ADVISORKIT_CACHE_DB_PATH", "")
    env.delenv("ADVISORKIT_CACHE_DB_PATH")

    assert load_settings(env_file).cache_db_path == "/var/lib/advisorkit/cache.db"


def test_settings_validate_ranges():
    with pytest.raises(ValidationError):
        Settings(cache_max_size=0)
    with pytest.raises(ValidationError):
        Settings(telemetry_flush_interval=0)


def test_oversized_intervals_fall_back(env, no_env_file):
    env.setenv("ADVISORKIT_CACHE_TTL_HOURS", "1e9")
    env.setenv("ADVISORKIT_CLEANUP_INTERVAL_MINUTES", "1e12")

    settings = load_settings(no_env_file)
    assert settings.cache_ttl_hours == 24
    assert settings.cleanup_interval_minutes == 60


def test_settings_bound_ttl_and_cleanup_interval():
    with pytest.raises(ValidationError):
        Settings(cache_ttl_hours=1e9)
    with pytest.raises(ValidationError):
        Settings(cleanup_interval_minutes=1e12)
