"""
Configuration for advisorkit.

Values come from the environment (optionally seeded from a .env file) under
the ADVISORKIT_ prefix. Cache size and TTL are tuning knobs, not correctness
constants.
"""

import logging
import os
from pathlib import Path
from typing import Any, Callable, Optional, Union

from dotenv import load_dotenv
from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

ENV_PREFIX = "ADVISORKIT_"
MAX_TTL_HOURS = 24 * 365
MAX_CLEANUP_INTERVAL_MINUTES = 60 * 24 * 7


class Settings(BaseModel):
    cache_db_path: str = "advisorkit_cache.db"
    cache_max_size: int = Field(default=50, ge=1)
    cache_ttl_hours: float = Field(default=24.0, ge=0, le=MAX_TTL_HOURS)
    cleanup_interval_minutes: float = Field(default=60.0, ge=0, le=MAX_CLEANUP_INTERVAL_MINUTES)
    cache_key_prefix: str = "ai_recommendations_"
    cache_metadata_key: str = "ai_cache_metadata"

    telemetry_endpoint: Optional[str] = None
    telemetry_buffer_size: int = Field(default=50, ge=1)
    telemetry_flush_interval: float = Field(default=5.0, gt=0)
    telemetry_timeout: float = Field(default=5.0, gt=0)

    log_dir: str = "logs"
    log_level: str = "INFO"


def _read(name: str, cast: Callable[[str], Any], default: Any) -> Any:
    raw = os.getenv(ENV_PREFIX + name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return cast(raw.strip())
    except ValueError:
        logger.warning("Ignoring invalid %s%s=%r, using %r", ENV_PREFIX, name, raw, default)
        return default


def load_settings(env_file: Optional[Union[str, Path]] = None) -> Settings:
    """
    Build Settings from the environment.

    Args:
        env_file: Optional .env path; defaults to python-dotenv's lookup

    Returns:
        Settings with invalid or out-of-range values replaced by defaults
    """
    if env_file is not None:
        load_dotenv(dotenv_path=env_file)
    else:
        load_dotenv()

    defaults = Settings()
    values = {
        "cache_db_path": _read("CACHE_DB_PATH", str, defaults.cache_db_path),
        "cache_max_size": _read("CACHE_MAX_SIZE", int, defaults.cache_max_size),
        "cache_ttl_hours": _read("CACHE_TTL_HOURS", float, defaults.cache_ttl_hours),
        "cleanup_interval_minutes": _read(
            "CLEANUP_INTERVAL_MINUTES", float, defaults.cleanup_interval_minutes
        ),
        "cache_key_prefix": _read("CACHE_KEY_PREFIX", str, defaults.cache_key_prefix),
        "cache_metadata_key": _read("CACHE_METADATA_KEY", str, defaults.cache_metadata_key),
        "telemetry_endpoint": _read("TELEMETRY_ENDPOINT", str, defaults.telemetry_endpoint),
        "telemetry_buffer_size": _read("TELEMETRY_BUFFER_SIZE", int, defaults.telemetry_buffer_size),
        "telemetry_flush_interval": _read(
            "TELEMETRY_FLUSH_INTERVAL", float, defaults.telemetry_flush_interval
        ),
        "telemetry_timeout": _read("TELEMETRY_TIMEOUT", float, defaults.telemetry_timeout),
        "log_dir": _read("LOG_DIR", str, defaults.log_dir),
        "log_level": _read("LOG_LEVEL", str, defaults.log_level).upper(),
    }

    # Range-check field by field so one bad value doesn't discard the rest.
    for name, value in list(values.items()):
        try:
            Settings(**{name: value})
        except ValueError:
            logger.warning("Out-of-range %s=%r, using %r", name, value, getattr(defaults, name))
            values[name] = getattr(defaults, name)

    return Settings(**values)
