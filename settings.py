from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional


_API_BASE_URL_ENV = "SENSOR_API_BASE_URL"
_API_TIMEOUT_ENV = "SENSOR_API_TIMEOUT"
_API_MAX_RETRIES_ENV = "SENSOR_API_MAX_RETRIES"
_API_BACKOFF_BASE_ENV = "SENSOR_API_BACKOFF_BASE"
_READINGS_INTERVAL_ENV = "READINGS_POLL_INTERVAL"
_NOTIFICATIONS_INTERVAL_ENV = "NOTIFICATIONS_POLL_INTERVAL"
_TOKEN_PATH_ENV = "SENSOR_TOKEN_PATH"
_KEEP_STALE_ENV = "KEEP_STALE_READINGS"
_BACKEND_PATH_ENV = "MOCK_BACKEND_PERSISTENCE_PATH"
_BACKEND_SEED_ENV = "MOCK_BACKEND_SEED"
_LOG_LEVEL_ENV = "LOG_LEVEL"

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


@dataclass(frozen=True)
class Settings:
    api_base_url: str
    request_timeout: float
    max_retries: int
    backoff_base: float
    readings_poll_interval: float
    notifications_poll_interval: float
    token_path: Optional[str]
    keep_stale_readings: bool
    backend_persistence_path: Optional[str]
    backend_seed: bool
    log_level: str


def _read_str_env(name: str, default: str) -> str:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    return candidate or default


def _read_optional_env(name: str, default: Optional[str]) -> Optional[str]:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    return candidate or None


def _read_positive_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    try:
        parsed = float(candidate)
    except ValueError:
        return default
    return parsed if parsed > 0 else default


def _read_retry_count(default: int) -> int:
    value = os.getenv(_API_MAX_RETRIES_ENV)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    try:
        parsed = int(candidate)
    except ValueError:
        return default
    return parsed if parsed >= 0 else default


def _read_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip().lower()
    if candidate in _TRUE_VALUES:
        return True
    if candidate in _FALSE_VALUES:
        return False
    return default


def _read_log_level(default: str) -> str:
    value = os.getenv(_LOG_LEVEL_ENV)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    return candidate.upper()


@lru_cache
def get_settings() -> Settings:
    return Settings(
        api_base_url=_read_str_env(_API_BASE_URL_ENV, "http://localhost:8000/api").rstrip("/"),
        request_timeout=_read_positive_float(_API_TIMEOUT_ENV, 10.0),
        max_retries=_read_retry_count(3),
        backoff_base=_read_positive_float(_API_BACKOFF_BASE_ENV, 2.0),
        readings_poll_interval=_read_positive_float(_READINGS_INTERVAL_ENV, 30.0),
        notifications_poll_interval=_read_positive_float(_NOTIFICATIONS_INTERVAL_ENV, 60.0),
        token_path=_read_optional_env(
            _TOKEN_PATH_ENV, os.path.join(os.path.expanduser("~"), ".sensor-monitor", "token")
        ),
        keep_stale_readings=_read_bool(_KEEP_STALE_ENV, False),
        backend_persistence_path=_read_optional_env(_BACKEND_PATH_ENV, "./tmp/mock_backend.json"),
        backend_seed=_read_bool(_BACKEND_SEED_ENV, True),
        log_level=_read_log_level("INFO"),
    )
