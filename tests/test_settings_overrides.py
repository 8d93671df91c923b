from __future__ import annotations

from typing import Iterable

from cli.config import load_config
from datastore.mock_backend import build_default_backend
from services.monitor import build_monitor
from settings import get_settings
from storage.token_store import build_default_token_store


def _clear_caches(caches: Iterable) -> None:
    for cache in caches:
        cache.cache_clear()


def test_environment_overrides_apply(monkeypatch, tmp_path) -> None:
    token_path = tmp_path / "token"
    backend_path = tmp_path / "backend.json"

    monkeypatch.setenv("SENSOR_API_BASE_URL", "http://sensors.test/api/")
    monkeypatch.setenv("SENSOR_API_TIMEOUT", "4.5")
    monkeypatch.setenv("SENSOR_API_MAX_RETRIES", "0")
    monkeypatch.setenv("READINGS_POLL_INTERVAL", "5")
    monkeypatch.setenv("NOTIFICATIONS_POLL_INTERVAL", "15")
    monkeypatch.setenv("SENSOR_TOKEN_PATH", str(token_path))
    monkeypatch.setenv("KEEP_STALE_READINGS", "yes")
    monkeypatch.setenv("MOCK_BACKEND_PERSISTENCE_PATH", str(backend_path))
    monkeypatch.setenv("MOCK_BACKEND_SEED", "false")

    caches = (get_settings, build_default_token_store, build_default_backend)
    _clear_caches(caches)

    try:
        settings = get_settings()
        monitor = build_monitor()
        backend = build_default_backend()

        assert settings.api_base_url == "http://sensors.test/api"
        assert settings.request_timeout == 4.5
        assert monitor.api.max_retries == 0
        assert monitor.readings.keep_stale_on_error is True
        assert monitor.session.token_store.path == token_path
        assert backend.persistence_path == backend_path
        assert backend.list_readings() == []
        monitor.shutdown()
    finally:
        _clear_caches(caches)


def test_invalid_values_fall_back_to_defaults(monkeypatch) -> None:
    monkeypatch.setenv("SENSOR_API_TIMEOUT", "-1")
    monkeypatch.setenv("SENSOR_API_MAX_RETRIES", "many")
    monkeypatch.setenv("KEEP_STALE_READINGS", "maybe")
    monkeypatch.setenv("LOG_LEVEL", "debug")
    get_settings.cache_clear()

    try:
        settings = get_settings()

        assert settings.request_timeout == 10.0
        assert settings.max_retries == 3
        assert settings.keep_stale_readings is False
        assert settings.log_level == "DEBUG"
    finally:
        get_settings.cache_clear()


def test_cli_flags_override_environment(monkeypatch) -> None:
    monkeypatch.setenv("SENSOR_API_BASE_URL", "http://from-env/api")
    get_settings.cache_clear()

    try:
        config = load_config(base_url="http://flag/api/", timeout=0, token_path="/tmp/tok")

        assert config.base_url == "http://flag/api"
        assert config.timeout == get_settings().request_timeout
        assert config.token_path == "/tmp/tok"
    finally:
        get_settings.cache_clear()
