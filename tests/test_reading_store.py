from __future__ import annotations

import threading

from conftest import make_reading

from models.catalog import SensorType
from services.api_client import ApiError, NetworkError
from services.reading_store import FETCH_READINGS_FAILED, ReadingStore


def test_fetch_replaces_collection(stub_api) -> None:
    store = ReadingStore(api=stub_api)
    stub_api.readings = [make_reading(SensorType.temperature, 20.0)]
    store.fetch_readings()
    stub_api.readings = [make_reading(SensorType.humidity, 40.0, reading_id=2)]

    store.fetch_readings()

    assert [r.id for r in store.readings] == [2]
    assert store.error is None
    assert store.last_updated is not None
    assert store.is_loading is False


def test_latest_reading_absent_on_empty_store(stub_api) -> None:
    store = ReadingStore(api=stub_api)

    assert all(store.get_latest_reading(t) is None for t in SensorType)


def test_latest_reading_returns_newest(stub_api) -> None:
    stub_api.readings = [
        make_reading(SensorType.temperature, 1.0, seconds=10, reading_id=1),
        make_reading(SensorType.temperature, 2.0, seconds=20, reading_id=2),
    ]
    store = ReadingStore(api=stub_api)
    store.fetch_readings()

    latest = store.get_latest_reading(SensorType.temperature)

    assert latest is not None and latest.value == 2.0
    assert [r.value for r in store.readings_for(SensorType.temperature)] == [2.0, 1.0]


def test_network_failure_discards_readings(stub_api) -> None:
    stub_api.readings = [make_reading(SensorType.temperature, 20.0)]
    store = ReadingStore(api=stub_api)
    store.fetch_readings()
    stub_api.failures["get_readings"] = NetworkError("Network error: boom")

    store.fetch_readings()

    assert store.readings == []
    assert store.error == FETCH_READINGS_FAILED
    assert store.stale is False


def test_server_error_message_is_passed_through(stub_api) -> None:
    stub_api.failures["get_readings"] = ApiError("Sensor service unavailable", status_code=503)
    store = ReadingStore(api=stub_api)

    store.fetch_readings()

    assert store.error == "Sensor service unavailable"


def test_keep_stale_mode_retains_last_good_readings(stub_api) -> None:
    stub_api.readings = [make_reading(SensorType.temperature, 20.0)]
    store = ReadingStore(api=stub_api, keep_stale_on_error=True)
    store.fetch_readings()
    stub_api.failures["get_readings"] = NetworkError("Network error: boom")

    store.fetch_readings()

    assert len(store.readings) == 1
    assert store.stale is True
    assert store.error == FETCH_READINGS_FAILED

    store.fetch_readings()
    assert store.stale is False
    assert store.error is None


def test_slow_older_response_does_not_overwrite_newer(stub_api) -> None:
    store = ReadingStore(api=stub_api)
    first_started = threading.Event()
    release_first = threading.Event()
    old_batch = [make_reading(SensorType.temperature, 1.0, reading_id=1)]
    new_batch = [make_reading(SensorType.temperature, 2.0, reading_id=2)]
    calls = []

    def slow_then_fast():
        calls.append(len(calls))
        if len(calls) == 1:
            first_started.set()
            release_first.wait(timeout=5)
            return old_batch
        return new_batch

    stub_api.get_readings = slow_then_fast
    slow = threading.Thread(target=store.fetch_readings)
    slow.start()
    assert first_started.wait(timeout=5)

    store.fetch_readings()
    release_first.set()
    slow.join(timeout=5)

    assert [r.id for r in store.readings] == [2]


def test_clear_error(stub_api) -> None:
    stub_api.failures["get_readings"] = NetworkError("down")
    store = ReadingStore(api=stub_api)
    store.fetch_readings()

    store.clear_error()

    assert store.error is None


def test_fetch_by_type_leaves_cache_untouched(stub_api) -> None:
    stub_api.readings = [
        make_reading(SensorType.temperature, 20.0, reading_id=1),
        make_reading(SensorType.humidity, 40.0, reading_id=2),
    ]
    store = ReadingStore(api=stub_api)

    humidity = store.fetch_readings_by_type(SensorType.humidity)

    assert [r.id for r in humidity] == [2]
    assert store.readings == []
    assert stub_api.called("get_readings_by_type") == [SensorType.humidity]
