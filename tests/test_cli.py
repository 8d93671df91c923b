from __future__ import annotations

from typing import Any, Dict

import pytest
from conftest import StubApi, make_notification, make_reading, make_threshold
from typer.testing import CliRunner

from cli.app import app
from models.catalog import SensorType
from services.api_client import ApiError, NetworkError
from services.monitor import SensorMonitor


@pytest.fixture()
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture()
def monitor_kwargs(monkeypatch, stub_api: StubApi) -> Dict[str, Any]:
    captured: Dict[str, Any] = {}

    def factory(**kwargs: Any) -> SensorMonitor:
        captured.update(kwargs)
        return SensorMonitor(stub_api)

    monkeypatch.setattr("cli.app.build_monitor", factory)
    return captured


def test_options_reach_monitor_factory(runner, monitor_kwargs, stub_api) -> None:
    result = runner.invoke(
        app,
        ["--base-url", "http://sensors.test/api/", "--timeout", "3", "readings"],
    )

    assert result.exit_code == 0, result.output
    assert monitor_kwargs["base_url"] == "http://sensors.test/api"
    assert monitor_kwargs["timeout"] == 3.0
    assert stub_api.closed is True


def test_readings_lists_newest_first(runner, monitor_kwargs, stub_api) -> None:
    stub_api.readings = [
        make_reading(SensorType.temperature, 20.0, seconds=0, reading_id=1),
        make_reading(SensorType.temperature, 22.5, seconds=60, reading_id=2),
    ]

    result = runner.invoke(app, ["readings", "--type", "temperature"])

    assert result.exit_code == 0, result.output
    assert result.output.index("#2") < result.output.index("#1")
    assert "22.5 °C" in result.output


def test_readings_failure_exits_with_error(runner, monitor_kwargs, stub_api) -> None:
    stub_api.failures["get_readings"] = NetworkError("Network error: refused")

    result = runner.invoke(app, ["readings"])

    assert result.exit_code == 1
    assert "Failed to fetch sensor readings." in result.output


def test_latest_reports_missing_data(runner, monitor_kwargs, stub_api) -> None:
    result = runner.invoke(app, ["latest", "water-level"])

    assert result.exit_code == 0, result.output
    assert "No data available for this sensor" in result.output


def test_latest_rejects_unknown_sensor(runner, monitor_kwargs) -> None:
    result = runner.invoke(app, ["latest", "radiation"])

    assert result.exit_code != 0


def test_dashboard_shows_alert_count(runner, monitor_kwargs, stub_api) -> None:
    stub_api.readings = [make_reading(SensorType.temperature, 45.0)]
    stub_api.thresholds = [make_threshold(SensorType.temperature, 10, 30)]
    stub_api.notifications = [make_notification(1), make_notification(2, read=True)]

    result = runner.invoke(app, ["dashboard"])

    assert result.exit_code == 0, result.output
    assert "1 sensor reporting values outside threshold limits" in result.output
    assert "Unread notifications: 1" in result.output
    assert "ALERT" in result.output


def test_dashboard_all_normal_with_default_thresholds(runner, monitor_kwargs, stub_api) -> None:
    stub_api.failures["get_thresholds"] = ApiError("Not found", status_code=404)
    stub_api.readings = [make_reading(SensorType.humidity, 50.0)]

    result = runner.invoke(app, ["dashboard"])

    assert result.exit_code == 0, result.output
    assert "All Normal" in result.output


def test_analytics_summary(runner, monitor_kwargs, stub_api) -> None:
    stub_api.readings = [
        make_reading(SensorType.humidity, 40.0, reading_id=1),
        make_reading(SensorType.humidity, 60.0, seconds=10, reading_id=2),
    ]

    result = runner.invoke(app, ["analytics", "humidity"])

    assert result.exit_code == 0, result.output
    assert "current: 60.0 %" in result.output
    assert "avg: 50.0 %" in result.output


def test_login_stores_session(runner, monitor_kwargs, stub_api) -> None:
    result = runner.invoke(
        app, ["login", "--email", "ada@example.com", "--password", "hunter22!"]
    )

    assert result.exit_code == 0, result.output
    assert "Signed in as Ada" in result.output
    assert stub_api.session.token == "token-123"


def test_login_validation_errors(runner, monitor_kwargs, stub_api) -> None:
    result = runner.invoke(app, ["login", "--email", "nope", "--password", "x"])

    assert result.exit_code == 1
    assert "email: Please enter a valid email" in result.output
    assert stub_api.called("login") == []


def test_login_server_error(runner, monitor_kwargs, stub_api) -> None:
    stub_api.failures["login"] = ApiError("Invalid email or password.", status_code=401)

    result = runner.invoke(
        app, ["login", "--email", "ada@example.com", "--password", "hunter22!"]
    )

    assert result.exit_code == 1
    assert "Invalid email or password. (status 401)" in result.output


def test_thresholds_list_filters(runner, monitor_kwargs, stub_api) -> None:
    stub_api.thresholds = [
        make_threshold(SensorType.temperature, 10, 30, threshold_id=1),
        make_threshold(SensorType.humidity, 30, 70, threshold_id=2),
    ]
    stub_api.readings = [make_reading(SensorType.temperature, 45.0)]

    result = runner.invoke(app, ["thresholds", "list", "--status", "alerts"])

    assert result.exit_code == 0, result.output
    assert "Temperature" in result.output
    assert "Humidity" not in result.output


def test_thresholds_set_sends_partial_update(runner, monitor_kwargs, stub_api) -> None:
    stub_api.thresholds = [make_threshold(SensorType.temperature, 10, 30, threshold_id=4)]

    result = runner.invoke(app, ["thresholds", "set", "4", "--max", "35"])

    assert result.exit_code == 0, result.output
    assert "Temperature: 10 - 35" in result.output
    ((threshold_id, update),) = stub_api.called("update_threshold")
    assert threshold_id == 4
    assert update.model_dump(exclude_unset=True) == {"max_value": 35.0}


def test_thresholds_set_rejects_inverted_range(runner, monitor_kwargs, stub_api) -> None:
    stub_api.thresholds = [make_threshold(SensorType.temperature, 10, 30, threshold_id=4)]

    result = runner.invoke(app, ["thresholds", "set", "4", "--min", "50"])

    assert result.exit_code == 1
    assert "min_value" in result.output
    assert stub_api.called("update_threshold") == []


def test_thresholds_create_uses_catalog_defaults(runner, monitor_kwargs, stub_api) -> None:
    result = runner.invoke(app, ["thresholds", "create", "soil_moisture"])

    assert result.exit_code == 0, result.output
    (created,) = stub_api.called("create_threshold")
    assert (created.min_value, created.max_value) == (20, 80)
    assert "Soil Moisture: 20 - 80" in result.output


def test_notifications_list_unread(runner, monitor_kwargs, stub_api) -> None:
    stub_api.notifications = [make_notification(1), make_notification(2, read=True)]

    result = runner.invoke(app, ["notifications", "list", "--unread"])

    assert result.exit_code == 0, result.output
    assert "Notifications (1 new)" in result.output
    assert "#1" in result.output
    assert "#2" not in result.output


def test_notifications_read_failure(runner, monitor_kwargs, stub_api) -> None:
    stub_api.failures["mark_notification_read"] = NetworkError("down")

    result = runner.invoke(app, ["notifications", "read", "3"])

    assert result.exit_code == 1
    assert "Failed to mark notification as read." in result.output


def test_notifications_read_all(runner, monitor_kwargs, stub_api) -> None:
    result = runner.invoke(app, ["notifications", "read-all"])

    assert result.exit_code == 0, result.output
    assert "All notifications marked as read." in result.output


def test_watch_draws_requested_iterations(runner, monitor_kwargs, stub_api) -> None:
    stub_api.readings = [make_reading(SensorType.temperature, 20.0)]

    result = runner.invoke(app, ["watch", "--iterations", "1"])

    assert result.exit_code == 0, result.output
    assert result.output.count("Sensor Dashboard") == 1
    assert stub_api.called("get_thresholds")
    assert stub_api.closed is True
