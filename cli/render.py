from __future__ import annotations

from typing import Any, Dict, Iterable, List, Mapping, Optional

import typer

from app.schemas import Notification, SensorReading, SensorThreshold, Severity, User
from models.catalog import SensorType, format_value, lookup
from models.records import SensorStatus


def echo_heading(text: str) -> None:
    typer.secho(text, bold=True)


def echo_key_values(pairs: Iterable[tuple[str, Any]]) -> None:
    for key, value in pairs:
        typer.echo(f"{key}: {value}")


def echo_error(message: str) -> None:
    typer.secho(message, fg=typer.colors.RED, err=True)


def _timestamp(reading: SensorReading) -> str:
    return reading.timestamp.strftime("%Y-%m-%d %H:%M:%S")


def render_dashboard(rows: List[SensorStatus], unread_count: int = 0) -> None:
    alerts = [row for row in rows if row.in_alert]
    echo_heading("Sensor Dashboard")
    if alerts:
        noun = "sensor" if len(alerts) == 1 else "sensors"
        typer.secho(
            f"{len(alerts)} Alerts: {len(alerts)} {noun} reporting values outside threshold limits",
            fg=typer.colors.RED,
        )
    else:
        typer.secho("All Normal", fg=typer.colors.GREEN)
    typer.echo(f"Unread notifications: {unread_count}")
    typer.echo()

    for row in rows:
        value = format_value(row.info.type, row.latest.value) if row.latest else "No data"
        status = "ALERT" if row.in_alert else "ok"
        color = typer.colors.RED if row.in_alert else None
        typer.secho(f"  {row.info.name:<22} {value:>14}  {status}", fg=color)


def render_readings(readings: Iterable[SensorReading]) -> None:
    readings = list(readings)
    echo_heading("Readings")
    if not readings:
        typer.echo("No readings available.")
        return
    for reading in readings:
        typer.echo(
            f"  - #{reading.id} {_timestamp(reading)} sensor {reading.sensor_id} "
            f"{lookup(reading.sensor_type).name}: {format_value(reading.sensor_type, reading.value)}"
        )


def render_latest(
    sensor_type: SensorType, reading: Optional[SensorReading], in_alert: bool
) -> None:
    info = lookup(sensor_type)
    echo_heading(info.name)
    if reading is None:
        typer.echo("No data available for this sensor")
        return
    echo_key_values(
        [
            ("value", format_value(sensor_type, reading.value)),
            ("timestamp", _timestamp(reading)),
            ("sensor_id", reading.sensor_id),
        ]
    )
    if in_alert:
        typer.secho("status: ALERT", fg=typer.colors.RED)
    else:
        typer.echo("status: normal")


def render_thresholds(thresholds: Iterable[SensorThreshold]) -> None:
    thresholds = list(thresholds)
    echo_heading("Thresholds")
    if not thresholds:
        typer.echo("No thresholds match.")
        return
    for threshold in thresholds:
        info = lookup(threshold.sensor_type)
        ident = f"#{threshold.id}" if threshold.id is not None else "(default)"
        typer.echo(
            f"  {ident:<10} {info.name:<22} "
            f"Range: {threshold.min_value:g} - {threshold.max_value:g} {info.unit}".rstrip()
        )


def render_notifications(notifications: Iterable[Notification], unread_count: int) -> None:
    notifications = list(notifications)
    echo_heading(f"Notifications ({unread_count} new)")
    if not notifications:
        typer.echo("No notifications.")
        return
    for notification in notifications:
        marker = " " if notification.read else "*"
        color = typer.colors.RED if notification.severity is Severity.critical else None
        typer.secho(
            f"{marker} #{notification.id} {notification.timestamp.strftime('%H:%M')} "
            f"[{notification.severity.value}] {notification.message}",
            fg=color,
        )


def render_statistics(
    sensor_type: SensorType,
    stats: Mapping[str, str],
    latest: Optional[SensorReading],
    threshold: Optional[SensorThreshold],
) -> None:
    info = lookup(sensor_type)
    echo_heading(f"Sensor Analytics: {info.name}")
    current = format_value(sensor_type, latest.value) if latest else "N/A"
    pairs: List[tuple[str, Any]] = [("current", current)]
    if threshold is not None:
        pairs.append(
            ("threshold", f"{threshold.min_value:g} - {threshold.max_value:g} {info.unit}".rstrip())
        )
    pairs.extend([("min", stats["min"]), ("max", stats["max"]), ("avg", stats["avg"])])
    echo_key_values(pairs)


def render_user(user: User) -> None:
    echo_key_values([("name", user.name), ("email", user.email), ("id", user.id)])


def render_field_errors(errors: Dict[str, str]) -> None:
    for field_name, message in errors.items():
        echo_error(f"{field_name}: {message}")
