from __future__ import annotations

import time
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Iterator, Optional

import typer

from app.schemas import ThresholdCreate, ThresholdUpdate
from cli.config import CLIConfig, load_config
from cli.render import (
    echo_error,
    render_dashboard,
    render_field_errors,
    render_latest,
    render_notifications,
    render_readings,
    render_statistics,
    render_thresholds,
    render_user,
)
from logging_config import configure_logging
from models.catalog import SensorType, lookup, parse_sensor_type
from services.analytics import ReadingAnalyzer, format_statistics
from services.api_client import ApiError
from services.errors import ValidationError
from services.monitor import SensorMonitor, build_monitor
from services.threshold_store import ThresholdSort, ThresholdStatus, filter_thresholds


@dataclass
class CLIState:
    config: CLIConfig
    monitor: SensorMonitor


app = typer.Typer(
    help="Monitor sensor readings, thresholds and alert notifications.",
    context_settings={"help_option_names": ["-h", "--help"]},
)
thresholds_app = typer.Typer(help="Inspect and edit alert thresholds.")
notifications_app = typer.Typer(help="Read and acknowledge alert notifications.")
app.add_typer(thresholds_app, name="thresholds")
app.add_typer(notifications_app, name="notifications")


def _get_state(ctx: typer.Context) -> CLIState:
    state = ctx.find_root().obj
    if not isinstance(state, CLIState):
        raise typer.Exit(code=1)
    return state


def _sensor_type(value: str) -> SensorType:
    try:
        return parse_sensor_type(value)
    except ValueError as exc:
        raise typer.BadParameter(str(exc)) from exc


@contextmanager
def _reported_errors() -> Iterator[None]:
    """Turn service errors into a red message and exit code 1."""
    try:
        yield
    except ValidationError as exc:
        render_field_errors(exc.errors)
        raise typer.Exit(code=1) from exc
    except ApiError as exc:
        status = f" (status {exc.status_code})" if exc.status_code is not None else ""
        echo_error(f"{exc.message}{status}")
        raise typer.Exit(code=1) from exc


def _fail_on_store_error(error: Optional[str]) -> None:
    if error:
        echo_error(error)
        raise typer.Exit(code=1)


@app.callback()
def main(
    ctx: typer.Context,
    base_url: Optional[str] = typer.Option(
        None,
        "--base-url",
        "-b",
        help="Backend API base URL (defaults to SENSOR_API_BASE_URL or http://localhost:8000/api).",
    ),
    timeout: Optional[float] = typer.Option(
        None,
        "--timeout",
        help="Per-request timeout in seconds.",
    ),
    token_file: Optional[str] = typer.Option(
        None,
        "--token-file",
        help="Where the bearer token is stored (defaults to SENSOR_TOKEN_PATH).",
    ),
) -> None:
    """Entry point for the CLI."""
    configure_logging()
    config = load_config(base_url=base_url, timeout=timeout, token_path=token_file)
    monitor = build_monitor(
        base_url=config.base_url, timeout=config.timeout, token_path=config.token_path
    )
    ctx.obj = CLIState(config=config, monitor=monitor)
    ctx.call_on_close(monitor.shutdown)


# -- account -----------------------------------------------------------------


@app.command("login")
def login_command(
    ctx: typer.Context,
    email: str = typer.Option(..., "--email", "-e", prompt=True),
    password: str = typer.Option(..., "--password", "-p", prompt=True, hide_input=True),
) -> None:
    """Sign in and store the bearer token."""
    state = _get_state(ctx)
    with _reported_errors():
        user = state.monitor.auth.login(email, password)
    typer.secho(f"Signed in as {user.name} <{user.email}>", fg=typer.colors.GREEN)


@app.command("register")
def register_command(
    ctx: typer.Context,
    name: str = typer.Option(..., "--name", prompt=True),
    email: str = typer.Option(..., "--email", "-e", prompt=True),
    password: str = typer.Option(..., "--password", "-p", prompt=True, hide_input=True),
    password_confirmation: str = typer.Option(
        ..., "--password-confirmation", prompt="Confirm password", hide_input=True
    ),
) -> None:
    """Create an account and sign in."""
    state = _get_state(ctx)
    with _reported_errors():
        user = state.monitor.auth.register(name, email, password, password_confirmation)
    typer.secho(f"Account created for {user.email}", fg=typer.colors.GREEN)


@app.command("logout")
def logout_command(ctx: typer.Context) -> None:
    """Sign out and forget the stored token."""
    state = _get_state(ctx)
    with _reported_errors():
        state.monitor.auth.logout()
    typer.echo("Signed out.")


@app.command("whoami")
def whoami_command(ctx: typer.Context) -> None:
    """Show the signed-in user."""
    state = _get_state(ctx)
    with _reported_errors():
        user = state.monitor.auth.get_user()
    render_user(user)


@app.command("forgot-password")
def forgot_password_command(
    ctx: typer.Context,
    email: str = typer.Option(..., "--email", "-e", prompt=True),
) -> None:
    """Request password reset instructions."""
    state = _get_state(ctx)
    with _reported_errors():
        message = state.monitor.auth.forgot_password(email)
    typer.echo(message or "Reset instructions requested.")


@app.command("reset-password")
def reset_password_command(
    ctx: typer.Context,
    token: str = typer.Option(..., "--token", prompt=True),
    email: str = typer.Option(..., "--email", "-e", prompt=True),
    password: str = typer.Option(..., "--password", "-p", prompt=True, hide_input=True),
    password_confirmation: str = typer.Option(
        ..., "--password-confirmation", prompt="Confirm password", hide_input=True
    ),
) -> None:
    """Set a new password using a reset token."""
    state = _get_state(ctx)
    with _reported_errors():
        message = state.monitor.auth.reset_password(token, email, password, password_confirmation)
    typer.echo(message or "Password reset.")


# -- readings ----------------------------------------------------------------


@app.command("readings")
def readings_command(
    ctx: typer.Context,
    sensor: Optional[str] = typer.Option(None, "--type", "-t", help="Only show one sensor type."),
) -> None:
    """List the current readings, newest first."""
    state = _get_state(ctx)
    store = state.monitor.readings
    store.fetch_readings()
    _fail_on_store_error(store.error)
    if sensor is None:
        readings = sorted(store.readings, key=lambda r: r.timestamp, reverse=True)
    else:
        readings = store.readings_for(_sensor_type(sensor))
    render_readings(readings)


@app.command("latest")
def latest_command(
    ctx: typer.Context,
    sensor: str = typer.Argument(..., help="Sensor type, e.g. temperature."),
) -> None:
    """Show the most recent reading of one sensor type and whether it is an alert."""
    state = _get_state(ctx)
    sensor_type = _sensor_type(sensor)
    state.monitor.refresh()
    _fail_on_store_error(state.monitor.readings.error)
    render_latest(
        sensor_type,
        state.monitor.readings.get_latest_reading(sensor_type),
        state.monitor.is_alert(sensor_type),
    )


@app.command("dashboard")
def dashboard_command(ctx: typer.Context) -> None:
    """Latest value and alert status of every sensor."""
    state = _get_state(ctx)
    monitor = state.monitor
    monitor.refresh()
    monitor.notifications.fetch_notifications()
    _fail_on_store_error(monitor.readings.error)
    render_dashboard(monitor.dashboard(), monitor.notifications.unread_count)


@app.command("analytics")
def analytics_command(
    ctx: typer.Context,
    sensor: str = typer.Argument("temperature", help="Sensor type to summarize."),
) -> None:
    """Min, max and average of the current readings of one sensor type."""
    state = _get_state(ctx)
    sensor_type = _sensor_type(sensor)
    monitor = state.monitor
    monitor.refresh()
    _fail_on_store_error(monitor.readings.error)
    stats = ReadingAnalyzer().summarize(monitor.readings.readings, sensor_type)
    render_statistics(
        sensor_type,
        format_statistics(stats, sensor_type),
        monitor.readings.get_latest_reading(sensor_type),
        monitor.thresholds.get_threshold(sensor_type),
    )


@app.command("watch")
def watch_command(
    ctx: typer.Context,
    interval: Optional[float] = typer.Option(
        None, "--interval", help="Seconds between dashboard redraws."
    ),
    iterations: Optional[int] = typer.Option(
        None, "--iterations", help="Stop after this many redraws (default: until interrupted)."
    ),
) -> None:
    """Keep the dashboard on screen while readings and notifications poll."""
    state = _get_state(ctx)
    monitor = state.monitor
    pause = interval if interval and interval > 0 else state.config.watch_interval
    monitor.start()
    drawn = 0
    try:
        while iterations is None or drawn < iterations:
            if drawn:
                time.sleep(pause)
            typer.echo()
            render_dashboard(monitor.dashboard(), monitor.notifications.unread_count)
            for store_error in (monitor.readings.error, monitor.notifications.error):
                if store_error:
                    echo_error(store_error)
            drawn += 1
    except KeyboardInterrupt:
        typer.echo("Stopped.")


# -- thresholds --------------------------------------------------------------


@thresholds_app.command("list")
def thresholds_list_command(
    ctx: typer.Context,
    search: str = typer.Option("", "--search", "-s", help="Filter by sensor name."),
    status: ThresholdStatus = typer.Option(ThresholdStatus.all, "--status"),
    sort: ThresholdSort = typer.Option(ThresholdSort.name, "--sort"),
    descending: bool = typer.Option(False, "--desc", help="Sort in descending order."),
) -> None:
    """List thresholds, optionally filtered by name or alert status."""
    state = _get_state(ctx)
    monitor = state.monitor
    monitor.refresh()
    _fail_on_store_error(monitor.thresholds.error)
    render_thresholds(
        filter_thresholds(
            monitor.thresholds.thresholds,
            readings=monitor.readings.readings,
            query=search,
            status=status,
            sort_by=sort,
            descending=descending,
        )
    )


@thresholds_app.command("set")
def thresholds_set_command(
    ctx: typer.Context,
    threshold_id: int = typer.Argument(..., help="Threshold id."),
    min_value: Optional[float] = typer.Option(None, "--min"),
    max_value: Optional[float] = typer.Option(None, "--max"),
) -> None:
    """Change the range of an existing threshold."""
    if min_value is None and max_value is None:
        raise typer.BadParameter("Pass --min and/or --max.")
    state = _get_state(ctx)
    store = state.monitor.thresholds
    store.fetch_thresholds()
    changes = {"min_value": min_value, "max_value": max_value}
    update = ThresholdUpdate(**{key: value for key, value in changes.items() if value is not None})
    with _reported_errors():
        saved = store.update_threshold(threshold_id, update)
    typer.secho(
        f"{lookup(saved.sensor_type).name}: {saved.min_value:g} - {saved.max_value:g}",
        fg=typer.colors.GREEN,
    )


@thresholds_app.command("create")
def thresholds_create_command(
    ctx: typer.Context,
    sensor: str = typer.Argument(..., help="Sensor type."),
    min_value: Optional[float] = typer.Option(None, "--min", help="Defaults to the catalog value."),
    max_value: Optional[float] = typer.Option(None, "--max", help="Defaults to the catalog value."),
) -> None:
    """Persist a threshold for a sensor type."""
    state = _get_state(ctx)
    sensor_type = _sensor_type(sensor)
    info = lookup(sensor_type)
    threshold = ThresholdCreate(
        sensor_type=sensor_type,
        min_value=info.default_min if min_value is None else min_value,
        max_value=info.default_max if max_value is None else max_value,
        unit=info.unit,
    )
    with _reported_errors():
        saved = state.monitor.thresholds.create_threshold(threshold)
    typer.secho(
        f"Created threshold #{saved.id} for {info.name}: {saved.min_value:g} - {saved.max_value:g}",
        fg=typer.colors.GREEN,
    )


# -- notifications -----------------------------------------------------------


@notifications_app.command("list")
def notifications_list_command(
    ctx: typer.Context,
    unread: bool = typer.Option(False, "--unread", help="Only unread notifications."),
) -> None:
    """List notifications; unread ones are marked with *."""
    state = _get_state(ctx)
    feed = state.monitor.notifications
    feed.fetch_notifications()
    _fail_on_store_error(feed.error)
    render_notifications(feed.unread() if unread else feed.notifications, feed.unread_count)


@notifications_app.command("read")
def notifications_read_command(
    ctx: typer.Context,
    notification_id: int = typer.Argument(..., help="Notification id."),
) -> None:
    """Mark one notification as read."""
    state = _get_state(ctx)
    feed = state.monitor.notifications
    if not feed.mark_as_read(notification_id):
        _fail_on_store_error(feed.error)
    typer.echo(f"Notification #{notification_id} marked as read.")


@notifications_app.command("read-all")
def notifications_read_all_command(ctx: typer.Context) -> None:
    """Mark every notification as read."""
    state = _get_state(ctx)
    feed = state.monitor.notifications
    if not feed.mark_all_as_read():
        _fail_on_store_error(feed.error)
    typer.echo("All notifications marked as read.")
