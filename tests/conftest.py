from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional

import pytest

from app.schemas import (
    AuthPayload,
    Notification,
    SensorReading,
    SensorThreshold,
    Severity,
    ThresholdCreate,
    ThresholdUpdate,
    User,
)
from models.catalog import SensorType
from services.session import AuthSession

BASE_TIME = datetime(2024, 1, 1, tzinfo=timezone.utc)


def make_reading(
    sensor_type: SensorType,
    value: float,
    seconds: int = 0,
    reading_id: int = 1,
    sensor_id: int = 1,
) -> SensorReading:
    return SensorReading(
        id=reading_id,
        sensor_id=sensor_id,
        sensor_type=sensor_type,
        value=value,
        unit="",
        timestamp=BASE_TIME + timedelta(seconds=seconds),
    )


def make_threshold(
    sensor_type: SensorType,
    min_value: float,
    max_value: float,
    threshold_id: Optional[int] = 1,
) -> SensorThreshold:
    return SensorThreshold(
        id=threshold_id,
        sensor_type=sensor_type,
        min_value=min_value,
        max_value=max_value,
        unit="",
    )


def make_notification(notification_id: int, read: bool = False) -> Notification:
    return Notification(
        id=notification_id,
        sensor_type=SensorType.temperature,
        message=f"Temperature alert {notification_id}",
        severity=Severity.warning,
        timestamp=BASE_TIME + timedelta(minutes=notification_id),
        read=read,
    )


def make_user() -> User:
    return User(
        id=7,
        name="Ada",
        email="ada@example.com",
        created_at=BASE_TIME,
        updated_at=BASE_TIME,
    )


class StubApi:
    """Stands in for ``SensorApiClient``; entries in ``failures`` are raised once."""

    def __init__(self) -> None:
        self.session = AuthSession()
        self.readings: List[SensorReading] = []
        self.thresholds: List[SensorThreshold] = []
        self.notifications: List[Notification] = []
        self.failures: Dict[str, Exception] = {}
        self.calls: List[tuple[str, Any]] = []
        self.hooks: Dict[str, Callable[[], None]] = {}
        self.closed = False
        self._next_id = 100

    def _enter(self, name: str, arg: Any = None) -> None:
        self.calls.append((name, arg))
        hook = self.hooks.get(name)
        if hook is not None:
            hook()
        failure = self.failures.pop(name, None)
        if failure is not None:
            raise failure

    def called(self, name: str) -> List[Any]:
        return [arg for call, arg in self.calls if call == name]

    def close(self) -> None:
        self.closed = True

    def get_readings(self) -> List[SensorReading]:
        self._enter("get_readings")
        return list(self.readings)

    def get_readings_by_type(self, sensor_type: SensorType) -> List[SensorReading]:
        self._enter("get_readings_by_type", sensor_type)
        return [r for r in self.readings if r.sensor_type == sensor_type]

    def get_thresholds(self) -> List[SensorThreshold]:
        self._enter("get_thresholds")
        return list(self.thresholds)

    def update_threshold(self, threshold_id: int, update: ThresholdUpdate) -> SensorThreshold:
        self._enter("update_threshold", (threshold_id, update))
        current = next(t for t in self.thresholds if t.id == threshold_id)
        changes = update.model_dump(exclude_unset=True, exclude_none=True)
        saved = current.model_copy(update=changes)
        self.thresholds = [saved if t.id == threshold_id else t for t in self.thresholds]
        return saved

    def create_threshold(self, threshold: ThresholdCreate) -> SensorThreshold:
        self._enter("create_threshold", threshold)
        self._next_id += 1
        saved = SensorThreshold(id=self._next_id, **threshold.model_dump())
        self.thresholds.append(saved)
        return saved

    def get_notifications(self) -> List[Notification]:
        self._enter("get_notifications")
        return list(self.notifications)

    def mark_notification_read(self, notification_id: int) -> Optional[Notification]:
        self._enter("mark_notification_read", notification_id)
        return None

    def mark_all_notifications_read(self) -> None:
        self._enter("mark_all_notifications_read")

    def login(self, credentials) -> AuthPayload:
        self._enter("login", credentials)
        return AuthPayload(user=make_user(), token="token-123")

    def register(self, registration) -> AuthPayload:
        self._enter("register", registration)
        return AuthPayload(user=make_user(), token="token-456")

    def logout(self) -> str:
        self._enter("logout")
        return "Logged out."

    def get_user(self) -> User:
        self._enter("get_user")
        return make_user()

    def forgot_password(self, request) -> str:
        self._enter("forgot_password", request)
        return "Reset instructions sent."

    def reset_password(self, request) -> str:
        self._enter("reset_password", request)
        return "Password reset."


@pytest.fixture()
def stub_api() -> StubApi:
    return StubApi()
