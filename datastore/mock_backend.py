from __future__ import annotations

import json
import secrets
from datetime import datetime, timedelta, timezone
from functools import lru_cache
from pathlib import Path
from threading import Lock
from typing import Dict, List, Optional, Tuple

from passlib.hash import pbkdf2_sha256
from pydantic import BaseModel, Field

from app.schemas import (
    LoginCredentials,
    Notification,
    ReadingIngest,
    RegisterData,
    ResetPasswordRequest,
    SensorReading,
    SensorThreshold,
    Severity,
    ThresholdCreate,
    ThresholdUpdate,
    User,
)
from models.catalog import SENSOR_CATALOG, SensorType, format_value, lookup
from services.alerts import is_value_outside
from settings import get_settings


class ThresholdConflictError(ValueError):
    """Another threshold already covers the sensor type."""


class StoredAccount(BaseModel):
    user: User
    password_hash: str


class BackendState(BaseModel):
    """Everything the development backend persists."""

    accounts: Dict[int, StoredAccount] = Field(default_factory=dict)
    tokens: Dict[str, int] = Field(default_factory=dict)
    reset_tokens: Dict[str, str] = Field(default_factory=dict)
    readings: List[SensorReading] = Field(default_factory=list)
    thresholds: Dict[int, SensorThreshold] = Field(default_factory=dict)
    notifications: Dict[int, Notification] = Field(default_factory=dict)
    next_ids: Dict[str, int] = Field(default_factory=dict)


def _now() -> datetime:
    return datetime.now(timezone.utc)


class MockBackendStore:
    """In-memory backend state with optional JSON persistence.

    All reads return deep copies. A reading outside its type's threshold
    creates a notification, mirroring breach detection on a real backend.
    """

    def __init__(self, persistence_path: Optional[Path] = None) -> None:
        self.persistence_path = persistence_path
        self._state = BackendState()
        self._lock = Lock()
        if persistence_path:
            persistence_path.parent.mkdir(parents=True, exist_ok=True)
            self._load_from_disk()

    # -- accounts ----------------------------------------------------------

    def register(self, data: RegisterData) -> Tuple[User, str]:
        with self._lock:
            email = data.email.strip().lower()
            if any(a.user.email == email for a in self._state.accounts.values()):
                raise ValueError("The email has already been taken.")
            now = _now()
            user = User(
                id=self._next_id("users"),
                name=data.name.strip(),
                email=email,
                created_at=now,
                updated_at=now,
            )
            self._state.accounts[user.id] = StoredAccount(
                user=user, password_hash=pbkdf2_sha256.hash(data.password)
            )
            token = self._issue_token(user.id)
            self._persist()
            return user.model_copy(deep=True), token

    def login(self, credentials: LoginCredentials) -> Optional[Tuple[User, str]]:
        with self._lock:
            account = self._account_by_email(credentials.email)
            if account is None:
                return None
            if not pbkdf2_sha256.verify(credentials.password, account.password_hash):
                return None
            token = self._issue_token(account.user.id)
            self._persist()
            return account.user.model_copy(deep=True), token

    def user_for_token(self, token: str) -> Optional[User]:
        with self._lock:
            user_id = self._state.tokens.get(token)
            if user_id is None:
                return None
            account = self._state.accounts.get(user_id)
            return account.user.model_copy(deep=True) if account else None

    def revoke_token(self, token: str) -> None:
        with self._lock:
            self._state.tokens.pop(token, None)
            self._persist()

    def request_password_reset(self, email: str) -> Optional[str]:
        with self._lock:
            account = self._account_by_email(email)
            if account is None:
                return None
            reset_token = secrets.token_urlsafe(16)
            self._state.reset_tokens[reset_token] = account.user.email
            self._persist()
            return reset_token

    def reset_password(self, request: ResetPasswordRequest) -> bool:
        with self._lock:
            email = self._state.reset_tokens.get(request.token)
            if email is None or email != request.email.strip().lower():
                return False
            account = self._account_by_email(email)
            if account is None:
                return False
            account.password_hash = pbkdf2_sha256.hash(request.password)
            account.user.updated_at = _now()
            del self._state.reset_tokens[request.token]
            self._persist()
            return True

    # -- readings ----------------------------------------------------------

    def add_reading(self, ingest: ReadingIngest) -> SensorReading:
        with self._lock:
            reading = SensorReading(
                id=self._next_id("readings"),
                sensor_id=ingest.sensor_id,
                sensor_type=ingest.sensor_type,
                value=ingest.value,
                unit=ingest.unit if ingest.unit is not None else lookup(ingest.sensor_type).unit,
                timestamp=ingest.timestamp or _now(),
            )
            self._state.readings.append(reading)
            self._notify_on_breach(reading)
            self._persist()
            return reading

    def list_readings(self, sensor_type: Optional[SensorType] = None) -> List[SensorReading]:
        with self._lock:
            return [
                reading.model_copy(deep=True)
                for reading in self._state.readings
                if sensor_type is None or reading.sensor_type == sensor_type
            ]

    # -- thresholds --------------------------------------------------------

    def list_thresholds(self) -> List[SensorThreshold]:
        with self._lock:
            return [t.model_copy(deep=True) for t in self._state.thresholds.values()]

    def create_threshold(self, data: ThresholdCreate) -> SensorThreshold:
        with self._lock:
            if self._threshold_for(data.sensor_type) is not None:
                raise ThresholdConflictError(
                    f"A threshold for {data.sensor_type.value} already exists."
                )
            if data.min_value > data.max_value:
                raise ValueError("min_value must not exceed max_value.")
            threshold = SensorThreshold(
                id=self._next_id("thresholds"),
                sensor_type=data.sensor_type,
                min_value=data.min_value,
                max_value=data.max_value,
                unit=data.unit or lookup(data.sensor_type).unit,
            )
            self._state.thresholds[threshold.id] = threshold
            self._persist()
            return threshold.model_copy(deep=True)

    def update_threshold(self, threshold_id: int, update: ThresholdUpdate) -> SensorThreshold:
        with self._lock:
            current = self._state.thresholds.get(threshold_id)
            if current is None:
                raise KeyError(f"Threshold {threshold_id} not found.")
            changes = update.model_dump(exclude_unset=True, exclude_none=True)
            updated = current.model_copy(update=changes)
            if updated.min_value > updated.max_value:
                raise ValueError("min_value must not exceed max_value.")
            clash = self._threshold_for(updated.sensor_type)
            if clash is not None and clash.id != threshold_id:
                raise ThresholdConflictError(
                    f"A threshold for {updated.sensor_type.value} already exists."
                )
            self._state.thresholds[threshold_id] = updated
            self._persist()
            return updated.model_copy(deep=True)

    # -- notifications -----------------------------------------------------

    def list_notifications(self) -> List[Notification]:
        with self._lock:
            items = sorted(
                self._state.notifications.values(), key=lambda n: n.timestamp, reverse=True
            )
            return [n.model_copy(deep=True) for n in items]

    def mark_notification_read(self, notification_id: int) -> Notification:
        with self._lock:
            notification = self._state.notifications.get(notification_id)
            if notification is None:
                raise KeyError(f"Notification {notification_id} not found.")
            notification.read = True
            self._persist()
            return notification.model_copy(deep=True)

    def mark_all_notifications_read(self) -> int:
        with self._lock:
            changed = 0
            for notification in self._state.notifications.values():
                if not notification.read:
                    notification.read = True
                    changed += 1
            self._persist()
            return changed

    # -- seeding -----------------------------------------------------------

    def seed(self, now: Optional[datetime] = None, points: int = 6) -> None:
        """Populate an empty store with a deterministic series per sensor type."""
        with self._lock:
            if self._state.readings:
                return
        start = (now or _now()) - timedelta(minutes=5 * (points - 1))
        for index, info in enumerate(SENSOR_CATALOG.values()):
            span = info.default_max - info.default_min
            for step in range(points):
                if info.type is SensorType.fire_detection:
                    value = 0.0
                else:
                    value = info.default_min + span * (0.3 + 0.08 * step)
                self.add_reading(
                    ReadingIngest(
                        sensor_id=index + 1,
                        sensor_type=info.type,
                        value=round(value, 1),
                        timestamp=start + timedelta(minutes=5 * step),
                    )
                )

    # -- internals ---------------------------------------------------------

    def _notify_on_breach(self, reading: SensorReading) -> None:
        threshold = self._threshold_for(reading.sensor_type)
        if threshold is None or not is_value_outside(reading.value, threshold):
            return
        info = lookup(reading.sensor_type)
        severity = (
            Severity.critical if reading.sensor_type is SensorType.fire_detection else Severity.warning
        )
        direction = "below" if reading.value < threshold.min_value else "above"
        notification = Notification(
            id=self._next_id("notifications"),
            sensor_type=reading.sensor_type,
            message=(
                f"{info.name} reading {format_value(reading.sensor_type, reading.value)} is "
                f"{direction} the allowed range"
            ),
            severity=severity,
            timestamp=reading.timestamp,
            read=False,
        )
        self._state.notifications[notification.id] = notification

    def _threshold_for(self, sensor_type: SensorType) -> Optional[SensorThreshold]:
        return next(
            (t for t in self._state.thresholds.values() if t.sensor_type == sensor_type), None
        )

    def _account_by_email(self, email: str) -> Optional[StoredAccount]:
        needle = email.strip().lower()
        return next((a for a in self._state.accounts.values() if a.user.email == needle), None)

    def _issue_token(self, user_id: int) -> str:
        token = secrets.token_urlsafe(32)
        self._state.tokens[token] = user_id
        return token

    def _next_id(self, collection: str) -> int:
        value = self._state.next_ids.get(collection, 1)
        self._state.next_ids[collection] = value + 1
        return value

    def _persist(self) -> None:
        if not self.persistence_path:
            return
        payload = self._state.model_dump(mode="json")
        self.persistence_path.write_text(json.dumps(payload, indent=2, sort_keys=True))

    def _load_from_disk(self) -> None:
        if not self.persistence_path or not self.persistence_path.exists():
            return

        try:
            raw = self.persistence_path.read_text() or "{}"
            data = json.loads(raw)
        except (OSError, json.JSONDecodeError):
            data = {}

        self._state = BackendState.model_validate(data)


@lru_cache
def build_default_backend(path: Optional[str] = None) -> MockBackendStore:
    settings = get_settings()
    backend_path = settings.backend_persistence_path if path is None else path
    store = MockBackendStore(persistence_path=Path(backend_path) if backend_path else None)
    if settings.backend_seed:
        store.seed()
    return store
