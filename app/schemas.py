"""Pydantic schemas for the REST contract shared by the client and the backend."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Generic, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field, field_validator

from models.catalog import SensorType

T = TypeVar("T")


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class Severity(str, Enum):
    """How urgent a server-emitted notification is."""

    warning = "warning"
    critical = "critical"


class SensorReading(BaseModel):
    """One timestamped observation from a physical sensor."""

    model_config = ConfigDict(frozen=True)

    id: int
    sensor_id: int
    sensor_type: SensorType
    value: float
    unit: str = ""
    timestamp: datetime

    @field_validator("timestamp")
    @classmethod
    def _normalize_timestamp(cls, value: datetime) -> datetime:
        return _as_utc(value)


class ReadingIngest(BaseModel):
    """Payload a device posts to the backend."""

    sensor_id: int
    sensor_type: SensorType
    value: float
    unit: Optional[str] = None
    timestamp: Optional[datetime] = None


class SensorThreshold(BaseModel):
    """Acceptable range for one sensor type; ``id`` is None until persisted."""

    id: Optional[int] = None
    sensor_type: SensorType
    min_value: float
    max_value: float
    unit: str = ""


class ThresholdCreate(BaseModel):
    sensor_type: SensorType
    min_value: float
    max_value: float
    unit: str = ""


class ThresholdUpdate(BaseModel):
    """Partial threshold update; only explicitly set fields are sent."""

    sensor_type: Optional[SensorType] = None
    min_value: Optional[float] = None
    max_value: Optional[float] = None
    unit: Optional[str] = None


class Notification(BaseModel):
    id: int
    sensor_type: SensorType
    message: str
    severity: Severity
    timestamp: datetime
    read: bool = False

    @field_validator("timestamp")
    @classmethod
    def _normalize_timestamp(cls, value: datetime) -> datetime:
        return _as_utc(value)


class User(BaseModel):
    id: int
    name: str
    email: str
    created_at: datetime
    updated_at: datetime


class LoginCredentials(BaseModel):
    email: str
    password: str


class RegisterData(BaseModel):
    name: str
    email: str
    password: str
    password_confirmation: str


class ForgotPasswordRequest(BaseModel):
    email: str


class ResetPasswordRequest(BaseModel):
    token: str
    email: str
    password: str
    password_confirmation: str


class AuthPayload(BaseModel):
    """Body of a successful login or registration."""

    user: User
    token: str = Field(..., min_length=1)


class ApiResponse(BaseModel, Generic[T]):
    """Envelope wrapping every backend response body."""

    data: Optional[T] = None
    message: str = ""
    status: int = 200

