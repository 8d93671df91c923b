"""HTTP client for the sensor monitoring REST backend."""

from __future__ import annotations

import logging
import time
from typing import Any, Callable, Dict, List, Optional, Type, TypeVar

import httpx
from pydantic import BaseModel, TypeAdapter, ValidationError

from app.schemas import (
    ApiResponse,
    AuthPayload,
    ForgotPasswordRequest,
    LoginCredentials,
    Notification,
    RegisterData,
    ResetPasswordRequest,
    SensorReading,
    SensorThreshold,
    ThresholdCreate,
    ThresholdUpdate,
    User,
)
from models.catalog import SensorType
from services.session import AuthSession
from settings import get_settings

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)

_READINGS = TypeAdapter(List[SensorReading])
_THRESHOLDS = TypeAdapter(List[SensorThreshold])
_NOTIFICATIONS = TypeAdapter(List[Notification])


class ApiError(Exception):
    """The backend answered with an error status, or the call could not complete."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code

    @property
    def is_not_found(self) -> bool:
        return self.status_code == 404


class NetworkError(ApiError):
    """Transport failure that survived every retry."""


class ResponseFormatError(ApiError):
    """The backend answered, but the body does not match the expected schema."""


class SensorApiClient:
    """Typed wrapper around ``httpx.Client`` with bearer auth and network retries.

    Only ``httpx.NetworkError`` is retried. After the first failure the request
    is retried up to ``max_retries`` times, sleeping ``backoff_base ** n``
    seconds before retry ``n``. HTTP error statuses are never retried.
    """

    def __init__(
        self,
        session: AuthSession,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        max_retries: Optional[int] = None,
        backoff_base: Optional[float] = None,
        client: Optional[httpx.Client] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        settings = get_settings()
        self.session = session
        self.max_retries = settings.max_retries if max_retries is None else max_retries
        self.backoff_base = settings.backoff_base if backoff_base is None else backoff_base
        self._sleep = sleep
        self._owns_client = client is None
        self._client = client or httpx.Client(
            base_url=base_url or settings.api_base_url,
            timeout=timeout or settings.request_timeout,
        )
        self._client.headers.update(
            {"Content-Type": "application/json", "Accept": "application/json"}
        )

    def __enter__(self) -> "SensorApiClient":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    # -- sensors -----------------------------------------------------------

    def get_readings(self) -> List[SensorReading]:
        return self._parse_list(_READINGS, self._request("GET", "/sensors/readings"))

    def get_readings_by_type(self, sensor_type: SensorType) -> List[SensorReading]:
        data = self._request("GET", f"/sensors/readings/{SensorType(sensor_type).value}")
        return self._parse_list(_READINGS, data)

    def get_thresholds(self) -> List[SensorThreshold]:
        return self._parse_list(_THRESHOLDS, self._request("GET", "/sensors/thresholds"))

    def update_threshold(self, threshold_id: int, update: ThresholdUpdate) -> SensorThreshold:
        data = self._request(
            "PUT",
            f"/sensors/thresholds/{threshold_id}",
            payload=update.model_dump(mode="json", exclude_unset=True, exclude_none=True),
        )
        return self._parse_model(SensorThreshold, data)

    def create_threshold(self, threshold: ThresholdCreate) -> SensorThreshold:
        data = self._request(
            "POST", "/sensors/thresholds", payload=threshold.model_dump(mode="json")
        )
        return self._parse_model(SensorThreshold, data)

    # -- notifications -----------------------------------------------------

    def get_notifications(self) -> List[Notification]:
        return self._parse_list(_NOTIFICATIONS, self._request("GET", "/notifications"))

    def mark_notification_read(self, notification_id: int) -> Optional[Notification]:
        data = self._request("PUT", f"/notifications/{notification_id}/read")
        if data is None:
            return None
        return self._parse_model(Notification, data)

    def mark_all_notifications_read(self) -> None:
        self._request("PUT", "/notifications/read-all")

    # -- auth --------------------------------------------------------------

    def login(self, credentials: LoginCredentials) -> AuthPayload:
        data = self._request("POST", "/auth/login", payload=credentials.model_dump())
        return self._parse_model(AuthPayload, data)

    def register(self, registration: RegisterData) -> AuthPayload:
        data = self._request("POST", "/auth/register", payload=registration.model_dump())
        return self._parse_model(AuthPayload, data)

    def forgot_password(self, request: ForgotPasswordRequest) -> str:
        return self._request_message("POST", "/auth/forgot-password", payload=request.model_dump())

    def reset_password(self, request: ResetPasswordRequest) -> str:
        return self._request_message("POST", "/auth/reset-password", payload=request.model_dump())

    def logout(self) -> str:
        return self._request_message("POST", "/auth/logout")

    def get_user(self) -> User:
        return self._parse_model(User, self._request("GET", "/auth/user"))

    # -- plumbing ----------------------------------------------------------

    def _request(self, method: str, path: str, payload: Optional[Dict[str, Any]] = None) -> Any:
        return self._send(method, path, payload).data

    def _request_message(
        self, method: str, path: str, payload: Optional[Dict[str, Any]] = None
    ) -> str:
        return self._send(method, path, payload).message

    def _send(
        self, method: str, path: str, payload: Optional[Dict[str, Any]]
    ) -> ApiResponse[Any]:
        response = self._perform(method, path, payload)
        if response.is_error:
            message = self._error_message(response)
            logger.debug(
                "Request rejected",
                extra={"method": method, "path": path, "status_code": response.status_code},
            )
            raise ApiError(message, status_code=response.status_code)

        if not response.content:
            return ApiResponse[Any](data=None, status=response.status_code)
        try:
            return ApiResponse[Any].model_validate(response.json())
        except (ValueError, ValidationError) as exc:
            raise ResponseFormatError(
                f"Unexpected response payload from {method} {path}.",
                status_code=response.status_code,
            ) from exc

    def _perform(
        self, method: str, path: str, payload: Optional[Dict[str, Any]]
    ) -> httpx.Response:
        retries = 0
        while True:
            try:
                return self._client.request(
                    method, path, json=payload, headers=self._auth_headers()
                )
            except httpx.NetworkError as exc:
                if retries >= self.max_retries:
                    logger.warning(
                        "Giving up after network errors",
                        extra={"method": method, "path": path, "attempt": retries + 1},
                    )
                    raise NetworkError(f"Network error: {exc}") from exc
                retries += 1
                backoff = self.backoff_base ** retries
                logger.warning(
                    "Network error, retrying",
                    extra={
                        "method": method,
                        "path": path,
                        "attempt": retries,
                        "backoff_s": backoff,
                    },
                )
                self._sleep(backoff)
            except httpx.TimeoutException as exc:
                raise NetworkError(f"Request timed out: {method} {path}") from exc
            except httpx.TransportError as exc:
                raise NetworkError(f"Transport error: {exc}") from exc

    def _auth_headers(self) -> Dict[str, str]:
        token = self.session.token
        if not token:
            return {}
        return {"Authorization": f"Bearer {token}"}

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        detail: Optional[str] = None
        try:
            data = response.json()
        except ValueError:
            data = None
        if isinstance(data, dict):
            for key in ("message", "detail"):
                value = data.get(key)
                if isinstance(value, str) and value:
                    detail = value
                    break
        if detail is None:
            detail = response.text.strip() or None
        return detail or f"Request failed with status {response.status_code}."

    @staticmethod
    def _parse_model(model: Type[M], data: Any) -> M:
        try:
            return model.model_validate(data)
        except ValidationError as exc:
            raise ResponseFormatError(f"Malformed {model.__name__} payload: {exc}") from exc

    @staticmethod
    def _parse_list(adapter: TypeAdapter, data: Any) -> list:
        if data is None:
            return []
        try:
            return adapter.validate_python(data)
        except ValidationError as exc:
            raise ResponseFormatError(f"Malformed list payload: {exc}") from exc
