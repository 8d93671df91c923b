"""HTTP route definitions for the development backend."""

from __future__ import annotations

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from app.schemas import (
    ApiResponse,
    AuthPayload,
    ForgotPasswordRequest,
    LoginCredentials,
    Notification,
    ReadingIngest,
    RegisterData,
    ResetPasswordRequest,
    SensorReading,
    SensorThreshold,
    ThresholdCreate,
    ThresholdUpdate,
    User,
)
from datastore.mock_backend import MockBackendStore, ThresholdConflictError, build_default_backend
from models.catalog import SensorType

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api")

_bearer = HTTPBearer(auto_error=False)
_UNPROCESSABLE = 422


def get_backend() -> MockBackendStore:
    return build_default_backend()


def get_token(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer),
) -> str:
    if credentials is None or not credentials.credentials:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthenticated.")
    return credentials.credentials


def require_user(
    token: str = Depends(get_token),
    backend: MockBackendStore = Depends(get_backend),
) -> User:
    user = backend.user_for_token(token)
    if user is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthenticated.")
    return user


# -- auth --------------------------------------------------------------------


@router.post(
    "/auth/register",
    status_code=status.HTTP_201_CREATED,
    response_model=ApiResponse[AuthPayload],
    summary="Create an account and return a bearer token.",
)
async def register(
    data: RegisterData,
    backend: MockBackendStore = Depends(get_backend),
) -> ApiResponse[AuthPayload]:
    if data.password != data.password_confirmation:
        raise HTTPException(
            status_code=_UNPROCESSABLE,
            detail="The password confirmation does not match.",
        )
    try:
        user, token = backend.register(data)
    except ValueError as exc:
        raise HTTPException(status_code=_UNPROCESSABLE, detail=str(exc)) from exc
    return ApiResponse[AuthPayload](
        data=AuthPayload(user=user, token=token), message="Registered.", status=201
    )


@router.post("/auth/login", response_model=ApiResponse[AuthPayload])
async def login(
    credentials: LoginCredentials,
    backend: MockBackendStore = Depends(get_backend),
) -> ApiResponse[AuthPayload]:
    result = backend.login(credentials)
    if result is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid email or password."
        )
    user, token = result
    return ApiResponse[AuthPayload](data=AuthPayload(user=user, token=token), message="Logged in.")


@router.post("/auth/forgot-password", response_model=ApiResponse[None])
async def forgot_password(
    request: ForgotPasswordRequest,
    backend: MockBackendStore = Depends(get_backend),
) -> ApiResponse[None]:
    reset_token = backend.request_password_reset(request.email)
    if reset_token is not None:
        # No mail transport in development; the token only reaches the log.
        logger.info("Password reset requested", extra={"reason": reset_token})
    return ApiResponse[None](message="If the account exists, reset instructions have been sent.")


@router.post("/auth/reset-password", response_model=ApiResponse[None])
async def reset_password(
    request: ResetPasswordRequest,
    backend: MockBackendStore = Depends(get_backend),
) -> ApiResponse[None]:
    if request.password != request.password_confirmation:
        raise HTTPException(
            status_code=_UNPROCESSABLE,
            detail="The password confirmation does not match.",
        )
    if not backend.reset_password(request):
        raise HTTPException(
            status_code=_UNPROCESSABLE,
            detail="This password reset token is invalid.",
        )
    return ApiResponse[None](message="Your password has been reset.")


@router.post("/auth/logout", response_model=ApiResponse[None])
async def logout(
    token: str = Depends(get_token),
    _user: User = Depends(require_user),
    backend: MockBackendStore = Depends(get_backend),
) -> ApiResponse[None]:
    backend.revoke_token(token)
    return ApiResponse[None](message="Logged out.")


@router.get("/auth/user", response_model=ApiResponse[User])
async def current_user(user: User = Depends(require_user)) -> ApiResponse[User]:
    return ApiResponse[User](data=user)


# -- sensors -----------------------------------------------------------------


@router.get(
    "/sensors/readings",
    response_model=ApiResponse[List[SensorReading]],
    summary="All stored sensor readings.",
)
async def list_readings(
    _user: User = Depends(require_user),
    backend: MockBackendStore = Depends(get_backend),
) -> ApiResponse[List[SensorReading]]:
    return ApiResponse[List[SensorReading]](data=backend.list_readings())


@router.get("/sensors/readings/{sensor_type}", response_model=ApiResponse[List[SensorReading]])
async def list_readings_by_type(
    sensor_type: SensorType,
    _user: User = Depends(require_user),
    backend: MockBackendStore = Depends(get_backend),
) -> ApiResponse[List[SensorReading]]:
    return ApiResponse[List[SensorReading]](data=backend.list_readings(sensor_type))


@router.post(
    "/sensors/readings",
    status_code=status.HTTP_201_CREATED,
    response_model=ApiResponse[SensorReading],
    summary="Ingest a reading; out-of-range values raise a notification.",
)
async def ingest_reading(
    ingest: ReadingIngest,
    _user: User = Depends(require_user),
    backend: MockBackendStore = Depends(get_backend),
) -> ApiResponse[SensorReading]:
    reading = backend.add_reading(ingest)
    return ApiResponse[SensorReading](data=reading, status=201)


@router.get(
    "/sensors/thresholds",
    response_model=ApiResponse[List[SensorThreshold]],
    summary="Configured thresholds; 404 while none exist.",
)
async def list_thresholds(
    _user: User = Depends(require_user),
    backend: MockBackendStore = Depends(get_backend),
) -> ApiResponse[List[SensorThreshold]]:
    thresholds = backend.list_thresholds()
    if not thresholds:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="No thresholds configured."
        )
    return ApiResponse[List[SensorThreshold]](data=thresholds)


@router.post(
    "/sensors/thresholds",
    status_code=status.HTTP_201_CREATED,
    response_model=ApiResponse[SensorThreshold],
)
async def create_threshold(
    data: ThresholdCreate,
    _user: User = Depends(require_user),
    backend: MockBackendStore = Depends(get_backend),
) -> ApiResponse[SensorThreshold]:
    try:
        threshold = backend.create_threshold(data)
    except ThresholdConflictError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=_UNPROCESSABLE, detail=str(exc)) from exc
    return ApiResponse[SensorThreshold](data=threshold, message="Threshold created.", status=201)


@router.put("/sensors/thresholds/{threshold_id}", response_model=ApiResponse[SensorThreshold])
async def update_threshold(
    threshold_id: int,
    update: ThresholdUpdate,
    _user: User = Depends(require_user),
    backend: MockBackendStore = Depends(get_backend),
) -> ApiResponse[SensorThreshold]:
    try:
        threshold = backend.update_threshold(threshold_id, update)
    except KeyError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=exc.args[0]) from exc
    except ThresholdConflictError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=_UNPROCESSABLE, detail=str(exc)) from exc
    return ApiResponse[SensorThreshold](data=threshold, message="Threshold updated.")


# -- notifications -----------------------------------------------------------


@router.get("/notifications", response_model=ApiResponse[List[Notification]])
async def list_notifications(
    _user: User = Depends(require_user),
    backend: MockBackendStore = Depends(get_backend),
) -> ApiResponse[List[Notification]]:
    return ApiResponse[List[Notification]](data=backend.list_notifications())


@router.put("/notifications/read-all", response_model=ApiResponse[None])
async def mark_all_notifications_read(
    _user: User = Depends(require_user),
    backend: MockBackendStore = Depends(get_backend),
) -> ApiResponse[None]:
    changed = backend.mark_all_notifications_read()
    return ApiResponse[None](message=f"{changed} notifications marked as read.")


@router.put("/notifications/{notification_id}/read", response_model=ApiResponse[Notification])
async def mark_notification_read(
    notification_id: int,
    _user: User = Depends(require_user),
    backend: MockBackendStore = Depends(get_backend),
) -> ApiResponse[Notification]:
    try:
        notification = backend.mark_notification_read(notification_id)
    except KeyError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=exc.args[0]) from exc
    return ApiResponse[Notification](data=notification)


@router.get("/health", summary="Health check endpoint.", status_code=status.HTTP_200_OK)
async def healthcheck() -> dict[str, str]:
    return {"status": "ok"}
