"""Account operations with client-side input validation."""

from __future__ import annotations

import logging
import re
from typing import Dict, Optional

from app.schemas import (
    ForgotPasswordRequest,
    LoginCredentials,
    RegisterData,
    ResetPasswordRequest,
    User,
)
from services.api_client import ApiError, SensorApiClient
from services.errors import ValidationError
from services.session import AuthSession

logger = logging.getLogger(__name__)

_EMAIL_PATTERN = re.compile(r"\S+@\S+\.\S+")
MIN_PASSWORD_LENGTH = 8


def _check_email(email: str, errors: Dict[str, str]) -> None:
    if not email:
        errors["email"] = "Email is required"
    elif not _EMAIL_PATTERN.search(email):
        errors["email"] = "Please enter a valid email"


def _check_new_password(password: str, confirmation: str, errors: Dict[str, str]) -> None:
    if not password:
        errors["password"] = "Password is required"
    elif len(password) < MIN_PASSWORD_LENGTH:
        errors["password"] = f"Password must be at least {MIN_PASSWORD_LENGTH} characters"
    if not confirmation:
        errors["password_confirmation"] = "Please confirm your password"
    elif password != confirmation:
        errors["password_confirmation"] = "Passwords do not match"


def validate_login(credentials: LoginCredentials) -> None:
    errors: Dict[str, str] = {}
    _check_email(credentials.email, errors)
    if not credentials.password:
        errors["password"] = "Password is required"
    if errors:
        raise ValidationError(errors)


def validate_registration(data: RegisterData) -> None:
    errors: Dict[str, str] = {}
    if not data.name.strip():
        errors["name"] = "Name is required"
    _check_email(data.email, errors)
    _check_new_password(data.password, data.password_confirmation, errors)
    if errors:
        raise ValidationError(errors)


def validate_email(email: str) -> None:
    errors: Dict[str, str] = {}
    _check_email(email, errors)
    if errors:
        raise ValidationError(errors)


def validate_password_reset(request: ResetPasswordRequest) -> None:
    errors: Dict[str, str] = {}
    if not request.token:
        errors["token"] = "Reset token is required"
    _check_email(request.email, errors)
    _check_new_password(request.password, request.password_confirmation, errors)
    if errors:
        raise ValidationError(errors)


class AuthService:
    """Login, registration and password flows bound to one ``AuthSession``.

    Server and transport failures are stored in ``error`` and re-raised so
    callers can keep their form open.
    """

    def __init__(self, api: SensorApiClient, session: AuthSession) -> None:
        self.api = api
        self.session = session
        self.error: Optional[str] = None

    def login(self, email: str, password: str) -> User:
        credentials = LoginCredentials(email=email.strip(), password=password)
        validate_login(credentials)
        payload = self._call(self.api.login, credentials, fallback="Login failed.")
        self.session.begin(payload.token, payload.user)
        logger.info("Signed in")
        return payload.user

    def register(self, name: str, email: str, password: str, password_confirmation: str) -> User:
        data = RegisterData(
            name=name,
            email=email.strip(),
            password=password,
            password_confirmation=password_confirmation,
        )
        validate_registration(data)
        payload = self._call(self.api.register, data, fallback="Registration failed.")
        self.session.begin(payload.token, payload.user)
        logger.info("Registered new account")
        return payload.user

    def forgot_password(self, email: str) -> str:
        email = email.strip()
        validate_email(email)
        return self._call(
            self.api.forgot_password,
            ForgotPasswordRequest(email=email),
            fallback="Failed to send reset instructions.",
        )

    def reset_password(
        self, token: str, email: str, password: str, password_confirmation: str
    ) -> str:
        request = ResetPasswordRequest(
            token=token.strip(),
            email=email.strip(),
            password=password,
            password_confirmation=password_confirmation,
        )
        validate_password_reset(request)
        return self._call(self.api.reset_password, request, fallback="Failed to reset password.")

    def logout(self) -> None:
        self._call(self.api.logout, fallback="Logout failed.")
        self.session.end()
        logger.info("Signed out")

    def get_user(self) -> User:
        user = self._call(self.api.get_user, fallback="Failed to load user.")
        self.session.set_user(user)
        return user

    def _call(self, func, *args, fallback: str):
        self.error = None
        try:
            return func(*args)
        except ApiError as exc:
            self.error = exc.message if exc.status_code is not None else fallback
            logger.warning(fallback, extra={"status_code": exc.status_code, "reason": exc.message})
            raise
