"""Explicit authenticated-session object handed to every API consumer."""

from __future__ import annotations

from threading import Lock
from typing import Optional

from app.schemas import User
from storage.token_store import TokenStore


class AuthSession:
    """Current bearer token and user, backed by a ``TokenStore``."""

    def __init__(self, token_store: Optional[TokenStore] = None) -> None:
        self.token_store = token_store or TokenStore()
        self._user: Optional[User] = None
        self._lock = Lock()

    @property
    def token(self) -> Optional[str]:
        return self.token_store.get_token()

    @property
    def user(self) -> Optional[User]:
        with self._lock:
            return self._user

    @property
    def is_authenticated(self) -> bool:
        return self.token is not None

    def begin(self, token: str, user: Optional[User] = None) -> None:
        self.token_store.put_token(token)
        with self._lock:
            self._user = user

    def set_user(self, user: User) -> None:
        with self._lock:
            self._user = user

    def end(self) -> None:
        self.token_store.delete_token()
        with self._lock:
            self._user = None
