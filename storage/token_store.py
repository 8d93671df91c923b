from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from threading import Lock
from typing import Optional

from settings import get_settings

_TOKEN_FILE_MODE = 0o600


class TokenStore:
    """Holds the bearer token, persisted to a private file when a path is set."""

    def __init__(self, path: Optional[Path] = None) -> None:
        self.path = path
        self._token: Optional[str] = None
        self._lock = Lock()
        if path:
            path.parent.mkdir(parents=True, exist_ok=True)
            self._load_from_disk()

    def get_token(self) -> Optional[str]:
        with self._lock:
            return self._token

    def put_token(self, token: str) -> None:
        if not token:
            raise ValueError("Refusing to store an empty token.")
        with self._lock:
            self._token = token
            if self.path:
                fd = os.open(self.path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, _TOKEN_FILE_MODE)
                with os.fdopen(fd, "w", encoding="utf-8") as handle:
                    handle.write(token)
                os.chmod(self.path, _TOKEN_FILE_MODE)

    def delete_token(self) -> None:
        with self._lock:
            self._token = None
            if self.path and self.path.exists():
                self.path.unlink()

    def _load_from_disk(self) -> None:
        assert self.path is not None
        if not self.path.exists():
            return
        try:
            token = self.path.read_text(encoding="utf-8").strip()
        except OSError:
            token = ""
        self._token = token or None


@lru_cache
def build_default_token_store(path: Optional[str] = None) -> TokenStore:
    settings = get_settings()
    token_path = settings.token_path if path is None else path
    return TokenStore(path=Path(token_path).expanduser() if token_path else None)
