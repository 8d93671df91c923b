from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from settings import get_settings

DEFAULT_WATCH_INTERVAL = 5.0


@dataclass(frozen=True)
class CLIConfig:
    base_url: str
    timeout: float
    token_path: Optional[str]
    watch_interval: float = DEFAULT_WATCH_INTERVAL


def _positive_or(value: Optional[float], default: float) -> float:
    if value is None or value <= 0:
        return default
    return value


def load_config(
    base_url: Optional[str] = None,
    timeout: Optional[float] = None,
    token_path: Optional[str] = None,
    watch_interval: Optional[float] = None,
) -> CLIConfig:
    """Merge command line overrides over environment settings."""
    settings = get_settings()
    url = base_url or settings.api_base_url
    return CLIConfig(
        base_url=url.rstrip("/"),
        timeout=_positive_or(timeout, settings.request_timeout),
        token_path=token_path or settings.token_path,
        watch_interval=_positive_or(watch_interval, DEFAULT_WATCH_INTERVAL),
    )
