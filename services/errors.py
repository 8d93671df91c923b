from __future__ import annotations

from typing import Mapping


class ValidationError(ValueError):
    """Input rejected before any network call; ``errors`` maps field to message."""

    def __init__(self, errors: Mapping[str, str]) -> None:
        self.errors = dict(errors)
        summary = "; ".join(f"{name}: {message}" for name, message in self.errors.items())
        super().__init__(summary or "Invalid input.")
