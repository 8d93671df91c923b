"""Client-side cache of the latest sensor readings."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from threading import Lock
from typing import List, Optional

from app.schemas import SensorReading
from models.catalog import SensorType
from services.alerts import latest_reading
from services.api_client import ApiError, SensorApiClient

logger = logging.getLogger(__name__)

FETCH_READINGS_FAILED = "Failed to fetch sensor readings."


@dataclass
class ReadingStore:
    """Holds the most recently fetched readings; every fetch replaces the whole set.

    Fetches are tagged with an increasing sequence number. A response that
    resolves after a newer one has been applied is dropped, so overlapping
    manual and timed refreshes cannot regress the collection.

    On failure the collection is emptied and ``error`` is set, unless
    ``keep_stale_on_error`` is enabled, in which case the last good readings
    are kept and ``stale`` is raised instead.
    """

    api: SensorApiClient
    keep_stale_on_error: bool = False
    error: Optional[str] = None
    stale: bool = False
    last_updated: Optional[datetime] = None
    _readings: List[SensorReading] = field(default_factory=list)
    _issued_seq: int = 0
    _applied_seq: int = 0
    _in_flight: int = 0
    _lock: Lock = field(default_factory=Lock, repr=False)

    @property
    def readings(self) -> List[SensorReading]:
        with self._lock:
            return list(self._readings)

    @property
    def is_loading(self) -> bool:
        with self._lock:
            return self._in_flight > 0

    def fetch_readings(self) -> None:
        with self._lock:
            self._issued_seq += 1
            seq = self._issued_seq
            self._in_flight += 1

        try:
            readings = self.api.get_readings()
        except ApiError as exc:
            self._apply_failure(seq, exc)
        else:
            self._apply_success(seq, readings)
        finally:
            with self._lock:
                self._in_flight -= 1

    def fetch_readings_by_type(self, sensor_type: SensorType) -> List[SensorReading]:
        """Server-side filtered readings; the cached collection is left alone.

        Unlike ``fetch_readings`` this raises ``ApiError`` on failure.
        """
        return self.api.get_readings_by_type(sensor_type)

    def get_latest_reading(self, sensor_type: SensorType) -> Optional[SensorReading]:
        return latest_reading(self.readings, sensor_type)

    def readings_for(self, sensor_type: SensorType) -> List[SensorReading]:
        """Readings of one type, newest first."""
        matching = [r for r in self.readings if r.sensor_type == sensor_type]
        return sorted(matching, key=lambda reading: reading.timestamp, reverse=True)

    def clear_error(self) -> None:
        with self._lock:
            self.error = None

    def _apply_success(self, seq: int, readings: List[SensorReading]) -> None:
        with self._lock:
            if seq < self._applied_seq:
                logger.debug("Dropping out-of-order readings response", extra={"request_seq": seq})
                return
            self._applied_seq = seq
            self._readings = list(readings)
            self.error = None
            self.stale = False
            self.last_updated = datetime.now(timezone.utc)
        logger.debug("Readings refreshed", extra={"request_seq": seq, "reading_count": len(readings)})

    def _apply_failure(self, seq: int, exc: ApiError) -> None:
        with self._lock:
            if seq < self._applied_seq:
                return
            self._applied_seq = seq
            self.error = exc.message if exc.status_code is not None else FETCH_READINGS_FAILED
            if self.keep_stale_on_error:
                self.stale = bool(self._readings)
            else:
                self._readings = []
                self.stale = False
        logger.warning(
            "Fetching readings failed",
            extra={"request_seq": seq, "status_code": exc.status_code, "reason": exc.message},
        )
