"""Client-side cache of per-sensor-type alert thresholds."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from threading import Lock
from typing import Dict, Iterable, List, Optional

from app.schemas import SensorReading, SensorThreshold, ThresholdCreate, ThresholdUpdate
from models.catalog import SENSOR_CATALOG, SensorType, lookup
from services.alerts import is_reading_alert, latest_reading
from services.api_client import ApiError, SensorApiClient
from services.errors import ValidationError

logger = logging.getLogger(__name__)

FETCH_THRESHOLDS_FAILED = "Failed to fetch thresholds."
UPDATE_THRESHOLD_FAILED = "Failed to update threshold."
CREATE_THRESHOLD_FAILED = "Failed to create threshold."


class ThresholdStatus(str, Enum):
    all = "all"
    alerts = "alerts"
    normal = "normal"


class ThresholdSort(str, Enum):
    name = "name"
    value = "value"


def default_thresholds() -> Dict[SensorType, SensorThreshold]:
    """Unpersisted thresholds built from each catalog entry's default range."""
    return {
        info.type: SensorThreshold(
            sensor_type=info.type,
            min_value=info.default_min,
            max_value=info.default_max,
            unit=info.unit,
        )
        for info in SENSOR_CATALOG.values()
    }


def validate_range(sensor_type: SensorType, min_value: float, max_value: float) -> None:
    info = lookup(sensor_type)
    errors: Dict[str, str] = {}
    if min_value > max_value:
        errors["min_value"] = "Minimum must not exceed maximum"
    if not info.min_value <= min_value <= info.max_value:
        errors.setdefault(
            "min_value", f"Minimum must be within {info.min_value:g}..{info.max_value:g}"
        )
    if not info.min_value <= max_value <= info.max_value:
        errors["max_value"] = f"Maximum must be within {info.min_value:g}..{info.max_value:g}"
    if errors:
        raise ValidationError(errors)


@dataclass
class ThresholdStore:
    """Thresholds keyed by sensor type, so at most one exists per type."""

    api: SensorApiClient
    error: Optional[str] = None
    _thresholds: Dict[SensorType, SensorThreshold] = field(default_factory=dict)
    _lock: Lock = field(default_factory=Lock, repr=False)

    @property
    def thresholds(self) -> List[SensorThreshold]:
        """Current thresholds in catalog order."""
        with self._lock:
            return [self._thresholds[t] for t in SENSOR_CATALOG if t in self._thresholds]

    def as_mapping(self) -> Dict[SensorType, SensorThreshold]:
        with self._lock:
            return dict(self._thresholds)

    def get_threshold(self, sensor_type: SensorType) -> Optional[SensorThreshold]:
        with self._lock:
            return self._thresholds.get(SensorType(sensor_type))

    def fetch_thresholds(self) -> None:
        try:
            fetched = self.api.get_thresholds()
        except ApiError as exc:
            if exc.is_not_found:
                logger.info("No thresholds configured yet, using catalog defaults")
                with self._lock:
                    self._thresholds = default_thresholds()
                    self.error = None
                return
            self._record_error(exc, FETCH_THRESHOLDS_FAILED)
            return

        with self._lock:
            self._thresholds = {threshold.sensor_type: threshold for threshold in fetched}
            self.error = None

    def update_threshold(self, threshold_id: int, update: ThresholdUpdate) -> SensorThreshold:
        current = self._find_by_id(threshold_id)
        if current is not None:
            changes = update.model_dump(exclude_unset=True, exclude_none=True)
            merged = current.model_copy(update=changes)
            validate_range(merged.sensor_type, merged.min_value, merged.max_value)

        try:
            saved = self.api.update_threshold(threshold_id, update)
        except ApiError as exc:
            self._record_error(exc, UPDATE_THRESHOLD_FAILED, threshold_id=threshold_id)
            raise

        with self._lock:
            previous = next(
                (t for t in self._thresholds.values() if t.id == threshold_id), None
            )
            if previous is not None:
                del self._thresholds[previous.sensor_type]
                self._thresholds[saved.sensor_type] = saved
            self.error = None
        logger.info(
            "Threshold updated",
            extra={"threshold_id": threshold_id, "sensor_type": saved.sensor_type.value},
        )
        return saved

    def create_threshold(self, threshold: ThresholdCreate) -> SensorThreshold:
        validate_range(threshold.sensor_type, threshold.min_value, threshold.max_value)
        try:
            saved = self.api.create_threshold(threshold)
        except ApiError as exc:
            self._record_error(exc, CREATE_THRESHOLD_FAILED)
            raise

        with self._lock:
            self._thresholds[saved.sensor_type] = saved
            self.error = None
        logger.info(
            "Threshold created",
            extra={"threshold_id": saved.id, "sensor_type": saved.sensor_type.value},
        )
        return saved

    def clear_error(self) -> None:
        with self._lock:
            self.error = None

    def _find_by_id(self, threshold_id: int) -> Optional[SensorThreshold]:
        with self._lock:
            return next((t for t in self._thresholds.values() if t.id == threshold_id), None)

    def _record_error(
        self, exc: ApiError, fallback: str, threshold_id: Optional[int] = None
    ) -> None:
        with self._lock:
            self.error = exc.message if exc.status_code is not None else fallback
        logger.warning(
            fallback,
            extra={
                "threshold_id": threshold_id,
                "status_code": exc.status_code,
                "reason": exc.message,
            },
        )


def filter_thresholds(
    thresholds: Iterable[SensorThreshold],
    readings: Iterable[SensorReading] = (),
    query: str = "",
    status: ThresholdStatus = ThresholdStatus.all,
    sort_by: ThresholdSort = ThresholdSort.name,
    descending: bool = False,
) -> List[SensorThreshold]:
    """Search, filter by alert status and sort thresholds for display.

    ``status`` uses the latest reading of each type; a type without readings
    counts as normal. ``ThresholdSort.value`` orders by range width.
    """
    status = ThresholdStatus(status)
    sort_by = ThresholdSort(sort_by)
    snapshot = list(thresholds)
    readings = list(readings)
    by_type = {threshold.sensor_type: threshold for threshold in snapshot}
    needle = query.strip().lower()

    selected: List[SensorThreshold] = []
    for threshold in snapshot:
        if needle and needle not in lookup(threshold.sensor_type).name.lower():
            continue
        if status is not ThresholdStatus.all:
            in_alert = is_reading_alert(latest_reading(readings, threshold.sensor_type), by_type)
            if (status is ThresholdStatus.alerts) != in_alert:
                continue
        selected.append(threshold)

    if sort_by is ThresholdSort.name:
        selected.sort(key=lambda t: lookup(t.sensor_type).name.lower(), reverse=descending)
    else:
        selected.sort(key=lambda t: t.max_value - t.min_value, reverse=descending)
    return selected
