"""Pure threshold evaluation over sensor readings."""

from __future__ import annotations

from typing import Iterable, List, Mapping, Optional

from app.schemas import SensorReading, SensorThreshold
from models.catalog import SENSOR_CATALOG, SensorType

ThresholdMap = Mapping[SensorType, SensorThreshold]


def is_value_outside(value: float, threshold: SensorThreshold) -> bool:
    """Bounds are inclusive: a value equal to either bound is in range."""
    return value < threshold.min_value or value > threshold.max_value


def is_reading_alert(reading: Optional[SensorReading], thresholds: ThresholdMap) -> bool:
    if reading is None:
        return False
    threshold = thresholds.get(reading.sensor_type)
    if threshold is None:
        return False
    return is_value_outside(reading.value, threshold)


def latest_reading(
    readings: Iterable[SensorReading], sensor_type: SensorType
) -> Optional[SensorReading]:
    matching = [reading for reading in readings if reading.sensor_type == sensor_type]
    if not matching:
        return None
    return max(matching, key=lambda reading: reading.timestamp)


def alerting_types(
    readings: Iterable[SensorReading], thresholds: ThresholdMap
) -> List[SensorType]:
    """Sensor types, in catalog order, whose most recent reading is out of range."""
    snapshot = list(readings)
    return [
        sensor_type
        for sensor_type in SENSOR_CATALOG
        if is_reading_alert(latest_reading(snapshot, sensor_type), thresholds)
    ]
