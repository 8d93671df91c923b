"""Client-side records derived from fetched data."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Optional

from app.schemas import SensorReading, SensorThreshold
from models.catalog import SensorInfo


@dataclass
class ReadingStatistics:
    """Summary of the readings of one sensor type."""

    count: int = 0
    min_value: Optional[float] = None
    max_value: Optional[float] = None
    mean_value: Optional[float] = None
    per_sensor_count: Dict[int, int] = field(default_factory=dict)


@dataclass(frozen=True)
class SensorStatus:
    """Dashboard row: catalog entry, latest reading, active threshold and alert flag."""

    info: SensorInfo
    latest: Optional[SensorReading]
    threshold: Optional[SensorThreshold]
    in_alert: bool
