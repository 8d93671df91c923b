"""Statistics over cached readings for the analytics view."""

from __future__ import annotations

from collections import Counter
from statistics import fmean
from typing import Dict, Iterable

from app.schemas import SensorReading
from models.catalog import SensorType, format_value
from models.records import ReadingStatistics


class ReadingAnalyzer:
    """Summary statistics for one sensor type over a cached reading set."""

    def summarize(
        self, readings: Iterable[SensorReading], sensor_type: SensorType
    ) -> ReadingStatistics:
        matching = [r for r in readings if r.sensor_type == sensor_type]
        if not matching:
            return ReadingStatistics()

        values = [r.value for r in matching]
        return ReadingStatistics(
            count=len(values),
            min_value=min(values),
            max_value=max(values),
            mean_value=fmean(values),
            per_sensor_count=dict(Counter(r.sensor_id for r in matching)),
        )


def format_statistics(stats: ReadingStatistics, sensor_type: SensorType) -> Dict[str, str]:
    if not stats.count:
        return {"min": "N/A", "max": "N/A", "avg": "N/A"}
    assert stats.min_value is not None and stats.max_value is not None
    assert stats.mean_value is not None
    return {
        "min": format_value(sensor_type, stats.min_value),
        "max": format_value(sensor_type, stats.max_value),
        "avg": format_value(sensor_type, stats.mean_value),
    }
