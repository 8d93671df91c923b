"""Static catalog of the supported sensor types."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Mapping


class SensorType(str, Enum):
    """The seven sensor kinds known to the monitor."""

    temperature = "temperature"
    humidity = "humidity"
    soil_moisture = "soil_moisture"
    atmospheric_pressure = "atmospheric_pressure"
    water_level = "water_level"
    light_intensity = "light_intensity"
    fire_detection = "fire_detection"


@dataclass(frozen=True)
class SensorInfo:
    """Display metadata, valid domain and default alert range of a sensor type."""

    type: SensorType
    name: str
    unit: str
    icon: str
    description: str
    min_value: float
    max_value: float
    default_min: float
    default_max: float
    color: str


SENSOR_CATALOG: Mapping[SensorType, SensorInfo] = MappingProxyType(
    {
        SensorType.temperature: SensorInfo(
            type=SensorType.temperature,
            name="Temperature",
            unit="°C",
            icon="thermometer",
            description="Measures ambient temperature",
            min_value=-20,
            max_value=60,
            default_min=10,
            default_max=30,
            color="#F44336",
        ),
        SensorType.humidity: SensorInfo(
            type=SensorType.humidity,
            name="Humidity",
            unit="%",
            icon="droplets",
            description="Measures relative humidity in the air",
            min_value=0,
            max_value=100,
            default_min=30,
            default_max=70,
            color="#1E88E5",
        ),
        SensorType.soil_moisture: SensorInfo(
            type=SensorType.soil_moisture,
            name="Soil Moisture",
            unit="%",
            icon="waves",
            description="Measures soil water content",
            min_value=0,
            max_value=100,
            default_min=20,
            default_max=80,
            color="#8D6E63",
        ),
        SensorType.atmospheric_pressure: SensorInfo(
            type=SensorType.atmospheric_pressure,
            name="Atmospheric Pressure",
            unit="hPa",
            icon="gauge",
            description="Measures atmospheric pressure",
            min_value=800,
            max_value=1200,
            default_min=950,
            default_max=1050,
            color="#7E57C2",
        ),
        SensorType.water_level: SensorInfo(
            type=SensorType.water_level,
            name="Water Level",
            unit="%",
            icon="droplet",
            description="Measures water level in tank or reservoir",
            min_value=0,
            max_value=100,
            default_min=20,
            default_max=90,
            color="#039BE5",
        ),
        SensorType.light_intensity: SensorInfo(
            type=SensorType.light_intensity,
            name="Light Intensity",
            unit="Lux",
            icon="sun",
            description="Measures ambient light intensity",
            min_value=0,
            max_value=100000,
            default_min=100,
            default_max=10000,
            color="#FFC107",
        ),
        # Modeled as a 0/1 value; the default 0..0 range flags any detection.
        SensorType.fire_detection: SensorInfo(
            type=SensorType.fire_detection,
            name="Fire Detection",
            unit="",
            icon="flame",
            description="Detects presence of fire or smoke",
            min_value=0,
            max_value=1,
            default_min=0,
            default_max=0,
            color="#FF5722",
        ),
    }
)


def lookup(sensor_type: SensorType) -> SensorInfo:
    return SENSOR_CATALOG[SensorType(sensor_type)]


def parse_sensor_type(text: str) -> SensorType:
    """Resolve user input such as ``"Soil Moisture"`` or ``soil-moisture``."""
    candidate = text.strip().lower().replace("-", "_").replace(" ", "_")
    try:
        return SensorType(candidate)
    except ValueError:
        known = ", ".join(member.value for member in SensorType)
        raise ValueError(f"Unknown sensor type {text!r}. Expected one of: {known}") from None


def format_value(sensor_type: SensorType, value: float) -> str:
    unit = lookup(sensor_type).unit
    rendered = f"{value:.1f}"
    return f"{rendered} {unit}" if unit else rendered
