"""Sensor snapshot types shared by the decoder and the reading store."""

from __future__ import annotations

from dataclasses import dataclass, field, fields, replace
from typing import Any

_SCALAR_FIELDS = (
    "heart_rate",
    "temperature",
    "ecg",
    "spo2",
    "acceleration_magnitude",
    "steps",
    "status",
)


@dataclass(frozen=True, slots=True)
class Acceleration:
    x: float
    y: float
    z: float


@dataclass(frozen=True, slots=True)
class SensorReading:
    """Last known good value of every sensor field.

    Defaults mirror what the peripheral reports at rest so a display has
    something sensible to show before the first line arrives.
    """

    heart_rate: int = 72
    temperature: float = 36.8
    ecg: int = 950
    spo2: int = 98
    acceleration: Acceleration = field(
        default_factory=lambda: Acceleration(x=0.0, y=0.0, z=9.8)
    )
    acceleration_magnitude: float | None = None
    steps: int = 0
    status: str = "UNKNOWN"


@dataclass(frozen=True, slots=True)
class PartialReading:
    """Fields decoded from a single line; ``None`` means the line did not specify it."""

    heart_rate: int | None = None
    temperature: float | None = None
    ecg: int | None = None
    spo2: int | None = None
    accel_x: float | None = None
    accel_y: float | None = None
    accel_z: float | None = None
    acceleration_magnitude: float | None = None
    steps: int | None = None
    status: str | None = None

    def is_empty(self) -> bool:
        return not self.specified()

    def specified(self) -> dict[str, Any]:
        return {
            f.name: getattr(self, f.name)
            for f in fields(self)
            if getattr(self, f.name) is not None
        }

    def apply_to(self, reading: SensorReading) -> SensorReading:
        updates: dict[str, Any] = {
            name: getattr(self, name)
            for name in _SCALAR_FIELDS
            if getattr(self, name) is not None
        }
        if any(axis is not None for axis in (self.accel_x, self.accel_y, self.accel_z)):
            current = reading.acceleration
            updates["acceleration"] = Acceleration(
                x=current.x if self.accel_x is None else self.accel_x,
                y=current.y if self.accel_y is None else self.accel_y,
                z=current.z if self.accel_z is None else self.accel_z,
            )
        if not updates:
            return reading
        return replace(reading, **updates)
