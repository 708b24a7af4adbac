"""
Data models for sensor samples and tracked balloon positions.
"""

from __future__ import annotations

import struct
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Tuple

Vector3 = Tuple[int, int, int]


def _tenths(value: int) -> float:
    return value / 10


@dataclass(frozen=True)
class Sample:
    """One reading of the TDS01V sensor unit.

    All values are the raw signed 16-bit words sent by the device; the
    ``time`` stamp is assigned on the host when the reply arrives.
    """

    mag: Vector3  # tenths of a unit
    azimuth: int  # tenths of a degree
    acc: Vector3  # hundredths of g
    roll: int  # tenths of a degree
    pitch: int  # tenths of a degree
    pressure: int  # tenths of hPa
    altitude: Optional[int]
    temperature: Optional[int]
    voltage: Optional[int]
    time: datetime

    @property
    def azimuth_deg(self) -> float:
        return _tenths(self.azimuth)

    @property
    def pitch_deg(self) -> float:
        return _tenths(self.pitch)

    @property
    def roll_deg(self) -> float:
        return _tenths(self.roll)

    @property
    def pressure_hpa(self) -> float:
        return _tenths(self.pressure)

    @property
    def mag_units(self) -> Tuple[float, float, float]:
        return tuple(_tenths(v) for v in self.mag)  # type: ignore[return-value]

    @property
    def acc_g(self) -> Tuple[float, float, float]:
        return tuple(v / 100 for v in self.acc)  # type: ignore[return-value]

    def words(self) -> Tuple[int, ...]:
        """Device words in wire order, without trailing absent fields."""
        words = [*self.mag, self.azimuth, *self.acc, self.roll, self.pitch, self.pressure]
        for value in (self.altitude, self.temperature, self.voltage):
            if value is None:
                break
            words.append(value)
        return tuple(words)

    def to_payload(self) -> bytes:
        words = self.words()
        return struct.pack(f">{len(words)}h", *words)

    def __str__(self) -> str:
        return f"{self.azimuth_deg:5.1f}/{self.pitch_deg:+5.1f}"

    def __repr__(self) -> str:
        mag = ", ".join(f"{v:.1f}" for v in self.mag_units)
        acc = ", ".join(f"{v:.2f}" for v in self.acc_g)
        return (
            f"<Sample mag=[{mag}] azimuth={self.azimuth_deg:.1f} acc=[{acc}] "
            f"roll={self.roll_deg:.1f} pitch={self.pitch_deg:.1f} "
            f"time={self.time.isoformat()}>"
        )


@dataclass(frozen=True)
class TrackPoint:
    """One tracked observation.

    ``x``/``y`` hold the position before this step; the position after the
    step is ``(x + dx, y + dy)``.
    """

    azimuth: float
    elevation: float
    x: float
    y: float
    z: float
    dx: float
    dy: float
    bearing: Optional[float]
    speed: Optional[float]

    @property
    def end_position(self) -> Tuple[float, float]:
        return self.x + self.dx, self.y + self.dy

    @property
    def is_sighting(self) -> bool:
        """False for below-horizon observations that did not move the track."""
        return self.elevation > 0
