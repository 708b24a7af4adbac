"""
Dead reckoning of the balloon track from azimuth/elevation sightings.

Positions are horizontal coordinates in meters relative to the observer,
with Y pointing towards azimuth 0 and azimuths increasing clockwise.
"""

from __future__ import annotations

import math
from typing import List, Optional, Sequence, Tuple

from .config import SESSION
from .models import TrackPoint

KILOMETER = 1000

TITLE = "  Hght  Azim  Elev       X(m)       Y(m)      dX(m)      dY(m)   To  M/s"


def round_scale(scale: float) -> float:
    """Round a raw plot radius up to a legible axis bound.

    Half-decade steps up to two units of the decade (100, 150, 200), whole
    even steps beyond that (300, 400, 600, ... 1000).
    """
    if scale <= 0:
        return scale
    decade = 10 ** math.floor(math.log10(scale))
    # trigonometric noise must not bump 100.00000000000001 to the next step
    n = math.ceil(round(scale * 2 / decade, 9))
    if n > 4:
        n = (n + 1) & ~1
    return n * decade / 2


def display_unit(rounded_scale: float) -> int:
    """Divisor for axis labels: kilometers from 1000 m on, meters below."""
    return KILOMETER if rounded_scale >= KILOMETER else 1


def format_degree(value: Optional[float]) -> str:
    return "N/A" if value is None else "%4.0f" % value


def format_speed(value: Optional[float]) -> str:
    return "N/A" if value is None else "%4.1f" % value


class TrackEstimator:
    """
    Accumulates sightings of one flight and derives per-step wind vectors.

    ``add()`` takes the balloon height (meters) and the sighting angles
    (degrees). Each accepted step yields a TrackPoint holding the previous
    position, the displacement, the bearing the balloon moved towards and
    the horizontal speed implied by the ascent rate.
    """

    def __init__(
        self,
        interval_s: float = SESSION["interval_s"],
        ascent_rate_m_min: float = SESSION["ascent_rate_m_min"],
        initial_scale: float = SESSION["initial_scale"],
    ):
        self.interval = interval_s
        self.ascent_rate_m_min = ascent_rate_m_min
        self.ascent_rate = ascent_rate_m_min / 60  # m/s
        self.initial_scale = initial_scale
        self.points: List[TrackPoint] = []
        self.clear()

    def clear(self) -> None:
        self.raw_scale = self.initial_scale
        self.x0 = self.y0 = self.z0 = 0.0
        self.points.clear()

    @property
    def position(self) -> Tuple[float, float, float]:
        return self.x0, self.y0, self.z0

    def height_at(self, observation: int) -> float:
        """Height of the n-th observation (1-based) at the nominal ascent rate."""
        return observation * self.interval * self.ascent_rate

    def add(self, height: float, azimuth: float, elevation: float) -> TrackPoint:
        x0, y0 = self.x0, self.y0
        dx = dy = 0.0
        bearing: Optional[float] = None
        speed: Optional[float] = 0.0
        if elevation > 0:
            rad_azim = math.radians(azimuth)
            dist = height / math.tan(math.radians(elevation))
            x = dist * math.sin(rad_azim)
            y = dist * math.cos(rad_azim)
            dx = x - x0
            dy = y - y0
            dz = height - self.z0
            if dx or dy:
                bearing = math.degrees(math.atan2(dx, dy)) % 360
                if bearing >= 360:  # tiny negative angles wrap to 360.0
                    bearing = 0.0
            # no height gain: the horizontal speed is undefined
            speed = math.hypot(dx, dy) / dz * self.ascent_rate if dz else None
            self.x0, self.y0, self.z0 = x, y, height
            self.raw_scale = max(self.raw_scale, dist)
        point = TrackPoint(azimuth, elevation, x0, y0, height, dx, dy, bearing, speed)
        self.points.append(point)
        return point

    def scale(self) -> float:
        return round_scale(self.raw_scale)

    def display_scale(self) -> Tuple[float, int]:
        """Rounded scale in display units, and the unit divisor."""
        scale = self.scale()
        unit = display_unit(scale)
        return scale / unit, unit

    def title(self) -> str:
        return TITLE

    def info(self, point: Optional[TrackPoint] = None) -> str:
        """Log line for ``point`` (the latest one by default)."""
        p = point or self.points[-1]
        x, y = p.end_position
        return "%6d %5.1f %5.1f %10.2f %10.2f %10.2f %10.2f %4s %4s" % (
            round(p.z), p.azimuth, p.elevation, x, y, p.dx, p.dy,
            format_degree(p.bearing), format_speed(p.speed),
        )

    def result(self, point: Optional[TrackPoint] = None) -> str:
        p = point or self.points[-1]
        return "~%.4d %4s %4s" % (round(p.z), format_degree(p.bearing), format_speed(p.speed))

    def results(self, points: Optional[Sequence[TrackPoint]] = None) -> List[str]:
        return [self.result(p) for p in (self.points if points is None else points)]
