"""
Rainwatch - Forecast Models

Immutable value types for a decoded hourly forecast and the verdict derived
from it. No I/O happens here.
"""

from dataclasses import dataclass, field
from datetime import datetime, tzinfo
from enum import Enum
from typing import Optional, Tuple


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


@dataclass(frozen=True)
class Coordinate:
    """Latitude/longitude in decimal degrees, clamped to valid ranges."""
    latitude: float
    longitude: float

    def __post_init__(self):
        object.__setattr__(self, "latitude", _clamp(float(self.latitude), -90.0, 90.0))
        object.__setattr__(self, "longitude", _clamp(float(self.longitude), -180.0, 180.0))

    def __str__(self):
        return f"{self.latitude:.4f}, {self.longitude:.4f}"


@dataclass(frozen=True)
class ForecastPoint:
    """One hourly forecast value. Identity is the timestamp."""
    timestamp: datetime
    probability_percent: float
    rainfall_amount_mm: float


class DetectionWindow(Enum):
    """Which subsequence of a series a point was found in."""
    LOOKAHEAD = "lookahead"
    NEXT_24_HOURS = "next-24-hours"
    EXTENDED = "extended"


@dataclass(frozen=True)
class ForecastSeries:
    """
    A decoded hourly series plus its two analysis windows.

    ``window_points`` covers the configured lookahead and
    ``next_24_hour_points`` the rolling day ahead. Both are ordered
    subsequences of ``all_points``.
    """
    all_points: Tuple[ForecastPoint, ...]
    timezone: tzinfo
    lookahead_hours: int
    window_points: Tuple[ForecastPoint, ...]
    next_24_hour_points: Tuple[ForecastPoint, ...]
    raw_response_json: Optional[str] = field(default=None, compare=False, repr=False)

    @property
    def timezone_name(self) -> str:
        """IANA name of the zone, or a UTC offset label for fixed-offset zones."""
        zone = getattr(self.timezone, "zone", None)
        if zone:
            return zone
        offset = self.timezone.utcoffset(None)
        if offset is None:
            return str(self.timezone)
        minutes = int(offset.total_seconds() // 60)
        sign = "+" if minutes >= 0 else "-"
        hours, mins = divmod(abs(minutes), 60)
        return f"UTC{sign}{hours:02d}:{mins:02d}"

    def detection_window(self, point: ForecastPoint) -> DetectionWindow:
        if any(p.timestamp == point.timestamp for p in self.window_points):
            return DetectionWindow.LOOKAHEAD
        if any(p.timestamp == point.timestamp for p in self.next_24_hour_points):
            return DetectionWindow.NEXT_24_HOURS
        return DetectionWindow.EXTENDED

    def peak_point(self) -> Optional[ForecastPoint]:
        """Highest-probability point across the series; ties go to the earliest."""
        points = self.all_points or self.next_24_hour_points or self.window_points
        if not points:
            return None
        # max() keeps the first of equal keys and points are ascending
        return max(points, key=lambda p: p.probability_percent)


class VerdictCategory(Enum):
    RAIN_LIKELY = "rain-likely"
    SHOWERS_POSSIBLE = "showers-possible"
    DRY = "dry"

    @property
    def icon(self) -> str:
        return {
            VerdictCategory.RAIN_LIKELY: "🌧️",
            VerdictCategory.SHOWERS_POSSIBLE: "🌦️",
            VerdictCategory.DRY: "☀️",
        }[self]


@dataclass(frozen=True)
class Verdict:
    """Result of evaluating one series. Derived, never persisted."""
    is_rain_likely: bool
    headline_summary: str
    detail_line: Optional[str]
    reference_time: datetime
    category: VerdictCategory
    detection_window: Optional[DetectionWindow] = None

    @property
    def icon(self) -> str:
        return self.category.icon


# Decision thresholds for the rain/no-rain rule
RAIN_LIKELY_PROBABILITY = 50.0
RAIN_LIKELY_RAINFALL_MM = 0.1
SHOWERS_PROBABILITY = 20.0
SHOWERS_RAINFALL_MM = 0.05
