"""
Rainwatch - Forecast Layer

Decoded hourly forecast series, the fetcher that builds them and the
evaluator that turns them into a rain verdict.
"""

from rainwatch.forecast.models import (
    Coordinate,
    DetectionWindow,
    ForecastPoint,
    ForecastSeries,
    Verdict,
    VerdictCategory,
)

__all__ = [
    "Coordinate",
    "DetectionWindow",
    "ForecastPoint",
    "ForecastSeries",
    "Verdict",
    "VerdictCategory",
]
