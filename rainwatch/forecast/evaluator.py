"""
Rainwatch - Rain Evaluator

Turns a forecast series into a human-facing verdict.

The same predicate is searched in three passes: the lookahead window, the
next 24 hours, then the whole series. The first hit wins, so a risk that is
only visible outside the narrow window still surfaces.
"""

import logging
from datetime import datetime
from typing import Callable, Optional, Tuple

from rainwatch.forecast import validation
from rainwatch.forecast.models import (
    RAIN_LIKELY_PROBABILITY,
    RAIN_LIKELY_RAINFALL_MM,
    SHOWERS_PROBABILITY,
    SHOWERS_RAINFALL_MM,
    DetectionWindow,
    ForecastPoint,
    ForecastSeries,
    Verdict,
    VerdictCategory,
)

logger = logging.getLogger(__name__)


def is_rain_likely_point(point: ForecastPoint) -> bool:
    return point.probability_percent >= RAIN_LIKELY_PROBABILITY or point.rainfall_amount_mm > RAIN_LIKELY_RAINFALL_MM


def is_showers_point(point: ForecastPoint) -> bool:
    return point.probability_percent >= SHOWERS_PROBABILITY or point.rainfall_amount_mm > SHOWERS_RAINFALL_MM


def format_short_time(moment: datetime) -> str:
    """Format as '4:00 PM'."""
    return moment.strftime("%I:%M %p").lstrip("0")


def format_day_time(moment: datetime) -> str:
    """Format as 'Oct 18, 4:00 PM'."""
    return f"{moment.strftime('%b')} {moment.day}, {format_short_time(moment)}"


def _percent(point: ForecastPoint) -> int:
    return int(round(point.probability_percent))


def first_match(
    series: ForecastSeries, predicate: Callable[[ForecastPoint], bool]
) -> Optional[Tuple[ForecastPoint, DetectionWindow]]:
    """Find the first point matching ``predicate`` across the cascading windows."""
    for points in (series.window_points, series.next_24_hour_points, series.all_points):
        for point in points:
            if predicate(point):
                return point, series.detection_window(point)
    return None


def _headline(lead_in: str, point: ForecastPoint, window: DetectionWindow, series: ForecastSeries) -> str:
    local = point.timestamp.astimezone(series.timezone)
    percent = _percent(point)
    if window is DetectionWindow.LOOKAHEAD:
        return f"{lead_in} around {format_short_time(local)} with a {percent}% chance."
    if window is DetectionWindow.NEXT_24_HOURS:
        return (
            f"{lead_in} later around {format_short_time(local)} with a {percent}% chance "
            f"(outside the next {series.lookahead_hours} hours)."
        )
    return f"{lead_in} on {format_day_time(local)} with a {percent}% chance."


def _peak_detail(series: ForecastSeries) -> Optional[str]:
    peak = series.peak_point()
    if peak is None:
        return None
    local = peak.timestamp.astimezone(series.timezone)
    window = series.detection_window(peak)
    if window is DetectionWindow.LOOKAHEAD:
        where = f"around {format_short_time(local)} within the next {series.lookahead_hours} hours"
    elif window is DetectionWindow.NEXT_24_HOURS:
        where = f"around {format_short_time(local)} within the next 24 hours"
    else:
        where = f"on {format_day_time(local)} later in the forecast"
    return f"Peak chance reaches {_percent(peak)}% {where}."


def _dry_detail(series: ForecastSeries) -> Optional[str]:
    peak = series.peak_point()
    if peak is None:
        return None
    return f"Highest chance stays around {_percent(peak)}% with minimal rainfall expected."


def evaluate(series: ForecastSeries, now: Optional[datetime] = None, validate: Optional[bool] = None) -> Verdict:
    """Evaluate a forecast series.

    Args:
        series: Decoded forecast series
        now: Evaluation time, used as the reference time of a dry verdict.
            Defaults to the current time in the series timezone.
        validate: Run the integrity checks. Defaults to settings.DEBUG.

    Returns:
        The verdict. Identical inputs (including ``now``) give equal verdicts.
    """
    match = first_match(series, is_rain_likely_point)
    if match is not None:
        point, window = match
        verdict = Verdict(
            is_rain_likely=True,
            headline_summary=_headline("Rain likely", point, window, series),
            detail_line=_peak_detail(series),
            reference_time=point.timestamp,
            category=VerdictCategory.RAIN_LIKELY,
            detection_window=window,
        )
    else:
        match = first_match(series, is_showers_point)
        if match is not None:
            point, window = match
            verdict = Verdict(
                is_rain_likely=False,
                headline_summary=_headline("Showers possible", point, window, series),
                detail_line=_peak_detail(series),
                reference_time=point.timestamp,
                category=VerdictCategory.SHOWERS_POSSIBLE,
                detection_window=window,
            )
        else:
            verdict = Verdict(
                is_rain_likely=False,
                headline_summary=f"No rain expected in the next {series.lookahead_hours} hours.",
                detail_line=_dry_detail(series),
                reference_time=now or datetime.now(series.timezone),
                category=VerdictCategory.DRY,
            )

    if validation.is_enabled(validate):
        validation.check_verdict(series, verdict)

    logger.debug(f"Verdict {verdict.category.value}: {verdict.headline_summary}")
    return verdict
