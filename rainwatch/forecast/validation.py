"""
Rainwatch - Forecast Integrity Checks

Cross-cutting invariant checks over decoded forecasts and verdicts. They
only run when ``settings.DEBUG`` is on (or a caller opts in explicitly) and
raise ForecastIntegrityError instead of silently continuing. Production
control flow never depends on them.
"""

import logging
from datetime import datetime, timedelta
from typing import List, Optional, Sequence

from rainwatch.core.exceptions import ForecastIntegrityError
from rainwatch.forecast.models import (
    RAIN_LIKELY_PROBABILITY,
    RAIN_LIKELY_RAINFALL_MM,
    ForecastPoint,
    ForecastSeries,
    Verdict,
    VerdictCategory,
)
from rainwatch.settings import settings

logger = logging.getLogger(__name__)


def is_enabled(flag: Optional[bool] = None) -> bool:
    """Resolve an explicit opt-in/opt-out against the DEBUG setting."""
    return settings.DEBUG if flag is None else flag


def _raise_if_any(problems: List[str], context: str):
    if problems:
        logger.error(f"[VALIDATION] {context}: {len(problems)} problem(s): {problems}")
        raise ForecastIntegrityError(problems)


def _subsequence_problems(name: str, subset: Sequence[ForecastPoint], all_points: Sequence[ForecastPoint]) -> List[str]:
    problems = []
    known = {p.timestamp for p in all_points}
    for earlier, later in zip(subset, subset[1:]):
        if later.timestamp < earlier.timestamp:
            problems.append(f"{name} is not in ascending order at {later.timestamp.isoformat()}")
            break
    missing = [p.timestamp for p in subset if p.timestamp not in known]
    if missing:
        problems.append(f"{name} has {len(missing)} point(s) absent from all_points")
    return problems


def check_response(
    time_strings: Sequence[str],
    probability_count: Optional[int],
    rain_count: Optional[int],
    parsed_count: int,
    utc_offset_seconds: int,
    series: ForecastSeries,
    now: datetime,
):
    """Check a decoded provider response against the series built from it."""
    problems = []
    if not time_strings:
        problems.append("response carries no hourly timestamps")
    if probability_count is not None and probability_count != len(time_strings):
        problems.append(
            f"mismatched precipitation probability count ({probability_count}) for timestamps ({len(time_strings)})"
        )
    if rain_count is not None and rain_count != len(time_strings):
        problems.append(f"mismatched rain amount count ({rain_count}) for timestamps ({len(time_strings)})")
    expected = min(len(time_strings), probability_count or len(time_strings), rain_count or len(time_strings))
    if parsed_count != expected:
        problems.append(f"parsed only {parsed_count} of {expected} hourly timestamps")

    offset = now.astimezone(series.timezone).utcoffset()
    if offset is not None and abs(offset.total_seconds() - utc_offset_seconds) > 3600:
        problems.append(
            f"timezone offset mismatch (service: {utc_offset_seconds}, resolved: {int(offset.total_seconds())})"
        )

    if series.all_points:
        horizon = now + timedelta(hours=series.lookahead_hours + 48)
        first = series.all_points[0].timestamp
        if first > horizon:
            problems.append(f"first data point is unexpectedly far in the future: {first.isoformat()}")

    problems.extend(check_series(series, raise_errors=False))
    _raise_if_any(problems, "response")


def check_series(series: ForecastSeries, raise_errors: bool = True) -> List[str]:
    """Check the window/subsequence invariants of a series."""
    problems = []
    problems.extend(_subsequence_problems("all_points", series.all_points, series.all_points))
    problems.extend(_subsequence_problems("window_points", series.window_points, series.all_points))
    problems.extend(_subsequence_problems("next_24_hour_points", series.next_24_hour_points, series.all_points))
    stamps = [p.timestamp for p in series.all_points]
    if len(set(stamps)) != len(stamps):
        problems.append("all_points contains duplicate timestamps")
    if raise_errors:
        _raise_if_any(problems, "series")
    return problems


def check_verdict(series: ForecastSeries, verdict: Verdict):
    """A dry verdict must rest on real data that shows no rain-likely signal."""
    if verdict.category is not VerdictCategory.DRY:
        return
    problems = []
    if not series.all_points:
        problems.append("dry verdict drawn from zero hourly data points")
    peak = series.peak_point()
    if peak is not None and (
        peak.probability_percent >= RAIN_LIKELY_PROBABILITY or peak.rainfall_amount_mm > RAIN_LIKELY_RAINFALL_MM
    ):
        problems.append(
            f"peak point ({round(peak.probability_percent)}%, {peak.rainfall_amount_mm} mm) conflicts with dry verdict"
        )
    _raise_if_any(problems, "verdict")
