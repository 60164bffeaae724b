"""Tests for the forecast integrity checks."""

from dataclasses import replace
from datetime import timedelta
from unittest.mock import patch

import pytest

from conftest import NOW
from rainwatch.core.exceptions import ForecastIntegrityError
from rainwatch.forecast import validation
from rainwatch.forecast.evaluator import evaluate
from rainwatch.forecast.models import ForecastPoint, Verdict, VerdictCategory


class TestIsEnabled:

    def test_follows_debug_setting(self):
        with patch.object(validation.settings, "DEBUG", True):
            assert validation.is_enabled() is True
        with patch.object(validation.settings, "DEBUG", False):
            assert validation.is_enabled() is False

    def test_explicit_flag_wins(self):
        with patch.object(validation.settings, "DEBUG", False):
            assert validation.is_enabled(True) is True


class TestCheckSeries:

    def test_clean_series(self, make_series):
        assert validation.check_series(make_series([10, 20, 30])) == []

    def test_out_of_order_points(self, make_series):
        series = make_series([10, 20, 30])
        shuffled = replace(series, all_points=tuple(reversed(series.all_points)))

        with pytest.raises(ForecastIntegrityError) as exc_info:
            validation.check_series(shuffled)
        assert any("ascending" in p for p in exc_info.value.problems)

    def test_window_point_not_in_series(self, make_series):
        series = make_series([10, 20, 30])
        stray = ForecastPoint(NOW + timedelta(minutes=30), 5.0, 0.0)
        broken = replace(series, window_points=series.window_points + (stray,))

        problems = validation.check_series(broken, raise_errors=False)

        assert any("absent from all_points" in p for p in problems)

    def test_duplicate_timestamps(self, make_series):
        series = make_series([10, 20])
        doubled = replace(series, all_points=series.all_points + series.all_points[-1:])

        problems = validation.check_series(doubled, raise_errors=False)

        assert "all_points contains duplicate timestamps" in problems


class TestCheckResponse:

    def test_timezone_offset_mismatch(self, make_series):
        series = make_series([10, 20])

        with pytest.raises(ForecastIntegrityError) as exc_info:
            validation.check_response(
                time_strings=["2026-10-18T12:00", "2026-10-18T13:00"],
                probability_count=2,
                rain_count=2,
                parsed_count=2,
                utc_offset_seconds=3 * 3600,
                series=series,
                now=NOW,
            )
        assert any("timezone offset mismatch" in p for p in exc_info.value.problems)

    def test_far_future_first_point(self, make_series):
        series = make_series([10], start=NOW + timedelta(days=5), lookahead=12)

        with pytest.raises(ForecastIntegrityError) as exc_info:
            validation.check_response(
                time_strings=["2026-10-23T12:00"],
                probability_count=1,
                rain_count=1,
                parsed_count=1,
                utc_offset_seconds=0,
                series=series,
                now=NOW,
            )
        assert any("unexpectedly far in the future" in p for p in exc_info.value.problems)

    def test_empty_response(self, make_series):
        with pytest.raises(ForecastIntegrityError):
            validation.check_response([], None, None, 0, 0, make_series([]), NOW)


class TestCheckVerdict:

    def test_dry_verdict_from_no_data(self, make_series):
        with pytest.raises(ForecastIntegrityError):
            evaluate(make_series([]), now=NOW, validate=True)

    def test_dry_verdict_contradicting_peak(self, make_series):
        series = make_series([10, 80])
        forged = Verdict(
            is_rain_likely=False,
            headline_summary="No rain expected in the next 12 hours.",
            detail_line=None,
            reference_time=NOW,
            category=VerdictCategory.DRY,
        )

        with pytest.raises(ForecastIntegrityError):
            validation.check_verdict(series, forged)

    def test_consistent_verdicts_pass(self, make_series):
        for probabilities in ([10, 15], [10, 30], [10, 80]):
            evaluate(make_series(probabilities), now=NOW, validate=True)

    def test_integrity_error_is_assertion(self):
        assert issubclass(ForecastIntegrityError, AssertionError)
