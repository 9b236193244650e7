"""Unit tests for the tolerance comparator."""

from __future__ import annotations

import pytest

from conform_core.errors import ToleranceError
from conform_core.types.tolerance import (
    ToleranceSpec,
    angular_distance,
    compare,
    in_range,
    normalize_deviation,
)
from conform_core.types.verdict import Verdict


def _angle(expected: float, actual: float, ok: float = 1.0, info: float = 2.0) -> ToleranceSpec:
    return ToleranceSpec(expected=expected, actual=actual, ok_band_width=ok, info_band_width=info, wraps=True)


class TestNormalizeDeviation:
    """Tests for normalize_deviation."""

    def test_small_values_unchanged(self) -> None:
        """Test that deviations within half a period are unchanged."""
        assert normalize_deviation(10.0) == pytest.approx(10.0)
        assert normalize_deviation(-10.0) == pytest.approx(-10.0)

    def test_wraps(self) -> None:
        """Test wraparound in both directions."""
        assert normalize_deviation(358.0) == pytest.approx(-2.0)
        assert normalize_deviation(-358.0) == pytest.approx(2.0)

    def test_angular_distance_across_zero(self) -> None:
        """Test that 359 and 1 are 2 degrees apart."""
        assert angular_distance(359.0, 1.0) == pytest.approx(2.0)
        assert angular_distance(1.0, 359.0) == pytest.approx(2.0)


class TestCompare:
    """Tests for compare."""

    def test_exact_match_ok(self) -> None:
        """Test zero deviation is OK even with zero bands."""
        spec = ToleranceSpec(expected=5.0, actual=5.0, ok_band_width=0.0, info_band_width=0.0)
        assert compare(spec) == Verdict.OK

    def test_boundary_across_zero(self) -> None:
        """Test 359 vs 1 with ok band 2 is OK, with ok 1 and info 2 is INFO."""
        assert compare(_angle(359.0, 1.0, ok=2.0, info=2.0)) == Verdict.OK
        assert compare(_angle(359.0, 1.0, ok=1.0, info=2.0)) == Verdict.INFO

    @pytest.mark.parametrize(
        "actual,expected_verdict",
        [
            (46.0, Verdict.OK),
            (46.5, Verdict.INFO),
            (47.0, Verdict.INFO),
            (47.5, Verdict.ISSUE),
        ],
    )
    def test_band_edges(self, actual: float, expected_verdict: Verdict) -> None:
        """Test that deviations on the band edges fall in the inner band."""
        assert compare(_angle(45.0, actual)) == expected_verdict

    @pytest.mark.parametrize("k", [-3, -1, 1, 2, 5])
    def test_periodicity(self, k: int) -> None:
        """Test that adding whole periods to actual does not change the verdict."""
        base = compare(_angle(10.0, 11.5))
        assert compare(_angle(10.0, 11.5 + k * 360.0)) == base

    def test_non_wrapping_ignores_period(self) -> None:
        """Test that non-wrapping quantities compare linearly."""
        spec = ToleranceSpec(expected=359.0, actual=1.0, ok_band_width=2.0, info_band_width=2.0)
        assert compare(spec) == Verdict.ISSUE
        assert spec.deviation == pytest.approx(358.0)


class TestToleranceSpecValidation:
    """Tests for ToleranceSpec validation."""

    def test_negative_ok_band(self) -> None:
        """Test negative band rejected."""
        with pytest.raises(ToleranceError, match="ok_band_width"):
            ToleranceSpec(expected=0, actual=0, ok_band_width=-1, info_band_width=1)

    def test_info_narrower_than_ok(self) -> None:
        """Test misordered bands rejected."""
        with pytest.raises(ToleranceError, match="info_band_width"):
            ToleranceSpec(expected=0, actual=0, ok_band_width=2, info_band_width=1)

    def test_bad_period(self) -> None:
        """Test non-positive period rejected for wrapping quantities."""
        with pytest.raises(ToleranceError, match="period"):
            ToleranceSpec(expected=0, actual=0, ok_band_width=1, info_band_width=1, wraps=True, period=0)


class TestInRange:
    """Tests for in_range."""

    def test_inclusive(self) -> None:
        """Test inclusive upper bound."""
        assert in_range(360.0, 0.0, 360.0)
        assert in_range(0.0, 0.0, 360.0)
        assert not in_range(-0.1, 0.0, 360.0)

    def test_exclusive(self) -> None:
        """Test exclusive upper bound."""
        assert not in_range(360.0, 0.0, 360.0, high_inclusive=False)
        assert in_range(359.9, 0.0, 360.0, high_inclusive=False)
