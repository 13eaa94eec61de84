"""Tests for anchor reset detection."""

import pytest

from profile_engine.core.anchor import (
    AnchorDetector,
    AnchorMode,
    AnchorState,
    DetectorPhase,
    ResetEvent,
)
from profile_engine.core.bars import DeltaBar
from profile_engine.core.structure import TrendState

ZIGZAG_HIGHS = [10.0, 12.0, 11.0, 13.0, 12.0, 14.0, 13.0, 11.0, 12.0, 10.0, 11.0, 9.0, 10.0]
ZIGZAG_LOWS = [h - 1.0 for h in ZIGZAG_HIGHS]


def _rising_delta(i):
    return DeltaBar(open=float(i), high=i + 0.25, low=i - 0.25, close=float(i))


def _run(detector, highs, lows, delta_for):
    resets = []
    for i, (h, l) in enumerate(zip(highs, lows)):
        event = detector.on_bar(i, h, l, delta_for(i))
        if event is not None:
            resets.append(event)
    return resets


class TestStructureMode:
    """Tests for price-structure anchors."""

    def test_reset_only_on_flip(self):
        """Test that neutral -> bullish does not reset but bullish -> bearish does."""
        detector = AnchorDetector(AnchorMode.STRUCTURE, 1, 1)

        resets = _run(detector, ZIGZAG_HIGHS, ZIGZAG_LOWS, _rising_delta)

        assert [r.bar_index for r in resets] == [9]
        assert resets[0].lag == 0
        assert resets[0].anchor_bar == 9
        assert detector.state.baseline == TrendState.BEARISH

    def test_no_delay(self):
        detector = AnchorDetector(AnchorMode.STRUCTURE, 5, 5)

        assert detector.lag == 0


class TestDeltaMode:
    """Tests for cumulative-delta structure anchors."""

    def test_uses_delta_series(self):
        """Test that delta zigzag drives resets even on flat prices."""
        detector = AnchorDetector(AnchorMode.DELTA, 1, 1)
        flat = [100.0] * len(ZIGZAG_HIGHS)

        def zigzag_delta(i):
            return DeltaBar(open=0.0, high=ZIGZAG_HIGHS[i], low=ZIGZAG_LOWS[i], close=0.0)

        resets = _run(detector, flat, flat, zigzag_delta)

        assert [r.bar_index for r in resets] == [9]
        assert resets[0].mode == AnchorMode.DELTA

    def test_ignores_price(self):
        """Test that price structure alone never resets delta mode."""
        detector = AnchorDetector(AnchorMode.DELTA, 1, 1)

        resets = _run(detector, ZIGZAG_HIGHS, ZIGZAG_LOWS, lambda i: DeltaBar(0.0, 0.0, 0.0, 0.0))

        assert resets == []


class TestSwingMode:
    """Tests for pivot-delta baseline anchors."""

    def test_rising_delta_resets_on_pivot_lows(self):
        """Test that with rising delta only pivot lows move the baseline."""
        detector = AnchorDetector(AnchorMode.SWING, 1, 1)

        resets = _run(detector, ZIGZAG_HIGHS, ZIGZAG_LOWS, _rising_delta)

        # Pivot lows at 2, 4, 7, 9, 11 confirm one bar later
        assert [r.bar_index for r in resets] == [3, 5, 8, 10, 12]
        assert all(r.lag == 1 for r in resets)
        assert resets[0].anchor_bar == 2

    def test_falling_delta_resets_on_pivot_highs(self):
        """Test that with falling delta only pivot highs move the baseline."""
        detector = AnchorDetector(AnchorMode.SWING, 1, 1)

        resets = _run(detector, ZIGZAG_HIGHS, ZIGZAG_LOWS,
                      lambda i: DeltaBar(-float(i), -i + 0.25, -i - 0.25, -float(i)))

        # Pivot highs at 3, 5, 8, 10 confirm one bar later; bar 1 only seeds
        assert [r.bar_index for r in resets] == [4, 6, 9, 11]
        assert detector.state.baseline == pytest.approx(-10.25)

    def test_repeated_extreme_does_not_reset(self):
        """Test that pivots revisiting the current extreme leave the baseline alone."""
        detector = AnchorDetector(AnchorMode.SWING, 1, 1)

        def plateau(i):
            d = -float(min(i, 3))
            return DeltaBar(d, d, d, d)

        resets = _run(detector, ZIGZAG_HIGHS, ZIGZAG_LOWS, plateau)

        assert [r.bar_index for r in resets] == [4]
        assert detector.state.baseline == -3.0

    def test_baseline_never_retreats(self):
        """Test that a pivot high above the baseline does not raise it."""
        detector = AnchorDetector(AnchorMode.SWING, 1, 1)

        _run(detector, ZIGZAG_HIGHS[:5], ZIGZAG_LOWS[:5], _rising_delta)

        # Bar 4 confirms the pivot high at bar 3 (delta low 2.75)
        assert detector.state.baseline == pytest.approx(2.25)

    def test_baseline_from_pivot_bar_delta(self):
        """Test pivot highs use the pivot bar's delta low, pivot lows its delta high."""
        detector = AnchorDetector(AnchorMode.SWING, 1, 1)

        _run(detector, ZIGZAG_HIGHS[:3], ZIGZAG_LOWS[:3], _rising_delta)
        # Swing high at bar 1 confirmed on bar 2 seeds the baseline
        assert detector.state.baseline == pytest.approx(0.75)

        detector.on_bar(3, ZIGZAG_HIGHS[3], ZIGZAG_LOWS[3], _rising_delta(3))
        # Swing low at bar 2
        assert detector.state.baseline == pytest.approx(2.25)

    def test_constant_baseline_never_resets(self):
        """Test that pivots with unchanged delta do not reset."""
        detector = AnchorDetector(AnchorMode.SWING, 1, 1)

        resets = _run(detector, ZIGZAG_HIGHS, ZIGZAG_LOWS, lambda i: DeltaBar(0.0, 0.0, 0.0, 0.0))

        assert resets == []

    def test_lag_matches_right_bars(self):
        assert AnchorDetector(AnchorMode.SWING, 10, 7).lag == 7


class TestAnchorState:
    """Tests for reset bookkeeping."""

    def test_detector_marks_resets(self):
        detector = AnchorDetector(AnchorMode.SWING, 1, 1)
        assert detector.state.is_first_reset

        _run(detector, ZIGZAG_HIGHS, ZIGZAG_LOWS, _rising_delta)

        assert not detector.state.is_first_reset
        assert detector.state.last_reset_bar == 12
        assert detector.state.prev_reset_bar == 10
        assert detector.state.phase == DetectorPhase.RESETTING

    def test_anchor_start_clamps(self):
        state = AnchorState(mode=AnchorMode.SWING, delay=5)

        assert state.anchor_start(3) == 0
        assert state.anchor_start(50) == 45

    def test_reset_event_anchor_bar_clamps(self):
        assert ResetEvent(bar_index=2, lag=10, mode=AnchorMode.SWING).anchor_bar == 0

    def test_unknown_mode(self):
        with pytest.raises(ValueError):
            AnchorDetector("sideways")
