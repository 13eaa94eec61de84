"""Tests for render-safety filtering."""

from profile_engine.core.history import HistoricalRecord, HistoryStore, PeakZone
from profile_engine.core.render_window import RenderWindowFilter, is_safe


def _record(start, end, peaks=1):
    zones = [PeakZone(float(start + k), float(start + k + 1)) for k in range(peaks)]
    return HistoricalRecord(start_bar=start, end_bar=end, peak_zones=zones)


class TestIsSafe:
    """Tests for the lookback safety check."""

    def test_boundary(self):
        """Test the last safe offset is max_lookback - safety_margin."""
        record = _record(0, 0)

        assert is_safe(record, 4900, 5000, 100)
        assert not is_safe(record, 4901, 5000, 100)

    def test_recent_record_safe(self):
        assert RenderWindowFilter().is_safe(_record(90, 100), 120)


class TestSelect:
    """Tests for selecting renderable records."""

    def test_selects_recent_safe_records(self):
        store = HistoryStore()
        store.append(_record(0, 99))
        store.append(_record(100, 499, peaks=2))
        store.append(_record(500, 899, peaks=0))
        render_filter = RenderWindowFilter(max_lookback=5000, safety_margin=100, render_lookback=1000)

        selected = render_filter.select(store, 1400)

        # Record ending at 99 is 1301 bars back, outside the render window
        assert [item.index for item in selected] == [1, 2]
        assert selected[0].peaks == store.get_peaks(1)
        assert len(selected[0].peaks) == 2
        assert selected[1].peaks == []

    def test_unsafe_records_excluded(self):
        store = HistoryStore()
        store.append(_record(0, 100))
        render_filter = RenderWindowFilter(max_lookback=500, safety_margin=50, render_lookback=1000)

        assert render_filter.select(store, 551) == []
        assert len(render_filter.select(store, 550)) == 1

    def test_visible_start_clipped(self):
        """Test that a long record is drawn only inside the safe depth."""
        store = HistoryStore()
        store.append(_record(0, 700))
        render_filter = RenderWindowFilter(max_lookback=1000, safety_margin=100, render_lookback=800)

        selected = render_filter.select(store, 1500)

        assert len(selected) == 1
        assert selected[0].visible_start == 600
        assert selected[0].record.start_bar == 0

    def test_empty_history(self):
        assert RenderWindowFilter().select(HistoryStore(), 10) == []
