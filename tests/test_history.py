"""Tests for the bounded history store."""

import pytest

from profile_engine.core.history import HistoricalRecord, HistoryStore, PeakZone


def _record(i, peak_count=None):
    """Record i covering bars [10i, 10i + 9] with i % 4 peaks by default."""
    count = i % 4 if peak_count is None else peak_count
    zones = [PeakZone(100.0 * i + k, 100.0 * i + k + 0.5) for k in range(count)]
    return HistoricalRecord(start_bar=10 * i, end_bar=10 * i + 9, peak_zones=zones,
                            total_volume=float(i))


def _assert_flat_layout(store):
    counts = store.peak_counts
    starts = store.peak_start_indices
    if starts:
        assert starts[0] == 0
    for i in range(len(starts) - 1):
        assert starts[i + 1] == starts[i] + counts[i]
    assert store.total_peaks == sum(counts)


class TestAppend:
    """Tests for adding records."""

    def test_peaks_round_trip(self):
        store = HistoryStore(capacity=10)
        for i in range(6):
            store.append(_record(i))

        for i in range(6):
            assert store.get_peaks(i) == _record(i).peak_zones
            assert store[i].peak_zones == _record(i).peak_zones
        _assert_flat_layout(store)

    def test_record_without_peaks(self):
        store = HistoryStore()
        store.append(_record(0, peak_count=0))

        assert store.get_peaks(0) == []
        assert store.peak_counts == (0,)

    def test_negative_index(self):
        store = HistoryStore()
        for i in range(3):
            store.append(_record(i))

        assert store[-1].start_bar == 20

    def test_index_out_of_range(self):
        store = HistoryStore()
        store.append(_record(1))

        with pytest.raises(IndexError):
            store[1]

    def test_get_peaks_out_of_range_is_empty(self):
        """Test that bad record indices return nothing rather than raising."""
        store = HistoryStore()
        store.append(_record(3))

        assert store.get_peaks(1) == []
        assert store.get_peaks(-1) == []
        assert store.get_peaks(99) == []


class TestEviction:
    """Tests for FIFO eviction and peak index adjustment."""

    def test_eviction_preserves_remaining_peaks(self):
        """Test 51 records into capacity 50: oldest dropped, the rest unchanged."""
        store = HistoryStore(capacity=50)
        for i in range(51):
            store.append(_record(i))
        before = [store.get_peaks(i) for i in range(51)]

        evicted = store.evict_if_over_capacity()

        assert evicted == 1
        assert len(store) == 50
        assert store[0].start_bar == 10
        for i in range(50):
            assert store.get_peaks(i) == before[i + 1]
        _assert_flat_layout(store)

    def test_eviction_each_append(self):
        """Test that evicting after every append keeps the layout consistent."""
        store = HistoryStore(capacity=5)
        for i in range(40):
            store.append(_record(i))
            store.evict_if_over_capacity()

            assert len(store) == min(i + 1, 5)
            _assert_flat_layout(store)
            assert store.get_peaks(len(store) - 1) == _record(i).peak_zones

    def test_evict_several_at_once(self):
        store = HistoryStore(capacity=3)
        for i in range(7):
            store.append(_record(i))

        assert store.evict_if_over_capacity() == 4
        assert [r.start_bar for r in store] == [40, 50, 60]
        assert store.get_peaks(0) == _record(4).peak_zones
        _assert_flat_layout(store)

    def test_no_eviction_under_capacity(self):
        store = HistoryStore(capacity=3)
        store.append(_record(1))

        assert store.evict_if_over_capacity() == 0
        assert len(store) == 1

    def test_clear(self):
        store = HistoryStore()
        for i in range(4):
            store.append(_record(i))

        store.clear()

        assert len(store) == 0
        assert store.total_peaks == 0

    def test_rejects_zero_capacity(self):
        with pytest.raises(ValueError):
            HistoryStore(capacity=0)


def test_bar_count():
    assert _record(2).bar_count == 10
