"""
Live profile accumulation between anchor resets.

Boundary rules (lag = AnchorState.delay, 0 outside Swing mode):
- just-completed profile: [prev_reset_bar - lag, reset_bar - 1]
- developing profile:     [last_reset_bar - lag, current_bar]

Closed bars are committed with merge(). A live bar goes through preview(),
which rebuilds the displayed profile from a copy of the committed one on
every call, so repeated updates of the same bar never double count.
"""

import logging
from collections import deque
from dataclasses import dataclass, field
from typing import Deque, List, Optional, Tuple

import numpy as np

from .allocator import VolumeAllocator
from .anchor import AnchorState
from .bars import Bar, DeltaBar
from .history import HistoricalRecord, PeakZone
from .volume_profile import BucketedProfile

logger = logging.getLogger(__name__)

MIN_DYNAMIC_BUCKETS = 2


@dataclass
class ProfileSnapshot:
    """Statistics of the developing profile after one bar."""
    start_bar: int
    end_bar: int
    poc: Optional[float]
    value_area_high: Optional[float]
    value_area_low: Optional[float]
    vwap: Optional[float]
    std_dev: Optional[float]
    total_volume: float
    peaks: List[PeakZone] = field(default_factory=list)


def detect_peak_zones(volumes: np.ndarray, threshold: float = 0.50) -> List[Tuple[int, int]]:
    """
    Maximal runs of buckets with volume >= threshold * max volume.

    Returns inclusive (start_row, end_row) pairs, lowest price first.
    """
    volumes = np.asarray(volumes, dtype=float)
    if volumes.size == 0:
        return []
    max_volume = float(np.max(volumes))
    if max_volume <= 0:
        return []

    cutoff = threshold * max_volume
    zones: List[Tuple[int, int]] = []
    start = None
    for i, vol in enumerate(volumes):
        if vol >= cutoff:
            if start is None:
                start = i
        elif start is not None:
            zones.append((start, i - 1))
            start = None
    if start is not None:
        zones.append((start, len(volumes) - 1))
    return zones


def zones_to_prices(profile: BucketedProfile, rows: List[Tuple[int, int]]) -> List[PeakZone]:
    return [
        PeakZone(profile.get_bucket_bounds(start)[0], profile.get_bucket_bounds(end)[1])
        for start, end in rows
    ]


class ProfileAccumulator:
    """Owns the developing profile and turns it into HistoricalRecords."""

    def __init__(
        self,
        allocator: VolumeAllocator,
        state: AnchorState,
        bucket_count: int = 24,
        dynamic_sizing: bool = False,
        value_area_pct: float = 0.70,
        peak_threshold: float = 0.50,
        dynamic_reference_multiple: float = 10.0,
    ):
        self.allocator = allocator
        self.state = state
        self.bucket_count = bucket_count
        self.dynamic_sizing = dynamic_sizing
        self.value_area_pct = value_area_pct
        self.peak_threshold = peak_threshold
        self.dynamic_reference_multiple = dynamic_reference_multiple

        self._profile = BucketedProfile(bucket_count)
        self._live: Optional[BucketedProfile] = None
        self._range_sum = 0.0
        self._bar_count = 0
        # Closed bars kept for re-seeding a lagged anchor
        self._recent: Deque[Tuple[int, Bar, float, DeltaBar]] = deque(maxlen=max(1, state.delay))
        self.peak_rows: List[Tuple[int, int]] = []

    @property
    def profile(self) -> BucketedProfile:
        """Profile as currently displayed (live view if a bar is open)."""
        return self._live if self._live is not None else self._profile

    @property
    def committed_profile(self) -> BucketedProfile:
        return self._profile

    # --- bucket sizing ---

    def target_bucket_count(self, range_low: float, range_high: float,
                            range_sum: float, bar_count: int) -> int:
        """
        Bucket count for the given profile range.

        Fixed unless dynamic sizing is on, in which case the count scales with
        the profile range relative to dynamic_reference_multiple average bar
        ranges.
        """
        if not self.dynamic_sizing or bar_count == 0:
            return self.bucket_count
        avg_range = range_sum / bar_count
        if avg_range <= 0:
            return self.bucket_count
        reference = self.dynamic_reference_multiple * avg_range
        n = int(round(self.bucket_count * (range_high - range_low) / reference))
        low_cap = max(MIN_DYNAMIC_BUCKETS, self.bucket_count // 4)
        return max(low_cap, min(self.bucket_count * 4, n))

    # --- merging ---

    @staticmethod
    def _bar_extent(bar: Bar) -> Tuple[float, float]:
        low, high = bar.low, bar.high
        if bar.has_samples:
            for sample in bar.samples:
                low = min(low, sample.range_low, sample.range_high)
                high = max(high, sample.range_low, sample.range_high)
        return low, high

    @staticmethod
    def _has_volume(bar: Bar) -> bool:
        if bar.has_samples:
            return any(s.volume > 0 for s in bar.samples)
        return bar.volume > 0

    def _apply(self, profile: BucketedProfile, bar: Bar, trend: float, delta: Optional[DeltaBar],
               range_sum: float, bar_count: int) -> None:
        if delta is not None:
            profile.track_delta(delta.high, delta.low)
        if not self._has_volume(bar):
            return

        bar_low, bar_high = self._bar_extent(bar)
        if profile.is_empty:
            low, high = bar_low, bar_high
        else:
            low, high = min(profile.range_low, bar_low), max(profile.range_high, bar_high)

        n = self.target_bucket_count(low, high, range_sum, bar_count)
        profile.resize_buckets(n, low, high)

        buy, sell = self.allocator.allocate(bar, profile.range_low, profile.range_high,
                                            profile.bucket_count, trend)
        profile.merge(buy, sell, profile.range_low, profile.range_high)

    def _refresh_peaks(self) -> None:
        self.peak_rows = detect_peak_zones(self.profile.bucket_volumes, self.peak_threshold)

    def merge(self, bar_index: int, bar: Bar, trend: float = 0.0,
              delta: Optional[DeltaBar] = None) -> None:
        """Commit one closed bar into the developing profile."""
        bar = bar.normalized()
        self._live = None
        if self._has_volume(bar):
            self._range_sum += bar.range
            self._bar_count += 1
        self._apply(self._profile, bar, trend, delta, self._range_sum, self._bar_count)
        if self.state.delay > 0:
            self._recent.append((bar_index, bar, trend, delta))
        self._refresh_peaks()

    def preview(self, bar_index: int, bar: Bar, trend: float = 0.0,
                delta: Optional[DeltaBar] = None) -> None:
        """Show an unclosed bar on top of the committed profile without committing it."""
        bar = bar.normalized()
        live = self._profile.copy()
        range_sum, bar_count = self._range_sum, self._bar_count
        if self._has_volume(bar):
            range_sum += bar.range
            bar_count += 1
        self._apply(live, bar, trend, delta, range_sum, bar_count)
        self._live = live
        self._refresh_peaks()

    # --- boundaries ---

    def boundary(self, current_bar: int) -> Tuple[int, int]:
        """(start_bar, end_bar) of the developing profile."""
        return self.state.anchor_start(self.state.last_reset_bar), current_bar

    def completed_boundary(self, reset_bar: int) -> Tuple[int, int]:
        """(start_bar, end_bar) of the profile a reset on reset_bar closes."""
        return self.state.anchor_start(self.state.prev_reset_bar), reset_bar - 1

    # --- finalize ---

    def finalize(self, reset_bar: int) -> Optional[HistoricalRecord]:
        """
        Freeze the committed profile into a HistoricalRecord and start a new one.

        Must be called after the detector marked reset_bar on the state and
        before reset_bar itself is merged.

        Args:
            reset_bar: Bar index on which the reset was detected

        Returns:
            HistoricalRecord spanning [prev anchor - lag, reset_bar - 1], or
            None when that range is empty (a reset on the very first bar)
        """
        start_bar, end_bar = self.completed_boundary(reset_bar)
        if end_bar < start_bar:
            return None

        finished = self._profile
        finished.freeze()
        summary = finished.summary(self.value_area_pct)
        rows = detect_peak_zones(finished.bucket_volumes, self.peak_threshold)
        record = HistoricalRecord(
            start_bar=start_bar,
            end_bar=end_bar,
            peak_zones=zones_to_prices(finished, rows) if not finished.is_empty else [],
            poc=summary.poc,
            value_area_high=summary.value_area_high,
            value_area_low=summary.value_area_low,
            vwap=summary.vwap,
            std_dev=summary.std_dev,
            total_volume=summary.total_volume,
            delta_high=finished.delta_high,
            delta_low=finished.delta_low,
            profile=finished,
        )
        logger.info(f"Finalized profile [{start_bar}, {end_bar}] "
                    f"volume={summary.total_volume:.2f} peaks={len(record.peak_zones)}")

        self._start_new_profile(reset_bar)
        return record

    def _start_new_profile(self, reset_bar: int) -> None:
        self._profile = BucketedProfile(self.bucket_count)
        self._live = None
        self._range_sum = 0.0
        self._bar_count = 0

        first_bar = self.state.anchor_start(reset_bar)
        for index, bar, trend, delta in self._recent:
            if first_bar <= index < reset_bar:
                if self._has_volume(bar):
                    self._range_sum += bar.range
                    self._bar_count += 1
                self._apply(self._profile, bar, trend, delta, self._range_sum, self._bar_count)
        self._refresh_peaks()

    # --- output ---

    def snapshot(self, current_bar: int) -> ProfileSnapshot:
        profile = self.profile
        summary = profile.summary(self.value_area_pct)
        start_bar, end_bar = self.boundary(current_bar)
        peaks = zones_to_prices(profile, self.peak_rows) if not profile.is_empty else []
        return ProfileSnapshot(
            start_bar=start_bar,
            end_bar=end_bar,
            poc=summary.poc,
            value_area_high=summary.value_area_high,
            value_area_low=summary.value_area_low,
            vwap=summary.vwap,
            std_dev=summary.std_dev,
            total_volume=summary.total_volume,
            peaks=peaks,
        )
