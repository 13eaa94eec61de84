"""
Bounded store of finalized profiles.

Peak zones of all retained records live in one flattened pair of price lists.
Each record keeps (peak_count, peak_start) into them:

    peak_start[i + 1] == peak_start[i] + peak_count[i]

Evicting the oldest record drops its leading peaks and shifts every remaining
peak_start down by the same count, in a single method.
"""

import logging
from dataclasses import dataclass, field, replace
from typing import Iterator, List, Optional, Tuple

from .volume_profile import BucketedProfile

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PeakZone:
    """High-volume price zone, in absolute prices."""
    price_low: float
    price_high: float


@dataclass
class HistoricalRecord:
    """One finalized profile."""
    start_bar: int
    end_bar: int
    peak_zones: List[PeakZone] = field(default_factory=list)
    poc: Optional[float] = None
    value_area_high: Optional[float] = None
    value_area_low: Optional[float] = None
    vwap: Optional[float] = None
    std_dev: Optional[float] = None
    total_volume: float = 0.0
    delta_high: Optional[float] = None
    delta_low: Optional[float] = None
    profile: Optional[BucketedProfile] = field(default=None, repr=False, compare=False)

    @property
    def bar_count(self) -> int:
        return self.end_bar - self.start_bar + 1


class HistoryStore:
    """FIFO store of HistoricalRecords with flattened peak storage."""

    def __init__(self, capacity: int = 50):
        if capacity < 1:
            raise ValueError(f"capacity must be >= 1, got {capacity}")
        self.capacity = capacity
        self._records: List[HistoricalRecord] = []
        self._peak_counts: List[int] = []
        self._peak_starts: List[int] = []
        self._peak_lows: List[float] = []
        self._peak_highs: List[float] = []

    def __len__(self):
        return len(self._records)

    def __getitem__(self, index: int) -> HistoricalRecord:
        if index < 0:
            index += len(self._records)
        if index < 0 or index >= len(self._records):
            raise IndexError(f"record {index} out of range")
        return replace(self._records[index], peak_zones=self.get_peaks(index))

    def __iter__(self) -> Iterator[HistoricalRecord]:
        for i in range(len(self._records)):
            yield self[i]

    def records(self) -> List[HistoricalRecord]:
        return list(self)

    @property
    def peak_counts(self) -> Tuple[int, ...]:
        return tuple(self._peak_counts)

    @property
    def peak_start_indices(self) -> Tuple[int, ...]:
        return tuple(self._peak_starts)

    @property
    def total_peaks(self) -> int:
        return len(self._peak_lows)

    def append(self, record: HistoricalRecord) -> None:
        """Push record metadata and its peaks onto the flattened arrays."""
        start = len(self._peak_lows)
        for zone in record.peak_zones:
            self._peak_lows.append(zone.price_low)
            self._peak_highs.append(zone.price_high)

        self._peak_counts.append(len(record.peak_zones))
        self._peak_starts.append(start)
        self._records.append(replace(record, peak_zones=[]))

    def evict_if_over_capacity(self) -> int:
        """
        Drop oldest records until size <= capacity.

        Returns the number of records evicted.
        """
        evicted = 0
        while len(self._records) > self.capacity:
            count = self._peak_counts[0]

            del self._records[0]
            del self._peak_counts[0]
            del self._peak_starts[0]
            del self._peak_lows[:count]
            del self._peak_highs[:count]
            self._peak_starts = [s - count for s in self._peak_starts]

            evicted += 1

        if evicted:
            logger.debug(f"Evicted {evicted} record(s), {len(self._records)} retained")
        return evicted

    def get_peaks(self, record_index: int) -> List[PeakZone]:
        """
        Peak zones of one retained record.

        Args:
            record_index: Position in the store, 0 is the oldest record

        Returns:
            List of PeakZone in price order; empty for any out-of-range index
        """
        if record_index < 0 or record_index >= len(self._records):
            return []
        start = self._peak_starts[record_index]
        end = start + self._peak_counts[record_index]
        return [
            PeakZone(low, high)
            for low, high in zip(self._peak_lows[start:end], self._peak_highs[start:end])
        ]

    def clear(self) -> None:
        self._records.clear()
        self._peak_counts.clear()
        self._peak_starts.clear()
        self._peak_lows.clear()
        self._peak_highs.clear()
