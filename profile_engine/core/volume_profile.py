"""
Bucketed volume profile.

Holds buy/sell volume per price bucket over [range_low, range_high] and
derives:
- POC (Point of Control): bucket with the highest total volume
- Value Area: contiguous bucket range holding value_area_pct of the volume
- VWAP: volume-weighted mean of bucket midpoints
- StdDev: volume-weighted dispersion around the VWAP

Buckets are [low, high) except the last one, which is closed at range_high.
"""

from typing import List, NamedTuple, Optional, Tuple

import numpy as np


class ProfileSummary(NamedTuple):
    """Summary statistics of a profile, in prices."""
    poc: Optional[float]              # Midpoint of the POC bucket
    value_area_high: Optional[float]  # Upper bound of the top value-area bucket
    value_area_low: Optional[float]   # Lower bound of the bottom value-area bucket
    vwap: Optional[float]
    std_dev: Optional[float]
    total_volume: float


def bucket_edges(range_low: float, range_high: float, bucket_count: int) -> np.ndarray:
    """Edges of an even grid, length bucket_count + 1."""
    return np.linspace(range_low, range_high, bucket_count + 1)


def locate_bucket(price: float, range_low: float, range_high: float, bucket_count: int) -> int:
    """Index of the bucket containing price, clamped to the grid."""
    span = range_high - range_low
    if span <= 0:
        return 0
    idx = int((price - range_low) / span * bucket_count)
    return max(0, min(bucket_count - 1, idx))


def redistribute(
    values: np.ndarray,
    src_low: float,
    src_high: float,
    dst_low: float,
    dst_high: float,
    dst_count: int,
) -> np.ndarray:
    """
    Move bucket values from one even grid onto another.

    Each source bucket is split across destination buckets in proportion to
    their overlap. Zero-width source buckets (and any source bucket with no
    overlap) land whole in the destination bucket containing their midpoint,
    so the total is always preserved.
    """
    values = np.asarray(values, dtype=float)
    out = np.zeros(dst_count)
    if values.size == 0 or not np.any(values):
        return out

    src = bucket_edges(src_low, src_high, len(values))
    dst = bucket_edges(dst_low, dst_high, dst_count)

    lo = np.maximum.outer(src[:-1], dst[:-1])
    hi = np.minimum.outer(src[1:], dst[1:])
    overlap = np.clip(hi - lo, 0.0, None)
    row_total = overlap.sum(axis=1)

    for i, value in enumerate(values):
        if value == 0:
            continue
        if row_total[i] > 0:
            out += value * overlap[i] / row_total[i]
        else:
            mid = (src[i] + src[i + 1]) / 2
            out[locate_bucket(mid, dst_low, dst_high, dst_count)] += value

    return out


class BucketedProfile:
    """Resizable price-bucketed buy/sell volume distribution."""

    def __init__(self, bucket_count: int = 24):
        if bucket_count < 1:
            raise ValueError(f"bucket_count must be >= 1, got {bucket_count}")
        self.bucket_count = bucket_count
        self.buy = np.zeros(bucket_count)
        self.sell = np.zeros(bucket_count)
        self.range_low: Optional[float] = None
        self.range_high: Optional[float] = None
        # Cumulative delta extrema seen while this profile was live
        self.delta_high: Optional[float] = None
        self.delta_low: Optional[float] = None
        self._frozen = False

    # --- state ---

    @property
    def is_empty(self) -> bool:
        return self.range_low is None

    @property
    def is_frozen(self) -> bool:
        return self._frozen

    @property
    def bucket_volumes(self) -> np.ndarray:
        """Total (buy + sell) volume per bucket."""
        return self.buy + self.sell

    @property
    def total_volume(self) -> float:
        return float(np.sum(self.buy) + np.sum(self.sell))

    def freeze(self) -> None:
        self._frozen = True

    def copy(self) -> "BucketedProfile":
        clone = BucketedProfile(self.bucket_count)
        clone.buy = self.buy.copy()
        clone.sell = self.sell.copy()
        clone.range_low = self.range_low
        clone.range_high = self.range_high
        clone.delta_high = self.delta_high
        clone.delta_low = self.delta_low
        return clone

    def _check_mutable(self) -> None:
        if self._frozen:
            raise RuntimeError("Cannot modify a finalized profile")

    # --- mutation ---

    def resize_buckets(
        self,
        bucket_count: int,
        range_low: Optional[float] = None,
        range_high: Optional[float] = None,
    ) -> None:
        """
        Change bucket count and/or widen the price range.

        Existing volume is redistributed proportionally onto the new
        boundaries, never truncated.
        """
        self._check_mutable()
        if bucket_count < 1:
            raise ValueError(f"bucket_count must be >= 1, got {bucket_count}")

        if self.is_empty:
            self.bucket_count = bucket_count
            self.buy = np.zeros(bucket_count)
            self.sell = np.zeros(bucket_count)
            if range_low is not None and range_high is not None:
                self.range_low = float(min(range_low, range_high))
                self.range_high = float(max(range_low, range_high))
            return

        new_low = self.range_low if range_low is None else min(self.range_low, range_low)
        new_high = self.range_high if range_high is None else max(self.range_high, range_high)

        if (
            bucket_count == self.bucket_count
            and new_low == self.range_low
            and new_high == self.range_high
        ):
            return

        self.buy = redistribute(self.buy, self.range_low, self.range_high,
                                new_low, new_high, bucket_count)
        self.sell = redistribute(self.sell, self.range_low, self.range_high,
                                 new_low, new_high, bucket_count)
        self.bucket_count = bucket_count
        self.range_low = float(new_low)
        self.range_high = float(new_high)

    def merge(
        self,
        buy_contrib: np.ndarray,
        sell_contrib: np.ndarray,
        range_low: float,
        range_high: float,
    ) -> None:
        """
        Add per-bucket buy/sell contributions to the profile.

        The profile range grows to cover the incoming range; contributions on
        a different grid are redistributed by overlap.

        Args:
            buy_contrib: Buy volume per bucket of the incoming grid
            sell_contrib: Sell volume per bucket, same length as buy_contrib
            range_low: Lower edge of the incoming grid
            range_high: Upper edge of the incoming grid

        Raises:
            ValueError: buy and sell lengths differ
            RuntimeError: profile is frozen
        """
        self._check_mutable()
        buy_contrib = np.asarray(buy_contrib, dtype=float)
        sell_contrib = np.asarray(sell_contrib, dtype=float)
        if buy_contrib.shape != sell_contrib.shape:
            raise ValueError("buy and sell contributions must have same length")

        if not np.any(buy_contrib) and not np.any(sell_contrib):
            return

        range_low, range_high = min(range_low, range_high), max(range_low, range_high)
        self.resize_buckets(self.bucket_count, range_low, range_high)

        n = len(buy_contrib)
        if n == self.bucket_count and range_low == self.range_low and range_high == self.range_high:
            self.buy += buy_contrib
            self.sell += sell_contrib
            return

        self.buy += redistribute(buy_contrib, range_low, range_high,
                                 self.range_low, self.range_high, self.bucket_count)
        self.sell += redistribute(sell_contrib, range_low, range_high,
                                  self.range_low, self.range_high, self.bucket_count)

    def track_delta(self, delta_high: float, delta_low: float) -> None:
        """Extend the cumulative-delta extrema seen during this profile."""
        self._check_mutable()
        if self.delta_high is None or delta_high > self.delta_high:
            self.delta_high = delta_high
        if self.delta_low is None or delta_low < self.delta_low:
            self.delta_low = delta_low

    # --- geometry ---

    def get_bucket_bounds(self, index: int) -> Tuple[float, float]:
        """Price bounds (low, high) of bucket index."""
        if self.is_empty:
            raise ValueError("Empty profile has no buckets")
        if index < 0 or index >= self.bucket_count:
            raise IndexError(f"bucket {index} out of range 0..{self.bucket_count - 1}")
        step = (self.range_high - self.range_low) / self.bucket_count
        low = self.range_low + index * step
        high = self.range_high if index == self.bucket_count - 1 else low + step
        return low, high

    def bucket_midpoints(self) -> np.ndarray:
        edges = bucket_edges(self.range_low, self.range_high, self.bucket_count)
        return (edges[:-1] + edges[1:]) / 2

    def bucket_index(self, price: float) -> int:
        if self.is_empty:
            return 0
        return locate_bucket(price, self.range_low, self.range_high, self.bucket_count)

    # --- statistics ---

    def get_poc(self) -> Optional[int]:
        """Bucket index with maximum volume; ties resolve to the lowest price."""
        volumes = self.bucket_volumes
        if self.is_empty or np.sum(volumes) <= 0:
            return None
        # argmax returns the first (lowest index) maximum
        return int(np.argmax(volumes))

    def get_value_area(self, pct: float = 0.70) -> Optional[Tuple[int, int]]:
        """
        Value area as (low_index, high_index), grown outward from the POC.

        At each step the side with the larger next bucket is added; on a tie
        the upper side wins.
        """
        poc = self.get_poc()
        if poc is None:
            return None

        volumes = self.bucket_volumes
        n = self.bucket_count
        target_volume = float(np.sum(volumes)) * pct
        current_volume = float(volumes[poc])

        lower_idx = poc - 1
        upper_idx = poc + 1

        while current_volume < target_volume and (lower_idx >= 0 or upper_idx < n):
            lower_vol = volumes[lower_idx] if lower_idx >= 0 else -1.0
            upper_vol = volumes[upper_idx] if upper_idx < n else -1.0

            if upper_idx < n and upper_vol >= lower_vol:
                current_volume += upper_vol
                upper_idx += 1
            else:
                current_volume += lower_vol
                lower_idx -= 1

        return lower_idx + 1, upper_idx - 1

    def get_vwap(self) -> Optional[float]:
        volumes = self.bucket_volumes
        total = float(np.sum(volumes))
        if self.is_empty or total <= 0:
            return None
        return float(np.sum(self.bucket_midpoints() * volumes) / total)

    def get_std_dev(self) -> Optional[float]:
        vwap = self.get_vwap()
        if vwap is None:
            return None
        volumes = self.bucket_volumes
        variance = np.sum(volumes * (self.bucket_midpoints() - vwap) ** 2) / np.sum(volumes)
        return float(np.sqrt(variance))

    def summary(self, value_area_pct: float = 0.70) -> ProfileSummary:
        poc = self.get_poc()
        if poc is None:
            return ProfileSummary(None, None, None, None, None, 0.0)

        va_low_idx, va_high_idx = self.get_value_area(value_area_pct)
        poc_low, poc_high = self.get_bucket_bounds(poc)
        return ProfileSummary(
            poc=(poc_low + poc_high) / 2,
            value_area_high=self.get_bucket_bounds(va_high_idx)[1],
            value_area_low=self.get_bucket_bounds(va_low_idx)[0],
            vwap=self.get_vwap(),
            std_dev=self.get_std_dev(),
            total_volume=self.total_volume,
        )

    def histogram(self) -> List[dict]:
        """List of {price_low, price_high, buy, sell, percent} dicts for non-empty buckets."""
        if self.is_empty:
            return []
        volumes = self.bucket_volumes
        max_volume = float(np.max(volumes))
        rows = []
        for i in range(self.bucket_count):
            vol = float(volumes[i])
            if vol > 0:
                low, high = self.get_bucket_bounds(i)
                rows.append({
                    "price_low": low,
                    "price_high": high,
                    "buy": float(self.buy[i]),
                    "sell": float(self.sell[i]),
                    "percent": (vol / max_volume * 100) if max_volume > 0 else 0,
                })
        return rows
