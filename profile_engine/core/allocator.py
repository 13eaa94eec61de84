"""
Bar volume allocation onto profile buckets.

Allocation models:
- CLASSIC: whole bar volume into the bucket holding the close
- UNIFORM: volume spread evenly over the price range the bar covers
- PDF: volume spread by a skewed density over the bar range, integrated per
  bucket with a fixed number of quadrature steps

Split models (buy vs sell share of the bar volume):
- CLASSIC: candle colour, close >= open is all buy
- DYNAMIC: continuous estimate from body, wick asymmetry and short-term trend

Bars carrying sub-bar samples skip estimation: each sample's known buy/sell
volume is spread over its own range.
"""

from enum import Enum
from typing import Sequence, Tuple

import numpy as np

from .bars import Bar
from .volume_profile import bucket_edges, locate_bucket


class AllocationModel(Enum):
    CLASSIC = "classic"
    UNIFORM = "uniform"
    PDF = "pdf"


class SplitModel(Enum):
    CLASSIC = "classic"
    DYNAMIC = "dynamic"


# Dynamic split weights: body, wick asymmetry, trend
BODY_WEIGHT = 0.5
WICK_WEIGHT = 0.3
TREND_WEIGHT = 0.2

# Skew ratio bounds for the PDF model
MIN_SKEW = 0.25
MAX_SKEW = 4.0


def short_term_trend(closes: Sequence[float]) -> float:
    """
    Trend of recent closes in [-1, 1].

    Net move from first to last close divided by the summed absolute
    moves between them (an efficiency ratio with sign).
    """
    if len(closes) < 2:
        return 0.0
    arr = np.asarray(closes, dtype=float)
    path = float(np.sum(np.abs(np.diff(arr))))
    if path == 0:
        return 0.0
    return float(np.clip((arr[-1] - arr[0]) / path, -1.0, 1.0))


def two_piece_density(
    x: np.ndarray,
    location: float,
    scale: float,
    skew: float,
    shape: float,
) -> np.ndarray:
    """
    Unnormalized two-piece generalized normal density.

    Left of location the width is scale / skew, right of it scale * skew;
    shape controls tail weight (2 is gaussian, 1 is laplace).
    """
    left = np.abs((x - location) * skew / scale) ** shape
    right = np.abs((x - location) / (scale * skew)) ** shape
    z = np.where(x < location, left, right)
    return np.exp(-0.5 * z)


class VolumeAllocator:
    """Turns one bar into per-bucket buy/sell contributions on a profile grid."""

    def __init__(
        self,
        allocation_model: AllocationModel = AllocationModel.PDF,
        split_model: SplitModel = SplitModel.CLASSIC,
        quadrature_steps: int = 20,
        pdf_shape: float = 2.0,
    ):
        if quadrature_steps < 1:
            raise ValueError(f"quadrature_steps must be >= 1, got {quadrature_steps}")
        if pdf_shape <= 0:
            raise ValueError(f"pdf_shape must be > 0, got {pdf_shape}")
        self.allocation_model = allocation_model
        self.split_model = split_model
        self.quadrature_steps = quadrature_steps
        self.pdf_shape = pdf_shape

    # --- buy/sell split ---

    def buy_fraction(self, bar: Bar, trend: float = 0.0) -> float:
        """Share of bar volume attributed to buyers, in [0, 1]."""
        if self.split_model == SplitModel.CLASSIC or bar.is_degenerate:
            return 1.0 if bar.is_bullish else 0.0

        rng = bar.range
        body = (bar.close - bar.open) / rng
        upper_wick = bar.high - max(bar.open, bar.close)
        lower_wick = min(bar.open, bar.close) - bar.low
        wick = (lower_wick - upper_wick) / rng
        trend = float(np.clip(trend, -1.0, 1.0))

        score = BODY_WEIGHT * body + WICK_WEIGHT * wick + TREND_WEIGHT * trend
        return float(np.clip(0.5 + 0.5 * score, 0.0, 1.0))

    def split(self, bar: Bar, trend: float = 0.0) -> Tuple[float, float]:
        """(buy_volume, sell_volume) for the bar."""
        if bar.has_samples:
            buy = sum(s.buy_volume for s in bar.samples)
            sell = sum(s.sell_volume for s in bar.samples)
            return float(buy), float(sell)
        frac = self.buy_fraction(bar, trend)
        return bar.volume * frac, bar.volume * (1.0 - frac)

    # --- shape over price ---

    def weights(self, bar: Bar, range_low: float, range_high: float, bucket_count: int) -> np.ndarray:
        """Per-bucket weights for the bar, summing to 1."""
        weights = np.zeros(bucket_count)
        if bar.is_degenerate or range_high <= range_low:
            weights[locate_bucket(bar.close, range_low, range_high, bucket_count)] = 1.0
            return weights

        if self.allocation_model == AllocationModel.CLASSIC:
            weights[locate_bucket(bar.close, range_low, range_high, bucket_count)] = 1.0
            return weights

        edges = bucket_edges(range_low, range_high, bucket_count)
        lo = np.maximum(edges[:-1], bar.low)
        hi = np.minimum(edges[1:], bar.high)
        width = np.clip(hi - lo, 0.0, None)

        if self.allocation_model == AllocationModel.UNIFORM:
            mass = width
        else:
            mass = self._integrate_pdf(bar, lo, width)

        total = float(np.sum(mass))
        if not np.isfinite(total) or total <= 0:
            weights[locate_bucket(bar.close, range_low, range_high, bucket_count)] = 1.0
            return weights
        return mass / total

    def _integrate_pdf(self, bar: Bar, lo: np.ndarray, width: np.ndarray) -> np.ndarray:
        """Composite midpoint rule over each bucket's overlap with the bar."""
        rng = bar.range
        upper_wick = bar.high - max(bar.open, bar.close)
        lower_wick = min(bar.open, bar.close) - bar.low
        # More room below the close skews mass downward, and vice versa
        skew = np.sqrt((bar.high - bar.close + 0.5 * upper_wick + 1e-12)
                       / (bar.close - bar.low + 0.5 * lower_wick + 1e-12))
        skew = float(np.clip(skew, MIN_SKEW, MAX_SKEW))

        steps = self.quadrature_steps
        offsets = (np.arange(steps) + 0.5) / steps
        points = lo[:, None] + width[:, None] * offsets[None, :]
        density = two_piece_density(points, bar.close, rng / 4.0, skew, self.pdf_shape)
        return density.mean(axis=1) * width

    # --- allocation ---

    def allocate(
        self,
        bar: Bar,
        range_low: float,
        range_high: float,
        bucket_count: int,
        trend: float = 0.0,
    ) -> Tuple[np.ndarray, np.ndarray]:
        """
        Buy and sell contributions of bar on an even price grid.

        Args:
            bar: Bar to allocate (normalized, high >= low)
            range_low: Lower edge of the grid
            range_high: Upper edge of the grid
            bucket_count: Number of buckets in the grid
            trend: Short-term trend in [-1, 1], used by the dynamic split

        Returns:
            (buy, sell) arrays of length bucket_count; together they sum to
            the bar volume
        """
        if bar.has_samples:
            return self._allocate_samples(bar, range_low, range_high, bucket_count)

        if bar.volume <= 0:
            return np.zeros(bucket_count), np.zeros(bucket_count)

        weights = self.weights(bar, range_low, range_high, bucket_count)
        buy_volume, sell_volume = self.split(bar, trend)
        return weights * buy_volume, weights * sell_volume

    def _allocate_samples(
        self,
        bar: Bar,
        range_low: float,
        range_high: float,
        bucket_count: int,
    ) -> Tuple[np.ndarray, np.ndarray]:
        buy = np.zeros(bucket_count)
        sell = np.zeros(bucket_count)
        edges = bucket_edges(range_low, range_high, bucket_count)

        for sample in bar.samples:
            if sample.volume <= 0:
                continue
            s_low = min(sample.range_low, sample.range_high)
            s_high = max(sample.range_low, sample.range_high)
            weights = np.zeros(bucket_count)
            if s_high > s_low:
                lo = np.maximum(edges[:-1], s_low)
                hi = np.minimum(edges[1:], s_high)
                weights = np.clip(hi - lo, 0.0, None)
            total = float(np.sum(weights))
            if total > 0:
                weights = weights / total
            else:
                weights = np.zeros(bucket_count)
                weights[locate_bucket(s_low, range_low, range_high, bucket_count)] = 1.0
            buy += weights * sample.buy_volume
            sell += weights * sample.sell_volume

        return buy, sell
