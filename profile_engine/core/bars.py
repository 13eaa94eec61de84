"""
Bar and sample types consumed by the profile engine.

Every input source (CSV loader, API request, live feed) must be converted to
these types before reaching the pipeline.
"""

import logging
from dataclasses import dataclass, replace
from typing import List, Optional

logger = logging.getLogger(__name__)


@dataclass
class SubBarSample:
    """Finer-resolution slice of a bar with known buy/sell volume."""
    buy_volume: float
    sell_volume: float
    range_high: float
    range_low: float

    @property
    def volume(self) -> float:
        return self.buy_volume + self.sell_volume

    @property
    def delta(self) -> float:
        return self.buy_volume - self.sell_volume


@dataclass
class Bar:
    """
    One OHLCV bar.

    is_closed=False marks a live bar that may be evaluated again with
    updated values before it closes.
    """
    open: float
    high: float
    low: float
    close: float
    volume: float
    is_closed: bool = True
    samples: Optional[List[SubBarSample]] = None

    @property
    def range(self) -> float:
        return self.high - self.low

    @property
    def is_degenerate(self) -> bool:
        return self.high == self.low

    @property
    def is_bullish(self) -> bool:
        return self.close >= self.open

    @property
    def has_samples(self) -> bool:
        return bool(self.samples)

    def normalized(self) -> "Bar":
        """
        Return a consistent copy of the bar.

        Inverted high/low are swapped; a high/low that does not cover open
        and close is widened to cover them.
        """
        bar = self
        if bar.high < bar.low:
            logger.warning(f"Bar high {bar.high} below low {bar.low}, swapping")
            bar = replace(bar, high=bar.low, low=bar.high)

        high = max(bar.high, bar.open, bar.close)
        low = min(bar.low, bar.open, bar.close)
        if high != bar.high or low != bar.low:
            logger.warning(
                f"Bar open/close outside [{bar.low}, {bar.high}], widening to [{low}, {high}]"
            )
            bar = replace(bar, high=high, low=low)
        return bar


@dataclass
class DeltaBar:
    """Cumulative order-flow delta path over one bar."""
    open: float
    high: float
    low: float
    close: float
