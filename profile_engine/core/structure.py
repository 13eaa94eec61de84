"""
Market structure detection on a bar-by-bar stream: pivot swings and trend state.

Rules:
- Pivot swings: left / right bars required to confirm (strict comparison).
- A swing at bar c is only known at bar c + right_bars (confirmation lag).
- Trend state: higher high + higher low is bullish, lower high + lower low
  is bearish, mixed pairs keep the previous state.
"""

from collections import deque
from dataclasses import dataclass
from enum import Enum
from typing import Deque, List, Tuple


class SwingType(Enum):
    HIGH = "high"
    LOW = "low"


class TrendState(Enum):
    NEUTRAL = "neutral"
    BULLISH = "bullish"
    BEARISH = "bearish"


@dataclass
class Swing:
    """Represents a confirmed pivot swing point."""
    index: int  # Bar index of the pivot itself
    price: float
    swing_type: SwingType
    confirmed_at: int  # Bar index where the pivot became known


class PivotTracker:
    """
    Incremental pivot detection over a high/low stream.

    A swing high at index c requires:
      high[c] > max(high[c-left_bars:c]) AND high[c] > max(high[c+1:c+right_bars+1])

    A swing low at index c requires:
      low[c] < min(low[c-left_bars:c]) AND low[c] < min(low[c+1:c+right_bars+1])
    """

    def __init__(self, left_bars: int = 2, right_bars: int = 2):
        if left_bars < 0 or right_bars < 0:
            raise ValueError("left_bars and right_bars must be >= 0")
        self.left_bars = left_bars
        self.right_bars = right_bars
        window = left_bars + 1 + right_bars
        self._highs: Deque[Tuple[int, float]] = deque(maxlen=window)
        self._lows: Deque[Tuple[int, float]] = deque(maxlen=window)

    @property
    def lag(self) -> int:
        return self.right_bars

    def update(self, index: int, high: float, low: float) -> List[Swing]:
        """
        Feed one bar; return swings confirmed on this bar (at most one high
        and one low, both at index - right_bars).
        """
        self._highs.append((index, high))
        self._lows.append((index, low))

        if len(self._highs) < self._highs.maxlen:
            return []

        swings: List[Swing] = []
        c = self.left_bars
        pivot_index, pivot_high = self._highs[c]
        others = [h for i, (_, h) in enumerate(self._highs) if i != c]
        if not others or pivot_high > max(others):
            swings.append(Swing(pivot_index, pivot_high, SwingType.HIGH, index))

        _, pivot_low = self._lows[c]
        others = [l for i, (_, l) in enumerate(self._lows) if i != c]
        if not others or pivot_low < min(others):
            swings.append(Swing(pivot_index, pivot_low, SwingType.LOW, index))

        return swings


class TrendClassifier:
    """
    Classifies trend from the sequence of confirmed swings.

    Keeps the last two swing highs and lows; the state only changes when a
    complete higher-high/higher-low or lower-high/lower-low pair exists.
    """

    def __init__(self):
        self.state = TrendState.NEUTRAL
        self._highs: Deque[float] = deque(maxlen=2)
        self._lows: Deque[float] = deque(maxlen=2)

    def update(self, swings: List[Swing]) -> TrendState:
        for swing in swings:
            if swing.swing_type == SwingType.HIGH:
                self._highs.append(swing.price)
            else:
                self._lows.append(swing.price)

        if len(self._highs) < 2 or len(self._lows) < 2:
            return self.state

        higher_high = self._highs[1] > self._highs[0]
        higher_low = self._lows[1] > self._lows[0]
        lower_high = self._highs[1] < self._highs[0]
        lower_low = self._lows[1] < self._lows[0]

        if higher_high and higher_low:
            self.state = TrendState.BULLISH
        elif lower_high and lower_low:
            self.state = TrendState.BEARISH
        return self.state
