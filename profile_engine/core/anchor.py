"""
Anchor-event detection: decides when the current profile ends.

Modes:
- SWING: reset whenever the impulse baseline changes. At each confirmed price
  pivot the baseline moves toward the cumulative delta extreme of the pivot
  bar, never away from it: min with the delta low at pivot highs, max with
  the delta high at pivot lows. Pivots confirm right_bars late, so every
  boundary is placed at anchor_bar - delay.
- STRUCTURE: reset on the bar where the price trend state flips between
  bullish and bearish. No delay.
- DELTA: same classifier run over the cumulative delta series. No delay.

Only closed bars are evaluated.
"""

import logging
from collections import deque
from dataclasses import dataclass
from enum import Enum
from typing import Deque, Dict, Optional, Type, Union

from .bars import DeltaBar
from .structure import PivotTracker, SwingType, TrendClassifier, TrendState

logger = logging.getLogger(__name__)


class AnchorMode(Enum):
    SWING = "swing"
    STRUCTURE = "structure"
    DELTA = "delta"


class DetectorPhase(Enum):
    ACCUMULATING = "accumulating"
    RESETTING = "resetting"


@dataclass
class ResetEvent:
    """Anchor reset emitted on bar_index; lag bars back is the true anchor."""
    bar_index: int
    lag: int
    mode: AnchorMode

    @property
    def anchor_bar(self) -> int:
        return max(0, self.bar_index - self.lag)


@dataclass
class AnchorState:
    """
    Anchor bookkeeping shared with the accumulator.

    The stream start acts as the first anchor, so last_reset_bar and
    prev_reset_bar both begin at 0.
    """
    mode: AnchorMode
    delay: int = 0
    baseline: Union[float, TrendState, None] = None
    last_reset_bar: int = 0
    prev_reset_bar: int = 0
    is_first_reset: bool = True
    phase: DetectorPhase = DetectorPhase.ACCUMULATING

    def mark_reset(self, bar_index: int) -> None:
        self.prev_reset_bar = self.last_reset_bar
        self.last_reset_bar = bar_index
        self.is_first_reset = False

    def anchor_start(self, anchor_bar: int) -> int:
        """Boundary bar for an anchor detected on anchor_bar."""
        return max(0, anchor_bar - self.delay)


class AnchorPolicy:
    """One reset trigger. Subclasses implement check()."""

    mode: AnchorMode

    def __init__(self, left_bars: int, right_bars: int):
        self.pivots = PivotTracker(left_bars, right_bars)

    @property
    def delay(self) -> int:
        return 0

    def initial_baseline(self) -> Union[float, TrendState, None]:
        return None

    def check(self, state: AnchorState, bar_index: int, high: float, low: float,
              delta: DeltaBar) -> bool:
        raise NotImplementedError


class SwingPolicy(AnchorPolicy):
    mode = AnchorMode.SWING

    def __init__(self, left_bars: int, right_bars: int):
        super().__init__(left_bars, right_bars)
        # Delta bars for the pivot window, so the pivot bar's delta is known
        # when it confirms
        self._deltas: Deque[DeltaBar] = deque(maxlen=right_bars + 1)

    @property
    def delay(self) -> int:
        return self.pivots.lag

    def check(self, state, bar_index, high, low, delta):
        self._deltas.append(delta)
        swings = self.pivots.update(bar_index, high, low)
        if not swings or len(self._deltas) < self._deltas.maxlen:
            return False

        pivot_delta = self._deltas[0]
        changed = False
        for swing in swings:
            if swing.swing_type == SwingType.HIGH:
                candidate = pivot_delta.low
            else:
                candidate = pivot_delta.high
            if state.baseline is None:
                state.baseline = candidate
                continue
            # Pivot highs can only pull the baseline down, pivot lows only up
            if swing.swing_type == SwingType.HIGH:
                moved = min(state.baseline, candidate)
            else:
                moved = max(state.baseline, candidate)
            if moved != state.baseline:
                state.baseline = moved
                changed = True
        return changed


class StructurePolicy(AnchorPolicy):
    mode = AnchorMode.STRUCTURE

    def __init__(self, left_bars: int, right_bars: int):
        super().__init__(left_bars, right_bars)
        self.classifier = TrendClassifier()

    def initial_baseline(self):
        return TrendState.NEUTRAL

    def _series(self, high: float, low: float, delta: DeltaBar):
        return high, low

    def check(self, state, bar_index, high, low, delta):
        series_high, series_low = self._series(high, low, delta)
        swings = self.pivots.update(bar_index, series_high, series_low)
        previous = state.baseline
        current = self.classifier.update(swings)
        state.baseline = current
        return previous != TrendState.NEUTRAL and current != previous


class DeltaPolicy(StructurePolicy):
    mode = AnchorMode.DELTA

    def _series(self, high, low, delta):
        return delta.high, delta.low


POLICIES: Dict[AnchorMode, Type[AnchorPolicy]] = {
    AnchorMode.SWING: SwingPolicy,
    AnchorMode.STRUCTURE: StructurePolicy,
    AnchorMode.DELTA: DeltaPolicy,
}


class AnchorDetector:
    """Runs the configured policy and maintains AnchorState."""

    def __init__(self, mode: AnchorMode = AnchorMode.SWING, left_bars: int = 10, right_bars: int = 10):
        if mode not in POLICIES:
            raise ValueError(f"Unknown anchor mode: {mode}")
        self.policy = POLICIES[mode](left_bars, right_bars)
        self.state = AnchorState(
            mode=mode,
            delay=self.policy.delay,
            baseline=self.policy.initial_baseline(),
        )

    @property
    def mode(self) -> AnchorMode:
        return self.state.mode

    @property
    def lag(self) -> int:
        return self.state.delay

    def on_bar(self, bar_index: int, high: float, low: float, delta: DeltaBar) -> Optional[ResetEvent]:
        """
        Evaluate one closed bar.

        Args:
            bar_index: Index of the closed bar
            high: Bar high
            low: Bar low
            delta: Cumulative delta path over the bar

        Returns:
            ResetEvent when a new phase begins on this bar, else None
        """
        self.state.phase = DetectorPhase.ACCUMULATING
        if not self.policy.check(self.state, bar_index, high, low, delta):
            return None

        self.state.phase = DetectorPhase.RESETTING
        self.state.mark_reset(bar_index)
        event = ResetEvent(bar_index=bar_index, lag=self.state.delay, mode=self.state.mode)
        logger.debug(f"Anchor reset ({self.state.mode.value}) at bar {bar_index}, lag {event.lag}")
        return event
