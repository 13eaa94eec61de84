"""
Profile Pipeline

Orchestrator that owns one accumulation pipeline and evaluates bars one at a
time:

  bar -> AnchorDetector -> (reset: finalize -> HistoryStore append + evict)
      -> VolumeAllocator -> ProfileAccumulator -> snapshot

A bar with is_closed=False is a live update. Updates keep the same bar index
until a closed version of that bar arrives; only the closed version touches
the detector, the history and the cumulative delta.
"""

import logging
from collections import deque
from dataclasses import dataclass
from typing import Deque, Iterable, List, Optional

from profile_engine.config import EngineConfig
from profile_engine.core.accumulator import ProfileAccumulator, ProfileSnapshot
from profile_engine.core.allocator import VolumeAllocator, short_term_trend
from profile_engine.core.anchor import AnchorDetector, ResetEvent
from profile_engine.core.bars import Bar
from profile_engine.core.history import HistoricalRecord, HistoryStore
from profile_engine.core.render_window import RenderableRecord, RenderWindowFilter
from profile_engine.indicators.cumulative_delta import CumulativeDelta

logger = logging.getLogger(__name__)


@dataclass
class BarResult:
    """Outcome of evaluating one bar update."""
    bar_index: int
    snapshot: ProfileSnapshot
    reset: Optional[ResetEvent] = None
    finalized: Optional[HistoricalRecord] = None


class ProfilePipeline:
    """
    Single-threaded driver for anchored volume profiles.

    One instance owns its detector, accumulator and history; nothing is
    shared between instances.
    """

    def __init__(self, config: Optional[EngineConfig] = None):
        self.config = config or EngineConfig()
        cfg = self.config

        self.allocator = VolumeAllocator(
            allocation_model=cfg.allocation_model,
            split_model=cfg.split_model,
            quadrature_steps=cfg.quadrature_steps,
            pdf_shape=cfg.pdf_shape,
        )
        self.detector = AnchorDetector(
            mode=cfg.anchor_mode,
            left_bars=cfg.pivot_left_bars,
            right_bars=cfg.pivot_right_bars,
        )
        self.accumulator = ProfileAccumulator(
            allocator=self.allocator,
            state=self.detector.state,
            bucket_count=cfg.bucket_count,
            dynamic_sizing=cfg.dynamic_bucket_sizing,
            value_area_pct=cfg.value_area_pct,
            peak_threshold=cfg.peak_threshold_pct,
            dynamic_reference_multiple=cfg.dynamic_reference_multiple,
        )
        self.history = HistoryStore(capacity=cfg.history_capacity)
        self.render_filter = RenderWindowFilter(
            max_lookback=cfg.max_lookback,
            safety_margin=cfg.safety_margin,
            render_lookback=cfg.render_lookback,
        )
        self.delta = CumulativeDelta()

        self._closes: Deque[float] = deque(maxlen=cfg.trend_length)
        self._next_index = 0
        self._open_index: Optional[int] = None

    @property
    def current_position(self) -> int:
        """Index of the most recently evaluated bar (-1 before any bar)."""
        if self._open_index is not None:
            return self._open_index
        return self._next_index - 1

    def _trend(self, bar: Bar) -> float:
        return short_term_trend(list(self._closes) + [bar.close])

    def evaluate(self, bar: Bar) -> BarResult:
        """Evaluate one bar update; safe to repeat for an unclosed bar."""
        bar = bar.normalized()
        bar_index = self._open_index if self._open_index is not None else self._next_index

        trend = self._trend(bar)
        buy_volume, sell_volume = self.allocator.split(bar, trend)
        delta_bar = self.delta.compute(bar, buy_volume, sell_volume)

        if not bar.is_closed:
            self._open_index = bar_index
            self.accumulator.preview(bar_index, bar, trend, delta_bar)
            return BarResult(bar_index, self.accumulator.snapshot(bar_index))

        finalized = None
        event = self.detector.on_bar(bar_index, bar.high, bar.low, delta_bar)
        if event is not None:
            finalized = self.accumulator.finalize(bar_index)
            if finalized is not None:
                self.history.append(finalized)
                self.history.evict_if_over_capacity()
                logger.info(
                    f"[{event.mode.value}] reset at bar {bar_index} "
                    f"-> record [{finalized.start_bar}, {finalized.end_bar}], "
                    f"history={len(self.history)}"
                )

        self.accumulator.merge(bar_index, bar, trend, delta_bar)
        self.delta.commit(delta_bar)
        self._closes.append(bar.close)
        self._open_index = None
        self._next_index = bar_index + 1

        return BarResult(
            bar_index=bar_index,
            snapshot=self.accumulator.snapshot(bar_index),
            reset=event,
            finalized=finalized,
        )

    def run(self, bars: Iterable[Bar]) -> List[BarResult]:
        return [self.evaluate(bar) for bar in bars]

    def snapshot(self) -> Optional[ProfileSnapshot]:
        if self.current_position < 0:
            return None
        return self.accumulator.snapshot(self.current_position)

    def renderable(self, current_position: Optional[int] = None) -> List[RenderableRecord]:
        """Historical records a renderer may reference from current_position."""
        if current_position is None:
            current_position = self.current_position
        return self.render_filter.select(self.history, current_position)
