"""
Cumulative Delta Indicator

Purpose: running sum of buy minus sell volume, the order-flow series the
Delta anchor mode classifies and the Swing mode samples at pivots.

With sub-bar samples the intra-bar path is walked sample by sample, so the
delta high/low reflect real extremes. Without samples the bar delta comes from
the buy/sell split and the path is open -> close.
"""

from profile_engine.core.bars import Bar, DeltaBar


class CumulativeDelta:
    """
    Cumulative delta with an explicit commit step.

    compute() is side-effect free so a live bar can be evaluated any number
    of times; commit() advances the running total once the bar closes.
    """

    def __init__(self, start: float = 0.0):
        self.value = start

    def compute(self, bar: Bar, buy_volume: float, sell_volume: float) -> DeltaBar:
        """Delta path over bar, starting from the committed total."""
        open_ = self.value

        if bar.has_samples:
            running = open_
            high = low = open_
            for sample in bar.samples:
                running += sample.delta
                high = max(high, running)
                low = min(low, running)
            return DeltaBar(open=open_, high=high, low=low, close=running)

        close = open_ + (buy_volume - sell_volume)
        return DeltaBar(
            open=open_,
            high=max(open_, close),
            low=min(open_, close),
            close=close,
        )

    def commit(self, delta_bar: DeltaBar) -> None:
        self.value = delta_bar.close
