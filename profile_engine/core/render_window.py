"""
Render-safety filtering of historical records.

A consumer that addresses history by backward offset from the current bar
can only reach max_lookback bars. A record is handed out only while

    current_position - record.end_bar <= max_lookback - safety_margin

The margin absorbs the bars that pass between selection and drawing.
"""

from dataclasses import dataclass
from typing import List

from .history import HistoricalRecord, HistoryStore, PeakZone


@dataclass
class RenderableRecord:
    """A record cleared for rendering, with peaks resolved to prices."""
    index: int  # Position in the HistoryStore at selection time
    record: HistoricalRecord
    peaks: List[PeakZone]
    visible_start: int  # start_bar clipped to the safe window


def is_safe(
    record: HistoricalRecord,
    current_position: int,
    max_lookback: int,
    safety_margin: int,
) -> bool:
    """True if every reference to record.end_bar stays inside the safe window."""
    return current_position - record.end_bar <= max_lookback - safety_margin


class RenderWindowFilter:
    """Selects the records a renderer may reference from current_position."""

    def __init__(self, max_lookback: int = 5000, safety_margin: int = 100, render_lookback: int = 1000):
        self.max_lookback = max_lookback
        self.safety_margin = safety_margin
        self.render_lookback = render_lookback

    @property
    def safe_depth(self) -> int:
        return self.max_lookback - self.safety_margin

    def is_safe(self, record: HistoricalRecord, current_position: int) -> bool:
        return is_safe(record, current_position, self.max_lookback, self.safety_margin)

    def in_render_window(self, record: HistoricalRecord, current_position: int) -> bool:
        return current_position - record.end_bar <= self.render_lookback

    def visible_start(self, record: HistoricalRecord, current_position: int) -> int:
        return max(record.start_bar, current_position - self.safe_depth)

    def select(self, history: HistoryStore, current_position: int) -> List[RenderableRecord]:
        """Renderable records, oldest first."""
        selected: List[RenderableRecord] = []
        for index, record in enumerate(history):
            if not self.is_safe(record, current_position):
                continue
            if not self.in_render_window(record, current_position):
                continue
            selected.append(RenderableRecord(
                index=index,
                record=record,
                peaks=history.get_peaks(index),
                visible_start=self.visible_start(record, current_position),
            ))
        return selected
