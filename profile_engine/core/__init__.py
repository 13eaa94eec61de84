"""Core engine modules for anchored volume profiles."""

from .bars import Bar, SubBarSample, DeltaBar
from .volume_profile import BucketedProfile, ProfileSummary
from .allocator import VolumeAllocator, AllocationModel, SplitModel
from .structure import PivotTracker, TrendClassifier, TrendState, Swing, SwingType
from .anchor import AnchorDetector, AnchorMode, AnchorState, ResetEvent
from .history import HistoryStore, HistoricalRecord, PeakZone
from .accumulator import ProfileAccumulator, ProfileSnapshot, detect_peak_zones
from .render_window import RenderWindowFilter, RenderableRecord, is_safe

__all__ = [
    "Bar",
    "SubBarSample",
    "DeltaBar",
    "BucketedProfile",
    "ProfileSummary",
    "VolumeAllocator",
    "AllocationModel",
    "SplitModel",
    "PivotTracker",
    "TrendClassifier",
    "TrendState",
    "Swing",
    "SwingType",
    "AnchorDetector",
    "AnchorMode",
    "AnchorState",
    "ResetEvent",
    "HistoryStore",
    "HistoricalRecord",
    "PeakZone",
    "ProfileAccumulator",
    "ProfileSnapshot",
    "detect_peak_zones",
    "RenderWindowFilter",
    "RenderableRecord",
    "is_safe",
]
