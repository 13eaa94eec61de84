"""Pydantic schemas for API requests and responses."""

from typing import List, Optional

from pydantic import BaseModel, Field


class SubBarSampleSchema(BaseModel):
    """Intra-bar sample with known buy/sell volume."""
    buy_volume: float
    sell_volume: float
    range_high: float
    range_low: float


class BarSchema(BaseModel):
    """Single input bar."""
    open: float
    high: float
    low: float
    close: float
    volume: float = 0.0
    is_closed: bool = True
    samples: Optional[List[SubBarSampleSchema]] = None


class PeakZoneSchema(BaseModel):
    """High-volume zone in prices."""
    price_low: float
    price_high: float


class SnapshotSchema(BaseModel):
    """Developing profile statistics."""
    start_bar: int
    end_bar: int
    poc: Optional[float] = None
    value_area_high: Optional[float] = None
    value_area_low: Optional[float] = None
    vwap: Optional[float] = None
    std_dev: Optional[float] = None
    total_volume: float = 0.0
    peaks: List[PeakZoneSchema] = Field(default_factory=list)


class HistogramBinSchema(BaseModel):
    """Single bucket of a finalized profile."""
    price_low: float
    price_high: float
    buy: float
    sell: float
    percent: float  # Percentage of max bucket volume (for bar width)


class RecordSchema(BaseModel):
    """Finalized profile."""
    start_bar: int
    end_bar: int
    peaks: List[PeakZoneSchema]
    poc: Optional[float] = None
    value_area_high: Optional[float] = None
    value_area_low: Optional[float] = None
    vwap: Optional[float] = None
    std_dev: Optional[float] = None
    total_volume: float = 0.0
    delta_high: Optional[float] = None
    delta_low: Optional[float] = None
    histogram: List[HistogramBinSchema] = Field(default_factory=list)


class RenderableSchema(BaseModel):
    """Record cleared for rendering."""
    index: int
    visible_start: int
    record: RecordSchema


class ConfigSchema(BaseModel):
    """Engine options; unset fields keep the server defaults."""
    bucket_count: Optional[int] = None
    dynamic_bucket_sizing: Optional[bool] = None
    dynamic_reference_multiple: Optional[float] = None
    value_area_pct: Optional[float] = None
    allocation_model: Optional[str] = None  # "classic", "uniform", "pdf"
    split_model: Optional[str] = None  # "classic", "dynamic"
    quadrature_steps: Optional[int] = None
    pdf_shape: Optional[float] = None
    trend_length: Optional[int] = None
    anchor_mode: Optional[str] = None  # "swing", "structure", "delta"
    pivot_left_bars: Optional[int] = None
    pivot_right_bars: Optional[int] = None
    peak_threshold_pct: Optional[float] = None
    history_capacity: Optional[int] = None
    render_lookback: Optional[int] = None
    safety_margin: Optional[int] = None
    max_lookback: Optional[int] = None
    bar_interval_seconds: Optional[int] = None
    sub_bar_interval_seconds: Optional[int] = None


class ProfileRequest(BaseModel):
    """Request body for POST /profiles."""
    bars: List[BarSchema]
    config: Optional[ConfigSchema] = None


class ProfileResponse(BaseModel):
    """Response for the /profiles endpoints."""
    bar_count: int
    current_position: int
    snapshot: Optional[SnapshotSchema] = None
    records: List[RecordSchema]
    renderable: List[RenderableSchema]
    config: dict
