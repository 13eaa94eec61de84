"""FastAPI application serving anchored volume profiles to a rendering layer."""

import logging
from pathlib import Path
from typing import List, Optional

from fastapi import FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware

from profile_engine.api.data import get_data_path, load_bars_csv
from profile_engine.api.schemas import (
    BarSchema,
    ConfigSchema,
    HistogramBinSchema,
    PeakZoneSchema,
    ProfileRequest,
    ProfileResponse,
    RecordSchema,
    RenderableSchema,
    SnapshotSchema,
)
from profile_engine.config import ConfigurationError, EngineConfig
from profile_engine.core.accumulator import ProfileSnapshot
from profile_engine.core.bars import Bar, SubBarSample
from profile_engine.core.history import HistoricalRecord, PeakZone
from profile_engine.services.profile_pipeline import ProfilePipeline

logger = logging.getLogger(__name__)

DATA_DIR = Path("data")

app = FastAPI(
    title="Anchored Volume Profile",
    description="Event-anchored volume distribution profiles",
    version="0.1.0",
)

# Add CORS middleware for frontend development
app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:5173", "http://127.0.0.1:5173"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _bar_from_schema(schema: BarSchema) -> Bar:
    samples = None
    if schema.samples:
        samples = [
            SubBarSample(
                buy_volume=s.buy_volume,
                sell_volume=s.sell_volume,
                range_high=s.range_high,
                range_low=s.range_low,
            )
            for s in schema.samples
        ]
    return Bar(
        open=schema.open,
        high=schema.high,
        low=schema.low,
        close=schema.close,
        volume=schema.volume,
        is_closed=schema.is_closed,
        samples=samples,
    )


def _peaks_to_schema(peaks: List[PeakZone]) -> List[PeakZoneSchema]:
    return [PeakZoneSchema(price_low=p.price_low, price_high=p.price_high) for p in peaks]


def _snapshot_to_schema(snapshot: ProfileSnapshot) -> SnapshotSchema:
    return SnapshotSchema(
        start_bar=snapshot.start_bar,
        end_bar=snapshot.end_bar,
        poc=snapshot.poc,
        value_area_high=snapshot.value_area_high,
        value_area_low=snapshot.value_area_low,
        vwap=snapshot.vwap,
        std_dev=snapshot.std_dev,
        total_volume=snapshot.total_volume,
        peaks=_peaks_to_schema(snapshot.peaks),
    )


def _record_to_schema(record: HistoricalRecord) -> RecordSchema:
    histogram = record.profile.histogram() if record.profile is not None else []
    return RecordSchema(
        start_bar=record.start_bar,
        end_bar=record.end_bar,
        peaks=_peaks_to_schema(record.peak_zones),
        poc=record.poc,
        value_area_high=record.value_area_high,
        value_area_low=record.value_area_low,
        vwap=record.vwap,
        std_dev=record.std_dev,
        total_volume=record.total_volume,
        delta_high=record.delta_high,
        delta_low=record.delta_low,
        histogram=[HistogramBinSchema(**row) for row in histogram],
    )


def _build_config(overrides: Optional[ConfigSchema]) -> EngineConfig:
    base = EngineConfig.from_env()
    if overrides is None:
        return base
    return base.replace(**overrides.model_dump(exclude_none=True))


def run_profiles(bars: List[Bar], config: EngineConfig) -> ProfileResponse:
    """Run a fresh pipeline over bars and package the result."""
    pipeline = ProfilePipeline(config)
    pipeline.run(bars)

    snapshot = pipeline.snapshot()
    return ProfileResponse(
        bar_count=len(bars),
        current_position=pipeline.current_position,
        snapshot=_snapshot_to_schema(snapshot) if snapshot is not None else None,
        records=[_record_to_schema(r) for r in pipeline.history],
        renderable=[
            RenderableSchema(
                index=item.index,
                visible_start=item.visible_start,
                record=_record_to_schema(item.record),
            )
            for item in pipeline.renderable()
        ],
        config=config.to_dict(),
    )


@app.get("/health")
def health() -> dict:
    return {"status": "ok"}


@app.get("/config")
def get_config() -> dict:
    """Effective server defaults."""
    try:
        return EngineConfig.from_env().to_dict()
    except ConfigurationError as e:
        raise HTTPException(status_code=500, detail=str(e))


@app.post("/profiles", response_model=ProfileResponse)
def post_profiles(request: ProfileRequest) -> ProfileResponse:
    """
    Compute anchored profiles over the posted bars.

    Returns the developing profile snapshot, all retained finalized
    records, and the subset that is safe to render from the last bar.
    """
    try:
        config = _build_config(request.config)
    except ConfigurationError as e:
        raise HTTPException(status_code=400, detail=str(e))

    bars = [_bar_from_schema(b) for b in request.bars]
    return run_profiles(bars, config)


@app.get("/profiles/csv", response_model=ProfileResponse)
def get_profiles_csv(
    symbol: str = Query(..., description="Symbol name"),
    tf: str = Query("1D", description="Timeframe"),
    anchor_mode: Optional[str] = Query(None, description="swing, structure or delta"),
) -> ProfileResponse:
    """Compute anchored profiles over a CSV file from the data directory."""
    try:
        bars = load_bars_csv(get_data_path(symbol, tf, data_dir=str(DATA_DIR)))
    except FileNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    try:
        config = _build_config(ConfigSchema(anchor_mode=anchor_mode))
    except ConfigurationError as e:
        raise HTTPException(status_code=400, detail=str(e))

    logger.info(f"[profiles/csv] {symbol} {tf}: {len(bars)} bars")
    return run_profiles(bars, config)
