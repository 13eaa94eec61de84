#!/usr/bin/env python3
"""
Run anchored volume profiles over a CSV bar file

Usage:
    python scripts/run_profiles.py data/AAPL_1D.csv [--mode swing|structure|delta]

Engine options come from PROFILE_* environment variables (or .env);
--mode overrides the anchor mode.
"""
import argparse
import logging
import sys
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from dotenv import load_dotenv
load_dotenv(project_root / ".env")

# Ensure logs directory exists
logs_dir = project_root / "logs"
logs_dir.mkdir(exist_ok=True)

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(levelname)s - %(message)s',
    handlers=[
        logging.FileHandler(logs_dir / 'run_profiles.log'),
        logging.StreamHandler()
    ]
)

logger = logging.getLogger(__name__)


def main():
    from profile_engine.api.data import load_bars_csv
    from profile_engine.config import ConfigurationError, EngineConfig
    from profile_engine.services.profile_pipeline import ProfilePipeline

    parser = argparse.ArgumentParser(description="Anchored volume profiles over a CSV file")
    parser.add_argument("csv_path", help="CSV with open,high,low,close,volume columns")
    parser.add_argument("--mode", default=None, help="Anchor mode: swing, structure or delta")
    args = parser.parse_args()

    overrides = {"anchor_mode": args.mode} if args.mode else {}
    try:
        config = EngineConfig.from_env(**overrides)
    except ConfigurationError as e:
        logger.error(f"Configuration error: {e}")
        sys.exit(2)

    try:
        bars = load_bars_csv(args.csv_path)
    except (FileNotFoundError, ValueError) as e:
        logger.error(f"Could not load bars: {e}")
        sys.exit(1)

    print("=" * 60)
    print("  ANCHORED VOLUME PROFILE")
    print(f"  File: {args.csv_path} ({len(bars)} bars)")
    print(f"  Anchor mode: {config.anchor_mode.value}")
    print("=" * 60)
    print()

    pipeline = ProfilePipeline(config)
    for result in pipeline.run(bars):
        record = result.finalized
        if record is not None:
            logger.info(
                f"Profile [{record.start_bar}, {record.end_bar}] "
                f"POC={record.poc:.4f} VAH={record.value_area_high:.4f} "
                f"VAL={record.value_area_low:.4f} peaks={len(record.peak_zones)}"
                if record.poc is not None else
                f"Profile [{record.start_bar}, {record.end_bar}] (no volume)"
            )

    snapshot = pipeline.snapshot()
    if snapshot is not None and snapshot.poc is not None:
        print()
        print(f"  Developing profile [{snapshot.start_bar}, {snapshot.end_bar}]")
        print(f"    POC:  {snapshot.poc:.4f}")
        print(f"    VAH:  {snapshot.value_area_high:.4f}")
        print(f"    VAL:  {snapshot.value_area_low:.4f}")
        print(f"    VWAP: {snapshot.vwap:.4f} (std {snapshot.std_dev:.4f})")

    renderable = pipeline.renderable()
    print()
    print(f"  Renderable records: {len(renderable)} of {len(pipeline.history)}")
    for item in renderable:
        zones = ", ".join(f"{p.price_low:.2f}-{p.price_high:.2f}" for p in item.peaks)
        print(f"    #{item.index} bars {item.visible_start}..{item.record.end_bar}  peaks: {zones or '-'}")


if __name__ == "__main__":
    main()
