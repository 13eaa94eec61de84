"""CSV data loader for bar streams."""

import csv
from pathlib import Path
from typing import List, Union

from profile_engine.core.bars import Bar

REQUIRED_COLUMNS = ("open", "high", "low", "close", "volume")

_TRUE_VALUES = {"1", "true", "yes", "y"}


def get_data_path(symbol: str, timeframe: str = "1D", data_dir: str = "data") -> Path:
    """Path of the CSV file for a symbol/timeframe pair."""
    return Path(data_dir) / f"{symbol}_{timeframe}.csv"


def load_bars_csv(path: Union[str, Path]) -> List[Bar]:
    """
    Load bars from CSV.

    Expected columns: open, high, low, close, volume and optionally is_closed.
    Column names are case-insensitive; extra columns (timestamps etc.) are
    ignored.

    Raises:
        FileNotFoundError: file does not exist
        ValueError: required columns missing or a value is not numeric
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Data file not found: {path}")

    bars: List[Bar] = []
    with open(path, "r", newline="") as f:
        reader = csv.DictReader(f)
        if reader.fieldnames is None:
            return bars

        columns = {name.strip().lower(): name for name in reader.fieldnames}
        missing = [c for c in REQUIRED_COLUMNS if c not in columns]
        if missing:
            raise ValueError(f"{path}: missing columns {missing}")

        for line_no, row in enumerate(reader, start=2):
            try:
                values = {c: float(row[columns[c]]) for c in REQUIRED_COLUMNS}
            except (TypeError, ValueError):
                raise ValueError(f"{path}:{line_no}: non-numeric OHLCV value")

            is_closed = True
            if "is_closed" in columns:
                raw = (row[columns["is_closed"]] or "").strip().lower()
                is_closed = raw in _TRUE_VALUES if raw else True

            bars.append(Bar(is_closed=is_closed, **values))

    return bars
