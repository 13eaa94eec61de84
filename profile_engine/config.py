"""
Engine configuration.

Defaults live on EngineConfig; EngineConfig.from_env() overlays PROFILE_*
environment variables (a .env file in the working directory is loaded
first). Invalid combinations raise ConfigurationError at construction.
"""

import logging
import os
from dataclasses import asdict, dataclass, fields, replace
from typing import Any, Dict, Optional

from dotenv import load_dotenv

from profile_engine.core.allocator import AllocationModel, SplitModel
from profile_engine.core.anchor import AnchorMode

logger = logging.getLogger(__name__)

ENV_PREFIX = "PROFILE_"

ENUM_FIELDS = {
    "allocation_model": AllocationModel,
    "split_model": SplitModel,
    "anchor_mode": AnchorMode,
}


class ConfigurationError(ValueError):
    """Fatal configuration problem, reported at startup."""


def _parse_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


def _coerce_enum(name: str, value: Any):
    enum_cls = ENUM_FIELDS[name]
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(str(value).strip().lower())
    except ValueError:
        options = [m.value for m in enum_cls]
        raise ConfigurationError(f"Invalid {name}: {value!r}. Use: {options}")


@dataclass
class EngineConfig:
    """Recognized engine options."""
    bucket_count: int = 24
    dynamic_bucket_sizing: bool = False
    dynamic_reference_multiple: float = 10.0
    value_area_pct: float = 0.70
    allocation_model: AllocationModel = AllocationModel.PDF
    split_model: SplitModel = SplitModel.CLASSIC
    quadrature_steps: int = 20
    pdf_shape: float = 2.0
    trend_length: int = 5
    anchor_mode: AnchorMode = AnchorMode.SWING
    pivot_left_bars: int = 10
    pivot_right_bars: int = 10
    peak_threshold_pct: float = 0.50
    history_capacity: int = 50
    render_lookback: int = 1000
    safety_margin: int = 100
    max_lookback: int = 5000
    bar_interval_seconds: Optional[int] = None
    sub_bar_interval_seconds: Optional[int] = None

    def __post_init__(self):
        for name in ENUM_FIELDS:
            setattr(self, name, _coerce_enum(name, getattr(self, name)))
        self.validate()

    def validate(self) -> None:
        if self.bucket_count < 1:
            raise ConfigurationError(f"bucket_count must be >= 1, got {self.bucket_count}")
        if not 0 < self.value_area_pct <= 1:
            raise ConfigurationError(f"value_area_pct must be in (0, 1], got {self.value_area_pct}")
        if not 0.10 <= self.peak_threshold_pct <= 0.90:
            raise ConfigurationError(
                f"peak_threshold_pct must be in [0.10, 0.90], got {self.peak_threshold_pct}"
            )
        if self.quadrature_steps < 1:
            raise ConfigurationError(f"quadrature_steps must be >= 1, got {self.quadrature_steps}")
        if self.pdf_shape <= 0:
            raise ConfigurationError(f"pdf_shape must be > 0, got {self.pdf_shape}")
        if self.dynamic_reference_multiple <= 0:
            raise ConfigurationError(
                f"dynamic_reference_multiple must be > 0, got {self.dynamic_reference_multiple}"
            )
        if self.trend_length < 2:
            raise ConfigurationError(f"trend_length must be >= 2, got {self.trend_length}")
        if self.pivot_left_bars < 0 or self.pivot_right_bars < 0:
            raise ConfigurationError("pivot_left_bars and pivot_right_bars must be >= 0")
        if self.history_capacity < 1:
            raise ConfigurationError(f"history_capacity must be >= 1, got {self.history_capacity}")
        if self.safety_margin < 0:
            raise ConfigurationError(f"safety_margin must be >= 0, got {self.safety_margin}")
        if self.render_lookback >= self.max_lookback - self.safety_margin:
            raise ConfigurationError(
                f"render_lookback ({self.render_lookback}) must be below "
                f"max_lookback - safety_margin ({self.max_lookback - self.safety_margin})"
            )
        if self.sub_bar_interval_seconds is not None:
            if self.bar_interval_seconds is None:
                raise ConfigurationError("sub_bar_interval_seconds requires bar_interval_seconds")
            if self.sub_bar_interval_seconds >= self.bar_interval_seconds:
                raise ConfigurationError(
                    f"Sub-bar interval ({self.sub_bar_interval_seconds}s) must be shorter "
                    f"than bar interval ({self.bar_interval_seconds}s)"
                )

    @classmethod
    def from_env(cls, dotenv_path: Optional[str] = None, **overrides) -> "EngineConfig":
        """Build config from PROFILE_<FIELD> environment variables."""
        load_dotenv(dotenv_path)

        values: Dict[str, Any] = {}
        for f in fields(cls):
            raw = os.getenv(ENV_PREFIX + f.name.upper())
            if raw is None or raw == "":
                continue
            values[f.name] = _convert(f.name, raw, getattr(cls, f.name))
        values.update(overrides)

        config = cls(**values)
        logger.info(f"Engine config: anchor={config.anchor_mode.value}, "
                    f"buckets={config.bucket_count}, capacity={config.history_capacity}")
        return config

    def replace(self, **overrides) -> "EngineConfig":
        return replace(self, **overrides)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        for name in ENUM_FIELDS:
            data[name] = getattr(self, name).value
        return data


def _convert(name: str, raw: str, default: Any) -> Any:
    if name in ENUM_FIELDS:
        return raw
    try:
        if name in ("bar_interval_seconds", "sub_bar_interval_seconds"):
            return int(raw)
        if isinstance(default, bool):
            return _parse_bool(raw)
        if isinstance(default, int):
            return int(raw)
        if isinstance(default, float):
            return float(raw)
    except ValueError:
        raise ConfigurationError(f"Invalid value for {ENV_PREFIX}{name.upper()}: {raw!r}")
    return raw
