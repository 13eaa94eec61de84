"""Tests for engine configuration."""

import os

import pytest

from profile_engine.config import ConfigurationError, EngineConfig
from profile_engine.core.allocator import AllocationModel, SplitModel
from profile_engine.core.anchor import AnchorMode


class TestDefaults:
    """Tests for the default configuration."""

    def test_defaults_valid(self):
        config = EngineConfig()

        assert config.anchor_mode == AnchorMode.SWING
        assert config.allocation_model == AllocationModel.PDF
        assert config.history_capacity == 50
        assert config.render_lookback < config.max_lookback - config.safety_margin

    def test_to_dict_uses_enum_values(self):
        data = EngineConfig().to_dict()

        assert data["anchor_mode"] == "swing"
        assert data["allocation_model"] == "pdf"
        assert data["bucket_count"] == 24


class TestValidation:
    """Tests for startup validation."""

    def test_enum_from_string(self):
        config = EngineConfig(anchor_mode="Structure", split_model="dynamic")

        assert config.anchor_mode == AnchorMode.STRUCTURE
        assert config.split_model == SplitModel.DYNAMIC

    def test_bad_enum(self):
        with pytest.raises(ConfigurationError):
            EngineConfig(anchor_mode="sideways")

    def test_render_lookback_must_fit(self):
        """Test that render_lookback must stay below max_lookback - safety_margin."""
        EngineConfig(render_lookback=4899)

        with pytest.raises(ConfigurationError):
            EngineConfig(render_lookback=4900)

    def test_sub_bar_interval(self):
        EngineConfig(bar_interval_seconds=300, sub_bar_interval_seconds=60)

        with pytest.raises(ConfigurationError):
            EngineConfig(bar_interval_seconds=60, sub_bar_interval_seconds=60)
        with pytest.raises(ConfigurationError):
            EngineConfig(sub_bar_interval_seconds=60)

    @pytest.mark.parametrize("field,value", [
        ("bucket_count", 0),
        ("value_area_pct", 0.0),
        ("value_area_pct", 1.5),
        ("peak_threshold_pct", 0.05),
        ("peak_threshold_pct", 0.95),
        ("history_capacity", 0),
        ("trend_length", 1),
        ("quadrature_steps", 0),
    ])
    def test_out_of_range(self, field, value):
        with pytest.raises(ConfigurationError):
            EngineConfig(**{field: value})

    def test_replace_revalidates(self):
        config = EngineConfig()

        with pytest.raises(ConfigurationError):
            config.replace(history_capacity=0)
        assert config.replace(bucket_count=48).bucket_count == 48

    def test_is_value_error(self):
        """Test that callers catching ValueError also see config errors."""
        with pytest.raises(ValueError):
            EngineConfig(bucket_count=-1)


class TestFromEnv:
    """Tests for environment overlays."""

    def test_reads_prefixed_variables(self, monkeypatch):
        monkeypatch.setenv("PROFILE_ANCHOR_MODE", "delta")
        monkeypatch.setenv("PROFILE_BUCKET_COUNT", "48")
        monkeypatch.setenv("PROFILE_DYNAMIC_BUCKET_SIZING", "true")
        monkeypatch.setenv("PROFILE_VALUE_AREA_PCT", "0.68")

        config = EngineConfig.from_env()

        assert config.anchor_mode == AnchorMode.DELTA
        assert config.bucket_count == 48
        assert config.dynamic_bucket_sizing is True
        assert config.value_area_pct == pytest.approx(0.68)

    def test_overrides_win(self, monkeypatch):
        monkeypatch.setenv("PROFILE_ANCHOR_MODE", "delta")

        config = EngineConfig.from_env(anchor_mode="structure")

        assert config.anchor_mode == AnchorMode.STRUCTURE

    def test_bad_number(self, monkeypatch):
        monkeypatch.setenv("PROFILE_BUCKET_COUNT", "many")

        with pytest.raises(ConfigurationError):
            EngineConfig.from_env()

    def test_dotenv_file(self, tmp_path):
        env_file = tmp_path / ".env"
        env_file.write_text("PROFILE_HISTORY_CAPACITY=7\n")

        try:
            config = EngineConfig.from_env(dotenv_path=str(env_file))
        finally:
            os.environ.pop("PROFILE_HISTORY_CAPACITY", None)

        assert config.history_capacity == 7
