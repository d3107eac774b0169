"""
Tests for run option validation and parameter profiles.
"""

import json
import math

import numpy as np
import pytest

from windowed_hrv.config import PROFILES, Config, default_config, load_profile
from windowed_hrv.errors import ConfigValidationError
from windowed_hrv.options import RunMode, resolve_params, resolve_run_config


class TestResolveRunConfig:
    """Defaults and validation of the per-run options."""

    def test_defaults(self):
        rc = resolve_run_config("db/mitdb/100")
        assert rc.record == "db/mitdb/100"
        assert rc.ecg_channel is None
        assert math.isinf(rc.window_minutes)
        assert rc.window_index_offset == 0
        assert math.isinf(rc.window_index_limit)
        assert rc.transform_fn is None
        assert rc.mode is RunMode.COMPUTE
        assert rc.plot is False

    def test_plot_defaults_to_true_when_displaying(self):
        rc = resolve_run_config("rec", mode="compute_and_display")
        assert rc.mode is RunMode.COMPUTE_AND_DISPLAY
        assert rc.plot is True
        assert rc.display

    def test_explicit_plot_overrides_mode_default(self):
        assert resolve_run_config("rec", mode=RunMode.COMPUTE_AND_DISPLAY, plot=False).plot is False
        assert resolve_run_config("rec", plot=True).plot is True

    def test_none_window_minutes_means_unbounded(self):
        assert math.isinf(resolve_run_config("rec", window_minutes=None).window_minutes)

    def test_valid_values_are_normalized(self):
        rc = resolve_run_config("rec", ecg_channel=np.int64(2), window_minutes=5,
                                window_index_offset=3.0, window_index_limit=2.0)
        assert rc.ecg_channel == 2 and isinstance(rc.ecg_channel, int)
        assert rc.window_minutes == 5.0
        assert rc.window_index_offset == 3
        assert rc.window_index_limit == 2

    @pytest.mark.parametrize("options", [
        {"ecg_channel": -1},
        {"ecg_channel": 1.5},
        {"ecg_channel": "0"},
        {"ecg_channel": True},
        {"window_minutes": 0},
        {"window_minutes": -5},
        {"window_minutes": float("nan")},
        {"window_minutes": [5, 10]},
        {"window_index_limit": 0},
        {"window_index_limit": 1.5},
        {"window_index_offset": -1},
        {"window_index_offset": 0.5},
        {"window_index_offset": math.inf},
        {"params": 42},
        {"transform_fn": "not callable"},
        {"plot": 1},
        {"plot": "yes"},
        {"mode": "render"},
        {"unknown_option": 1},
    ])
    def test_invalid_options_raise(self, options):
        with pytest.raises(ConfigValidationError):
            resolve_run_config("rec", **options)

    @pytest.mark.parametrize("record", ["", "   ", None, 5])
    def test_invalid_record_raises(self, record):
        with pytest.raises(ConfigValidationError):
            resolve_run_config(record)

    def test_error_names_option_and_value(self):
        with pytest.raises(ConfigValidationError, match=r"window_minutes.*-3"):
            resolve_run_config("rec", window_minutes=-3)


class TestResolveParams:
    """Parameter profiles and override sets."""

    def test_empty_params_keeps_defaults(self):
        assert resolve_params("") is default_config

    def test_named_profile(self):
        config = resolve_params("canine")
        assert config.HF_BAND == PROFILES["canine"]["HF_BAND"]
        assert config.MAD_THRESHOLD == default_config.MAD_THRESHOLD

    def test_mapping_overrides(self):
        config = resolve_params({"RR_MAX_MS": 3000.0, "LF_BAND": [0.05, 0.15]})
        assert config.RR_MAX_MS == 3000.0
        assert config.LF_BAND == (0.05, 0.15)

    def test_profile_with_name_value_pairs(self):
        config = resolve_params(["mouse", "RR_MAX_MS", 300.0])
        assert config.RR_MAX_MS == 300.0
        assert config.HF_BAND == PROFILES["mouse"]["HF_BAND"]

    def test_profile_with_mapping(self):
        config = resolve_params(["rabbit", {"FILTER_POINCARE": True}])
        assert config.FILTER_POINCARE is True
        assert config.RR_MIN_MS == PROFILES["rabbit"]["RR_MIN_MS"]

    def test_name_value_pairs_without_profile(self):
        config = resolve_params(["MA_WINDOW", 10, "MA_THRESHOLD_PCT", 30.0])
        assert (config.MA_WINDOW, config.MA_THRESHOLD_PCT) == (10, 30.0)

    def test_json_profile(self, tmp_path):
        path = tmp_path / "custom.json"
        path.write_text(json.dumps({"HF_BAND": [0.2, 0.5], "FREQ_METHOD": "ar"}), encoding="utf-8")
        config = resolve_params(str(path))
        assert config.HF_BAND == (0.2, 0.5)
        assert config.FREQ_METHOD == "ar"

    def test_unknown_profile_raises(self):
        with pytest.raises(ConfigValidationError, match="Unknown parameter profile"):
            resolve_params("martian")

    def test_unknown_field_raises(self):
        with pytest.raises(ConfigValidationError, match="NOT_A_FIELD"):
            resolve_params({"NOT_A_FIELD": 1})

    def test_odd_override_list_raises(self):
        with pytest.raises(ConfigValidationError):
            resolve_params([{"RR_MAX_MS": 1.0}, "extra"])

    def test_profiles_do_not_mutate_default(self):
        load_profile("mouse")
        assert default_config == Config()
