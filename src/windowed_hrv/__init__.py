# Windowed HRV analysis
# Splits an ECG record into windows and computes HRV metrics per window

from .config import Config, default_config, load_profile
from .errors import (
    WindowedHRVError,
    ConfigValidationError,
    NoChannelError,
    InvalidOffsetError,
    RecordReadError,
    EmptyWindowCondition,
)
from .options import RunConfig, RunMode, resolve_run_config, resolve_params
from .windows import SignalDescriptor, WindowPlan, plan_windows
from .pipeline import HRVRunResult, PipelineStages, WindowPlotData, run_windowed_hrv
from .stats import table_stats

__all__ = [
    "Config",
    "default_config",
    "load_profile",
    "WindowedHRVError",
    "ConfigValidationError",
    "NoChannelError",
    "InvalidOffsetError",
    "RecordReadError",
    "EmptyWindowCondition",
    "RunConfig",
    "RunMode",
    "resolve_run_config",
    "resolve_params",
    "SignalDescriptor",
    "WindowPlan",
    "plan_windows",
    "HRVRunResult",
    "PipelineStages",
    "WindowPlotData",
    "run_windowed_hrv",
    "table_stats",
]
