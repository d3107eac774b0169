"""windowed_hrv configuration.

Centralizes configurable parameters for R-peak detection, RR filtering
and the HRV metric families, plus the named parameter profiles that
can be selected per run.
"""

import json
from pathlib import Path
from dataclasses import dataclass, fields, replace
from typing import Any, Dict, Mapping, Tuple

from .errors import ConfigValidationError


@dataclass(frozen=True)
class Config:
    """Analysis parameters shared by all pipeline stages."""

    # ==========================================================================
    # Signal Acquisition Parameters
    # ==========================================================================
    # Used for CSV records without a time column
    SAMPLING_RATE: float = 500.0  # Hz

    # ==========================================================================
    # Bandpass Filter Parameters (Zero-phase Butterworth)
    # ==========================================================================
    BANDPASS_LOW: float = 0.5   # Hz - removes baseline wander
    BANDPASS_HIGH: float = 40.0  # Hz - removes high-frequency noise/EMG
    FILTER_ORDER: int = 4

    @property
    def BANDPASS(self) -> Tuple[float, float]:
        """Return bandpass frequency range as tuple."""
        return (self.BANDPASS_LOW, self.BANDPASS_HIGH)

    # ==========================================================================
    # R-Peak Detection Parameters
    # ==========================================================================
    RPEAK_WINDOW_SEC: float = 30.0   # Threshold adaptation window
    RPEAK_THRESHOLD: float = 2.5     # Multiplier on std of 2nd derivative
    RPEAK_SMOOTH_MS: float = 70.0    # Savitzky-Golay smoothing span
    RPEAK_DERIV_MS: float = 22.0     # Savitzky-Golay derivative span

    # ==========================================================================
    # RR Interval Filtering Parameters
    # ==========================================================================
    # Physiological range for valid RR intervals (in milliseconds)
    RR_MIN_MS: float = 300.0   # ~200 bpm max
    RR_MAX_MS: float = 2000.0  # ~30 bpm min

    # MAD (Median Absolute Deviation) multiplier for outlier detection
    MAD_THRESHOLD: float = 3.5

    # Moving-average filter: neighbours and allowed deviation (%)
    MA_WINDOW: int = 20
    MA_THRESHOLD_PCT: float = 20.0

    # Poincare (interval quotient) filter
    FILTER_POINCARE: bool = False
    QUOTIENT_LIMIT: float = 0.2  # allowed relative change between neighbours

    # ==========================================================================
    # HRV Frequency Domain Parameters
    # ==========================================================================
    VLF_BAND: Tuple[float, float] = (0.003, 0.04)
    LF_BAND: Tuple[float, float] = (0.04, 0.15)
    HF_BAND: Tuple[float, float] = (0.15, 0.4)

    FREQ_METHOD: str = "welch"     # "welch" or "ar"
    RESAMPLE_HZ: float = 4.0       # Evenly sampled RR series
    HRV_NPERSEG: int = 256         # Segment length for Welch method
    AR_ORDER: int = 16
    AR_NFFT: int = 1024

    # ==========================================================================
    # Nonlinear Parameters
    # ==========================================================================
    DFA_SHORT_SCALES: Tuple[int, int] = (4, 16)
    DFA_LONG_SCALES: Tuple[int, int] = (16, 64)
    BETA_BAND: Tuple[float, float] = (0.003, 0.04)
    SAMPEN_M: int = 2
    SAMPEN_R: float = 0.2          # Tolerance as a fraction of std
    MSE_MAX_SCALE: int = 20

    # ==========================================================================
    # Visualization Parameters
    # ==========================================================================
    HIST_BIN_MS: float = 7.8125    # 1/128 s, standard HRV histogram bin
    ECG_PLOT_SECONDS: float = 10.0


# Default configuration instance
default_config = Config()


# Field overrides per species; anything not listed keeps the default.
PROFILES: Dict[str, Dict[str, Any]] = {
    "human": {},
    "canine": {
        "RR_MIN_MS": 200.0,
        "RR_MAX_MS": 2500.0,
        "VLF_BAND": (0.003, 0.04),
        "LF_BAND": (0.04, 0.15),
        "HF_BAND": (0.15, 1.0),
        "BANDPASS_HIGH": 50.0,
    },
    "rabbit": {
        "RR_MIN_MS": 150.0,
        "RR_MAX_MS": 600.0,
        "VLF_BAND": (0.0, 0.01),
        "LF_BAND": (0.01, 0.25),
        "HF_BAND": (0.25, 1.2),
        "RESAMPLE_HZ": 10.0,
        "BANDPASS_HIGH": 60.0,
    },
    "mouse": {
        "RR_MIN_MS": 50.0,
        "RR_MAX_MS": 250.0,
        "VLF_BAND": (0.0, 0.15),
        "LF_BAND": (0.15, 1.5),
        "HF_BAND": (1.5, 5.0),
        "RESAMPLE_HZ": 25.0,
        "BANDPASS_LOW": 5.0,
        "BANDPASS_HIGH": 100.0,
        "DFA_SHORT_SCALES": (4, 16),
        "DFA_LONG_SCALES": (16, 64),
    },
}


def _config_field_names():
    return {f.name for f in fields(Config)}


def apply_overrides(config: Config, overrides: Mapping[str, Any]) -> Config:
    """
    Return a copy of ``config`` with the given fields replaced.

    Parameters
    ----------
    config : Config
        Base configuration.
    overrides : Mapping[str, Any]
        Field name -> value. Lists are converted to tuples so that JSON
        band definitions match the dataclass defaults.

    Raises
    ------
    ConfigValidationError
        If a field name is not a Config field.
    """
    allowed = _config_field_names()
    unknown = sorted(k for k in overrides if k not in allowed)
    if unknown:
        raise ConfigValidationError(
            f"Unknown parameter(s) {unknown}; valid names are {sorted(allowed)}"
        )
    cleaned = {k: tuple(v) if isinstance(v, list) else v for k, v in overrides.items()}
    return replace(config, **cleaned)


def load_profile(name: str, base: Config = default_config) -> Config:
    """
    Load a named parameter profile or a JSON overrides file.

    Parameters
    ----------
    name : str
        A key of ``PROFILES`` or the path of a ``.json`` file containing a
        single object of field overrides.
    base : Config
        Configuration the profile is applied to.
    """
    key = str(name).strip()
    if key.lower() in PROFILES:
        return apply_overrides(base, PROFILES[key.lower()])

    path = Path(key)
    if path.suffix.lower() == ".json":
        if not path.exists():
            raise ConfigValidationError(f"Parameter profile file not found: {path}")
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
        if not isinstance(data, dict):
            raise ConfigValidationError(f"Parameter profile {path} must contain a JSON object")
        return apply_overrides(base, data)

    raise ConfigValidationError(
        f"Unknown parameter profile '{name}'; available: {sorted(PROFILES)}"
    )
