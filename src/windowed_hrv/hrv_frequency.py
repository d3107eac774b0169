"""Frequency-domain HRV metrics.

Approach:
- NN intervals (ms) -> cubic/linear interpolation to an evenly sampled
  series (config.RESAMPLE_HZ)
- Linear detrend (scipy.signal.detrend)
- PSD via Welch (default) or AR Burg (spectrum.pburg, FREQ_METHOD="ar";
  more stable on short windows)
- Integrate VLF/LF/HF band powers, normalized units, LF/HF ratio, band peaks

Outputs:
- FrequencyDomainHRV metric record
- PSD arrays for plotting
"""

from __future__ import annotations

import warnings
from dataclasses import dataclass, asdict, fields
from typing import Any, Dict, Optional, Tuple

import numpy as np
from scipy import integrate, interpolate, signal

from .config import Config, default_config


@dataclass
class FrequencyDomainHRV:
    """Frequency-domain HRV metrics."""
    vlf_power: float    # VLF power (ms²)
    lf_power: float     # LF power (ms²)
    hf_power: float     # HF power (ms²)
    total_power: float  # Total power (ms²)
    lf_norm: float      # LF normalized units (%)
    hf_norm: float      # HF normalized units (%)
    lf_hf_ratio: float  # LF/HF ratio
    lf_peak: float      # Frequency of maximal LF power (Hz)
    hf_peak: float      # Frequency of maximal HF power (Hz)

    UNITS = {
        "vlf_power": "ms^2", "lf_power": "ms^2", "hf_power": "ms^2",
        "total_power": "ms^2", "lf_norm": "n.u.", "hf_norm": "n.u.",
        "lf_hf_ratio": "n.u.", "lf_peak": "Hz", "hf_peak": "Hz",
    }

    @classmethod
    def empty(cls) -> "FrequencyDomainHRV":
        return cls(**{f.name: np.nan for f in fields(cls)})

    def to_dict(self) -> Dict[str, float]:
        return asdict(self)


def _integrate_band(freqs: np.ndarray, psd: np.ndarray, band: Tuple[float, float]) -> float:
    mask = (freqs >= band[0]) & (freqs < band[1])
    if np.count_nonzero(mask) < 2:
        return 0.0
    return float(integrate.trapezoid(psd[mask], freqs[mask]))


def _band_peak(freqs: np.ndarray, psd: np.ndarray, band: Tuple[float, float]) -> float:
    mask = (freqs >= band[0]) & (freqs < band[1])
    if not np.any(mask):
        return float("nan")
    return float(freqs[mask][np.argmax(psd[mask])])


def nn_to_evenly_sampled(
    nn_intervals_ms: np.ndarray,
    *,
    fs_resample_hz: float,
) -> Optional[np.ndarray]:
    """Convert irregular NN (ms) to an evenly sampled series (ms) at fs_resample_hz."""
    if nn_intervals_ms.size < 10:
        return None

    t_nn = np.cumsum(nn_intervals_ms / 1000.0)
    t_nn = np.insert(t_nn, 0, 0.0)[:-1]  # time at each beat

    t_interp = np.arange(float(t_nn[0]), float(t_nn[-1]), 1.0 / fs_resample_hz)
    if t_interp.size < 10:
        return None

    # Prefer cubic, fallback to linear
    try:
        interp_func = interpolate.interp1d(t_nn, nn_intervals_ms, kind="cubic", fill_value="extrapolate")
        nn_interp = interp_func(t_interp)
    except ValueError:
        interp_func = interpolate.interp1d(t_nn, nn_intervals_ms, kind="linear", fill_value="extrapolate")
        nn_interp = interp_func(t_interp)

    return np.asarray(nn_interp, dtype=np.float64)


def _welch_psd(x: np.ndarray, fs: float, config: Config) -> Tuple[np.ndarray, np.ndarray]:
    nperseg = min(config.HRV_NPERSEG, len(x))
    with warnings.catch_warnings():
        warnings.simplefilter("ignore")
        freqs, psd = signal.welch(x, fs=fs, nperseg=nperseg, scaling="density")
    return freqs, psd


def _ar_psd(x: np.ndarray, fs: float, config: Config) -> Tuple[np.ndarray, np.ndarray]:
    from spectrum import pburg

    # spectrum.pburg returns an object with `.psd` and `.frequencies()`.
    burg = pburg(x, order=int(config.AR_ORDER), NFFT=int(config.AR_NFFT), sampling=float(fs))
    freqs = np.asarray(burg.frequencies(), dtype=np.float64)
    psd = np.asarray(burg.psd, dtype=np.float64)
    if freqs.size != psd.size or freqs.size == 0:
        raise ValueError("AR PSD computation returned empty arrays")
    return freqs, psd


def compute_frequency_domain(
    nn_intervals: np.ndarray,
    config: Config = default_config,
) -> Tuple[FrequencyDomainHRV, Dict[str, Any]]:
    """
    Compute frequency-domain HRV metrics.

    Parameters
    ----------
    nn_intervals : np.ndarray
        NN intervals in milliseconds.
    config : Config
        Band definitions, FREQ_METHOD, RESAMPLE_HZ, HRV_NPERSEG, AR_ORDER,
        AR_NFFT.

    Returns
    -------
    Tuple[FrequencyDomainHRV, dict]
        Metrics (all NaN when the window is too short to resample) and
        spectrum plot data.
    """
    nn = np.asarray(nn_intervals, dtype=np.float64)
    fs = float(config.RESAMPLE_HZ)
    plot_data: Dict[str, Any] = {
        "name": "Frequency spectrum",
        "method": config.FREQ_METHOD,
        "freqs": np.array([]),
        "psd": np.array([]),
        "bands": {"VLF": config.VLF_BAND, "LF": config.LF_BAND, "HF": config.HF_BAND},
    }

    nn_even = nn_to_evenly_sampled(nn, fs_resample_hz=fs)
    if nn_even is None:
        return FrequencyDomainHRV.empty(), plot_data

    nn_detrended = signal.detrend(nn_even, type="linear")

    method = config.FREQ_METHOD.lower()
    if method == "welch":
        freqs, psd = _welch_psd(nn_detrended, fs, config)
    elif method == "ar":
        freqs, psd = _ar_psd(nn_detrended, fs, config)
    else:
        raise ValueError(f"Unknown FREQ_METHOD '{config.FREQ_METHOD}' (expected 'welch' or 'ar')")

    keep = (freqs >= 0.0) & (freqs <= fs / 2.0)
    freqs, psd = freqs[keep], psd[keep]

    vlf_power = _integrate_band(freqs, psd, config.VLF_BAND)
    lf_power = _integrate_band(freqs, psd, config.LF_BAND)
    hf_power = _integrate_band(freqs, psd, config.HF_BAND)
    total_power = vlf_power + lf_power + hf_power

    # Normalized units (excluding VLF)
    lf_hf_sum = lf_power + hf_power
    if lf_hf_sum > 0:
        lf_norm = lf_power / lf_hf_sum * 100.0
        hf_norm = hf_power / lf_hf_sum * 100.0
    else:
        lf_norm = float("nan")
        hf_norm = float("nan")

    metrics = FrequencyDomainHRV(
        vlf_power=vlf_power,
        lf_power=lf_power,
        hf_power=hf_power,
        total_power=total_power,
        lf_norm=lf_norm,
        hf_norm=hf_norm,
        lf_hf_ratio=lf_power / hf_power if hf_power > 0 else float("nan"),
        lf_peak=_band_peak(freqs, psd, config.LF_BAND),
        hf_peak=_band_peak(freqs, psd, config.HF_BAND),
    )
    plot_data.update(freqs=freqs, psd=psd, lf_peak=metrics.lf_peak, hf_peak=metrics.hf_peak,
                     lf_hf_ratio=metrics.lf_hf_ratio)
    return metrics, plot_data
