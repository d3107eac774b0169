"""
RR interval extraction and artifact filtering.

Provides:
- RR intervals from one window of an ECG record (band-pass + R-peak detection)
- NN intervals via physiological range, MAD, moving-average and optional
  Poincaré (interval quotient) filters

RR/NN intervals are in milliseconds; their timestamps are the absolute time
(seconds from record start) of the beat that closes each interval.
"""

from typing import Any, Dict, Optional
from dataclasses import dataclass

import numpy as np

from .config import Config, default_config
from .io_utils import read_ecg_window
from .nonlinear import poincare_sd
from .preprocess import filter_ecg
from .rpeak import detect_rpeaks


@dataclass
class RRExtraction:
    """RR intervals of one window."""
    rri: np.ndarray                 # RR intervals (ms)
    trr: np.ndarray                 # Interval end times (s)
    plot_data: Dict[str, Any]


@dataclass
class RRFilterResult:
    """NN intervals remaining after artifact filtering."""
    nni: np.ndarray                 # NN intervals (ms)
    tnn: np.ndarray                 # Interval end times (s)
    plot_data: Dict[str, Any]       # {"filtrr": ..., "poincare": ...}

    @property
    def n_removed(self) -> int:
        return int(self.plot_data["filtrr"]["n_rr"]) - len(self.nni)


def extract_rr(
    record: str,
    channel: int,
    start: int,
    end: int,
    config: Config = default_config,
    fs: Optional[float] = None,
) -> RRExtraction:
    """
    Detect R-peaks in samples ``start``..``end`` (1-based, inclusive) and
    return the RR intervals between them.

    ``fs`` is the record's sampling rate when the caller already knows it;
    the record header is then not read again for this window.
    """
    ecg, time, fs = read_ecg_window(record, channel, start, end, config, fs=fs)
    ecg_filtered = filter_ecg(ecg, fs=fs, config=config)
    detection = detect_rpeaks(ecg_filtered, fs, time=time, config=config)

    rri = detection.get_rr_intervals_ms()
    trr = detection.peak_times[1:] if detection.n_peaks >= 2 else np.array([])

    # Keep only the first seconds of ECG for the plot
    n_plot = min(len(ecg_filtered), int(config.ECG_PLOT_SECONDS * fs))
    plot_peaks = detection.peak_indices[detection.peak_indices < n_plot]
    plot_data = {
        "name": "ECG R-peaks",
        "time": time[:n_plot],
        "ecg": ecg_filtered[:n_plot],
        "peak_indices": plot_peaks,
        "rri": rri,
        "trr": trr,
        "notes": detection.quality_notes,
    }
    return RRExtraction(rri=rri, trr=trr, plot_data=plot_data)


def _moving_average_outliers(rr: np.ndarray, window: int, threshold_pct: float) -> np.ndarray:
    """Mask of intervals deviating from the centred average of their neighbours."""
    if rr.size < 3 or window < 2:
        return np.zeros(rr.size, dtype=bool)
    # The kernel may not be longer than the sequence
    half = min(window // 2, (rr.size - 1) // 2)
    kernel = np.ones(2 * half + 1)
    kernel[half] = 0.0
    sums = np.convolve(rr, kernel, mode="same")
    counts = np.convolve(np.ones_like(rr), kernel, mode="same")
    ma = sums / np.maximum(counts, 1.0)
    return np.abs(rr - ma) > ma * threshold_pct / 100.0


def _quotient_outliers(rr: np.ndarray, limit: float) -> np.ndarray:
    """Mask of intervals whose ratio to the previous one leaves [1-limit, 1+limit]."""
    bad = np.zeros(rr.size, dtype=bool)
    if rr.size < 2:
        return bad
    q = rr[1:] / rr[:-1]
    bad[1:] = (q < 1.0 - limit) | (q > 1.0 + limit)
    return bad


def filter_rr(
    rri: np.ndarray,
    trr: np.ndarray,
    config: Config = default_config,
) -> RRFilterResult:
    """
    Filter RR intervals to produce NN intervals.

    Parameters
    ----------
    rri : np.ndarray
        RR intervals in milliseconds.
    trr : np.ndarray
        Interval timestamps in seconds.
    config : Config
        RR_MIN_MS, RR_MAX_MS, MAD_THRESHOLD, MA_WINDOW, MA_THRESHOLD_PCT,
        FILTER_POINCARE and QUOTIENT_LIMIT.

    Returns
    -------
    RRFilterResult
        Possibly empty NN intervals with removal statistics in the plot data.
    """
    rri = np.asarray(rri, dtype=np.float64)
    trr = np.asarray(trr, dtype=np.float64)
    keep = np.ones(rri.size, dtype=bool)
    removed: Dict[str, int] = {}

    # Step 1: Physiological range filter
    in_range = (rri >= config.RR_MIN_MS) & (rri <= config.RR_MAX_MS)
    removed["range"] = int(np.sum(keep & ~in_range))
    keep &= in_range

    # Step 2: MAD-based outlier removal
    kept = rri[keep]
    if kept.size:
        median_rr = np.median(kept)
        mad = np.median(np.abs(kept - median_rr))
        if mad < 1e-10:
            mad = np.std(kept) * 0.6745  # Fallback to scaled std
        if mad > 0:
            mad_ok = np.abs(rri - median_rr) / (mad * 1.4826) < config.MAD_THRESHOLD
            removed["mad"] = int(np.sum(keep & ~mad_ok))
            keep &= mad_ok
    removed.setdefault("mad", 0)

    # Step 3: Moving-average filter on the survivors
    idx = np.flatnonzero(keep)
    ma_bad = _moving_average_outliers(rri[idx], config.MA_WINDOW, config.MA_THRESHOLD_PCT)
    keep[idx[ma_bad]] = False
    removed["moving_average"] = int(np.sum(ma_bad))

    # Step 4: Poincaré (quotient) filter
    removed["poincare"] = 0
    if config.FILTER_POINCARE:
        idx = np.flatnonzero(keep)
        q_bad = _quotient_outliers(rri[idx], config.QUOTIENT_LIMIT)
        keep[idx[q_bad]] = False
        removed["poincare"] = int(np.sum(q_bad))

    nni = rri[keep]
    tnn = trr[keep] if trr.size == rri.size else np.array([])
    sd1, sd2 = poincare_sd(nni)

    plot_data = {
        "filtrr": {
            "name": "Filtered RR intervals",
            "trr": trr,
            "rri": rri,
            "tnn": tnn,
            "nni": nni,
            "n_rr": int(rri.size),
            "removed": removed,
        },
        "poincare": {
            "name": "Poincaré (filtered)",
            "rri": rri,
            "nni": nni,
            "sd1": sd1,
            "sd2": sd2,
        },
    }
    return RRFilterResult(nni=nni, tnn=tnn, plot_data=plot_data)
