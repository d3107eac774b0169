"""R-peak detection for one analysis window.

Windowed Savitzky–Golay derivative detector: a peak is a + to - zero
crossing of the first derivative where the second derivative is strongly
negative relative to its local spread.
"""

from typing import List
from dataclasses import dataclass, field

import numpy as np
from scipy.signal import savgol_filter

from .config import Config, default_config


@dataclass
class DetectionResult:
    """Result of R-peak detection."""
    peak_indices: np.ndarray    # Sample indices into the analyzed array
    peak_times: np.ndarray      # Times in seconds
    quality_notes: List[str] = field(default_factory=list)

    @property
    def n_peaks(self) -> int:
        """Number of detected peaks."""
        return len(self.peak_indices)

    def get_rr_intervals_ms(self) -> np.ndarray:
        """Get RR intervals in milliseconds."""
        if len(self.peak_times) < 2:
            return np.array([])
        return np.diff(self.peak_times) * 1000


def _odd_at_most(n: int, upper: int) -> int:
    n = min(n, upper)
    return n - 1 if n % 2 == 0 else n


def _odd_samples(ms: float, fs: float, minimum: int = 5) -> int:
    """Odd number of samples spanning about ``ms`` milliseconds."""
    n = max(minimum, int(round(ms * fs / 1000.0)))
    return n + 1 if n % 2 == 0 else n


def detect_rpeaks(
    ecg: np.ndarray,
    fs: float,
    time: np.ndarray = None,
    config: Config = default_config,
) -> DetectionResult:
    """
    Detect R-peaks in a filtered ECG window.

    Parameters
    ----------
    ecg : np.ndarray
        Band-pass filtered ECG (mV, upright polarity).
    fs : float
        Sampling frequency in Hz.
    time : np.ndarray, optional
        Time of each sample in seconds. Defaults to ``arange(n) / fs``.
    config : Config
        Uses RPEAK_WINDOW_SEC, RPEAK_THRESHOLD, RPEAK_SMOOTH_MS and
        RPEAK_DERIV_MS (filter spans converted to samples at ``fs``) and
        RR_MIN_MS as the refractory period.

    Returns
    -------
    DetectionResult
    """
    ecg = np.asarray(ecg, dtype=float)
    if time is None:
        time = np.arange(len(ecg)) / fs

    peaks = _sgolay_derivative_peaks(
        ecg,
        fs,
        window_sec=config.RPEAK_WINDOW_SEC,
        smooth_window=_odd_samples(config.RPEAK_SMOOTH_MS, fs),
        deriv_window=_odd_samples(config.RPEAK_DERIV_MS, fs),
        th_mult=config.RPEAK_THRESHOLD,
        min_distance_ms=config.RR_MIN_MS,
    )

    notes: List[str] = []
    if peaks.size:
        # Snap to local maxima of the unsmoothed signal
        peaks = np.unique(refine_peaks(ecg, peaks, fs, window_ms=50))
    else:
        notes.append("⚠ No R-peaks detected")

    return DetectionResult(
        peak_indices=peaks,
        peak_times=time[peaks] if peaks.size else np.array([]),
        quality_notes=notes,
    )


def _sgolay_derivative_peaks(
    ecg: np.ndarray,
    fs: float,
    *,
    window_sec: float = 30.0,
    smooth_window: int = 35,
    smooth_polyorder: int = 3,
    deriv_window: int = 11,
    deriv_polyorder: int = 2,
    th_mult: float = 2.5,
    min_distance_ms: float = 300.0,
) -> np.ndarray:
    if ecg.size < 5:
        return np.array([], dtype=int)

    x = ecg
    w = _odd_at_most(smooth_window, len(x))
    if w >= max(5, smooth_polyorder + 2):
        x = savgol_filter(x, window_length=w, polyorder=smooth_polyorder)

    win_samples = max(1, int(round(window_sec * fs)))
    min_distance = max(1, int(round(min_distance_ms * fs / 1000.0)))

    candidates: List[int] = []
    for start in range(0, len(x), win_samples):
        xw = x[start:start + win_samples]
        dw = _odd_at_most(deriv_window, len(xw))
        if dw < max(5, deriv_polyorder + 2):
            continue

        d1 = savgol_filter(xw, window_length=dw, polyorder=deriv_polyorder, deriv=1)
        d2 = savgol_filter(xw, window_length=dw, polyorder=deriv_polyorder, deriv=2)

        th = float(np.std(d2)) * th_mult
        if not np.isfinite(th) or th <= 0:
            continue

        idx = np.flatnonzero((d1[:-1] > 0) & (d1[1:] <= 0) & (d2[1:] < -th)) + 1
        candidates.extend((start + idx).tolist())

    # Refractory period: keep the stronger peak when too close
    kept: List[int] = []
    for idx in sorted(set(candidates)):
        if not kept or idx - kept[-1] >= min_distance:
            kept.append(idx)
        elif x[idx] > x[kept[-1]]:
            kept[-1] = idx

    return np.asarray(kept, dtype=int)


def refine_peaks(
    ecg: np.ndarray,
    peak_indices: np.ndarray,
    fs: float,
    window_ms: float = 50,
) -> np.ndarray:
    """Move each peak to the local maximum within +/- ``window_ms``."""
    half = int(window_ms * fs / 1000)
    refined = np.empty_like(peak_indices)
    for i, idx in enumerate(peak_indices):
        lo = max(0, idx - half)
        hi = min(len(ecg), idx + half + 1)
        refined[i] = lo + int(np.argmax(ecg[lo:hi]))
    return refined
