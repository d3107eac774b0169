"""
ECG window preprocessing.

Zero-phase Butterworth band-pass (second-order sections) applied to each
analysis window before R-peak detection, so R-peak timing is not shifted.
"""

from typing import Optional

import numpy as np
from scipy import signal

from .config import Config, default_config


def _normalized_band(fs: float, lowcut: float, highcut: float) -> np.ndarray:
    nyquist = fs / 2.0
    # Keep both edges strictly inside (0, 1) for butter()
    low = min(max(lowcut / nyquist, 1e-3), 0.998)
    high = min(max(highcut / nyquist, low + 1e-3), 0.999)
    return np.array([low, high])


def filter_ecg(
    ecg: np.ndarray,
    fs: Optional[float] = None,
    lowcut: Optional[float] = None,
    highcut: Optional[float] = None,
    order: Optional[int] = None,
    config: Config = default_config,
) -> np.ndarray:
    """
    Band-pass filter one ECG window with zero phase shift.

    Parameters
    ----------
    ecg : np.ndarray
        Raw ECG samples (mV).
    fs : float, optional
        Sampling frequency in Hz (default config.SAMPLING_RATE).
    lowcut, highcut : float, optional
        Band edges in Hz (default config.BANDPASS).
    order : int, optional
        Butterworth order (default config.FILTER_ORDER).
    config : Config
        Pipeline configuration.

    Returns
    -------
    np.ndarray
        Filtered copy of ``ecg``. Windows of fewer than 3 samples are
        returned unfiltered.
    """
    fs = config.SAMPLING_RATE if fs is None else fs
    band_low, band_high = config.BANDPASS
    lowcut = band_low if lowcut is None else lowcut
    highcut = band_high if highcut is None else highcut
    order = config.FILTER_ORDER if order is None else order

    x = np.asarray(ecg, dtype=np.float64)
    if x.size < 3:
        return x.copy()

    sos = signal.butter(order, _normalized_band(fs, lowcut, highcut), btype="bandpass", output="sos")

    # Padding cannot exceed the window length minus one
    default_pad = 3 * (2 * len(sos) + 1)
    padlen = min(default_pad, x.size - 1)
    return signal.sosfiltfilt(sos, x, padlen=padlen)
