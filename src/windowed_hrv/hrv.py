"""
Time-domain HRV metrics.

Provides the metric record of the time-domain family (SDNN, RMSSD, pNN50,
heart-rate statistics) and the NN histogram used for plotting.
"""

from typing import Any, Dict, Tuple
from dataclasses import dataclass, asdict, fields

import numpy as np

from .config import Config, default_config


@dataclass
class TimeDomainHRV:
    """Time-domain HRV metrics."""
    mean_nn: float    # Mean NN interval (ms)
    median_nn: float  # Median NN interval (ms)
    sdnn: float       # Standard deviation of NN intervals (ms)
    rmssd: float      # Root mean square of successive differences (ms)
    pnn50: float      # Percentage of successive intervals > 50ms (%)
    sem: float        # Standard error of the mean NN interval (ms)
    mean_hr: float    # Mean heart rate (bpm)
    median_hr: float  # Median heart rate (bpm)
    std_hr: float     # Standard deviation of heart rate (bpm)
    min_hr: float     # Minimum heart rate (bpm)
    max_hr: float     # Maximum heart rate (bpm)

    UNITS = {
        "mean_nn": "ms", "median_nn": "ms", "sdnn": "ms", "rmssd": "ms",
        "pnn50": "%", "sem": "ms", "mean_hr": "bpm", "median_hr": "bpm",
        "std_hr": "bpm", "min_hr": "bpm", "max_hr": "bpm",
    }

    @classmethod
    def empty(cls) -> "TimeDomainHRV":
        return cls(**{f.name: np.nan for f in fields(cls)})

    def to_dict(self) -> Dict[str, float]:
        return asdict(self)


def compute_time_domain(
    nn_intervals: np.ndarray,
    config: Config = default_config,
) -> Tuple[TimeDomainHRV, Dict[str, Any]]:
    """
    Compute time-domain HRV metrics.

    Parameters
    ----------
    nn_intervals : np.ndarray
        NN intervals in milliseconds.
    config : Config
        Uses HIST_BIN_MS for the histogram.

    Returns
    -------
    Tuple[TimeDomainHRV, dict]
        Metrics (NaN when fewer than 2 intervals) and histogram plot data.
    """
    nn = np.asarray(nn_intervals, dtype=np.float64)
    plot_data: Dict[str, Any] = {"name": "NN interval histogram", "nni": nn}

    if len(nn) < 2:
        plot_data.update(bin_edges=np.array([]), counts=np.array([]))
        return TimeDomainHRV.empty(), plot_data

    diff_nn = np.diff(nn)
    hr = 60000 / nn

    metrics = TimeDomainHRV(
        mean_nn=float(np.mean(nn)),
        median_nn=float(np.median(nn)),
        sdnn=float(np.std(nn, ddof=1)),  # Sample std
        rmssd=float(np.sqrt(np.mean(diff_nn ** 2))),
        pnn50=float(np.sum(np.abs(diff_nn) > 50) / len(diff_nn) * 100),
        sem=float(np.std(nn, ddof=1) / np.sqrt(len(nn))),
        mean_hr=float(np.mean(hr)),
        median_hr=float(np.median(hr)),
        std_hr=float(np.std(hr, ddof=1)),
        min_hr=float(np.min(hr)),
        max_hr=float(np.max(hr)),
    )

    lo = np.floor(nn.min() / config.HIST_BIN_MS) * config.HIST_BIN_MS
    hi = np.ceil(nn.max() / config.HIST_BIN_MS) * config.HIST_BIN_MS
    bin_edges = np.arange(lo, hi + config.HIST_BIN_MS, config.HIST_BIN_MS)
    if bin_edges.size < 2:
        bin_edges = np.array([lo, lo + config.HIST_BIN_MS])
    counts, bin_edges = np.histogram(nn, bins=bin_edges)
    plot_data.update(bin_edges=bin_edges, counts=counts, sdnn=metrics.sdnn, mean_nn=metrics.mean_nn)

    return metrics, plot_data
