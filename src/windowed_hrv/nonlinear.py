"""
Nonlinear and fragmentation HRV metrics.

Provides:
- Poincaré descriptors (SD1, SD2)
- Detrended fluctuation analysis (short- and long-term alpha)
- Spectral scaling exponent beta (log-log PSD slope in a low band)
- Sample entropy and multiscale entropy
- Heart rate fragmentation indices (PIP, IALS, PSS, PAS; Costa et al. 2017)
"""

from typing import Any, Dict, Tuple
from dataclasses import dataclass, asdict, fields

import numpy as np
from scipy import signal
from scipy.spatial import cKDTree

from .config import Config, default_config
from .hrv_frequency import nn_to_evenly_sampled


@dataclass
class NonlinearHRV:
    """Nonlinear HRV metrics."""
    sd1: float       # Poincaré short-term variability (ms)
    sd2: float       # Poincaré long-term variability (ms)
    sd1_sd2: float   # SD1/SD2 ratio
    alpha1: float    # DFA short-term scaling exponent
    alpha2: float    # DFA long-term scaling exponent
    beta: float      # Log-log spectral slope
    sampen: float    # Sample entropy
    mse_area: float  # Sum of multiscale entropy values over all scales

    UNITS = {
        "sd1": "ms", "sd2": "ms", "sd1_sd2": "n.u.", "alpha1": "n.u.",
        "alpha2": "n.u.", "beta": "n.u.", "sampen": "n.u.", "mse_area": "n.u.",
    }

    @classmethod
    def empty(cls) -> "NonlinearHRV":
        return cls(**{f.name: np.nan for f in fields(cls)})

    def to_dict(self) -> Dict[str, float]:
        return asdict(self)


@dataclass
class FragmentationHRV:
    """Heart rate fragmentation metrics."""
    pip: float   # Percentage of inflection points (%)
    ials: float  # Inverse average length of acceleration/deceleration segments
    pss: float   # Percentage of NN intervals in short segments (%)
    pas: float   # Percentage of NN intervals in alternation segments (%)

    UNITS = {"pip": "%", "ials": "n.u.", "pss": "%", "pas": "%"}

    @classmethod
    def empty(cls) -> "FragmentationHRV":
        return cls(**{f.name: np.nan for f in fields(cls)})

    def to_dict(self) -> Dict[str, float]:
        return asdict(self)


def poincare_sd(nn_intervals: np.ndarray) -> Tuple[float, float]:
    """SD1 and SD2 of the Poincaré plot (NaN for fewer than 3 intervals)."""
    nn = np.asarray(nn_intervals, dtype=np.float64)
    if nn.size < 3:
        return float("nan"), float("nan")
    x, y = nn[:-1], nn[1:]
    sd1 = np.std((y - x) / np.sqrt(2), ddof=1)
    sd2 = np.std((y + x) / np.sqrt(2), ddof=1)
    return float(sd1), float(sd2)


def dfa_fluctuation(nn: np.ndarray, scales: np.ndarray) -> np.ndarray:
    """DFA fluctuation function F(n) for each box size in ``scales``."""
    y = np.cumsum(nn - np.mean(nn))
    fn = np.full(scales.size, np.nan)
    for k, n in enumerate(scales):
        n_boxes = y.size // n
        if n_boxes < 2:
            continue
        boxes = y[:n_boxes * n].reshape(n_boxes, n)
        t = np.arange(n)
        # Linear trend of every box in one least squares solve
        coeffs = np.polyfit(t, boxes.T, 1)
        trend = np.outer(coeffs[0], t) + coeffs[1][:, None]
        fn[k] = np.sqrt(np.mean((boxes - trend) ** 2))
    return fn


def _loglog_slope(x: np.ndarray, y: np.ndarray) -> float:
    ok = np.isfinite(x) & np.isfinite(y) & (x > 0) & (y > 0)
    if np.count_nonzero(ok) < 2:
        return float("nan")
    return float(np.polyfit(np.log10(x[ok]), np.log10(y[ok]), 1)[0])


def _similar_pairs(templates: np.ndarray, r: float) -> int:
    """Unordered pairs of distinct templates within Chebyshev distance ``r``."""
    tree = cKDTree(templates)
    # count_neighbors counts ordered pairs, self-pairs included
    return (int(tree.count_neighbors(tree, r, p=np.inf)) - len(templates)) // 2


def sample_entropy(x: np.ndarray, m: int, r: float) -> float:
    """
    Sample entropy of ``x`` with template length ``m`` and absolute
    tolerance ``r`` (Chebyshev distance, self-matches excluded).

    Both template lengths use the same N - m starting points. Matches are
    counted with a KD-tree, so long windows stay tractable.
    """
    x = np.asarray(x, dtype=np.float64)
    n_templates = x.size - m
    if n_templates < 2 or r <= 0:
        return float("nan")

    templates = np.lib.stride_tricks.sliding_window_view(x, m + 1)[:n_templates]
    b = _similar_pairs(templates[:, :m], r)
    a = _similar_pairs(templates, r) if b else 0

    if a == 0 or b == 0:
        return float("nan")
    return float(-np.log(a / b))


def multiscale_entropy(x: np.ndarray, max_scale: int, m: int, r: float) -> Tuple[np.ndarray, np.ndarray]:
    """Sample entropy of non-overlapping coarse-grained series, scales 1..max_scale."""
    scales = np.arange(1, max_scale + 1)
    values = np.full(scales.size, np.nan)
    for k, scale in enumerate(scales):
        n = x.size // scale
        if n <= m + 1:
            break
        coarse = x[:n * scale].reshape(n, scale).mean(axis=1)
        values[k] = sample_entropy(coarse, m, r)
    return scales, values


def compute_nonlinear(
    nn_intervals: np.ndarray,
    config: Config = default_config,
) -> Tuple[NonlinearHRV, Dict[str, Any]]:
    """
    Compute nonlinear HRV metrics.

    Parameters
    ----------
    nn_intervals : np.ndarray
        NN intervals in milliseconds.
    config : Config
        DFA_SHORT_SCALES, DFA_LONG_SCALES, BETA_BAND, RESAMPLE_HZ,
        SAMPEN_M, SAMPEN_R, MSE_MAX_SCALE.

    Returns
    -------
    Tuple[NonlinearHRV, dict]
        Metrics (individual fields NaN when the window is too short for
        them) and plot data with ``poincare``, ``dfa``, ``beta`` and ``mse``
        bundles.
    """
    nn = np.asarray(nn_intervals, dtype=np.float64)

    sd1, sd2 = poincare_sd(nn)

    lo = min(config.DFA_SHORT_SCALES[0], config.DFA_LONG_SCALES[0])
    hi = max(config.DFA_SHORT_SCALES[1], config.DFA_LONG_SCALES[1])
    scales = np.unique(np.round(np.logspace(np.log10(lo), np.log10(hi), 20)).astype(int))
    fn = dfa_fluctuation(nn, scales) if nn.size >= 2 * lo else np.full(scales.size, np.nan)

    def _alpha(band: Tuple[int, int]) -> float:
        sel = (scales >= band[0]) & (scales <= band[1])
        return _loglog_slope(scales[sel].astype(float), fn[sel])

    # Periodogram over the whole window: the beta band needs fine resolution
    freqs, psd = np.array([]), np.array([])
    beta = float("nan")
    nn_even = nn_to_evenly_sampled(nn, fs_resample_hz=config.RESAMPLE_HZ)
    if nn_even is not None:
        freqs, psd = signal.periodogram(signal.detrend(nn_even), fs=config.RESAMPLE_HZ)
        in_band = (freqs >= config.BETA_BAND[0]) & (freqs <= config.BETA_BAND[1])
        beta = _loglog_slope(freqs[in_band], psd[in_band])

    r = config.SAMPEN_R * float(np.std(nn)) if nn.size > 1 else 0.0
    sampen = sample_entropy(nn, config.SAMPEN_M, r)
    mse_scales, mse_values = multiscale_entropy(nn, config.MSE_MAX_SCALE, config.SAMPEN_M, r)

    metrics = NonlinearHRV(
        sd1=sd1,
        sd2=sd2,
        sd1_sd2=sd1 / sd2 if sd2 and np.isfinite(sd2) and sd2 > 0 else float("nan"),
        alpha1=_alpha(config.DFA_SHORT_SCALES),
        alpha2=_alpha(config.DFA_LONG_SCALES),
        beta=beta,
        sampen=sampen,
        mse_area=float(np.nansum(mse_values)) if np.any(np.isfinite(mse_values)) else float("nan"),
    )

    plot_data = {
        "name": "Nonlinear metrics",
        "poincare": {"name": "Poincaré (nonlinear)", "nni": nn, "sd1": sd1, "sd2": sd2},
        "dfa": {
            "name": "DFA", "n": scales, "fn": fn,
            "alpha1": metrics.alpha1, "alpha2": metrics.alpha2,
            "short_scales": config.DFA_SHORT_SCALES, "long_scales": config.DFA_LONG_SCALES,
        },
        "beta": {"name": "Beta", "freqs": freqs, "psd": psd, "beta": beta, "band": config.BETA_BAND},
        "mse": {"name": "MSE", "scales": mse_scales, "values": mse_values},
    }
    return metrics, plot_data


def compute_fragmentation(
    nn_intervals: np.ndarray,
    config: Config = default_config,
) -> FragmentationHRV:
    """
    Compute heart rate fragmentation indices.

    An inflection point is a beat where the sign of successive NN
    differences changes (a zero difference counts as a change); the last
    difference always closes a segment. Segments are the runs of
    differences between inflection points.

    Returns
    -------
    FragmentationHRV
        All NaN for fewer than 3 intervals.
    """
    nn = np.asarray(nn_intervals, dtype=np.float64)
    if nn.size < 3:
        return FragmentationHRV.empty()

    delta = np.diff(nn)
    inflection = np.append(delta[:-1] * delta[1:] <= 0, True)
    ip_idx = np.flatnonzero(inflection)
    segment_lengths = np.diff(np.insert(ip_idx, 0, -1))
    total = float(np.sum(segment_lengths))

    # Alternation segments: at least 4 consecutive segments of length 1
    in_alternation = 0
    run = 0
    for length in np.append(segment_lengths, 0):
        if length == 1:
            run += 1
            continue
        if run >= 4:
            in_alternation += run
        run = 0

    return FragmentationHRV(
        pip=float(ip_idx.size / nn.size * 100.0),
        ials=float(1.0 / np.mean(segment_lengths)),
        pss=float(np.sum(segment_lengths[segment_lengths < 3]) / total * 100.0),
        pas=float(in_alternation / total * 100.0),
    )
