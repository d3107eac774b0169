"""Shared fixtures: synthetic RR/ECG data and fake pipeline collaborators."""

import matplotlib

matplotlib.use("Agg")

from typing import List, Optional

import numpy as np
import pandas as pd
import pytest

from windowed_hrv.pipeline import PipelineStages
from windowed_hrv.rr import RRExtraction
from windowed_hrv.windows import SignalDescriptor


def make_rr(n: int = 300, seed: int = 0, mean_ms: float = 800.0) -> np.ndarray:
    """RR intervals (ms) with respiratory modulation and a little noise."""
    rng = np.random.default_rng(seed)
    t = np.cumsum(np.full(n, mean_ms / 1000.0))
    return mean_ms + 40.0 * np.sin(2 * np.pi * 0.25 * t) + 15.0 * np.sin(2 * np.pi * 0.1 * t) \
        + rng.normal(0.0, 8.0, n)


def make_ecg(fs: float, duration_s: float, rr_s: float = 0.8, seed: int = 0) -> np.ndarray:
    """Synthetic ECG (mV): Gaussian R waves every ``rr_s`` seconds plus noise and drift."""
    rng = np.random.default_rng(seed)
    t = np.arange(int(round(fs * duration_s))) / fs
    ecg = 0.05 * np.sin(2 * np.pi * 0.2 * t) + rng.normal(0.0, 0.01, t.size)
    for beat in np.arange(0.4, duration_s, rr_s):
        ecg += 1.2 * np.exp(-0.5 * ((t - beat) / 0.012) ** 2)
    return ecg


class FakeRecord:
    """
    In-memory stand-in for record I/O and RR extraction.

    Each window gets its own synthetic RR sequence; windows listed in
    ``empty_windows`` (0-based) yield no RR intervals at all.
    """

    def __init__(
        self,
        fs: float = 360.0,
        total_samples: int = 1_296_000,
        channel: Optional[int] = 0,
        empty_windows=(),
        n_rr: int = 200,
    ):
        self.fs = fs
        self.total_samples = total_samples
        self.channel = channel
        self.empty_windows = set(empty_windows)
        self.n_rr = n_rr
        self.extract_calls: List[tuple] = []
        self.extract_fs: List[Optional[float]] = []
        self.stats_calls = 0

    def signal_info(self, record, ecg_channel, config):
        channel = ecg_channel if ecg_channel is not None else self.channel
        if channel is None:
            from windowed_hrv.errors import NoChannelError
            raise NoChannelError(record)
        return SignalDescriptor(self.fs, self.total_samples, channel)

    def extract_rr(self, record, channel, start, end, config, fs=None):
        self.extract_calls.append((start, end))
        self.extract_fs.append(fs)
        window_len = end - start + 1
        index = (start - 1) // window_len
        if index in self.empty_windows:
            rri = np.array([])
            trr = np.array([])
        else:
            rri = make_rr(n=self.n_rr, seed=index)
            trr = (start - 1) / self.fs + np.cumsum(rri) / 1000.0
        return RRExtraction(rri=rri, trr=trr, plot_data={"name": "ECG R-peaks", "rri": rri})

    def table_stats(self, metrics: pd.DataFrame) -> pd.DataFrame:
        from windowed_hrv.stats import table_stats
        self.stats_calls += 1
        return table_stats(metrics)

    def stages(self, **overrides) -> PipelineStages:
        kwargs = dict(
            signal_info=self.signal_info,
            extract_rr=self.extract_rr,
            table_stats=self.table_stats,
        )
        kwargs.update(overrides)
        return PipelineStages(**kwargs)


@pytest.fixture
def rr_ms() -> np.ndarray:
    return make_rr()


@pytest.fixture
def fake_record() -> FakeRecord:
    return FakeRecord()


@pytest.fixture
def csv_record(tmp_path):
    """Two-minute, two-channel CSV record at 250 Hz (channel 1 is the ECG)."""
    fs = 250.0
    ecg = make_ecg(fs, 120.0)
    df = pd.DataFrame({
        "time": np.arange(ecg.size) / fs,
        "resp": np.sin(np.arange(ecg.size) / fs),
        "ECG": ecg,
    })
    path = tmp_path / "synthetic.csv"
    df.to_csv(path, index=False)
    return path
