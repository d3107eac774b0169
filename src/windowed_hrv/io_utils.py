"""
I/O utilities for the windowed HRV pipeline.

Handles:
- Record resolution (WFDB header/data pairs or CSV exports)
- ECG channel detection
- Reading a 1-based inclusive sample range of one channel
"""

from pathlib import Path
from dataclasses import dataclass
from typing import List, Optional, Tuple

import numpy as np
import pandas as pd

from .config import Config, default_config
from .errors import ConfigValidationError, NoChannelError, RecordReadError
from .windows import SignalDescriptor


# Channel names recognized as ECG leads (compared case-insensitively)
ECG_CHANNEL_NAMES = (
    "ecg", "ecg1", "ecg2", "mlii", "mli", "mliii", "ml2",
    "i", "ii", "iii", "avr", "avl", "avf",
    "v", "v1", "v2", "v3", "v4", "v5", "v6",
)
ECG_NAME_FRAGMENTS = ("ecg", "exga")


@dataclass
class RecordInfo:
    """Header-level information about a record."""
    path: Path                 # WFDB record base path or CSV file path
    fmt: str                   # "wfdb" or "csv"
    channel_names: List[str]
    fs: float
    n_samples: int
    time_column: Optional[str] = None  # CSV only


def _is_time_column(name: str) -> bool:
    low = name.lower()
    return "time" in low


def is_ecg_channel_name(name: str) -> bool:
    low = str(name).strip().lower()
    if low in ECG_CHANNEL_NAMES:
        return True
    return any(fragment in low for fragment in ECG_NAME_FRAGMENTS)


def _resolve_record_path(record: str) -> Tuple[Path, str]:
    path = Path(record)
    if path.suffix.lower() == ".csv":
        if not path.exists():
            raise RecordReadError(f"Record file not found: {path}")
        return path, "csv"
    if path.suffix.lower() in (".hea", ".dat"):
        path = path.with_suffix("")
    if path.with_name(path.name + ".hea").exists():
        return path, "wfdb"
    if path.with_name(path.name + ".csv").exists():
        return path.with_name(path.name + ".csv"), "csv"
    raise RecordReadError(f"Record not found: {record} (expected {record}.hea or {record}.csv)")


def _csv_channel_names(csv_path: Path, record: str) -> List[str]:
    """Signal column names of a CSV record, from its header line only."""
    try:
        columns = list(pd.read_csv(csv_path, nrows=0).columns)
    except (OSError, ValueError, pd.errors.ParserError) as e:
        raise RecordReadError(f"Could not read CSV record {record}: {e}") from e
    return [c for c in columns if not _is_time_column(c)]


def _csv_sampling_rate(csv_path: Path, time_column: Optional[str], config: Config) -> float:
    if time_column is None:
        return float(config.SAMPLING_RATE)
    head = pd.read_csv(csv_path, usecols=[time_column], nrows=2000)
    t = pd.to_numeric(head[time_column], errors="coerce").to_numpy(dtype=np.float64)
    dt = np.diff(t[np.isfinite(t)])
    dt = dt[dt > 0]
    if dt.size == 0:
        print(f"  ⚠ Warning: time column '{time_column}' is not numeric; "
              f"using SAMPLING_RATE={config.SAMPLING_RATE}")
        return float(config.SAMPLING_RATE)
    return float(1.0 / np.median(dt))


def read_record_info(record: str, config: Config = default_config) -> RecordInfo:
    """
    Read header information of a record.

    Parameters
    ----------
    record : str
        WFDB record name (without extension) or CSV path.
    config : Config
        Pipeline configuration (SAMPLING_RATE fallback for CSV).

    Raises
    ------
    RecordReadError
        If the record does not exist or cannot be parsed.
    """
    path, fmt = _resolve_record_path(record)

    if fmt == "wfdb":
        import wfdb

        try:
            header = wfdb.rdheader(str(path))
        except Exception as e:
            raise RecordReadError(f"Could not read WFDB header of {record}: {e}") from e
        return RecordInfo(
            path=path,
            fmt=fmt,
            channel_names=list(header.sig_name or []),
            fs=float(header.fs),
            n_samples=int(header.sig_len),
        )

    try:
        columns = list(pd.read_csv(path, nrows=0).columns)
        time_column = next((c for c in columns if _is_time_column(c) and "stamp" not in c.lower()), None)
        first_column = columns[0] if columns else None
        n_samples = len(pd.read_csv(path, usecols=[first_column])) if first_column else 0
    except (OSError, ValueError, pd.errors.ParserError) as e:
        raise RecordReadError(f"Could not read CSV record {record}: {e}") from e

    return RecordInfo(
        path=path,
        fmt=fmt,
        channel_names=[c for c in columns if not _is_time_column(c)],
        fs=_csv_sampling_rate(path, time_column, config),
        n_samples=n_samples,
        time_column=time_column,
    )


def get_signal_channel(
    record: str,
    config: Config = default_config,
) -> Tuple[Optional[int], float, int]:
    """
    Find the default ECG channel of a record.

    Returns
    -------
    Tuple[Optional[int], float, int]
        (channel index or None, sampling rate in Hz, number of samples)
    """
    info = read_record_info(record, config)
    channel = next((i for i, name in enumerate(info.channel_names) if is_ecg_channel_name(name)), None)
    return channel, info.fs, info.n_samples


def read_signal_info(
    record: str,
    ecg_channel: Optional[int] = None,
    config: Config = default_config,
) -> SignalDescriptor:
    """
    Describe the ECG channel of a record that the pipeline will analyze.

    Raises
    ------
    NoChannelError
        If no channel was given and none could be detected.
    ConfigValidationError
        If the given channel does not exist in the record.
    """
    info = read_record_info(record, config)
    if ecg_channel is None:
        ecg_channel = next(
            (i for i, name in enumerate(info.channel_names) if is_ecg_channel_name(name)), None
        )
        if ecg_channel is None:
            raise NoChannelError(record)
    elif ecg_channel >= len(info.channel_names):
        raise ConfigValidationError(
            f"ecg_channel={ecg_channel} is out of range; record {record} "
            f"has {len(info.channel_names)} channel(s)"
        )

    if info.n_samples <= 0:
        raise RecordReadError(f"Record {record} contains no samples")

    return SignalDescriptor(
        sampling_rate_hz=info.fs,
        total_samples=info.n_samples,
        selected_channel=int(ecg_channel),
    )


def read_ecg_window(
    record: str,
    channel: int,
    start: int,
    end: int,
    config: Config = default_config,
    fs: Optional[float] = None,
) -> Tuple[np.ndarray, np.ndarray, float]:
    """
    Read samples ``start``..``end`` (1-based, inclusive) of one channel.

    Parameters
    ----------
    fs : float, optional
        Sampling rate already known from ``read_signal_info``. When given,
        only the record path (and the CSV header line) is resolved; the
        full header scan of ``read_record_info`` is skipped.

    Returns
    -------
    Tuple[np.ndarray, np.ndarray, float]
        (ECG in mV, absolute time in seconds, sampling rate)
    """
    if fs is None:
        info = read_record_info(record, config)
        path, fmt, channel_names, fs = info.path, info.fmt, info.channel_names, info.fs
    else:
        path, fmt = _resolve_record_path(record)
        channel_names = _csv_channel_names(path, record) if fmt == "csv" else []
    n_read = end - start + 1

    if fmt == "wfdb":
        import wfdb

        try:
            signals, _ = wfdb.rdsamp(str(path), sampfrom=start - 1, sampto=end, channels=[channel])
        except Exception as e:
            raise RecordReadError(f"Could not read samples {start}-{end} of {record}: {e}") from e
        ecg = np.asarray(signals[:, 0], dtype=np.float64)
    else:
        column = channel_names[channel]
        try:
            df = pd.read_csv(
                path,
                usecols=[column],
                skiprows=range(1, start),
                nrows=n_read,
            )
        except (OSError, ValueError, pd.errors.ParserError) as e:
            raise RecordReadError(f"Could not read samples {start}-{end} of {record}: {e}") from e
        ecg = df[column].to_numpy(dtype=np.float64, copy=True)
        # Unit conversion: µV → mV
        if "uV" in column:
            ecg = ecg / 1000.0

    # Handle NaN values
    if np.any(np.isnan(ecg)):
        nan_count = int(np.sum(np.isnan(ecg)))
        print(f"  ⚠ Warning: {nan_count} NaN values found, interpolating...")
        ecg = (
            pd.Series(ecg)
            .interpolate(method="linear")
            .bfill()
            .ffill()
            .to_numpy(dtype=np.float64)
        )

    time = (np.arange(ecg.size, dtype=np.float64) + (start - 1)) / fs
    return ecg, time, float(fs)
