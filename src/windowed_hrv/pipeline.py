"""
Windowed HRV pipeline.

Splits an ECG record into windows and runs, per window:
1. RR interval extraction
2. RR filtering (windows without NN intervals are skipped with a warning)
3. Optional transform of the NN intervals
4. Time-domain, frequency-domain, nonlinear and fragmentation metrics

The window rows are collected into one metrics table, from which a table of
summary statistics is computed once at the end of the run.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional, TextIO, Tuple

import numpy as np
import pandas as pd

from .config import Config
from .errors import NoChannelError
from .hrv import TimeDomainHRV, compute_time_domain
from .hrv_frequency import FrequencyDomainHRV, compute_frequency_domain
from .io_utils import read_signal_info
from .nonlinear import FragmentationHRV, NonlinearHRV, compute_fragmentation, compute_nonlinear
from .options import RunConfig, resolve_params, resolve_run_config
from .progress import ProgressTimer
from .results import IntervalCounts, MetricsTableBuilder, WindowRow
from .rr import RRExtraction, RRFilterResult, extract_rr, filter_rr
from .stats import table_stats
from .windows import SignalDescriptor, WindowPlan, format_duration, plan_windows


@dataclass
class PipelineStages:
    """Collaborators invoked by the pipeline; replace any of them for testing."""
    signal_info: Callable[[str, Optional[int], Config], SignalDescriptor] = read_signal_info
    extract_rr: Callable[..., RRExtraction] = extract_rr
    filter_rr: Callable[[np.ndarray, np.ndarray, Config], RRFilterResult] = filter_rr
    time_domain: Callable[[np.ndarray, Config], Tuple[TimeDomainHRV, Any]] = compute_time_domain
    frequency_domain: Callable[[np.ndarray, Config], Tuple[FrequencyDomainHRV, Any]] = compute_frequency_domain
    nonlinear: Callable[[np.ndarray, Config], Tuple[NonlinearHRV, Any]] = compute_nonlinear
    fragmentation: Callable[[np.ndarray, Config], FragmentationHRV] = compute_fragmentation
    table_stats: Callable[[pd.DataFrame], pd.DataFrame] = table_stats


def default_stages() -> PipelineStages:
    return PipelineStages()


@dataclass
class WindowPlotData:
    """Plot bundles produced by the stages of one window."""
    ecgrr: Any
    filtrr: Any
    time: Any
    freq: Any
    nl: Any


@dataclass
class HRVRunResult:
    """Outputs of one pipeline run."""
    record: str
    metrics: pd.DataFrame
    stats: pd.DataFrame
    plot_datas: Dict[int, WindowPlotData]   # window number (1-based) -> bundles
    plan: WindowPlan
    signal: SignalDescriptor
    config: Config
    run_config: RunConfig
    skipped_windows: list = field(default_factory=list)


def _process_window(
    index: int,
    record: str,
    signal: SignalDescriptor,
    plan: WindowPlan,
    run_config: RunConfig,
    config: Config,
    stages: PipelineStages,
    timer: ProgressTimer,
) -> Optional[Tuple[WindowRow, WindowPlotData]]:
    """Run the stage sequence on one window; None if it has no NN intervals."""
    tag = f"[{index + 1}/{plan.total_window_count}]"
    start, end = plan.sample_range(index)

    timer.log(f"{tag} Detecting QRS and RR intervals...")
    rr = stages.extract_rr(record, signal.selected_channel, start, end, config,
                           fs=signal.sampling_rate_hz)

    timer.log(f"{tag} Filtering RR intervals...")
    nn = stages.filter_rr(rr.rri, rr.trr, config)

    if len(nn.nni) == 0:
        timer.warn_empty_window(index + 1, plan.total_window_count)
        return None

    timer.log(f"{tag} {len(nn.nni)} NN intervals, "
              f"{nn.n_removed} RR intervals were filtered out")

    counts = IntervalCounts(rr=len(rr.rri), nn=len(nn.nni))

    nni = nn.nni
    if run_config.transform_fn is not None:
        name = getattr(run_config.transform_fn, "__name__", repr(run_config.transform_fn))
        timer.log(f"{tag} Applying transform function {name}...")
        nni = np.asarray(run_config.transform_fn(np.array(nni, copy=True)), dtype=np.float64)

    timer.log(f"{tag} Calculating time-domain metrics...")
    hrv_td, pd_time = stages.time_domain(nni, config)

    timer.log(f"{tag} Calculating frequency-domain metrics...")
    hrv_fd, pd_freq = stages.frequency_domain(nni, config)

    timer.log(f"{tag} Calculating nonlinear metrics...")
    hrv_nl, pd_nl = stages.nonlinear(nni, config)

    timer.log(f"{tag} Calculating fragmentation metrics...")
    hrv_frag = stages.fragmentation(nni, config)

    row = WindowRow(
        counts=counts,
        time_domain=hrv_td,
        frequency_domain=hrv_fd,
        nonlinear=hrv_nl,
        fragmentation=hrv_frag,
    )
    plot_data = WindowPlotData(
        ecgrr=rr.plot_data,
        filtrr=nn.plot_data,
        time=pd_time,
        freq=pd_freq,
        nl=pd_nl,
    )
    return row, plot_data


def run_windowed_hrv(
    record,
    *,
    stages: Optional[PipelineStages] = None,
    stream: Optional[TextIO] = None,
    verbose: bool = True,
    **options: Any,
) -> HRVRunResult:
    """
    Analyze the HRV of an ECG record, window by window.

    Parameters
    ----------
    record : str or path-like
        WFDB record name (without extension) or CSV file.
    stages : PipelineStages, optional
        Collaborators to use; defaults to ``default_stages()``.
    stream : TextIO, optional
        Destination of progress lines (default ``sys.stderr``).
    verbose : bool
        Emit progress lines. Skipped-window warnings are always issued.
    **options
        Run options, see ``options.resolve_run_config``:
        ``ecg_channel``, ``window_minutes``, ``window_index_offset``,
        ``window_index_limit``, ``params``, ``transform_fn``, ``plot``,
        ``mode``.

    Returns
    -------
    HRVRunResult
        Metrics table (one row per processed window, labelled with the
        1-based window number), statistics table and plot data keyed by
        window number.

    Raises
    ------
    ConfigValidationError
        Invalid options, before anything is read.
    NoChannelError
        No ECG channel given and none found in the record.
    InvalidOffsetError
        ``window_index_offset`` is not below the number of windows.
    """
    run_config = resolve_run_config(record, **options)
    config = resolve_params(run_config.params)
    stages = stages or default_stages()
    timer = ProgressTimer(stream=stream, verbose=verbose)
    record = run_config.record

    signal = stages.signal_info(record, run_config.ecg_channel, config)
    if signal is None or signal.selected_channel is None:
        raise NoChannelError(record)
    timer.log(f"Processing ECG signal from record {record} (ch. {signal.selected_channel})...")
    timer.log(f"Signal duration: {format_duration(signal.duration_seconds)} [HH:mm:ss.ms]")

    plan = plan_windows(
        signal,
        window_minutes=run_config.window_minutes,
        offset=run_config.window_index_offset,
        limit=run_config.window_index_limit,
    )

    builder = MetricsTableBuilder()
    plot_datas: Dict[int, WindowPlotData] = {}
    skipped = []

    for index in plan.indices():
        timer.log(f"Analyzing window {index + 1} of {plan.total_window_count}...")
        processed = _process_window(index, record, signal, plan, run_config, config, stages, timer)
        if processed is None:
            skipped.append(index + 1)
            continue
        row, plot_data = processed
        builder.append(index, row)
        plot_datas[index + 1] = plot_data

    metrics = builder.build(description=f"HRV metrics for {record}")

    timer.log("Building statistics table...")
    stats = stages.table_stats(metrics)

    result = HRVRunResult(
        record=record,
        metrics=metrics,
        stats=stats,
        plot_datas=plot_datas,
        plan=plan,
        signal=signal,
        config=config,
        run_config=run_config,
        skipped_windows=skipped,
    )

    if run_config.display or run_config.plot:
        from .presentation import present

        present(result, timer=timer, show_tables=run_config.display, plot=run_config.plot)

    timer.log(f"Finished processing record {record}.")
    return result
