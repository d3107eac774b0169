"""
Tests for the windowed pipeline driven by fake record I/O.

Validates:
    1. Which windows are processed and how rows are labelled
    2. Skipping of windows without NN intervals
    3. Transform function handling
    4. Fatal errors (channel, offset, options) and progress output
"""

import io
import re
import warnings

import numpy as np
import pandas as pd
import pytest

from conftest import FakeRecord
from windowed_hrv.errors import (
    ConfigValidationError,
    EmptyWindowCondition,
    InvalidOffsetError,
    NoChannelError,
)
from windowed_hrv.pipeline import WindowPlotData, run_windowed_hrv
from windowed_hrv.results import metric_columns
from windowed_hrv.stats import STAT_ROWS


def _run(fake: FakeRecord, **options):
    stream = io.StringIO()
    result = run_windowed_hrv("db/test/100", stages=fake.stages(), stream=stream, **options)
    return result, stream.getvalue()


class TestWindowSelection:
    """Rows and plot data for the selected windows."""

    def test_all_windows_processed(self, fake_record):
        result, _ = _run(fake_record, window_minutes=10)
        assert list(result.metrics.index) == [1, 2, 3, 4, 5, 6]
        assert sorted(result.plot_datas) == [1, 2, 3, 4, 5, 6]
        assert result.plan.total_window_count == 6

    def test_offset_and_limit(self, fake_record):
        """Offset 1, limit 2: the 2nd and 3rd ten-minute windows."""
        result, _ = _run(fake_record, window_minutes=10, window_index_offset=1, window_index_limit=2)
        assert list(result.metrics.index) == [2, 3]
        assert fake_record.extract_calls == [(216_001, 432_000), (432_001, 648_000)]
        assert sorted(result.plot_datas) == [2, 3]

    def test_whole_signal_single_window(self, fake_record):
        result, _ = _run(fake_record)
        assert list(result.metrics.index) == [1]
        assert fake_record.extract_calls == [(1, 1_296_000)]

    def test_last_window_offset(self, fake_record):
        result, _ = _run(fake_record, window_minutes=10, window_index_offset=5)
        assert list(result.metrics.index) == [6]

    def test_metrics_columns_and_description(self, fake_record):
        result, _ = _run(fake_record, window_minutes=30)
        assert list(result.metrics.columns) == metric_columns()
        assert result.metrics.index.name == "window"
        assert result.metrics.attrs["description"] == "HRV metrics for db/test/100"
        assert (result.metrics["NN"] <= result.metrics["RR"]).all()
        assert (result.metrics["RR"] == 200).all()

    def test_plot_data_bundles(self, fake_record):
        result, _ = _run(fake_record, window_minutes=30)
        bundle = result.plot_datas[1]
        assert isinstance(bundle, WindowPlotData)
        assert set(bundle.filtrr) == {"filtrr", "poincare"}
        assert {"dfa", "beta", "mse", "poincare"} <= set(bundle.nl)
        assert "psd" in bundle.freq and "bin_edges" in bundle.time

    def test_stats_built_once(self, fake_record):
        result, _ = _run(fake_record, window_minutes=10)
        assert fake_record.stats_calls == 1
        assert list(result.stats.index) == list(STAT_ROWS)
        assert list(result.stats.columns) == list(result.metrics.columns)

    def test_sampling_rate_passed_to_extraction(self, fake_record):
        _run(fake_record, window_minutes=20)
        assert fake_record.extract_fs == [360.0, 360.0, 360.0]

    def test_deterministic(self):
        a, _ = _run(FakeRecord(), window_minutes=20)
        b, _ = _run(FakeRecord(), window_minutes=20)
        pd.testing.assert_frame_equal(a.metrics, b.metrics)
        pd.testing.assert_frame_equal(a.stats, b.stats)
        assert list(a.plot_datas) == list(b.plot_datas)


class TestEmptyWindows:
    """Windows whose filtered interval sequence is empty."""

    def test_empty_window_is_skipped_with_warning(self):
        fake = FakeRecord(empty_windows={2})
        with pytest.warns(EmptyWindowCondition, match=r"\[3/6\]"):
            result, _ = _run(fake, window_minutes=10)
        assert list(result.metrics.index) == [1, 2, 4, 5, 6]
        assert 3 not in result.plot_datas
        assert result.skipped_windows == [3]
        # windows after the empty one are still processed
        assert len(fake.extract_calls) == 6

    def test_row_count_is_selected_minus_skipped(self):
        fake = FakeRecord(empty_windows={1, 3})
        with pytest.warns(EmptyWindowCondition):
            result, _ = _run(fake, window_minutes=10, window_index_offset=1, window_index_limit=4)
        assert list(result.metrics.index) == [3, 5]
        assert len(result.metrics) == 4 - 2

    def test_filter_removing_everything_skips_window(self, fake_record):
        from windowed_hrv.rr import RRFilterResult

        def reject_all(rri, trr, config):
            return RRFilterResult(
                nni=np.array([]), tnn=np.array([]),
                plot_data={"filtrr": {"name": "x", "n_rr": len(rri)}, "poincare": {"name": "p"}},
            )

        stream = io.StringIO()
        with pytest.warns(EmptyWindowCondition):
            result = run_windowed_hrv("rec", stages=fake_record.stages(filter_rr=reject_all),
                                      stream=stream, window_minutes=30)
        assert len(result.metrics) == 0
        assert list(result.metrics.columns) == metric_columns()
        assert result.plot_datas == {}
        assert result.stats.loc["Mean"].isna().all()

    def test_all_windows_present_means_no_warning(self, fake_record):
        with warnings.catch_warnings():
            warnings.simplefilter("error", EmptyWindowCondition)
            _run(fake_record, window_minutes=10)


class TestShortWindows:
    """Windows with fewer intervals than the moving-average filter span."""

    def test_short_windows_produce_rows(self):
        fake = FakeRecord(n_rr=12)
        with warnings.catch_warnings():
            warnings.simplefilter("error", EmptyWindowCondition)
            result, _ = _run(fake, window_minutes=30)
        assert list(result.metrics.index) == [1, 2]
        assert (result.metrics["RR"] == 12).all()
        assert ((result.metrics["NN"] > 0) & (result.metrics["NN"] <= 12)).all()


class TestTransform:
    """Transform function applied to NN intervals before the metrics."""

    def test_transform_does_not_change_counts(self):
        plain, _ = _run(FakeRecord(), window_minutes=20)
        scaled, log = _run(FakeRecord(), window_minutes=20, transform_fn=lambda nn: nn * 2.0)
        pd.testing.assert_series_equal(plain.metrics["RR"], scaled.metrics["RR"])
        pd.testing.assert_series_equal(plain.metrics["NN"], scaled.metrics["NN"])
        np.testing.assert_allclose(scaled.metrics["time_mean_nn"], 2 * plain.metrics["time_mean_nn"])
        assert "Applying transform function" in log

    def test_transform_receives_a_copy(self):
        fake = FakeRecord()
        seen = []

        def mutate(nn):
            seen.append(nn)
            nn[:] = 1000.0
            return nn

        result, _ = _run(fake, window_minutes=60, transform_fn=mutate)
        assert result.plot_datas[1].filtrr["filtrr"]["nni"] is not seen[0]
        assert not np.all(result.plot_datas[1].filtrr["filtrr"]["nni"] == 1000.0)


class TestFatalErrors:
    """Errors that abort the run."""

    def test_invalid_offset(self, fake_record):
        with pytest.raises(InvalidOffsetError, match="offset=6.*total_window_count=6"):
            _run(fake_record, window_minutes=10, window_index_offset=6)
        assert fake_record.extract_calls == []

    def test_no_channel(self):
        with pytest.raises(NoChannelError, match="db/test/100"):
            _run(FakeRecord(channel=None))

    def test_explicit_channel_used_when_none_detected(self):
        fake = FakeRecord(channel=None)
        result, _ = _run(fake, ecg_channel=1)
        assert result.signal.selected_channel == 1

    def test_invalid_options_fail_before_reading(self, fake_record):
        with pytest.raises(ConfigValidationError):
            _run(fake_record, window_minutes=-1)
        assert fake_record.extract_calls == []

    def test_collaborator_errors_propagate(self, fake_record):
        def broken(nn, config):
            raise RuntimeError("spectrum failed")

        with pytest.raises(RuntimeError, match="spectrum failed"):
            run_windowed_hrv("rec", stages=fake_record.stages(frequency_domain=broken),
                             stream=io.StringIO(), window_minutes=10)


class TestProgressOutput:
    """Timestamped progress lines."""

    LINE = re.compile(r"^\[\d+\.\d{3}\] >> windowed_hrv: .+$")

    def test_line_format(self, fake_record):
        _, log = _run(fake_record, window_minutes=30)
        lines = log.strip().splitlines()
        assert lines
        assert all(self.LINE.match(line) for line in lines)
        assert "Signal duration: 01:00:00.000" in log
        assert lines[-1].endswith("Finished processing record db/test/100.")

    def test_stage_order_per_window(self, fake_record):
        _, log = _run(fake_record, window_minutes=30, window_index_limit=1)
        stages = [
            "Analyzing window 1 of 2",
            "[1/2] Detecting QRS and RR intervals",
            "[1/2] Filtering RR intervals",
            "[1/2] Calculating time-domain metrics",
            "[1/2] Calculating frequency-domain metrics",
            "[1/2] Calculating nonlinear metrics",
            "[1/2] Calculating fragmentation metrics",
            "Building statistics table",
        ]
        positions = [log.index(s) for s in stages]
        assert positions == sorted(positions)

    def test_filtered_out_count_is_reported(self, fake_record):
        from windowed_hrv.rr import RRFilterResult

        def drop_first_five(rri, trr, config):
            return RRFilterResult(
                nni=rri[5:], tnn=trr[5:],
                plot_data={"filtrr": {"name": "x", "n_rr": len(rri)}, "poincare": {"name": "p"}},
            )

        stream = io.StringIO()
        run_windowed_hrv("rec", stages=fake_record.stages(filter_rr=drop_first_five),
                         stream=stream, window_minutes=60)
        assert "[1/1] 195 NN intervals, 5 RR intervals were filtered out" in stream.getvalue()

    def test_quiet_run(self, fake_record):
        stream = io.StringIO()
        run_windowed_hrv("rec", stages=fake_record.stages(), stream=stream, verbose=False)
        assert stream.getvalue() == ""


class TestDisplayMode:
    """compute_and_display prints the tables."""

    def test_tables_printed(self, fake_record, capsys):
        stream = io.StringIO()
        run_windowed_hrv("rec", stages=fake_record.stages(), stream=stream,
                         window_minutes=20, mode="compute_and_display", plot=False)
        out = capsys.readouterr().out
        assert "HRV metrics for rec" in out
        assert "Mean" in out and "Median" in out
        assert "Displaying Results" in stream.getvalue()

    def test_compute_mode_prints_nothing(self, fake_record, capsys):
        run_windowed_hrv("rec", stages=fake_record.stages(), stream=io.StringIO(), window_minutes=20)
        assert capsys.readouterr().out == ""
