"""
Tests for window planning.

Validates:
    1. Window length and count arithmetic (including the 1-hour / 10-minute case)
    2. Windows partition the covered samples without gaps or overlap
    3. Offset / limit handling and the invalid offset error
"""

import math

import pytest

from windowed_hrv.errors import InvalidOffsetError
from windowed_hrv.windows import SignalDescriptor, format_duration, plan_windows


HOUR_AT_360 = SignalDescriptor(sampling_rate_hz=360.0, total_samples=1_296_000, selected_channel=0)


class TestWindowArithmetic:
    """Window length / count from the signal and the requested minutes."""

    def test_ten_minute_windows_of_one_hour(self):
        """One hour at 360 Hz in 10 minute windows gives 6 windows of 216000 samples."""
        plan = plan_windows(HOUR_AT_360, window_minutes=10)
        assert plan.window_length_samples == 216_000
        assert plan.total_window_count == 6
        assert (plan.first_index, plan.last_index) == (0, 5)

    @pytest.mark.parametrize("fs,n", [(360.0, 1_296_000), (250.0, 1), (128.0, 12_345), (1000.0, 7)])
    def test_unbounded_window_is_whole_signal(self, fs, n):
        plan = plan_windows(SignalDescriptor(fs, n, 0))
        assert plan.total_window_count == 1
        assert plan.window_length_samples == n
        assert plan.window_count == 1

    def test_window_longer_than_signal_is_clipped(self):
        plan = plan_windows(HOUR_AT_360, window_minutes=90)
        assert plan.window_length_samples == HOUR_AT_360.total_samples
        assert plan.total_window_count == 1

    def test_trailing_partial_window_is_discarded(self):
        """65 minutes in 10 minute windows: 6 windows, the last 5 minutes unused."""
        signal = SignalDescriptor(360.0, 65 * 60 * 360, 0)
        plan = plan_windows(signal, window_minutes=10)
        assert plan.total_window_count == 6
        last_start, last_end = plan.sample_range(plan.last_index)
        assert last_end == 6 * 216_000
        assert last_end < signal.total_samples

    def test_fractional_minutes(self):
        plan = plan_windows(SignalDescriptor(250.0, 250 * 300, 0), window_minutes=0.5)
        assert plan.window_length_samples == 7500
        assert plan.total_window_count == 10


class TestWindowPartition:
    """Sample ranges of consecutive windows."""

    @pytest.mark.parametrize("minutes", [1, 2.5, 7, 10, 60])
    def test_ranges_are_contiguous_equal_and_gap_free(self, minutes):
        plan = plan_windows(HOUR_AT_360, window_minutes=minutes)
        ranges = [plan.sample_range(i) for i in range(plan.total_window_count)]

        assert ranges[0][0] == 1
        assert ranges[-1][1] == plan.total_window_count * plan.window_length_samples
        for (s0, e0), (s1, e1) in zip(ranges, ranges[1:]):
            assert s1 == e0 + 1
            assert e1 - s1 == e0 - s0 == plan.window_length_samples - 1

    def test_sample_range_is_one_based_inclusive(self):
        plan = plan_windows(HOUR_AT_360, window_minutes=10)
        assert plan.sample_range(0) == (1, 216_000)
        assert plan.sample_range(1) == (216_001, 432_000)


class TestOffsetAndLimit:
    """Selection of the windows to process."""

    def test_offset_and_limit_select_second_and_third_window(self):
        plan = plan_windows(HOUR_AT_360, window_minutes=10, offset=1, limit=2)
        assert list(plan.indices()) == [1, 2]
        assert plan.window_count == 2

    def test_limit_is_clamped_to_available_windows(self):
        plan = plan_windows(HOUR_AT_360, window_minutes=10, offset=4, limit=100)
        assert list(plan.indices()) == [4, 5]

    def test_unbounded_limit(self):
        plan = plan_windows(HOUR_AT_360, window_minutes=10, offset=2, limit=math.inf)
        assert list(plan.indices()) == [2, 3, 4, 5]

    def test_offset_equal_to_window_count_fails(self):
        with pytest.raises(InvalidOffsetError) as excinfo:
            plan_windows(HOUR_AT_360, window_minutes=10, offset=6)
        err = excinfo.value
        assert err.offset == 6
        assert err.total_window_count == 6
        assert err.window_length_samples == 216_000
        assert "offset=6" in str(err)
        assert "total_window_count=6" in str(err)

    def test_offset_beyond_window_count_fails(self):
        with pytest.raises(InvalidOffsetError):
            plan_windows(HOUR_AT_360, window_minutes=10, offset=60)

    def test_last_window_offset_gives_one_window(self):
        plan = plan_windows(HOUR_AT_360, window_minutes=10, offset=5)
        assert list(plan.indices()) == [5]

    def test_last_window_offset_with_short_remainder(self):
        """Offset at the last whole window with a partial window after it."""
        signal = SignalDescriptor(360.0, 6 * 216_000 + 1000, 0)
        plan = plan_windows(signal, window_minutes=10, offset=5, limit=3)
        assert list(plan.indices()) == [5]
        assert plan.sample_range(5) == (5 * 216_000 + 1, 6 * 216_000)
        with pytest.raises(InvalidOffsetError):
            plan_windows(signal, window_minutes=10, offset=6)

    def test_unbounded_window_with_nonzero_offset_fails(self):
        with pytest.raises(InvalidOffsetError):
            plan_windows(HOUR_AT_360, offset=1)


class TestFormatDuration:

    def test_one_hour(self):
        assert format_duration(3600.0) == "01:00:00.000"

    def test_milliseconds(self):
        assert format_duration(65.25) == "00:01:05.250"
