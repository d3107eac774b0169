"""Exceptions and warning categories raised by the windowed HRV pipeline."""


class WindowedHRVError(Exception):
    """Base class for fatal pipeline errors."""


class ConfigValidationError(WindowedHRVError, ValueError):
    """A run option or analysis parameter is malformed or out of range."""


class NoChannelError(WindowedHRVError):
    """No ECG channel was specified and none could be detected in the record."""

    def __init__(self, record: str):
        self.record = record
        super().__init__(f"No ECG channel found in record {record}")


class InvalidOffsetError(WindowedHRVError, ValueError):
    """The requested window offset is beyond the last available window."""

    def __init__(self, offset: int, total_window_count: int,
                 window_length_samples: int, window_minutes: float):
        self.offset = offset
        self.total_window_count = total_window_count
        self.window_length_samples = window_length_samples
        self.window_minutes = window_minutes
        super().__init__(
            f"Invalid window index offset: was offset={offset}, but there are only "
            f"total_window_count={total_window_count} windows of "
            f"{window_length_samples} samples ({window_minutes:g} minutes requested)"
        )


class RecordReadError(WindowedHRVError, IOError):
    """The ECG record could not be read."""


class EmptyWindowCondition(UserWarning):
    """A window produced no NN intervals and was skipped."""
