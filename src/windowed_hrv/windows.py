"""
Window planning: split a recording into equal-length analysis windows.

Sample numbers exposed by this module are 1-based and inclusive, matching
the record readers in ``io_utils``.
"""

import math
from dataclasses import dataclass
from typing import Iterator, Tuple

from .errors import InvalidOffsetError


@dataclass(frozen=True)
class SignalDescriptor:
    """Shape of the ECG channel being analyzed."""
    sampling_rate_hz: float
    total_samples: int
    selected_channel: int

    @property
    def duration_seconds(self) -> float:
        """Total duration in seconds."""
        return self.total_samples / self.sampling_rate_hz


@dataclass(frozen=True)
class WindowPlan:
    """Concrete, bounds-checked set of windows to process."""
    window_length_samples: int
    total_window_count: int
    first_index: int   # 0-based
    last_index: int    # 0-based, inclusive

    @property
    def window_count(self) -> int:
        """Number of windows that will be processed."""
        return self.last_index - self.first_index + 1

    def indices(self) -> Iterator[int]:
        return iter(range(self.first_index, self.last_index + 1))

    def sample_range(self, index: int) -> Tuple[int, int]:
        """1-based inclusive sample range of window ``index``."""
        start = index * self.window_length_samples + 1
        return start, start + self.window_length_samples - 1


def plan_windows(
    signal: SignalDescriptor,
    window_minutes: float = math.inf,
    offset: int = 0,
    limit: float = math.inf,
) -> WindowPlan:
    """
    Compute the window plan for a signal.

    Parameters
    ----------
    signal : SignalDescriptor
        Sampling rate and length of the selected channel.
    window_minutes : float
        Requested window length. ``inf`` means the whole signal. A request
        longer than the signal is clipped to the signal duration.
    offset : int
        Number of windows to skip from the start.
    limit : float
        Maximal number of windows to process after the offset.

    Returns
    -------
    WindowPlan

    Raises
    ------
    InvalidOffsetError
        If ``offset`` is not smaller than the number of whole windows.
    """
    window_seconds = min(window_minutes * 60.0, signal.duration_seconds)
    # Rounding guards against 599.9999 * 360 style float error
    window_samples = int(math.floor(round(window_seconds * signal.sampling_rate_hz, 6)))
    window_samples = max(1, min(window_samples, signal.total_samples))

    # Trailing partial window is discarded
    total_window_count = signal.total_samples // window_samples

    if offset >= total_window_count:
        raise InvalidOffsetError(offset, total_window_count, window_samples, window_minutes)

    last_index = int(min(total_window_count, offset + limit)) - 1

    return WindowPlan(
        window_length_samples=window_samples,
        total_window_count=total_window_count,
        first_index=offset,
        last_index=last_index,
    )


def format_duration(seconds: float) -> str:
    """Format a duration as HH:MM:SS.mmm."""
    whole = int(math.floor(seconds))
    ms = int(math.floor((seconds - whole) * 1000))
    return f"{whole // 3600:02d}:{(whole // 60) % 60:02d}:{whole % 60:02d}.{ms:03d}"
