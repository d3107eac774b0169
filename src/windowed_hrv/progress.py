"""Timestamped progress messages for a pipeline run."""

import sys
import time
import warnings
from typing import Optional, TextIO

from .errors import EmptyWindowCondition


class ProgressTimer:
    """
    Elapsed-time source and message formatter for one run.

    Created once at pipeline start and passed down the call chain, so every
    line carries the time since that start:

        [12.345] >> windowed_hrv: [3/6] Calculating nonlinear metrics...
    """

    def __init__(
        self,
        component: str = "windowed_hrv",
        stream: Optional[TextIO] = None,
        verbose: bool = True,
        clock=time.perf_counter,
    ):
        self.component = component
        self.stream = stream
        self.verbose = verbose
        self._clock = clock
        self._t0 = clock()

    @property
    def elapsed(self) -> float:
        return self._clock() - self._t0

    def format(self, message: str) -> str:
        return f"[{self.elapsed:.3f}] >> {self.component}: {message}"

    def log(self, message: str) -> None:
        if self.verbose:
            print(self.format(message), file=self.stream or sys.stderr)

    def warn_empty_window(self, window_number: int, total_windows: int) -> None:
        warnings.warn(
            self.format(f"[{window_number}/{total_windows}] No R-peaks detected in window, skipping"),
            EmptyWindowCondition,
            stacklevel=3,
        )
