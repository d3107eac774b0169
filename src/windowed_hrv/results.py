"""
Per-window result rows and the metrics table they are collected into.

Each metric family is a fixed-schema dataclass; a ``WindowRow`` is the
union of all of them, so the table columns are known from the type
definitions before any window is processed.
"""

from dataclasses import dataclass, fields
from typing import Any, Dict, List, Tuple

import pandas as pd

from .hrv import TimeDomainHRV
from .hrv_frequency import FrequencyDomainHRV
from .nonlinear import FragmentationHRV, NonlinearHRV


@dataclass
class IntervalCounts:
    """Number of intervals before and after filtering."""
    rr: int
    nn: int


# (column prefix, metric family) in table order
METRIC_FAMILIES: Tuple[Tuple[str, type], ...] = (
    ("time", TimeDomainHRV),
    ("freq", FrequencyDomainHRV),
    ("nl", NonlinearHRV),
    ("frag", FragmentationHRV),
)


def metric_columns() -> List[str]:
    """Column schema of the metrics table."""
    columns = ["RR", "NN"]
    for prefix, family in METRIC_FAMILIES:
        columns.extend(f"{prefix}_{f.name}" for f in fields(family))
    return columns


def metric_units() -> Dict[str, str]:
    units = {"RR": "n.u.", "NN": "n.u."}
    for prefix, family in METRIC_FAMILIES:
        units.update({f"{prefix}_{k}": v for k, v in family.UNITS.items()})
    return units


@dataclass
class WindowRow:
    """Metrics of one processed window."""
    counts: IntervalCounts
    time_domain: TimeDomainHRV
    frequency_domain: FrequencyDomainHRV
    nonlinear: NonlinearHRV
    fragmentation: FragmentationHRV

    def to_flat_dict(self) -> Dict[str, Any]:
        """Convert to a flat dictionary keyed by table column."""
        result: Dict[str, Any] = {"RR": self.counts.rr, "NN": self.counts.nn}
        result.update({f"time_{k}": v for k, v in self.time_domain.to_dict().items()})
        result.update({f"freq_{k}": v for k, v in self.frequency_domain.to_dict().items()})
        result.update({f"nl_{k}": v for k, v in self.nonlinear.to_dict().items()})
        result.update({f"frag_{k}": v for k, v in self.fragmentation.to_dict().items()})
        return result


class MetricsTableBuilder:
    """
    Append-only collector of window rows.

    Rows must arrive in strictly increasing window index order; the row
    label is the 1-based window number.
    """

    def __init__(self):
        self._columns = metric_columns()
        self._labels: List[int] = []
        self._rows: List[Dict[str, Any]] = []

    def __len__(self) -> int:
        return len(self._rows)

    @property
    def labels(self) -> List[int]:
        return list(self._labels)

    def append(self, window_index: int, row: WindowRow) -> None:
        """Add the row of 0-based window ``window_index``."""
        label = window_index + 1
        if self._labels and label <= self._labels[-1]:
            raise ValueError(
                f"Window rows must be appended in increasing order: "
                f"got window {label} after window {self._labels[-1]}"
            )
        flat = row.to_flat_dict()
        if list(flat) != self._columns:
            raise ValueError(f"Row of window {label} does not match the metrics table schema")
        self._labels.append(label)
        self._rows.append(flat)

    def build(self, description: str = "") -> pd.DataFrame:
        """Create the metrics table (one row per processed window)."""
        df = pd.DataFrame(self._rows, columns=self._columns,
                          index=pd.Index(self._labels, name="window", dtype="int64"))
        df[["RR", "NN"]] = df[["RR", "NN"]].astype("int64")
        df.attrs["description"] = description
        df.attrs["units"] = metric_units()
        return df
