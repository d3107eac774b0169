"""Run options for a windowed HRV analysis and their validation.

``resolve_run_config`` checks every option before any signal is read, so
that a malformed call fails with ``ConfigValidationError`` up front.
"""

from __future__ import annotations

import math
import numbers
import os
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Mapping, Optional, Sequence, Union

import numpy as np

from .config import Config, apply_overrides, default_config, load_profile
from .errors import ConfigValidationError


# Caller contract: a pure function mapping an NN interval sequence (ms) to
# an interval sequence in the same unit.
TransformFn = Callable[[np.ndarray], np.ndarray]
ParamsSpec = Union[str, "os.PathLike[str]", Mapping[str, Any], Sequence[Any]]

UNBOUNDED = math.inf


class RunMode(str, Enum):
    """What the caller wants from a run."""

    COMPUTE = "compute"
    COMPUTE_AND_DISPLAY = "compute_and_display"


@dataclass(frozen=True)
class RunConfig:
    """Validated options for one pipeline run."""

    record: str
    ecg_channel: Optional[int] = None
    window_minutes: float = UNBOUNDED
    window_index_offset: int = 0
    window_index_limit: float = UNBOUNDED
    params: Any = ""
    transform_fn: Optional[TransformFn] = None
    plot: bool = False
    mode: RunMode = RunMode.COMPUTE

    @property
    def display(self) -> bool:
        return self.mode is RunMode.COMPUTE_AND_DISPLAY


_OPTION_NAMES = (
    "ecg_channel",
    "window_minutes",
    "window_index_offset",
    "window_index_limit",
    "params",
    "transform_fn",
    "plot",
    "mode",
)


def _is_real_scalar(x: Any) -> bool:
    return isinstance(x, numbers.Real) and not isinstance(x, (bool, np.bool_))


def _check_positive(name: str, value: Any, *, integral: bool) -> float:
    if not _is_real_scalar(value) or math.isnan(value) or value <= 0:
        raise ConfigValidationError(f"{name} must be a positive number, got {value!r}")
    if integral and math.isfinite(value) and float(value) != int(value):
        raise ConfigValidationError(f"{name} must be a whole number, got {value!r}")
    return float(value) if math.isinf(value) or not integral else int(value)


def _check_params(params: Any) -> Any:
    if params is None:
        return ""
    if isinstance(params, (str, os.PathLike, Mapping)):
        return params
    if isinstance(params, Sequence):
        return list(params)
    raise ConfigValidationError(
        f"params must be a profile name, a JSON path or an override set, got {params!r}"
    )


def resolve_run_config(record: Any, **options: Any) -> RunConfig:
    """
    Validate run options and fill in defaults.

    Parameters
    ----------
    record : str or path-like
        Record identifier (path of a WFDB record or a CSV file).
    **options
        Any of ``ecg_channel``, ``window_minutes``, ``window_index_offset``,
        ``window_index_limit``, ``params``, ``transform_fn``, ``plot``,
        ``mode``.

    Returns
    -------
    RunConfig
        Validated options. ``plot`` defaults to True only when ``mode`` is
        ``compute_and_display``.

    Raises
    ------
    ConfigValidationError
        On the first option that violates its constraint.
    """
    unknown = sorted(set(options) - set(_OPTION_NAMES))
    if unknown:
        raise ConfigValidationError(f"Unknown option(s) {unknown}")

    if not isinstance(record, (str, os.PathLike)) or not os.fspath(record).strip():
        raise ConfigValidationError(f"record must be a non-empty path, got {record!r}")
    record = os.fspath(record)

    ecg_channel = options.get("ecg_channel")
    if ecg_channel is not None:
        if (
            not _is_real_scalar(ecg_channel)
            or not math.isfinite(ecg_channel)
            or float(ecg_channel) != int(ecg_channel)
            or ecg_channel < 0
        ):
            raise ConfigValidationError(
                f"ecg_channel must be a non-negative integer, got {ecg_channel!r}"
            )
        ecg_channel = int(ecg_channel)

    window_minutes = options.get("window_minutes", UNBOUNDED)
    if window_minutes is None:
        window_minutes = UNBOUNDED
    window_minutes = _check_positive("window_minutes", window_minutes, integral=False)

    window_index_limit = options.get("window_index_limit", UNBOUNDED)
    if window_index_limit is None:
        window_index_limit = UNBOUNDED
    window_index_limit = _check_positive("window_index_limit", window_index_limit, integral=True)

    offset = options.get("window_index_offset", 0)
    if (
        not _is_real_scalar(offset)
        or not math.isfinite(offset)
        or offset < 0
        or float(offset) != int(offset)
    ):
        raise ConfigValidationError(
            f"window_index_offset must be a non-negative integer, got {offset!r}"
        )
    offset = int(offset)

    params = _check_params(options.get("params", ""))

    transform_fn = options.get("transform_fn")
    if transform_fn is not None and not callable(transform_fn):
        raise ConfigValidationError(f"transform_fn must be callable, got {transform_fn!r}")

    mode = options.get("mode", RunMode.COMPUTE)
    try:
        mode = RunMode(mode)
    except ValueError:
        raise ConfigValidationError(
            f"mode must be one of {[m.value for m in RunMode]}, got {mode!r}"
        ) from None

    plot = options.get("plot")
    if plot is None:
        plot = mode is RunMode.COMPUTE_AND_DISPLAY
    elif not isinstance(plot, (bool, np.bool_)):
        raise ConfigValidationError(f"plot must be a boolean, got {plot!r}")

    return RunConfig(
        record=record,
        ecg_channel=ecg_channel,
        window_minutes=window_minutes,
        window_index_offset=offset,
        window_index_limit=window_index_limit,
        params=params,
        transform_fn=transform_fn,
        plot=bool(plot),
        mode=mode,
    )


def resolve_params(params: Any, base: Config = default_config) -> Config:
    """
    Turn a ``params`` option into a Config.

    ``""`` keeps ``base``. A string or path selects a profile
    (see ``config.load_profile``). A mapping is a set of field overrides.
    A sequence may start with a profile name, followed by either one
    mapping or flat name/value pairs, e.g. ``["canine", "RR_MAX_MS", 3000]``.
    """
    if isinstance(params, os.PathLike):
        params = os.fspath(params)
    if isinstance(params, str):
        return load_profile(params, base) if params.strip() else base
    if isinstance(params, Mapping):
        return apply_overrides(base, params)

    items = list(params)
    config = base
    if items and isinstance(items[0], str) and (len(items) % 2 == 1 or
                                                 (len(items) == 2 and isinstance(items[1], Mapping))):
        config = load_profile(items[0], config) if items[0].strip() else config
        items = items[1:]

    if len(items) == 1 and isinstance(items[0], Mapping):
        return apply_overrides(config, items[0])
    if len(items) % 2 != 0:
        raise ConfigValidationError(f"params override list must hold name/value pairs, got {params!r}")

    overrides = {}
    for name, value in zip(items[0::2], items[1::2]):
        if not isinstance(name, str):
            raise ConfigValidationError(f"params override name must be a string, got {name!r}")
        overrides[name] = value
    return apply_overrides(config, overrides)
