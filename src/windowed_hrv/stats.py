"""Summary statistics of each metric over all processed windows."""

import numpy as np
import pandas as pd
from scipy import stats

STAT_ROWS = ("Mean", "SE", "Median", "Min", "Max")


def table_stats(metrics: pd.DataFrame) -> pd.DataFrame:
    """
    Compute summary statistics over the rows of a metrics table.

    Parameters
    ----------
    metrics : pd.DataFrame
        One row per window, one column per metric.

    Returns
    -------
    pd.DataFrame
        Rows ``Mean``, ``SE``, ``Median``, ``Min``, ``Max``; same columns as
        ``metrics``. NaN values are ignored; a column without finite values
        (or an empty table) gives NaN.
    """
    values = metrics.to_numpy(dtype=np.float64) if len(metrics) else np.empty((0, metrics.shape[1]))
    result = pd.DataFrame(np.nan, index=pd.Index(STAT_ROWS, name="stat"), columns=metrics.columns)

    for j, column in enumerate(metrics.columns):
        col = values[:, j]
        col = col[np.isfinite(col)]
        if col.size == 0:
            continue
        result.loc["Mean", column] = np.mean(col)
        result.loc["SE", column] = stats.sem(col) if col.size > 1 else np.nan
        result.loc["Median", column] = np.median(col)
        result.loc["Min", column] = np.min(col)
        result.loc["Max", column] = np.max(col)

    description = metrics.attrs.get("description", "")
    result.attrs["description"] = f"Statistics for {description}" if description else "Statistics"
    result.attrs["units"] = dict(metrics.attrs.get("units", {}))
    return result
