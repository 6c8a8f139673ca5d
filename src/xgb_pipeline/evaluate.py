"""Per-column RMSE of multi-output predictions."""

from __future__ import annotations

from typing import Any

import numpy as np

from xgb_pipeline.data import as_matrix
from xgb_pipeline.status import InvalidParameterError


def rmse(
    predicted: Any,
    actual: Any,
    rows: int | None = None,
    y_cols: int | None = None,
) -> np.ndarray:
    """Root-mean-square error computed independently for every column.

    Parameters
    ----------
    predicted, actual : array-like
        Aligned ``rows x y_cols`` matrices (or flat row-major buffers).
    rows, y_cols : int, optional
        Declared dimensions for flat buffers.

    Returns
    -------
    np.ndarray
        ``float64`` vector of length ``y_cols``. Non-finite inputs propagate
        into the affected column.
    """
    pred = as_matrix(predicted, rows, y_cols, name="predicted", operation="rmse", dtype=np.float64)
    ref = as_matrix(actual, rows, y_cols, name="actual", operation="rmse", dtype=np.float64)
    if pred.shape != ref.shape:
        raise InvalidParameterError(
            "predicted and actual must have the same shape",
            operation="rmse",
            context={"predicted": pred.shape, "actual": ref.shape},
        )
    with np.errstate(invalid="ignore", over="ignore"):
        diff = ref - pred
        return np.sqrt(np.mean(diff * diff, axis=0))
