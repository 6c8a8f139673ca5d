"""Coercion of caller buffers into row-major 2-D float matrices."""

from __future__ import annotations

from typing import Any

import numpy as np

from xgb_pipeline.status import InvalidParameterError


def as_matrix(
    values: Any,
    rows: int | None = None,
    cols: int | None = None,
    *,
    name: str = "x",
    operation: str = "",
    dtype: Any = np.float32,
) -> np.ndarray:
    """Return ``values`` as a ``rows x cols`` array.

    A 2-D input is taken as is; a flat buffer is reshaped row-major using the
    given dimensions (a flat buffer with no dimensions becomes one column).
    The input is never modified.

    Raises
    ------
    InvalidParameterError
        On ``None`` input, non-numeric data, non-positive dimensions, or a
        shape that disagrees with ``rows``/``cols``.
    """
    context = {"name": name, "rows": rows, "cols": cols}
    if values is None:
        raise InvalidParameterError(
            f"{name} is required", operation=operation, context=context
        )
    for dim_name, dim in (("rows", rows), ("cols", cols)):
        if dim is not None and (
            isinstance(dim, bool) or not isinstance(dim, (int, np.integer)) or dim <= 0
        ):
            raise InvalidParameterError(
                f"{name}: {dim_name} must be a positive integer",
                operation=operation,
                context=context,
            )

    try:
        array = np.asarray(values, dtype=dtype)
    except (TypeError, ValueError) as exc:
        raise InvalidParameterError(
            f"{name} is not numeric: {exc}", operation=operation, context=context
        ) from exc

    if array.ndim == 1:
        size = array.size
        if rows is not None and cols is not None:
            fits = size == int(rows) * int(cols)
        elif cols is not None:
            fits = size % int(cols) == 0
        elif rows is not None:
            fits = size % int(rows) == 0
        else:
            fits = True
        if size == 0 or not fits:
            context["size"] = size
            raise InvalidParameterError(
                f"{name} has {size} elements, which does not fit rows x cols",
                operation=operation,
                context=context,
            )
        if cols is not None:
            array = array.reshape(-1, int(cols))
        elif rows is not None:
            array = array.reshape(int(rows), -1)
        else:
            array = array.reshape(-1, 1)
    elif array.ndim != 2:
        context["ndim"] = array.ndim
        raise InvalidParameterError(
            f"{name} must be 1-D or 2-D", operation=operation, context=context
        )

    n_rows, n_cols = array.shape
    if n_rows == 0 or n_cols == 0:
        context["shape"] = array.shape
        raise InvalidParameterError(
            f"{name} must be non-empty", operation=operation, context=context
        )
    if (rows is not None and n_rows != rows) or (cols is not None and n_cols != cols):
        context["shape"] = array.shape
        raise InvalidParameterError(
            f"{name} shape {array.shape} does not match declared dimensions",
            operation=operation,
            context=context,
        )
    return array
