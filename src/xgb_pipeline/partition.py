"""Shuffled train/test partitioning of parallel feature/target matrices."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import numpy as np

from xgb_pipeline.data import as_matrix
from xgb_pipeline.permutation import SplitMix64, shuffle
from xgb_pipeline.status import AllocationError, InvalidParameterError


@dataclass(frozen=True)
class Partition:
    """Train/test row indices; together a permutation of ``[0, rows)``."""

    train: np.ndarray
    test: np.ndarray

    @property
    def rows(self) -> int:
        return len(self.train) + len(self.test)


@dataclass(frozen=True)
class SplitData:
    """Rows copied out of the source matrices, in shuffle order."""

    x_train: np.ndarray
    y_train: np.ndarray
    x_test: np.ndarray
    y_test: np.ndarray
    partition: Partition


def make_partition(rows: int, rows_train: int, rng: SplitMix64 | None = None) -> Partition:
    """Draw a permutation of ``[0, rows)`` and cut it after ``rows_train``.

    The order inside each subset is the permutation order; indices are not
    re-sorted.
    """
    if isinstance(rows_train, bool) or not isinstance(rows_train, (int, np.integer)):
        raise InvalidParameterError(
            "rows_train must be an integer",
            operation="split",
            context={"rows_train": rows_train},
        )
    if not 0 < rows_train < rows:
        raise InvalidParameterError(
            "rows_train must satisfy 0 < rows_train < rows",
            operation="split",
            context={"rows_train": rows_train, "rows": rows},
        )
    order = shuffle(rows, rng)
    return Partition(train=order[:rows_train], test=order[rows_train:])


def split(
    x: Any,
    y: Any,
    rows_train: int,
    *,
    rows: int | None = None,
    x_cols: int | None = None,
    y_cols: int | None = None,
    rng: SplitMix64 | None = None,
) -> SplitData:
    """Split ``x``/``y`` into shuffled train and test row sets.

    Parameters
    ----------
    x, y : array-like
        Feature and target matrices (2-D, or flat row-major with dimensions).
    rows_train : int
        Number of rows assigned to the train set; ``0 < rows_train < rows``.
    rows, x_cols, y_cols : int, optional
        Declared dimensions, required only for flat buffers.
    rng : SplitMix64, optional
        Source of randomness for the row permutation.

    Returns
    -------
    SplitData
        Row ``i`` of ``x_train`` and of ``y_train`` come from the same source
        row; the same holds for the test outputs. All four matrices are
        ``float32`` (the engine's working precision), so ``float64`` input
        is rounded.
    """
    x_mat = as_matrix(x, rows, x_cols, name="x", operation="split")
    y_mat = as_matrix(y, rows, y_cols, name="y", operation="split")
    if x_mat.shape[0] != y_mat.shape[0]:
        raise InvalidParameterError(
            "x and y must have the same number of rows",
            operation="split",
            context={"x_rows": x_mat.shape[0], "y_rows": y_mat.shape[0]},
        )

    partition = make_partition(x_mat.shape[0], rows_train, rng)
    try:
        return SplitData(
            x_train=x_mat[partition.train],
            y_train=y_mat[partition.train],
            x_test=x_mat[partition.test],
            y_test=y_mat[partition.test],
            partition=partition,
        )
    except MemoryError as exc:
        raise AllocationError(
            "failed to allocate split buffers",
            operation="split",
            context={"rows": partition.rows, "rows_train": rows_train},
        ) from exc
