"""Synthetic multi-output regression datasets for demos and smoke tests."""

from __future__ import annotations

from typing import Callable, Dict, Optional, Tuple

import numpy as np
from sklearn.datasets import make_regression

Dataset = Tuple[np.ndarray, np.ndarray]


def generate_data_2cols(rows: int, x_cols: int, seed: Optional[int] = None) -> Dataset:
    """Uniform features in ``[0, 1)``; ``y1 = sum(x)``, ``y2 = sum(sqrt(x))``."""
    rng = np.random.default_rng(seed)
    x = rng.random((rows, x_cols), dtype=np.float32)
    y = np.column_stack([x.sum(axis=1), np.sqrt(x).sum(axis=1)]).astype(np.float32)
    return x, y


def generate_simple_data_2cols(rows: int, x_cols: int) -> Dataset:
    """Sequential features ``x[i, j] = i * x_cols + j``; ``y1 = sum(x)``, ``y2 = -y1``."""
    x = np.arange(rows * x_cols, dtype=np.float32).reshape(rows, x_cols)
    total = x.sum(axis=1)
    y = np.column_stack([total, -total]).astype(np.float32)
    return x, y


def make_multioutput_regression(
    rows: int,
    x_cols: int,
    y_cols: int,
    seed: Optional[int] = None,
    noise: float = 0.1,
) -> Dataset:
    """Linear multi-target problem from :func:`sklearn.datasets.make_regression`."""
    x, y = make_regression(
        n_samples=rows,
        n_features=x_cols,
        n_informative=x_cols,
        n_targets=y_cols,
        noise=noise,
        random_state=seed,
    )
    return x.astype(np.float32), np.asarray(y, dtype=np.float32).reshape(rows, y_cols)


def _check_two_targets(name: str, y_cols: int) -> None:
    if y_cols != 2:
        raise ValueError(f"{name} produces exactly 2 targets, got y_cols={y_cols}")


def _uniform_2cols(rows: int, x_cols: int, y_cols: int, seed: Optional[int]) -> Dataset:
    _check_two_targets("uniform_2cols", y_cols)
    return generate_data_2cols(rows, x_cols, seed)


def _simple_2cols(rows: int, x_cols: int, y_cols: int, seed: Optional[int]) -> Dataset:
    # Deterministic; the seed is ignored.
    _check_two_targets("simple_2cols", y_cols)
    return generate_simple_data_2cols(rows, x_cols)


GENERATORS: Dict[str, Callable[[int, int, int, Optional[int]], Dataset]] = {
    "uniform_2cols": _uniform_2cols,
    "simple_2cols": _simple_2cols,
    "regression": make_multioutput_regression,
}


def generate(name: str, rows: int, x_cols: int, y_cols: int = 2, seed: Optional[int] = None) -> Dataset:
    try:
        generator = GENERATORS[name]
    except KeyError as exc:
        raise ValueError(f"Unknown generator: {name}") from exc
    return generator(rows, x_cols, y_cols, seed)
