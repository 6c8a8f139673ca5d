"""Pytest setup: put ``src`` on the import path and share fixtures.

Makes ``import xgb_pipeline`` work from a plain checkout, without an
editable install.
"""

import os
import sys

import numpy as np
import pytest


def _add_src_to_path() -> None:
    root = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
    src = os.path.join(root, "src")
    if src not in sys.path:
        sys.path.insert(0, src)


_add_src_to_path()


XGB_CONFIG = [
    ("objective", "reg:squarederror"),
    ("tree_method", "hist"),
    ("max_depth", "3"),
    ("eta", "0.3"),
    ("n_estimators", "20"),
    ("nthread", "1"),
    ("seed", "0"),
]


@pytest.fixture
def xgb_config():
    """Small, fast hyperparameter list (20 rounds, depth 3)."""
    return list(XGB_CONFIG)


@pytest.fixture
def regression_data():
    """200 rows, 4 uniform features, targets [sum(x), sum(sqrt(x))]."""
    rng = np.random.default_rng(7)
    x = rng.random((200, 4)).astype(np.float32)
    y = np.column_stack([x.sum(axis=1), np.sqrt(x).sum(axis=1)]).astype(np.float32)
    return x, y


@pytest.fixture
def sequential_data():
    """rows=10, x[i] = [2i, 2i+1], y[i] = i."""
    x = np.array([[2 * i, 2 * i + 1] for i in range(10)], dtype=np.float32)
    y = np.arange(10, dtype=np.float32).reshape(10, 1)
    return x, y
