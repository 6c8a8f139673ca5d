"""Batch inference from a persisted model."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Optional

import numpy as np

from xgb_pipeline.data import as_matrix
from xgb_pipeline.engine import MODEL_FORMATS, MatrixHandle, ModelHandle
from xgb_pipeline.status import FileIOError, InvalidParameterError, SizeMismatchError

logger = logging.getLogger(__name__)


def _check_readable(model_path: Path) -> None:
    if not model_path.is_file():
        raise FileIOError(
            "model file not found",
            operation="predict",
            context={"model_path": str(model_path)},
        )
    if not os.access(model_path, os.R_OK):
        raise FileIOError(
            "model file is not readable",
            operation="predict",
            context={"model_path": str(model_path)},
        )


def predict(
    data: Any,
    y_cols: int,
    model_path: str | Path,
    *,
    rows: int | None = None,
    x_cols: int | None = None,
    out: Optional[np.ndarray] = None,
) -> np.ndarray:
    """Run the model stored at ``model_path`` on ``data``.

    Parameters
    ----------
    data : array-like
        Features, ``rows x x_cols`` (or flat with ``rows``/``x_cols``).
    y_cols : int
        Number of outputs the model is expected to produce per row.
    model_path : str or Path
        File written by :func:`~xgb_pipeline.training.train_and_evaluate` or
        :func:`~xgb_pipeline.training.train`.
    out : np.ndarray, optional
        Caller buffer with ``rows * y_cols`` elements. It is only written once
        the prediction size has been validated.

    Returns
    -------
    np.ndarray
        ``float32`` predictions of shape ``(rows, y_cols)``.

    Raises
    ------
    SizeMismatchError
        If the engine returns anything other than ``rows * y_cols`` values.
    """
    if isinstance(y_cols, bool) or not isinstance(y_cols, (int, np.integer)) or y_cols <= 0:
        raise InvalidParameterError(
            "y_cols must be a positive integer",
            operation="predict",
            context={"y_cols": y_cols},
        )
    if model_path is None or str(model_path) == "":
        raise InvalidParameterError("model_path is required", operation="predict")
    features = as_matrix(data, rows, x_cols, name="data", operation="predict")
    n_rows = features.shape[0]
    if out is not None and not (isinstance(out, np.ndarray) and out.flags.writeable):
        raise InvalidParameterError(
            "out must be a writable numpy array",
            operation="predict",
            context={"out_type": type(out).__name__},
        )
    if out is not None and out.size != n_rows * y_cols:
        raise InvalidParameterError(
            "out buffer must hold rows * y_cols values",
            operation="predict",
            context={"out_size": int(out.size), "expected": n_rows * y_cols},
        )
    model_path = Path(model_path)
    _check_readable(model_path)

    with MatrixHandle.create(features, operation="predict") as dmatrix:
        with ModelHandle.load(model_path, operation="predict") as model:
            raw = model.predict(dmatrix)

    expected = n_rows * int(y_cols)
    if raw.size != expected:
        raise SizeMismatchError(
            "prediction size does not match rows x y_cols",
            operation="predict",
            context={"got": int(raw.size), "expected": expected, "y_cols": y_cols},
        )
    predictions = raw.reshape(n_rows, int(y_cols))
    if out is not None:
        np.copyto(out, predictions.reshape(np.shape(out)), casting="unsafe")
    logger.debug("Predicted %d rows with %s", n_rows, model_path)
    return predictions


def find_latest_model(models_dir: str | Path, model_name: str) -> Optional[Path]:
    """Newest ``{model_name}_{YYYYMMDD_HHMMSS}.{ext}`` in ``models_dir``.

    Falls back to an untimestamped ``{model_name}.ubj`` / ``{model_name}.json``
    and returns ``None`` when nothing matches.
    """
    models_dir = Path(models_dir)
    if not models_dir.is_dir():
        return None
    prefix = f"{model_name}_"
    matches = [
        p
        for p in models_dir.iterdir()
        if p.is_file()
        and p.name.startswith(prefix)
        and p.suffix.lstrip(".") in MODEL_FORMATS
        and _is_timestamp(p.stem[len(prefix):])
    ]
    if matches:
        return max(matches, key=lambda p: p.name)
    for ext in MODEL_FORMATS:
        candidate = models_dir / f"{model_name}.{ext}"
        if candidate.exists():
            return candidate
    return None


def _is_timestamp(text: str) -> bool:
    # YYYYMMDD_HHMMSS
    return len(text) == 15 and text[8] == "_" and (text[:8] + text[9:]).isdigit()
