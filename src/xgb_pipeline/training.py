"""Training orchestration: split, train, evaluate, name and persist.

``train_and_evaluate`` runs the full cycle as a linear sequence of steps
that stops at the first failure:

1. partition the rows into shuffled train/test sets
2. bind the train rows and labels to an engine matrix
3. create a model bound to that matrix and apply the hyperparameters
4. run ``n_estimators`` boosting rounds
5. predict the test rows and compute the per-column RMSE
6. synthesize ``{output_dir}/{model_name}_{YYYYMMDD_HHMMSS}.{ext}``
7. serialize the model and write it to that path
8. release every engine handle (on every exit path)

Nothing already written to caller-owned buffers is rolled back when a later
step fails.
"""

from __future__ import annotations

import logging
import os
import tempfile
import time
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, List, Optional, Tuple

import numpy as np

from xgb_pipeline.data import as_matrix
from xgb_pipeline.engine import MODEL_FORMATS, MatrixHandle, ModelHandle
from xgb_pipeline.evaluate import rmse as compute_rmse
from xgb_pipeline.hyperparams import (
    apply_hyperparameters,
    extract_iteration_count,
    normalize_config,
)
from xgb_pipeline.partition import split
from xgb_pipeline.permutation import SplitMix64
from xgb_pipeline.status import (
    EngineError,
    FileIOError,
    InvalidParameterError,
    SizeMismatchError,
)

logger = logging.getLogger(__name__)

TIMESTAMP_FORMAT = "%Y%m%d_%H%M%S"


@dataclass(frozen=True)
class TrainOptions:
    """Persistence settings for trained models.

    Parameters
    ----------
    model_format : str
        Engine serialization format, also the file extension: ``"ubj"``
        (binary) or ``"json"``.
    atomic_write : bool
        Write to a temporary file and rename it into place. Off by default,
        in which case a crash or concurrent reader may see a partial file.
    """

    model_format: str = "ubj"
    atomic_write: bool = False


@dataclass(frozen=True)
class TrainReport:
    """Outcome of a training run."""

    model_path: Path
    rmse: Optional[np.ndarray]
    iterations: int
    rows_train: int
    rows_test: int
    elapsed_sec: float
    rejected_params: List[Tuple[str, str, str]] = field(default_factory=list)


def rows_for_ratio(rows: int, train_ratio: float) -> int:
    """Number of train rows for a ratio in ``(0, 1)``, truncated toward zero."""
    try:
        ratio = float(train_ratio)
    except (TypeError, ValueError) as exc:
        raise InvalidParameterError(
            "train_ratio must be a number",
            operation="train_and_evaluate",
            context={"train_ratio": train_ratio},
        ) from exc
    if not 0.0 < ratio < 1.0:
        raise InvalidParameterError(
            "train_ratio must be between 0 and 1",
            operation="train_and_evaluate",
            context={"train_ratio": train_ratio},
        )
    return int(rows * ratio)


def synthesize_model_path(
    output_dir: str | Path,
    model_name: str,
    model_format: str = "ubj",
    now: datetime | None = None,
) -> Path:
    """Build ``{output_dir}/{model_name}_{YYYYMMDD_HHMMSS}.{model_format}``."""
    stamp = (now or datetime.now()).strftime(TIMESTAMP_FORMAT)
    return Path(output_dir) / f"{model_name}_{stamp}.{model_format}"


def copy_path_to_buffer(path: str | Path, buffer: bytearray) -> None:
    """Copy ``path`` as UTF-8 into ``buffer``, truncated and NUL-terminated."""
    capacity = len(buffer)
    if capacity == 0:
        return
    encoded = str(path).encode("utf-8")[: capacity - 1]
    buffer[: len(encoded)] = encoded
    buffer[len(encoded)] = 0


def write_model(path: str | Path, payload: bytes, *, atomic: bool = False) -> None:
    """Write ``payload`` to ``path``; a short write is a :class:`FileIOError`."""
    path = Path(path)
    if atomic:
        _write_atomic(path, payload)
        return
    try:
        with open(path, "wb") as fh:
            written = fh.write(payload)
    except (OSError, ValueError) as exc:
        raise FileIOError(
            f"failed to write model file: {exc}",
            operation="persist",
            context={"path": str(path)},
        ) from exc
    if written != len(payload):
        raise FileIOError(
            "incomplete write of model file",
            operation="persist",
            context={"path": str(path), "written": written, "expected": len(payload)},
        )


def _write_atomic(path: Path, payload: bytes) -> None:
    tmp_path = None
    try:
        with tempfile.NamedTemporaryFile(
            "wb", dir=path.parent, prefix=f".{path.name}.", suffix=".tmp", delete=False
        ) as fh:
            tmp_path = fh.name
            written = fh.write(payload)
            fh.flush()
            os.fsync(fh.fileno())
        if written != len(payload):
            raise FileIOError(
                "incomplete write of model file",
                operation="persist",
                context={"path": str(path), "written": written, "expected": len(payload)},
            )
        os.replace(tmp_path, path)
        tmp_path = None
    except (OSError, ValueError) as exc:
        raise FileIOError(
            f"failed to write model file: {exc}",
            operation="persist",
            context={"path": str(path)},
        ) from exc
    finally:
        if tmp_path is not None and os.path.exists(tmp_path):
            os.unlink(tmp_path)


def persist_model(model: ModelHandle, path: Path, options: TrainOptions) -> None:
    payload = model.serialize(options.model_format)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
    except (OSError, ValueError) as exc:
        raise FileIOError(
            f"failed to create output directory: {exc}",
            operation="persist",
            context={"output_dir": str(path.parent)},
        ) from exc
    write_model(path, payload, atomic=options.atomic_write)
    logger.info("Saved model (%d bytes) to %s", len(payload), path)


def run_boosting_rounds(model: ModelHandle, dtrain: MatrixHandle, iterations: int) -> None:
    """Run exactly ``iterations`` update rounds, stopping at the first failure."""
    log_period = max(1, iterations // 10)
    for i in range(iterations):
        try:
            model.update(dtrain, i)
        except EngineError as exc:
            raise EngineError(
                f"training failed at iteration {i}: {exc.message}",
                operation="train",
                context={"iteration": i},
            ) from exc
        if (i + 1) % log_period == 0:
            logger.debug("iteration %d/%d", i + 1, iterations)


def _check_options(options: TrainOptions) -> None:
    if options.model_format not in MODEL_FORMATS:
        raise InvalidParameterError(
            f"model_format must be one of {MODEL_FORMATS}",
            operation="train",
            context={"model_format": options.model_format},
        )


def _check_prediction_size(
    predictions: np.ndarray, rows: int, y_cols: int, operation: str
) -> np.ndarray:
    expected = rows * y_cols
    if predictions.size != expected:
        raise SizeMismatchError(
            "prediction size does not match rows x y_cols",
            operation=operation,
            context={"got": int(predictions.size), "expected": expected},
        )
    return predictions.reshape(rows, y_cols)


def train_and_evaluate(
    x: Any,
    y: Any,
    train_ratio: float,
    config: Any,
    output_dir: str | Path,
    model_name: str,
    *,
    rows: int | None = None,
    x_cols: int | None = None,
    y_cols: int | None = None,
    rng: SplitMix64 | None = None,
    options: TrainOptions | None = None,
    path_buffer: bytearray | None = None,
    now: datetime | None = None,
) -> TrainReport:
    """Split, train, evaluate on the held-out rows and persist the model.

    Parameters
    ----------
    x, y : array-like
        Features (``rows x x_cols``) and targets (``rows x y_cols``).
    train_ratio : float
        Fraction of rows used for training, in ``(0, 1)``.
    config : sequence of (str, str) or mapping
        Hyperparameters; must contain ``n_estimators``.
    output_dir : str or Path
        Directory receiving the model file (created if missing).
    model_name : str
        Prefix of the model file name.
    rng : SplitMix64, optional
        Generator for the row shuffle.
    options : TrainOptions, optional
        Serialization format and write mode.
    path_buffer : bytearray, optional
        Receives the resolved path, truncated to its capacity and
        NUL-terminated.

    Returns
    -------
    TrainReport
        Resolved model path and RMSE per target column.
    """
    options = options or TrainOptions()
    _check_options(options)
    # One pass over the caller config; it may be a one-shot iterable.
    config = normalize_config(config)
    if not model_name or not isinstance(model_name, str):
        raise InvalidParameterError(
            "model_name must be a non-empty string", operation="train_and_evaluate"
        )
    if output_dir is None or str(output_dir) == "":
        raise InvalidParameterError("output_dir is required", operation="train_and_evaluate")

    x_mat = as_matrix(x, rows, x_cols, name="x", operation="train_and_evaluate")
    y_mat = as_matrix(y, rows, y_cols, name="y", operation="train_and_evaluate")
    n_rows, n_targets = x_mat.shape[0], y_mat.shape[1]
    rows_train = rows_for_ratio(n_rows, train_ratio)
    iterations = extract_iteration_count(config)

    start = time.perf_counter()
    data = split(x_mat, y_mat, rows_train, rng=rng)
    rows_test = n_rows - rows_train

    with MatrixHandle.create(data.x_train, data.y_train, operation="bind") as dtrain:
        with ModelHandle.create([dtrain], operation="configure") as model:
            translation = apply_hyperparameters(model, config)
            run_boosting_rounds(model, dtrain, iterations)

            with MatrixHandle.create(data.x_test, operation="evaluate") as dtest:
                raw = model.predict(dtest, operation="evaluate")
            predictions = _check_prediction_size(raw, rows_test, n_targets, "evaluate")
            rmse_vector = compute_rmse(predictions, data.y_test)

            path = synthesize_model_path(output_dir, model_name, options.model_format, now)
            if path_buffer is not None:
                copy_path_to_buffer(path, path_buffer)
            persist_model(model, path, options)

    elapsed = time.perf_counter() - start
    logger.info(
        "Trained %s: %d rounds, %d train / %d test rows, rmse=%s",
        model_name,
        iterations,
        rows_train,
        rows_test,
        np.array2string(rmse_vector, precision=6),
    )
    return TrainReport(
        model_path=path,
        rmse=rmse_vector,
        iterations=iterations,
        rows_train=rows_train,
        rows_test=rows_test,
        elapsed_sec=elapsed,
        rejected_params=list(translation.rejected),
    )


def _format_for_path(path: Path, options: TrainOptions) -> str:
    suffix = path.suffix.lstrip(".").lower()
    return suffix if suffix in MODEL_FORMATS else options.model_format


def train(
    x: Any,
    y: Any,
    config: Any,
    path: str | Path,
    *,
    rows: int | None = None,
    x_cols: int | None = None,
    y_cols: int | None = None,
    options: TrainOptions | None = None,
) -> TrainReport:
    """Train on every row and persist to exactly ``path`` (no split, no RMSE).

    The serialization format follows the ``.ubj``/``.json`` suffix of
    ``path`` and falls back to ``options.model_format``.
    """
    options = options or TrainOptions()
    _check_options(options)
    config = normalize_config(config)
    if path is None or str(path) == "":
        raise InvalidParameterError("path is required", operation="train")
    path = Path(path)
    x_mat = as_matrix(x, rows, x_cols, name="x", operation="train")
    y_mat = as_matrix(y, rows, y_cols, name="y", operation="train")
    if x_mat.shape[0] != y_mat.shape[0]:
        raise InvalidParameterError(
            "x and y must have the same number of rows",
            operation="train",
            context={"x_rows": x_mat.shape[0], "y_rows": y_mat.shape[0]},
        )
    iterations = extract_iteration_count(config)
    options = TrainOptions(
        model_format=_format_for_path(path, options), atomic_write=options.atomic_write
    )

    start = time.perf_counter()
    with MatrixHandle.create(x_mat, y_mat, operation="bind") as dtrain:
        with ModelHandle.create([dtrain], operation="configure") as model:
            translation = apply_hyperparameters(model, config)
            run_boosting_rounds(model, dtrain, iterations)
            persist_model(model, path, options)

    return TrainReport(
        model_path=path,
        rmse=None,
        iterations=iterations,
        rows_train=int(x_mat.shape[0]),
        rows_test=0,
        elapsed_sec=time.perf_counter() - start,
        rejected_params=list(translation.rejected),
    )
