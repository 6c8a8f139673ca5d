"""Explicit execution context for the public pipeline operations.

A :class:`PipelineContext` owns the state that would otherwise be ambient:
the random generator used for shuffling, the last diagnostic message, and
the ready flag toggled by :meth:`PipelineContext.init` /
:meth:`PipelineContext.cleanup`. Every operation returns a
:class:`~xgb_pipeline.status.Result`; only its ``status`` is authoritative.
The diagnostic message is overwritten on failure and never cleared on
success, so a stale message says nothing about the latest call.

Contexts are not synchronized. Use one context per thread.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Callable, Optional

import numpy as np

from xgb_pipeline.evaluate import rmse as compute_rmse
from xgb_pipeline.partition import SplitData, split
from xgb_pipeline.permutation import SplitMix64, shuffle
from xgb_pipeline.predictor import predict as run_predict
from xgb_pipeline.status import (
    AllocationError,
    ErrorInfo,
    NotInitializedError,
    PipelineError,
    Result,
)
from xgb_pipeline.training import TrainOptions, TrainReport, train, train_and_evaluate

logger = logging.getLogger(__name__)

MAX_ERROR_LENGTH = 512


class PipelineContext:
    """Per-caller state plus the public operations.

    Parameters
    ----------
    seed : int, optional
        Seed for the shuffle generator. Omit for an entropy-seeded one.
    strict : bool
        When True, operations fail with ``NOT_INITIALIZED`` until
        :meth:`init` is called. When False (default) the ready flag is
        advisory only.
    options : TrainOptions, optional
        Model format and write mode used by the training operations.
    """

    def __init__(
        self,
        seed: int | None = None,
        *,
        strict: bool = False,
        options: TrainOptions | None = None,
    ) -> None:
        self.rng = SplitMix64(seed)
        self.strict = strict
        self.options = options or TrainOptions()
        self._ready = False
        self._last_error = ""

    # ---- lifecycle -------------------------------------------------------
    @property
    def ready(self) -> bool:
        return self._ready

    def init(self) -> Result[None]:
        self._ready = True
        return Result.success(None)

    def cleanup(self) -> None:
        self._ready = False

    def __enter__(self) -> "PipelineContext":
        self.init()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.cleanup()

    # ---- diagnostics -----------------------------------------------------
    def get_last_error(self) -> str:
        return self._last_error

    def _record(self, info: ErrorInfo) -> None:
        self._last_error = info.describe()[:MAX_ERROR_LENGTH]
        logger.error(
            "%s failed [%s]: %s",
            info.operation or "operation",
            info.code.name,
            self._last_error,
        )

    def _run(
        self, operation: str, func: Callable[..., Any], *args: Any, **kwargs: Any
    ) -> Result[Any]:
        try:
            if self.strict and not self._ready:
                raise NotInitializedError(
                    "init() must be called before use", operation=operation
                )
            value = func(*args, **kwargs)
        except PipelineError as exc:
            info = exc.to_info()
            if not info.operation:
                info = ErrorInfo(info.code, info.message, operation, info.context)
        except MemoryError as exc:
            info = AllocationError(f"out of memory: {exc}", operation=operation).to_info()
        else:
            return Result.success(value)
        self._record(info)
        return Result.failure(info)

    # ---- operations ------------------------------------------------------
    def shuffle(self, n: int) -> Result[np.ndarray]:
        return self._run("shuffle", shuffle, n, self.rng)

    def split(
        self,
        x: Any,
        y: Any,
        rows_train: int,
        *,
        rows: int | None = None,
        x_cols: int | None = None,
        y_cols: int | None = None,
    ) -> Result[SplitData]:
        return self._run(
            "split",
            split,
            x,
            y,
            rows_train,
            rows=rows,
            x_cols=x_cols,
            y_cols=y_cols,
            rng=self.rng,
        )

    def train_and_evaluate(
        self,
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
        path_buffer: bytearray | None = None,
    ) -> Result[TrainReport]:
        return self._run(
            "train_and_evaluate",
            train_and_evaluate,
            x,
            y,
            train_ratio,
            config,
            output_dir,
            model_name,
            rows=rows,
            x_cols=x_cols,
            y_cols=y_cols,
            rng=self.rng,
            options=self.options,
            path_buffer=path_buffer,
        )

    def train(
        self,
        x: Any,
        y: Any,
        config: Any,
        path: str | Path,
        *,
        rows: int | None = None,
        x_cols: int | None = None,
        y_cols: int | None = None,
    ) -> Result[TrainReport]:
        return self._run(
            "train",
            train,
            x,
            y,
            config,
            path,
            rows=rows,
            x_cols=x_cols,
            y_cols=y_cols,
            options=self.options,
        )

    def predict(
        self,
        data: Any,
        y_cols: int,
        model_path: str | Path,
        *,
        rows: int | None = None,
        x_cols: int | None = None,
        out: Optional[np.ndarray] = None,
    ) -> Result[np.ndarray]:
        return self._run(
            "predict",
            run_predict,
            data,
            y_cols,
            model_path,
            rows=rows,
            x_cols=x_cols,
            out=out,
        )

    def rmse(
        self,
        predicted: Any,
        actual: Any,
        rows: int | None = None,
        y_cols: int | None = None,
    ) -> Result[np.ndarray]:
        return self._run("rmse", compute_rmse, predicted, actual, rows, y_cols)
