"""Scope-guarded handles over the XGBoost native API.

Only the capabilities the pipeline consumes are exposed: matrix creation with
labels, model creation/configuration, boosting rounds, batch inference,
serialization and loading. Every XGBoost failure is re-raised as
:class:`~xgb_pipeline.status.EngineError` carrying the engine's own message.

Handles are context managers; leaving the ``with`` block releases the native
object on every exit path::

    with MatrixHandle.create(x, labels=y) as dtrain:
        with ModelHandle.create(cache=[dtrain]) as model:
            model.update(dtrain, 0)
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Iterable, List, Optional

import numpy as np
import xgboost as xgb
from xgboost.core import XGBoostError

from xgb_pipeline.status import EngineError

MODEL_FORMATS = ("ubj", "json")


class _Handle:
    kind = "handle"

    def __init__(self, native: Any) -> None:
        self._native = native

    @property
    def native(self) -> Any:
        if self._native is None:
            raise EngineError(f"{self.kind} handle already released", operation="engine")
        return self._native

    @property
    def released(self) -> bool:
        return self._native is None

    def release(self) -> None:
        # Dropping the last reference frees the native object.
        self._native = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()


class MatrixHandle(_Handle):
    """Engine-native matrix (``xgboost.DMatrix``)."""

    kind = "matrix"

    @classmethod
    def create(
        cls,
        features: np.ndarray,
        labels: Optional[np.ndarray] = None,
        *,
        operation: str = "create_matrix",
    ) -> "MatrixHandle":
        try:
            dmatrix = xgb.DMatrix(np.ascontiguousarray(features, dtype=np.float32))
            if labels is not None:
                dmatrix.set_label(np.ascontiguousarray(labels, dtype=np.float32))
        except XGBoostError as exc:
            raise EngineError(
                f"failed to create matrix: {exc}",
                operation=operation,
                context={"shape": tuple(np.shape(features))},
            ) from exc
        return cls(dmatrix)


class ModelHandle(_Handle):
    """Engine-native model (``xgboost.Booster``)."""

    kind = "model"

    @classmethod
    def create(
        cls,
        cache: Iterable[MatrixHandle] = (),
        *,
        operation: str = "create_model",
    ) -> "ModelHandle":
        matrices: List[Any] = [m.native for m in cache]
        try:
            booster = xgb.Booster(cache=matrices)
        except XGBoostError as exc:
            raise EngineError(f"failed to create model: {exc}", operation=operation) from exc
        return cls(booster)

    @classmethod
    def load(cls, path: str | Path, *, operation: str = "load_model") -> "ModelHandle":
        handle = cls.create(operation=operation)
        try:
            handle.native.load_model(str(path))
        except XGBoostError as exc:
            handle.release()
            raise EngineError(
                f"failed to load model: {exc}",
                operation=operation,
                context={"path": str(path)},
            ) from exc
        return handle

    def set_param(self, key: str, value: str) -> None:
        try:
            self.native.set_param(key, value)
        except XGBoostError as exc:
            raise EngineError(
                f"failed to set parameter: {exc}",
                operation="set_param",
                context={"key": key, "value": value},
            ) from exc

    def update(self, matrix: MatrixHandle, iteration: int) -> None:
        try:
            self.native.update(matrix.native, iteration)
        except XGBoostError as exc:
            raise EngineError(
                f"boosting round failed: {exc}",
                operation="update",
                context={"iteration": iteration},
            ) from exc

    def predict(self, matrix: MatrixHandle, *, operation: str = "predict") -> np.ndarray:
        """Run inference; the result is returned flat, in row-major order."""
        try:
            out = self.native.predict(matrix.native)
        except XGBoostError as exc:
            raise EngineError(f"inference failed: {exc}", operation=operation) from exc
        return np.asarray(out, dtype=np.float32).ravel()

    def serialize(self, model_format: str = "ubj") -> bytes:
        if model_format not in MODEL_FORMATS:
            raise EngineError(
                "unsupported model format",
                operation="serialize",
                context={"model_format": model_format},
            )
        try:
            return bytes(self.native.save_raw(raw_format=model_format))
        except XGBoostError as exc:
            raise EngineError(
                f"failed to serialize model: {exc}", operation="serialize"
            ) from exc
