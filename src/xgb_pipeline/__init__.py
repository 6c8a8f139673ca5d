"""Orchestration layer around XGBoost for multi-output regression.

Shuffled train/test splitting, hyperparameter translation, training with
held-out RMSE evaluation, model persistence and batch prediction. The public
entry point is :class:`PipelineContext`, whose operations return a
:class:`Result` tagged with a :class:`StatusCode`.
"""

from xgb_pipeline.context import PipelineContext
from xgb_pipeline.evaluate import rmse
from xgb_pipeline.partition import Partition, SplitData, split
from xgb_pipeline.permutation import SplitMix64, shuffle
from xgb_pipeline.predictor import find_latest_model, predict
from xgb_pipeline.status import (
    ErrorInfo,
    PipelineError,
    Result,
    StatusCode,
    status_to_string,
)
from xgb_pipeline.training import TrainOptions, TrainReport, train, train_and_evaluate

__all__ = [
    # context
    "PipelineContext",
    # status
    "StatusCode",
    "status_to_string",
    "Result",
    "ErrorInfo",
    "PipelineError",
    # operations
    "shuffle",
    "SplitMix64",
    "split",
    "Partition",
    "SplitData",
    "rmse",
    "train",
    "train_and_evaluate",
    "TrainOptions",
    "TrainReport",
    "predict",
    "find_latest_model",
]
