"""YAML configuration for the model training runs.

Expected layout::

    training:
      train_ratio: 0.8
      seed: 42            # optional
      model_format: ubj   # ubj | json
      atomic_write: false
      datasets:
        - name: xgb_uniform_4
          generator: uniform_2cols
          rows: 10000
          x_cols: 4
    xgboost:              # forwarded to the engine in file order
      objective: reg:squarederror
      max_depth: 6
      eta: 0.1
      num_round: 100      # alias of n_estimators
    output:
      models_dir: models
      metrics_file: models/metrics.csv

Relative paths under ``output`` are resolved against the config file.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, List, Mapping, Optional, Tuple

import yaml

from xgb_pipeline.datagen import GENERATORS
from xgb_pipeline.engine import MODEL_FORMATS
from xgb_pipeline.hyperparams import ITERATION_KEY, config_from_pairs

NUM_ROUND_ALIAS = "num_round"


@dataclass(frozen=True)
class DatasetSpec:
    """One synthetic dataset to generate and train a model on."""

    name: str
    generator: str
    rows: int
    x_cols: int
    y_cols: int = 2
    seed: Optional[int] = None

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Any]) -> "DatasetSpec":
        return cls(
            name=str(mapping["name"]),
            generator=str(mapping.get("generator", "uniform_2cols")),
            rows=int(mapping["rows"]),
            x_cols=int(mapping["x_cols"]),
            y_cols=int(mapping.get("y_cols", 2)),
            seed=None if mapping.get("seed") is None else int(mapping["seed"]),
        )


@dataclass(frozen=True)
class TrainingSection:
    train_ratio: float
    datasets: Tuple[DatasetSpec, ...]
    seed: Optional[int] = None
    model_format: str = "ubj"
    atomic_write: bool = False

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Any]) -> "TrainingSection":
        datasets = tuple(DatasetSpec.from_mapping(d) for d in mapping.get("datasets") or [])
        seed = mapping.get("seed")
        return cls(
            train_ratio=float(mapping.get("train_ratio", 0.8)),
            datasets=datasets,
            seed=None if seed is None else int(seed),
            model_format=str(mapping.get("model_format", "ubj")),
            atomic_write=bool(mapping.get("atomic_write", False)),
        )


@dataclass(frozen=True)
class OutputSection:
    models_dir: Path
    metrics_file: Path

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Any], *, base_dir: Path) -> "OutputSection":
        def _resolve(value: Any) -> Path:
            path = Path(str(value))
            return path if path.is_absolute() else (base_dir / path).resolve()

        return cls(
            models_dir=_resolve(mapping.get("models_dir", "models")),
            metrics_file=_resolve(mapping.get("metrics_file", "models/metrics.csv")),
        )


@dataclass(frozen=True)
class Config:
    training: TrainingSection
    xgboost: Tuple[Tuple[str, str], ...]
    output: OutputSection

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Any], *, base_dir: Path) -> "Config":
        for section in ("training", "xgboost", "output"):
            if section not in mapping:
                raise KeyError(f"'{section}' section is required in the config file")
        xgb_section = mapping["xgboost"] or {}
        if not isinstance(xgb_section, Mapping):
            raise ValueError("'xgboost' section must be a mapping")
        return cls(
            training=TrainingSection.from_mapping(mapping["training"] or {}),
            xgboost=tuple(config_from_pairs(_rename_num_round(xgb_section.items()))),
            output=OutputSection.from_mapping(mapping["output"] or {}, base_dir=base_dir),
        )

    @property
    def xgb_params(self) -> List[Tuple[str, str]]:
        return list(self.xgboost)

    def validate(self) -> None:
        """Raise ``ValueError`` on inconsistent settings."""
        training = self.training
        if not training.datasets:
            raise ValueError("datasets cannot be empty")
        if not 0.0 < training.train_ratio < 1.0:
            raise ValueError("train_ratio must be between 0 and 1")
        if training.model_format not in MODEL_FORMATS:
            raise ValueError(f"model_format must be one of {MODEL_FORMATS}")
        for dataset in training.datasets:
            if dataset.generator not in GENERATORS:
                raise ValueError(f"Unknown generator: {dataset.generator}")
            if dataset.rows <= 0 or dataset.x_cols <= 0 or dataset.y_cols <= 0:
                raise ValueError(f"dataset '{dataset.name}' sizes must be > 0")
        if len({d.y_cols for d in training.datasets}) > 1:
            raise ValueError("all datasets must have the same y_cols")
        if not any(key == ITERATION_KEY for key, _ in self.xgboost):
            raise ValueError(f"xgboost.{ITERATION_KEY} (or {NUM_ROUND_ALIAS}) is required")


def _rename_num_round(items: Any) -> List[Tuple[str, Any]]:
    return [(ITERATION_KEY if k == NUM_ROUND_ALIAS else k, v) for k, v in items]


def load_config(config_path: str | Path) -> Config:
    """Read a YAML config file into a :class:`Config`."""
    path = Path(config_path).resolve()
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")
    with path.open("r", encoding="utf-8") as fh:
        full_cfg: Mapping[str, Any] = yaml.safe_load(fh) or {}
    return Config.from_mapping(full_cfg, base_dir=path.parent)
