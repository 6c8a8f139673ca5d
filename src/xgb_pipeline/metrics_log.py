"""CSV log of training runs (one row per trained model)."""

from __future__ import annotations

import csv
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Sequence

import pandas as pd


@dataclass(frozen=True)
class TrainingRecord:
    model_name: str
    dataset: str
    rows: int
    x_cols: int
    y_cols: int
    train_ratio: float
    elapsed_min: float
    rmse: Sequence[float]
    model_path: str


class MetricsWriter:
    """Append-only CSV writer with one ``rmse_<k>`` column per target."""

    def __init__(self, path: str | Path, n_targets: int = 2) -> None:
        if n_targets <= 0:
            raise ValueError("n_targets must be > 0")
        self.path = Path(path)
        self.n_targets = n_targets

    @property
    def fieldnames(self) -> List[str]:
        return (
            ["model_name", "dataset", "rows", "x_cols", "y_cols", "train_ratio", "elapsed_min"]
            + [f"rmse_{k + 1}" for k in range(self.n_targets)]
            + ["model_path"]
        )

    def ensure_header(self) -> None:
        """Create the file with a header row unless it already exists."""
        if self.path.exists():
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "w", newline="", encoding="utf-8") as f:
            csv.DictWriter(f, fieldnames=self.fieldnames).writeheader()

    def write_record(self, record: TrainingRecord) -> None:
        if len(record.rmse) != self.n_targets:
            raise ValueError(
                f"expected {self.n_targets} RMSE values, got {len(record.rmse)}"
            )
        self.ensure_header()
        row: Dict[str, object] = {
            "model_name": record.model_name,
            "dataset": record.dataset,
            "rows": record.rows,
            "x_cols": record.x_cols,
            "y_cols": record.y_cols,
            "train_ratio": record.train_ratio,
            "elapsed_min": f"{record.elapsed_min:.2f}",
            "model_path": record.model_path,
        }
        for k, value in enumerate(record.rmse):
            row[f"rmse_{k + 1}"] = f"{float(value):.6f}"
        with open(self.path, "a", newline="", encoding="utf-8") as f:
            csv.DictWriter(f, fieldnames=self.fieldnames).writerow(row)

    def read_records(self) -> pd.DataFrame:
        if not self.path.exists():
            return pd.DataFrame(columns=self.fieldnames)
        return pd.read_csv(self.path)


def format_summary(record: TrainingRecord) -> str:
    rmse = ", ".join(f"{float(v):.6f}" for v in record.rmse)
    return (
        f"├─ Data size: {record.rows} rows\n"
        f"├─ Elapsed: {record.elapsed_min:.2f} min\n"
        f"├─ RMSE: [{rmse}]\n"
        f"└─ Model: {record.model_path}"
    )
