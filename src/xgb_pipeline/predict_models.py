#!/usr/bin/env python
"""Batch prediction with a persisted XGBoost model.

Usage:
    python -m xgb_pipeline.predict_models \
        --input-file data/features.csv --model-path models/xgb_uniform_4_20250101_120000.ubj \
        --y-cols 2 --out-csv predictions.csv

Instead of ``--model-path``, ``--models-dir`` plus ``--model-name`` picks the
newest timestamped model of that name.
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import List, Sequence

import numpy as np
import pandas as pd

from xgb_pipeline.context import PipelineContext
from xgb_pipeline.predictor import find_latest_model


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    ap = argparse.ArgumentParser(description="Predict with a persisted XGBoost model.")
    ap.add_argument("--input-file", type=str, required=True, help="CSV or parquet file with features")
    ap.add_argument("--model-path", type=str, default=None)
    ap.add_argument("--models-dir", type=str, default="models")
    ap.add_argument("--model-name", type=str, default=None)
    ap.add_argument("--y-cols", type=int, default=2, help="Number of model outputs")
    ap.add_argument(
        "--feature-cols",
        type=str,
        default=None,
        help="Comma-separated feature columns (default: all numeric columns except --id-col)",
    )
    ap.add_argument("--id-col", type=str, default="id")
    ap.add_argument("--out-csv", type=str, default="predictions.csv")
    return ap.parse_args(argv)


def load_table(path: Path) -> pd.DataFrame:
    if path.suffix.lower() == ".parquet":
        return pd.read_parquet(path)
    if path.suffix.lower() == ".csv":
        return pd.read_csv(path)
    raise ValueError(f"Unsupported extension: {path.suffix}")


def select_features(df: pd.DataFrame, feature_cols: str | None, id_col: str) -> List[str]:
    if feature_cols:
        cols = [c.strip() for c in feature_cols.split(",") if c.strip()]
        missing = [c for c in cols if c not in df.columns]
        if missing:
            raise KeyError(f"Feature columns not found: {missing}")
        return cols
    numeric = df.select_dtypes(include=[np.number]).columns.tolist()
    return [c for c in numeric if c != id_col]


def main(argv: Sequence[str] | None = None) -> int:
    args = parse_args(argv)

    input_path = Path(args.input_file)
    if not input_path.exists():
        print(f"[error] input file not found: {input_path}")
        return 1

    if args.model_path:
        model_path = Path(args.model_path)
    elif args.model_name:
        found = find_latest_model(args.models_dir, args.model_name)
        if found is None:
            print(f"[error] no model named '{args.model_name}' under {args.models_dir}")
            return 1
        model_path = found
    else:
        print("[error] either --model-path or --model-name is required")
        return 1
    print(f"[info] model: {model_path}")

    df = load_table(input_path)
    feature_cols = select_features(df, args.feature_cols, args.id_col)
    if not feature_cols:
        print("[error] no feature columns found")
        return 1
    print(f"[info] rows={len(df)} features={len(feature_cols)}")

    ctx = PipelineContext()
    result = ctx.predict(df[feature_cols].to_numpy(dtype=np.float32), args.y_cols, model_path)
    if not result.ok:
        print(f"[error] prediction failed: {ctx.get_last_error()}")
        return 1

    predictions = result.unwrap()
    out_df = pd.DataFrame(
        predictions, columns=[f"pred_{k + 1}" for k in range(args.y_cols)]
    )
    if args.id_col in df.columns:
        out_df.insert(0, args.id_col, df[args.id_col].to_numpy())
    out_path = Path(args.out_csv)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    out_df.to_csv(out_path, index=False)
    print(f"[ok] saved predictions to {out_path}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
