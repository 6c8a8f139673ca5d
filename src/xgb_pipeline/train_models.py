#!/usr/bin/env python
"""Train one XGBoost model per configured dataset.

For each dataset in the config the script generates the synthetic data, runs
split -> train -> evaluate -> persist, prints a summary and appends a row to
the metrics CSV.

Usage:
    python -m xgb_pipeline.train_models --config configs/train.yaml
"""

from __future__ import annotations

import argparse
import logging
import sys
from typing import Sequence

from xgb_pipeline.config import load_config
from xgb_pipeline.context import PipelineContext
from xgb_pipeline.datagen import generate
from xgb_pipeline.metrics_log import MetricsWriter, TrainingRecord, format_summary
from xgb_pipeline.training import TrainOptions


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    ap = argparse.ArgumentParser(description="Train XGBoost models from a YAML config.")
    ap.add_argument(
        "--config",
        type=str,
        default="configs/train.yaml",
        help="Path to train.yaml",
    )
    ap.add_argument(
        "--models-dir",
        type=str,
        default=None,
        help="Override output.models_dir",
    )
    ap.add_argument(
        "--seed",
        type=int,
        default=None,
        help="Override training.seed",
    )
    ap.add_argument("--log-level", type=str, default="WARNING")
    return ap.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> int:
    """Main training function."""
    args = parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level.upper(), logging.WARNING),
        format="%(asctime)s - %(levelname)s - %(message)s",
    )

    print(f"[info] loading configuration from: {args.config}")
    try:
        config = load_config(args.config)
        config.validate()
    except (OSError, KeyError, ValueError) as exc:
        print(f"[error] invalid configuration: {exc}")
        return 1

    training = config.training
    models_dir = args.models_dir or str(config.output.models_dir)
    seed = args.seed if args.seed is not None else training.seed
    options = TrainOptions(
        model_format=training.model_format, atomic_write=training.atomic_write
    )

    metrics_writer = MetricsWriter(
        config.output.metrics_file, n_targets=training.datasets[0].y_cols
    )
    try:
        metrics_writer.ensure_header()
    except OSError as exc:
        print(f"[warn] failed to write metrics header: {exc}")

    failures = 0
    with PipelineContext(seed, options=options) as ctx:
        for dataset in training.datasets:
            print(f"\n{'=' * 60}")
            print(f"Dataset: {dataset.name} ({dataset.generator})")
            print(f"{'=' * 60}")
            print(f"[info] generating {dataset.rows} rows x {dataset.x_cols} features")
            x, y = generate(
                dataset.generator,
                dataset.rows,
                dataset.x_cols,
                dataset.y_cols,
                dataset.seed if dataset.seed is not None else seed,
            )

            print(
                f"[info] training {dataset.name} "
                f"(train ratio: {training.train_ratio * 100:.0f}%)"
            )
            result = ctx.train_and_evaluate(
                x,
                y,
                training.train_ratio,
                config.xgb_params,
                models_dir,
                dataset.name,
            )
            if not result.ok:
                print(f"[error] training {dataset.name} failed: {ctx.get_last_error()}")
                failures += 1
                continue

            report = result.unwrap()
            for key, value, reason in report.rejected_params:
                print(f"[warn] parameter {key}={value} rejected: {reason}")

            record = TrainingRecord(
                model_name=dataset.name,
                dataset=dataset.generator,
                rows=dataset.rows,
                x_cols=dataset.x_cols,
                y_cols=dataset.y_cols,
                train_ratio=training.train_ratio,
                elapsed_min=report.elapsed_sec / 60.0,
                rmse=[float(v) for v in report.rmse],
                model_path=str(report.model_path),
            )
            print(format_summary(record))
            for k, value in enumerate(record.rmse):
                print(f"[metric] {dataset.name} rmse_{k + 1}={value:.6f}")
            try:
                metrics_writer.write_record(record)
            except OSError as exc:
                print(f"[warn] failed to write metrics: {exc}")

    print(f"\n[info] models saved to: {models_dir}")
    return 1 if failures else 0


if __name__ == "__main__":
    sys.exit(main())
