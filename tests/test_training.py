"""End-to-end tests for training, evaluation and persistence (real XGBoost)."""

from __future__ import annotations

import json
import re
from datetime import datetime

import numpy as np
import pytest

from xgb_pipeline.engine import MatrixHandle, ModelHandle
from xgb_pipeline.evaluate import rmse
from xgb_pipeline.partition import split
from xgb_pipeline.permutation import SplitMix64
from xgb_pipeline.predictor import predict
from xgb_pipeline.status import (
    EngineError,
    FileIOError,
    InvalidParameterError,
    SizeMismatchError,
    StatusCode,
)
from xgb_pipeline.training import (
    TrainOptions,
    copy_path_to_buffer,
    rows_for_ratio,
    synthesize_model_path,
    train,
    train_and_evaluate,
    write_model,
)

PATH_RE = re.compile(r"^model_\d{8}_\d{6}\.ubj$")


def _with_iterations(config, value):
    return [(k, v) for k, v in config if k != "n_estimators"] + [("n_estimators", value)]


@pytest.fixture
def record_handles(monkeypatch):
    """Record every MatrixHandle/ModelHandle the pipeline creates."""
    created = []
    orig_matrix = MatrixHandle.create
    orig_model = ModelHandle.create

    def matrix_create(cls, *args, **kwargs):
        handle = orig_matrix(*args, **kwargs)
        created.append(handle)
        return handle

    def model_create(cls, *args, **kwargs):
        handle = orig_model(*args, **kwargs)
        created.append(handle)
        return handle

    monkeypatch.setattr(MatrixHandle, "create", classmethod(matrix_create))
    monkeypatch.setattr(ModelHandle, "create", classmethod(model_create))
    return created


class TestHelpers:
    def test_rows_for_ratio_truncates(self):
        assert rows_for_ratio(200, 0.8) == 160
        assert rows_for_ratio(10, 0.55) == 5

    @pytest.mark.parametrize("ratio", [0.0, 1.0, -0.2, 1.5, "abc"])
    def test_rows_for_ratio_invalid(self, ratio):
        with pytest.raises(InvalidParameterError):
            rows_for_ratio(10, ratio)

    def test_synthesize_model_path(self, tmp_path):
        now = datetime(2024, 3, 5, 14, 7, 9)
        path = synthesize_model_path(tmp_path, "model", "json", now)
        assert path == tmp_path / "model_20240305_140709.json"

    def test_copy_path_to_buffer_truncates(self):
        buf = bytearray(b"\xff" * 8)
        copy_path_to_buffer("/tmp/models/m.ubj", buf)
        assert bytes(buf) == b"/tmp/mo\x00"

    def test_copy_path_to_buffer_short_path(self):
        buf = bytearray(16)
        copy_path_to_buffer("a/b.ubj", buf)
        assert bytes(buf[:8]) == b"a/b.ubj\x00"

    def test_write_model_atomic_leaves_no_temp_files(self, tmp_path):
        target = tmp_path / "m.ubj"
        write_model(target, b"payload", atomic=True)
        assert target.read_bytes() == b"payload"
        assert [p.name for p in tmp_path.iterdir()] == ["m.ubj"]

    def test_write_model_into_missing_directory(self, tmp_path):
        with pytest.raises(FileIOError):
            write_model(tmp_path / "missing" / "m.ubj", b"x")


class TestTrainAndEvaluate:
    def test_report_and_model_file(self, regression_data, xgb_config, tmp_path):
        x, y = regression_data
        out_dir = tmp_path / "models"
        report = train_and_evaluate(
            x, y, 0.8, xgb_config, out_dir, "model", rng=SplitMix64(0)
        )

        assert report.model_path.parent == out_dir
        assert PATH_RE.match(report.model_path.name)
        assert report.model_path.is_file()
        assert report.model_path.stat().st_size > 0
        assert report.rows_train == 160
        assert report.rows_test == 40
        assert report.iterations == 20
        assert report.rmse.shape == (2,)
        assert np.all(np.isfinite(report.rmse))
        assert np.all(report.rmse >= 0)
        # The model should beat predicting zero by a wide margin.
        assert np.all(report.rmse < y.std(axis=0))

    def test_round_trip_reproduces_rmse(self, regression_data, xgb_config, tmp_path):
        x, y = regression_data
        report = train_and_evaluate(
            x, y, 0.8, xgb_config, tmp_path, "model", rng=SplitMix64(21)
        )

        # The shuffle is the first draw from the generator, so the same seed
        # reproduces the internal split.
        data = split(x, y, report.rows_train, rng=SplitMix64(21))
        preds = predict(data.x_test, 2, report.model_path)

        assert preds.shape == (40, 2)
        np.testing.assert_allclose(rmse(preds, data.y_test), report.rmse, rtol=1e-5)

    def test_flat_buffers(self, regression_data, xgb_config, tmp_path):
        x, y = regression_data
        report = train_and_evaluate(
            x.ravel(), y.ravel(), 0.8, xgb_config, tmp_path, "flat",
            rows=200, x_cols=4, y_cols=2, rng=SplitMix64(1),
        )
        assert report.rmse.shape == (2,)

    def test_single_target(self, regression_data, xgb_config, tmp_path):
        x, y = regression_data
        report = train_and_evaluate(
            x, y[:, :1], 0.75, xgb_config, tmp_path, "one", rng=SplitMix64(2)
        )
        assert report.rmse.shape == (1,)
        assert report.rows_train == 150

    def test_json_format(self, regression_data, xgb_config, tmp_path):
        x, y = regression_data
        report = train_and_evaluate(
            x, y, 0.8, xgb_config, tmp_path, "model",
            rng=SplitMix64(3), options=TrainOptions(model_format="json"),
        )
        assert report.model_path.suffix == ".json"
        json.loads(report.model_path.read_text())

    def test_atomic_write(self, regression_data, xgb_config, tmp_path):
        x, y = regression_data
        report = train_and_evaluate(
            x, y, 0.8, xgb_config, tmp_path, "model",
            rng=SplitMix64(4), options=TrainOptions(atomic_write=True),
        )
        assert [p.name for p in tmp_path.iterdir()] == [report.model_path.name]

    def test_explicit_timestamp(self, regression_data, xgb_config, tmp_path):
        x, y = regression_data
        now = datetime(2025, 1, 2, 3, 4, 5)
        report = train_and_evaluate(
            x, y, 0.8, xgb_config, tmp_path, "m", rng=SplitMix64(5), now=now
        )
        assert report.model_path == tmp_path / "m_20250102_030405.ubj"

    def test_path_buffer_receives_path(self, regression_data, xgb_config, tmp_path):
        x, y = regression_data
        buf = bytearray(512)
        report = train_and_evaluate(
            x, y, 0.8, xgb_config, tmp_path, "model", rng=SplitMix64(6), path_buffer=buf
        )
        written = bytes(buf[: buf.index(0)]).decode("utf-8")
        assert written == str(report.model_path)

    def test_path_buffer_truncated(self, regression_data, xgb_config, tmp_path):
        x, y = regression_data
        buf = bytearray(10)
        report = train_and_evaluate(
            x, y, 0.8, xgb_config, tmp_path, "model", rng=SplitMix64(7), path_buffer=buf
        )
        assert buf[9] == 0
        assert bytes(buf[:9]) == str(report.model_path).encode("utf-8")[:9]

    def test_missing_iterations_fails_before_any_output(self, regression_data, xgb_config, tmp_path):
        x, y = regression_data
        out_dir = tmp_path / "models"
        config = [(k, v) for k, v in xgb_config if k != "n_estimators"]

        with pytest.raises(InvalidParameterError, match="n_estimators"):
            train_and_evaluate(x, y, 0.8, config, out_dir, "model")
        assert not out_dir.exists()

    @pytest.mark.parametrize("value", ["0", "-1", "abc"])
    def test_bad_iterations_never_reach_engine(
        self, regression_data, xgb_config, tmp_path, record_handles, value
    ):
        x, y = regression_data
        with pytest.raises(InvalidParameterError):
            train_and_evaluate(
                x, y, 0.8, _with_iterations(xgb_config, value), tmp_path, "model"
            )
        assert record_handles == []

    @pytest.mark.parametrize("ratio", [0.0, 1.0])
    def test_bad_ratio(self, regression_data, xgb_config, tmp_path, record_handles, ratio):
        x, y = regression_data
        with pytest.raises(InvalidParameterError):
            train_and_evaluate(x, y, ratio, xgb_config, tmp_path, "model")
        assert record_handles == []

    def test_ratio_leaving_no_train_rows(self, xgb_config, tmp_path):
        x = np.ones((3, 2), dtype=np.float32)
        y = np.ones((3, 1), dtype=np.float32)
        # int(3 * 0.2) == 0
        with pytest.raises(InvalidParameterError):
            train_and_evaluate(x, y, 0.2, xgb_config, tmp_path, "model")

    def test_empty_model_name(self, regression_data, xgb_config, tmp_path):
        x, y = regression_data
        with pytest.raises(InvalidParameterError):
            train_and_evaluate(x, y, 0.8, xgb_config, tmp_path, "")

    def test_unknown_model_format(self, regression_data, xgb_config, tmp_path):
        x, y = regression_data
        with pytest.raises(InvalidParameterError):
            train_and_evaluate(
                x, y, 0.8, xgb_config, tmp_path, "model",
                options=TrainOptions(model_format="pkl"),
            )

    def test_iteration_failure_reports_index_and_releases_handles(
        self, regression_data, xgb_config, tmp_path, monkeypatch, record_handles
    ):
        x, y = regression_data
        orig_update = ModelHandle.update

        def failing_update(self, matrix, iteration):
            if iteration == 3:
                raise EngineError("injected", operation="update")
            orig_update(self, matrix, iteration)

        monkeypatch.setattr(ModelHandle, "update", failing_update)

        with pytest.raises(EngineError) as excinfo:
            train_and_evaluate(x, y, 0.8, xgb_config, tmp_path, "model", rng=SplitMix64(8))

        assert excinfo.value.context["iteration"] == 3
        assert "iteration 3" in excinfo.value.message
        assert record_handles
        assert all(h.released for h in record_handles)
        assert list(tmp_path.iterdir()) == []

    def test_prediction_size_mismatch(self, regression_data, xgb_config, tmp_path, monkeypatch):
        x, y = regression_data
        monkeypatch.setattr(
            ModelHandle,
            "predict",
            lambda self, matrix, operation="predict": np.zeros(5, dtype=np.float32),
        )
        with pytest.raises(SizeMismatchError) as excinfo:
            train_and_evaluate(x, y, 0.8, xgb_config, tmp_path, "model", rng=SplitMix64(9))
        assert excinfo.value.code == StatusCode.SIZE_MISMATCH
        assert excinfo.value.operation == "evaluate"

    def test_output_dir_is_a_file(self, regression_data, xgb_config, tmp_path, record_handles):
        x, y = regression_data
        blocker = tmp_path / "not_a_dir"
        blocker.write_text("x")
        buf = bytearray(256)

        with pytest.raises(FileIOError):
            train_and_evaluate(
                x, y, 0.8, xgb_config, blocker, "model", rng=SplitMix64(10), path_buffer=buf
            )

        # The path was resolved before persistence failed; it stays in the buffer.
        assert bytes(buf[: buf.index(0)]).decode("utf-8").startswith(str(blocker))
        assert all(h.released for h in record_handles)


    def test_output_dir_with_nul_byte(self, regression_data, xgb_config, tmp_path):
        x, y = regression_data
        with pytest.raises(FileIOError):
            train_and_evaluate(
                x, y, 0.8, xgb_config, f"{tmp_path}/a\x00b", "model", rng=SplitMix64(11)
            )

    def test_generator_config_matches_list_config(self, regression_data, xgb_config, tmp_path):
        x, y = regression_data
        config = _coarse_config(xgb_config)
        from_list = train_and_evaluate(
            x, y, 0.8, config, tmp_path / "list", "m", rng=SplitMix64(12)
        )
        from_gen = train_and_evaluate(
            x, y, 0.8, (pair for pair in config), tmp_path / "gen", "m", rng=SplitMix64(12)
        )
        np.testing.assert_array_equal(from_gen.rmse, from_list.rmse)


def _coarse_config(config):
    """Stumps with a full learning rate; far from the engine defaults."""
    overrides = {"max_depth": "1", "eta": "1.0"}
    return [(k, overrides.get(k, v)) for k, v in config]


class TestWriteModel:
    @pytest.mark.parametrize("atomic", [False, True])
    def test_nul_byte_in_path(self, tmp_path, atomic):
        with pytest.raises(FileIOError):
            write_model(f"{tmp_path}/a\x00b.ubj", b"x", atomic=atomic)


class TestTrain:
    def test_generator_config_is_fully_applied(self, regression_data, xgb_config, tmp_path):
        x, y = regression_data
        config = _coarse_config(xgb_config)
        train(x, y, config, tmp_path / "list.json")
        train(x, y, (pair for pair in config), tmp_path / "gen.json")

        np.testing.assert_array_equal(
            predict(x[:20], 2, tmp_path / "gen.json"),
            predict(x[:20], 2, tmp_path / "list.json"),
        )

    def test_writes_exact_path(self, regression_data, xgb_config, tmp_path):
        x, y = regression_data
        target = tmp_path / "out" / "full.json"
        report = train(x, y, xgb_config, target)

        assert report.model_path == target
        assert report.rmse is None
        assert report.rows_train == 200
        json.loads(target.read_text())

        preds = predict(x[:10], 2, target)
        assert preds.shape == (10, 2)

    def test_suffix_falls_back_to_options(self, regression_data, xgb_config, tmp_path):
        x, y = regression_data
        target = tmp_path / "model.bin"
        train(x, y, xgb_config, target, options=TrainOptions(model_format="json"))
        json.loads(target.read_text())

    def test_row_mismatch(self, xgb_config, tmp_path):
        with pytest.raises(InvalidParameterError):
            train(np.ones((5, 2)), np.ones((4, 1)), xgb_config, tmp_path / "m.ubj")
