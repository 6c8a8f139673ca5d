"""Tests for shuffled train/test partitioning."""

from __future__ import annotations

import numpy as np
import pytest

from xgb_pipeline.partition import Partition, make_partition, split
from xgb_pipeline.permutation import SplitMix64, shuffle
from xgb_pipeline.status import InvalidParameterError


class TestMakePartition:
    """Tests for index partitioning."""

    @pytest.mark.parametrize("rows,rows_train", [(2, 1), (10, 8), (101, 50), (500, 499)])
    def test_disjoint_and_complete(self, rows, rows_train):
        part = make_partition(rows, rows_train, SplitMix64(rows))

        assert len(part.train) == rows_train
        assert len(part.test) == rows - rows_train
        assert set(part.train.tolist()).isdisjoint(part.test.tolist())
        assert sorted(np.concatenate([part.train, part.test]).tolist()) == list(range(rows))
        assert part.rows == rows

    def test_follows_permutation_order(self):
        """Train/test keep the shuffle order instead of being re-sorted."""
        expected = shuffle(20, SplitMix64(8))
        part = make_partition(20, 15, SplitMix64(8))

        np.testing.assert_array_equal(part.train, expected[:15])
        np.testing.assert_array_equal(part.test, expected[15:])

    @pytest.mark.parametrize("rows_train", [0, 10, -1, 11])
    def test_rows_train_out_of_range(self, rows_train):
        with pytest.raises(InvalidParameterError) as excinfo:
            make_partition(10, rows_train)
        assert excinfo.value.context["rows"] == 10

    def test_rows_train_must_be_integer(self):
        with pytest.raises(InvalidParameterError):
            make_partition(10, 5.0)


class TestSplit:
    """Tests for split()."""

    def test_concrete_scenario(self, sequential_data):
        """rows=10, x[i]=[2i, 2i+1], y[i]=i, rows_train=8."""
        x, y = sequential_data
        data = split(x, y, 8, rng=SplitMix64(1))

        assert data.x_train.shape == (8, 2)
        assert data.y_train.shape == (8, 1)
        assert data.x_test.shape == (2, 2)
        assert data.y_test.shape == (2, 1)

        all_rows = sorted(map(tuple, np.vstack([data.x_train, data.x_test]).tolist()))
        assert all_rows == sorted(map(tuple, x.tolist()))
        assert float(data.y_train.sum() + data.y_test.sum()) == 45.0

    def test_rows_stay_co_indexed(self, sequential_data):
        x, y = sequential_data
        data = split(x, y, 6, rng=SplitMix64(2))

        for x_part, y_part in ((data.x_train, data.y_train), (data.x_test, data.y_test)):
            for x_row, y_row in zip(x_part, y_part):
                # x[i] = [2i, 2i+1] so the source row is x_row[0] / 2.
                assert x_row[0] / 2 == y_row[0]
                assert x_row[1] == x_row[0] + 1

    def test_output_order_follows_shuffle(self, sequential_data):
        x, y = sequential_data
        data = split(x, y, 7, rng=SplitMix64(3))

        np.testing.assert_array_equal(data.x_train, x[data.partition.train])
        np.testing.assert_array_equal(data.y_test, y[data.partition.test])

    def test_flat_buffers(self):
        x = np.arange(20, dtype=np.float32)  # 10 rows x 2 cols
        y = np.arange(10, dtype=np.float32)
        data = split(x, y, 5, rows=10, x_cols=2, y_cols=1, rng=SplitMix64(4))

        assert data.x_train.shape == (5, 2)
        assert data.y_test.shape == (5, 1)
        np.testing.assert_array_equal(data.x_train[:, 0] / 2, data.y_train[:, 0])

    def test_inputs_not_mutated(self, sequential_data):
        x, y = sequential_data
        x_before, y_before = x.copy(), y.copy()
        data = split(x, y, 5, rng=SplitMix64(5))
        data.x_train[:] = -1

        np.testing.assert_array_equal(x, x_before)
        np.testing.assert_array_equal(y, y_before)

    def test_same_seed_same_split(self, sequential_data):
        x, y = sequential_data
        a = split(x, y, 5, rng=SplitMix64(6))
        b = split(x, y, 5, rng=SplitMix64(6))
        np.testing.assert_array_equal(a.x_train, b.x_train)

    @pytest.mark.parametrize("rows_train", [0, 10])
    def test_invalid_rows_train(self, sequential_data, rows_train):
        x, y = sequential_data
        with pytest.raises(InvalidParameterError):
            split(x, y, rows_train)

    def test_row_count_mismatch(self):
        with pytest.raises(InvalidParameterError):
            split(np.zeros((10, 2)), np.zeros((9, 1)), 5)

    def test_missing_input(self):
        with pytest.raises(InvalidParameterError):
            split(None, np.zeros((10, 1)), 5)

    def test_declared_dimensions_must_match(self, sequential_data):
        x, y = sequential_data
        with pytest.raises(InvalidParameterError):
            split(x, y, 5, x_cols=3)

    def test_partition_type(self, sequential_data):
        x, y = sequential_data
        assert isinstance(split(x, y, 5).partition, Partition)

    def test_outputs_use_engine_precision(self, sequential_data):
        x, y = sequential_data
        data = split(x.astype(np.float64), y.astype(np.float64), 5, rng=SplitMix64(7))
        assert data.x_train.dtype == np.float32
        assert data.y_test.dtype == np.float32
