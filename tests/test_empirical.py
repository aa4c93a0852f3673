"""
Tests for factors estimated from records.
"""

import numpy as np
import pytest

from dpgm.core.exceptions import InvalidArgument, OutOfRange
from dpgm.factor import TableFactor, empirical_factor, log_likelihood


class TestEmpiricalFactor:
    def test_counts_from_mappings(self, xyz):
        x, y, _ = xyz
        records = [{x: 0, y: 0}, {x: 1, y: 2}, {x: 1, y: 2}, {x: 0, y: 1}]
        f = empirical_factor([x, y], records)
        assert f(0, 0) == pytest.approx(0.25)
        assert f(1, 2) == pytest.approx(0.5)
        assert f(1, 0) == 0.0
        assert f.norm_constant() == pytest.approx(1.0)

    def test_array_records(self, xyz):
        x, y, z = xyz
        data = np.array([[0, 1, 0], [1, 1, 1], [1, 0, 1]])
        f = empirical_factor([z, x], data, columns=[x, y, z])
        assert f.arg_seq == (z, x)
        assert f({x: 1, z: 1}) == pytest.approx(2 / 3)

    def test_weights_and_smoothing(self, xyz):
        x, _, _ = xyz
        f = empirical_factor([x], [{x: 0}, {x: 1}], weights=[3.0, 1.0], smoothing=1.0)
        assert f.values().tolist() == pytest.approx([4 / 6, 2 / 6])

    def test_no_arguments(self, xyz):
        x, _, _ = xyz
        f = empirical_factor([], [{x: 0}, {x: 1}])
        assert f() == pytest.approx(1.0)

    def test_missing_column(self, xyz):
        x, y, _ = xyz
        with pytest.raises(InvalidArgument):
            empirical_factor([x, y], np.zeros((2, 1), dtype=int), columns=[x])
        with pytest.raises(InvalidArgument):
            empirical_factor([x, y], np.zeros((2, 2), dtype=int))

    def test_value_out_of_range(self, xyz):
        x, _, _ = xyz
        with pytest.raises(OutOfRange):
            empirical_factor([x], [{x: 2}])


class TestLogLikelihood:
    def test_matches_sum_of_logs(self, xyz):
        x, y, _ = xyz
        f = TableFactor([x, y], values=[0.1, 0.2, 0.3, 0.1, 0.2, 0.1])
        records = [{x: 0, y: 0}, {x: 1, y: 1}]
        assert log_likelihood(f, records) == pytest.approx(np.log(0.1) + np.log(0.1))
        assert log_likelihood(f, records, weights=[2.0, 0.0]) == pytest.approx(2 * np.log(0.1))

    def test_empirical_maximizes_likelihood(self, xyz, rng):
        x, y, _ = xyz
        data = np.column_stack([rng.integers(0, 2, 200), rng.integers(0, 3, 200)])
        ml = empirical_factor([x, y], data, columns=[x, y])
        uniform = TableFactor([x, y], 1.0 / 6)
        assert log_likelihood(ml, data, columns=[x, y]) >= log_likelihood(uniform, data, columns=[x, y])

    def test_zero_probability(self, xyz):
        x, _, _ = xyz
        f = TableFactor([x], values=[1.0, 0.0])
        assert log_likelihood(f, [{x: 1}]) == -np.inf

    def test_empty(self, xyz):
        x, _, _ = xyz
        assert log_likelihood(TableFactor([x], 0.5), []) == 0.0
