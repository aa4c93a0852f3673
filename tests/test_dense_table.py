"""
Tests for dense tables.
"""

import numpy as np
import pytest

from dpgm.algebra.ops import Op
from dpgm.core.config import override
from dpgm.core.exceptions import InvalidArgument, OutOfRange
from dpgm.tensor.dense_table import FREE, DenseTable


def _table(shape, seed=0):
    rng = np.random.default_rng(seed)
    return DenseTable.from_array(rng.uniform(0.5, 2.0, size=shape))


class TestConstruction:
    def test_default_fill(self):
        t = DenseTable((2, 3), 1.5)
        assert t.shape == (2, 3)
        assert t.size == 6
        assert np.all(t.data == 1.5)

    def test_linear_order(self):
        t = DenseTable.from_values((2, 2), [1, 2, 3, 4])
        assert t[(0, 0)] == 1
        assert t[(1, 0)] == 2
        assert t[(0, 1)] == 3
        assert t.values().tolist() == [1, 2, 3, 4]
        assert list(t) == [1, 2, 3, 4]

    def test_zero_dimension(self):
        with pytest.raises(InvalidArgument):
            DenseTable((2, 0))

    def test_value_count_mismatch(self):
        with pytest.raises(InvalidArgument):
            DenseTable.from_values((2, 2), [1, 2, 3])

    def test_scalar(self):
        t = DenseTable((), 7.0)
        assert t.ndim == 0
        assert t.size == 1
        assert t[()] == 7.0
        assert list(t.indices()) == [()]


class TestIndexing:
    def test_indices_dimension_zero_fastest(self):
        t = DenseTable((2, 3))
        idx = list(t.indices())
        assert idx[:4] == [(0, 0), (1, 0), (0, 1), (1, 1)]
        assert len(idx) == 6

    def test_linear_and_index(self):
        t = DenseTable((2, 3))
        assert t.index(3) == (1, 1)
        assert t.linear((1, 2)) == 5
        for k in range(t.size):
            assert t.linear(t.index(k)) == k

    def test_index_out_of_range(self):
        with pytest.raises(OutOfRange):
            DenseTable((2, 3)).index(6)

    def test_bounds_check(self):
        t = DenseTable((2, 3))
        with override(bounds_check=True):
            with pytest.raises(OutOfRange):
                t[(2, 0)]
            with pytest.raises(OutOfRange):
                t[(0,)] = 1.0


class TestJoin:
    def test_outer_product(self):
        a = DenseTable.from_values((2,), [1, 2])
        b = DenseTable.from_values((3,), [1, 10, 100])
        out = DenseTable.join(a, b, [0], [1], Op.PRODUCT)
        assert out.shape == (2, 3)
        assert np.allclose(out.data, np.outer([1, 2], [1, 10, 100]))

    def test_permuted_operand(self):
        a = _table((2, 3), 1)
        b = _table((3, 2), 2)
        out = DenseTable.join(a, b, [0, 1], [1, 0], Op.SUM)
        assert np.allclose(out.data, a.data + b.data.T)

    def test_size_mismatch(self):
        a = DenseTable((2,))
        b = DenseTable((3,))
        with pytest.raises(InvalidArgument, match="size mismatch"):
            DenseTable.join(a, b, [0], [0], Op.SUM)

    def test_uncovered_output_dimension(self):
        with pytest.raises(InvalidArgument):
            DenseTable.join(DenseTable((2,)), DenseTable((2,)), [0], [2], Op.SUM)

    def test_safe_divide(self):
        a = DenseTable.from_values((2,), [1, 2])
        b = DenseTable.from_values((2,), [0, 4])
        out = DenseTable.join(a, b, [0], [0], Op.DIVIDE)
        assert out.values().tolist() == [0.0, 0.5]

    def test_join_with_in_place(self):
        a = _table((2, 3), 3)
        expected = a.data * np.arange(1, 4)[None, :]
        b = DenseTable.from_values((3,), [1, 2, 3])
        a.join_with(b, [1], Op.PRODUCT)
        assert np.allclose(a.data, expected)


class TestAggregate:
    def test_sum_keep_dimension(self):
        t = DenseTable.from_values((2, 2), [1, 2, 3, 4])
        out = DenseTable.aggregate(t, [0], Op.SUM)
        assert out.values().tolist() == [4, 6]

    def test_transposed_output(self):
        t = _table((2, 3, 4), 4)
        out = DenseTable.aggregate(t, [2, 0], Op.MAX)
        assert np.allclose(out.data, t.data.max(axis=1).T)

    def test_initial(self):
        t = DenseTable.from_values((2,), [1, 2])
        assert DenseTable.aggregate(t, [], Op.SUM, 10.0).data == 13.0
        assert t.accumulate(Op.DIFFERENCE) == -3.0
        assert t.accumulate(Op.MIN) == 1.0

    def test_invalid_map(self):
        with pytest.raises(InvalidArgument):
            DenseTable.aggregate(DenseTable((2,)), [1], Op.SUM)


class TestRestrict:
    def test_restrict_middle(self):
        t = _table((2, 3, 2), 5)
        out = DenseTable.restrict(t, [FREE, 1, FREE], [2, 0])
        assert np.allclose(out.data, t.data[:, 1, :].T)

    def test_restrict_all(self):
        t = _table((2, 3), 6)
        out = DenseTable.restrict(t, [1, 2], [])
        assert out.ndim == 0
        assert out[()] == t[(1, 2)]

    def test_restrict_out_of_range(self):
        with pytest.raises(OutOfRange):
            DenseTable.restrict(DenseTable((2, 3)), [FREE, 3], [0])


class TestJoinAggregate:
    @pytest.mark.parametrize("agg", [Op.SUM, Op.PRODUCT, Op.MAX, Op.MIN, Op.DIFFERENCE, Op.DIVIDE])
    @pytest.mark.parametrize("keep", [[], [0], [2], [2, 0], [1, 2]])
    def test_matches_unfused(self, agg, keep):
        a = _table((2, 3), 7)
        b = _table((3, 4), 8)
        joined = DenseTable.join(a, b, [0, 1], [1, 2], Op.PRODUCT)
        expected = DenseTable.aggregate(joined, keep, agg)
        fused = DenseTable.join_aggregate(a, b, [0, 1], [1, 2], keep, Op.PRODUCT, agg)
        assert fused.shape == expected.shape
        assert np.allclose(fused.data, expected.data)

    def test_scalars(self):
        a = DenseTable((), 2.0)
        b = DenseTable((), 3.0)
        out = DenseTable.join_aggregate(a, b, [], [], [], Op.PRODUCT, Op.SUM)
        assert out[()] == 6.0

    def test_custom_join_function(self):
        a = DenseTable.from_values((2,), [1, 2])
        b = DenseTable.from_values((2,), [3, 5])
        out = DenseTable.join_aggregate(a, b, [0], [0], [], lambda x, y: np.abs(x - y), Op.MAX)
        assert out[()] == 3.0


class TestJoinFind:
    def test_first_hit_in_linear_order(self):
        a = DenseTable.from_values((2, 2), [1, 2, 3, 4])
        b = DenseTable.from_values((2, 2), [1, 2, 0, 0])
        assert DenseTable.join_find(a, b, [0, 1], [0, 1], np.not_equal) == (3.0, 0.0)

    def test_no_hit(self):
        a = DenseTable.from_values((2,), [1, 2])
        assert DenseTable.join_find(a, a.copy(), [0], [0], np.not_equal) is None


class TestTransform:
    def test_transform_and_equality(self):
        t = DenseTable.from_values((2,), [1, 4])
        t.transform(np.sqrt)
        assert t == DenseTable.from_values((2,), [1, 2])
        assert t != DenseTable.from_values((2,), [1, 3])
