"""
Tests for domains and set operations.
"""

import pytest

from dpgm.base.domain import Domain, difference, disjoint, includes, intersect, make_domain, union
from dpgm.core.exceptions import InvalidArgument


class TestDomain:
    def test_order_and_index(self, xyz):
        x, y, z = xyz
        d = Domain([z, x, y, x])
        assert d.arg_seq == (z, x, y)
        assert d.index[x] == 1
        assert [d.index[v] for v in d.arg_seq] == [0, 1, 2]
        assert d.shape == (2, 2, 3)
        assert d.num_assignments() == 12

    def test_set_equality(self, xyz):
        x, y, z = xyz
        assert Domain([x, y]) == Domain([y, x])
        assert hash(Domain([x, y])) == hash(Domain([y, x]))
        assert Domain([x]) != Domain([x, y])

    def test_empty(self):
        d = Domain()
        assert len(d) == 0
        assert d.shape == ()
        assert d.num_assignments() == 1

    def test_position(self, xyz):
        x, y, z = xyz
        with pytest.raises(InvalidArgument):
            Domain([x]).position(y)

    def test_sorted(self, xyz):
        x, y, z = xyz
        assert Domain([z, x]).sorted().arg_seq == (x, z)

    def test_repr(self, xyz):
        x, y, _ = xyz
        assert repr(make_domain(x, y)) == "{x,y}"


class TestSetOperations:
    def test_union_keeps_left_order(self, xyz):
        x, y, z = xyz
        assert union([y, x], [z, x]).arg_seq == (y, x, z)
        assert union([], [z, x]).arg_seq == (z, x)
        assert union([x], []).arg_seq == (x,)

    def test_intersect_and_difference(self, xyz):
        x, y, z = xyz
        assert intersect([z, y, x], [x, z]).arg_seq == (z, x)
        assert len(intersect([x], [])) == 0
        assert difference([z, y, x], [y]).arg_seq == (z, x)

    def test_includes_and_disjoint(self, xyz):
        x, y, z = xyz
        assert includes([x, y], [y])
        assert includes([x, y], [])
        assert not includes([x], [x, y])
        assert disjoint([x], [y, z])
        assert not disjoint([x, y], [y])

    def test_operators(self, xyz):
        x, y, z = xyz
        a, b = Domain([x, y]), Domain([y, z])
        assert (a | b) == Domain([x, y, z])
        assert (a & b) == Domain([y])
        assert (a - b) == Domain([x])
        assert Domain([y]) <= a

    def test_partition(self, xyz):
        x, y, z = xyz
        inside, outside = Domain([x, y, z]).partition([y])
        assert inside == Domain([y])
        assert outside.arg_seq == (x, z)


class TestSubst:
    def test_subst(self, universe, xyz):
        x, y, z = xyz
        w = universe.new_variable(2, "w")
        assert Domain([x, y]).subst({x: w}).arg_seq == (w, y)

    def test_subst_arity_mismatch(self, xyz):
        x, y, _ = xyz
        with pytest.raises(InvalidArgument):
            Domain([x]).subst({x: y})

    def test_subst_not_one_to_one(self, xyz):
        x, _, z = xyz
        with pytest.raises(InvalidArgument):
            Domain([x, z]).subst({x: z})
