"""
Tests for interaction graphs and elimination orderings.
"""

import networkx as nx
import pytest

from dpgm.core.exceptions import InvalidArgument
from dpgm.graph import Constrained, MinDegree, MinFill, elimination_sequence, fill_in, interaction_graph


def _chain(n):
    return nx.path_graph(n)


def _cycle_with_pendant():
    g = nx.cycle_graph(4)
    g.add_edge(0, 4)
    return g


class TestInteractionGraph:
    def test_edges_between_shared_arguments(self, xyz):
        x, y, z = xyz
        g = interaction_graph([[x, y], [y, z], [z]])
        assert set(g.nodes) == {x, y, z}
        assert g.has_edge(x, y) and g.has_edge(y, z)
        assert not g.has_edge(x, z)

    def test_fill_in(self):
        g = _cycle_with_pendant()
        assert fill_in(0, g) == 3
        assert fill_in(1, g) == 1
        assert fill_in(4, g) == 0


class TestMinDegree:
    def test_chain(self):
        order = elimination_sequence(_chain(4))
        assert [v for v, _ in order] == [0, 1, 2, 3]
        assert [set(n) for _, n in order] == [{1}, {2}, {3}, set()]

    def test_graph_not_modified(self):
        g = _chain(4)
        elimination_sequence(g, MinDegree())
        assert g.number_of_edges() == 3

    def test_variable_vertices_tie_on_id(self, xyz):
        x, y, z = xyz
        g = interaction_graph([[z, y], [y, x]])
        assert elimination_sequence(g)[0][0] is x


class TestMinFill:
    def test_cycle_with_pendant(self):
        order = elimination_sequence(_cycle_with_pendant(), MinFill())
        assert [v for v, _ in order] == [4, 0, 1, 2, 3]
        assert order[1][1] == frozenset({1, 3})
        assert max(len(n) + 1 for _, n in order) == 3


class TestConstrained:
    def test_forced_first(self):
        strategy = Constrained(lambda v, g: 0 if v == 2 else 1)
        order = elimination_sequence(_chain(4), strategy)
        assert [v for v, _ in order] == [2, 0, 1, 3]
        assert order[0][1] == frozenset({1, 3})

    def test_secondary_strategy(self):
        strategy = Constrained(lambda v, g: 0, MinFill())
        order = elimination_sequence(_cycle_with_pendant(), strategy)
        assert order[0][0] == 4


class TestSubset:
    def test_partial_elimination(self):
        order = elimination_sequence(_chain(4), variables=[0, 1])
        assert order == [(0, frozenset({1})), (1, frozenset({2}))]

    def test_unknown_vertex(self):
        with pytest.raises(InvalidArgument):
            elimination_sequence(_chain(3), variables=[7])
